from __future__ import annotations

from functools import lru_cache

from lucid_ledger.core.config import get_settings
from lucid_ledger.policies.rbac import RoleResolver
from lucid_ledger.services.events import ContractEventBus
from lucid_ledger.services.job_reconciler import JobStatusReconciler
from lucid_ledger.services.lifecycle_service import ContractLifecycleService


@lru_cache(maxsize=1)
def get_event_bus() -> ContractEventBus:
    bus = ContractEventBus()
    bus.subscribe(JobStatusReconciler().handle)
    return bus


@lru_cache(maxsize=1)
def get_role_resolver() -> RoleResolver:
    return RoleResolver(get_settings().admin_wallet_set)


def get_lifecycle_service() -> ContractLifecycleService:
    return ContractLifecycleService(get_role_resolver(), get_event_bus())
