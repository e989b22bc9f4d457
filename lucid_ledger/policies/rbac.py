#lucid_ledger/policies/rbac.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from lucid_ledger.core.errors import AuthorizationError
from lucid_ledger.core.security import normalize_address
from lucid_ledger.core.statuses import ContractStatus


@dataclass(frozen=True)
class Principal:
    """Already-authenticated caller. wallet_address is normalized or None."""

    wallet_address: Optional[str]
    subject: Optional[str] = None


class ContractRole(str, Enum):
    admin = "admin"
    employer = "employer"
    employee = "employee"
    mediator = "mediator"
    none = "none"


ALL_STATUSES: FrozenSet[ContractStatus] = frozenset(ContractStatus)

ROLE_TARGETS: Dict[ContractRole, FrozenSet[ContractStatus]] = {
    ContractRole.admin: ALL_STATUSES,
    ContractRole.employer: frozenset({ContractStatus.completed, ContractStatus.disputed}),
    ContractRole.employee: frozenset({ContractStatus.disputed}),
    ContractRole.mediator: frozenset({ContractStatus.completed, ContractStatus.terminated}),
    ContractRole.none: frozenset(),
}

# role -> statuses the contract must currently be in for that role's targets to apply
ROLE_REQUIRED_CURRENT: Dict[ContractRole, FrozenSet[ContractStatus]] = {
    ContractRole.mediator: frozenset({ContractStatus.disputed}),
}

NO_ROLE: FrozenSet[ContractRole] = frozenset({ContractRole.none})
ADMIN_ONLY: FrozenSet[ContractRole] = frozenset({ContractRole.admin})


@dataclass(frozen=True)
class ContractParties:
    """Wallets of everyone attached to one contract, normalized once."""

    employer_wallet: Optional[str]
    employee_wallet: Optional[str]
    mediator_wallet: Optional[str] = None

    @classmethod
    def from_contract(cls, contract) -> "ContractParties":
        employer = getattr(contract, "employer", None)
        employee = getattr(contract, "employee", None)
        mediator = getattr(contract, "mediator", None)
        return cls(
            employer_wallet=normalize_address(employer.wallet_address) if employer else None,
            employee_wallet=normalize_address(employee.wallet_address) if employee else None,
            mediator_wallet=normalize_address(mediator.wallet_address) if mediator else None,
        )


class RoleResolver:
    """
    Maps a caller wallet onto its roles for one contract.

    The admin allow-list is injected so tests can use fixture admin sets.
    """

    def __init__(self, admin_wallets: Iterable[str]):
        self._admins = frozenset(
            a for a in (normalize_address(w) for w in admin_wallets) if a
        )

    def is_admin(self, wallet: Optional[str]) -> bool:
        return bool(wallet) and wallet in self._admins

    def resolve(self, wallet: Optional[str], parties: ContractParties) -> FrozenSet[ContractRole]:
        if not wallet:
            return NO_ROLE
        if self.is_admin(wallet):
            return ADMIN_ONLY

        roles = set()
        if wallet == parties.employer_wallet:
            roles.add(ContractRole.employer)
        if wallet == parties.employee_wallet:
            roles.add(ContractRole.employee)
        if wallet == parties.mediator_wallet:
            roles.add(ContractRole.mediator)
        return frozenset(roles) if roles else NO_ROLE

    def resolve_for_contract(self, principal: Principal, contract) -> FrozenSet[ContractRole]:
        return self.resolve(principal.wallet_address, ContractParties.from_contract(contract))


def allowed_targets(
    roles: FrozenSet[ContractRole], current: ContractStatus
) -> FrozenSet[ContractStatus]:
    """
    Pure RBAC: union of target statuses the given roles may request
    from the current status.
    """
    out = set()
    for role in roles:
        required = ROLE_REQUIRED_CURRENT.get(role)
        if required is not None and current not in required:
            continue
        out |= ROLE_TARGETS.get(role, frozenset())
    return frozenset(out)


def require_any_role(roles: FrozenSet[ContractRole], *wanted: ContractRole) -> None:
    if ContractRole.admin in roles:
        return
    if not roles & set(wanted):
        raise AuthorizationError(
            "Caller role(s) "
            f"{sorted(r.value for r in roles)} not permitted; requires one of "
            f"{sorted(r.value for r in wanted)}."
        )
