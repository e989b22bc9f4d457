from __future__ import annotations

from enum import Enum
from typing import FrozenSet


class ContractStatus(str, Enum):
    active = "active"
    completed = "completed"
    disputed = "disputed"
    refunded = "refunded"
    terminated = "terminated"


TERMINAL_CONTRACT_STATUSES: FrozenSet[ContractStatus] = frozenset(
    {ContractStatus.completed, ContractStatus.refunded, ContractStatus.terminated}
)

# terminal outcomes in which the worker was not paid
UNPAID_TERMINAL_STATUSES: FrozenSet[ContractStatus] = frozenset(
    {ContractStatus.refunded, ContractStatus.terminated}
)


class VerificationStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    failed = "failed"


class JobStatus(str, Enum):
    draft = "draft"
    active = "active"
    in_progress = "in_progress"
    completed = "completed"
    closed = "closed"
    deleted = "deleted"


class ApplicationStatus(str, Enum):
    applied = "applied"
    accepted = "accepted"
    rejected = "rejected"
    completed = "completed"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class PaymentType(str, Enum):
    final = "final"
    partial = "partial"
    refund = "refund"


class MediatorStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class DisputeResolution(str, Enum):
    worker_paid = "worker_paid"
    employer_refunded = "employer_refunded"
    split = "split"
    cancelled = "cancelled"

