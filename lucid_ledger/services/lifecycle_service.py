#lucid_ledger/services/lifecycle_service.py
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional

import pydantic
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lucid_ledger.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lucid_ledger.core.security import normalize_address
from lucid_ledger.core.statuses import (
    ApplicationStatus,
    ContractStatus,
    MediatorStatus,
    PaymentStatus,
    PaymentType,
    TERMINAL_CONTRACT_STATUSES,
    UNPAID_TERMINAL_STATUSES,
    VerificationStatus,
)
from lucid_ledger.models.deployed_contract import DeployedContract
from lucid_ledger.models.dispute_history import DisputeHistory
from lucid_ledger.models.payment_transaction import PaymentTransaction
from lucid_ledger.policies.rbac import (
    NO_ROLE,
    ContractParties,
    ContractRole,
    Principal,
    RoleResolver,
    allowed_targets,
    require_any_role,
)
from lucid_ledger.schemas.deployed_contracts import ContractUpdateFields, DeployedContractCreate
from lucid_ledger.services.audit_service import AuditAction, AuditService
from lucid_ledger.services.contract_store import ContractRecordStore
from lucid_ledger.services.events import ContractEventBus, ContractTerminal

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")

REQUIRED_CREATE_FIELDS = (
    "job_posting_id",
    "employee_id",
    "employer_id",
    "contract_address",
    "payment_amount",
)

IMMUTABLE_FIELDS = frozenset(
    {"contract_address", "employer_id", "employee_id", "job_posting_id", "payment_amount"}
)
BASE_UPDATABLE_FIELDS = frozenset({"status", "verification_status"})
ADMIN_UPDATABLE_FIELDS = BASE_UPDATABLE_FIELDS | frozenset(
    {
        "total_paid",
        "last_payment_date",
        "next_payment_date",
        "started_at",
        "expected_end_date",
        "actual_end_date",
    }
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_status(raw: Any, *, field: str = "status") -> ContractStatus:
    if raw is None or raw == "":
        raise ValidationError(f"{field} is required.", field=field)
    try:
        return ContractStatus(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid {field} '{raw}'. Expected one of "
            f"{', '.join(s.value for s in ContractStatus)}.",
            field=field,
        )


def _parse_verification(raw: Any) -> VerificationStatus:
    try:
        return VerificationStatus(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid verification_status '{raw}'.", field="verification_status"
        )


def _status_filter(raw: Optional[str]) -> Optional[List[str]]:
    """A 'terminated' filter also matches refunded contracts."""
    if not raw:
        return None
    status = _parse_status(raw)
    if status == ContractStatus.terminated:
        return [ContractStatus.terminated.value, ContractStatus.refunded.value]
    return [status.value]


def _raised_by(roles: FrozenSet[ContractRole]) -> ContractRole:
    for role in (ContractRole.admin, ContractRole.employer, ContractRole.employee):
        if role in roles:
            return role
    raise AuthorizationError("Only a party to the contract or an admin may raise a dispute.")


@dataclass
class CompletionResult:
    contract: DeployedContract
    payment: PaymentTransaction
    already_recorded: bool


class ContractLifecycleService:
    """
    Validates and applies every mutation of a deployed contract.

    Each public mutation runs in one transaction on the caller's session,
    writes an audit row alongside the change, and publishes ContractTerminal
    only after the commit succeeded.
    """

    def __init__(
        self,
        resolver: RoleResolver,
        events: ContractEventBus,
        audit: Optional[AuditService] = None,
    ):
        self.resolver = resolver
        self.events = events
        self.audit = audit or AuditService()

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _load(
        self, store: ContractRecordStore, contract_id: uuid.UUID, *, for_update: bool = False
    ) -> DeployedContract:
        contract = store.get_contract(contract_id, for_update=for_update)
        if not contract:
            raise NotFoundError("Deployed contract not found.")
        return contract

    def _roles(self, principal: Principal, contract: DeployedContract) -> FrozenSet[ContractRole]:
        roles = self.resolver.resolve_for_contract(principal, contract)
        if roles == NO_ROLE:
            raise AuthorizationError("Caller has no role on this contract.")
        return roles

    def _commit(self, db: Session) -> None:
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            raise ConflictError("Contract was modified concurrently; reload and retry.")

    def _publish_if_terminal(
        self, db: Session, contract: DeployedContract, *, source: str
    ) -> None:
        if ContractStatus(contract.status) not in TERMINAL_CONTRACT_STATUSES:
            return
        self.events.publish(
            db,
            ContractTerminal(
                contract_id=contract.id,
                job_posting_id=contract.job_posting_id,
                status=contract.status,
                source=source,
            ),
        )

    def _apply_status(
        self,
        store: ContractRecordStore,
        contract: DeployedContract,
        target: ContractStatus,
        *,
        roles: FrozenSet[ContractRole],
        reason: Optional[str],
        resolution_tx_hash: Optional[str] = None,
    ) -> ContractStatus:
        """Role-checked wrapper around ContractRecordStore.transition. Does not commit."""
        raiser = ContractRole.none
        if target == ContractStatus.disputed and contract.status != ContractStatus.disputed.value:
            raiser = _raised_by(roles)
        return store.transition(
            contract,
            target,
            raised_by_role=raiser.value,
            reason=reason,
            resolution_tx_hash=resolution_tx_hash,
        )

    def _correct(
        self,
        db: Session,
        store: ContractRecordStore,
        contract: DeployedContract,
        target: ContractStatus,
        *,
        principal: Principal,
        reason: Optional[str],
        request_id: Optional[str],
    ) -> DeployedContract:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for a status correction.", field="reason")
        if ContractStatus(contract.status) == target:
            raise ConflictError(f"Contract is already {target.value}.")

        previous = self._apply_status(
            store, contract, target, roles=frozenset({ContractRole.admin}), reason=reason
        )
        self.audit.write(
            db,
            action=AuditAction.CONTRACT_STATUS_CORRECTED,
            contract_id=contract.id,
            actor_wallet=principal.wallet_address,
            request_id=request_id,
            details={"from": previous.value, "to": target.value, "reason": reason},
        )
        self._commit(db)

        logger.warning(
            "contract status corrected",
            extra={
                "contract_id": str(contract.id),
                "from_status": previous.value,
                "to_status": target.value,
                "actor": principal.wallet_address,
            },
        )
        self._publish_if_terminal(db, contract, source="correction")
        return contract

    # ─────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────

    def create_deployed_contract(
        self,
        db: Session,
        *,
        payload: DeployedContractCreate,
        principal: Principal,
        request_id: Optional[str] = None,
    ) -> DeployedContract:
        if not principal.wallet_address:
            raise AuthorizationError("A caller wallet address is required.")

        for name in REQUIRED_CREATE_FIELDS:
            if getattr(payload, name) in (None, ""):
                raise ValidationError(f"{name} is required.", field=name)

        address = normalize_address(payload.contract_address)
        if not address or not _ADDRESS_RE.match(address):
            raise ValidationError("contract_address must be a 0x-prefixed 20-byte hex address.", field="contract_address")

        store = ContractRecordStore(db)

        employer = store.get_employer(payload.employer_id)
        if not employer:
            raise NotFoundError("Employer not found.")
        if not store.get_employee(payload.employee_id):
            raise NotFoundError("Employee not found.")
        job = store.get_job_posting(payload.job_posting_id)
        if not job:
            raise NotFoundError("Job posting not found.")
        if job.employer_id != employer.id:
            raise ValidationError("Job posting does not belong to this employer.", field="job_posting_id")

        is_admin = self.resolver.is_admin(principal.wallet_address)
        if not is_admin and normalize_address(employer.wallet_address) != principal.wallet_address:
            raise AuthorizationError("Only the employer of record or an admin may create this contract.")

        status = _parse_status(payload.status) if payload.status else ContractStatus.active
        verification = (
            _parse_verification(payload.verification_status)
            if payload.verification_status
            else VerificationStatus.pending
        )
        if not is_admin and (
            status != ContractStatus.active or verification != VerificationStatus.pending
        ):
            raise AuthorizationError(
                "Only an admin may create a contract with a non-default status or verification_status."
            )

        if store.get_by_address(address):
            raise ConflictError("A contract with this address already exists.", field="contract_address")

        application = store.find_open_application(payload.job_posting_id, payload.employee_id)
        snapshot = dict(application.contract_snapshot) if application and application.contract_snapshot else None
        if snapshot is None:
            logger.warning(
                "no contract snapshot found for new contract",
                extra={
                    "job_posting_id": str(payload.job_posting_id),
                    "employee_id": str(payload.employee_id),
                },
            )

        contract = DeployedContract(
            contract_address=address,
            job_posting_id=payload.job_posting_id,
            employee_id=payload.employee_id,
            employer_id=payload.employer_id,
            payment_amount=payload.payment_amount,
            payment_currency=payload.payment_currency or "USD",
            payment_frequency=payload.payment_frequency,
            deployment_tx_hash=payload.deployment_tx_hash,
            deployed_at=payload.deployed_at or _now(),
            started_at=payload.started_at,
            expected_end_date=payload.expected_end_date,
            next_payment_date=payload.next_payment_date,
            selected_oracles=payload.selected_oracles,
            oracle_addresses=payload.oracle_addresses,
            contract_version=payload.contract_version or 1,
            status=status.value,
            verification_status=verification.value,
            contract_snapshot=snapshot,
        )

        try:
            store.add_contract(contract)
            self.audit.write(
                db,
                action=AuditAction.CONTRACT_CREATED,
                contract_id=contract.id,
                actor_wallet=principal.wallet_address,
                request_id=request_id,
                details={
                    "contract_address": address,
                    "job_posting_id": str(contract.job_posting_id),
                    "employee_id": str(contract.employee_id),
                    "status": contract.status,
                },
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("A contract with this address already exists.", field="contract_address")

        logger.info(
            "deployed contract created",
            extra={"contract_id": str(contract.id), "contract_address": address},
        )
        self._publish_if_terminal(db, contract, source="lifecycle")
        return contract

    # ─────────────────────────────────────────────
    # Status transitions
    # ─────────────────────────────────────────────

    def request_status_change(
        self,
        db: Session,
        *,
        contract_id: uuid.UUID,
        target_status: Optional[str],
        principal: Principal,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> DeployedContract:
        target = _parse_status(target_status)
        store = ContractRecordStore(db)
        contract = self._load(store, contract_id, for_update=True)
        roles = self._roles(principal, contract)
        current = ContractStatus(contract.status)

        if current in TERMINAL_CONTRACT_STATUSES:
            if ContractRole.admin not in roles:
                raise AuthorizationError(f"Contract is {current.value}; its status can no longer change.")
            if target == current:
                return contract
            # leaving a terminal status is always an audited correction
            return self._correct(
                db, store, contract, target, principal=principal, reason=reason, request_id=request_id
            )

        if target not in allowed_targets(roles, current):
            raise AuthorizationError(
                f"Role(s) {sorted(r.value for r in roles)} may not move a "
                f"{current.value} contract to {target.value}."
            )

        if target == current:
            return contract

        self._apply_status(store, contract, target, roles=roles, reason=reason)
        self.audit.write(
            db,
            action=AuditAction.CONTRACT_STATUS_CHANGED,
            contract_id=contract.id,
            actor_wallet=principal.wallet_address,
            request_id=request_id,
            details={
                "from": current.value,
                "to": target.value,
                "roles": sorted(r.value for r in roles),
                "reason": reason,
            },
        )
        self._commit(db)

        logger.info(
            "contract status changed",
            extra={
                "contract_id": str(contract.id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        self._publish_if_terminal(db, contract, source="lifecycle")
        return contract

    def correct_contract_status(
        self,
        db: Session,
        *,
        contract_id: uuid.UUID,
        target_status: Optional[str],
        reason: Optional[str],
        principal: Principal,
        request_id: Optional[str] = None,
    ) -> DeployedContract:
        """
        Admin-only override of the contract status, including out of a
        terminal status. Always audited; a terminal target re-runs job
        reconciliation, which never moves a finished job backwards.
        """
        if not self.resolver.is_admin(principal.wallet_address):
            raise AuthorizationError("Only an admin may correct a contract status.")
        target = _parse_status(target_status)
        store = ContractRecordStore(db)
        contract = self._load(store, contract_id, for_update=True)
        return self._correct(
            db, store, contract, target, principal=principal, reason=reason, request_id=request_id
        )

    # ─────────────────────────────────────────────
    # General update
    # ─────────────────────────────────────────────

    def update_deployed_contract(
        self,
        db: Session,
        *,
        contract_id: uuid.UUID,
        fields: Dict[str, Any],
        principal: Principal,
        request_id: Optional[str] = None,
    ) -> DeployedContract:
        touched_immutable = sorted(IMMUTABLE_FIELDS & set(fields))
        if touched_immutable:
            raise AuthorizationError(
                f"Immutable field(s) cannot be updated: {', '.join(touched_immutable)}.",
                field=touched_immutable[0],
            )
        if not fields:
            raise ValidationError("No fields to update.")

        store = ContractRecordStore(db)
        contract = self._load(store, contract_id, for_update=True)
        roles = self._roles(principal, contract)
        is_admin = ContractRole.admin in roles

        allowed = ADMIN_UPDATABLE_FIELDS if is_admin else BASE_UPDATABLE_FIELDS
        forbidden = sorted(set(fields) - allowed)
        if forbidden:
            raise AuthorizationError(
                f"Field(s) not updatable by this caller: {', '.join(forbidden)}.",
                field=forbidden[0],
            )

        try:
            values = ContractUpdateFields.model_validate(fields)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise ValidationError(f"{loc}: {first.get('msg')}", field=loc or None)

        current = ContractStatus(contract.status)
        target: Optional[ContractStatus] = None
        if "status" in fields:
            target = _parse_status(values.status)
            if target == current:
                target = None

        if current in TERMINAL_CONTRACT_STATUSES and target is not None:
            if not is_admin:
                raise AuthorizationError(f"Contract is {current.value}; its status can no longer change.")
            raise ConflictError(
                "Moving a contract out of a terminal status requires an explicit correction "
                f"(POST /deployed-contracts/{contract.id}/corrections)."
            )
        if target is not None and target not in allowed_targets(roles, current):
            raise AuthorizationError(
                f"Role(s) {sorted(r.value for r in roles)} may not move a "
                f"{current.value} contract to {target.value}."
            )

        verification = None
        if "verification_status" in fields:
            verification = _parse_verification(values.verification_status)

        # all checks passed; nothing has been written before this point
        changed: Dict[str, Any] = {}
        if target is not None:
            self._apply_status(store, contract, target, roles=roles, reason=None)
            changed["status"] = {"from": current.value, "to": target.value}
        if verification is not None:
            contract.verification_status = verification.value
            contract.last_verification_at = _now()
            changed["verification_status"] = verification.value
        for name in sorted(set(fields) - BASE_UPDATABLE_FIELDS):
            value = getattr(values, name)
            setattr(contract, name, value)
            changed[name] = str(value) if value is not None else None

        self.audit.write(
            db,
            action=AuditAction.CONTRACT_UPDATED,
            contract_id=contract.id,
            actor_wallet=principal.wallet_address,
            request_id=request_id,
            details=changed,
        )
        self._commit(db)

        logger.info(
            "contract updated",
            extra={"contract_id": str(contract.id), "fields": sorted(changed)},
        )
        if target is not None:
            self._publish_if_terminal(db, contract, source="lifecycle")
        return contract

    # ─────────────────────────────────────────────
    # Completion with payment
    # ─────────────────────────────────────────────

    def complete_contract_with_payment(
        self,
        db: Session,
        *,
        contract_id: uuid.UUID,
        tx_hash: Optional[str],
        amount: Optional[Decimal],
        principal: Principal,
        currency: Optional[str] = None,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        block_number: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> CompletionResult:
        """
        Complete the contract and record its final payment in one transaction.

        A repeated call with the same tx_hash returns the recorded payment
        and changes nothing. Job reconciliation runs after the commit and
        cannot undo the payment.
        """
        tx_hash = (tx_hash or "").strip().lower()
        if not tx_hash:
            raise ValidationError("tx_hash is required.", field="tx_hash")
        if amount is None:
            raise ValidationError("amount is required.", field="amount")
        if amount <= 0:
            raise ValidationError("amount must be positive.", field="amount")

        store = ContractRecordStore(db)
        contract = self._load(store, contract_id, for_update=True)
        roles = self._roles(principal, contract)
        require_any_role(roles, ContractRole.employer)

        existing = store.find_payment_by_tx_hash(tx_hash)
        if existing:
            return self._replayed(db, contract, existing)

        current = ContractStatus(contract.status)
        if current == ContractStatus.completed:
            raise ConflictError("Contract is already completed.")
        if current in UNPAID_TERMINAL_STATUSES:
            raise ConflictError(f"Contract is {current.value} and cannot be completed.")

        self._apply_status(
            store,
            contract,
            ContractStatus.completed,
            roles=roles,
            reason="final payment recorded",
            resolution_tx_hash=tx_hash,
        )
        contract.verification_status = VerificationStatus.verified.value
        contract.last_verification_at = _now()
        contract.total_paid = (contract.total_paid or Decimal("0")) + amount
        contract.last_payment_date = _now().date()

        application = store.find_open_application(contract.job_posting_id, contract.employee_id)
        if application:
            application.application_status = ApplicationStatus.completed.value
        else:
            logger.warning(
                "no open application to complete",
                extra={"contract_id": str(contract.id)},
            )

        payment = PaymentTransaction(
            deployed_contract_id=contract.id,
            amount=amount,
            currency=currency or contract.payment_currency,
            payment_type=PaymentType.final.value,
            tx_hash=tx_hash,
            block_number=block_number,
            from_address=normalize_address(from_address),
            to_address=normalize_address(to_address),
            status=PaymentStatus.completed.value,
            processed_at=_now(),
        )
        db.add(payment)
        self.audit.write(
            db,
            action=AuditAction.CONTRACT_COMPLETED,
            contract_id=contract.id,
            actor_wallet=principal.wallet_address,
            request_id=request_id,
            details={"from": current.value, "tx_hash": tx_hash, "amount": str(amount)},
        )

        try:
            self._commit(db)
        except IntegrityError:
            # a concurrent request recorded the same tx_hash first
            db.rollback()
            winner = store.find_payment_by_tx_hash(tx_hash)
            if not winner:
                raise
            return self._replayed(db, self._load(store, contract_id), winner)

        logger.info(
            "contract completed with payment",
            extra={"contract_id": str(contract.id), "tx_hash": tx_hash, "amount": str(amount)},
        )
        self._publish_if_terminal(db, contract, source="lifecycle")
        return CompletionResult(contract=contract, payment=payment, already_recorded=False)

    def _replayed(
        self, db: Session, contract: DeployedContract, payment: PaymentTransaction
    ) -> CompletionResult:
        if payment.deployed_contract_id != contract.id:
            db.rollback()
            raise ConflictError("tx_hash is already recorded for another contract.", field="tx_hash")
        db.rollback()
        logger.info(
            "payment already recorded",
            extra={"contract_id": str(contract.id), "tx_hash": payment.tx_hash},
        )
        return CompletionResult(contract=contract, payment=payment, already_recorded=True)

    # ─────────────────────────────────────────────
    # Mediation
    # ─────────────────────────────────────────────

    def assign_mediator(
        self,
        db: Session,
        *,
        contract_id: uuid.UUID,
        mediator_id: Optional[uuid.UUID],
        principal: Principal,
        request_id: Optional[str] = None,
    ) -> DeployedContract:
        if not self.resolver.is_admin(principal.wallet_address):
            raise AuthorizationError("Only an admin may assign a mediator.")
        if mediator_id is None:
            raise ValidationError("mediator_id is required.", field="mediator_id")

        store = ContractRecordStore(db)
        contract = self._load(store, contract_id, for_update=True)

        if contract.status != ContractStatus.disputed.value:
            raise ConflictError("A mediator can only be assigned to a disputed contract.")
        if contract.mediator_id is not None:
            raise ConflictError("A mediator is already assigned to this contract.")

        mediator = store.get_mediator(mediator_id)
        if not mediator:
            raise NotFoundError("Mediator not found.")
        wallet = normalize_address(mediator.wallet_address)
        if mediator.status != MediatorStatus.active.value or not wallet:
            raise ValidationError(
                "Mediator must be active and have a wallet address.", field="mediator_id"
            )

        parties = ContractParties.from_contract(contract)
        if wallet in (parties.employer_wallet, parties.employee_wallet):
            raise ConflictError("Mediator cannot be a party to the contract.")

        assigned_at = _now()
        contract.mediator_id = mediator.id
        contract.mediator = mediator
        dispute = store.open_dispute(contract.id)
        if dispute:
            dispute.mediator_id = mediator.id
            dispute.mediator_assigned_at = assigned_at

        self.audit.write(
            db,
            action=AuditAction.MEDIATOR_ASSIGNED,
            contract_id=contract.id,
            actor_wallet=principal.wallet_address,
            request_id=request_id,
            details={"mediator_id": str(mediator.id)},
        )
        self._commit(db)

        logger.info(
            "mediator assigned",
            extra={"contract_id": str(contract.id), "mediator_id": str(mediator.id)},
        )
        return contract

    # ─────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────

    def get_contract(
        self, db: Session, *, contract_id: uuid.UUID, principal: Principal
    ) -> DeployedContract:
        contract = self._load(ContractRecordStore(db), contract_id)
        require_any_role(self._roles(principal, contract), ContractRole.employer, ContractRole.employee)
        return contract

    def list_for_employer(
        self,
        db: Session,
        *,
        employer_id: Optional[uuid.UUID],
        principal: Principal,
        status: Optional[str] = None,
    ) -> List[DeployedContract]:
        if employer_id is None:
            raise ValidationError("employer_id is required.", field="employer_id")
        store = ContractRecordStore(db)
        employer = store.get_employer(employer_id)
        if not employer:
            raise NotFoundError("Employer not found.")
        self._require_self_or_admin(principal, employer.wallet_address)
        return store.list_by_employer(employer_id, _status_filter(status))

    def list_for_employee(
        self,
        db: Session,
        *,
        employee_id: uuid.UUID,
        principal: Principal,
        status: Optional[str] = None,
    ) -> List[DeployedContract]:
        store = ContractRecordStore(db)
        employee = store.get_employee(employee_id)
        if not employee:
            raise NotFoundError("Employee not found.")
        self._require_self_or_admin(principal, employee.wallet_address)
        return store.list_by_employee(employee_id, _status_filter(status))

    def list_disputed(self, db: Session, *, principal: Principal) -> List[DeployedContract]:
        if not self.resolver.is_admin(principal.wallet_address):
            raise AuthorizationError("Only an admin may view the dispute queue.")
        return ContractRecordStore(db).list_disputed()

    def list_for_mediator(
        self, db: Session, *, mediator_id: uuid.UUID, principal: Principal
    ) -> List[DeployedContract]:
        store = ContractRecordStore(db)
        mediator = store.get_mediator(mediator_id)
        if not mediator:
            raise NotFoundError("Mediator not found.")
        self._require_self_or_admin(principal, mediator.wallet_address)
        return store.list_disputed(mediator_id=mediator_id)

    def list_payments(
        self, db: Session, *, contract_id: uuid.UUID, principal: Principal
    ) -> List[PaymentTransaction]:
        store = ContractRecordStore(db)
        contract = self._load(store, contract_id)
        require_any_role(self._roles(principal, contract), ContractRole.employer, ContractRole.employee)
        return store.list_payments(contract.id)

    def list_disputes(
        self, db: Session, *, contract_id: uuid.UUID, principal: Principal
    ) -> List[DisputeHistory]:
        """
        Parties and admins see the history, as does any mediator recorded on
        one of its disputes.
        """
        store = ContractRecordStore(db)
        contract = self._load(store, contract_id)
        disputes = store.list_disputes(contract.id)
        if self.resolver.resolve_for_contract(principal, contract) != NO_ROLE:
            return disputes

        mediator_ids = {d.mediator_id for d in disputes if d.mediator_id is not None}
        for mediator_id in mediator_ids:
            mediator = store.get_mediator(mediator_id)
            if mediator and principal.wallet_address and (
                normalize_address(mediator.wallet_address) == principal.wallet_address
            ):
                return disputes
        raise AuthorizationError("Caller has no role on this contract.")

    def _require_self_or_admin(self, principal: Principal, owner_wallet: Optional[str]) -> None:
        wallet = principal.wallet_address
        if not wallet:
            raise AuthorizationError("A caller wallet address is required.")
        if self.resolver.is_admin(wallet):
            return
        if wallet != normalize_address(owner_wallet):
            raise AuthorizationError("Callers may only list their own contracts.")

