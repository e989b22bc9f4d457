#lucid_ledger/services/contract_store.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, desc
from sqlalchemy.orm import Session, joinedload

from lucid_ledger.core.statuses import (
    ApplicationStatus,
    ContractStatus,
    DisputeResolution,
    TERMINAL_CONTRACT_STATUSES,
)
from lucid_ledger.models.deployed_contract import DeployedContract
from lucid_ledger.models.dispute_history import DisputeHistory
from lucid_ledger.models.employee import Employee
from lucid_ledger.models.employer import Employer
from lucid_ledger.models.job_application import JobApplication
from lucid_ledger.models.job_posting import JobPosting
from lucid_ledger.models.mediator import Mediator
from lucid_ledger.models.payment_transaction import PaymentTransaction


_PARTIES = (
    joinedload(DeployedContract.employer),
    joinedload(DeployedContract.employee),
    joinedload(DeployedContract.mediator),
)

# how a dispute is closed, keyed by the status the contract leaves it for
DISPUTE_RESOLUTION_BY_TARGET = {
    ContractStatus.completed: DisputeResolution.worker_paid,
    ContractStatus.refunded: DisputeResolution.employer_refunded,
    ContractStatus.terminated: DisputeResolution.employer_refunded,
    ContractStatus.active: DisputeResolution.cancelled,
}


class ContractRecordStore:
    """
    Persistence for deployed contracts and the rows around them.

    Never commits: the caller owns the unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------------------------
    # CONTRACTS
    # ---------------------------

    def get_contract(
        self, contract_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[DeployedContract]:
        """
        Load one contract with employer/employee/mediator relations.
        for_update locks the contract row (FOR UPDATE OF deployed_contracts).
        """
        stmt = select(DeployedContract).options(*_PARTIES).where(DeployedContract.id == contract_id)
        if for_update:
            stmt = stmt.with_for_update(of=DeployedContract)
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def get_by_address(self, contract_address: str) -> Optional[DeployedContract]:
        return self.db.execute(
            select(DeployedContract).where(DeployedContract.contract_address == contract_address)
        ).scalar_one_or_none()

    def list_addresses(self) -> List[str]:
        return list(
            self.db.execute(
                select(DeployedContract.contract_address)
                .where(DeployedContract.contract_address.is_not(None))
                .order_by(DeployedContract.created_at)
            ).scalars()
        )

    def list_for_job(self, job_posting_id: uuid.UUID) -> List[DeployedContract]:
        return list(
            self.db.execute(
                select(DeployedContract).where(DeployedContract.job_posting_id == job_posting_id)
            ).scalars()
        )

    def _list(self, *criteria) -> List[DeployedContract]:
        return list(
            self.db.execute(
                select(DeployedContract)
                .options(*_PARTIES, joinedload(DeployedContract.job_posting))
                .where(*criteria)
                .order_by(desc(DeployedContract.created_at))
            )
            .unique()
            .scalars()
        )

    def list_by_employer(
        self, employer_id: uuid.UUID, statuses: Optional[Iterable[str]] = None
    ) -> List[DeployedContract]:
        criteria = [DeployedContract.employer_id == employer_id]
        if statuses:
            criteria.append(DeployedContract.status.in_(list(statuses)))
        return self._list(*criteria)

    def list_by_employee(
        self, employee_id: uuid.UUID, statuses: Optional[Iterable[str]] = None
    ) -> List[DeployedContract]:
        criteria = [DeployedContract.employee_id == employee_id]
        if statuses:
            criteria.append(DeployedContract.status.in_(list(statuses)))
        return self._list(*criteria)

    def list_disputed(self, mediator_id: Optional[uuid.UUID] = None) -> List[DeployedContract]:
        criteria = [DeployedContract.status == ContractStatus.disputed.value]
        if mediator_id is not None:
            criteria.append(DeployedContract.mediator_id == mediator_id)
        return self._list(*criteria)

    def transition(
        self,
        contract: DeployedContract,
        target: ContractStatus,
        *,
        raised_by_role: str,
        reason: Optional[str] = None,
        resolution_tx_hash: Optional[str] = None,
    ) -> ContractStatus:
        """
        Set the status and keep the dispute history in step with it.

        Entering disputed opens a DisputeHistory row raised by raised_by_role.
        Leaving disputed resolves the open row and detaches the mediator; the
        dispute row keeps who mediated. Terminal targets stamp actual_end_date.
        Returns the previous status.
        """
        now = datetime.now(timezone.utc)
        current = ContractStatus(contract.status)
        contract.status = target.value

        if target == ContractStatus.disputed and current != ContractStatus.disputed:
            self.db.add(
                DisputeHistory(
                    deployed_contract_id=contract.id,
                    raised_by_role=raised_by_role,
                    raised_by_employee_id=contract.employee_id if raised_by_role == "employee" else None,
                    raised_by_employer_id=contract.employer_id if raised_by_role == "employer" else None,
                    raised_at=now,
                    reason=reason or "",
                )
            )

        if current == ContractStatus.disputed and target != ContractStatus.disputed:
            dispute = self.open_dispute(contract.id)
            if dispute:
                dispute.resolved_at = now
                dispute.resolution = DISPUTE_RESOLUTION_BY_TARGET[target].value
                dispute.resolution_notes = reason
                dispute.resolution_tx_hash = resolution_tx_hash
            contract.mediator_id = None
            contract.mediator = None

        if target in TERMINAL_CONTRACT_STATUSES and contract.actual_end_date is None:
            contract.actual_end_date = now.date()

        return current

    def add_contract(self, contract: DeployedContract) -> DeployedContract:
        self.db.add(contract)
        self.db.flush()
        return contract

    # ---------------------------
    # PARTIES
    # ---------------------------

    def get_employer(self, employer_id: uuid.UUID) -> Optional[Employer]:
        return self.db.get(Employer, employer_id)

    def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        return self.db.get(Employee, employee_id)

    def get_mediator(self, mediator_id: uuid.UUID) -> Optional[Mediator]:
        return self.db.get(Mediator, mediator_id)

    # ---------------------------
    # JOBS / APPLICATIONS
    # ---------------------------

    def get_job_posting(self, job_posting_id: uuid.UUID) -> Optional[JobPosting]:
        return self.db.get(JobPosting, job_posting_id)

    def find_open_application(
        self, job_posting_id: uuid.UUID, employee_id: uuid.UUID
    ) -> Optional[JobApplication]:
        """
        Latest application of this worker to this job that has not been completed.
        Completed applications belong to earlier engagements.
        """
        return (
            self.db.execute(
                select(JobApplication)
                .where(
                    JobApplication.job_posting_id == job_posting_id,
                    JobApplication.employee_id == employee_id,
                    JobApplication.application_status != ApplicationStatus.completed.value,
                )
                .order_by(desc(JobApplication.applied_at))
            )
            .scalars()
            .first()
        )

    def set_job_status(
        self,
        job_posting_id: uuid.UUID,
        new_status: str,
        *,
        only_from: Sequence[str],
    ) -> bool:
        """
        Conditional write: only moves the job when its current status is in only_from.
        The row is re-read under lock so the guard sees the committed status.
        Returns True when the status changed.
        """
        job = self.db.execute(
            select(JobPosting)
            .where(JobPosting.id == job_posting_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not job or job.status == new_status or job.status not in only_from:
            return False
        job.status = new_status
        return True

    # ---------------------------
    # PAYMENTS / DISPUTES
    # ---------------------------

    def find_payment_by_tx_hash(self, tx_hash: str) -> Optional[PaymentTransaction]:
        return self.db.execute(
            select(PaymentTransaction).where(PaymentTransaction.tx_hash == tx_hash)
        ).scalar_one_or_none()

    def list_payments(self, contract_id: uuid.UUID) -> List[PaymentTransaction]:
        return list(
            self.db.execute(
                select(PaymentTransaction)
                .where(PaymentTransaction.deployed_contract_id == contract_id)
                .order_by(PaymentTransaction.created_at)
            ).scalars()
        )

    def open_dispute(self, contract_id: uuid.UUID) -> Optional[DisputeHistory]:
        return (
            self.db.execute(
                select(DisputeHistory)
                .where(
                    DisputeHistory.deployed_contract_id == contract_id,
                    DisputeHistory.resolved_at.is_(None),
                )
                .order_by(desc(DisputeHistory.raised_at))
            )
            .scalars()
            .first()
        )

    def list_disputes(self, contract_id: uuid.UUID) -> List[DisputeHistory]:
        return list(
            self.db.execute(
                select(DisputeHistory)
                .where(DisputeHistory.deployed_contract_id == contract_id)
                .order_by(desc(DisputeHistory.raised_at))
            ).scalars()
        )
