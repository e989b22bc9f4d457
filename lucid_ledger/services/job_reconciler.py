#lucid_ledger/services/job_reconciler.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from lucid_ledger.core.statuses import (
    JobStatus,
    TERMINAL_CONTRACT_STATUSES,
    UNPAID_TERMINAL_STATUSES,
    ContractStatus,
)
from lucid_ledger.services.contract_store import ContractRecordStore
from lucid_ledger.services.events import ContractTerminal

logger = logging.getLogger(__name__)

# A job only enters in_progress from active.
IN_PROGRESS_FROM = (JobStatus.active.value,)
# completed/closed/deleted are never left by reconciliation.
FINAL_FROM = (JobStatus.draft.value, JobStatus.active.value, JobStatus.in_progress.value)


def _status(raw: str) -> Optional[ContractStatus]:
    try:
        return ContractStatus(raw)
    except ValueError:
        return None


class JobStatusReconciler:
    """
    Recomputes a job posting's status from its deployed contracts.

    Rules:
    - no contracts → no-op
    - fewer contracts than positions_available → no-op (job keeps hiring)
    - all positions filled, some contract not terminal → in_progress (from active only)
    - all positions filled, all terminal:
        every contract refunded/terminated → closed
        otherwise → completed

    Idempotent: the same inputs always produce the same status and the write
    is a no-op when nothing changes.
    """

    def compute(self, db: Session, job_posting_id: uuid.UUID) -> Optional[JobStatus]:
        store = ContractRecordStore(db)
        contracts = store.list_for_job(job_posting_id)
        if not contracts:
            return None

        job = store.get_job_posting(job_posting_id)
        if not job:
            return None

        if len(contracts) < job.positions_available:
            return None

        statuses = [_status(c.status) for c in contracts]
        if not all(s in TERMINAL_CONTRACT_STATUSES for s in statuses):
            return JobStatus.in_progress

        if all(s in UNPAID_TERMINAL_STATUSES for s in statuses):
            return JobStatus.closed
        return JobStatus.completed

    def reconcile(self, db: Session, job_posting_id: uuid.UUID) -> Optional[JobStatus]:
        """
        Compute and persist. Returns the status written, or None when the
        job was left untouched. Commits its own write.
        """
        target = self.compute(db, job_posting_id)
        if target is None:
            return None

        only_from = IN_PROGRESS_FROM if target == JobStatus.in_progress else FINAL_FROM
        changed = ContractRecordStore(db).set_job_status(
            job_posting_id, target.value, only_from=only_from
        )
        db.commit()

        if not changed:
            return None

        logger.info(
            "job status reconciled",
            extra={"job_posting_id": str(job_posting_id), "status": target.value},
        )
        return target

    def handle(self, db: Session, event: ContractTerminal) -> None:
        self.reconcile(db, event.job_posting_id)
