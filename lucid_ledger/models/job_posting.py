#lucid_ledger/models/job_posting.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, ForeignKey, CheckConstraint, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucid_ledger.db.base import Base
from lucid_ledger.core.statuses import JobStatus


class JobPosting(Base):
    """
    Subset of the job posting row the lifecycle core reads and writes.

    Once contracts exist, status is derived by the job reconciler.
    """

    __tablename__ = "job_postings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    employer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    positions_available: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobStatus.draft.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    employer = relationship("Employer")

    __table_args__ = (
        CheckConstraint("positions_available >= 1", name="ck_job_positions_positive"),
        Index("ix_job_postings_employer_status", "employer_id", "status"),
    )
