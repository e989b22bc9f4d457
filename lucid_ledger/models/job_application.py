#lucid_ledger/models/job_application.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from lucid_ledger.db.base import Base, JSONType
from lucid_ledger.core.statuses import ApplicationStatus


class JobApplication(Base):
    """
    An employee's application to a job posting.

    contract_snapshot holds the terms the worker signed; it is copied onto the
    deployed contract once and never recomputed from the live posting.
    A completed application lets the same worker re-apply for remaining positions.
    """

    __tablename__ = "job_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    job_posting_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("job_postings.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )

    application_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.applied.value
    )
    contract_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_job_applications_posting_employee", "job_posting_id", "employee_id"),
    )
