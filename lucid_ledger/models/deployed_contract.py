#lucid_ledger/models/deployed_contract.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    String,
    Text,
    Date,
    DateTime,
    Integer,
    SmallInteger,
    Numeric,
    ForeignKey,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucid_ledger.db.base import Base, JSONType
from lucid_ledger.core.statuses import ContractStatus, VerificationStatus


class DeployedContract(Base):
    """
    Off-chain mirror of one on-chain escrow instance.

    Immutability rule:
      - contract_address, job_posting_id, employee_id, employer_id and
        payment_amount never change after creation.
      - Rows are never deleted.
      - mediator_id is set once, only while status == disputed.
    """

    __tablename__ = "deployed_contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identity
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True)
    job_posting_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("job_postings.id", ondelete="RESTRICT"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False
    )
    employer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employers.id", ondelete="RESTRICT"), nullable=False
    )

    deployment_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    deployed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractStatus.active.value
    )
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.pending.value
    )
    last_verification_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expected_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Payment
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    payment_frequency: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    last_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Oracle configuration chosen at deployment
    selected_oracles: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    oracle_addresses: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contract_version: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)

    # Dispute linkage
    mediator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("mediators.id", ondelete="RESTRICT"), nullable=True
    )

    # Terms the worker signed, copied once from the application
    contract_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    job_posting = relationship("JobPosting")
    employer = relationship("Employer")
    employee = relationship("Employee")
    mediator = relationship("Mediator")

    payments = relationship(
        "PaymentTransaction",
        back_populates="deployed_contract",
        order_by="PaymentTransaction.created_at",
    )
    disputes = relationship(
        "DisputeHistory",
        back_populates="deployed_contract",
        order_by="DisputeHistory.raised_at",
    )

    __mapper_args__ = {"version_id_col": row_version}

    __table_args__ = (
        Index("ix_deployed_contracts_job_posting", "job_posting_id"),
        Index("ix_deployed_contracts_employer_status", "employer_id", "status"),
        Index("ix_deployed_contracts_employee_status", "employee_id", "status"),
        Index("ix_deployed_contracts_mediator", "mediator_id"),
    )
