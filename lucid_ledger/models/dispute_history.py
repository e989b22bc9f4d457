#lucid_ledger/models/dispute_history.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucid_ledger.db.base import Base


class DisputeHistory(Base):
    """
    Append-only audit of a dispute raised against a deployed contract.

    Only mediator assignment and resolution fields are written after insert.
    """

    __tablename__ = "dispute_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    deployed_contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deployed_contracts.id", ondelete="RESTRICT"), nullable=False
    )

    raised_by_role: Mapped[str] = mapped_column(String(20), nullable=False)
    raised_by_employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    raised_by_employer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("employers.id", ondelete="SET NULL"), nullable=True
    )
    raised_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    mediator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("mediators.id", ondelete="SET NULL"), nullable=True
    )
    mediator_assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    deployed_contract = relationship("DeployedContract", back_populates="disputes")

    __table_args__ = (
        Index("ix_dispute_history_contract", "deployed_contract_id"),
    )
