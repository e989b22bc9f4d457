#lucid_ledger/models/payment_transaction.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Text,
    DateTime,
    BigInteger,
    Numeric,
    ForeignKey,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucid_ledger.db.base import Base
from lucid_ledger.core.statuses import PaymentStatus


class PaymentTransaction(Base):
    """
    One on-chain payment event for a deployed contract.

    tx_hash is unique: recording the same chain transaction twice is a no-op.
    """

    __tablename__ = "payment_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    deployed_contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deployed_contracts.id", ondelete="RESTRICT"), nullable=False
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    payment_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    from_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.pending.value
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    deployed_contract = relationship("DeployedContract", back_populates="payments")

    __table_args__ = (
        Index("ix_payment_transactions_contract", "deployed_contract_id"),
    )
