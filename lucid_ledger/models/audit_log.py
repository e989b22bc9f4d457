#lucid_ledger/models/audit_log.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from lucid_ledger.db.base import Base, JSONType


class AuditLog(Base):
    """
    Append-only record of every lifecycle mutation (never UPDATE).
    Admin status corrections are only visible here.
    """

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    action: Mapped[str] = mapped_column(String(64), nullable=False)
    deployed_contract_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    actor_wallet: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    details_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audit_logs_contract", "deployed_contract_id"),
        Index("ix_audit_logs_action", "action"),
    )
