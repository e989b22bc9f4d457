from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from lucid_ledger.models.audit_log import AuditLog


class AuditAction:
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_STATUS_CHANGED = "CONTRACT_STATUS_CHANGED"
    CONTRACT_UPDATED = "CONTRACT_UPDATED"
    CONTRACT_STATUS_CORRECTED = "CONTRACT_STATUS_CORRECTED"
    CONTRACT_COMPLETED = "CONTRACT_COMPLETED"
    MEDIATOR_ASSIGNED = "MEDIATOR_ASSIGNED"
    CHAIN_SYNC_UPDATED = "CHAIN_SYNC_UPDATED"


class AuditService:
    def write(
        self,
        db: Session,
        *,
        action: str,
        contract_id: Optional[uuid.UUID],
        actor_wallet: Optional[str],
        request_id: Optional[str],
        details: Dict[str, Any],
    ) -> AuditLog:
        """
        Stage an audit row in the caller's transaction.
        It commits (or rolls back) together with the mutation it describes.
        """
        row = AuditLog(
            action=action,
            deployed_contract_id=contract_id,
            actor_wallet=actor_wallet,
            request_id=request_id,
            details_json=details,
        )
        db.add(row)
        return row
