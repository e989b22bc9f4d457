#lucid_ledger/services/events.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, List

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractTerminal:
    """A deployed contract reached completed/refunded/terminated."""

    contract_id: uuid.UUID
    job_posting_id: uuid.UUID
    status: str
    source: str  # "lifecycle" | "chain_sync" | "correction"


Handler = Callable[[Session, ContractTerminal], None]


class ContractEventBus:
    """
    In-process, synchronous fan-out of lifecycle events.

    publish() is only called after the emitting transaction has committed.
    Handler failures are logged and rolled back; they never reach the
    publisher, whose own work is already durable.
    """

    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def publish(self, db: Session, event: ContractTerminal) -> None:
        for handler in self._handlers:
            try:
                handler(db, event)
            except Exception:
                db.rollback()
                logger.exception(
                    "contract event handler failed",
                    extra={
                        "contract_id": str(event.contract_id),
                        "job_posting_id": str(event.job_posting_id),
                        "source": event.source,
                    },
                )
