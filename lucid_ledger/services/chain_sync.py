#lucid_ledger/services/chain_sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lucid_ledger.core.errors import ChainReadError
from lucid_ledger.core.security import normalize_address
from lucid_ledger.core.statuses import ContractStatus, TERMINAL_CONTRACT_STATUSES
from lucid_ledger.services.audit_service import AuditAction, AuditService
from lucid_ledger.services.chain_reader import ChainReader
from lucid_ledger.services.contract_store import ContractRecordStore
from lucid_ledger.services.events import ContractEventBus, ContractTerminal

logger = logging.getLogger(__name__)

IN_SYNC = "in_sync"
UPDATED = "updated"
ERROR = "error"
NOT_FOUND = "not_found"

SYNC_OUTCOMES = (IN_SYNC, UPDATED, ERROR, NOT_FOUND)

# recorded as the raiser of disputes opened from chain state
CHAIN_SYNC_SOURCE = "chain_sync"


@dataclass
class SyncResult:
    contract_address: str
    outcome: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    balance: Optional[Decimal] = None
    error: Optional[str] = None


@dataclass
class SyncReport:
    results: List[SyncResult] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        out = {k: 0 for k in SYNC_OUTCOMES}
        for r in self.results:
            out[r.outcome] += 1
        return out


def _matches(chain_status: ContractStatus, db_status: str) -> bool:
    if chain_status.value == db_status:
        return True
    # state 3 covers both refund and termination
    return chain_status == ContractStatus.refunded and db_status == ContractStatus.terminated.value


class ChainSyncService:
    """
    Repairs drift between escrow contracts on chain and their records.

    The chain is authoritative: a differing status is overwritten without
    role checks. Every contract gets its own short transaction, so one bad
    RPC read or write never stops the batch.
    """

    def __init__(
        self,
        reader: ChainReader,
        events: ContractEventBus,
        audit: Optional[AuditService] = None,
        token_decimals: int = 6,
    ):
        self.reader = reader
        self.events = events
        self.audit = audit or AuditService()
        self.token_decimals = token_decimals

    def sync_contract(self, db: Session, contract_address: str) -> SyncResult:
        address = normalize_address(contract_address) or ""
        result = self._sync_one(db, address)

        log = logger.warning if result.outcome == ERROR else logger.info
        log(
            "contract sync %s",
            result.outcome,
            extra={
                "contract_address": address,
                "outcome": result.outcome,
                "from_status": result.from_status,
                "to_status": result.to_status,
                "error": result.error,
            },
        )
        return result

    def sync_all(self, db: Session) -> SyncReport:
        report = SyncReport()
        addresses = ContractRecordStore(db).list_addresses()
        db.rollback()  # end the read transaction before the per-item ones

        for address in addresses:
            report.results.append(self.sync_contract(db, address))

        logger.info("chain sync finished", extra={"total": len(addresses), **report.counts})
        return report

    def _sync_one(self, db: Session, address: str) -> SyncResult:
        store = ContractRecordStore(db)
        try:
            contract = store.get_by_address(address)
        except SQLAlchemyError as e:
            db.rollback()
            return SyncResult(address, ERROR, error=f"database error: {e.__class__.__name__}")
        if not contract:
            return SyncResult(address, NOT_FOUND)

        try:
            snapshot = self.reader.read(address)
        except ChainReadError as e:
            db.rollback()
            return SyncResult(address, ERROR, from_status=contract.status, error=e.message)

        balance = snapshot.balance_in_tokens(self.token_decimals)
        chain_status = snapshot.status
        if chain_status is None:
            db.rollback()
            return SyncResult(
                address,
                ERROR,
                from_status=contract.status,
                balance=balance,
                error=f"unknown on-chain state {snapshot.state}",
            )

        db_status = contract.status
        if _matches(chain_status, db_status):
            db.rollback()
            return SyncResult(address, IN_SYNC, from_status=db_status, to_status=db_status, balance=balance)

        try:
            store.transition(
                contract,
                chain_status,
                raised_by_role=CHAIN_SYNC_SOURCE,
                reason=f"on-chain state {snapshot.state}",
            )
            self.audit.write(
                db,
                action=AuditAction.CHAIN_SYNC_UPDATED,
                contract_id=contract.id,
                actor_wallet=None,
                request_id=None,
                details={
                    "from": db_status,
                    "to": chain_status.value,
                    "on_chain_state": snapshot.state,
                    "balance": str(balance),
                },
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            return SyncResult(
                address,
                ERROR,
                from_status=db_status,
                balance=balance,
                error=f"database error: {e.__class__.__name__}",
            )

        if chain_status in TERMINAL_CONTRACT_STATUSES:
            self.events.publish(
                db,
                ContractTerminal(
                    contract_id=contract.id,
                    job_posting_id=contract.job_posting_id,
                    status=contract.status,
                    source=CHAIN_SYNC_SOURCE,
                ),
            )

        return SyncResult(
            address, UPDATED, from_status=db_status, to_status=chain_status.value, balance=balance
        )
