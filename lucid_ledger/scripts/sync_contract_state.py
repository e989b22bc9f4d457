"""Contract state sync: repairs drift between escrow contracts and their records.

Usage:
    lucid-ledger-sync                 # every known deployed contract
    lucid-ledger-sync 0xabc...        # one contract
    python -m lucid_ledger.scripts.sync_contract_state [address]

Always exits 0; failures are reported per contract.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lucid_ledger.core.config import get_settings
from lucid_ledger.core.logging import configure_logging
from lucid_ledger.services.chain_reader import Web3ChainReader
from lucid_ledger.services.chain_sync import (
    ERROR,
    IN_SYNC,
    NOT_FOUND,
    UPDATED,
    ChainSyncService,
    SyncReport,
)
from lucid_ledger.services.events import ContractEventBus
from lucid_ledger.services.job_reconciler import JobStatusReconciler

logger = logging.getLogger("lucid_ledger.sync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lucid-ledger-sync",
        description="Sync deployed contract status from the chain into the database.",
    )
    parser.add_argument(
        "contract_address",
        nargs="?",
        default=None,
        help="Sync only this contract (default: all known contracts).",
    )
    parser.add_argument(
        "--rpc-url",
        default=None,
        help="JSON-RPC endpoint (default: CHAIN_RPC_URL setting).",
    )
    return parser


def build_service(reader, token_decimals: int) -> ChainSyncService:
    bus = ContractEventBus()
    bus.subscribe(JobStatusReconciler().handle)
    return ChainSyncService(reader, bus, token_decimals=token_decimals)


def sync(db: Session, service: ChainSyncService, contract_address: Optional[str] = None) -> SyncReport:
    if contract_address:
        return SyncReport(results=[service.sync_contract(db, contract_address)])
    return service.sync_all(db)


def print_summary(report: SyncReport, out: TextIO = sys.stdout) -> None:
    counts = report.counts
    print("", file=out)
    print("Summary:", file=out)
    print(f"  Updated: {counts[UPDATED]}", file=out)
    print(f"  Already in sync: {counts[IN_SYNC]}", file=out)
    print(f"  Not found: {counts[NOT_FOUND]}", file=out)
    print(f"  Errors: {counts[ERROR]}", file=out)

    updated: List = [r for r in report.results if r.outcome == UPDATED]
    if updated:
        print("", file=out)
        print("Updated contracts:", file=out)
        for r in updated:
            print(f"  {r.contract_address}: {r.from_status} -> {r.to_status}", file=out)

    errors = [r for r in report.results if r.outcome == ERROR]
    if errors:
        print("", file=out)
        print("Errors:", file=out)
        for r in errors:
            print(f"  {r.contract_address}: {r.error}", file=out)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    rpc_url = args.rpc_url or settings.chain_rpc_url
    logger.info("chain sync starting", extra={"rpc_url": rpc_url, "contract_address": args.contract_address})

    reader = Web3ChainReader(rpc_url, timeout_seconds=settings.chain_request_timeout_seconds)
    service = build_service(reader, settings.payment_token_decimals)

    # imported here so --help works without a configured database
    from lucid_ledger.db.session import session_scope

    try:
        with session_scope() as db:
            report = sync(db, service, args.contract_address)
    except SQLAlchemyError:
        logger.exception("chain sync could not read contract records")
        return 0

    print_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
