#!/usr/bin/env python3
"""Check a ledger snapshot for aggregate drift.

Replays the movement ledger of every account and compares it with the
stored balances and totals. Also audits installments, contractor payments
and loans whose paid amounts are not backed by movements.

Corrections are only written with ``--apply``; they rederive the stored
aggregates from the ledger and never touch movements.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cash_ledger.config import CashLedgerConfig
from cash_ledger.exceptions import LedgerError
from cash_ledger.logging import setup_logging
from cash_ledger.services import ReconciliationChecker
from cash_ledger.store import load_store, rewrite_snapshot

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point. Returns the process exit code."""
    parser = argparse.ArgumentParser(description="Reconcile a ledger snapshot")
    parser.add_argument(
        "snapshot_dir",
        type=Path,
        nargs="?",
        default=None,
        help="Snapshot directory (default: OUTPUT_DIR or ./output)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Rederive drifted aggregates and rewrite the snapshot",
    )
    parser.add_argument(
        "--skip-sources",
        action="store_true",
        help="Skip the installment, contractor payment and loan audit",
    )
    args = parser.parse_args()

    config = CashLedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    snapshot_dir = args.snapshot_dir or config.output.json_output_dir

    try:
        store = load_store(snapshot_dir)
    except LedgerError as exc:
        logger.error("Cannot load snapshot from %s: %s", snapshot_dir, exc)
        return 2

    checker = ReconciliationChecker(store, config.ledger)
    reports = checker.reconcile_all(correct=args.apply)

    print("\n" + "=" * 60)
    print("Account Reconciliation")
    print("=" * 60)
    for report in reports:
        state = "OK" if report.is_consistent else f"{len(report.discrepancies)} discrepancies"
        print(f"  {report.account.key}: {state}")
        for d in report.discrepancies:
            print(f"    {d.currency.value} {d.field}: stored={d.stored} expected={d.expected} delta={d.delta}")

    source_findings = []
    if not args.skip_sources:
        for project_id in store.projects:
            source_findings.extend(checker.audit_sources(project_id))
        for loan_id in store.loans:
            finding = checker.reconcile_loan(loan_id)
            if finding is not None:
                source_findings.append(finding)

        print("\nPayment target audit")
        print("-" * 60)
        if not source_findings:
            print("  All paid amounts are backed by ledger movements")
        for f in source_findings:
            print(f"  {f.target_type} {f.target_id}: recorded={f.recorded_paid} ledger={f.ledger_amount}")

    drifted = [report for report in reports if not report.is_consistent]
    if args.apply and drifted:
        try:
            rewrite_snapshot(store, snapshot_dir, pretty=config.output.pretty_json)
        except LedgerError as exc:
            logger.error("Cannot rewrite snapshot %s: %s", snapshot_dir, exc)
            return 2
        print(f"\nCorrected {len(drifted)} accounts and rewrote {snapshot_dir}")
        drifted = []

    return 1 if drifted or source_findings else 0


if __name__ == "__main__":
    sys.exit(main())
