#!/usr/bin/env python3
"""Simulate a demo portfolio and write a ledger snapshot.

Builds projects with installment schedules, collects client payments
(full, partial and missed), pays contractors and lends from the master
cash box. The resulting store is written as JSON files that
``reconcile.py`` can load.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cash_ledger.config import CashLedgerConfig
from cash_ledger.logging import setup_logging
from cash_ledger.scenarios import DemoPortfolioScenario
from cash_ledger.sinks import ConsoleSink, JsonFileSink, KafkaSink
from cash_ledger.store import dump_store

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Simulate payments and dump a ledger snapshot")
    parser.add_argument(
        "--projects",
        type=int,
        default=5,
        help="Number of projects to create (default: 5)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Business date of the simulation (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Snapshot directory (default: OUTPUT_DIR or ./output)",
    )
    parser.add_argument(
        "--events",
        choices=("none", "console", "jsonl", "kafka"),
        default="none",
        help="Where to publish movement.recorded events (default: none)",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print snapshot JSON",
    )
    args = parser.parse_args()

    config = CashLedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    if args.seed is not None:
        config.seed = args.seed
    output_dir = args.output_dir or config.output.json_output_dir

    scenario = DemoPortfolioScenario(num_projects=args.projects, today=args.today, config=config)

    event_sink = None
    if args.events == "console":
        event_sink = ConsoleSink(pretty=False, max_records=5)
    elif args.events == "jsonl":
        event_sink = JsonFileSink(output_dir, append=True)
    elif args.events == "kafka":
        event_sink = KafkaSink(config.kafka, movements_topic=config.ledger.movements_topic)
    if event_sink is not None:
        scenario.ledger.publisher.add_sink(event_sink)

    try:
        ledger = scenario.generate()
    finally:
        if event_sink is not None:
            event_sink.close()

    dump_store(ledger.store, JsonFileSink(output_dir, pretty=args.pretty or config.output.pretty_json))

    print("\n" + "=" * 60)
    print("Simulation Summary")
    print("=" * 60)
    summary = ledger.summary()
    balances = summary.pop("balances")
    for entity_type, count in summary.items():
        print(f"  {entity_type}: {count}")
    for account, by_currency in balances.items():
        formatted = ", ".join(f"{amount} {currency}" for currency, amount in by_currency.items())
        print(f"  {account} balance: {formatted}")
    print(f"\nSnapshot written to {output_dir}")


if __name__ == "__main__":
    main()
