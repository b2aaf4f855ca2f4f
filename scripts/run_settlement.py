#!/usr/bin/env python3
"""
Settle a batch of property-month reports exported to YAML.

Loads engine settings, runs the settlement service over the batch and
prints the result as JSON (or a short human-readable summary).

Usage:
    python3 scripts/run_settlement.py batch.yaml
    python3 scripts/run_settlement.py batch.yaml --mode per_property
    python3 scripts/run_settlement.py batch.yaml --settings my_settings.yaml --summary
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from settlement_config import get_active_settings  # noqa: E402
from settlement_kernel.exceptions import SettlementError  # noqa: E402
from settlement_kernel.logging_config import configure_logging  # noqa: E402
from settlement_services import SettlementMode, SettlementService, load_batch  # noqa: E402


def _print_summary(report) -> None:
    plan = report.plan
    print(f"Mode: {report.mode.value}   Currency: {report.currency}")
    print(f"Credits: {plan.total_credits}   Debits: {plan.total_debits}")
    print()
    if not plan.transactions:
        print("No transfers needed.")
    for txn in plan.transactions:
        print(f"{txn.from_investor_id} pays {txn.to_investor_id} {txn.amount}")
        for line in txn.property_breakdown:
            print(f"    {line.property_id:<20} {line.amount}")
        if txn.unattributed_amount > 0:
            print(f"    {'(unattributed)':<20} {txn.unattributed_amount}")
    if plan.unsettled_investors:
        print()
        print("Unsettled (credits and debits do not balance):")
        for u in plan.unsettled_investors:
            where = f" on {u.property_id}" if u.property_id else ""
            print(f"    {u.investor_id} ({u.side.value}){where}: {u.remaining}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Settle investor balances for a batch")
    parser.add_argument("batch", type=Path, help="Batch YAML file")
    parser.add_argument("--settings", type=Path, default=None, help="Settings YAML file")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SettlementMode],
        default=None,
        help="Override the settings' default mode",
    )
    parser.add_argument("--summary", action="store_true", help="Human-readable output")
    parser.add_argument("--verbose", action="store_true", help="Emit JSON logs to stderr")
    args = parser.parse_args(argv)

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        settings = get_active_settings(args.settings)
        batch = load_batch(args.batch)
        report = SettlementService(settings).settle(batch, mode=args.mode)
    except FileNotFoundError as exc:
        print(f"File not found: {exc.filename}", file=sys.stderr)
        return 2
    except SettlementError as exc:
        print(f"{exc.code}: {exc}", file=sys.stderr)
        return 1

    if args.summary:
        _print_summary(report)
    else:
        print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
