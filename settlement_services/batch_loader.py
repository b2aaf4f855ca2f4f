"""
settlement_services.batch_loader -- Build a SettlementBatch from YAML.

Used by ``scripts/run_settlement.py`` and tests to feed exported report
data into the engines without a database.  The document layout mirrors the
records one-to-one:

    batch_id: 2024-03
    reports:
      - property_id: P1
        period: "2024-03"
        total_income: 5000
        total_expenses: 1200
        income:   [{amount: 5000, person_in_charge: alice}]
        expenses: [{amount: 1200, person_in_charge: null}]
    ownerships:
      - {property_id: P1, investor_id: alice, percentage: 60}
    prior_settlements:
      - {investor_id: alice, property_id: P1, period: "2024-03",
         already_paid: 0, already_received: 100}

Amounts follow the engine's lenient rule: anything unparsable becomes 0.
Missing identifiers (property_id, investor_id, period) are structural and
raise InvalidInputError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from settlement_kernel.domain.records import (
    FinancialReport,
    LedgerEntry,
    OwnershipRecord,
    PriorSettlementRecord,
)
from settlement_kernel.exceptions import InvalidInputError
from settlement_services.settlement_service import SettlementBatch


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidInputError(f"{where}: missing required field '{key}'")
    return value


def _entries(items: list[dict[str, Any]] | None) -> tuple[LedgerEntry, ...]:
    return tuple(
        LedgerEntry(
            amount=item.get("amount"),
            person_in_charge=item.get("person_in_charge"),
            description=str(item.get("description", "")),
        )
        for item in items or ()
    )


def parse_batch(data: dict[str, Any]) -> SettlementBatch:
    """Parse a SettlementBatch from a mapping."""
    reports = []
    for n, item in enumerate(data.get("reports") or ()):
        where = f"reports[{n}]"
        try:
            reports.append(
                FinancialReport(
                    property_id=str(_require(item, "property_id", where)),
                    period=_require(item, "period", where),
                    total_income=item.get("total_income"),
                    total_expenses=item.get("total_expenses"),
                    income_entries=_entries(item.get("income")),
                    expense_entries=_entries(item.get("expenses")),
                )
            )
        except (KeyError, ValueError) as exc:
            raise InvalidInputError(f"{where}: invalid period {item.get('period')!r}") from exc

    ownerships = tuple(
        OwnershipRecord(
            property_id=str(_require(item, "property_id", f"ownerships[{n}]")),
            investor_id=str(_require(item, "investor_id", f"ownerships[{n}]")),
            percentage=item.get("percentage"),
        )
        for n, item in enumerate(data.get("ownerships") or ())
    )

    priors = []
    for n, item in enumerate(data.get("prior_settlements") or ()):
        where = f"prior_settlements[{n}]"
        try:
            priors.append(
                PriorSettlementRecord(
                    investor_id=str(_require(item, "investor_id", where)),
                    property_id=str(_require(item, "property_id", where)),
                    period=_require(item, "period", where),
                    already_paid=item.get("already_paid"),
                    already_received=item.get("already_received"),
                )
            )
        except (KeyError, ValueError) as exc:
            raise InvalidInputError(f"{where}: invalid period {item.get('period')!r}") from exc

    batch_id = data.get("batch_id")
    return SettlementBatch(
        reports=tuple(reports),
        ownerships=ownerships,
        prior_settlements=tuple(priors),
        batch_id=str(batch_id) if batch_id is not None else None,
    )


def load_batch(path: Path) -> SettlementBatch:
    """Load a batch YAML file."""
    with open(path) as f:
        return parse_batch(yaml.safe_load(f) or {})
