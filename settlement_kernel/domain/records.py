"""
Records -- Immutable input snapshots supplied by the persistence layer.

Responsibility:
    Typed, frozen renditions of the data the surrounding back office hands
    to the settlement engines: one property-month financial report, the
    ownership percentages, and any amounts already paid or received.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - Every numeric field is Decimal after construction (``to_decimal``).
    - Investor and property ids are str after construction, so an id read
      as 7 from one source matches "7" from another.
    - Months are 1-12.
    - Records are frozen; engines derive new values and never mutate input.

Non-goals:
    - Percentages are NOT range-checked and a property's percentages are NOT
      required to sum to 100. Ownership correctness is the caller's concern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from settlement_kernel.domain.values import ZERO, to_decimal


@dataclass(frozen=True, order=True)
class PeriodKey:
    """A reporting month."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be 1-12, got {self.month}")

    @classmethod
    def parse(cls, value: Any) -> PeriodKey:
        """Build a PeriodKey from ``"YYYY-MM"``, a date, a mapping or a PeriodKey."""
        if isinstance(value, PeriodKey):
            return value
        if isinstance(value, date):
            return cls(year=value.year, month=value.month)
        if isinstance(value, dict):
            return cls(year=int(value["year"]), month=int(value["month"]))
        if isinstance(value, str):
            year, _, month = value.strip().partition("-")
            return cls(year=int(year), month=int(month))
        raise ValueError(f"Cannot parse period from {value!r}")

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class LedgerEntry:
    """
    One income or expense line of a financial report.

    ``person_in_charge`` is the investor who physically paid the expense or
    collected the income on the group's behalf, or None for an external
    party (tenant, agent, utility company).
    """

    amount: Decimal
    person_in_charge: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if self.person_in_charge is not None:
            object.__setattr__(self, "person_in_charge", str(self.person_in_charge))


@dataclass(frozen=True)
class FinancialReport:
    """Income and expenses of one property for one month."""

    property_id: str
    period: PeriodKey
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    income_entries: tuple[LedgerEntry, ...] = field(default_factory=tuple)
    expense_entries: tuple[LedgerEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "property_id", str(self.property_id))
        object.__setattr__(self, "period", PeriodKey.parse(self.period))
        object.__setattr__(self, "total_income", to_decimal(self.total_income))
        object.__setattr__(self, "total_expenses", to_decimal(self.total_expenses))
        object.__setattr__(self, "income_entries", tuple(self.income_entries))
        object.__setattr__(self, "expense_entries", tuple(self.expense_entries))

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses

    def expenses_paid_by(self, investor_id: str) -> Decimal:
        """Sum of expense lines the investor paid on the group's behalf."""
        return sum(
            (e.amount for e in self.expense_entries if e.person_in_charge == investor_id),
            ZERO,
        )

    def income_received_by(self, investor_id: str) -> Decimal:
        """Sum of income lines the investor collected on the group's behalf."""
        return sum(
            (e.amount for e in self.income_entries if e.person_in_charge == investor_id),
            ZERO,
        )


@dataclass(frozen=True)
class OwnershipRecord:
    """An investor's percentage (0-100) of one property."""

    property_id: str
    investor_id: str
    percentage: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "property_id", str(self.property_id))
        object.__setattr__(self, "investor_id", str(self.investor_id))
        object.__setattr__(self, "percentage", to_decimal(self.percentage))


@dataclass(frozen=True)
class PriorSettlementRecord:
    """Amounts an investor already paid or received for one property-month."""

    investor_id: str
    property_id: str
    period: PeriodKey
    already_paid: Decimal = ZERO
    already_received: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "investor_id", str(self.investor_id))
        object.__setattr__(self, "property_id", str(self.property_id))
        object.__setattr__(self, "period", PeriodKey.parse(self.period))
        object.__setattr__(self, "already_paid", to_decimal(self.already_paid))
        object.__setattr__(self, "already_received", to_decimal(self.already_received))

    @property
    def key(self) -> tuple[str, str, PeriodKey]:
        return (self.investor_id, self.property_id, self.period)
