"""
Pure domain layer.

Immutable input records and value objects with NO dependencies on:
- Persistence
- Network
- Time/clock
- I/O

Every record is a frozen dataclass; numeric fields are coerced to Decimal
at construction so downstream engines never see floats.
"""

from settlement_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from settlement_kernel.domain.records import (
    FinancialReport,
    LedgerEntry,
    OwnershipRecord,
    PeriodKey,
    PriorSettlementRecord,
)
from settlement_kernel.domain.values import Currency, to_decimal

__all__ = [
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "FinancialReport",
    "LedgerEntry",
    "OwnershipRecord",
    "PeriodKey",
    "PriorSettlementRecord",
    "to_decimal",
]
