"""
Settlement engine settings schema.

Defines the human-authored, reviewable settings artifact. YAML files are
parsed into these types by the loader and handed to the service layer,
which wires them into the engines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from settlement_kernel.domain.values import Currency

SETTLEMENT_MODES: frozenset[str] = frozenset({"aggregate", "per_property"})


@dataclass(frozen=True)
class EngineSettings:
    """Tolerance, currency and policy switches for one settlement run."""

    settings_id: str = "default"
    version: int = 1
    currency: str = "USD"
    tolerance: Decimal | None = None  # None: derived from currency
    default_mode: str = "aggregate"
    cap_by_creditor: bool = False
    checksum: str = ""

    @property
    def currency_value(self) -> Currency:
        return Currency(self.currency)

    @property
    def effective_tolerance(self) -> Decimal:
        if self.tolerance is not None:
            return self.tolerance
        return self.currency_value.tolerance
