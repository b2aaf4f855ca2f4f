"""
Values -- Currency value object and lenient Decimal coercion.

Responsibility:
    Provides the value types every settlement engine computes with:
    a validated Currency that knows its own rounding quantum and
    settlement tolerance, and ``to_decimal`` which turns caller-supplied
    numbers into Decimal without ever raising.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    No outward dependencies except settlement_kernel.domain.currency.

Invariants enforced:
    - All monetary arithmetic is Decimal; floats are converted via ``str()``
      so 0.1 stays 0.1.
    - Tolerance is derived from the currency's decimal places, never
      hardcoded: one smallest denomination (0.01 for two-decimal currencies).

Failure modes:
    - ValueError when constructing a Currency from an unregistered code.
    - ``to_decimal`` never raises: unparsable, absent or non-finite input
      becomes Decimal("0") and a WARNING is logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from settlement_kernel.domain.currency import CurrencyRegistry
from settlement_kernel.logging_config import get_logger

logger = get_logger("domain.values")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a caller-supplied number to Decimal.

    Preconditions:
        None -- any object is accepted.

    Postconditions:
        Returns a finite Decimal. ``None``, empty strings, booleans,
        unparsable strings, NaN and infinities all yield Decimal("0").
        A single bad record must never abort a batch.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        result = None
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            result = None
    else:
        result = None

    if result is None or not result.is_finite():
        logger.warning(
            "amount_coerced_to_zero",
            extra={"raw_value": repr(value)},
        )
        return ZERO
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter code registered in CurrencyRegistry.
        Validated and normalized (uppercased) on construction.

    Guarantees:
        - Immutable and hashable
        - ``tolerance`` is one smallest denomination of the currency
        - ``round`` quantizes half-up to the currency's decimal places

    Non-goals:
        - Does NOT perform currency conversion
    """

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", CurrencyRegistry.validate(self.code))

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def tolerance(self) -> Decimal:
        """Settlement tolerance: balances smaller than this are settled."""
        return CurrencyRegistry.get_rounding_tolerance(self.code)

    @property
    def quantum(self) -> Decimal:
        """Smallest denomination, e.g. Decimal("0.01"); ``round`` quantizes to it."""
        return Decimal(1).scaleb(-self.decimal_places)

    def round(self, amount: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
        """Round ``amount`` to this currency's decimal places."""
        return amount.quantize(self.quantum, rounding=rounding)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"
