"""
settlement_engines.aggregation -- Cross-property, cross-month investor totals.

Responsibility:
    Sum an arbitrary collection of per-property-month investor balances into
    one aggregate balance per investor, keeping an ordered contribution list
    so every aggregate can be traced back to the property-months behind it.
    Also builds the per-investor monthly profit summary used by the
    investor profit report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total_final == sum(contribution.amount) for every aggregate.
    - Contribution amounts are property-month final balances, not profit
      shares.
    - Order-stable: investors appear in first-appearance order and
      contributions in input order. Order never changes computed totals.

Non-goals:
    - Does not choose which properties or months to include; the caller
      passes exactly the balances it wants combined.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from settlement_engines.profit_share import InvestorBalance
from settlement_kernel.domain.records import PeriodKey
from settlement_kernel.domain.values import ZERO
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")


@dataclass(frozen=True)
class Contribution:
    """One property-month's final balance inside an aggregate."""

    property_id: str
    amount: Decimal
    period: PeriodKey | None = None


@dataclass(frozen=True)
class AggregateBalance:
    """
    An investor's combined position over a chosen set of property-months.

    Contract:
        Frozen dataclass produced by CrossPropertyAggregator, or built
        directly by callers that already hold totals.
    Guarantees:
        - ``contributions`` keeps input order.
    """

    investor_id: str
    total_final: Decimal
    contributions: tuple[Contribution, ...] = field(default_factory=tuple)

    @classmethod
    def from_investor_balance(cls, balance: InvestorBalance) -> AggregateBalance:
        """Treat a single property-month balance as a one-element aggregate."""
        return cls(
            investor_id=balance.investor_id,
            total_final=balance.final_balance,
            contributions=(
                Contribution(
                    property_id=balance.property_id,
                    amount=balance.final_balance,
                    period=balance.period,
                ),
            ),
        )

    @property
    def property_ids(self) -> tuple[str, ...]:
        """Distinct contributing property ids in first-appearance order."""
        return tuple(dict.fromkeys(c.property_id for c in self.contributions))


class CrossPropertyAggregator:
    """
    Group investor balances by investor.

    Contract:
        Deterministic; identical input ordering yields identical output.
    """

    def aggregate(
        self,
        balances: Iterable[InvestorBalance],
    ) -> tuple[AggregateBalance, ...]:
        """
        Sum final balances per investor.

        Args:
            balances: Any collection of property-month balances, e.g. all
                properties for one month or one investor across six months.

        Returns:
            One AggregateBalance per investor, in first-appearance order.
        """
        totals: dict[str, Decimal] = {}
        contributions: dict[str, list[Contribution]] = {}

        for balance in balances:
            investor_id = balance.investor_id
            if investor_id not in totals:
                totals[investor_id] = ZERO
                contributions[investor_id] = []
            totals[investor_id] += balance.final_balance
            contributions[investor_id].append(
                Contribution(
                    property_id=balance.property_id,
                    amount=balance.final_balance,
                    period=balance.period,
                )
            )

        logger.debug("aggregation_completed", extra={
            "investor_count": len(totals),
            "contribution_count": sum(len(c) for c in contributions.values()),
        })

        return tuple(
            AggregateBalance(
                investor_id=investor_id,
                total_final=total,
                contributions=tuple(contributions[investor_id]),
            )
            for investor_id, total in totals.items()
        )


# ---------------------------------------------------------------------------
# Monthly profit summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PropertyProfitLine:
    """An investor's share of one property's profit in one month."""

    property_id: str
    percentage: Decimal
    profit_share: Decimal


@dataclass(frozen=True)
class InvestorMonthlyProfit:
    """Total profit share of one investor for one month."""

    investor_id: str
    period: PeriodKey
    total_profit: Decimal
    properties: tuple[PropertyProfitLine, ...]


def summarize_monthly_profits(
    balances: Iterable[InvestorBalance],
) -> tuple[InvestorMonthlyProfit, ...]:
    """
    Per-investor, per-month profit share totals.

    Investors keep first-appearance order; each investor's months are
    ascending. Uses ``profit_share`` (the percentage split of net profit),
    not the final balance, since pass-through items and prior payments are
    settlement mechanics rather than earnings.
    """
    grouped: dict[str, dict[PeriodKey, list[InvestorBalance]]] = {}
    for balance in balances:
        grouped.setdefault(balance.investor_id, {}).setdefault(balance.period, []).append(balance)

    summary: list[InvestorMonthlyProfit] = []
    for investor_id, by_period in grouped.items():
        for period in sorted(by_period):
            items = by_period[period]
            summary.append(
                InvestorMonthlyProfit(
                    investor_id=investor_id,
                    period=period,
                    total_profit=sum((b.profit_share for b in items), ZERO),
                    properties=tuple(
                        PropertyProfitLine(
                            property_id=b.property_id,
                            percentage=b.percentage,
                            profit_share=b.profit_share,
                        )
                        for b in items
                    ),
                )
            )
    return tuple(summary)
