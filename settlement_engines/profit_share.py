"""
settlement_engines.profit_share -- Per-investor final balance for one property-month.

Responsibility:
    Convert one property-month FinancialReport, the property's ownership
    percentages and any prior settlement records into a signed final
    balance per investor.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel.

Invariants enforced:
    - final_balance = profit_share - already_paid + already_received
                      + expenses_paid_by_investor - income_received_by_investor
      Positive means the investor is owed money; negative means they owe.
    - Full Decimal precision is kept; rounding happens only when the
      settlement planner emits transaction amounts.
    - Purity: identical inputs always produce identical outputs.

Failure modes:
    - None. Malformed numbers were already coerced to zero by the input
      records; a property without ownership records yields no balances.

Usage:
    from settlement_engines.profit_share import ProfitShareCalculator

    distribution = ProfitShareCalculator().calculate(
        report=report,
        ownerships=ownerships,
        prior_settlements=priors,
    )
    for balance in distribution.balances:
        print(balance.investor_id, balance.final_balance)
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.records import (
    FinancialReport,
    OwnershipRecord,
    PeriodKey,
    PriorSettlementRecord,
)
from settlement_kernel.domain.values import HUNDRED, ZERO
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.profit_share")


@dataclass(frozen=True)
class InvestorBalance:
    """
    One investor's position on one property-month.

    Contract:
        Frozen dataclass computed by ProfitShareCalculator.
    Guarantees:
        - ``final_balance`` follows the formula in the module docstring.
    Non-goals:
        - Not rounded; consumers round for presentation.
    """

    investor_id: str
    property_id: str
    period: PeriodKey
    percentage: Decimal
    profit_share: Decimal
    expenses_paid_by_investor: Decimal
    income_received_by_investor: Decimal
    already_paid: Decimal
    already_received: Decimal
    final_balance: Decimal

    @property
    def is_creditor(self) -> bool:
        return self.final_balance > ZERO

    @property
    def is_debtor(self) -> bool:
        return self.final_balance < ZERO


@dataclass(frozen=True)
class PropertyDistribution:
    """
    Distribution of one property-month's net profit across its investors.

    ``allocated_percentage`` is the sum of the percentages used. It is
    reported so callers can flag ownership that does not add up to 100;
    the calculator itself never rejects it.
    """

    property_id: str
    period: PeriodKey
    total_income: Decimal
    total_expenses: Decimal
    balances: tuple[InvestorBalance, ...]

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def allocated_percentage(self) -> Decimal:
        return sum((b.percentage for b in self.balances), ZERO)

    @property
    def has_investors(self) -> bool:
        return bool(self.balances)


def flatten_balances(
    distributions: Iterable[PropertyDistribution],
) -> tuple[InvestorBalance, ...]:
    """All balances of the given distributions, in distribution order."""
    return tuple(b for d in distributions for b in d.balances)


class ProfitShareCalculator:
    """
    Compute each investor's signed final balance on a property-month.

    Contract:
        Pure functions, no I/O.
    Guarantees:
        - One InvestorBalance per investor with a nonzero percentage of the
          report's property, in ownership-record order.
        - Ownership records for other properties are ignored; when the same
          investor is listed twice for a property, the first record wins.
        - Missing prior settlement records default to zero paid/received.
    Non-goals:
        - Does not validate percentages.
        - Does not decide which reports belong in a batch.
    """

    @traced_engine("profit_share", "1.0", fingerprint_fields=("report",))
    def calculate(
        self,
        report: FinancialReport,
        ownerships: Sequence[OwnershipRecord],
        prior_settlements: Sequence[PriorSettlementRecord] = (),
    ) -> PropertyDistribution:
        """
        Compute investor balances for one report.

        Args:
            report: The property-month financial report.
            ownerships: Ownership records; only those for
                ``report.property_id`` are used.
            prior_settlements: Prior paid/received records; only those for
                the report's property and period are used.

        Returns:
            PropertyDistribution with one balance per qualifying investor.
        """
        t0 = time.monotonic()
        logger.info("profit_share_started", extra={
            "property_id": report.property_id,
            "period": str(report.period),
            "ownership_count": len(ownerships),
        })

        priors = _index_priors(prior_settlements, report.property_id, report.period)
        net_profit = report.net_profit

        balances: list[InvestorBalance] = []
        seen: set[str] = set()
        for ownership in ownerships:
            if ownership.property_id != report.property_id:
                continue
            if ownership.investor_id in seen:
                logger.warning("profit_share_duplicate_ownership", extra={
                    "property_id": report.property_id,
                    "investor_id": ownership.investor_id,
                })
                continue
            seen.add(ownership.investor_id)
            if ownership.percentage == ZERO:
                continue

            balances.append(
                self._balance_for(report, ownership, net_profit, priors.get(ownership.investor_id))
            )

        if not balances:
            logger.warning("profit_share_no_owners", extra={
                "property_id": report.property_id,
                "period": str(report.period),
            })

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("profit_share_completed", extra={
            "property_id": report.property_id,
            "period": str(report.period),
            "investor_count": len(balances),
            "net_profit": str(net_profit),
            "duration_ms": duration_ms,
        })

        return PropertyDistribution(
            property_id=report.property_id,
            period=report.period,
            total_income=report.total_income,
            total_expenses=report.total_expenses,
            balances=tuple(balances),
        )

    def calculate_batch(
        self,
        reports: Sequence[FinancialReport],
        ownerships: Sequence[OwnershipRecord],
        prior_settlements: Sequence[PriorSettlementRecord] = (),
    ) -> tuple[PropertyDistribution, ...]:
        """One distribution per report, in report order."""
        return tuple(
            self.calculate(report, ownerships, prior_settlements)
            for report in reports
        )

    def _balance_for(
        self,
        report: FinancialReport,
        ownership: OwnershipRecord,
        net_profit: Decimal,
        prior: PriorSettlementRecord | None,
    ) -> InvestorBalance:
        investor_id = ownership.investor_id
        profit_share = net_profit * ownership.percentage / HUNDRED
        expenses_paid = report.expenses_paid_by(investor_id)
        income_received = report.income_received_by(investor_id)
        already_paid = prior.already_paid if prior else ZERO
        already_received = prior.already_received if prior else ZERO

        final_balance = (
            profit_share
            - already_paid
            + already_received
            + expenses_paid
            - income_received
        )

        return InvestorBalance(
            investor_id=investor_id,
            property_id=report.property_id,
            period=report.period,
            percentage=ownership.percentage,
            profit_share=profit_share,
            expenses_paid_by_investor=expenses_paid,
            income_received_by_investor=income_received,
            already_paid=already_paid,
            already_received=already_received,
            final_balance=final_balance,
        )


def _index_priors(
    prior_settlements: Sequence[PriorSettlementRecord],
    property_id: str,
    period: PeriodKey,
) -> dict[str, PriorSettlementRecord]:
    """Prior records for one property-month keyed by investor (first wins)."""
    index: dict[str, PriorSettlementRecord] = {}
    for prior in prior_settlements:
        if prior.property_id == property_id and prior.period == period:
            index.setdefault(prior.investor_id, prior)
    return index
