"""
settlement_services.settlement_service -- Batch settlement orchestration.

Responsibility:
    Wire the pure engines together for one pre-assembled batch of
    financial reports, ownership records and prior settlement records:

        ProfitShareCalculator -> CrossPropertyAggregator
            -> SettlementPlanner -> PropertyAttributionResolver   (AGGREGATE)
        ProfitShareCalculator -> PerPropertySettlementPlanner    (PER_PROPERTY)

    The caller decides which properties, months and investors belong in a
    batch and how they are fetched; the service only computes.

Architecture position:
    Services -- orchestration over engines + config.  Holds settings, no
    per-run state; independent ``settle`` calls may run in parallel.

Failure modes:
    - InvalidInputError subclasses from the engines propagate unchanged.
    - Business-data oddities never raise; see ``SettlementPlan``.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from settlement_config.schema import EngineSettings
from settlement_engines.aggregation import (
    AggregateBalance,
    CrossPropertyAggregator,
    InvestorMonthlyProfit,
    summarize_monthly_profits,
)
from settlement_engines.attribution import PropertyAttributionResolver
from settlement_engines.planner import SettlementPlan, SettlementPlanner, as_aggregates
from settlement_engines.profit_share import (
    InvestorBalance,
    ProfitShareCalculator,
    PropertyDistribution,
    flatten_balances,
)
from settlement_engines.property_settlement import PerPropertySettlementPlanner
from settlement_kernel.domain.records import (
    FinancialReport,
    OwnershipRecord,
    PriorSettlementRecord,
)
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.settlement")


class SettlementMode(str, Enum):
    """How balances across properties are settled."""

    AGGREGATE = "aggregate"  # Net each investor across all properties first
    PER_PROPERTY = "per_property"  # Settle each property, then net pairs


@dataclass(frozen=True)
class SettlementBatch:
    """Everything one settlement run needs, already fetched by the caller."""

    reports: tuple[FinancialReport, ...]
    ownerships: tuple[OwnershipRecord, ...]
    prior_settlements: tuple[PriorSettlementRecord, ...] = field(default_factory=tuple)
    batch_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "reports", tuple(self.reports))
        object.__setattr__(self, "ownerships", tuple(self.ownerships))
        object.__setattr__(self, "prior_settlements", tuple(self.prior_settlements))


@dataclass(frozen=True)
class SettlementReport:
    """Structured result handed to the presentation layer."""

    mode: SettlementMode
    currency: str
    distributions: tuple[PropertyDistribution, ...]
    aggregates: tuple[AggregateBalance, ...]
    plan: SettlementPlan
    settings_checksum: str = ""

    @property
    def balances(self) -> tuple[InvestorBalance, ...]:
        return flatten_balances(self.distributions)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready rendition; Decimals become strings."""
        return {
            "mode": self.mode.value,
            "currency": self.currency,
            "settings_checksum": self.settings_checksum,
            "distributions": [
                {
                    "property_id": d.property_id,
                    "period": str(d.period),
                    "total_income": str(d.total_income),
                    "total_expenses": str(d.total_expenses),
                    "net_profit": str(d.net_profit),
                    "allocated_percentage": str(d.allocated_percentage),
                    "balances": [
                        {
                            "investor_id": b.investor_id,
                            "percentage": str(b.percentage),
                            "profit_share": str(b.profit_share),
                            "expenses_paid_by_investor": str(b.expenses_paid_by_investor),
                            "income_received_by_investor": str(b.income_received_by_investor),
                            "already_paid": str(b.already_paid),
                            "already_received": str(b.already_received),
                            "final_balance": str(b.final_balance),
                        }
                        for b in d.balances
                    ],
                }
                for d in self.distributions
            ],
            "aggregates": [
                {
                    "investor_id": a.investor_id,
                    "total_final": str(a.total_final),
                    "contributions": [
                        {
                            "property_id": c.property_id,
                            "period": str(c.period) if c.period else None,
                            "amount": str(c.amount),
                        }
                        for c in a.contributions
                    ],
                }
                for a in self.aggregates
            ],
            "transactions": [
                {
                    "from_investor_id": t.from_investor_id,
                    "to_investor_id": t.to_investor_id,
                    "amount": str(t.amount),
                    "unattributed_amount": str(t.unattributed_amount),
                    "property_breakdown": [
                        {"property_id": line.property_id, "amount": str(line.amount)}
                        for line in t.property_breakdown
                    ],
                }
                for t in self.plan.transactions
            ],
            "unsettled_investors": [
                {
                    "investor_id": u.investor_id,
                    "remaining": str(u.remaining),
                    "side": u.side.value,
                    "property_id": u.property_id,
                }
                for u in self.plan.unsettled_investors
            ],
            "total_credits": str(self.plan.total_credits),
            "total_debits": str(self.plan.total_debits),
        }


class SettlementService:
    """
    Run the settlement engines over a batch.

    Contract:
        ``settle`` is a pure function of (settings, batch); nothing is
        cached between calls.
    """

    def __init__(self, settings: EngineSettings | None = None):
        self._settings = settings or EngineSettings()
        currency = self._settings.currency_value
        tolerance = self._settings.effective_tolerance

        self._calculator = ProfitShareCalculator()
        self._aggregator = CrossPropertyAggregator()
        self._planner = SettlementPlanner(currency=currency, tolerance=tolerance)
        self._resolver = PropertyAttributionResolver(
            currency=currency,
            tolerance=tolerance,
            cap_by_creditor=self._settings.cap_by_creditor,
        )
        self._per_property = PerPropertySettlementPlanner(self._planner)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def settle(
        self,
        batch: SettlementBatch,
        mode: SettlementMode | str | None = None,
    ) -> SettlementReport:
        """
        Compute balances, aggregates and the settlement plan for a batch.

        Args:
            batch: Pre-assembled reports, ownerships and prior settlements.
            mode: Overrides ``settings.default_mode``.

        Returns:
            SettlementReport with transactions carrying property breakdowns.
        """
        resolved_mode = SettlementMode(mode or self._settings.default_mode)
        with LogContext.bind(batch_id=batch.batch_id):
            t0 = time.monotonic()
            logger.info("settlement_batch_started", extra={
                "mode": resolved_mode.value,
                "report_count": len(batch.reports),
                "ownership_count": len(batch.ownerships),
                "prior_settlement_count": len(batch.prior_settlements),
            })

            distributions = self._calculator.calculate_batch(
                batch.reports, batch.ownerships, batch.prior_settlements,
            )
            balances = flatten_balances(distributions)
            aggregates = self._aggregator.aggregate(balances)

            if resolved_mode is SettlementMode.PER_PROPERTY:
                plan = self._per_property.plan(balances)
            else:
                plan = self._plan_and_attribute(aggregates)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("settlement_batch_completed", extra={
                "mode": resolved_mode.value,
                "investor_count": len(aggregates),
                "transaction_count": plan.transaction_count,
                "unsettled_count": len(plan.unsettled_investors),
                "duration_ms": duration_ms,
            })

        return SettlementReport(
            mode=resolved_mode,
            currency=self._settings.currency,
            distributions=distributions,
            aggregates=aggregates,
            plan=plan,
            settings_checksum=self._settings.checksum,
        )

    def settle_balances(
        self,
        balances: Sequence[InvestorBalance | AggregateBalance],
    ) -> SettlementPlan:
        """
        Settle balances the caller already holds.

        Property-month balances are aggregated per investor first; aggregate
        balances are used as given.
        """
        if balances and all(isinstance(b, InvestorBalance) for b in balances):
            aggregates = self._aggregator.aggregate(balances)
        else:
            aggregates = as_aggregates(balances)
        return self._plan_and_attribute(aggregates)

    def monthly_profits(self, batch: SettlementBatch) -> tuple[InvestorMonthlyProfit, ...]:
        """Per-investor monthly profit summary for the batch."""
        distributions = self._calculator.calculate_batch(
            batch.reports, batch.ownerships, batch.prior_settlements,
        )
        return summarize_monthly_profits(flatten_balances(distributions))

    def _plan_and_attribute(
        self,
        aggregates: Sequence[AggregateBalance],
    ) -> SettlementPlan:
        plan = self._planner.plan(aggregates)
        resolved = self._resolver.resolve(plan.transactions, aggregates)
        return plan.with_transactions(resolved)
