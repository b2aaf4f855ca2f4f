"""
Module: settlement_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    settlement engine sub-modules.  This is the canonical import surface
    for higher layers (settlement_services, scripts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel (and sibling engine modules).
    MUST NOT import settlement_services or settlement_config.

Data flow:
    ProfitShareCalculator -> CrossPropertyAggregator -> SettlementPlanner
    -> PropertyAttributionResolver.  PerPropertySettlementPlanner is the
    alternative path that settles each property independently.

Invariants enforced:
    - Purity: engines never read clocks for business logic, never touch
      files or the network, and never keep state between calls.
    - Decimal-only arithmetic for all monetary amounts.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via the ``@traced_engine`` decorator
    (see ``settlement_engines.tracer``), emitting SETTLEMENT_ENGINE_TRACE
    log records with engine name, version, input fingerprint and duration.

Usage:
    from settlement_engines import (
        CrossPropertyAggregator,
        ProfitShareCalculator,
        PropertyAttributionResolver,
        SettlementPlanner,
    )
"""

from settlement_engines.aggregation import (
    AggregateBalance,
    Contribution,
    CrossPropertyAggregator,
    InvestorMonthlyProfit,
    PropertyProfitLine,
    summarize_monthly_profits,
)
from settlement_engines.attribution import PropertyAttributionResolver
from settlement_engines.planner import (
    PropertyAllocation,
    SettlementPlan,
    SettlementPlanner,
    SettlementSide,
    Transaction,
    UnsettledInvestor,
)
from settlement_engines.profit_share import (
    InvestorBalance,
    ProfitShareCalculator,
    PropertyDistribution,
    flatten_balances,
)
from settlement_engines.property_settlement import (
    PerPropertySettlementPlanner,
    net_bilateral,
)

__all__ = [
    # Profit share
    "InvestorBalance",
    "ProfitShareCalculator",
    "PropertyDistribution",
    "flatten_balances",
    # Aggregation
    "AggregateBalance",
    "Contribution",
    "CrossPropertyAggregator",
    "InvestorMonthlyProfit",
    "PropertyProfitLine",
    "summarize_monthly_profits",
    # Planner
    "PropertyAllocation",
    "SettlementPlan",
    "SettlementPlanner",
    "SettlementSide",
    "Transaction",
    "UnsettledInvestor",
    # Attribution
    "PropertyAttributionResolver",
    # Per-property settlement
    "PerPropertySettlementPlanner",
    "net_bilateral",
]
