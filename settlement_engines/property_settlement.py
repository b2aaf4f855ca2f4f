"""
settlement_engines.property_settlement -- Settle each property on its own, then net pairs.

Responsibility:
    Alternative to cross-property aggregation used by the bulk property
    report: every property is settled independently with the greedy
    planner, transfers between the same two investors are merged into one
    transaction carrying a line per property, and opposite transfers
    (A pays B on one property, B pays A on another) are netted.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Builds on SettlementPlanner; attribution is exact by construction since
    every transfer originates inside a single property.

Invariants enforced:
    - Each merged transaction's breakdown sums to its amount. After
      netting the sum may differ by less than tolerance for every property
      line dropped as below tolerance.
    - After netting there is at most one transaction per unordered
      investor pair.
    - Breakdown lines are expressed in the direction of the surviving
      transaction; a negative line is a property whose transfer ran the
      other way and was netted away.
    - Net amounts and lines below tolerance are dropped.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from decimal import Decimal

from settlement_engines.aggregation import CrossPropertyAggregator
from settlement_engines.planner import (
    PropertyAllocation,
    SettlementPlan,
    SettlementPlanner,
    Transaction,
    UnsettledInvestor,
)
from settlement_engines.profit_share import InvestorBalance
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import ZERO
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.property_settlement")


class PerPropertySettlementPlanner:
    """
    Settle property by property and merge the results.

    Contract:
        Pure; deterministic for identical input ordering.
    Non-goals:
        - Does not minimise transfers across properties beyond pairwise
          netting.
    """

    def __init__(self, planner: SettlementPlanner | None = None):
        self._planner = planner or SettlementPlanner()
        self._aggregator = CrossPropertyAggregator()

    @property
    def tolerance(self) -> Decimal:
        return self._planner.tolerance

    @traced_engine("per_property_settlement", "1.0", fingerprint_fields=("balances",))
    def plan(self, balances: Sequence[InvestorBalance]) -> SettlementPlan:
        """
        Args:
            balances: Property-month balances; several months of the same
                property are summed per investor before settling.

        Returns:
            SettlementPlan whose transactions are netted per investor pair
            and carry a per-property breakdown. Unsettled residuals name
            the property they were left on.
        """
        t0 = time.monotonic()
        by_property: dict[str, list[InvestorBalance]] = {}
        for balance in balances:
            by_property.setdefault(balance.property_id, []).append(balance)

        merged: dict[tuple[str, str], dict[str, Decimal]] = {}
        unsettled: list[UnsettledInvestor] = []
        balanced: list[str] = []
        total_credits = ZERO
        total_debits = ZERO

        for property_id, items in by_property.items():
            plan = self._planner.plan(self._aggregator.aggregate(items))
            total_credits += plan.total_credits
            total_debits += plan.total_debits
            balanced.extend(i for i in plan.balanced_investor_ids if i not in balanced)
            unsettled.extend(
                UnsettledInvestor(
                    investor_id=u.investor_id,
                    remaining=u.remaining,
                    side=u.side,
                    property_id=property_id,
                )
                for u in plan.unsettled_investors
            )
            for txn in plan.transactions:
                lines = merged.setdefault((txn.from_investor_id, txn.to_investor_id), {})
                lines[property_id] = lines.get(property_id, ZERO) + txn.amount

        transactions = [
            Transaction(
                from_investor_id=debtor,
                to_investor_id=creditor,
                amount=sum(lines.values(), ZERO),
                property_breakdown=tuple(
                    PropertyAllocation(property_id=pid, amount=amount)
                    for pid, amount in lines.items()
                ),
            )
            for (debtor, creditor), lines in merged.items()
        ]
        netted = net_bilateral(transactions, self.tolerance)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("per_property_settlement_completed", extra={
            "property_count": len(by_property),
            "merged_count": len(transactions),
            "transaction_count": len(netted),
            "unsettled_count": len(unsettled),
            "duration_ms": duration_ms,
        })

        return SettlementPlan(
            transactions=netted,
            unsettled_investors=tuple(unsettled),
            total_credits=total_credits,
            total_debits=total_debits,
            balanced_investor_ids=tuple(balanced),
        )


def net_bilateral(
    transactions: Sequence[Transaction],
    tolerance: Decimal = Decimal("0.01"),
) -> tuple[Transaction, ...]:
    """
    Collapse A->B and B->A into a single net transaction.

    The first transaction of each pair (in input order) fixes the output
    position. Pairs that net to less than ``tolerance`` disappear. Property
    lines that net to less than ``tolerance`` are dropped as well, so the
    breakdown matches the net amount only to within ``tolerance`` per
    dropped line.
    """
    by_pair = {(t.from_investor_id, t.to_investor_id): t for t in transactions}
    processed: set[tuple[str, str]] = set()
    netted: list[Transaction] = []

    for txn in transactions:
        key = (txn.from_investor_id, txn.to_investor_id)
        if key in processed:
            continue
        reverse_key = (txn.to_investor_id, txn.from_investor_id)
        reverse = by_pair.get(reverse_key)
        processed.add(key)

        if reverse is None:
            netted.append(txn)
            continue
        processed.add(reverse_key)

        net_amount = txn.amount - reverse.amount
        if abs(net_amount) < tolerance:
            logger.debug("bilateral_pair_cancelled", extra={
                "investor_a": txn.from_investor_id,
                "investor_b": txn.to_investor_id,
            })
            continue

        lines: dict[str, Decimal] = {}
        for line in txn.property_breakdown:
            lines[line.property_id] = lines.get(line.property_id, ZERO) + line.amount
        for line in reverse.property_breakdown:
            lines[line.property_id] = lines.get(line.property_id, ZERO) - line.amount

        if net_amount > ZERO:
            winner, sign = txn, 1
        else:
            winner, sign = reverse, -1

        netted.append(
            Transaction(
                from_investor_id=winner.from_investor_id,
                to_investor_id=winner.to_investor_id,
                amount=abs(net_amount),
                property_breakdown=tuple(
                    PropertyAllocation(property_id=pid, amount=amount * sign)
                    for pid, amount in lines.items()
                    if abs(amount) >= tolerance
                ),
            )
        )

    return tuple(netted)
