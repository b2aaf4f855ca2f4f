"""
settlement_engines.attribution -- Property-level breakdown of planned transfers.

Responsibility:
    For each planned transaction, show which underlying property balances
    the transferred money came from, by matching the debtor's and the
    creditor's contribution lists on identical property ids.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Runs after SettlementPlanner on the same aggregate balances.

Matching rule:
    Net each party's contributions per property first, so several months
    of one property count as one position. Walk the debtor's properties in
    first-appearance order. For each property where the debtor has a
    deficit and the creditor has a surplus, attribute up to the debtor's
    deficit, never exceeding what is left of the transaction. Stop once
    the transaction is fully attributed.

    With ``cap_by_creditor`` a line is also bounded by the creditor's
    surplus on that property. Without it (the default) the creditor's
    surplus only gates the match, so a debtor's whole deficit on a shared
    property is attributed to that property. Either way the result does
    not depend on how a position is split across months.

Known limitation:
    When the debtor's deficit and the creditor's surplus never share a
    property, that part of the transaction is left out of the breakdown and
    the breakdown sums to less than the transaction amount. No cross-property
    allocation is invented for it; ``Transaction.unattributed_amount`` shows
    the gap.

Invariants enforced:
    - sum(breakdown) <= transaction.amount + tolerance.
    - Every property id in a breakdown appears in both parties'
      contribution lists.
    - Working copies are built fresh per transaction; aggregates are never
      mutated.

Failure modes:
    - UnknownInvestorError when a transaction names an investor missing
      from the balance set.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from decimal import Decimal

from settlement_engines.aggregation import AggregateBalance, Contribution
from settlement_engines.planner import PropertyAllocation, Transaction
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import ZERO, Currency
from settlement_kernel.exceptions import UnknownInvestorError
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.attribution")


class PropertyAttributionResolver:
    """
    Decompose transactions into per-property line items.

    Contract:
        Pure; returns new Transaction values with ``property_breakdown``
        filled in.
    Non-goals:
        - Does not re-plan or change transaction amounts.
        - Does not allocate across different properties.
    """

    def __init__(
        self,
        currency: Currency | str = "USD",
        tolerance: Decimal | None = None,
        cap_by_creditor: bool = False,
    ):
        self._currency = Currency(currency) if isinstance(currency, str) else currency
        self._tolerance = tolerance if tolerance is not None else self._currency.tolerance
        self._cap_by_creditor = cap_by_creditor

    @property
    def cap_by_creditor(self) -> bool:
        return self._cap_by_creditor

    @traced_engine("property_attribution", "1.0", fingerprint_fields=("transactions",))
    def resolve(
        self,
        transactions: Sequence[Transaction],
        balances: Sequence[AggregateBalance],
    ) -> tuple[Transaction, ...]:
        """
        Attach a property breakdown to every transaction.

        Args:
            transactions: Planned transactions, usually from
                ``SettlementPlanner.plan``.
            balances: The aggregate balances the plan was computed from.

        Returns:
            Transactions in the same order, each with a breakdown.

        Raises:
            UnknownInvestorError: a transaction references an investor that
                is not in ``balances``.
        """
        by_investor = {b.investor_id: b for b in balances}
        resolved: list[Transaction] = []
        for txn in transactions:
            debtor = by_investor.get(txn.from_investor_id)
            if debtor is None:
                raise UnknownInvestorError(txn.from_investor_id)
            creditor = by_investor.get(txn.to_investor_id)
            if creditor is None:
                raise UnknownInvestorError(txn.to_investor_id)
            resolved.append(self.attribute(txn, debtor, creditor))

        partial = [t for t in resolved if t.unattributed_amount >= self._tolerance]
        if partial:
            logger.info("attribution_partial", extra={
                "partial_count": len(partial),
                "unattributed_total": str(sum((t.unattributed_amount for t in partial), ZERO)),
            })
        return tuple(resolved)

    def attribute(
        self,
        transaction: Transaction,
        debtor: AggregateBalance,
        creditor: AggregateBalance,
    ) -> Transaction:
        """Breakdown of a single transaction between ``debtor`` and ``creditor``."""
        deficits = _net_by_property(debtor.contributions, sign=-1)
        surpluses = _net_by_property(creditor.contributions, sign=1)
        settlement_remaining = transaction.amount

        breakdown: list[PropertyAllocation] = []
        for property_id, deficit in deficits.items():
            if settlement_remaining < self._tolerance:
                break
            surplus = surpluses.get(property_id, ZERO)
            if deficit <= self._tolerance or surplus <= self._tolerance:
                continue

            bound = min(deficit, settlement_remaining)
            if self._cap_by_creditor:
                bound = min(bound, surplus)
            alloc = self._currency.round(bound)
            if alloc < self._tolerance:
                continue

            breakdown.append(PropertyAllocation(property_id=property_id, amount=alloc))
            settlement_remaining -= alloc

        return dataclasses.replace(transaction, property_breakdown=tuple(breakdown))


def _net_by_property(contributions: Sequence[Contribution], sign: int) -> dict[str, Decimal]:
    """Signed contribution totals per property, in first-appearance order."""
    totals: dict[str, Decimal] = {}
    for c in contributions:
        totals[c.property_id] = totals.get(c.property_id, ZERO) + sign * c.amount
    return totals
