"""
settlement_engines.planner -- Greedy largest-first multi-party debt netting.

Responsibility:
    Turn a set of signed investor balances into an ordered list of pairwise
    transfers that settles everyone to zero, reporting any residual that
    cannot be settled because total credits and total debits differ.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Algorithm:
    1. Investors with balance >= tolerance are creditors, <= -tolerance are
       debtors; the rest are already settled. Creditors are sorted by
       balance descending, debtors by absolute balance descending. Both
       sorts are stable, so ties keep input order.
    2. Two cursors walk the sorted lists. Each step transfers
       round(min(creditor.remaining, debtor.remaining)) from the debtor to
       the creditor and advances whichever side dropped below tolerance.
    3. When one side runs out, whatever the other side still holds is an
       unsettled residual. No transaction is fabricated to cover it.

    Largest-first matching keeps the transfer count low in practice but is
    not guaranteed to reach the theoretical minimum. O(n log n).

Invariants enforced:
    - No transaction has from_investor_id == to_investor_id.
    - Every transaction amount is >= tolerance and rounded to the currency's
      decimal places.
    - When credits and debits balance within tolerance, each investor's
      signed transaction total equals their balance within tolerance.
    - Working state lives in a per-call arena; the planner holds no state
      between calls and never mutates its input.

Failure modes:
    - DuplicateInvestorError when the same investor appears twice in one
      call (aggregate property-month balances first).
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from settlement_engines.aggregation import AggregateBalance
from settlement_engines.profit_share import InvestorBalance
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import ZERO, Currency
from settlement_kernel.exceptions import (
    DuplicateInvestorError,
    InvalidInputError,
    SelfSettlementError,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.planner")


class SettlementSide(str, Enum):
    """Which side of the ledger an investor is on."""

    CREDITOR = "creditor"  # Is owed money
    DEBTOR = "debtor"  # Owes money


@dataclass(frozen=True)
class PropertyAllocation:
    """Portion of a transaction attributed to one property."""

    property_id: str
    amount: Decimal


@dataclass(frozen=True)
class Transaction:
    """
    A single transfer from a debtor to a creditor.

    Contract:
        Frozen dataclass; ``property_breakdown`` is empty until the
        attribution resolver fills it.
    Guarantees:
        - ``from_investor_id != to_investor_id``
        - ``amount > 0``
    Non-goals:
        - The breakdown may sum to less than ``amount`` when the two parties
          share no property; see ``unattributed_amount``.
    """

    from_investor_id: str
    to_investor_id: str
    amount: Decimal
    property_breakdown: tuple[PropertyAllocation, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.from_investor_id == self.to_investor_id:
            raise SelfSettlementError(self.from_investor_id)
        if self.amount <= ZERO:
            raise InvalidInputError(
                f"Transaction amount must be positive: {self.amount}"
            )

    @property
    def attributed_amount(self) -> Decimal:
        return sum((line.amount for line in self.property_breakdown), ZERO)

    @property
    def unattributed_amount(self) -> Decimal:
        """Portion of ``amount`` no shared property could account for."""
        return self.amount - self.attributed_amount


@dataclass(frozen=True)
class UnsettledInvestor:
    """Residual left on one side when credits and debits do not balance.

    ``property_id`` is set only by per-property settlement.
    """

    investor_id: str
    remaining: Decimal
    side: SettlementSide
    property_id: str | None = None


@dataclass(frozen=True)
class SettlementPlan:
    """
    Output of a settlement run.

    Guarantees:
        - ``transactions`` are in emission order.
        - ``unsettled_investors`` is empty when credits and debits balance.
    """

    transactions: tuple[Transaction, ...]
    unsettled_investors: tuple[UnsettledInvestor, ...]
    total_credits: Decimal
    total_debits: Decimal
    balanced_investor_ids: tuple[str, ...] = ()

    @property
    def imbalance(self) -> Decimal:
        """Credits minus debits; positive means creditors are left over."""
        return self.total_credits - self.total_debits

    @property
    def is_fully_settled(self) -> bool:
        return not self.unsettled_investors

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    def net_flow(self, investor_id: str) -> Decimal:
        """Signed sum of an investor's transfers: received minus paid."""
        flow = ZERO
        for txn in self.transactions:
            if txn.to_investor_id == investor_id:
                flow += txn.amount
            if txn.from_investor_id == investor_id:
                flow -= txn.amount
        return flow

    def with_transactions(self, transactions: Sequence[Transaction]) -> SettlementPlan:
        return dataclasses.replace(self, transactions=tuple(transactions))


@dataclass
class _WorkingRecord:
    """Mutable per-call state for one investor during the greedy pass."""

    index: int
    investor_id: str
    balance: Decimal
    remaining: Decimal


def as_aggregates(
    balances: Sequence[AggregateBalance | InvestorBalance],
) -> tuple[AggregateBalance, ...]:
    """Normalize planner input, rejecting duplicate investors."""
    aggregates: list[AggregateBalance] = []
    seen: set[str] = set()
    for item in balances:
        aggregate = (
            AggregateBalance.from_investor_balance(item)
            if isinstance(item, InvestorBalance)
            else item
        )
        if aggregate.investor_id in seen:
            raise DuplicateInvestorError(aggregate.investor_id)
        seen.add(aggregate.investor_id)
        aggregates.append(aggregate)
    return tuple(aggregates)


class SettlementPlanner:
    """
    Greedy largest-first settlement planner.

    Contract:
        Pure function of its input snapshot. No I/O.
    Guarantees:
        - Deterministic: identical input (including order) yields an
          identical plan.
        - Tolerance defaults to one smallest denomination of ``currency``.
    Non-goals:
        - Does not attribute transactions to properties; see
          ``PropertyAttributionResolver``.
        - Does not search for a globally minimal transaction set.
    """

    def __init__(
        self,
        currency: Currency | str = "USD",
        tolerance: Decimal | None = None,
    ):
        self._currency = Currency(currency) if isinstance(currency, str) else currency
        self._tolerance = tolerance if tolerance is not None else self._currency.tolerance

    @property
    def currency(self) -> Currency:
        return self._currency

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    @traced_engine("settlement_planner", "1.0", fingerprint_fields=("balances",))
    def plan(
        self,
        balances: Sequence[AggregateBalance | InvestorBalance],
    ) -> SettlementPlan:
        """
        Plan the transfers that settle ``balances``.

        Args:
            balances: One entry per investor. InvestorBalance items are
                treated as one-element aggregates.

        Returns:
            SettlementPlan with transactions (no property breakdown) and
            any unsettled residuals.

        Raises:
            DuplicateInvestorError: an investor appears more than once.
        """
        t0 = time.monotonic()
        aggregates = as_aggregates(balances)
        logger.info("settlement_plan_started", extra={
            "investor_count": len(aggregates),
            "currency": self._currency.code,
            "tolerance": str(self._tolerance),
        })

        creditors, debtors, balanced = self._partition(aggregates)
        total_credits = sum((r.remaining for r in creditors), ZERO)
        total_debits = sum((r.remaining for r in debtors), ZERO)

        transactions: list[Transaction] = []
        i = 0
        j = 0
        while i < len(creditors) and j < len(debtors):
            creditor = creditors[i]
            debtor = debtors[j]

            amount = self._currency.round(min(creditor.remaining, debtor.remaining))
            if amount >= self._tolerance:
                transactions.append(
                    Transaction(
                        from_investor_id=debtor.investor_id,
                        to_investor_id=creditor.investor_id,
                        amount=amount,
                    )
                )

            creditor.remaining -= amount
            debtor.remaining -= amount

            if creditor.remaining < self._tolerance:
                i += 1
            if debtor.remaining < self._tolerance:
                j += 1

        unsettled = self._residuals(creditors[i:], SettlementSide.CREDITOR)
        unsettled += self._residuals(debtors[j:], SettlementSide.DEBTOR)

        if unsettled:
            logger.warning("settlement_plan_unbalanced", extra={
                "total_credits": str(total_credits),
                "total_debits": str(total_debits),
                "unsettled_investors": [u.investor_id for u in unsettled],
            })

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("settlement_plan_completed", extra={
            "creditor_count": len(creditors),
            "debtor_count": len(debtors),
            "transaction_count": len(transactions),
            "unsettled_count": len(unsettled),
            "duration_ms": duration_ms,
        })

        return SettlementPlan(
            transactions=tuple(transactions),
            unsettled_investors=tuple(unsettled),
            total_credits=total_credits,
            total_debits=total_debits,
            balanced_investor_ids=tuple(balanced),
        )

    def _partition(
        self,
        aggregates: Sequence[AggregateBalance],
    ) -> tuple[list[_WorkingRecord], list[_WorkingRecord], list[str]]:
        """Split into sorted creditor and debtor arenas plus settled ids."""
        creditors: list[_WorkingRecord] = []
        debtors: list[_WorkingRecord] = []
        balanced: list[str] = []

        for index, aggregate in enumerate(aggregates):
            total = aggregate.total_final
            record = _WorkingRecord(
                index=index,
                investor_id=aggregate.investor_id,
                balance=total,
                remaining=self._currency.round(abs(total)),
            )
            if total >= self._tolerance:
                creditors.append(record)
            elif total <= -self._tolerance:
                debtors.append(record)
            else:
                balanced.append(aggregate.investor_id)

        creditors.sort(key=lambda r: r.balance, reverse=True)
        debtors.sort(key=lambda r: abs(r.balance), reverse=True)
        return creditors, debtors, balanced

    def _residuals(
        self,
        records: Sequence[_WorkingRecord],
        side: SettlementSide,
    ) -> list[UnsettledInvestor]:
        return [
            UnsettledInvestor(
                investor_id=r.investor_id,
                remaining=self._currency.round(r.remaining),
                side=side,
            )
            for r in records
            if r.remaining >= self._tolerance
        ]
