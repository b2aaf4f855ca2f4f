"""
Tests for the greedy largest-first Settlement Planner.

Covers:
- Simple split and one-debtor/many-creditor cases
- Sub-tolerance balances treated as settled
- Credit/debit imbalance reported as unsettled residuals
- Stable tie-breaking and determinism
- Rounding of transfer amounts to the currency
- Zero-decimal currencies and explicit tolerance
- Duplicate investors rejected
- Input never mutated
"""

from decimal import Decimal

import pytest

from settlement_engines.aggregation import AggregateBalance, Contribution
from settlement_engines.planner import (
    SettlementPlan,
    SettlementPlanner,
    SettlementSide,
    Transaction,
)
from settlement_kernel.exceptions import (
    DuplicateInvestorError,
    InvalidInputError,
    SelfSettlementError,
)


def _balances(**totals):
    return [
        AggregateBalance(investor_id=name, total_final=Decimal(str(amount)))
        for name, amount in totals.items()
    ]


def _pairs(plan):
    return [(t.from_investor_id, t.to_investor_id, t.amount) for t in plan.transactions]


class TestGreedyMatching:
    """Tests for the core largest-first matching."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_simple_split(self):
        """One creditor, two debtors: the larger debtor pays first."""
        plan = self.planner.plan(_balances(A=100, B=-60, C=-40))

        assert _pairs(plan) == [
            ("B", "A", Decimal("60.00")),
            ("C", "A", Decimal("40.00")),
        ]
        assert plan.is_fully_settled

    def test_one_debtor_two_creditors(self):
        plan = self.planner.plan(_balances(A=70, B=30, C=-100))

        assert _pairs(plan) == [
            ("C", "A", Decimal("70.00")),
            ("C", "B", Decimal("30.00")),
        ]

    def test_largest_creditor_matched_first_regardless_of_input_order(self):
        plan = self.planner.plan(_balances(small=10, debtor=-110, big=100))

        assert _pairs(plan) == [
            ("debtor", "big", Decimal("100.00")),
            ("debtor", "small", Decimal("10.00")),
        ]

    def test_chain_of_partial_matches(self):
        plan = self.planner.plan(_balances(A=50, B=30, C=20, D=-45, E=-35, F=-20))

        assert _pairs(plan) == [
            ("D", "A", Decimal("45.00")),
            ("E", "A", Decimal("5.00")),
            ("E", "B", Decimal("30.00")),
            ("F", "C", Decimal("20.00")),
        ]
        assert plan.is_fully_settled

    def test_net_flow_matches_balance(self):
        balances = _balances(A=123.45, B=-23.45, C=-50, D=-50)
        plan = self.planner.plan(balances)

        for balance in balances:
            assert plan.net_flow(balance.investor_id) == balance.total_final

    def test_transfer_count_bounded(self):
        """At most creditors + debtors - 1 transfers."""
        plan = self.planner.plan(_balances(A=10, B=20, C=30, D=-15, E=-15, F=-30))

        assert plan.transaction_count <= 5

    def test_empty_input(self):
        plan = self.planner.plan([])

        assert plan == SettlementPlan(
            transactions=(),
            unsettled_investors=(),
            total_credits=Decimal("0"),
            total_debits=Decimal("0"),
        )

    def test_all_positive_balances(self):
        """No debtors: nothing to transfer, every creditor is unsettled."""
        plan = self.planner.plan(_balances(A=10, B=5))

        assert plan.transactions == ()
        assert [(u.investor_id, u.remaining, u.side) for u in plan.unsettled_investors] == [
            ("A", Decimal("10.00"), SettlementSide.CREDITOR),
            ("B", Decimal("5.00"), SettlementSide.CREDITOR),
        ]


class TestTolerance:
    """Balances below one smallest denomination are already settled."""

    def setup_method(self):
        self.planner = SettlementPlanner("USD")

    def test_sub_cent_balance_excluded(self):
        plan = self.planner.plan(_balances(D=0.005, A=10, B=-10))

        assert all("D" not in (t.from_investor_id, t.to_investor_id) for t in plan.transactions)
        assert plan.balanced_investor_ids == ("D",)
        assert plan.is_fully_settled

    def test_sub_cent_negative_excluded(self):
        plan = self.planner.plan(_balances(D=-0.009))

        assert plan.transactions == ()
        assert plan.unsettled_investors == ()
        assert plan.balanced_investor_ids == ("D",)

    def test_exactly_one_cent_is_settled(self):
        plan = self.planner.plan(_balances(A=0.01, B=-0.01))

        assert _pairs(plan) == [("B", "A", Decimal("0.01"))]

    def test_amounts_rounded_half_up(self):
        plan = self.planner.plan(_balances(A=33.335, B=-33.335))

        assert _pairs(plan) == [("B", "A", Decimal("33.34"))]

    def test_default_tolerance_from_currency(self):
        assert SettlementPlanner("USD").tolerance == Decimal("0.01")
        assert SettlementPlanner("JPY").tolerance == Decimal("1")
        assert SettlementPlanner("BHD").tolerance == Decimal("0.001")

    def test_zero_decimal_currency(self):
        planner = SettlementPlanner("VND")
        plan = planner.plan(_balances(A=150000, B=-100000, C=-50000, D=0.4))

        assert _pairs(plan) == [
            ("B", "A", Decimal("100000")),
            ("C", "A", Decimal("50000")),
        ]
        assert plan.balanced_investor_ids == ("D",)

    def test_explicit_tolerance_overrides_currency(self):
        planner = SettlementPlanner("USD", tolerance=Decimal("1"))
        plan = planner.plan(_balances(A=0.5, B=-0.5, C=5, E=-5))

        assert _pairs(plan) == [("E", "C", Decimal("5.00"))]
        assert set(plan.balanced_investor_ids) == {"A", "B"}


class TestImbalance:
    """Credits and debits that do not match are reported, never papered over."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_creditor_leftover_reported(self):
        """Credits 100, debits 90: the last creditor keeps $10 unsettled."""
        plan = self.planner.plan(_balances(A=60, B=40, C=-50, D=-40))

        assert _pairs(plan) == [
            ("C", "A", Decimal("50.00")),
            ("D", "A", Decimal("10.00")),
            ("D", "B", Decimal("30.00")),
        ]
        assert len(plan.unsettled_investors) == 1
        leftover = plan.unsettled_investors[0]
        assert leftover.investor_id == "B"
        assert leftover.remaining == Decimal("10.00")
        assert leftover.side is SettlementSide.CREDITOR
        assert plan.imbalance == Decimal("10.00")
        assert not plan.is_fully_settled

    def test_no_transaction_fabricated_for_leftover(self):
        plan = self.planner.plan(_balances(A=60, B=40, C=-50, D=-40))

        total_paid = sum(t.amount for t in plan.transactions)
        assert total_paid == Decimal("90.00")

    def test_debtor_leftover_reported(self):
        plan = self.planner.plan(_balances(A=20, B=-25, C=-10))

        assert _pairs(plan) == [("B", "A", Decimal("20.00"))]
        assert [(u.investor_id, u.remaining, u.side) for u in plan.unsettled_investors] == [
            ("B", Decimal("5.00"), SettlementSide.DEBTOR),
            ("C", Decimal("10.00"), SettlementSide.DEBTOR),
        ]
        assert plan.imbalance == Decimal("-15.00")

    def test_imbalance_logged_as_warning(self, captured_logs):
        self.planner.plan(_balances(A=100, B=-90))

        warnings = [r for r in captured_logs() if r["message"] == "settlement_plan_unbalanced"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["unsettled_investors"] == ["A"]


class TestDeterminism:
    """Identical input produces an identical plan."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_repeat_runs_identical(self):
        balances = _balances(A=40, B=40, C=20, D=-50, E=-50)

        assert self.planner.plan(balances) == self.planner.plan(balances)

    def test_ties_keep_input_order(self):
        """Equal balances are matched in the order they were supplied."""
        plan = self.planner.plan(_balances(X=50, Y=50, P=-50, Q=-50))

        assert _pairs(plan) == [
            ("P", "X", Decimal("50.00")),
            ("Q", "Y", Decimal("50.00")),
        ]

        swapped = self.planner.plan(_balances(Y=50, X=50, Q=-50, P=-50))
        assert _pairs(swapped) == [
            ("Q", "Y", Decimal("50.00")),
            ("P", "X", Decimal("50.00")),
        ]

    def test_input_not_mutated(self):
        balances = _balances(A=100, B=-60, C=-40)
        snapshot = list(balances)

        self.planner.plan(balances)

        assert balances == snapshot

    def test_fresh_state_per_call(self):
        first = self.planner.plan(_balances(A=100, B=-100))
        second = self.planner.plan(_balances(A=100, B=-100))

        assert first.transactions == second.transactions


class TestInputValidation:
    """Tests for structural input errors."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_duplicate_investor_rejected(self):
        balances = [
            AggregateBalance("A", Decimal("10")),
            AggregateBalance("A", Decimal("-10")),
        ]

        with pytest.raises(DuplicateInvestorError) as exc_info:
            self.planner.plan(balances)

        assert exc_info.value.investor_id == "A"
        assert exc_info.value.code == "DUPLICATE_INVESTOR"

    def test_contributions_carried_but_ignored_for_matching(self):
        balances = [
            AggregateBalance("A", Decimal("10"), (Contribution("P1", Decimal("10")),)),
            AggregateBalance("B", Decimal("-10"), (Contribution("P9", Decimal("-10")),)),
        ]

        plan = self.planner.plan(balances)

        assert _pairs(plan) == [("B", "A", Decimal("10.00"))]
        assert plan.transactions[0].property_breakdown == ()


class TestTransaction:
    """Tests for the Transaction value object."""

    def test_self_settlement_rejected(self):
        with pytest.raises(SelfSettlementError):
            Transaction("A", "A", Decimal("10"))

    def test_non_positive_amount_rejected(self):
        with pytest.raises(InvalidInputError):
            Transaction("A", "B", Decimal("0"))

    def test_unattributed_amount_without_breakdown(self):
        txn = Transaction("A", "B", Decimal("12.50"))

        assert txn.attributed_amount == Decimal("0")
        assert txn.unattributed_amount == Decimal("12.50")
