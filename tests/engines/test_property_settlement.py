"""
Tests for per-property settlement and bilateral netting.

Covers:
- Each property settled on its own
- Transfers between the same pair merged with a line per property
- Opposite transfers netted into one transaction
- Pairs that cancel out dropped
- Residuals tagged with the property they were left on
"""

from decimal import Decimal

from settlement_engines.planner import (
    PropertyAllocation,
    SettlementPlanner,
    SettlementSide,
    Transaction,
)
from settlement_engines.profit_share import InvestorBalance
from settlement_engines.property_settlement import PerPropertySettlementPlanner, net_bilateral
from settlement_kernel.domain.records import PeriodKey

JAN = PeriodKey(2024, 1)
FEB = PeriodKey(2024, 2)


def _balance(investor_id, property_id, final, period=JAN):
    final = Decimal(str(final))
    return InvestorBalance(
        investor_id=investor_id,
        property_id=property_id,
        period=period,
        percentage=Decimal("50"),
        profit_share=final,
        expenses_paid_by_investor=Decimal("0"),
        income_received_by_investor=Decimal("0"),
        already_paid=Decimal("0"),
        already_received=Decimal("0"),
        final_balance=final,
    )


def _breakdown(txn):
    return [(line.property_id, line.amount) for line in txn.property_breakdown]


class TestPerPropertySettlement:
    """Tests for PerPropertySettlementPlanner.plan."""

    def setup_method(self):
        self.planner = PerPropertySettlementPlanner()

    def test_same_pair_merged_across_properties(self):
        plan = self.planner.plan([
            _balance("A", "P1", 50),
            _balance("B", "P1", -50),
            _balance("A", "P2", 25),
            _balance("B", "P2", -25),
        ])

        assert len(plan.transactions) == 1
        txn = plan.transactions[0]
        assert (txn.from_investor_id, txn.to_investor_id, txn.amount) == ("B", "A", Decimal("75.00"))
        assert _breakdown(txn) == [("P1", Decimal("50.00")), ("P2", Decimal("25.00"))]
        assert txn.unattributed_amount == Decimal("0")

    def test_opposite_flows_netted(self):
        """B pays A on P1, A pays B on P2: one net transfer remains."""
        plan = self.planner.plan([
            _balance("A", "P1", 50),
            _balance("B", "P1", -50),
            _balance("B", "P2", 30),
            _balance("A", "P2", -30),
        ])

        assert len(plan.transactions) == 1
        txn = plan.transactions[0]
        assert (txn.from_investor_id, txn.to_investor_id, txn.amount) == ("B", "A", Decimal("20.00"))
        assert _breakdown(txn) == [("P1", Decimal("50.00")), ("P2", Decimal("-30.00"))]

    def test_months_of_same_property_summed(self):
        plan = self.planner.plan([
            _balance("A", "P1", 10, period=JAN),
            _balance("B", "P1", -10, period=JAN),
            _balance("A", "P1", -4, period=FEB),
            _balance("B", "P1", 4, period=FEB),
        ])

        assert [(t.from_investor_id, t.to_investor_id, t.amount) for t in plan.transactions] == [
            ("B", "A", Decimal("6.00")),
        ]

    def test_differs_from_aggregate_mode(self):
        """Per-property keeps transfers a cross-property netting would remove."""
        plan = self.planner.plan([
            _balance("A", "P1", 40),
            _balance("C", "P1", -40),
            _balance("C", "P2", 40),
            _balance("B", "P2", -40),
        ])

        assert [(t.from_investor_id, t.to_investor_id, t.amount) for t in plan.transactions] == [
            ("C", "A", Decimal("40.00")),
            ("B", "C", Decimal("40.00")),
        ]

    def test_unsettled_residual_tagged_with_property(self):
        plan = self.planner.plan([
            _balance("A", "P1", 100),
            _balance("B", "P1", -90),
            _balance("A", "P2", 10),
            _balance("B", "P2", -10),
        ])

        assert len(plan.unsettled_investors) == 1
        residual = plan.unsettled_investors[0]
        assert residual.investor_id == "A"
        assert residual.property_id == "P1"
        assert residual.side is SettlementSide.CREDITOR
        assert residual.remaining == Decimal("10.00")
        assert plan.total_credits == Decimal("110.00")
        assert plan.total_debits == Decimal("100.00")

    def test_uses_planner_currency(self):
        planner = PerPropertySettlementPlanner(SettlementPlanner("JPY"))
        plan = planner.plan([
            _balance("A", "P1", "1000.4"),
            _balance("B", "P1", "-1000.4"),
        ])

        assert plan.transactions[0].amount == Decimal("1000")
        assert planner.tolerance == Decimal("1")

    def test_empty(self):
        plan = self.planner.plan([])

        assert plan.transactions == ()
        assert plan.unsettled_investors == ()


class TestNetBilateral:
    """Tests for net_bilateral."""

    def test_unpaired_transactions_pass_through(self):
        txns = [
            Transaction("B", "A", Decimal("10")),
            Transaction("C", "A", Decimal("5")),
        ]

        assert net_bilateral(txns) == tuple(txns)

    def test_reverse_wins(self):
        txns = [
            Transaction("A", "B", Decimal("10"), (PropertyAllocation("P1", Decimal("10")),)),
            Transaction("B", "A", Decimal("25"), (PropertyAllocation("P2", Decimal("25")),)),
        ]

        result = net_bilateral(txns)

        assert len(result) == 1
        assert (result[0].from_investor_id, result[0].to_investor_id) == ("B", "A")
        assert result[0].amount == Decimal("15")
        assert _breakdown(result[0]) == [("P1", Decimal("-10")), ("P2", Decimal("25"))]

    def test_cancelling_pair_dropped(self):
        txns = [
            Transaction("A", "B", Decimal("10.00")),
            Transaction("B", "A", Decimal("10.00")),
            Transaction("C", "D", Decimal("1.00")),
        ]

        result = net_bilateral(txns)

        assert [(t.from_investor_id, t.to_investor_id) for t in result] == [("C", "D")]

    def test_same_property_lines_offset(self):
        txns = [
            Transaction("A", "B", Decimal("30"), (PropertyAllocation("P1", Decimal("30")),)),
            Transaction("B", "A", Decimal("10"), (PropertyAllocation("P1", Decimal("10")),)),
        ]

        result = net_bilateral(txns)

        assert result[0].amount == Decimal("20")
        assert _breakdown(result[0]) == [("P1", Decimal("20"))]

    def test_breakdown_sums_to_amount(self):
        txns = [
            Transaction("A", "B", Decimal("40"), (
                PropertyAllocation("P1", Decimal("15")),
                PropertyAllocation("P2", Decimal("25")),
            )),
            Transaction("B", "A", Decimal("12"), (PropertyAllocation("P3", Decimal("12")),)),
        ]

        result = net_bilateral(txns)

        assert sum(line.amount for line in result[0].property_breakdown) == result[0].amount

    def test_sub_tolerance_line_dropped_within_slack(self):
        """A property line that nets below tolerance is dropped; the gap stays under tolerance."""
        tolerance = Decimal("0.01")
        txns = [
            Transaction("A", "B", Decimal("20.005"), (
                PropertyAllocation("P1", Decimal("10.005")),
                PropertyAllocation("P2", Decimal("10")),
            )),
            Transaction("B", "A", Decimal("10"), (PropertyAllocation("P1", Decimal("10")),)),
        ]

        result = net_bilateral(txns, tolerance=tolerance)

        assert result[0].amount == Decimal("10.005")
        assert _breakdown(result[0]) == [("P2", Decimal("10"))]
        gap = result[0].amount - sum(line.amount for line in result[0].property_breakdown)
        assert abs(gap) < tolerance
