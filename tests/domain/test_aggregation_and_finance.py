"""
Tests for the pure labour aggregation and finance derivations.
"""

from decimal import Decimal

import pytest

from kpi_kernel.domain.aggregation import aggregate_job_day, labour_cost, ot_minutes
from kpi_kernel.domain.finance import (
    derive_finance,
    gross_margin_pct,
    gross_profit,
    slippage,
)
from kpi_kernel.domain.types import EmployeeDayRollup


def rollup(name, job_no, shift, brk=0, drive=0):
    return EmployeeDayRollup(
        employee_name=name,
        job_no=job_no,
        shift_minutes=shift,
        break_minutes=brk,
        drive_minutes=drive,
    )


class TestLabourCost:
    def test_mike_example(self):
        assert labour_cost(480, Decimal("25.00")) == Decimal("200.00")

    def test_rounds_half_up_to_cents(self):
        # 1 minute at 0.30/h = 0.005
        assert labour_cost(1, Decimal("0.30")) == Decimal("0.01")

    def test_missing_rate_costs_nothing(self):
        assert labour_cost(480, None) == Decimal("0.00")


class TestOtMinutes:
    @pytest.mark.parametrize(
        "paid, threshold, expected",
        [(600, 480, 120), (400, 480, 0), (600, None, 0), (600, 0, 0)],
    )
    def test_threshold(self, paid, threshold, expected):
        assert ot_minutes(paid, threshold) == expected


class TestAggregateJobDay:
    def test_sums_per_job(self):
        result = aggregate_job_day(
            [
                rollup("mike", 8, 510, 30, 15),
                rollup("zoe", 8, 240, 0, 0),
                rollup("ann", 3, 60),
            ],
            {"mike": Decimal("25.00"), "zoe": Decimal("30.00")},
            daily_ot_minutes=600,
        )

        assert result.job_numbers == (3, 8)
        job8 = result.for_job(8)
        assert job8.paid_minutes == 720
        assert job8.drive_minutes == 15
        assert job8.labour_cost == Decimal("320.00")
        assert job8.ot_minutes == 120
        assert job8.employee_count == 2
        # ann has no rate
        assert result.for_job(3).labour_cost == Decimal("0.00")

    def test_unattributed_time_is_reported_not_aggregated(self):
        result = aggregate_job_day(
            [rollup("mike", None, 120, 20), rollup("zoe", 2, 60)],
            {},
        )

        assert result.job_numbers == (2,)
        assert result.unattributed_minutes == 100
        assert result.unattributed_employees == ("mike",)

    def test_empty_day(self):
        result = aggregate_job_day([], {})
        assert result.jobs == ()
        assert result.for_job(1) is None


class TestFinanceDerivations:
    def test_gross_profit_propagates_none(self):
        assert gross_profit(None, Decimal("5")) is None
        assert gross_profit(Decimal("5"), None) is None
        assert gross_profit(Decimal("10.00"), Decimal("4.50")) == Decimal("5.50")

    def test_margin_rounds_to_basis_points(self):
        # 1/3 = 33.333...% -> 33.33
        assert gross_margin_pct(Decimal("1.00"), Decimal("3.00")) == Decimal("33.33")
        # 2/3 = 66.666...% -> 66.67
        assert gross_margin_pct(Decimal("2.00"), Decimal("3.00")) == Decimal("66.67")

    @pytest.mark.parametrize(
        "profit, expected",
        [
            (Decimal("125.05"), Decimal("12.51")),
            (Decimal("-125.05"), Decimal("-12.50")),
            (Decimal("-125.06"), Decimal("-12.51")),
            (Decimal("-300.00"), Decimal("-30.00")),
        ],
    )
    def test_half_basis_points_round_up(self, profit, expected):
        assert gross_margin_pct(profit, Decimal("1000.00")) == expected

    def test_margin_requires_positive_revenue(self):
        assert gross_margin_pct(Decimal("0"), Decimal("0")) is None
        assert gross_margin_pct(Decimal("-5"), Decimal("-1")) is None
        assert gross_margin_pct(None, Decimal("10")) is None

    def test_slippage(self):
        assert slippage(Decimal("1000"), Decimal("600"), Decimal("300")) == Decimal("100")
        assert slippage(None, Decimal("600"), Decimal("300")) is None

    def test_derive_finance_with_missing_revenue(self):
        kpis = derive_finance(revenue=None, cogs=Decimal("40.00"))

        assert kpis.revenue is None
        assert kpis.cogs == Decimal("40.00")
        assert kpis.gross_profit is None
        assert kpis.gross_margin_pct is None
        assert kpis.slippage is None

    def test_derive_finance_full(self):
        kpis = derive_finance(
            revenue=Decimal("100.00"),
            cogs=Decimal("60.00"),
            estimate_revenue=Decimal("120.00"),
            estimate_cogs=Decimal("70.00"),
        )

        assert kpis.gross_profit == Decimal("40.00")
        assert kpis.gross_margin_pct == Decimal("40.00")
        assert kpis.slippage == Decimal("10.00")
        assert set(kpis.as_fields()) == {
            "revenue", "cogs", "gross_profit", "gross_margin_pct",
            "change_order_amount", "holdback_amount", "ar_total", "ap_total",
            "estimate_revenue", "estimate_cogs", "slippage",
        }
