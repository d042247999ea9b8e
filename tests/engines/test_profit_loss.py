"""
Profit/loss engine: per-order valuation, aggregate, and the monthly sku table.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from inventory_engines.periods import DateRange
from inventory_engines.valuation import (
    CostBasis,
    OrderStatus,
    SettlementRecord,
    SnapshotTimeline,
    aggregate_valuations,
    compute_profit_loss,
    value_settlement,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
ALL_2024 = DateRange(date(2024, 1, 1), date(2024, 12, 31))


def _timeline(*points):
    """``_timeline((days, mfg, pkg), ...)``"""
    return SnapshotTimeline(
        CostBasis(T0 + timedelta(days=days), version, Decimal(mfg), Decimal(pkg))
        for version, (days, mfg, pkg) in enumerate(points, 1)
    )


def _settlement(sub_order_id, sku, day, amount, quantity="1", status="delivered"):
    return SettlementRecord(
        sub_order_id=sub_order_id,
        sku=sku,
        quantity=Decimal(quantity),
        settlement_amount=Decimal(amount),
        order_date=T0 + timedelta(days=day),
        live_status=status,
    )


class TestSettlementRecord:
    def test_date_is_midnight_utc(self):
        record = SettlementRecord("S", "A", Decimal("1"), Decimal("5"), date(2024, 5, 2))

        assert record.order_date == datetime(2024, 5, 2, tzinfo=timezone.utc)

    def test_strings_are_trimmed(self):
        record = SettlementRecord(" S ", " A ", Decimal("1"), Decimal("5"), T0)

        assert (record.sub_order_id, record.sku) == ("S", "A")

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValueError):
            SettlementRecord("S", "A", quantity, Decimal("5"), T0)

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            SettlementRecord("S", "A", Decimal("1"), 5.0, T0)


class TestValueSettlement:
    def test_unmatched_has_no_cost_fields(self):
        valuation = value_settlement(_settlement("S", "A", 0, "50"), None, damaged=False)

        assert not valuation.matched
        assert valuation.expense is None
        assert valuation.profit is None

    def test_records_basis_used(self):
        timeline = _timeline((0, "10", "1"), (10, "12", "1"))

        valuation = value_settlement(_settlement("S", "A", 12, "50", quantity="2"), timeline, False)

        assert valuation.cost_recorded_at == T0 + timedelta(days=10)
        assert valuation.standard_cogs == Decimal("24")
        assert valuation.expense == Decimal("24")
        assert valuation.status == OrderStatus.DELIVERED


class TestComputeProfitLoss:
    def test_mixed_statuses(self):
        timelines = {"a": _timeline((0, "10", "2"))}
        settlements = [
            _settlement("S-1", "A", 1, "100", status="Delivered"),
            _settlement("S-2", "A", 2, "-5", status="Return Received"),
            _settlement("S-3", "A", 3, "-5", status="RTO"),
            _settlement("S-4", "A", 4, "0", status="Cancelled"),
        ]

        report = compute_profit_loss(
            settlements, timelines, date_range=ALL_2024, damage_lookup={"S-3": True}
        )

        assert [o.expense for o in report.orders] == [
            Decimal("10"),
            Decimal("2"),
            Decimal("12"),
            Decimal("0"),
        ]
        aggregate = report.aggregate
        assert aggregate.revenue == Decimal("90")
        assert aggregate.cogs == Decimal("24")
        assert aggregate.standard_cogs == Decimal("40")
        assert aggregate.profit == Decimal("66")
        assert aggregate.margin == Decimal("73.33")
        assert aggregate.matched_count == 4

    def test_unmatched_counted_not_valued(self):
        timelines = {"a": _timeline((0, "10", "0"))}
        settlements = [
            _settlement("S-1", "A", 1, "100"),
            _settlement("S-2", "b", 1, "40"),
            _settlement("S-3", "B ", 2, "40"),
        ]

        aggregate = compute_profit_loss(settlements, timelines, date_range=ALL_2024).aggregate

        assert aggregate.revenue == Decimal("100")
        assert aggregate.profit == Decimal("90")
        assert aggregate.unmatched_count == 2
        assert aggregate.unmatched_skus == ("b",)
        assert aggregate.total_settlement == Decimal("180")

    def test_date_range_filter(self):
        timelines = {"a": _timeline((0, "1", "0"))}
        settlements = [
            _settlement("S-1", "A", 0, "10"),
            _settlement("S-2", "A", 40, "10"),
        ]

        report = compute_profit_loss(
            settlements, timelines, date_range=DateRange(date(2024, 2, 1), date(2024, 2, 29))
        )

        assert [o.sub_order_id for o in report.orders] == ["S-2"]

    def test_empty(self):
        report = compute_profit_loss([], {}, date_range=ALL_2024)

        assert report.orders == ()
        assert report.aggregate.margin == Decimal("0")
        assert report.sku_months == ()

    def test_deterministic(self):
        timelines = {"a": _timeline((0, "3.333", "0.5"))}
        settlements = [_settlement(f"S-{i}", "A", i, "9.99") for i in range(10)]

        first = compute_profit_loss(settlements, timelines, date_range=ALL_2024)
        second = compute_profit_loss(list(reversed(settlements)), timelines, date_range=ALL_2024)

        assert first.aggregate == second.aggregate
        assert first.sku_months == second.sku_months

    def test_emits_engine_trace(self, captured_logs):
        compute_profit_loss([], {}, date_range=ALL_2024)

        traces = [r for r in captured_logs() if r["message"] == "engine_trace"]
        assert traces[-1]["engine_name"] == "valuation"
        assert len(traces[-1]["input_fingerprint"]) == 16


class TestSkuMonthTable:
    def test_grouping_and_order(self):
        timelines = {"a": _timeline((0, "10", "1")), "b": _timeline((0, "5", "1"))}
        settlements = [
            _settlement("S-1", "B", 2, "20", quantity="2", status="delivered"),
            _settlement("S-2", "A", 3, "30", quantity="1", status="shipped"),
            _settlement("S-3", "A", 40, "30", quantity="1", status="delivered"),
            _settlement("S-4", "a", 41, "-3", quantity="1", status="return"),
            _settlement("S-5", "Z", 42, "7", quantity="3", status="delivered"),
        ]

        rows = compute_profit_loss(settlements, timelines, date_range=ALL_2024).sku_months

        assert [(r.month, r.sku) for r in rows] == [
            ("2024-02", "A"),
            ("2024-02", "Z"),
            ("2024-01", "A"),
            ("2024-01", "B"),
        ]
        feb_a = rows[0]
        assert feb_a.units == Decimal("2")
        assert feb_a.delivered_units == Decimal("1")
        assert feb_a.returned_units == Decimal("1")
        assert feb_a.net_amount == Decimal("27")
        assert feb_a.cogs == Decimal("11")
        assert feb_a.profit == Decimal("16")
        assert feb_a.cost_per_unit == Decimal("5.50")
        assert feb_a.asp_per_unit == Decimal("13.50")

        feb_z = rows[1]
        assert feb_z.unmatched_units == Decimal("3")
        assert feb_z.net_amount == Decimal("7")
        assert feb_z.cogs == Decimal("0")

        jan_a = rows[2]
        assert jan_a.in_transit_units == Decimal("1")

    def test_rows_tie_back_to_aggregate(self):
        timelines = {"a": _timeline((0, "4", "1"))}
        settlements = [_settlement(f"S-{i}", "A", i * 7, "12", status="delivered") for i in range(8)]

        report = compute_profit_loss(settlements, timelines, date_range=ALL_2024)

        assert sum(r.cogs for r in report.sku_months) == report.aggregate.cogs
        assert sum(r.net_amount for r in report.sku_months) == report.aggregate.total_settlement


def test_aggregate_of_nothing():
    aggregate = aggregate_valuations([])

    assert aggregate.revenue == Decimal("0")
    assert aggregate.unmatched_skus == ()
