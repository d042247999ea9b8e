"""
inventory_engines.valuation.profit_loss -- Profit/loss over settlements.

Responsibility:
    Value each settlement in a date range at the cost basis in effect on
    its order date, then roll the results up into an aggregate and a
    monthly per-sku table.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ValuationService loads
    the snapshot history and hands it in as SnapshotTimelines.

Invariants enforced:
    - Historical cost only: a settlement is valued with
      ``timeline.at(order_date)``, never with the mapping's live cost.
    - Unmatched settlements (sku without history) are counted, listed and
      excluded from revenue, COGS and profit; they are never valued at zero.
    - ``total_settlement`` sums every settlement in range, matched or not.
    - Deterministic: identical inputs give identical reports.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from inventory_engines.periods import DateRange
from inventory_engines.tracer import traced_engine
from inventory_engines.valuation.records import (
    OrderStatus,
    OrderValuation,
    ProfitLossReport,
    SettlementRecord,
    SkuMonthRow,
    ValuationAggregate,
)
from inventory_engines.valuation.status import (
    DEFAULT_STATUS_RULES,
    StatusRules,
    attributed_expense,
    lookup_damaged,
    margin_percent,
)
from inventory_engines.valuation.timeline import SnapshotTimeline
from inventory_kernel.domain.values import ZERO, normalize_sku, round_report
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.profit_loss")


def value_settlement(
    settlement: SettlementRecord,
    timeline: SnapshotTimeline | None,
    damaged: bool,
    rules: StatusRules = DEFAULT_STATUS_RULES,
) -> OrderValuation:
    """Value one settlement.  An empty or missing timeline yields an unmatched valuation."""
    status = rules.classify(settlement.live_status)
    basis = timeline.at(settlement.order_date) if timeline else None
    common = dict(
        sub_order_id=settlement.sub_order_id,
        sku=settlement.sku,
        quantity=settlement.quantity,
        order_date=settlement.order_date,
        status=status,
        damaged=damaged,
        settlement_amount=settlement.settlement_amount,
    )
    if basis is None:
        return OrderValuation(matched=False, **common)

    expense = attributed_expense(status, basis, settlement.quantity, damaged)
    profit = settlement.settlement_amount - expense
    return OrderValuation(
        matched=True,
        manufacturing_cost=basis.manufacturing_cost,
        packaging_cost=basis.packaging_cost,
        cost_recorded_at=basis.recorded_at,
        expense=expense,
        standard_cogs=basis.manufacturing_cost * settlement.quantity,
        profit=profit,
        margin=margin_percent(profit, settlement.settlement_amount),
        **common,
    )


def aggregate_valuations(orders: Iterable[OrderValuation]) -> ValuationAggregate:
    revenue = cogs = standard_cogs = total_settlement = ZERO
    matched = 0
    unmatched_skus: dict[str, str] = {}
    unmatched = 0
    for order in orders:
        total_settlement += order.settlement_amount
        if not order.matched:
            unmatched += 1
            unmatched_skus.setdefault(normalize_sku(order.sku), order.sku)
            continue
        matched += 1
        revenue += order.settlement_amount
        cogs += order.expense
        standard_cogs += order.standard_cogs

    profit = revenue - cogs
    return ValuationAggregate(
        revenue=revenue,
        cogs=cogs,
        standard_cogs=standard_cogs,
        profit=profit,
        margin=margin_percent(profit, revenue),
        matched_count=matched,
        unmatched_count=unmatched,
        unmatched_skus=tuple(sorted(unmatched_skus.values(), key=normalize_sku)),
        total_settlement=total_settlement,
    )


def _per_unit(amount: Decimal, units: Decimal) -> Decimal:
    if units == ZERO:
        return round_report(ZERO)
    return round_report(amount / units)


def sku_month_table(orders: Iterable[OrderValuation]) -> tuple[SkuMonthRow, ...]:
    """
    Monthly per-sku breakdown, newest month first, then by sku.

    Unmatched settlements count towards ``units``, ``unmatched_units`` and
    ``net_amount`` but contribute nothing to ``cogs``.
    """
    buckets: dict[tuple[str, str], dict] = {}
    for order in orders:
        month = order.order_date.strftime("%Y-%m")
        key = (month, normalize_sku(order.sku))
        bucket = buckets.setdefault(
            key,
            {
                "sku": order.sku,
                "units": ZERO,
                OrderStatus.DELIVERED: ZERO,
                OrderStatus.SHIPPED: ZERO,
                OrderStatus.RETURNED: ZERO,
                OrderStatus.RTO: ZERO,
                OrderStatus.OTHER: ZERO,
                "unmatched": ZERO,
                "net": ZERO,
                "cogs": ZERO,
            },
        )
        bucket["units"] += order.quantity
        bucket[order.status] += order.quantity
        bucket["net"] += order.settlement_amount
        if order.matched:
            bucket["cogs"] += order.expense
        else:
            bucket["unmatched"] += order.quantity

    rows = []
    for (month, _), b in buckets.items():
        profit = b["net"] - b["cogs"]
        rows.append(
            SkuMonthRow(
                month=month,
                sku=b["sku"],
                units=b["units"],
                delivered_units=b[OrderStatus.DELIVERED],
                in_transit_units=b[OrderStatus.SHIPPED],
                returned_units=b[OrderStatus.RETURNED],
                rto_units=b[OrderStatus.RTO],
                unmatched_units=b["unmatched"],
                net_amount=b["net"],
                cogs=b["cogs"],
                profit=profit,
                margin=margin_percent(profit, b["net"]),
                cost_per_unit=_per_unit(b["cogs"], b["units"]),
                asp_per_unit=_per_unit(b["net"], b["units"]),
            )
        )
    rows.sort(key=lambda r: normalize_sku(r.sku))
    rows.sort(key=lambda r: r.month, reverse=True)
    return tuple(rows)


@traced_engine("valuation", "1.0", fingerprint_fields=("date_range",))
def compute_profit_loss(
    settlements: Iterable[SettlementRecord],
    timelines: Mapping[str, SnapshotTimeline],
    date_range: DateRange,
    damage_lookup: Mapping[str, bool] | None = None,
    rules: StatusRules = DEFAULT_STATUS_RULES,
) -> ProfitLossReport:
    """
    Profit/loss of the settlements whose order date falls in ``date_range``.

    Args:
        timelines: Cost history keyed by normalized sku.
        damage_lookup: Sub-order id -> damaged flag for returns.
    """
    damage_lookup = damage_lookup or {}
    orders = tuple(
        value_settlement(
            settlement,
            timelines.get(normalize_sku(settlement.sku)),
            lookup_damaged(damage_lookup, settlement.sub_order_id),
            rules,
        )
        for settlement in settlements
        if date_range.contains(settlement.order_date)
    )
    aggregate = aggregate_valuations(orders)
    if aggregate.unmatched_count:
        logger.warning(
            "valuation_unmatched_skus",
            extra={
                "unmatched_count": aggregate.unmatched_count,
                "unmatched_skus": list(aggregate.unmatched_skus),
            },
        )
    return ProfitLossReport(
        orders=orders,
        aggregate=aggregate,
        sku_months=sku_month_table(orders),
    )
