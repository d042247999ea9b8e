"""
Valuation - point-in-time cost lookup and profit/loss over settlements.

Pure: ValuationService (inventory_services) loads the snapshot history.
"""

from inventory_engines.valuation.profit_loss import (
    aggregate_valuations,
    compute_profit_loss,
    sku_month_table,
    value_settlement,
)
from inventory_engines.valuation.records import (
    CostBasis,
    OrderStatus,
    OrderValuation,
    ProfitLossReport,
    ReturnRecord,
    SettlementRecord,
    SkuMonthRow,
    ValuationAggregate,
)
from inventory_engines.valuation.status import (
    DamageRules,
    StatusRules,
    attributed_expense,
    build_damage_lookup,
    is_damaged_return,
    margin_percent,
)
from inventory_engines.valuation.timeline import SnapshotTimeline

__all__ = [
    "CostBasis",
    "DamageRules",
    "OrderStatus",
    "OrderValuation",
    "ProfitLossReport",
    "ReturnRecord",
    "SettlementRecord",
    "SkuMonthRow",
    "SnapshotTimeline",
    "StatusRules",
    "ValuationAggregate",
    "aggregate_valuations",
    "attributed_expense",
    "build_damage_lookup",
    "compute_profit_loss",
    "is_damaged_return",
    "margin_percent",
    "sku_month_table",
    "value_settlement",
]
