"""
inventory_engines.valuation.records -- Value objects for profit/loss valuation.

Responsibility:
    Immutable inputs (settlements, returns, cost bases) and outputs
    (per-order valuations, the aggregate, monthly SKU rows) of the valuation
    engine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel.domain.

Invariants enforced:
    - Every amount and quantity is a ``Decimal``; floats are rejected.
    - Order dates are aware UTC datetimes.  A bare ``date`` means midnight
      UTC of that day, so cost changes later that day do not apply to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from inventory_kernel.domain.values import ZERO, to_decimal, utc


class OrderStatus(str, Enum):
    """Terminal status of a sold unit, as far as cost attribution cares."""

    DELIVERED = "delivered"
    SHIPPED = "shipped"
    RETURNED = "return"
    RTO = "rto"
    OTHER = "other"


def _as_utc_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


@dataclass(frozen=True)
class SettlementRecord:
    """One settled sub-order as reported by the marketplace."""

    sub_order_id: str
    sku: str
    quantity: Decimal
    settlement_amount: Decimal
    order_date: datetime
    live_status: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "sub_order_id", (self.sub_order_id or "").strip())
        object.__setattr__(self, "sku", (self.sku or "").strip())
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        object.__setattr__(self, "settlement_amount", to_decimal(self.settlement_amount))
        object.__setattr__(self, "order_date", _as_utc_datetime(self.order_date))
        object.__setattr__(self, "live_status", self.live_status or "")
        if not self.quantity.is_finite() or self.quantity <= ZERO:
            raise ValueError(f"Settlement quantity must be positive, got {self.quantity}")
        if not self.settlement_amount.is_finite():
            raise ValueError("Settlement amount must be finite")


@dataclass(frozen=True)
class ReturnRecord:
    """Verification outcome of a returned sub-order."""

    sub_order_id: str
    verification_status: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CostBasis:
    """Per-unit costs in effect from ``recorded_at`` on."""

    recorded_at: datetime
    version: int
    manufacturing_cost: Decimal
    packaging_cost: Decimal

    @classmethod
    def from_snapshot(cls, snapshot) -> CostBasis:
        """Build from any object exposing the snapshot attributes (e.g. SnapshotInfo)."""
        return cls(
            recorded_at=utc(snapshot.recorded_at),
            version=snapshot.version,
            manufacturing_cost=snapshot.manufacturing_cost,
            packaging_cost=snapshot.packaging_cost,
        )


@dataclass(frozen=True)
class OrderValuation:
    """
    Profit/loss of one settlement.

    ``matched`` is False when the sku has no cost history; the cost fields,
    ``expense``, ``profit`` and ``margin`` are then ``None``.
    """

    sub_order_id: str
    sku: str
    quantity: Decimal
    order_date: datetime
    status: OrderStatus
    damaged: bool
    settlement_amount: Decimal
    matched: bool
    manufacturing_cost: Decimal | None = None
    packaging_cost: Decimal | None = None
    cost_recorded_at: datetime | None = None
    expense: Decimal | None = None
    standard_cogs: Decimal | None = None
    profit: Decimal | None = None
    margin: Decimal | None = None


@dataclass(frozen=True)
class ValuationAggregate:
    """Totals over the matched orders of a report, plus unmatched counts."""

    revenue: Decimal = ZERO
    cogs: Decimal = ZERO
    standard_cogs: Decimal = ZERO
    profit: Decimal = ZERO
    margin: Decimal = ZERO
    matched_count: int = 0
    unmatched_count: int = 0
    unmatched_skus: tuple[str, ...] = ()
    total_settlement: Decimal = ZERO


@dataclass(frozen=True)
class SkuMonthRow:
    """Profit/loss of one sku within one calendar month (``YYYY-MM``)."""

    month: str
    sku: str
    units: Decimal
    delivered_units: Decimal
    in_transit_units: Decimal
    returned_units: Decimal
    rto_units: Decimal
    unmatched_units: Decimal
    net_amount: Decimal
    cogs: Decimal
    profit: Decimal
    margin: Decimal
    cost_per_unit: Decimal
    asp_per_unit: Decimal


@dataclass(frozen=True)
class ProfitLossReport:
    orders: tuple[OrderValuation, ...] = ()
    aggregate: ValuationAggregate = field(default_factory=ValuationAggregate)
    sku_months: tuple[SkuMonthRow, ...] = ()
