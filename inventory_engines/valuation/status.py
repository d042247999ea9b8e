"""
inventory_engines.valuation.status -- Status classification and expense rules.

Responsibility:
    Map a marketplace ``live_status`` string to an OrderStatus, decide
    whether a return was damaged, and attribute the expense of a sold unit
    from its status and cost basis.

Expense rules (per settlement, ``qty`` units):
    delivered, shipped         manufacturing_cost * qty
    return, rto (undamaged)    packaging_cost * qty
    return, rto (damaged)      (packaging_cost + manufacturing_cost) * qty
    anything else              0

Matching is a case-insensitive substring test, tried in the order
delivered, shipped, return, rto; the first hit wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from inventory_engines.valuation.records import CostBasis, OrderStatus, ReturnRecord
from inventory_kernel.domain.values import ZERO, round_report


def _keywords(values: Iterable[str]) -> tuple[str, ...]:
    cleaned = tuple(v.strip().lower() for v in values if v and v.strip())
    if not cleaned:
        raise ValueError("At least one non-blank keyword is required")
    return cleaned


@dataclass(frozen=True)
class StatusRules:
    """Keywords that identify each terminal status."""

    delivered: tuple[str, ...] = ("delivered",)
    shipped: tuple[str, ...] = ("shipped",)
    returned: tuple[str, ...] = ("return",)
    rto: tuple[str, ...] = ("rto",)

    def __post_init__(self) -> None:
        for name in ("delivered", "shipped", "returned", "rto"):
            object.__setattr__(self, name, _keywords(getattr(self, name)))

    def classify(self, live_status: str | None) -> OrderStatus:
        status = (live_status or "").lower()
        for result, keywords in (
            (OrderStatus.DELIVERED, self.delivered),
            (OrderStatus.SHIPPED, self.shipped),
            (OrderStatus.RETURNED, self.returned),
            (OrderStatus.RTO, self.rto),
        ):
            if any(keyword in status for keyword in keywords):
                return result
        return OrderStatus.OTHER


@dataclass(frozen=True)
class DamageRules:
    """
    When a return counts as damaged.

    A return is damaged if its verification status contains a damage
    keyword or equals one of ``lost_statuses``, or its notes contain a
    damage keyword.
    """

    damage_keywords: tuple[str, ...] = ("damaged",)
    lost_statuses: tuple[str, ...] = ("undelivered",)

    def __post_init__(self) -> None:
        object.__setattr__(self, "damage_keywords", _keywords(self.damage_keywords))
        object.__setattr__(
            self,
            "lost_statuses",
            tuple(s.strip().lower() for s in self.lost_statuses if s and s.strip()),
        )


DEFAULT_STATUS_RULES = StatusRules()
DEFAULT_DAMAGE_RULES = DamageRules()


def is_damaged_return(
    verification_status: str | None,
    notes: str | None = None,
    rules: DamageRules = DEFAULT_DAMAGE_RULES,
) -> bool:
    status = (verification_status or "").strip().lower()
    text = (notes or "").lower()
    if status in rules.lost_statuses:
        return True
    return any(k in status or k in text for k in rules.damage_keywords)


def build_damage_lookup(
    returns: Iterable[ReturnRecord],
    rules: DamageRules = DEFAULT_DAMAGE_RULES,
) -> dict[str, bool]:
    """Sub-order id -> damaged flag.  A later record for the same id wins."""
    return {
        r.sub_order_id.strip(): is_damaged_return(r.verification_status, r.notes, rules)
        for r in returns
        if r.sub_order_id and r.sub_order_id.strip()
    }


def lookup_damaged(damage_lookup: Mapping[str, bool], sub_order_id: str) -> bool:
    if not sub_order_id:
        return False
    return bool(damage_lookup.get(sub_order_id.strip(), False))


def attributed_expense(
    status: OrderStatus,
    basis: CostBasis,
    quantity: Decimal,
    damaged: bool,
) -> Decimal:
    """Expense of ``quantity`` units in ``status`` valued at ``basis``."""
    if status in (OrderStatus.DELIVERED, OrderStatus.SHIPPED):
        return basis.manufacturing_cost * quantity
    if status in (OrderStatus.RETURNED, OrderStatus.RTO):
        if damaged:
            return (basis.packaging_cost + basis.manufacturing_cost) * quantity
        return basis.packaging_cost * quantity
    return ZERO


def margin_percent(profit: Decimal, settlement: Decimal) -> Decimal:
    """``profit / |settlement| * 100`` rounded to 2 places; 0 when settlement is 0."""
    if settlement == ZERO:
        return round_report(ZERO)
    return round_report(profit / abs(settlement) * Decimal(100))
