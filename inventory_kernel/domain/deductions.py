"""
Batch deduction accumulator for the fulfillment resolver.

Deductions from every order in a batch are summed per inventory item so that
each item receives exactly one stock record per batch.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.dtos import Deduction
from inventory_kernel.domain.values import ZERO


@dataclass
class _Pending:
    quantity: Decimal = ZERO
    orders: set[UUID] = field(default_factory=set)


class DeductionAccumulator:
    """Sums per-item deductions across a batch, preserving first-seen order."""

    def __init__(self) -> None:
        self._pending: dict[UUID, _Pending] = {}

    def add(self, item_id: UUID, quantity: Decimal, order_id: UUID) -> None:
        if quantity <= ZERO:
            raise ValueError(f"Deduction must be positive, got {quantity}")
        pending = self._pending.setdefault(item_id, _Pending())
        pending.quantity += quantity
        pending.orders.add(order_id)

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        return bool(self._pending)

    def deductions(self) -> list[Deduction]:
        return [
            Deduction(item_id=item_id, quantity=p.quantity, order_count=len(p.orders))
            for item_id, p in self._pending.items()
        ]
