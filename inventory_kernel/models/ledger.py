"""
Module: inventory_kernel.models.ledger
Responsibility: Append-only stock and cost history for inventory items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - new_value == previous_value + delta, checked in the model constructor
      with exact Decimal arithmetic.
    - Records are never updated.  They are deleted only as part of their
      parent item's deletion (see inventory_kernel.db.immutability).

Audit relevance:
    These tables are the stock and cost ledger.  Replaying the deltas of an
    item in recorded_at order reproduces its current stock and cost.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import TenantId

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_item import InventoryItem


class ChangeReason(str, Enum):
    """Why a stock or cost value changed."""

    INITIAL = "initial"
    MANUAL_UPDATE = "manual-update"
    ORDER_FULFILLMENT = "order-fulfillment"


class _ChangeRecordMixin:
    """Columns shared by both history tables."""

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    delta: Mapped[Decimal] = mapped_column(nullable=False)

    previous_value: Mapped[Decimal] = mapped_column(nullable=False)

    new_value: Mapped[Decimal] = mapped_column(nullable=False)

    reason: Mapped[ChangeReason] = mapped_column(String(32), nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def _check_arithmetic(self) -> None:
        if self.previous_value + self.delta != self.new_value:
            raise ValueError(
                f"{type(self).__name__}: {self.previous_value} + {self.delta} "
                f"!= {self.new_value}"
            )


class StockChangeRecord(_ChangeRecordMixin, Base):
    """One immutable change of an item's stock quantity."""

    __tablename__ = "stock_change_records"

    __table_args__ = (
        Index("idx_stock_change_item", "item_id", "recorded_at"),
        Index("idx_stock_change_tenant", "tenant_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )

    item: Mapped["InventoryItem"] = relationship(back_populates="stock_changes")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._check_arithmetic()


class CostChangeRecord(_ChangeRecordMixin, Base):
    """One immutable change of an item's unit cost."""

    __tablename__ = "cost_change_records"

    __table_args__ = (
        Index("idx_cost_change_item", "item_id", "recorded_at"),
        Index("idx_cost_change_tenant", "tenant_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )

    item: Mapped["InventoryItem"] = relationship(back_populates="cost_changes")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._check_arithmetic()
