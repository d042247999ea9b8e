"""
Module: inventory_kernel.models.inventory_item
Responsibility: ORM persistence for the current state of a raw inventory item
    (unit cost and quantity on hand) owned by one tenant.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - unit_cost and stock_quantity are only mutated by LedgerStore, which
      appends a matching history record in the same savepoint.
    - Deleting an item deletes its stock and cost history through the
      relationship cascade (the only sanctioned history delete).

Failure modes:
    - IntegrityError if tenant_id or name is missing.

Audit relevance:
    The item is the anchor for every StockChangeRecord and CostChangeRecord.
    Its current values must always equal the new_value of its latest records.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import TenantId

if TYPE_CHECKING:
    from inventory_kernel.models.ledger import CostChangeRecord, StockChangeRecord


class InventoryItem(TrackedBase):
    """
    Raw inventory item with its current unit cost and stock level.

    Guarantees:
        - Every row belongs to exactly one tenant.
        - History relationships are append-only; they are loaded newest last.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("idx_inventory_item_tenant", "tenant_id"),
        Index("idx_inventory_item_tenant_code_key", "tenant_id", "code_key"),
        Index("idx_inventory_item_tenant_name_key", "tenant_id", "name_key"),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    # Optional identifier; a sold SKU equal to it resolves to this item
    code: Mapped[str | None] = mapped_column(String(255), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Normalized sold-SKU keys of code and name, written by LedgerStore
    code_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    name_key: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    stock_quantity: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    stock_changes: Mapped[list["StockChangeRecord"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=False,
        order_by="StockChangeRecord.recorded_at",
    )

    cost_changes: Mapped[list["CostChangeRecord"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=False,
        order_by="CostChangeRecord.recorded_at",
    )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name} tenant={self.tenant_id}>"
