"""
Module: inventory_kernel.models.order
Responsibility: ORM persistence for ingested marketplace orders and their
    line items, plus the flag that gates stock deduction.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (tenant_id, external_order_id) is unique.
    - fulfillment_applied flips False -> True exactly once, set by
      FulfillmentResolver in the same transaction as the deductions.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import SkuCode, TenantId


class OrderRecord(TrackedBase):
    """An order as received from a marketplace export."""

    __tablename__ = "order_records"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "external_order_id", name="uq_order_tenant_external_id"
        ),
        Index("idx_order_tenant_pending", "tenant_id", "fulfillment_applied"),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    external_order_id: Mapped[str] = mapped_column(String(255), nullable=False)

    order_date: Mapped[datetime] = mapped_column(nullable=False)

    # Ingestion order; resolve_pending walks orders by it
    sequence: Mapped[int] = mapped_column(nullable=False, default=0)

    fulfillment_applied: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    fulfilled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["OrderLineItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<OrderRecord {self.external_order_id} tenant={self.tenant_id}>"


class OrderLineItem(Base):
    """One sold SKU line of an order."""

    __tablename__ = "order_line_items"

    __table_args__ = (Index("idx_order_line_order", "order_id"),)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("order_records.id"), nullable=False
    )

    line_number: Mapped[int] = mapped_column(nullable=False)

    sku: Mapped[SkuCode] = mapped_column(nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    sub_order_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    order: Mapped[OrderRecord] = relationship(back_populates="lines")
