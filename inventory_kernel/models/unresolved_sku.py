"""
Module: inventory_kernel.models.unresolved_sku
Responsibility: Work-queue rows for sold SKUs that matched neither a mapping
    nor an inventory item, so an operator can create the missing mapping.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (tenant_id, sku_key, source_order_id) is unique; re-running
      fulfillment never duplicates a row.
    - status moves pending -> resolved when a mapping for the sku is created
      and back to pending when that mapping is deleted.
"""

from enum import Enum

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import SkuCode, TenantId


class UnresolvedSkuStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class UnresolvedSku(TrackedBase):
    """A sold SKU awaiting a mapping."""

    __tablename__ = "unresolved_skus"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "sku_key", "source_order_id", name="uq_unresolved_sku_order"
        ),
        Index("idx_unresolved_sku_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    sku: Mapped[SkuCode] = mapped_column(nullable=False)

    sku_key: Mapped[SkuCode] = mapped_column(nullable=False)

    source_order_id: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[UnresolvedSkuStatus] = mapped_column(
        String(16), nullable=False, default=UnresolvedSkuStatus.PENDING
    )

    def __repr__(self) -> str:
        return f"<UnresolvedSku {self.sku} order={self.source_order_id} {self.status}>"
