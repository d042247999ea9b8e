"""
Module: inventory_kernel.models.sku_mapping
Responsibility: ORM persistence for the mapping graph: a sold SKU, the
    inventory items (with quantity per unit) it consumes, and the immutable
    cost snapshots recorded every time the mapping's costs were (re)computed.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (tenant_id, sku_key) is unique: one mapping per normalized sold SKU.
    - manufacturing_cost is written only by MappingGraph and the cascade
      recalculator; it is never copied from caller input.
    - Components carry NO foreign key to inventory_items.  Deleting an item
      leaves a dangling component that contributes zero cost.
    - Snapshots are append-only and are deleted only with their mapping.
    - (sku_mapping_id, version) is unique; version grows by one per snapshot.

Audit relevance:
    SkuMappingSnapshot is the authority for historical valuation.  Profit and
    loss for an order is computed from the snapshot in force at order time,
    never from the mapping's current values.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import SkuCode, TenantId


class SnapshotTrigger(str, Enum):
    """What caused a snapshot to be recorded."""

    CREATED = "created"
    EDITED = "edited"
    CASCADE = "cascade"


class SkuMapping(TrackedBase):
    """
    A sold SKU resolved to one or more inventory components.

    Guarantees:
        - sku keeps the caller's spelling (trimmed); sku_key is the
          normalized form used for uniqueness and lookups.
        - last_version is the version of the newest snapshot.
    """

    __tablename__ = "sku_mappings"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku_key", name="uq_sku_mapping_tenant_sku"),
        Index("idx_sku_mapping_tenant", "tenant_id"),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    sku: Mapped[SkuCode] = mapped_column(nullable=False)

    sku_key: Mapped[SkuCode] = mapped_column(nullable=False)

    # Derived: sum(component unit_cost * quantity_per_unit)
    manufacturing_cost: Mapped[Decimal] = mapped_column(nullable=False)

    packaging_cost: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    last_version: Mapped[int] = mapped_column(nullable=False, default=0)

    components: Mapped[list["SkuMappingComponent"]] = relationship(
        back_populates="mapping",
        cascade="all, delete-orphan",
        order_by="SkuMappingComponent.position",
    )

    snapshots: Mapped[list["SkuMappingSnapshot"]] = relationship(
        back_populates="mapping",
        cascade="all, delete-orphan",
        order_by="SkuMappingSnapshot.version",
    )

    def __repr__(self) -> str:
        return f"<SkuMapping {self.sku} tenant={self.tenant_id}>"


class SkuMappingComponent(Base):
    """One (inventory item, quantity per unit) pair of a mapping."""

    __tablename__ = "sku_mapping_components"

    __table_args__ = (
        UniqueConstraint(
            "sku_mapping_id", "inventory_item_id", name="uq_sku_mapping_component"
        ),
        Index("idx_sku_mapping_component_item", "inventory_item_id"),
    )

    sku_mapping_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sku_mappings.id"), nullable=False
    )

    # Deliberately not a foreign key
    inventory_item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_per_unit: Mapped[Decimal] = mapped_column(nullable=False)

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    mapping: Mapped[SkuMapping] = relationship(back_populates="components")


class SkuMappingSnapshot(Base):
    """Immutable record of a mapping's costs at a point in time."""

    __tablename__ = "sku_mapping_snapshots"

    __table_args__ = (
        UniqueConstraint(
            "sku_mapping_id", "version", name="uq_sku_mapping_snapshot_version"
        ),
        Index("idx_sku_snapshot_lookup", "tenant_id", "sku_key", "recorded_at"),
    )

    sku_mapping_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sku_mappings.id"), nullable=False
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)

    sku: Mapped[SkuCode] = mapped_column(nullable=False)

    sku_key: Mapped[SkuCode] = mapped_column(nullable=False)

    manufacturing_cost: Mapped[Decimal] = mapped_column(nullable=False)

    packaging_cost: Mapped[Decimal] = mapped_column(nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    version: Mapped[int] = mapped_column(nullable=False)

    trigger: Mapped[SnapshotTrigger] = mapped_column(String(16), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    mapping: Mapped[SkuMapping] = relationship(back_populates="snapshots")
