"""
Data Transfer Objects returned by kernel services and selectors.

All DTOs are frozen dataclasses.  ORM instances never leave the kernel;
services convert them with ``from_model`` before returning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.exceptions import CascadePartialFailureError

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_item import InventoryItem
    from inventory_kernel.models.ledger import CostChangeRecord, StockChangeRecord
    from inventory_kernel.models.sku_mapping import SkuMapping, SkuMappingSnapshot


# =============================================================================
# Ledger
# =============================================================================


@dataclass(frozen=True)
class InventoryItemInfo:
    id: UUID
    tenant_id: str
    name: str
    code: str | None
    category: str | None
    description: str | None
    unit_cost: Decimal
    stock_quantity: Decimal

    @classmethod
    def from_model(cls, item: InventoryItem) -> InventoryItemInfo:
        return cls(
            id=item.id,
            tenant_id=item.tenant_id,
            name=item.name,
            code=item.code,
            category=item.category,
            description=item.description,
            unit_cost=item.unit_cost,
            stock_quantity=item.stock_quantity,
        )


@dataclass(frozen=True)
class ChangeRecordInfo:
    """One immutable ledger record.  ``new_value == previous_value + delta``."""

    id: UUID
    item_id: UUID
    tenant_id: str
    delta: Decimal
    previous_value: Decimal
    new_value: Decimal
    reason: str
    note: str | None
    recorded_at: datetime
    actor_id: UUID

    @classmethod
    def from_model(cls, record: StockChangeRecord | CostChangeRecord):
        return cls(
            id=record.id,
            item_id=record.item_id,
            tenant_id=record.tenant_id,
            delta=record.delta,
            previous_value=record.previous_value,
            new_value=record.new_value,
            reason=str(getattr(record.reason, "value", record.reason)),
            note=record.note,
            recorded_at=record.recorded_at,
            actor_id=record.actor_id,
        )


@dataclass(frozen=True)
class StockChangeInfo(ChangeRecordInfo):
    pass


@dataclass(frozen=True)
class CostChangeInfo(ChangeRecordInfo):
    pass


# =============================================================================
# Mapping graph
# =============================================================================


@dataclass(frozen=True)
class ComponentInfo:
    inventory_item_id: UUID
    quantity_per_unit: Decimal


@dataclass(frozen=True)
class SkuMappingInfo:
    id: UUID
    tenant_id: str
    sku: str
    manufacturing_cost: Decimal
    packaging_cost: Decimal
    components: tuple[ComponentInfo, ...]
    last_version: int

    @classmethod
    def from_model(cls, mapping: SkuMapping) -> SkuMappingInfo:
        return cls(
            id=mapping.id,
            tenant_id=mapping.tenant_id,
            sku=mapping.sku,
            manufacturing_cost=mapping.manufacturing_cost,
            packaging_cost=mapping.packaging_cost,
            components=tuple(
                ComponentInfo(c.inventory_item_id, c.quantity_per_unit)
                for c in mapping.components
            ),
            last_version=mapping.last_version,
        )


@dataclass(frozen=True)
class SnapshotInfo:
    """Costs of a mapping as recorded at ``recorded_at``."""

    id: UUID
    sku_mapping_id: UUID
    tenant_id: str
    sku: str
    manufacturing_cost: Decimal
    packaging_cost: Decimal
    recorded_at: datetime
    version: int
    trigger: str

    @classmethod
    def from_model(cls, snapshot: SkuMappingSnapshot) -> SnapshotInfo:
        return cls(
            id=snapshot.id,
            sku_mapping_id=snapshot.sku_mapping_id,
            tenant_id=snapshot.tenant_id,
            sku=snapshot.sku,
            manufacturing_cost=snapshot.manufacturing_cost,
            packaging_cost=snapshot.packaging_cost,
            recorded_at=snapshot.recorded_at,
            version=snapshot.version,
            trigger=str(getattr(snapshot.trigger, "value", snapshot.trigger)),
        )


# =============================================================================
# Cascade
# =============================================================================


@dataclass(frozen=True)
class CascadeFailure:
    mapping_id: UUID
    error: str


@dataclass(frozen=True)
class CascadeResult:
    """
    Outcome of recalculating every mapping that references one item.

    Failures are per mapping; the mappings listed in ``updated_mapping_ids``
    were written regardless.
    """

    item_id: UUID
    updated_mapping_ids: tuple[UUID, ...] = ()
    unchanged_mapping_ids: tuple[UUID, ...] = ()
    failures: tuple[CascadeFailure, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise CascadePartialFailureError if any mapping failed."""
        if self.failures:
            raise CascadePartialFailureError(
                item_id=str(self.item_id),
                mapping_ids=[str(f.mapping_id) for f in self.failures],
            )


# =============================================================================
# Fulfillment and ingestion
# =============================================================================


@dataclass(frozen=True)
class Deduction:
    """Net stock removed from one item by one fulfillment batch."""

    item_id: UUID
    quantity: Decimal
    order_count: int


@dataclass(frozen=True)
class StockShortfall:
    """A deduction that was clamped at the stock floor."""

    item_id: UUID
    requested: Decimal
    applied: Decimal
    shortfall: Decimal


@dataclass(frozen=True)
class UnresolvedSkuInfo:
    sku: str
    source_order_id: str


@dataclass(frozen=True)
class FulfillmentResult:
    applied_orders: tuple[UUID, ...] = ()
    skipped_orders: tuple[UUID, ...] = ()
    unresolved_skus: tuple[UnresolvedSkuInfo, ...] = ()
    deductions: tuple[Deduction, ...] = ()
    shortfalls: tuple[StockShortfall, ...] = ()


@dataclass(frozen=True)
class IngestionError:
    external_order_id: str | None
    code: str
    message: str


@dataclass(frozen=True)
class IngestionResult:
    saved: tuple[UUID, ...] = ()
    skipped: tuple[str, ...] = ()
    unresolved_skus: tuple[UnresolvedSkuInfo, ...] = ()
    errors: tuple[IngestionError, ...] = field(default_factory=tuple)
