"""Domain models for the inventory kernel."""

from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.ledger import (
    ChangeReason,
    CostChangeRecord,
    StockChangeRecord,
)
from inventory_kernel.models.order import OrderLineItem, OrderRecord
from inventory_kernel.models.sku_mapping import (
    SkuMapping,
    SkuMappingComponent,
    SkuMappingSnapshot,
    SnapshotTrigger,
)
from inventory_kernel.models.unresolved_sku import UnresolvedSku, UnresolvedSkuStatus

__all__ = [
    "InventoryItem",
    "ChangeReason",
    "StockChangeRecord",
    "CostChangeRecord",
    "SkuMapping",
    "SkuMappingComponent",
    "SkuMappingSnapshot",
    "SnapshotTrigger",
    "OrderRecord",
    "OrderLineItem",
    "UnresolvedSku",
    "UnresolvedSkuStatus",
]
