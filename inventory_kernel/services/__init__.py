"""Kernel services: the imperative shell around the domain core."""

from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    RecordingAuditSink,
)
from inventory_kernel.services.cascade_recalculator import CascadeRecalculator
from inventory_kernel.services.fulfillment_resolver import FulfillmentResolver
from inventory_kernel.services.inventory_service import (
    InventoryItemService,
    ItemUpdateResult,
)
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.mapping_graph import MappingGraph
from inventory_kernel.services.order_ingestor import OrderIngestor

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditSink",
    "LoggingAuditSink",
    "RecordingAuditSink",
    "CascadeRecalculator",
    "FulfillmentResolver",
    "InventoryItemService",
    "ItemUpdateResult",
    "LedgerStore",
    "MappingGraph",
    "OrderIngestor",
]
