"""
Audit event emission.

Responsibility:
    Builds one ``AuditEvent`` per successful mutating operation and hands it
    to an ``AuditSink``.  Writing the audit log is the sink's concern; the
    kernel only emits.

Failure modes:
    - A failing sink is logged (``audit_sink_failed``) and never propagates:
      the mutation it describes has already succeeded.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from inventory_kernel.logging_config import get_logger

logger = get_logger("services.audit")


class AuditAction(str, Enum):
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    STOCK_CHANGED = "stock_changed"
    COST_CHANGED = "cost_changed"
    MAPPING_CREATED = "mapping_created"
    MAPPING_UPDATED = "mapping_updated"
    MAPPING_DELETED = "mapping_deleted"
    MAPPING_RECALCULATED = "mapping_recalculated"
    ORDERS_INGESTED = "orders_ingested"
    FULFILLMENT_APPLIED = "fulfillment_applied"


@dataclass(frozen=True)
class AuditEvent:
    action: AuditAction
    entity_type: str
    entity_id: UUID | None
    tenant_id: str
    actor_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class AuditSink(ABC):
    """Destination for audit events (database table, queue, file...)."""

    @abstractmethod
    def emit(self, event: AuditEvent) -> None:
        ...


class LoggingAuditSink(AuditSink):
    """Default sink: one structured ``audit_event`` log line per event."""

    def emit(self, event: AuditEvent) -> None:
        logger.info(
            "audit_event",
            extra={
                "action": event.action.value,
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id) if event.entity_id else None,
                "audit_tenant_id": event.tenant_id,
                "audit_actor_id": str(event.actor_id),
                "occurred_at": event.occurred_at,
                "payload": event.payload,
            },
        )


class RecordingAuditSink(AuditSink):
    """Keeps events in memory.  Used by tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[AuditAction]:
        return [e.action for e in self.events]


def emit_safely(sink: AuditSink, event: AuditEvent) -> None:
    """Emit to the sink; log and continue if the sink raises."""
    try:
        sink.emit(event)
    except Exception:
        logger.warning(
            "audit_sink_failed",
            extra={
                "action": event.action.value,
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id) if event.entity_id else None,
            },
            exc_info=True,
        )
