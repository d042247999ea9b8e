"""
OrderIngestor -- store marketplace orders for later fulfillment.

Responsibility:
    Persists OrderRecords from validated OrderCommands, skipping orders whose
    external id is already stored for the tenant, and queues skus that match
    neither a mapping nor an inventory item.  Stock is NOT touched here;
    FulfillmentResolver does that.

Failure modes:
    - Malformed payloads and orders without lines are reported as
      IngestionError entries, never raised.
    - DuplicateOrderError: ``ingest_one`` only, for an already stored id.
    - PersistenceError: database failure; the whole batch is rolled back.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.commands import OrderCommand
from inventory_kernel.domain.dtos import (
    IngestionError,
    IngestionResult,
    UnresolvedSkuInfo,
)
from inventory_kernel.domain.values import normalize_sku
from inventory_kernel.exceptions import (
    DuplicateOrderError,
    InvalidFieldError,
    InvalidInputError,
    MissingFieldError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.order import OrderLineItem, OrderRecord
from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    emit_safely,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sku_resolution import SkuResolver, record_unresolved_sku

logger = get_logger("services.order_ingestor")


class OrderIngestor(BaseService[OrderRecord]):
    """Idempotent order intake."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        super().__init__(session, clock)
        self._audit_sink = audit_sink or LoggingAuditSink()

    def _existing_ids(self, tenant_id: str, external_ids: set[str]) -> set[str]:
        if not external_ids:
            return set()
        return set(
            self.session.execute(
                select(OrderRecord.external_order_id).where(
                    OrderRecord.tenant_id == tenant_id,
                    OrderRecord.external_order_id.in_(external_ids),
                )
            ).scalars()
        )

    def _next_sequence(self, tenant_id: str) -> int:
        current = self.session.execute(
            select(func.max(OrderRecord.sequence)).where(
                OrderRecord.tenant_id == tenant_id
            )
        ).scalar()
        return (current or 0) + 1

    def ingest(
        self,
        tenant_id: str,
        commands: Iterable[OrderCommand],
        actor_id: UUID,
    ) -> IngestionResult:
        """
        Store new orders and queue their unresolvable skus.

        Orders are stored in the given order; that order is the ingestion
        sequence ``resolve_pending`` follows.
        """
        commands = list(commands)
        saved: list[UUID] = []
        skipped: list[str] = []
        errors: list[IngestionError] = []
        unresolved: list[UnresolvedSkuInfo] = []
        seen_unresolved: set[tuple[str, str]] = set()

        with self._atomic("ingest_orders"):
            existing = self._existing_ids(
                tenant_id, {c.external_order_id.strip() for c in commands}
            )
            sequence = self._next_sequence(tenant_id)
            accepted: list[OrderCommand] = []
            new_orders: list[OrderRecord] = []

            for command in commands:
                external_id = command.external_order_id.strip()
                if command.tenant_id != tenant_id:
                    errors.append(
                        IngestionError(
                            external_id, "INVALID_FIELD", "order belongs to another tenant"
                        )
                    )
                    continue
                if not command.lines:
                    errors.append(
                        IngestionError(external_id, "MISSING_FIELD", "order has no line items")
                    )
                    continue
                if external_id in existing:
                    skipped.append(external_id)
                    continue
                existing.add(external_id)

                order = OrderRecord(
                    tenant_id=tenant_id,
                    external_order_id=external_id,
                    order_date=command.order_date,
                    sequence=sequence,
                    fulfillment_applied=False,
                    created_by_id=actor_id,
                )
                order.lines = [
                    OrderLineItem(
                        line_number=number,
                        sku=line.sku.strip(),
                        quantity=line.quantity,
                        sub_order_id=line.sub_order_id,
                    )
                    for number, line in enumerate(command.lines, start=1)
                ]
                self.session.add(order)
                sequence += 1
                accepted.append(command)
                new_orders.append(order)

            self.session.flush()
            saved = [o.id for o in new_orders]

            resolver = SkuResolver(
                self.session,
                tenant_id,
                (line.sku for c in accepted for line in c.lines),
            )
            for command in accepted:
                external_id = command.external_order_id.strip()
                for line in command.lines:
                    if resolver.resolve(line.sku) is not None:
                        continue
                    record_unresolved_sku(
                        self.session, tenant_id, line.sku, external_id, actor_id
                    )
                    key = (normalize_sku(line.sku), external_id)
                    if key not in seen_unresolved:
                        seen_unresolved.add(key)
                        unresolved.append(UnresolvedSkuInfo(line.sku.strip(), external_id))

        result = IngestionResult(
            saved=tuple(saved),
            skipped=tuple(skipped),
            unresolved_skus=tuple(unresolved),
            errors=tuple(errors),
        )
        logger.info(
            "orders_ingested",
            extra={
                "tenant_id": tenant_id,
                "saved": len(result.saved),
                "skipped": len(result.skipped),
                "unresolved": len(result.unresolved_skus),
                "errors": len(result.errors),
            },
        )
        if result.saved:
            emit_safely(
                self._audit_sink,
                AuditEvent(
                    action=AuditAction.ORDERS_INGESTED,
                    entity_type="OrderBatch",
                    entity_id=None,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    occurred_at=self.clock.now(),
                    payload={"order_ids": [str(o) for o in result.saved]},
                ),
            )
        return result

    def ingest_one(self, command: OrderCommand, actor_id: UUID) -> UUID:
        """
        Store a single order, strictly.

        Raises:
            DuplicateOrderError: the external id is already stored.
            InvalidFieldError / MissingFieldError: what ``ingest`` would
                report as an IngestionError.
        """
        external_id = command.external_order_id.strip()
        if self._existing_ids(command.tenant_id, {external_id}):
            raise DuplicateOrderError(command.tenant_id, external_id)

        result = self.ingest(command.tenant_id, [command], actor_id)
        if result.errors:
            error = result.errors[0]
            if error.code == MissingFieldError.code:
                raise MissingFieldError("lines")
            raise InvalidFieldError("external_order_id", external_id, error.message)
        return result.saved[0]

    def ingest_payloads(
        self,
        tenant_id: str,
        payloads: Iterable[Mapping[str, Any]],
        actor_id: UUID,
    ) -> IngestionResult:
        """Parse loose payloads, then ``ingest`` the valid ones."""
        commands: list[OrderCommand] = []
        parse_errors: list[IngestionError] = []
        for payload in payloads:
            try:
                commands.append(OrderCommand.from_payload(tenant_id, payload))
            except InvalidInputError as exc:
                external_id = (
                    payload.get("external_order_id")
                    if isinstance(payload, Mapping)
                    else None
                )
                logger.warning(
                    "order_payload_rejected",
                    extra={"external_order_id": external_id, "error_code": exc.code},
                )
                parse_errors.append(
                    IngestionError(
                        str(external_id) if external_id is not None else None,
                        exc.code,
                        str(exc),
                    )
                )

        result = self.ingest(tenant_id, commands, actor_id)
        return IngestionResult(
            saved=result.saved,
            skipped=result.skipped,
            unresolved_skus=result.unresolved_skus,
            errors=tuple(parse_errors) + result.errors,
        )
