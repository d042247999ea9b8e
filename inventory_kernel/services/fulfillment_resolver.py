"""
FulfillmentResolver -- apply stock deductions for a batch of orders.

Responsibility:
    Resolves every line of every order in a batch to inventory components,
    sums the deductions per item across the whole batch, and writes exactly
    one ``order-fulfillment`` StockChangeRecord per affected item.

Architecture position:
    Kernel > Services -- orchestrates SkuResolver and LedgerStore.

Invariants enforced:
    - An order's deductions are applied at most once: ``fulfillment_applied``
      is set in the same transaction as the stock records, and applied
      orders are skipped on re-runs.
    - One stock record per item per batch, whatever the number of lines.
    - Stock never drops below the configured floor on this path.  The
      clamped amount is kept in the record's note, logged as
      ``fulfillment_stock_shortfall``, and returned as a StockShortfall.
    - Unresolved skus are data, never errors.

Failure modes:
    - OrderNotFoundError: an order id is missing for the tenant.
    - PersistenceError: database failure; the whole batch is rolled back.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.deductions import DeductionAccumulator
from inventory_kernel.domain.dtos import (
    Deduction,
    FulfillmentResult,
    StockShortfall,
    UnresolvedSkuInfo,
)
from inventory_kernel.domain.values import ZERO, normalize_sku
from inventory_kernel.exceptions import OrderNotFoundError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.ledger import ChangeReason
from inventory_kernel.models.order import OrderRecord
from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    emit_safely,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.sku_resolution import SkuResolver, record_unresolved_sku

logger = get_logger("services.fulfillment")


class FulfillmentResolver(BaseService[OrderRecord]):
    """Batch order -> inventory deduction resolver."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
        stock_floor: Decimal = ZERO,
    ):
        super().__init__(session, clock)
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._ledger = LedgerStore(session, self.clock)
        self.stock_floor = stock_floor

    def _load_orders(self, tenant_id: str, order_ids: Sequence[UUID]) -> list[OrderRecord]:
        found = {
            o.id: o
            for o in self.session.execute(
                select(OrderRecord)
                .options(selectinload(OrderRecord.lines))
                .where(OrderRecord.tenant_id == tenant_id, OrderRecord.id.in_(order_ids))
                .with_for_update()
            ).scalars()
        }
        for order_id in order_ids:
            if order_id not in found:
                raise OrderNotFoundError(str(order_id), tenant_id)
        return [found[order_id] for order_id in order_ids]

    def _apply_deduction(
        self, tenant_id: str, deduction: Deduction, actor_id: UUID
    ) -> StockShortfall | None:
        current = self._ledger.lock_item(tenant_id, deduction.item_id)
        requested = deduction.quantity
        available = max(current.stock_quantity - self.stock_floor, ZERO)
        applied = min(requested, available)

        note = f"Deducted for {deduction.order_count} order(s)"
        shortfall = None
        if applied < requested:
            shortfall = StockShortfall(
                item_id=deduction.item_id,
                requested=requested,
                applied=applied,
                shortfall=requested - applied,
            )
            note += f"; requested {requested}, clamped at stock floor {self.stock_floor}"
            logger.warning(
                "fulfillment_stock_shortfall",
                extra={
                    "item_id": str(deduction.item_id),
                    "tenant_id": tenant_id,
                    "requested": requested,
                    "applied": applied,
                    "shortfall": shortfall.shortfall,
                    "stock_floor": self.stock_floor,
                },
            )

        if applied > ZERO:
            self._ledger.apply_stock_change(
                tenant_id,
                deduction.item_id,
                -applied,
                ChangeReason.ORDER_FULFILLMENT,
                actor_id,
                note,
            )
        return shortfall

    def resolve_and_apply(
        self,
        tenant_id: str,
        order_ids: Iterable[UUID],
        actor_id: UUID,
    ) -> FulfillmentResult:
        """
        Apply the stock deductions of a batch of orders, in the given order.

        Orders already applied, and orders none of whose lines resolve, are
        reported in ``skipped_orders``.  The latter stay unapplied so a later
        run (after the missing mapping is created) picks them up.
        """
        order_ids = list(dict.fromkeys(order_ids))
        if not order_ids:
            return FulfillmentResult()

        applied_orders: list[UUID] = []
        skipped_orders: list[UUID] = []
        unresolved: list[UnresolvedSkuInfo] = []
        seen_unresolved: set[tuple[str, str]] = set()
        shortfalls: list[StockShortfall] = []
        accumulator = DeductionAccumulator()

        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id), self._atomic(
            "fulfillment_batch"
        ):
            orders = self._load_orders(tenant_id, order_ids)
            resolver = SkuResolver(
                self.session,
                tenant_id,
                (line.sku for order in orders for line in order.lines),
            )

            for order in orders:
                if order.fulfillment_applied:
                    skipped_orders.append(order.id)
                    continue

                resolved_any = False
                for line in order.lines:
                    resolution = resolver.resolve(line.sku)
                    if resolution is None:
                        record_unresolved_sku(
                            self.session,
                            tenant_id,
                            line.sku,
                            order.external_order_id,
                            actor_id,
                        )
                        key = (normalize_sku(line.sku), order.external_order_id)
                        if key not in seen_unresolved:
                            seen_unresolved.add(key)
                            unresolved.append(
                                UnresolvedSkuInfo(line.sku.strip(), order.external_order_id)
                            )
                        continue
                    resolved_any = True
                    for component in resolution.components:
                        accumulator.add(
                            component.inventory_item_id,
                            component.quantity_per_unit * line.quantity,
                            order.id,
                        )

                if resolved_any:
                    order.fulfillment_applied = True
                    order.fulfilled_at = self.clock.now()
                    order.updated_by_id = actor_id
                    applied_orders.append(order.id)
                else:
                    skipped_orders.append(order.id)
                    logger.info(
                        "fulfillment_order_unresolved",
                        extra={"order_id": str(order.id), "external_order_id": order.external_order_id},
                    )

            deductions = accumulator.deductions()
            for deduction in deductions:
                shortfall = self._apply_deduction(tenant_id, deduction, actor_id)
                if shortfall is not None:
                    shortfalls.append(shortfall)

        result = FulfillmentResult(
            applied_orders=tuple(applied_orders),
            skipped_orders=tuple(skipped_orders),
            unresolved_skus=tuple(unresolved),
            deductions=tuple(deductions),
            shortfalls=tuple(shortfalls),
        )
        logger.info(
            "fulfillment_batch_applied",
            extra={
                "tenant_id": tenant_id,
                "applied": len(result.applied_orders),
                "skipped": len(result.skipped_orders),
                "unresolved": len(result.unresolved_skus),
                "items_deducted": len(result.deductions),
                "shortfalls": len(result.shortfalls),
            },
        )
        if result.applied_orders:
            emit_safely(
                self._audit_sink,
                AuditEvent(
                    action=AuditAction.FULFILLMENT_APPLIED,
                    entity_type="OrderBatch",
                    entity_id=None,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    occurred_at=self.clock.now(),
                    payload={
                        "order_ids": [str(o) for o in result.applied_orders],
                        "deductions": {
                            str(d.item_id): str(d.quantity) for d in result.deductions
                        },
                    },
                ),
            )
        return result

    def resolve_pending(self, tenant_id: str, actor_id: UUID) -> FulfillmentResult:
        """Run ``resolve_and_apply`` over every unapplied order, oldest first."""
        order_ids = self.session.execute(
            select(OrderRecord.id)
            .where(
                OrderRecord.tenant_id == tenant_id,
                OrderRecord.fulfillment_applied.is_(False),
            )
            .order_by(OrderRecord.sequence, OrderRecord.order_date, OrderRecord.id)
        ).scalars().all()
        return self.resolve_and_apply(tenant_id, order_ids, actor_id)
