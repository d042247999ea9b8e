"""
InventoryItemService -- item-level operations composed from the ledger and
the cascade.

Responsibility:
    The entry point for manual inventory edits.  Stock and cost go through
    LedgerStore; every cost change is followed, in the same unit of work, by
    CascadeRecalculator so that no mapping is left with a stale
    manufacturing_cost.

Architecture position:
    Kernel > Services -- orchestrates LedgerStore and CascadeRecalculator.

Failure modes:
    - InvalidQuantityError: a manual adjustment would make stock negative.
    - Any LedgerStore / CascadeRecalculator error, unchanged.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.commands import CreateItemCommand, UpdateItemCommand
from inventory_kernel.domain.dtos import (
    CascadeResult,
    CostChangeInfo,
    InventoryItemInfo,
    StockChangeInfo,
)
from inventory_kernel.domain.values import ZERO
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.ledger import ChangeReason
from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    emit_safely,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.cascade_recalculator import CascadeRecalculator
from inventory_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.inventory")


@dataclass(frozen=True)
class ItemUpdateResult:
    """What an update actually changed.  ``None`` means nothing was written."""

    item: InventoryItemInfo
    stock_change: StockChangeInfo | None = None
    cost_change: CostChangeInfo | None = None
    cascade: CascadeResult | None = None


class InventoryItemService(BaseService[InventoryItem]):
    """Manual create/update/delete of inventory items."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        super().__init__(session, clock)
        self._audit_sink = audit_sink or LoggingAuditSink()
        self.ledger = LedgerStore(session, self.clock)
        self.cascade = CascadeRecalculator(session, self.clock, self._audit_sink)

    def _emit(
        self,
        action: AuditAction,
        item_id: UUID,
        tenant_id: str,
        actor_id: UUID,
        **payload,
    ) -> None:
        emit_safely(
            self._audit_sink,
            AuditEvent(
                action=action,
                entity_type="InventoryItem",
                entity_id=item_id,
                tenant_id=tenant_id,
                actor_id=actor_id,
                occurred_at=self.clock.now(),
                payload=payload,
            ),
        )

    def create_item(self, command: CreateItemCommand, actor_id: UUID) -> InventoryItemInfo:
        item = self.ledger.create_item(command, actor_id)
        self._emit(
            AuditAction.ITEM_CREATED,
            item.id,
            item.tenant_id,
            actor_id,
            name=item.name,
            unit_cost=str(item.unit_cost),
            stock_quantity=str(item.stock_quantity),
        )
        return item

    def change_cost(
        self,
        tenant_id: str,
        item_id: UUID,
        new_cost: Decimal,
        actor_id: UUID,
        note: str | None = None,
    ) -> tuple[InventoryItemInfo, CostChangeInfo, CascadeResult]:
        """
        Set a new unit cost and recalculate every mapping that uses the item.

        The cascade result is returned, not raised; call
        ``raise_for_failures()`` on it to treat partial failure as an error.
        """
        with self._atomic("change_cost"):
            item, record = self.ledger.apply_cost_change(
                tenant_id, item_id, new_cost, ChangeReason.MANUAL_UPDATE, actor_id, note
            )
            cascade = self.cascade.recalculate_for_item(
                tenant_id, item_id, new_cost, actor_id
            )
        self._emit(
            AuditAction.COST_CHANGED,
            item_id,
            tenant_id,
            actor_id,
            previous_value=str(record.previous_value),
            new_value=str(record.new_value),
            mappings_updated=len(cascade.updated_mapping_ids),
        )
        return item, record, cascade

    def adjust_stock(
        self,
        tenant_id: str,
        item_id: UUID,
        delta: Decimal,
        actor_id: UUID,
        note: str | None = None,
    ) -> tuple[InventoryItemInfo, StockChangeInfo]:
        """
        Manually add (or remove, with a negative delta) stock.

        Raises:
            InvalidQuantityError: the result would be negative.
        """
        with self._atomic("adjust_stock"):
            current = self.ledger.lock_item(tenant_id, item_id)
            if current.stock_quantity + delta < ZERO:
                raise InvalidQuantityError("delta", delta)
            item, record = self.ledger.apply_stock_change(
                tenant_id, item_id, delta, ChangeReason.MANUAL_UPDATE, actor_id, note
            )
        self._emit(
            AuditAction.STOCK_CHANGED,
            item_id,
            tenant_id,
            actor_id,
            delta=str(record.delta),
            new_value=str(record.new_value),
        )
        return item, record

    def update_item(self, command: UpdateItemCommand, actor_id: UUID) -> ItemUpdateResult:
        """
        Apply a partial update.

        ``stock_quantity`` is a target; the ledger records the difference.
        Values equal to the current ones are not written.
        """
        tenant_id, item_id = command.tenant_id, command.item_id
        with self._atomic("update_item"):
            # stock is a target, so the delta must come from the locked row
            current = self.ledger.lock_item(tenant_id, item_id)

            details = {
                key: getattr(command, key)
                for key in ("name", "code", "category", "description")
                if getattr(command, key) is not None
                and getattr(command, key) != getattr(current, key)
            }
            if details:
                current = self.ledger.update_details(tenant_id, item_id, actor_id, **details)

            stock_change = None
            if command.stock_quantity is not None and command.stock_quantity != current.stock_quantity:
                current, stock_change = self.ledger.apply_stock_change(
                    tenant_id,
                    item_id,
                    command.stock_quantity - current.stock_quantity,
                    ChangeReason.MANUAL_UPDATE,
                    actor_id,
                    command.note,
                )

            cost_change = None
            cascade = None
            if command.unit_cost is not None and command.unit_cost != current.unit_cost:
                current, cost_change = self.ledger.apply_cost_change(
                    tenant_id,
                    item_id,
                    command.unit_cost,
                    ChangeReason.MANUAL_UPDATE,
                    actor_id,
                    command.note,
                )
                cascade = self.cascade.recalculate_for_item(
                    tenant_id, item_id, command.unit_cost, actor_id
                )

        if details or stock_change or cost_change:
            self._emit(
                AuditAction.ITEM_UPDATED,
                item_id,
                tenant_id,
                actor_id,
                fields=sorted(details),
                stock_changed=stock_change is not None,
                cost_changed=cost_change is not None,
            )
        else:
            logger.debug(
                "inventory_item_update_noop",
                extra={"item_id": str(item_id), "tenant_id": tenant_id},
            )

        return ItemUpdateResult(
            item=current,
            stock_change=stock_change,
            cost_change=cost_change,
            cascade=cascade,
        )

    def delete_item(self, tenant_id: str, item_id: UUID, actor_id: UUID) -> None:
        self.ledger.delete_item(tenant_id, item_id, actor_id)
        self._emit(AuditAction.ITEM_DELETED, item_id, tenant_id, actor_id)
