"""
LedgerStore -- guarded mutation of inventory items with append-only history.

Responsibility:
    The only code path that writes ``unit_cost`` or ``stock_quantity``.
    Every change updates the item and appends the matching
    StockChangeRecord or CostChangeRecord inside one SAVEPOINT.

Architecture position:
    Kernel > Services -- imperative shell.  Used by InventoryItemService,
    FulfillmentResolver, and directly by callers that need raw ledger access.

Invariants enforced:
    - new_value == previous_value + delta on every record, computed from the
      row read under SELECT ... FOR UPDATE.
    - The item update and the record append commit or roll back together.
    - Deleting an item deletes all its history in the same savepoint.

Failure modes:
    - InventoryItemNotFoundError: item missing or owned by another tenant.
    - InvalidQuantityError: zero stock delta or negative cost.
    - PersistenceError: any database failure (state rolled back).

Audit relevance:
    Replaying an item's stock records from the initial record onward
    reproduces its current stock exactly; the same holds for cost.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.commands import CreateItemCommand
from inventory_kernel.domain.dtos import (
    CostChangeInfo,
    InventoryItemInfo,
    StockChangeInfo,
)
from inventory_kernel.domain.values import ZERO, normalize_sku
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InventoryItemNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.ledger import (
    ChangeReason,
    CostChangeRecord,
    StockChangeRecord,
)
from inventory_kernel.models.sku_mapping import SkuMappingComponent
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")


class LedgerStore(BaseService[InventoryItem]):
    """
    Append-only stock and cost ledger paired with current-state items.

    Non-goals:
        - Does NOT trigger the cascade recalculation; callers that change a
          cost run CascadeRecalculator in the same unit of work.
        - Does NOT clamp stock; FulfillmentResolver decides the delta.
    """

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock_item(self, tenant_id: str, item_id: UUID) -> InventoryItem:
        item = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id, InventoryItem.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise InventoryItemNotFoundError(str(item_id), tenant_id)
        return item

    def _append_stock(
        self,
        item: InventoryItem,
        delta: Decimal,
        reason: ChangeReason,
        actor_id: UUID,
        note: str | None,
    ) -> StockChangeRecord:
        previous = item.stock_quantity
        record = StockChangeRecord(
            item_id=item.id,
            tenant_id=item.tenant_id,
            delta=delta,
            previous_value=previous,
            new_value=previous + delta,
            reason=reason.value,
            note=note,
            recorded_at=self.clock.now(),
            actor_id=actor_id,
        )
        item.stock_quantity = record.new_value
        item.updated_by_id = actor_id
        self.session.add(record)
        return record

    def _append_cost(
        self,
        item: InventoryItem,
        new_cost: Decimal,
        reason: ChangeReason,
        actor_id: UUID,
        note: str | None,
    ) -> CostChangeRecord:
        previous = item.unit_cost
        record = CostChangeRecord(
            item_id=item.id,
            tenant_id=item.tenant_id,
            delta=new_cost - previous,
            previous_value=previous,
            new_value=new_cost,
            reason=reason.value,
            note=note,
            recorded_at=self.clock.now(),
            actor_id=actor_id,
        )
        item.unit_cost = new_cost
        item.updated_by_id = actor_id
        self.session.add(record)
        return record

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_item(
        self, command: CreateItemCommand, actor_id: UUID
    ) -> InventoryItemInfo:
        """
        Create an item; non-zero opening stock and cost get ``initial`` records.

        Postconditions:
            - The item's current values equal the new_value of its initial
              records (or zero when no record was written).
        """
        with self._atomic("create_item"):
            item = InventoryItem(
                tenant_id=command.tenant_id,
                name=command.name.strip(),
                name_key=normalize_sku(command.name),
                code=command.code,
                code_key=normalize_sku(command.code) if command.code else None,
                category=command.category,
                description=command.description,
                unit_cost=ZERO,
                stock_quantity=ZERO,
                created_by_id=actor_id,
            )
            self.session.add(item)
            self.session.flush()
            if command.stock_quantity != ZERO:
                self._append_stock(
                    item, command.stock_quantity, ChangeReason.INITIAL, actor_id, None
                )
            if command.unit_cost != ZERO:
                self._append_cost(
                    item, command.unit_cost, ChangeReason.INITIAL, actor_id, None
                )

        logger.info(
            "inventory_item_created",
            extra={
                "item_id": str(item.id),
                "tenant_id": command.tenant_id,
                "unit_cost": item.unit_cost,
                "stock_quantity": item.stock_quantity,
            },
        )
        return InventoryItemInfo.from_model(item)

    def apply_stock_change(
        self,
        tenant_id: str,
        item_id: UUID,
        delta: Decimal,
        reason: ChangeReason,
        actor_id: UUID,
        note: str | None = None,
    ) -> tuple[InventoryItemInfo, StockChangeInfo]:
        """
        Add ``delta`` to the item's stock and append one StockChangeRecord.

        Raises:
            InvalidQuantityError: delta is zero or not a finite Decimal.
            InventoryItemNotFoundError: item missing for this tenant.
            PersistenceError: database failure; nothing was written.
        """
        if not isinstance(delta, Decimal) or not delta.is_finite() or delta == ZERO:
            raise InvalidQuantityError("delta", delta)

        with self._atomic("apply_stock_change"):
            item = self._lock_item(tenant_id, item_id)
            record = self._append_stock(item, delta, ChangeReason(reason), actor_id, note)

        logger.info(
            "stock_change_applied",
            extra={
                "item_id": str(item_id),
                "tenant_id": tenant_id,
                "delta": delta,
                "previous_value": record.previous_value,
                "new_value": record.new_value,
                "reason": record.reason,
            },
        )
        return InventoryItemInfo.from_model(item), StockChangeInfo.from_model(record)

    def apply_cost_change(
        self,
        tenant_id: str,
        item_id: UUID,
        new_cost: Decimal,
        reason: ChangeReason,
        actor_id: UUID,
        note: str | None = None,
    ) -> tuple[InventoryItemInfo, CostChangeInfo]:
        """
        Set the item's unit cost and append one CostChangeRecord.

        Raises:
            InvalidQuantityError: new_cost negative or not a finite Decimal.
            InventoryItemNotFoundError: item missing for this tenant.
            PersistenceError: database failure; nothing was written.
        """
        if not isinstance(new_cost, Decimal) or not new_cost.is_finite() or new_cost < ZERO:
            raise InvalidQuantityError("unit_cost", new_cost)

        with self._atomic("apply_cost_change"):
            item = self._lock_item(tenant_id, item_id)
            record = self._append_cost(
                item, new_cost, ChangeReason(reason), actor_id, note
            )

        logger.info(
            "cost_change_applied",
            extra={
                "item_id": str(item_id),
                "tenant_id": tenant_id,
                "previous_value": record.previous_value,
                "new_value": record.new_value,
                "reason": record.reason,
            },
        )
        return InventoryItemInfo.from_model(item), CostChangeInfo.from_model(record)

    def update_details(
        self,
        tenant_id: str,
        item_id: UUID,
        actor_id: UUID,
        **fields: str | None,
    ) -> InventoryItemInfo:
        """Update descriptive fields (name, code, category, description)."""
        allowed = {"name", "code", "category", "description"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Not a descriptive field: {sorted(unknown)}")

        with self._atomic("update_item_details"):
            item = self._lock_item(tenant_id, item_id)
            for key, value in fields.items():
                setattr(item, key, value)
            if "name" in fields:
                item.name_key = normalize_sku(item.name)
            if "code" in fields:
                item.code_key = normalize_sku(item.code) if item.code else None
            item.updated_by_id = actor_id
        return InventoryItemInfo.from_model(item)

    def delete_item(self, tenant_id: str, item_id: UUID, actor_id: UUID) -> None:
        """
        Delete the item and every stock and cost record it owns.

        Mappings that reference the item keep a dangling component, which
        contributes zero cost from then on.

        Raises:
            InventoryItemNotFoundError: item missing for this tenant.
            PersistenceError: database failure; nothing was deleted.
        """
        with self._atomic("delete_item"):
            item = self._lock_item(tenant_id, item_id)
            referencing = self.session.execute(
                select(SkuMappingComponent.sku_mapping_id).where(
                    SkuMappingComponent.inventory_item_id == item_id
                )
            ).scalars().all()
            if referencing:
                logger.warning(
                    "inventory_item_deleted_while_mapped",
                    extra={
                        "item_id": str(item_id),
                        "tenant_id": tenant_id,
                        "mapping_ids": [str(m) for m in referencing],
                    },
                )
            # Records were added by item_id; reload so the cascade sees all
            self.session.expire(item, ["stock_changes", "cost_changes"])
            stock_records = len(item.stock_changes)
            cost_records = len(item.cost_changes)
            self.session.delete(item)

        logger.info(
            "inventory_item_deleted",
            extra={
                "item_id": str(item_id),
                "tenant_id": tenant_id,
                "actor_id": str(actor_id),
                "stock_records_deleted": stock_records,
                "cost_records_deleted": cost_records,
            },
        )

    def lock_item(self, tenant_id: str, item_id: UUID) -> InventoryItemInfo:
        """Read the item under SELECT ... FOR UPDATE for a read-modify-write."""
        return InventoryItemInfo.from_model(self._lock_item(tenant_id, item_id))

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def get_item(self, tenant_id: str, item_id: UUID) -> InventoryItemInfo:
        return LedgerSelector(self.session).get_item(tenant_id, item_id)

    def list_items(self, tenant_id: str) -> list[InventoryItemInfo]:
        return LedgerSelector(self.session).list_items(tenant_id)

    def stock_history(self, tenant_id: str, item_id: UUID) -> list[StockChangeInfo]:
        return LedgerSelector(self.session).stock_history(tenant_id, item_id)

    def cost_history(self, tenant_id: str, item_id: UUID) -> list[CostChangeInfo]:
        return LedgerSelector(self.session).cost_history(tenant_id, item_id)
