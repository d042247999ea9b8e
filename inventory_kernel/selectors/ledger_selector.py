"""
LedgerSelector -- read paths over inventory items and their history.

History is returned newest first.  An item of another tenant is reported
exactly like a missing item.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import (
    CostChangeInfo,
    InventoryItemInfo,
    StockChangeInfo,
)
from inventory_kernel.exceptions import InventoryItemNotFoundError
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.ledger import CostChangeRecord, StockChangeRecord
from inventory_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[InventoryItem]):
    """Read-only queries for items, stock history, and cost history."""

    def find_item(self, tenant_id: str, item_id: UUID) -> InventoryItemInfo | None:
        item = self.session.execute(
            select(InventoryItem).where(
                InventoryItem.id == item_id,
                InventoryItem.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        return InventoryItemInfo.from_model(item) if item else None

    def get_item(self, tenant_id: str, item_id: UUID) -> InventoryItemInfo:
        """
        Raises:
            InventoryItemNotFoundError: missing or owned by another tenant.
        """
        info = self.find_item(tenant_id, item_id)
        if info is None:
            raise InventoryItemNotFoundError(str(item_id), tenant_id)
        return info

    def list_items(self, tenant_id: str) -> list[InventoryItemInfo]:
        items = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.tenant_id == tenant_id)
            .order_by(InventoryItem.name, InventoryItem.id)
        ).scalars()
        return [InventoryItemInfo.from_model(i) for i in items]

    def unit_costs(self, tenant_id: str, item_ids: set[UUID]) -> dict[UUID, Decimal]:
        """Current unit cost of each existing item; missing ids are absent."""
        if not item_ids:
            return {}
        rows = self.session.execute(
            select(InventoryItem.id, InventoryItem.unit_cost).where(
                InventoryItem.tenant_id == tenant_id,
                InventoryItem.id.in_(item_ids),
            )
        )
        return {row.id: row.unit_cost for row in rows}

    def stock_history(self, tenant_id: str, item_id: UUID) -> list[StockChangeInfo]:
        self.get_item(tenant_id, item_id)
        records = self.session.execute(
            select(StockChangeRecord)
            .where(
                StockChangeRecord.item_id == item_id,
                StockChangeRecord.tenant_id == tenant_id,
            )
            .order_by(StockChangeRecord.recorded_at.desc(), StockChangeRecord.id)
        ).scalars()
        return [StockChangeInfo.from_model(r) for r in records]

    def cost_history(self, tenant_id: str, item_id: UUID) -> list[CostChangeInfo]:
        self.get_item(tenant_id, item_id)
        records = self.session.execute(
            select(CostChangeRecord)
            .where(
                CostChangeRecord.item_id == item_id,
                CostChangeRecord.tenant_id == tenant_id,
            )
            .order_by(CostChangeRecord.recorded_at.desc(), CostChangeRecord.id)
        ).scalars()
        return [CostChangeInfo.from_model(r) for r in records]
