"""
SKU resolution -- turn sold SKUs into inventory components.

Resolution order for one sku (normalized, see ``normalize_sku``):
    1. A SkuMapping with at least one component: its components, each
       consuming ``quantity_per_unit`` per sold unit.
    2. An InventoryItem whose ``code`` (preferred) or ``name`` equals the
       sku: that item, one per sold unit.
    3. Otherwise unresolved.

Also owns the UnresolvedSku work queue writes, which are idempotent per
(tenant, sku, source order).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from inventory_kernel.domain.values import normalize_sku
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.sku_mapping import SkuMapping
from inventory_kernel.models.unresolved_sku import UnresolvedSku, UnresolvedSkuStatus

logger = get_logger("services.sku_resolution")

_ONE = Decimal("1")


@dataclass(frozen=True)
class ResolvedComponent:
    inventory_item_id: UUID
    quantity_per_unit: Decimal


@dataclass(frozen=True)
class Resolution:
    sku: str
    source: str  # "mapping" or "item"
    components: tuple[ResolvedComponent, ...]


class SkuResolver:
    """
    Resolves a fixed set of skus with two queries, then answers from memory.

    Components pointing at deleted items are dropped (with a warning), so
    every returned component references an existing item of the tenant.
    """

    def __init__(self, session: Session, tenant_id: str, skus: Iterable[str]):
        self.session = session
        self.tenant_id = tenant_id
        keys = {normalize_sku(s) for s in skus if s and s.strip()}
        self._by_key: dict[str, Resolution] = {}
        if keys:
            self._load(keys)

    def _load(self, keys: set[str]) -> None:
        mappings = self.session.execute(
            select(SkuMapping)
            .options(selectinload(SkuMapping.components))
            .where(SkuMapping.tenant_id == self.tenant_id, SkuMapping.sku_key.in_(keys))
        ).scalars().all()

        component_ids = {c.inventory_item_id for m in mappings for c in m.components}
        existing: set[UUID] = set()
        if component_ids:
            existing = set(
                self.session.execute(
                    select(InventoryItem.id).where(
                        InventoryItem.tenant_id == self.tenant_id,
                        InventoryItem.id.in_(component_ids),
                    )
                ).scalars()
            )

        for mapping in mappings:
            if not mapping.components:
                continue
            components = []
            for c in mapping.components:
                if c.inventory_item_id not in existing:
                    logger.warning(
                        "mapping_component_dangling",
                        extra={
                            "mapping_id": str(mapping.id),
                            "item_id": str(c.inventory_item_id),
                            "sku": mapping.sku,
                        },
                    )
                    continue
                components.append(
                    ResolvedComponent(c.inventory_item_id, c.quantity_per_unit)
                )
            if components:
                self._by_key[mapping.sku_key] = Resolution(
                    mapping.sku, "mapping", tuple(components)
                )

        remaining = keys - set(self._by_key)
        if not remaining:
            return

        items = self.session.execute(
            select(InventoryItem)
            .where(
                InventoryItem.tenant_id == self.tenant_id,
                or_(InventoryItem.code_key.in_(remaining), InventoryItem.name_key.in_(remaining)),
            )
            .order_by(InventoryItem.created_at, InventoryItem.id)
        ).scalars().all()

        by_name: dict[str, InventoryItem] = {}
        for item in items:
            if item.code_key in remaining:
                self._by_key.setdefault(
                    item.code_key,
                    Resolution(item.code, "item", (ResolvedComponent(item.id, _ONE),)),
                )
            by_name.setdefault(item.name_key, item)
        for key, item in by_name.items():
            if key in remaining:
                self._by_key.setdefault(
                    key, Resolution(item.name, "item", (ResolvedComponent(item.id, _ONE),))
                )

    def resolve(self, sku: str) -> Resolution | None:
        return self._by_key.get(normalize_sku(sku))


def record_unresolved_sku(
    session: Session,
    tenant_id: str,
    sku: str,
    source_order_id: str,
    actor_id: UUID,
) -> bool:
    """
    Put (sku, order) on the tenant's pending queue.

    Returns True if a row was created or reopened, False if it was already
    pending.
    """
    sku = sku.strip()
    sku_key = normalize_sku(sku)
    row = session.execute(
        select(UnresolvedSku).where(
            UnresolvedSku.tenant_id == tenant_id,
            UnresolvedSku.sku_key == sku_key,
            UnresolvedSku.source_order_id == source_order_id,
        )
    ).scalar_one_or_none()
    if row is None:
        session.add(
            UnresolvedSku(
                tenant_id=tenant_id,
                sku=sku,
                sku_key=sku_key,
                source_order_id=source_order_id,
                status=UnresolvedSkuStatus.PENDING.value,
                created_by_id=actor_id,
            )
        )
        session.flush()
        return True
    if row.status != UnresolvedSkuStatus.PENDING.value:
        row.status = UnresolvedSkuStatus.PENDING.value
        row.updated_by_id = actor_id
        return True
    return False
