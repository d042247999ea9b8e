"""
MappingSelector -- read paths over SKU mappings, cost snapshots, and the
unresolved-SKU work queue.

Snapshot reads used for valuation return ascending ``(recorded_at, version)``
order; the history view returns newest first.
"""

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from inventory_kernel.domain.dtos import SkuMappingInfo, SnapshotInfo
from inventory_kernel.domain.values import normalize_sku
from inventory_kernel.exceptions import SkuMappingNotFoundError
from inventory_kernel.models.sku_mapping import (
    SkuMapping,
    SkuMappingComponent,
    SkuMappingSnapshot,
)
from inventory_kernel.models.unresolved_sku import UnresolvedSku, UnresolvedSkuStatus
from inventory_kernel.selectors.base import BaseSelector


class MappingSelector(BaseSelector[SkuMapping]):
    """Read-only queries for the mapping graph."""

    def get_mapping(self, tenant_id: str, mapping_id: UUID) -> SkuMappingInfo:
        """
        Raises:
            SkuMappingNotFoundError: missing or owned by another tenant.
        """
        mapping = self.session.execute(
            select(SkuMapping)
            .options(selectinload(SkuMapping.components))
            .where(SkuMapping.id == mapping_id, SkuMapping.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if mapping is None:
            raise SkuMappingNotFoundError(str(mapping_id), tenant_id)
        return SkuMappingInfo.from_model(mapping)

    def find_by_sku(self, tenant_id: str, sku: str) -> SkuMappingInfo | None:
        mapping = self.session.execute(
            select(SkuMapping)
            .options(selectinload(SkuMapping.components))
            .where(
                SkuMapping.tenant_id == tenant_id,
                SkuMapping.sku_key == normalize_sku(sku),
            )
        ).scalar_one_or_none()
        return SkuMappingInfo.from_model(mapping) if mapping else None

    def list_mappings(self, tenant_id: str) -> list[SkuMappingInfo]:
        mappings = self.session.execute(
            select(SkuMapping)
            .options(selectinload(SkuMapping.components))
            .where(SkuMapping.tenant_id == tenant_id)
            .order_by(SkuMapping.sku_key)
        ).scalars()
        return [SkuMappingInfo.from_model(m) for m in mappings]

    def is_sku_taken(
        self, tenant_id: str, sku: str, exclude_mapping_id: UUID | None = None
    ) -> bool:
        """True if another mapping of the tenant already uses ``sku``."""
        stmt = select(SkuMapping.id).where(
            SkuMapping.tenant_id == tenant_id,
            SkuMapping.sku_key == normalize_sku(sku),
        )
        if exclude_mapping_id is not None:
            stmt = stmt.where(SkuMapping.id != exclude_mapping_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def mapping_ids_referencing(self, tenant_id: str, item_id: UUID) -> list[UUID]:
        rows = self.session.execute(
            select(SkuMapping.id)
            .join(SkuMappingComponent, SkuMappingComponent.sku_mapping_id == SkuMapping.id)
            .where(
                SkuMapping.tenant_id == tenant_id,
                SkuMappingComponent.inventory_item_id == item_id,
            )
            .order_by(SkuMapping.sku_key)
        ).scalars()
        return list(dict.fromkeys(rows))

    def snapshot_history(self, tenant_id: str, mapping_id: UUID) -> list[SnapshotInfo]:
        """Snapshots of one mapping, newest first."""
        self.get_mapping(tenant_id, mapping_id)
        snapshots = self.session.execute(
            select(SkuMappingSnapshot)
            .where(
                SkuMappingSnapshot.sku_mapping_id == mapping_id,
                SkuMappingSnapshot.tenant_id == tenant_id,
            )
            .order_by(SkuMappingSnapshot.version.desc())
        ).scalars()
        return [SnapshotInfo.from_model(s) for s in snapshots]

    def snapshots_by_sku(
        self, tenant_id: str, skus: Iterable[str]
    ) -> dict[str, list[SnapshotInfo]]:
        """
        Snapshots keyed by normalized sku, ascending by (recorded_at, version).

        Skus without any snapshot are absent from the result.
        """
        keys = {normalize_sku(s) for s in skus if s and s.strip()}
        if not keys:
            return {}
        snapshots = self.session.execute(
            select(SkuMappingSnapshot)
            .where(
                SkuMappingSnapshot.tenant_id == tenant_id,
                SkuMappingSnapshot.sku_key.in_(keys),
            )
            .order_by(SkuMappingSnapshot.recorded_at, SkuMappingSnapshot.version)
        ).scalars()
        grouped: dict[str, list[SnapshotInfo]] = defaultdict(list)
        for snapshot in snapshots:
            grouped[snapshot.sku_key].append(SnapshotInfo.from_model(snapshot))
        return dict(grouped)

    def pending_unresolved_skus(self, tenant_id: str) -> list[str]:
        """Distinct pending skus of the tenant, sorted."""
        rows = self.session.execute(
            select(UnresolvedSku.sku_key, UnresolvedSku.sku)
            .where(
                UnresolvedSku.tenant_id == tenant_id,
                UnresolvedSku.status == UnresolvedSkuStatus.PENDING.value,
            )
            .order_by(UnresolvedSku.sku_key, UnresolvedSku.created_at)
        )
        first_spelling: dict[str, str] = {}
        for row in rows:
            first_spelling.setdefault(row.sku_key, row.sku)
        return list(first_spelling.values())
