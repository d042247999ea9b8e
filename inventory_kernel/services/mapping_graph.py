"""
MappingGraph -- sold SKU to inventory component mappings.

Responsibility:
    Creates, edits, and deletes SKU mappings.  Every create and edit
    recomputes manufacturing_cost from the components' CURRENT unit costs and
    appends a cost snapshot; the snapshot timeline is what historical
    valuation reads.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - manufacturing_cost is always derived, never accepted from the caller.
    - One mapping per (tenant, normalized sku).
    - Components reference existing items of the same tenant at write time.
    - Every create/edit appends exactly one snapshot (edits even when the
      costs did not change).
    - Creating a mapping resolves the tenant's pending UnresolvedSku rows for
      that sku; deleting it puts them back to pending.

Failure modes:
    - DuplicateSkuMappingError: sku already mapped for the tenant.
    - InventoryItemNotFoundError: a component item is missing.
    - SkuMappingNotFoundError: mapping missing for the tenant.
    - PersistenceError: database failure; nothing was written.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.cascade import ComponentCost, compute_manufacturing_cost
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.commands import MappingCommand
from inventory_kernel.domain.dtos import SkuMappingInfo, SnapshotInfo
from inventory_kernel.domain.values import normalize_sku
from inventory_kernel.exceptions import (
    DuplicateSkuMappingError,
    InvalidFieldError,
    InventoryItemNotFoundError,
    SkuMappingNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.sku_mapping import (
    SkuMapping,
    SkuMappingComponent,
    SkuMappingSnapshot,
    SnapshotTrigger,
)
from inventory_kernel.models.unresolved_sku import UnresolvedSku, UnresolvedSkuStatus
from inventory_kernel.selectors.mapping_selector import MappingSelector
from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    emit_safely,
)
from inventory_kernel.services.base import BaseService

logger = get_logger("services.mapping_graph")


def record_snapshot(
    session,
    clock: Clock,
    mapping: SkuMapping,
    trigger: SnapshotTrigger,
    actor_id: UUID,
) -> SkuMappingSnapshot:
    """Append the mapping's current costs as its next snapshot version."""
    mapping.last_version = (mapping.last_version or 0) + 1
    snapshot = SkuMappingSnapshot(
        sku_mapping_id=mapping.id,
        tenant_id=mapping.tenant_id,
        sku=mapping.sku,
        sku_key=mapping.sku_key,
        manufacturing_cost=mapping.manufacturing_cost,
        packaging_cost=mapping.packaging_cost,
        recorded_at=clock.now(),
        version=mapping.last_version,
        trigger=trigger.value,
        actor_id=actor_id,
    )
    session.add(snapshot)
    return snapshot


class MappingGraph(BaseService[SkuMapping]):
    """
    The sold SKU -> (inventory item, quantity per unit) graph.

    Non-goals:
        - Does NOT recalculate other mappings when an item cost changes;
          that is CascadeRecalculator.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        super().__init__(session, clock)
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._selector = MappingSelector(session)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock_mapping(self, tenant_id: str, mapping_id: UUID) -> SkuMapping:
        mapping = self.session.execute(
            select(SkuMapping)
            .where(SkuMapping.id == mapping_id, SkuMapping.tenant_id == tenant_id)
            .with_for_update()
        ).scalar_one_or_none()
        if mapping is None:
            raise SkuMappingNotFoundError(str(mapping_id), tenant_id)
        return mapping

    def _component_costs(self, command: MappingCommand) -> dict[UUID, Decimal]:
        """Current unit cost per component item; every item must exist."""
        wanted = {c.inventory_item_id for c in command.components}
        rows = self.session.execute(
            select(InventoryItem.id, InventoryItem.unit_cost).where(
                InventoryItem.tenant_id == command.tenant_id,
                InventoryItem.id.in_(wanted),
            )
        )
        costs = {row.id: row.unit_cost for row in rows}
        for component in command.components:
            if component.inventory_item_id not in costs:
                raise InventoryItemNotFoundError(
                    str(component.inventory_item_id), command.tenant_id
                )
        return costs

    def _derive_cost(self, command: MappingCommand) -> Decimal:
        costs = self._component_costs(command)
        return compute_manufacturing_cost(
            (
                ComponentCost(c.inventory_item_id, c.quantity_per_unit)
                for c in command.components
            ),
            costs,
        )

    def _set_unresolved_status(
        self,
        tenant_id: str,
        sku_key: str,
        from_status: UnresolvedSkuStatus,
        to_status: UnresolvedSkuStatus,
        actor_id: UUID,
    ) -> int:
        rows = self.session.execute(
            select(UnresolvedSku).where(
                UnresolvedSku.tenant_id == tenant_id,
                UnresolvedSku.sku_key == sku_key,
                UnresolvedSku.status == from_status.value,
            )
        ).scalars().all()
        for row in rows:
            row.status = to_status.value
            row.updated_by_id = actor_id
        return len(rows)

    def _emit(self, action: AuditAction, mapping_id: UUID, tenant_id: str, actor_id: UUID, **payload) -> None:
        emit_safely(
            self._audit_sink,
            AuditEvent(
                action=action,
                entity_type="SkuMapping",
                entity_id=mapping_id,
                tenant_id=tenant_id,
                actor_id=actor_id,
                occurred_at=self.clock.now(),
                payload=payload,
            ),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_mapping(self, command: MappingCommand, actor_id: UUID) -> SkuMappingInfo:
        """
        Create a mapping and its first (``created``) snapshot.

        Raises:
            DuplicateSkuMappingError: the sku is already mapped.
            InventoryItemNotFoundError: a component item does not exist.
        """
        sku = command.sku.strip()
        sku_key = normalize_sku(sku)

        with self._atomic("create_mapping"):
            existing = self._selector.find_by_sku(command.tenant_id, sku)
            if existing is not None:
                raise DuplicateSkuMappingError(
                    command.tenant_id, sku, existing_mapping_id=str(existing.id)
                )

            mapping = SkuMapping(
                tenant_id=command.tenant_id,
                sku=sku,
                sku_key=sku_key,
                manufacturing_cost=self._derive_cost(command),
                packaging_cost=command.packaging_cost,
                last_version=0,
                created_by_id=actor_id,
            )
            mapping.components = [
                SkuMappingComponent(
                    inventory_item_id=c.inventory_item_id,
                    quantity_per_unit=c.quantity_per_unit,
                    position=position,
                )
                for position, c in enumerate(command.components)
            ]
            self.session.add(mapping)
            self.session.flush()

            record_snapshot(
                self.session, self.clock, mapping, SnapshotTrigger.CREATED, actor_id
            )
            resolved = self._set_unresolved_status(
                command.tenant_id,
                sku_key,
                UnresolvedSkuStatus.PENDING,
                UnresolvedSkuStatus.RESOLVED,
                actor_id,
            )

        logger.info(
            "sku_mapping_created",
            extra={
                "mapping_id": str(mapping.id),
                "tenant_id": command.tenant_id,
                "sku": sku,
                "manufacturing_cost": mapping.manufacturing_cost,
                "unresolved_resolved": resolved,
            },
        )
        self._emit(
            AuditAction.MAPPING_CREATED,
            mapping.id,
            command.tenant_id,
            actor_id,
            sku=sku,
            manufacturing_cost=str(mapping.manufacturing_cost),
            packaging_cost=str(mapping.packaging_cost),
        )
        return SkuMappingInfo.from_model(mapping)

    def update_mapping(
        self,
        tenant_id: str,
        mapping_id: UUID,
        command: MappingCommand,
        actor_id: UUID,
    ) -> SkuMappingInfo:
        """
        Replace a mapping's sku, components, and packaging cost.

        Always appends an ``edited`` snapshot, even when the costs are
        numerically unchanged.

        Raises:
            SkuMappingNotFoundError: mapping missing for the tenant.
            DuplicateSkuMappingError: the new sku belongs to another mapping.
            InventoryItemNotFoundError: a component item does not exist.
        """
        if command.tenant_id != tenant_id:
            raise InvalidFieldError(
                "tenant_id", command.tenant_id, "does not match the target mapping"
            )
        sku = command.sku.strip()
        sku_key = normalize_sku(sku)

        with self._atomic("update_mapping"):
            mapping = self._lock_mapping(tenant_id, mapping_id)
            old_key = mapping.sku_key
            if sku_key != old_key and self._selector.is_sku_taken(
                tenant_id, sku, exclude_mapping_id=mapping_id
            ):
                raise DuplicateSkuMappingError(tenant_id, sku)

            manufacturing_cost = self._derive_cost(command)

            # Update matching rows in place; the (mapping, item) pair is unique
            by_item = {c.inventory_item_id: c for c in mapping.components}
            wanted = []
            for position, spec in enumerate(command.components):
                row = by_item.pop(spec.inventory_item_id, None)
                if row is None:
                    row = SkuMappingComponent(inventory_item_id=spec.inventory_item_id)
                row.quantity_per_unit = spec.quantity_per_unit
                row.position = position
                wanted.append(row)
            mapping.components = wanted

            mapping.sku = sku
            mapping.sku_key = sku_key
            mapping.manufacturing_cost = manufacturing_cost
            mapping.packaging_cost = command.packaging_cost
            mapping.updated_by_id = actor_id
            self.session.flush()

            record_snapshot(
                self.session, self.clock, mapping, SnapshotTrigger.EDITED, actor_id
            )
            if sku_key != old_key:
                self._set_unresolved_status(
                    tenant_id,
                    old_key,
                    UnresolvedSkuStatus.RESOLVED,
                    UnresolvedSkuStatus.PENDING,
                    actor_id,
                )
                self._set_unresolved_status(
                    tenant_id,
                    sku_key,
                    UnresolvedSkuStatus.PENDING,
                    UnresolvedSkuStatus.RESOLVED,
                    actor_id,
                )

        logger.info(
            "sku_mapping_updated",
            extra={
                "mapping_id": str(mapping_id),
                "tenant_id": tenant_id,
                "sku": sku,
                "manufacturing_cost": mapping.manufacturing_cost,
                "version": mapping.last_version,
            },
        )
        self._emit(
            AuditAction.MAPPING_UPDATED,
            mapping_id,
            tenant_id,
            actor_id,
            sku=sku,
            manufacturing_cost=str(mapping.manufacturing_cost),
            packaging_cost=str(mapping.packaging_cost),
            version=mapping.last_version,
        )
        return SkuMappingInfo.from_model(mapping)

    def delete_mapping(self, tenant_id: str, mapping_id: UUID, actor_id: UUID) -> None:
        """
        Delete a mapping with its components and every snapshot.

        Raises:
            SkuMappingNotFoundError: mapping missing for the tenant.
        """
        with self._atomic("delete_mapping"):
            mapping = self._lock_mapping(tenant_id, mapping_id)
            sku, sku_key = mapping.sku, mapping.sku_key
            # Snapshots were added by id; reload so the cascade sees all
            self.session.expire(mapping, ["snapshots"])
            snapshot_count = len(mapping.snapshots)
            self.session.delete(mapping)
            self.session.flush()
            reopened = self._set_unresolved_status(
                tenant_id,
                sku_key,
                UnresolvedSkuStatus.RESOLVED,
                UnresolvedSkuStatus.PENDING,
                actor_id,
            )

        logger.info(
            "sku_mapping_deleted",
            extra={
                "mapping_id": str(mapping_id),
                "tenant_id": tenant_id,
                "sku": sku,
                "snapshots_deleted": snapshot_count,
                "unresolved_reopened": reopened,
            },
        )
        self._emit(AuditAction.MAPPING_DELETED, mapping_id, tenant_id, actor_id, sku=sku)

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def get_mapping(self, tenant_id: str, mapping_id: UUID) -> SkuMappingInfo:
        return self._selector.get_mapping(tenant_id, mapping_id)

    def list_mappings(self, tenant_id: str) -> list[SkuMappingInfo]:
        return self._selector.list_mappings(tenant_id)

    def is_sku_taken(
        self, tenant_id: str, sku: str, exclude_mapping_id: UUID | None = None
    ) -> bool:
        return self._selector.is_sku_taken(tenant_id, sku, exclude_mapping_id)

    def snapshot_history(self, tenant_id: str, mapping_id: UUID) -> list[SnapshotInfo]:
        return self._selector.snapshot_history(tenant_id, mapping_id)

    def pending_unresolved_skus(self, tenant_id: str) -> list[str]:
        return self._selector.pending_unresolved_skus(tenant_id)
