"""
CascadeRecalculator -- propagate a component cost change to every mapping.

Responsibility:
    After an inventory item's unit cost changes, recompute the
    manufacturing_cost of every mapping of the tenant that references it and
    append a ``cascade`` snapshot for each mapping whose cost moved.

Architecture position:
    Kernel > Services -- imperative shell around the pure planner in
    ``inventory_kernel.domain.cascade``.

Flow:
    1. Read: mappings referencing the item, with their components, and the
       stored unit cost of every component item.
    2. Plan: pure computation; the changed item uses the NEW cost.
    3. Write: one SAVEPOINT per changed mapping.

Invariants enforced:
    - Dangling components (deleted items) contribute zero.
    - Unchanged mappings get no write and no snapshot.
    - Snapshot timestamps come from the same clock as the cost change, so
      they never precede it.

Failure modes:
    - PersistenceError if the read phase fails (nothing written).
    - Per-mapping write failures are logged and collected in
      ``CascadeResult.failures``; the other mappings are still written.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from inventory_kernel.domain.cascade import (
    CascadePlan,
    ComponentCost,
    MappingCostInput,
    plan_cascade,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import CascadeFailure, CascadeResult
from inventory_kernel.exceptions import PersistenceError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sku_mapping import SkuMapping, SnapshotTrigger
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.mapping_selector import MappingSelector
from inventory_kernel.services.audit import (
    AuditAction,
    AuditEvent,
    AuditSink,
    LoggingAuditSink,
    emit_safely,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.mapping_graph import record_snapshot

logger = get_logger("services.cascade")


class CascadeRecalculator(BaseService[SkuMapping]):
    """Best-effort, per-mapping recalculation after a cost change."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        super().__init__(session, clock)
        self._audit_sink = audit_sink or LoggingAuditSink()

    def _read_inputs(
        self, tenant_id: str, item_id: UUID
    ) -> tuple[list[MappingCostInput], dict[UUID, Decimal]]:
        mapping_ids = MappingSelector(self.session).mapping_ids_referencing(
            tenant_id, item_id
        )
        if not mapping_ids:
            return [], {}
        mappings = self.session.execute(
            select(SkuMapping)
            .options(selectinload(SkuMapping.components))
            .where(SkuMapping.tenant_id == tenant_id, SkuMapping.id.in_(mapping_ids))
            .order_by(SkuMapping.sku_key)
        ).scalars().all()

        inputs = [
            MappingCostInput(
                mapping_id=m.id,
                manufacturing_cost=m.manufacturing_cost,
                components=tuple(
                    ComponentCost(c.inventory_item_id, c.quantity_per_unit)
                    for c in m.components
                ),
            )
            for m in mappings
        ]
        component_ids = {c.inventory_item_id for i in inputs for c in i.components}
        unit_costs = LedgerSelector(self.session).unit_costs(tenant_id, component_ids)
        return inputs, unit_costs

    def _write_one(
        self, tenant_id: str, mapping_id: UUID, new_cost: Decimal, actor_id: UUID
    ) -> None:
        with self._atomic("cascade_mapping_update"):
            mapping = self.session.execute(
                select(SkuMapping)
                .where(SkuMapping.id == mapping_id, SkuMapping.tenant_id == tenant_id)
                .with_for_update()
            ).scalar_one()
            mapping.manufacturing_cost = new_cost
            mapping.updated_by_id = actor_id
            record_snapshot(
                self.session, self.clock, mapping, SnapshotTrigger.CASCADE, actor_id
            )

    def recalculate_for_item(
        self,
        tenant_id: str,
        item_id: UUID,
        new_cost: Decimal,
        actor_id: UUID,
    ) -> CascadeResult:
        """
        Recompute every mapping of ``tenant_id`` that references ``item_id``.

        Args:
            new_cost: The item's new unit cost.  Used even if the stored
                value has not been flushed yet.

        Raises:
            PersistenceError: the read phase failed.
        """
        try:
            inputs, unit_costs = self._read_inputs(tenant_id, item_id)
        except SQLAlchemyError as exc:
            logger.error(
                "cascade_read_failed",
                extra={"item_id": str(item_id), "tenant_id": tenant_id},
                exc_info=True,
            )
            raise PersistenceError("cascade_read", str(exc)) from exc

        plan: CascadePlan = plan_cascade(item_id, new_cost, inputs, unit_costs)

        updated: list[UUID] = []
        failures: list[CascadeFailure] = []
        for change in plan.changes:
            try:
                self._write_one(tenant_id, change.mapping_id, change.new_cost, actor_id)
            except PersistenceError as exc:
                logger.error(
                    "cascade_mapping_failed",
                    extra={
                        "item_id": str(item_id),
                        "mapping_id": str(change.mapping_id),
                        "tenant_id": tenant_id,
                    },
                    exc_info=True,
                )
                failures.append(CascadeFailure(change.mapping_id, exc.detail))
                continue
            updated.append(change.mapping_id)
            emit_safely(
                self._audit_sink,
                AuditEvent(
                    action=AuditAction.MAPPING_RECALCULATED,
                    entity_type="SkuMapping",
                    entity_id=change.mapping_id,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    occurred_at=self.clock.now(),
                    payload={
                        "item_id": str(item_id),
                        "previous_cost": str(change.previous_cost),
                        "new_cost": str(change.new_cost),
                    },
                ),
            )

        result = CascadeResult(
            item_id=item_id,
            updated_mapping_ids=tuple(updated),
            unchanged_mapping_ids=plan.unchanged,
            failures=tuple(failures),
        )
        logger.info(
            "cascade_completed",
            extra={
                "item_id": str(item_id),
                "tenant_id": tenant_id,
                "updated": len(result.updated_mapping_ids),
                "unchanged": len(result.unchanged_mapping_ids),
                "failed": len(result.failures),
            },
        )
        return result
