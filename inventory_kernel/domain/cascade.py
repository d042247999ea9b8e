"""
Cascade planning -- pure recomputation of mapping costs after a cost change.

Responsibility:
    Given every mapping that references a changed item, and the current unit
    cost of every component, decide which mappings get a new
    manufacturing_cost.  No I/O: the recalculator reads first, calls
    ``plan_cascade``, then writes.

Invariants enforced:
    - manufacturing_cost == sum(unit_cost * quantity_per_unit), quantized to
      the storage scale.
    - The changed item contributes its NEW cost; every other component
      contributes its stored cost; a missing (deleted) item contributes zero.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.values import ZERO, quantize_amount


@dataclass(frozen=True)
class ComponentCost:
    inventory_item_id: UUID
    quantity_per_unit: Decimal


@dataclass(frozen=True)
class MappingCostInput:
    mapping_id: UUID
    manufacturing_cost: Decimal
    components: tuple[ComponentCost, ...]


@dataclass(frozen=True)
class PlannedCostChange:
    mapping_id: UUID
    previous_cost: Decimal
    new_cost: Decimal


@dataclass(frozen=True)
class CascadePlan:
    changes: tuple[PlannedCostChange, ...]
    unchanged: tuple[UUID, ...]


def compute_manufacturing_cost(
    components: Iterable[ComponentCost],
    unit_costs: Mapping[UUID, Decimal],
) -> Decimal:
    """Sum of unit cost times quantity per unit; unknown items count as zero."""
    total = ZERO
    for component in components:
        cost = unit_costs.get(component.inventory_item_id)
        if cost is None:
            continue
        total += cost * component.quantity_per_unit
    return quantize_amount(total)


def plan_cascade(
    item_id: UUID,
    new_cost: Decimal,
    mappings: Iterable[MappingCostInput],
    unit_costs: Mapping[UUID, Decimal],
) -> CascadePlan:
    """
    Decide the new manufacturing cost of each mapping.

    ``unit_costs`` holds stored costs and may be stale for ``item_id``;
    ``new_cost`` always wins for it.
    """
    costs = dict(unit_costs)
    costs[item_id] = new_cost

    changes: list[PlannedCostChange] = []
    unchanged: list[UUID] = []
    for mapping in mappings:
        recomputed = compute_manufacturing_cost(mapping.components, costs)
        if recomputed == mapping.manufacturing_cost:
            unchanged.append(mapping.mapping_id)
        else:
            changes.append(
                PlannedCostChange(
                    mapping_id=mapping.mapping_id,
                    previous_cost=mapping.manufacturing_cost,
                    new_cost=recomputed,
                )
            )
    return CascadePlan(changes=tuple(changes), unchanged=tuple(unchanged))
