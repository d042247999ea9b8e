"""
Kernel Invariants Contract.

These invariants are structural law for the inventory kernel.  No
configuration value may switch them off.

This module exists solely to declare these invariants explicitly.  The
enforcement is distributed across the ledger store, the mapping graph, the
cascade recalculator, the fulfillment resolver, and the ORM immutability
listeners.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    LEDGER_ARITHMETIC = "ledger_arithmetic"
    """Every stock/cost record satisfies new_value == previous_value + delta,
    and the entity update and the record append commit together.  Enforced
    by LedgerStore inside a single savepoint."""

    HISTORY_IMMUTABILITY = "history_immutability"
    """Stock, cost, and mapping snapshot records are never updated, and are
    deleted only together with their parent.  Enforced by
    inventory_kernel.db.immutability."""

    DERIVED_MANUFACTURING_COST = "derived_manufacturing_cost"
    """A mapping's manufacturing_cost is computed from component costs and
    never accepted from a caller.  Enforced by MappingGraph and
    CascadeRecalculator."""

    SINGLE_FULFILLMENT = "single_fulfillment"
    """An order's stock deductions are applied at most once, gated by
    fulfillment_applied.  Enforced by FulfillmentResolver."""

    TENANT_SCOPING = "tenant_scoping"
    """Every read and write is filtered by an explicit tenant id; an entity
    of another tenant is indistinguishable from a missing one."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_engines",
    "inventory_services",
    "inventory_config",
)
