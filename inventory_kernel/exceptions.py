"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers branch on the error *type* and read structured attributes; they never
parse message strings.  Every class carries a machine-readable ``code`` class
attribute that is safe to hand to an API layer or a log pipeline.

Example - WRONG way to handle errors:
    try:
        graph.create_mapping(command, actor_id)
    except Exception as e:
        if "already exists" in str(e):   # FRAGILE
            ...

Example - RIGHT way:
    try:
        graph.create_mapping(command, actor_id)
    except DuplicateSkuMappingError as e:
        return {"error": e.code, "sku": e.sku}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- SkuMappingNotFoundError
    |   +-- OrderNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateSkuMappingError
    |   +-- DuplicateOrderError
    |
    +-- InvalidInputError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- InvalidQuantityError
    |   +-- InvalidComponentError
    |
    +-- PersistenceError
    |   +-- CascadePartialFailureError
    |
    +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

An *unresolved* SKU during fulfillment is NOT an exception.  It is an expected
outcome and is reported as data on ``FulfillmentResult.unresolved_skus``.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------------
NotFound     | INVENTORY_ITEM_NOT_FOUND    | Item missing or owned by another tenant
             | SKU_MAPPING_NOT_FOUND       | Mapping missing or owned by another tenant
             | ORDER_NOT_FOUND             | Order missing or owned by another tenant
-------------|-----------------------------|------------------------------------------
Conflict     | DUPLICATE_SKU_MAPPING       | (tenant, sku) already mapped
             | DUPLICATE_ORDER             | (tenant, external order id) already stored
-------------|-----------------------------|------------------------------------------
Invalid      | MISSING_FIELD               | Required field absent or blank
             | INVALID_FIELD               | Field present but malformed
             | INVALID_QUANTITY            | Quantity non-positive or not numeric
             | INVALID_COMPONENT           | Mapping component list malformed
-------------|-----------------------------|------------------------------------------
Persistence  | PERSISTENCE_ERROR           | Transactional failure, rolled back
             | CASCADE_PARTIAL_FAILURE     | Some mappings failed to recalculate
-------------|-----------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an append-only record
-------------|-----------------------------|------------------------------------------
Config       | CONFIGURATION_ERROR         | Malformed configuration value

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# =============================================================================
# NotFound
# =============================================================================


class NotFoundError(InventoryKernelError):
    """Base exception for missing entities (or entities of another tenant)."""

    code: str = "NOT_FOUND"


class InventoryItemNotFoundError(NotFoundError):
    """Inventory item does not exist for the requesting tenant."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str, tenant_id: str):
        self.item_id = item_id
        self.tenant_id = tenant_id
        super().__init__(
            f"Inventory item {item_id} not found for tenant {tenant_id}"
        )


class SkuMappingNotFoundError(NotFoundError):
    """SKU mapping does not exist for the requesting tenant."""

    code: str = "SKU_MAPPING_NOT_FOUND"

    def __init__(self, mapping_id: str, tenant_id: str):
        self.mapping_id = mapping_id
        self.tenant_id = tenant_id
        super().__init__(
            f"SKU mapping {mapping_id} not found for tenant {tenant_id}"
        )


class OrderNotFoundError(NotFoundError):
    """Order record does not exist for the requesting tenant."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str, tenant_id: str):
        self.order_id = order_id
        self.tenant_id = tenant_id
        super().__init__(f"Order {order_id} not found for tenant {tenant_id}")


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(InventoryKernelError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"


class DuplicateSkuMappingError(ConflictError):
    """A mapping for (tenant, sku) already exists."""

    code: str = "DUPLICATE_SKU_MAPPING"

    def __init__(self, tenant_id: str, sku: str, existing_mapping_id: str | None = None):
        self.tenant_id = tenant_id
        self.sku = sku
        self.existing_mapping_id = existing_mapping_id
        super().__init__(f"A mapping for SKU '{sku}' already exists")


class DuplicateOrderError(ConflictError):
    """An order with the same external id is already stored for the tenant."""

    code: str = "DUPLICATE_ORDER"

    def __init__(self, tenant_id: str, external_order_id: str):
        self.tenant_id = tenant_id
        self.external_order_id = external_order_id
        super().__init__(f"Order '{external_order_id}' already exists")


# =============================================================================
# Invalid input
# =============================================================================


class InvalidInputError(InventoryKernelError):
    """Base exception for malformed commands."""

    code: str = "INVALID_INPUT"


class MissingFieldError(InvalidInputError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class InvalidFieldError(InvalidInputError):
    """A field is present but cannot be interpreted."""

    code: str = "INVALID_FIELD"

    def __init__(self, field_name: str, value: object, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value {value!r} for {field_name}: {reason}")


class InvalidQuantityError(InvalidInputError):
    """A quantity is non-positive, non-finite, or not a number."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid quantity {value!r} for {field_name}")


class InvalidComponentError(InvalidInputError):
    """A mapping's component list is empty or repeats an item."""

    code: str = "INVALID_COMPONENT"

    def __init__(self, reason: str, item_id: str | None = None):
        self.reason = reason
        self.item_id = item_id
        super().__init__(f"Invalid mapping components: {reason}")


# =============================================================================
# Persistence
# =============================================================================


class PersistenceError(InventoryKernelError):
    """
    A transactional write failed and was rolled back.

    The store is back in its pre-operation state; no partial history remains.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class CascadePartialFailureError(PersistenceError):
    """One or more mappings could not be recalculated after a cost change."""

    code: str = "CASCADE_PARTIAL_FAILURE"

    def __init__(self, item_id: str, mapping_ids: list[str]):
        self.item_id = item_id
        self.mapping_ids = mapping_ids
        super().__init__(
            "cascade_recalculation",
            f"{len(mapping_ids)} mapping(s) failed for item {item_id}: "
            f"{', '.join(mapping_ids)}",
        )


# =============================================================================
# Immutability
# =============================================================================


class ImmutabilityViolationError(InventoryKernelError):
    """Attempt to modify or delete an append-only history record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(InventoryKernelError):
    """A configuration value is malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for '{key}': {reason}")
