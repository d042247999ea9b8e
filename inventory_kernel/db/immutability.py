"""
ORM-Level Immutability Enforcement for inventory history.

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock and cost history, and mapping cost snapshots, are the evidence behind
every stock level and every historical valuation.  A record that can be
edited after the fact makes a past profit/loss report unreproducible.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_flush]   --> remember which items/mappings are being deleted
         |
         v
    [before_update]  --> _check_record_update() --> ImmutabilityViolationError
         |
         v
    [before_delete]  --> _check_record_delete() --> ImmutabilityViolationError
         |                (unless the parent is deleted in the same flush)
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | UPDATE  | DELETE
----------------------|---------|------------------------------------------
StockChangeRecord     | never   | only with its InventoryItem
CostChangeRecord      | never   | only with its InventoryItem
SkuMappingSnapshot    | never   | only with its SkuMapping

===============================================================================
USAGE
===============================================================================

Called once during application startup, after the models are imported:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# session.info key holding ids of parents deleted in the current flush
_DELETED_PARENTS_KEY = "inventory_kernel.deleted_parent_ids"


def _remember_deleted_parents(session, flush_context, instances):
    """
    Record the ids of items and mappings marked for deletion.

    Runs in SessionEvents.before_flush, while session.deleted still lists
    every explicitly deleted object.
    """
    from inventory_kernel.models.inventory_item import InventoryItem
    from inventory_kernel.models.sku_mapping import SkuMapping

    session.info[_DELETED_PARENTS_KEY] = {
        obj.id
        for obj in list(session.deleted)
        if isinstance(obj, (InventoryItem, SkuMapping))
    }


def _forget_deleted_parents(session, flush_context):
    session.info.pop(_DELETED_PARENTS_KEY, None)


def _changed_columns(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _check_record_update(mapper, connection, target):
    """Block every UPDATE of a history record."""
    changed = _changed_columns(target)
    if not changed:
        return
    logger.error(
        "immutability_violation_update",
        extra={
            "entity_type": type(target).__name__,
            "entity_id": str(target.id),
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=type(target).__name__,
        entity_id=str(target.id),
        reason=f"history records are append-only (attempted change: {', '.join(changed)})",
    )


def _parent_id(target):
    from inventory_kernel.models.sku_mapping import SkuMappingSnapshot

    if isinstance(target, SkuMappingSnapshot):
        return target.sku_mapping_id
    return target.item_id


def _check_record_delete(mapper, connection, target):
    """Allow DELETE of a history record only as part of its parent's deletion."""
    session = Session.object_session(target)
    deleted_parents = session.info.get(_DELETED_PARENTS_KEY, set()) if session else set()
    if _parent_id(target) in deleted_parents:
        return
    logger.error(
        "immutability_violation_delete",
        extra={"entity_type": type(target).__name__, "entity_id": str(target.id)},
    )
    raise ImmutabilityViolationError(
        entity_type=type(target).__name__,
        entity_id=str(target.id),
        reason="history records are deleted only together with their parent",
    )


def _protected_models():
    from inventory_kernel.models.ledger import CostChangeRecord, StockChangeRecord
    from inventory_kernel.models.sku_mapping import SkuMappingSnapshot

    return (StockChangeRecord, CostChangeRecord, SkuMappingSnapshot)


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are not added twice.
    """
    if not event.contains(Session, "before_flush", _remember_deleted_parents):
        event.listen(Session, "before_flush", _remember_deleted_parents)
    if not event.contains(Session, "after_flush_postexec", _forget_deleted_parents):
        event.listen(Session, "after_flush_postexec", _forget_deleted_parents)

    for model in _protected_models():
        if not event.contains(model, "before_update", _check_record_update):
            event.listen(model, "before_update", _check_record_update)
        if not event.contains(model, "before_delete", _check_record_delete):
            event.listen(model, "before_delete", _check_record_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately tamper with history.
    """
    _safe_remove_listener(Session, "before_flush", _remember_deleted_parents)
    _safe_remove_listener(Session, "after_flush_postexec", _forget_deleted_parents)

    for model in _protected_models():
        _safe_remove_listener(model, "before_update", _check_record_update)
        _safe_remove_listener(model, "before_delete", _check_record_delete)
