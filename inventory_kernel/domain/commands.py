"""
Commands -- typed, validated inputs for every mutating kernel operation.

Responsibility:
    Loosely typed payloads (JSON bodies, spreadsheet rows) are parsed here,
    at the boundary, into frozen dataclasses.  Services only ever see these
    commands; they never re-validate strings or guess at types.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  May import from exceptions and
    domain/values only.

Invariants enforced:
    - Costs and quantities are finite Decimals, never floats.
    - Mapping components are non-empty, unique per item, with a positive
      quantity_per_unit.

Failure modes:
    - MissingFieldError / InvalidFieldError / InvalidQuantityError /
      InvalidComponentError raised from ``__post_init__`` or ``from_payload``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from inventory_kernel.domain.values import ZERO, to_decimal, utc
from inventory_kernel.exceptions import (
    InvalidComponentError,
    InvalidFieldError,
    InvalidQuantityError,
    MissingFieldError,
)

# =============================================================================
# Field parsers
# =============================================================================


def _require_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        raise MissingFieldError(key)
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        raise MissingFieldError(key)
    return value


def _require_mapping(field_name: str, payload: Any) -> None:
    if not isinstance(payload, Mapping):
        raise InvalidFieldError(field_name, payload, "must be a mapping")


def _optional_text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_decimal(field_name: str, value: Any) -> Decimal:
    if isinstance(value, float):
        # Floats from JSON are accepted through their shortest repr
        value = repr(value)
    try:
        result = to_decimal(value)
    except (TypeError, InvalidOperation) as exc:
        raise InvalidFieldError(field_name, value, "not a decimal number") from exc
    if not result.is_finite():
        raise InvalidFieldError(field_name, value, "not a finite number")
    return result


def _parse_quantity(field_name: str, value: Any) -> Decimal:
    try:
        quantity = _parse_decimal(field_name, value)
    except InvalidFieldError as exc:
        raise InvalidQuantityError(field_name, value) from exc
    if quantity <= ZERO:
        raise InvalidQuantityError(field_name, value)
    return quantity


def _parse_uuid(field_name: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    if value is None:
        raise MissingFieldError(field_name)
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidFieldError(field_name, value, "not a UUID") from exc


def _parse_datetime(field_name: str, value: Any) -> datetime:
    if value is None:
        raise MissingFieldError(field_name)
    if isinstance(value, datetime):
        return utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidFieldError(field_name, value, "not an ISO-8601 date") from exc
    return utc(parsed)


def _check_non_negative(field_name: str, value: Decimal) -> None:
    if not isinstance(value, Decimal):
        raise InvalidFieldError(field_name, value, "must be a Decimal")
    if not value.is_finite() or value < ZERO:
        raise InvalidFieldError(field_name, value, "must be a non-negative number")


def _is_positive_decimal(value: object) -> bool:
    return isinstance(value, Decimal) and value.is_finite() and value > ZERO


# =============================================================================
# Inventory items
# =============================================================================


@dataclass(frozen=True)
class CreateItemCommand:
    """Create an inventory item with opening cost and stock."""

    tenant_id: str
    name: str
    unit_cost: Decimal = ZERO
    stock_quantity: Decimal = ZERO
    code: str | None = None
    category: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise MissingFieldError("tenant_id")
        if not self.name or not self.name.strip():
            raise MissingFieldError("name")
        _check_non_negative("unit_cost", self.unit_cost)
        _check_non_negative("stock_quantity", self.stock_quantity)

    @classmethod
    def from_payload(cls, tenant_id: str, payload: Mapping[str, Any]) -> CreateItemCommand:
        _require_mapping("payload", payload)
        return cls(
            tenant_id=tenant_id,
            name=_require_text(payload, "name"),
            code=_optional_text(payload, "code"),
            category=_optional_text(payload, "category"),
            description=_optional_text(payload, "description"),
            unit_cost=_parse_decimal("unit_cost", payload.get("unit_cost", 0)),
            stock_quantity=_parse_decimal(
                "stock_quantity", payload.get("stock_quantity", 0)
            ),
        )


@dataclass(frozen=True)
class UpdateItemCommand:
    """
    Partial update of an inventory item.

    ``None`` means "leave unchanged".  ``stock_quantity`` is a target level;
    the ledger records the difference to the current level.
    """

    tenant_id: str
    item_id: UUID
    name: str | None = None
    code: str | None = None
    category: str | None = None
    description: str | None = None
    unit_cost: Decimal | None = None
    stock_quantity: Decimal | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise MissingFieldError("tenant_id")
        if self.name is not None and not self.name.strip():
            raise InvalidFieldError("name", self.name, "must not be blank")
        if self.unit_cost is not None:
            _check_non_negative("unit_cost", self.unit_cost)
        if self.stock_quantity is not None:
            _check_non_negative("stock_quantity", self.stock_quantity)

    @classmethod
    def from_payload(
        cls, tenant_id: str, item_id: UUID | str, payload: Mapping[str, Any]
    ) -> UpdateItemCommand:
        _require_mapping("payload", payload)
        unit_cost = payload.get("unit_cost")
        stock = payload.get("stock_quantity")
        return cls(
            tenant_id=tenant_id,
            item_id=_parse_uuid("item_id", item_id),
            name=_optional_text(payload, "name"),
            code=_optional_text(payload, "code"),
            category=_optional_text(payload, "category"),
            description=_optional_text(payload, "description"),
            unit_cost=None if unit_cost is None else _parse_decimal("unit_cost", unit_cost),
            stock_quantity=None if stock is None else _parse_decimal("stock_quantity", stock),
            note=_optional_text(payload, "note"),
        )


# =============================================================================
# SKU mappings
# =============================================================================


@dataclass(frozen=True)
class ComponentSpec:
    """One inventory item consumed per sold unit."""

    inventory_item_id: UUID
    quantity_per_unit: Decimal

    def __post_init__(self) -> None:
        if not _is_positive_decimal(self.quantity_per_unit):
            raise InvalidQuantityError("quantity_per_unit", self.quantity_per_unit)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ComponentSpec:
        _require_mapping("components", payload)
        return cls(
            inventory_item_id=_parse_uuid(
                "inventory_item_id", payload.get("inventory_item_id")
            ),
            quantity_per_unit=_parse_quantity(
                "quantity_per_unit", payload.get("quantity_per_unit", 1)
            ),
        )


@dataclass(frozen=True)
class MappingCommand:
    """
    Desired state of a SKU mapping, used for both create and update.

    There is no manufacturing_cost field: it is always derived from the
    components' current unit costs.
    """

    tenant_id: str
    sku: str
    components: tuple[ComponentSpec, ...]
    packaging_cost: Decimal = ZERO

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise MissingFieldError("tenant_id")
        if not self.sku or not self.sku.strip():
            raise MissingFieldError("sku")
        if not self.components:
            raise InvalidComponentError("at least one component is required")
        seen: set[UUID] = set()
        for component in self.components:
            if component.inventory_item_id in seen:
                raise InvalidComponentError(
                    "inventory item listed twice",
                    item_id=str(component.inventory_item_id),
                )
            seen.add(component.inventory_item_id)
        _check_non_negative("packaging_cost", self.packaging_cost)

    @classmethod
    def from_payload(cls, tenant_id: str, payload: Mapping[str, Any]) -> MappingCommand:
        _require_mapping("payload", payload)
        raw_components = payload.get("components")
        if raw_components is None:
            raise MissingFieldError("components")
        if isinstance(raw_components, (str, bytes)) or not hasattr(
            raw_components, "__iter__"
        ):
            raise InvalidComponentError("components must be a list")
        return cls(
            tenant_id=tenant_id,
            sku=_require_text(payload, "sku"),
            components=tuple(ComponentSpec.from_payload(c) for c in raw_components),
            packaging_cost=_parse_decimal(
                "packaging_cost", payload.get("packaging_cost", 0)
            ),
        )


# =============================================================================
# Orders
# =============================================================================


@dataclass(frozen=True)
class OrderLineCommand:
    sku: str
    quantity: Decimal
    sub_order_id: str | None = None

    def __post_init__(self) -> None:
        if not self.sku or not self.sku.strip():
            raise MissingFieldError("sku")
        if not _is_positive_decimal(self.quantity):
            raise InvalidQuantityError("quantity", self.quantity)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> OrderLineCommand:
        _require_mapping("lines", payload)
        return cls(
            sku=_require_text(payload, "sku"),
            quantity=_parse_quantity("quantity", payload.get("quantity", 1)),
            sub_order_id=_optional_text(payload, "sub_order_id"),
        )


@dataclass(frozen=True)
class OrderCommand:
    """
    One marketplace order to ingest.

    An order with no lines is accepted here; the ingestor reports it as an
    error entry rather than raising.
    """

    tenant_id: str
    external_order_id: str
    order_date: datetime
    lines: tuple[OrderLineCommand, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise MissingFieldError("tenant_id")
        if not self.external_order_id or not self.external_order_id.strip():
            raise MissingFieldError("external_order_id")
        if self.order_date.tzinfo is None:
            raise InvalidFieldError(
                "order_date", self.order_date, "must be timezone-aware"
            )

    @classmethod
    def from_payload(cls, tenant_id: str, payload: Mapping[str, Any]) -> OrderCommand:
        _require_mapping("payload", payload)
        raw_lines = payload.get("lines") or ()
        if not isinstance(raw_lines, (list, tuple)):
            raise InvalidFieldError("lines", raw_lines, "must be a list")
        return cls(
            tenant_id=tenant_id,
            external_order_id=_require_text(payload, "external_order_id"),
            order_date=_parse_datetime("order_date", payload.get("order_date")),
            lines=tuple(OrderLineCommand.from_payload(line) for line in raw_lines),
        )
