"""
Module: inventory_kernel.db.types
Responsibility: Column types shared by every model.  Centralizes precision
    and timestamp handling so that costs and quantities are stored
    identically system-wide.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money or quantities.  Decimal with 9 places everywhere.
    - Stored timestamps are UTC; values read back are always tz-aware.

Failure modes:
    - ValueError from UTCDateTime on a naive datetime bind (callers must pass
      aware values; the Clock abstraction guarantees this).
"""

from datetime import timezone
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

# Costs and quantities: 38 digits total, 9 decimal places
Amount = Annotated[Decimal, Numeric(38, 9)]

# Tenant identifier (a GSTIN or any opaque business key)
TenantId = Annotated[str, String(64)]

# Sold SKU code
SkuCode = Annotated[str, String(255)]


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character text form, so SQLite and PostgreSQL agree."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime on every backend.

    PostgreSQL keeps the offset natively.  SQLite stores a naive string, so
    values are normalized to UTC on bind and re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

