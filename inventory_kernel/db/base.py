"""
Module: inventory_kernel.db.base
Responsibility: Declarative base for every ORM model in the kernel.
Architecture position: Kernel > DB.  Imported by models/, services/ and
    selectors/; imports only db/types.py.

Every row gets a uuid4 primary key.  The type annotation map fixes how plain
annotations become columns: Decimal -> Numeric(38, 9), datetime ->
UTCDateTime, UUID -> UUIDString, int -> BigInteger.

Current-state entities (items, mappings, orders, unresolved skus) extend
TrackedBase and carry who created and last touched them.  History records
extend Base directly and stamp their own ``recorded_at`` and ``actor_id``.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from inventory_kernel.db.types import UTCDateTime, UUIDString


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Adds creation and last-update stamps.

    ``created_at``/``updated_at`` come from the database clock; the actor ids
    are set by the service performing the write.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]


__all__ = ["Base", "TrackedBase", "UUID", "UUIDString"]
