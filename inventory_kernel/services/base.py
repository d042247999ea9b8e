"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and the savepoint helper that every
    mutating operation runs inside.  Services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit.  The caller (``session_scope()`` or the test harness)
      owns commit/rollback.
    - All-or-nothing operations: ``_atomic()`` wraps one logical operation in
      a SAVEPOINT.  Any failure rolls the session back to the state before
      the operation and is re-raised as a typed kernel error.

Failure modes:
    - PersistenceError wrapping any SQLAlchemyError raised inside ``_atomic``.
"""

from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import PersistenceError
from inventory_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the outer transaction.
        - Every timestamp it writes comes from the injected clock.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Clock for recorded_at timestamps.  Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        """
        Run the body inside a SAVEPOINT, flushing on success.

        Kernel errors propagate unchanged; database errors become
        PersistenceError.  Either way the savepoint is rolled back.
        """
        try:
            with self.session.begin_nested():
                yield
        except SQLAlchemyError as exc:
            logger.error(
                "persistence_failure",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PersistenceError(operation, str(exc)) from exc
