"""
BaseService -- common base for every kernel service that writes.

Responsibility:
    Holds the caller's Session and clock, and provides ``atomic()``: a
    savepoint around a multi-step mutation that translates database lock
    failures into LockConflictError.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush within the caller's transaction and never call
      ``session.commit()`` or ``session.rollback()``.  The caller owns the
      transaction boundary.
    - Inside ``atomic()`` either every change is kept or none is: an
      exception rolls back to the savepoint before propagating.

Failure modes:
    - LockConflictError when the database reports a deadlock, lock timeout
      or serialization failure inside ``atomic()``.
    - Any other exception propagates unchanged after the savepoint rollback.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generic, Iterator, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import LockConflictError

ModelType = TypeVar("ModelType", bound=Base)

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_LOCK_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_lock_failure(exc: BaseException) -> bool:
    """True if ``exc`` is a database error caused by lock contention."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _LOCK_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "deadlock" in message


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` owned by the caller and an optional
        Clock (SystemClock by default).

    Non-goals:
        - Does NOT manage the outer transaction.
        - Does NOT provide read models; those live in ``selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    @contextmanager
    def atomic(self, operation: str) -> Iterator[None]:
        """
        Run the block inside a savepoint.

        Postconditions: On success the savepoint is released; on any
            exception it is rolled back and the exception re-raised
            (lock failures as LockConflictError).
        """
        try:
            with self.session.begin_nested():
                yield
        except DBAPIError as exc:
            if is_lock_failure(exc):
                raise LockConflictError(operation, str(exc.orig)) from exc
            raise
