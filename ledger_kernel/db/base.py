"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for audit metadata.
Architecture position: Kernel > DB.  Lowest-level import target in the kernel;
    every model file imports from here.  MUST NOT import from models/,
    services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys on every table (uuid4, stored as String(36) so the
      same schema runs on PostgreSQL and SQLite).
    - Decimal columns default to Numeric(18, 2): the monetary scale.  Rate and
      quantity columns opt into their own scale explicitly (see db/types.py).
    - Audit metadata: TrackedBase carries created_at/updated_at and the acting
      user on insert and update.  Services stamp the actor explicitly; there
      are no ORM event hooks that do it implicitly.

Failure modes:
    - IntegrityError if a row is inserted with a duplicate primary key.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36) for cross-database portability.

    Guarantees:
        - UUID -> str on bind, str -> UUID on result.
        - cache_ok=True so statements using it are cacheable.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value if isinstance(value, PyUUID) else PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Contract:
        Every ORM model inherits from Base (or TrackedBase) and gets a uuid4
        primary key named ``id``.

    Guarantees:
        - Decimal maps to Numeric(18, 2) -- fixed-point, never float.
        - datetime maps to DateTime(timezone=True).
        - int maps to Integer.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor tracking.

    Guarantees:
        - created_at is set by the database on INSERT.
        - updated_at is set on INSERT and refreshed on every UPDATE.
        - created_by_id is NOT NULL: every record names the actor that created it.
        - updated_by_id is nullable and set by services on mutation.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
