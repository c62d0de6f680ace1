"""
Module: ledger_kernel.models.fiscal_calendar
Responsibility: ORM persistence for fiscal years and their periods -- the
    date ranges that decide whether a journal entry may be posted.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - period_number is unique within a fiscal year.
    - Only OPEN and ADJUSTING periods accept postings.
    - LOCKED is terminal for both years and periods.
    - Ordering rules (close in sequence, reopen only the latest closed
      period) are enforced by FiscalCalendarService, not here.

Failure modes:
    - FiscalPeriodNotFoundError when no period covers a date.
    - ClosedPeriodError when posting into a period that is not postable.

Audit relevance:
    closed_at / closed_by_id record who froze a period.  They are cleared
    on reopen so the current state is never ambiguous.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class FiscalYearStatus(str, Enum):
    """OPEN -> CLOSED -> LOCKED.  LOCKED is terminal."""

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class PeriodStatus(str, Enum):
    """
    Lifecycle of a fiscal period.

    Contract: OPEN -> CLOSED, CLOSED -> OPEN (reopen), CLOSED -> ADJUSTING,
    any -> LOCKED via the year lock.  OPEN and ADJUSTING accept postings.
    """

    OPEN = "open"
    CLOSED = "closed"
    ADJUSTING = "adjusting"
    LOCKED = "locked"


# tuple, not set: loaded rows hold plain strings
POSTABLE_PERIOD_STATUSES = (PeriodStatus.OPEN, PeriodStatus.ADJUSTING)


class FiscalYear(TrackedBase):
    """
    A fiscal year partitioned into contiguous periods.

    Guarantees:
        - Date ranges of different years never overlap (checked by
          FiscalCalendarService at creation time).
        - At most one year has is_current set.
    """

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("name", name="uq_fiscal_year_name"),
        Index("idx_fiscal_year_dates", "start_date", "end_date"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[FiscalYearStatus] = mapped_column(
        String(20),
        default=FiscalYearStatus.OPEN,
        nullable=False,
    )

    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    periods: Mapped[list["FiscalPeriod"]] = relationship(
        back_populates="fiscal_year",
        order_by="FiscalPeriod.period_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<FiscalYear {self.name}: {self.status}>"

    def contains(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date


class FiscalPeriod(TrackedBase):
    """
    One posting window inside a fiscal year.

    Guarantees:
        - start_date <= end_date, and the periods of a year are contiguous
          and cover it exactly (checked by FiscalCalendarService).
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "period_number", name="uq_period_year_number"),
        Index("idx_period_dates", "start_date", "end_date"),
        Index("idx_period_status", "status"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    period_number: Mapped[int] = mapped_column(nullable=False)

    # e.g. "January 2026"
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        default=PeriodStatus.OPEN,
        nullable=False,
    )

    is_adjusting_period: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    fiscal_year: Mapped[FiscalYear] = relationship(back_populates="periods")

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.name}: {self.status}>"

    @property
    def is_postable(self) -> bool:
        return self.status in POSTABLE_PERIOD_STATUSES

    @property
    def is_closed(self) -> bool:
        return self.status in (PeriodStatus.CLOSED, PeriodStatus.LOCKED)

    def contains(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date
