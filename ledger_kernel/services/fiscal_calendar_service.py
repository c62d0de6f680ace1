"""
FiscalCalendarService -- fiscal years, their periods, and the lifecycle that
decides where postings may land.

Responsibility:
    Creates fiscal years and partitions them into periods (calendar months
    by default, or caller-supplied boundaries), drives the close / reopen /
    adjusting / lock lifecycle, and resolves the period for a date.

Architecture position:
    Kernel > Services -- imperative shell.  JournalService calls
    ``period_for_date`` and ``is_postable`` before every post.

Invariants enforced:
    - Fiscal years never overlap.
    - Periods of a year are contiguous, numbered from 1 and cover the year
      exactly.
    - A period closes only when every lower-numbered period in the year is
      closed (or locked).
    - A period reopens only from CLOSED, only while no later period is
      closed or locked, and only while its year is OPEN.
    - A year closes only when all of its periods are closed; locking is
      terminal and cascades to every period.
    - At most one year is current.

Failure modes:
    - FiscalYearOverlapError, InvalidPeriodBoundariesError (validation).
    - PeriodsAlreadyExistError when partitioning a year twice.
    - FiscalYearNotFoundError / FiscalPeriodNotFoundError for unknown ids.
    - Lifecycle transitions that are not allowed return False and log a
      warning with the reason; they never raise and never change state.

Audit relevance:
    closed_at / closed_by_id stamp every close, and are cleared on reopen.
    All transitions are logged with the period or year name and the actor.
"""

import calendar
from datetime import date, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import FiscalPeriodInfo, FiscalYearInfo
from ledger_kernel.exceptions import (
    FiscalPeriodNotFoundError,
    FiscalYearNotFoundError,
    FiscalYearOverlapError,
    InvalidPeriodBoundariesError,
    PeriodsAlreadyExistError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_calendar import (
    FiscalPeriod,
    FiscalYear,
    FiscalYearStatus,
    PeriodStatus,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.fiscal_calendar")


def year_to_dto(year: FiscalYear) -> FiscalYearInfo:
    return FiscalYearInfo(
        id=year.id,
        name=year.name,
        start_date=year.start_date,
        end_date=year.end_date,
        status=FiscalYearStatus(year.status),
        is_current=year.is_current,
        closed_at=year.closed_at,
        closed_by_id=year.closed_by_id,
    )


def period_to_dto(period: FiscalPeriod) -> FiscalPeriodInfo:
    return FiscalPeriodInfo(
        id=period.id,
        fiscal_year_id=period.fiscal_year_id,
        period_number=period.period_number,
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        status=PeriodStatus(period.status),
        is_adjusting_period=period.is_adjusting_period,
        closed_at=period.closed_at,
        closed_by_id=period.closed_by_id,
    )


def monthly_boundaries(start: date, end: date) -> list[tuple[date, date]]:
    """Calendar months from ``start`` to ``end``, first and last clipped."""
    boundaries = []
    current = start
    while current <= end:
        last_day = calendar.monthrange(current.year, current.month)[1]
        period_end = min(date(current.year, current.month, last_day), end)
        boundaries.append((current, period_end))
        current = period_end + timedelta(days=1)
    return boundaries


def _period_name(start: date, end: date, number: int, year_name: str) -> str:
    if start.year == end.year and start.month == end.month:
        return f"{calendar.month_name[start.month]} {start.year}"
    return f"{year_name} P{number:02d}"


class FiscalCalendarService(BaseService[FiscalYear]):
    """
    Fiscal year and period lifecycle.

    Contract:
        Creation methods return frozen DTOs.  Lifecycle methods return bool
        and flush on success.  Lookups return DTOs or None.

    Non-goals:
        - Does not post closing entries; year-end closing journals are
          created by callers through JournalService.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # ORM access
    # ------------------------------------------------------------------

    def _get_year(self, fiscal_year_id: UUID, for_update: bool = False) -> FiscalYear:
        stmt = select(FiscalYear).where(FiscalYear.id == fiscal_year_id)
        if for_update:
            stmt = stmt.with_for_update()
        year = self.session.execute(stmt).scalar_one_or_none()
        if year is None:
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        return year

    def _get_period_for_update(self, period_id: UUID) -> FiscalPeriod:
        period = self.session.execute(
            select(FiscalPeriod).where(FiscalPeriod.id == period_id).with_for_update()
        ).scalar_one_or_none()
        if period is None:
            raise FiscalPeriodNotFoundError(str(period_id))
        return period

    def get_period_orm(self, period_id: UUID) -> FiscalPeriod:
        period = self.session.get(FiscalPeriod, period_id)
        if period is None:
            raise FiscalPeriodNotFoundError(str(period_id))
        return period

    def _period_for_date_orm(self, on: date) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod)
            .join(FiscalYear, FiscalPeriod.fiscal_year_id == FiscalYear.id)
            .where(
                FiscalPeriod.start_date <= on,
                FiscalPeriod.end_date >= on,
                FiscalYear.status != FiscalYearStatus.LOCKED.value,
            )
            .order_by(FiscalPeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()

    def _reject(self, event: str, subject: str, reason: str, actor_id: UUID | None = None) -> bool:
        logger.warning(
            event,
            extra={"subject": subject, "reason": reason, "actor_id": actor_id},
        )
        return False

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _validate_no_overlap(self, name: str, start: date, end: date) -> None:
        existing = self.session.execute(
            select(FiscalYear)
            .where(FiscalYear.start_date <= end, FiscalYear.end_date >= start)
            .limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            raise FiscalYearOverlapError(name, existing.name)

    def create_fiscal_year(
        self,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        create_periods: bool = True,
        set_current: bool = False,
    ) -> FiscalYearInfo:
        """
        Create a fiscal year, by default with monthly periods.

        Raises:
            InvalidPeriodBoundariesError: start_date after end_date.
            FiscalYearOverlapError: Range overlaps an existing year.
        """
        if start_date > end_date:
            raise InvalidPeriodBoundariesError(name, "start date is after end date")
        self._validate_no_overlap(name, start_date, end_date)

        year = FiscalYear(
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=FiscalYearStatus.OPEN.value,
            is_current=False,
            created_by_id=actor_id,
        )
        self.session.add(year)
        self.session.flush()

        logger.info(
            "fiscal_year_created",
            extra={
                "fiscal_year": name,
                "start_date": start_date,
                "end_date": end_date,
            },
        )

        if create_periods:
            self.create_periods(year.id, actor_id)
        if set_current:
            self.set_current(year.id, actor_id)
        return year_to_dto(year)

    def create_periods(
        self,
        fiscal_year_id: UUID,
        actor_id: UUID,
        boundaries: Sequence[tuple[date, date]] | None = None,
    ) -> list[FiscalPeriodInfo]:
        """
        Partition a year into periods numbered from 1.

        Without ``boundaries`` the year is split into calendar months.
        Custom boundaries must be contiguous and cover the year exactly.

        Raises:
            PeriodsAlreadyExistError: The year already has periods.
            InvalidPeriodBoundariesError: Custom boundaries are malformed.
        """
        year = self._get_year(fiscal_year_id)
        count = self.session.execute(
            select(func.count(FiscalPeriod.id)).where(FiscalPeriod.fiscal_year_id == year.id)
        ).scalar_one()
        if count:
            raise PeriodsAlreadyExistError(year.name, count)

        if boundaries is None:
            ranges = monthly_boundaries(year.start_date, year.end_date)
        else:
            ranges = list(boundaries)
            self._validate_boundaries(year, ranges)

        periods = []
        for number, (start, end) in enumerate(ranges, start=1):
            period = FiscalPeriod(
                fiscal_year_id=year.id,
                period_number=number,
                name=_period_name(start, end, number, year.name),
                start_date=start,
                end_date=end,
                status=PeriodStatus.OPEN.value,
                is_adjusting_period=False,
                created_by_id=actor_id,
            )
            self.session.add(period)
            periods.append(period)
        self.session.flush()

        logger.info(
            "fiscal_periods_created",
            extra={"fiscal_year": year.name, "period_count": len(periods)},
        )
        return [period_to_dto(p) for p in periods]

    def _validate_boundaries(self, year: FiscalYear, ranges: list[tuple[date, date]]) -> None:
        if not ranges:
            raise InvalidPeriodBoundariesError(year.name, "no periods given")
        if ranges[0][0] != year.start_date:
            raise InvalidPeriodBoundariesError(year.name, "first period must start on the year start")
        if ranges[-1][1] != year.end_date:
            raise InvalidPeriodBoundariesError(year.name, "last period must end on the year end")
        previous_end = None
        for number, (start, end) in enumerate(ranges, start=1):
            if start > end:
                raise InvalidPeriodBoundariesError(year.name, f"period {number} starts after it ends")
            if previous_end is not None and start != previous_end + timedelta(days=1):
                raise InvalidPeriodBoundariesError(
                    year.name, f"period {number} does not start the day after period {number - 1}"
                )
            previous_end = end

    def set_current(self, fiscal_year_id: UUID, actor_id: UUID) -> FiscalYearInfo:
        """Mark one year current and clear the flag everywhere else."""
        year = self._get_year(fiscal_year_id)
        self.session.execute(
            update(FiscalYear)
            .where(FiscalYear.id != year.id)
            .values(is_current=False)
            .execution_options(synchronize_session="fetch")
        )
        year.is_current = True
        year.updated_by_id = actor_id
        self.session.flush()
        logger.info("fiscal_year_set_current", extra={"fiscal_year": year.name})
        return year_to_dto(year)

    # ------------------------------------------------------------------
    # Period lifecycle
    # ------------------------------------------------------------------

    def _siblings(self, period: FiscalPeriod):
        return select(FiscalPeriod).where(FiscalPeriod.fiscal_year_id == period.fiscal_year_id)

    def close_period(self, period_id: UUID, actor_id: UUID) -> bool:
        """
        OPEN or ADJUSTING -> CLOSED.

        Returns False (no change) when the period is already closed or
        locked, or when any earlier period of the year is not closed.
        """
        period = self._get_period_for_update(period_id)
        if period.is_closed:
            return self._reject("period_close_rejected", period.name, f"period is {period.status}", actor_id)

        blocking = self.session.execute(
            self._siblings(period)
            .where(
                FiscalPeriod.period_number < period.period_number,
                FiscalPeriod.status.not_in([PeriodStatus.CLOSED.value, PeriodStatus.LOCKED.value]),
            )
            .order_by(FiscalPeriod.period_number)
            .limit(1)
        ).scalar_one_or_none()
        if blocking is not None:
            return self._reject(
                "period_close_rejected", period.name, f"earlier period {blocking.name} is not closed", actor_id
            )

        period.status = PeriodStatus.CLOSED.value
        period.closed_at = self.clock.now()
        period.closed_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()
        logger.info("period_closed", extra={"period": period.name, "closed_by": actor_id})
        return True

    def reopen_period(self, period_id: UUID, actor_id: UUID) -> bool:
        """
        CLOSED -> OPEN, clearing closed_at / closed_by_id.

        Returns False when the period is not CLOSED, a later period is
        closed or locked, or the fiscal year is not open.
        """
        period = self._get_period_for_update(period_id)
        if period.status != PeriodStatus.CLOSED:
            return self._reject("period_reopen_rejected", period.name, f"period is {period.status}", actor_id)

        year = self._get_year(period.fiscal_year_id)
        if year.status != FiscalYearStatus.OPEN:
            return self._reject("period_reopen_rejected", period.name, f"fiscal year is {year.status}", actor_id)

        later_closed = self.session.execute(
            self._siblings(period)
            .where(
                FiscalPeriod.period_number > period.period_number,
                FiscalPeriod.status.in_([PeriodStatus.CLOSED.value, PeriodStatus.LOCKED.value]),
            )
            .limit(1)
        ).scalar_one_or_none()
        if later_closed is not None:
            return self._reject(
                "period_reopen_rejected", period.name, f"later period {later_closed.name} is closed", actor_id
            )

        period.status = PeriodStatus.OPEN.value
        period.closed_at = None
        period.closed_by_id = None
        period.updated_by_id = actor_id
        self.session.flush()
        logger.info("period_reopened", extra={"period": period.name, "reopened_by": actor_id})
        return True

    def set_adjusting(self, period_id: UUID, actor_id: UUID) -> bool:
        """CLOSED -> ADJUSTING, so year-end adjustments can post into it."""
        period = self._get_period_for_update(period_id)
        if period.status != PeriodStatus.CLOSED:
            return self._reject("period_adjusting_rejected", period.name, f"period is {period.status}", actor_id)

        period.status = PeriodStatus.ADJUSTING.value
        period.is_adjusting_period = True
        period.updated_by_id = actor_id
        self.session.flush()
        logger.info("period_set_adjusting", extra={"period": period.name})
        return True

    # ------------------------------------------------------------------
    # Year lifecycle
    # ------------------------------------------------------------------

    def close_year(self, fiscal_year_id: UUID, actor_id: UUID) -> bool:
        """OPEN -> CLOSED once every period is closed."""
        year = self._get_year(fiscal_year_id, for_update=True)
        if year.status != FiscalYearStatus.OPEN:
            return self._reject("fiscal_year_close_rejected", year.name, f"year is {year.status}", actor_id)

        unclosed = self.session.execute(
            select(func.count(FiscalPeriod.id)).where(
                FiscalPeriod.fiscal_year_id == year.id,
                FiscalPeriod.status.not_in([PeriodStatus.CLOSED.value, PeriodStatus.LOCKED.value]),
            )
        ).scalar_one()
        if unclosed:
            return self._reject(
                "fiscal_year_close_rejected", year.name, f"{unclosed} periods are not closed", actor_id
            )

        year.status = FiscalYearStatus.CLOSED.value
        year.closed_at = self.clock.now()
        year.closed_by_id = actor_id
        year.updated_by_id = actor_id
        self.session.flush()
        logger.info("fiscal_year_closed", extra={"fiscal_year": year.name, "closed_by": actor_id})
        return True

    def lock_year(self, fiscal_year_id: UUID, actor_id: UUID) -> bool:
        """CLOSED -> LOCKED, locking every period too.  Terminal."""
        year = self._get_year(fiscal_year_id, for_update=True)
        if year.status != FiscalYearStatus.CLOSED:
            return self._reject("fiscal_year_lock_rejected", year.name, f"year is {year.status}", actor_id)

        periods = self.session.execute(self._siblings_of_year(year.id).with_for_update()).scalars().all()
        for period in periods:
            period.status = PeriodStatus.LOCKED.value
            period.updated_by_id = actor_id
        year.status = FiscalYearStatus.LOCKED.value
        year.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "fiscal_year_locked",
            extra={"fiscal_year": year.name, "period_count": len(periods), "locked_by": actor_id},
        )
        return True

    def _siblings_of_year(self, fiscal_year_id: UUID):
        return (
            select(FiscalPeriod)
            .where(FiscalPeriod.fiscal_year_id == fiscal_year_id)
            .order_by(FiscalPeriod.period_number)
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def is_postable(period: FiscalPeriod | FiscalPeriodInfo) -> bool:
        return period.status in (PeriodStatus.OPEN, PeriodStatus.ADJUSTING)

    def period_for_date(self, on: date) -> FiscalPeriodInfo | None:
        """Period containing ``on``; periods of locked years are ignored."""
        period = self._period_for_date_orm(on)
        return period_to_dto(period) if period else None

    def current_period(self) -> FiscalPeriodInfo | None:
        """Period of the current year that contains the clock's date."""
        today = self.clock.today()
        period = self.session.execute(
            select(FiscalPeriod)
            .join(FiscalYear, FiscalPeriod.fiscal_year_id == FiscalYear.id)
            .where(
                FiscalYear.is_current.is_(True),
                FiscalPeriod.start_date <= today,
                FiscalPeriod.end_date >= today,
            )
            .limit(1)
        ).scalar_one_or_none()
        return period_to_dto(period) if period else None

    def current_year(self) -> FiscalYearInfo | None:
        year = self.session.execute(
            select(FiscalYear).where(FiscalYear.is_current.is_(True)).limit(1)
        ).scalar_one_or_none()
        return year_to_dto(year) if year else None

    def year_for_date(self, on: date) -> FiscalYearInfo | None:
        year = self.session.execute(
            select(FiscalYear)
            .where(FiscalYear.start_date <= on, FiscalYear.end_date >= on)
            .limit(1)
        ).scalar_one_or_none()
        return year_to_dto(year) if year else None

    def get_period(self, period_id: UUID) -> FiscalPeriodInfo:
        return period_to_dto(self.get_period_orm(period_id))

    def get_year(self, fiscal_year_id: UUID) -> FiscalYearInfo:
        return year_to_dto(self._get_year(fiscal_year_id))

    def periods(self, fiscal_year_id: UUID) -> list[FiscalPeriodInfo]:
        return [
            period_to_dto(p)
            for p in self.session.execute(self._siblings_of_year(fiscal_year_id)).scalars()
        ]

    def next_period(self, period_id: UUID) -> FiscalPeriodInfo | None:
        """Following period by start date, crossing into the next year."""
        period = self.get_period_orm(period_id)
        following = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.start_date > period.end_date)
            .order_by(FiscalPeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()
        return period_to_dto(following) if following else None
