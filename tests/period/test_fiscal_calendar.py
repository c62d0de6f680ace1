"""
Fiscal calendar tests.

Verifies:
- A calendar year splits into twelve named monthly periods
- Custom period boundaries must be contiguous and cover the year
- Overlapping fiscal years are rejected
- Periods close in order, reopen in reverse order
- Year close requires every period closed; lock is terminal
- Posting is allowed only into OPEN and ADJUSTING periods
"""

from datetime import date

import pytest

from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    FiscalYearOverlapError,
    InvalidPeriodBoundariesError,
    PeriodsAlreadyExistError,
)
from ledger_kernel.models.fiscal_calendar import FiscalYearStatus, PeriodStatus


class TestYearCreation:
    """Tests for create_fiscal_year() and create_periods()."""

    def test_twelve_monthly_periods(self, fiscal_year_2026, periods_2026):
        assert len(periods_2026) == 12
        first = periods_2026[0]
        assert first.period_number == 1
        assert first.name == "January 2026"
        assert (first.start_date, first.end_date) == (date(2026, 1, 1), date(2026, 1, 31))
        assert periods_2026[1].end_date == date(2026, 2, 28)
        assert periods_2026[-1].name == "December 2026"
        assert all(p.status == PeriodStatus.OPEN for p in periods_2026)

    def test_current_year(self, fiscal_year_2026, calendar_service):
        assert calendar_service.current_year().id == fiscal_year_2026.id
        assert calendar_service.current_period().name == "January 2026"

    def test_set_current_moves_flag(self, fiscal_year_2026, calendar_service, test_actor_id):
        fy27 = calendar_service.create_fiscal_year("FY 2027", date(2027, 1, 1), date(2027, 12, 31), test_actor_id)
        calendar_service.set_current(fy27.id, test_actor_id)
        assert calendar_service.current_year().id == fy27.id
        assert not calendar_service.get_year(fiscal_year_2026.id).is_current

    def test_overlap_rejected(self, fiscal_year_2026, calendar_service, test_actor_id):
        with pytest.raises(FiscalYearOverlapError):
            calendar_service.create_fiscal_year("FY X", date(2026, 7, 1), date(2027, 6, 30), test_actor_id)

    def test_start_after_end_rejected(self, calendar_service, test_actor_id):
        with pytest.raises(InvalidPeriodBoundariesError):
            calendar_service.create_fiscal_year("FY X", date(2026, 12, 31), date(2026, 1, 1), test_actor_id)

    def test_non_calendar_year(self, calendar_service, test_actor_id):
        year = calendar_service.create_fiscal_year("FY 2026/27", date(2026, 7, 1), date(2027, 6, 30), test_actor_id)
        periods = calendar_service.periods(year.id)
        assert len(periods) == 12
        assert periods[0].name == "July 2026"
        assert periods[-1].name == "June 2027"

    def test_custom_quarters(self, calendar_service, test_actor_id):
        year = calendar_service.create_fiscal_year(
            "FY Q", date(2030, 1, 1), date(2030, 12, 31), test_actor_id, create_periods=False
        )
        quarters = [
            (date(2030, 1, 1), date(2030, 3, 31)),
            (date(2030, 4, 1), date(2030, 6, 30)),
            (date(2030, 7, 1), date(2030, 9, 30)),
            (date(2030, 10, 1), date(2030, 12, 31)),
        ]
        periods = calendar_service.create_periods(year.id, test_actor_id, quarters)
        assert [p.name for p in periods] == ["FY Q P01", "FY Q P02", "FY Q P03", "FY Q P04"]

    def test_gap_in_boundaries_rejected(self, calendar_service, test_actor_id):
        year = calendar_service.create_fiscal_year(
            "FY G", date(2030, 1, 1), date(2030, 12, 31), test_actor_id, create_periods=False
        )
        with pytest.raises(InvalidPeriodBoundariesError):
            calendar_service.create_periods(
                year.id,
                test_actor_id,
                [(date(2030, 1, 1), date(2030, 6, 29)), (date(2030, 7, 1), date(2030, 12, 31))],
            )

    def test_periods_created_once(self, fiscal_year_2026, calendar_service, test_actor_id):
        with pytest.raises(PeriodsAlreadyExistError):
            calendar_service.create_periods(fiscal_year_2026.id, test_actor_id)


class TestPeriodLookup:
    """Tests for period_for_date() and next_period()."""

    def test_period_for_date(self, periods_2026, calendar_service):
        assert calendar_service.period_for_date(date(2026, 3, 31)).name == "March 2026"
        assert calendar_service.period_for_date(date(2025, 12, 31)) is None

    def test_next_period_crosses_year(self, periods_2026, calendar_service, test_actor_id):
        calendar_service.create_fiscal_year("FY 2027", date(2027, 1, 1), date(2027, 12, 31), test_actor_id)
        following = calendar_service.next_period(periods_2026[-1].id)
        assert following.name == "January 2027"

    def test_year_for_date(self, fiscal_year_2026, calendar_service):
        assert calendar_service.year_for_date(date(2026, 7, 1)).id == fiscal_year_2026.id
        assert calendar_service.year_for_date(date(2027, 1, 1)) is None

    def test_next_period_none_at_end(self, periods_2026, calendar_service):
        assert calendar_service.next_period(periods_2026[-1].id) is None


class TestPeriodLifecycle:
    """Tests for close / reopen / adjusting transitions."""

    def test_close_in_order(self, periods_2026, calendar_service, test_actor_id):
        assert calendar_service.close_period(periods_2026[0].id, test_actor_id)
        closed = calendar_service.get_period(periods_2026[0].id)
        assert closed.status == PeriodStatus.CLOSED
        assert closed.closed_by_id == test_actor_id
        assert closed.closed_at is not None

    def test_close_out_of_order_refused(self, periods_2026, calendar_service, test_actor_id, captured_logs):
        assert not calendar_service.close_period(periods_2026[1].id, test_actor_id)
        assert calendar_service.get_period(periods_2026[1].id).status == PeriodStatus.OPEN
        assert any(r["message"] == "period_close_rejected" for r in captured_logs())

    def test_close_twice_refused(self, periods_2026, calendar_service, test_actor_id):
        calendar_service.close_period(periods_2026[0].id, test_actor_id)
        assert not calendar_service.close_period(periods_2026[0].id, test_actor_id)

    def test_reopen_clears_stamps(self, periods_2026, calendar_service, test_actor_id):
        calendar_service.close_period(periods_2026[0].id, test_actor_id)
        assert calendar_service.reopen_period(periods_2026[0].id, test_actor_id)
        reopened = calendar_service.get_period(periods_2026[0].id)
        assert reopened.status == PeriodStatus.OPEN
        assert reopened.closed_at is None
        assert reopened.closed_by_id is None

    def test_reopen_blocked_by_later_closed(self, periods_2026, calendar_service, test_actor_id):
        calendar_service.close_period(periods_2026[0].id, test_actor_id)
        calendar_service.close_period(periods_2026[1].id, test_actor_id)
        assert not calendar_service.reopen_period(periods_2026[0].id, test_actor_id)
        assert calendar_service.reopen_period(periods_2026[1].id, test_actor_id)

    def test_reopen_open_period_refused(self, periods_2026, calendar_service, test_actor_id):
        assert not calendar_service.reopen_period(periods_2026[0].id, test_actor_id)

    def test_adjusting_period(self, periods_2026, calendar_service, test_actor_id):
        assert not calendar_service.set_adjusting(periods_2026[0].id, test_actor_id)
        calendar_service.close_period(periods_2026[0].id, test_actor_id)
        assert calendar_service.set_adjusting(periods_2026[0].id, test_actor_id)
        adjusting = calendar_service.get_period(periods_2026[0].id)
        assert adjusting.status == PeriodStatus.ADJUSTING
        assert adjusting.is_adjusting_period
        assert calendar_service.is_postable(adjusting)

    def test_adjusting_period_blocks_later_close(self, periods_2026, calendar_service, test_actor_id):
        calendar_service.close_period(periods_2026[0].id, test_actor_id)
        calendar_service.set_adjusting(periods_2026[0].id, test_actor_id)
        assert not calendar_service.close_period(periods_2026[1].id, test_actor_id)


class TestYearLifecycle:
    """Tests for close_year() and lock_year()."""

    def _close_all(self, calendar_service, periods, actor):
        for period in periods:
            assert calendar_service.close_period(period.id, actor)

    def test_close_year_requires_closed_periods(self, fiscal_year_2026, calendar_service, test_actor_id):
        assert not calendar_service.close_year(fiscal_year_2026.id, test_actor_id)

    def test_close_and_lock(self, fiscal_year_2026, periods_2026, calendar_service, test_actor_id):
        self._close_all(calendar_service, periods_2026, test_actor_id)
        assert calendar_service.close_year(fiscal_year_2026.id, test_actor_id)
        assert calendar_service.get_year(fiscal_year_2026.id).status == FiscalYearStatus.CLOSED

        assert calendar_service.lock_year(fiscal_year_2026.id, test_actor_id)
        assert calendar_service.get_year(fiscal_year_2026.id).status == FiscalYearStatus.LOCKED
        assert all(p.status == PeriodStatus.LOCKED for p in calendar_service.periods(fiscal_year_2026.id))
        assert not calendar_service.lock_year(fiscal_year_2026.id, test_actor_id)

    def test_reopen_refused_in_closed_year(self, fiscal_year_2026, periods_2026, calendar_service, test_actor_id):
        self._close_all(calendar_service, periods_2026, test_actor_id)
        calendar_service.close_year(fiscal_year_2026.id, test_actor_id)
        assert not calendar_service.reopen_period(periods_2026[-1].id, test_actor_id)

    def test_locked_year_periods_not_found_by_date(
        self, fiscal_year_2026, periods_2026, calendar_service, test_actor_id
    ):
        self._close_all(calendar_service, periods_2026, test_actor_id)
        calendar_service.close_year(fiscal_year_2026.id, test_actor_id)
        calendar_service.lock_year(fiscal_year_2026.id, test_actor_id)
        assert calendar_service.period_for_date(date(2026, 5, 5)) is None


class TestPostingGate:
    """Posting into closed periods is refused."""

    def test_post_into_closed_period(self, ledger, calendar_service, journal_service, test_actor_id):
        entry = journal_service.create_entry(
            date(2026, 1, 10),
            [JournalLineSpec.debit("1112", "10.00"), JournalLineSpec.credit("4110", "10.00")],
            test_actor_id,
        )
        calendar_service.close_period(ledger[0].id, test_actor_id)
        assert not journal_service.can_post(entry.id)
        with pytest.raises(ClosedPeriodError):
            journal_service.post(entry.id, test_actor_id)

    def test_post_into_adjusting_period(self, ledger, calendar_service, post_entry, test_actor_id):
        calendar_service.close_period(ledger[0].id, test_actor_id)
        calendar_service.set_adjusting(ledger[0].id, test_actor_id)
        entry = post_entry(date(2026, 1, 31), [("1112", "10.00", "0"), ("4110", "0", "10.00")])
        assert entry.status == "posted"
