"""
Journal entry lifecycle tests.

Verifies:
- Drafts validate every line and report the failing line number
- Only balanced drafts with at least two lines post
- Posting moves account balances; voiding restores them
- Reversal posts a mirror entry and links both directions; the reversal
  itself cannot be voided or reversed
- Entry numbers are sequential per year
- Posted and voided entries are immutable
- Base-currency rounding residue is settled on posting
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EntryAlreadyReversedError,
    EntryDateOutsidePeriodError,
    EntryNotDraftError,
    EntryNotPostableError,
    EntryNotPostedError,
    FiscalPeriodNotFoundError,
    HeaderAccountError,
    ImmutabilityViolationError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidJournalLineError,
    ReversalEntryError,
    VoidReasonRequiredError,
)
from ledger_kernel.models.journal import EntryType, JournalEntryStatus

JAN_15 = date(2026, 1, 15)


def cash_sale(amount: str = "1000.00") -> list[JournalLineSpec]:
    return [JournalLineSpec.debit("1112", Decimal(amount)), JournalLineSpec.credit("4110", Decimal(amount))]


class TestCreateEntry:
    """Tests for JournalService.create_entry() validation."""

    def test_draft_created(self, ledger, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id, memo="Cash sale")
        assert entry.status == JournalEntryStatus.DRAFT.value
        assert entry.entry_number == "JE-2026-00001"
        assert entry.fiscal_period_id == ledger[0].id
        assert entry.total_debit == entry.total_credit == Decimal("1000.00")
        assert [line.line_number for line in entry.lines] == [1, 2]

    def test_unbalanced_draft_allowed(self, ledger, journal_service, test_actor_id):
        lines = [JournalLineSpec.debit("1112", Decimal("10")), JournalLineSpec.credit("4110", Decimal("9"))]
        entry = journal_service.create_entry(JAN_15, lines, test_actor_id)
        assert not journal_service.can_post(entry.id)

    def test_line_with_both_sides(self, ledger, journal_service, test_actor_id):
        lines = [
            JournalLineSpec.debit("1112", Decimal("10")),
            JournalLineSpec("4110", debit_amount=Decimal("10"), credit_amount=Decimal("10")),
        ]
        with pytest.raises(InvalidJournalLineError) as exc_info:
            journal_service.create_entry(JAN_15, lines, test_actor_id)
        assert exc_info.value.line_number == 2

    def test_zero_line(self, ledger, journal_service, test_actor_id):
        with pytest.raises(InvalidJournalLineError):
            journal_service.create_entry(JAN_15, [JournalLineSpec("1112")], test_actor_id)

    def test_negative_amount(self, ledger, journal_service, test_actor_id):
        with pytest.raises(InvalidJournalLineError):
            journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1112", Decimal("-5"))], test_actor_id)

    def test_float_amount(self, ledger, journal_service, test_actor_id):
        with pytest.raises(InvalidJournalLineError):
            journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1112", 5.0)], test_actor_id)

    def test_unknown_account(self, ledger, journal_service, test_actor_id):
        with pytest.raises(AccountNotFoundError):
            journal_service.create_entry(JAN_15, [JournalLineSpec.debit("9999", Decimal("5"))], test_actor_id)

    def test_header_account(self, ledger, journal_service, test_actor_id):
        with pytest.raises(HeaderAccountError):
            journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1110", Decimal("5"))], test_actor_id)

    def test_inactive_account(self, ledger, coa_service, journal_service, test_actor_id):
        coa_service.deactivate_account("1111", test_actor_id)
        with pytest.raises(AccountInactiveError):
            journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1111", Decimal("5"))], test_actor_id)

    def test_no_period(self, ledger, journal_service, test_actor_id):
        with pytest.raises(FiscalPeriodNotFoundError):
            journal_service.create_entry(date(2024, 1, 1), cash_sale(), test_actor_id)

    def test_explicit_period_must_contain_date(self, ledger, journal_service, test_actor_id):
        with pytest.raises(EntryDateOutsidePeriodError):
            journal_service.create_entry(JAN_15, cash_sale(), test_actor_id, fiscal_period_id=ledger[1].id)

    def test_bad_currency(self, ledger, journal_service, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            journal_service.create_entry(JAN_15, cash_sale(), test_actor_id, currency="XX")

    def test_non_positive_rate(self, ledger, journal_service, test_actor_id):
        with pytest.raises(InvalidAmountError):
            journal_service.create_entry(JAN_15, cash_sale(), test_actor_id, currency="USD", exchange_rate="0")

    def test_numbers_are_sequential(self, ledger, journal_service, test_actor_id):
        first = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id)
        second = journal_service.create_entry(date(2026, 2, 1), cash_sale(), test_actor_id)
        assert (first.entry_number, second.entry_number) == ("JE-2026-00001", "JE-2026-00002")


class TestDraftEditing:
    """Tests for add_line / replace_lines / delete_entry on drafts."""

    def test_add_line_updates_totals(self, ledger, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1112", Decimal("10"))], test_actor_id)
        line = journal_service.add_line(entry.id, JournalLineSpec.credit("4110", Decimal("10")), test_actor_id)
        assert line.line_number == 2
        assert journal_service.calculate_totals(entry.id) == (Decimal("10.00"), Decimal("10.00"))
        assert journal_service.can_post(entry.id)

    def test_replace_lines_renumbers(self, ledger, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id)
        replaced = journal_service.replace_lines(
            entry.id,
            [
                JournalLineSpec.debit("1121", Decimal("300")),
                JournalLineSpec.debit("1112", Decimal("200")),
                JournalLineSpec.credit("4120", Decimal("500")),
            ],
            test_actor_id,
        )
        assert [line.line_number for line in replaced.lines] == [1, 2, 3]
        assert replaced.total_debit == Decimal("500.00")

    def test_delete_draft(self, ledger, journal_service, journal_selector, test_actor_id):
        entry = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id)
        assert journal_service.can_delete(entry.id)
        journal_service.delete_entry(entry.id)
        assert journal_selector.get(entry.id) is None

    def test_posted_entry_not_editable(self, ledger, journal_service, post_entry, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "10", "0"), ("4110", "0", "10")])
        assert not journal_service.can_edit(entry.id)
        assert not journal_service.can_delete(entry.id)
        with pytest.raises(EntryNotDraftError):
            journal_service.add_line(entry.id, JournalLineSpec.debit("1112", Decimal("1")), test_actor_id)
        with pytest.raises(EntryNotDraftError):
            journal_service.delete_entry(entry.id)


class TestPosting:
    """Tests for post() and its effect on balances."""

    def test_post_moves_balances(self, ledger, post_entry, balance_selector, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "1000.00", "0"), ("4110", "0", "1000.00")])

        assert entry.status == JournalEntryStatus.POSTED.value
        assert entry.posted_by_id == test_actor_id
        assert entry.posted_at is not None
        cash = balance_selector.account_balance("1112", ledger[0].id)
        sales = balance_selector.account_balance("4110", ledger[0].id)
        assert cash.closing_debit == Decimal("1000.00")
        assert cash.net_balance == Decimal("1000.00")
        assert sales.closing_credit == Decimal("1000.00")
        assert sales.net_balance == Decimal("-1000.00")

    def test_unbalanced_not_postable(self, ledger, journal_service, test_actor_id):
        lines = [JournalLineSpec.debit("1112", Decimal("10")), JournalLineSpec.credit("4110", Decimal("9.99"))]
        entry = journal_service.create_entry(JAN_15, lines, test_actor_id)
        with pytest.raises(EntryNotPostableError):
            journal_service.post(entry.id, test_actor_id)
        assert journal_service.get_entry(entry.id).status == JournalEntryStatus.DRAFT.value

    def test_single_line_not_postable(self, ledger, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, [JournalLineSpec.debit("1112", Decimal("10"))], test_actor_id)
        with pytest.raises(EntryNotPostableError):
            journal_service.post(entry.id, test_actor_id)

    def test_post_twice(self, ledger, journal_service, post_entry, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "10", "0"), ("4110", "0", "10")])
        with pytest.raises(EntryNotDraftError):
            journal_service.post(entry.id, test_actor_id)

    def test_account_deactivated_after_draft(self, ledger, coa_service, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id)
        coa_service.deactivate_account("1112", test_actor_id)
        assert not journal_service.can_post(entry.id)
        with pytest.raises(AccountInactiveError):
            journal_service.post(entry.id, test_actor_id)

    def test_post_logged(self, ledger, post_entry, captured_logs, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "10", "0"), ("4110", "0", "10")])
        posted = [r for r in captured_logs() if r["message"] == "journal_entry_posted"]
        assert posted[0]["entry_number"] == entry.entry_number
        assert posted[0]["actor_id"] == str(test_actor_id)


class TestForeignCurrency:
    """Base amounts are converted per line and settled on posting."""

    def test_base_amounts(self, ledger, journal_service, test_actor_id, balance_selector):
        entry = journal_service.create_entry(
            JAN_15,
            [JournalLineSpec.debit("1121", Decimal("100")), JournalLineSpec.credit("4110", Decimal("100"))],
            test_actor_id,
            currency="USD",
            exchange_rate="15500",
        )
        journal_service.post(entry.id, test_actor_id)
        assert entry.lines[0].debit_amount_base == Decimal("1550000.00")
        assert balance_selector.account_balance("1121", ledger[0].id).net_balance == Decimal("1550000.00")

    def test_rounding_residue_settled(self, ledger, journal_service, test_actor_id):
        """0.03 x 1.5 rounds to 0.05 but three 0.01 x 1.5 credits round to 0.06."""
        entry = journal_service.create_entry(
            JAN_15,
            [
                JournalLineSpec.debit("1112", Decimal("0.03")),
                JournalLineSpec.credit("4110", Decimal("0.01")),
                JournalLineSpec.credit("4120", Decimal("0.01")),
                JournalLineSpec.credit("4150", Decimal("0.01")),
            ],
            test_actor_id,
            currency="USD",
            exchange_rate="1.5",
        )
        journal_service.post(entry.id, test_actor_id)

        base_debit = sum(line.debit_amount_base for line in entry.lines)
        base_credit = sum(line.credit_amount_base for line in entry.lines)
        assert base_debit == base_credit == Decimal("0.06")
        # transaction-currency amounts never change
        assert entry.lines[0].debit_amount == Decimal("0.03")


class TestVoid:
    """Tests for void()."""

    def test_void_restores_balances(self, ledger, journal_service, post_entry, balance_selector, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "1000.00", "0"), ("4110", "0", "1000.00")])
        voided = journal_service.void(entry.id, test_actor_id, "Entered twice")

        assert voided.status == JournalEntryStatus.VOIDED.value
        assert voided.void_reason == "Entered twice"
        assert voided.voided_by_id == test_actor_id
        assert balance_selector.account_balance("1112", ledger[0].id).net_balance == Decimal("0.00")
        assert len(voided.lines) == 2

    def test_reason_required(self, ledger, journal_service, post_entry, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "10", "0"), ("4110", "0", "10")])
        with pytest.raises(VoidReasonRequiredError):
            journal_service.void(entry.id, test_actor_id, "   ")
        assert journal_service.get_entry(entry.id).status == JournalEntryStatus.POSTED.value

    def test_void_draft_refused(self, ledger, journal_service, test_actor_id):
        entry = journal_service.create_entry(JAN_15, cash_sale(), test_actor_id)
        assert not journal_service.can_void(entry.id)
        with pytest.raises(EntryNotPostedError):
            journal_service.void(entry.id, test_actor_id, "oops")

    def test_void_twice_refused(self, ledger, journal_service, post_entry, test_actor_id):
        entry = post_entry(JAN_15, [("1112", "10", "0"), ("4110", "0", "10")])
        journal_service.void(entry.id, test_actor_id, "first")
        with pytest.raises(EntryNotPostedError):
            journal_service.void(entry.id, test_actor_id, "second")


class TestReverse:
    """Tests for reverse()."""

    def test_reversal_mirrors_and_links(self, ledger, journal_service, post_entry, balance_selector, test_actor_id):
        reference = DocumentRef.of(DocumentType.JOURNAL_ENTRY, "8a6e0804-2bd0-4672-b79d-d97027f9e678")
        original = post_entry(
            JAN_15, [("1112", "250.00", "0"), ("4110", "0", "250.00")], reference=reference
        )
        reversal = journal_service.reverse(original.id, test_actor_id, entry_date=date(2026, 2, 3))

        assert reversal.status == JournalEntryStatus.POSTED.value
        assert reversal.entry_type == EntryType.REVERSAL.value
        assert reversal.reverses_id == original.id
        assert reversal.reference == reference
        assert reversal.memo == f"Reversal of {original.entry_number}"
        assert journal_service.get_entry(original.id).reversed_by_id == reversal.id
        assert journal_service.get_entry(original.id).status == JournalEntryStatus.POSTED.value

        first, second = reversal.lines
        assert (first.account.code, first.credit_amount) == ("1112", Decimal("250.00"))
        assert (second.account.code, second.debit_amount) == ("4110", Decimal("250.00"))
        assert balance_selector.balance_as_of("1112", date(2026, 2, 28)) == Decimal("0.00")
        assert balance_selector.balance_as_of("1112", date(2026, 1, 31)) == Decimal("250.00")

    def test_reverse_defaults_to_today(self, ledger, journal_service, post_entry, test_actor_id):
        original = post_entry(date(2026, 1, 2), [("1112", "5", "0"), ("4110", "0", "5")])
        reversal = journal_service.reverse(original.id, test_actor_id)
        assert reversal.entry_date == JAN_15

    def test_reverse_twice_refused(self, ledger, journal_service, post_entry, test_actor_id):
        original = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        journal_service.reverse(original.id, test_actor_id)
        with pytest.raises(EntryAlreadyReversedError):
            journal_service.reverse(original.id, test_actor_id)

    def test_reversed_entry_not_voidable(self, ledger, journal_service, post_entry, test_actor_id):
        original = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        journal_service.reverse(original.id, test_actor_id)
        assert not journal_service.can_void(original.id)
        with pytest.raises(EntryAlreadyReversedError):
            journal_service.void(original.id, test_actor_id, "late")

    def test_reversal_is_final(self, ledger, journal_service, post_entry, balance_selector, test_actor_id):
        original = post_entry(JAN_15, [("1112", "1000.00", "0"), ("4110", "0", "1000.00")])
        reversal = journal_service.reverse(original.id, test_actor_id)

        assert not journal_service.can_void(reversal.id)
        with pytest.raises(ReversalEntryError):
            journal_service.void(reversal.id, test_actor_id, "Reversed by mistake")
        with pytest.raises(ReversalEntryError):
            journal_service.reverse(reversal.id, test_actor_id)

        assert journal_service.get_entry(reversal.id).status == JournalEntryStatus.POSTED.value
        assert balance_selector.balance_as_of("1112", date(2026, 1, 31)) == Decimal("0.00")


class TestImmutability:
    """Posted and voided entries cannot be edited through the ORM."""

    def test_posted_memo_frozen(self, ledger, session, post_entry):
        entry = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                entry.memo = "rewritten"
                session.flush()

    def test_posted_line_frozen(self, ledger, session, post_entry):
        entry = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                entry.lines[0].debit_amount = Decimal("6.00")
                session.flush()

    def test_posted_entry_not_deletable(self, ledger, session, post_entry):
        entry = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                session.delete(entry)
                session.flush()


class TestJournalQueries:
    """Tests for JournalSelector lookups."""

    def test_by_reference_and_status(self, ledger, journal_service, journal_selector, post_entry, test_actor_id):
        reference = DocumentRef.of(DocumentType.EXPENSE, "0b9b6b3e-7f57-4a47-9b8c-4d3a1c7f1e11")
        posted = post_entry(JAN_15, [("6230", "75", "0"), ("1112", "0", "75")], reference=reference)
        journal_service.create_entry(JAN_15, cash_sale(), test_actor_id, reference=reference)

        assert len(journal_selector.by_reference(reference)) == 2
        only_posted = journal_selector.by_reference(reference, JournalEntryStatus.POSTED)
        assert [e.id for e in only_posted] == [posted.id]

    def test_get_by_number(self, ledger, journal_selector, post_entry):
        posted = post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        info = journal_selector.get_by_number(posted.entry_number)
        assert info.id == posted.id
        assert info.is_balanced
        assert len(info.lines) == 2

    def test_by_period_and_date_range(self, ledger, journal_selector, post_entry):
        post_entry(JAN_15, [("1112", "5", "0"), ("4110", "0", "5")])
        post_entry(date(2026, 2, 10), [("1112", "7", "0"), ("4110", "0", "7")])

        assert len(journal_selector.by_period(ledger[0].id)) == 1
        in_range = journal_selector.by_date_range(date(2026, 1, 1), date(2026, 2, 10))
        assert [e.entry_date for e in in_range] == [JAN_15, date(2026, 2, 10)]
