"""
Expense posting tests.

Verifies:
- draft -> approved -> posted -> (reversed) approved lifecycle
- Expense account debited, paid-from account (or AP) credited
- Input PPN split onto its own line only when PPN is enabled
- One live journal entry per expense
- Posting with journaling switched off still succeeds, without an entry
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import DocumentStateError
from ledger_kernel.models.journal import EntryType, JournalEntryStatus
from ledger_modules.expense import Expense, ExpenseStatus, PaymentMethod
from ledger_modules.expense.service import build_memo


def _expense(**overrides):
    values = dict(
        id=uuid4(),
        expense_number="EXP-2026-0001",
        expense_date=date(2026, 1, 20),
        account_code="6230",
        amount=Decimal("1000000"),
        paid_from_account_code="1112",
        payment_method=PaymentMethod.CASH,
        supplier_name="PT Griya Sewa",
        reference_number="INV-77",
    )
    values.update(overrides)
    return Expense(**values)


@pytest.fixture
def approved(expense_service, test_actor_id):
    def _approved(**overrides):
        return expense_service.approve_expense(_expense(**overrides), test_actor_id)

    return _approved


class TestLifecycle:
    """Tests for approve / cancel."""

    def test_approve(self, expense_service, test_actor_id):
        expense = expense_service.approve_expense(_expense(), test_actor_id)
        assert expense.status == ExpenseStatus.APPROVED
        assert expense.can_post

    def test_approve_twice(self, expense_service, test_actor_id):
        expense = expense_service.approve_expense(_expense(), test_actor_id)
        with pytest.raises(DocumentStateError):
            expense_service.approve_expense(expense, test_actor_id)

    def test_cancel_approved(self, expense_service, approved):
        assert expense_service.cancel_expense(approved()).status == ExpenseStatus.CANCELLED

    def test_draft_cannot_post(self, ledger, expense_service, test_actor_id):
        result = expense_service.post_expense(_expense(), test_actor_id)
        assert not result.success
        assert result.expense.status == ExpenseStatus.DRAFT


class TestPosting:
    """Tests for post_expense()."""

    def test_journaling_disabled(self, ledger, expense_service, approved, test_actor_id):
        result = expense_service.post_expense(approved(), test_actor_id)

        assert result.success
        assert result.expense.status == ExpenseStatus.POSTED
        assert result.journal_entry_id is None
        assert result.message.endswith("Auto-journaling is disabled.")

    def test_cash_expense(
        self, ledger, expense_service, approved, enable_auto_journal, journal_selector, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_expense")
        result = expense_service.post_expense(approved(), test_actor_id)

        assert result.success
        assert result.entry_number.startswith("JE-2026-")
        assert result.entry_number in result.message
        assert entry_lines(result.journal_entry_id) == [
            ("6230", Decimal("1000000.00"), Decimal("0.00")),
            ("1112", Decimal("0.00"), Decimal("1000000.00")),
        ]
        info = journal_selector.get(result.journal_entry_id)
        assert info.status == JournalEntryStatus.POSTED
        assert info.entry_type == EntryType.AUTO_EXPENSE
        assert info.memo == "Expense: EXP-2026-0001 - PT Griya Sewa - Ref: INV-77"
        assert info.lines[1].description == "Cash Payment - EXP-2026-0001"

    def test_ppn_split_to_input_tax(
        self, ledger, expense_service, approved, enable_auto_journal, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_expense", "tax_ppn_enabled")
        expense = approved(tax_amount=Decimal("110000"), paid_from_account_code=None, payment_method=None)
        result = expense_service.post_expense(expense, test_actor_id)

        assert entry_lines(result.journal_entry_id) == [
            ("6230", Decimal("1000000.00"), Decimal("0.00")),
            ("1161", Decimal("110000.00"), Decimal("0.00")),
            ("2111", Decimal("0.00"), Decimal("1110000.00")),
        ]

    def test_tax_kept_on_expense_when_ppn_off(
        self, ledger, expense_service, approved, enable_auto_journal, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_expense")
        result = expense_service.post_expense(approved(tax_amount=Decimal("110000")), test_actor_id)

        assert entry_lines(result.journal_entry_id) == [
            ("6230", Decimal("1110000.00"), Decimal("0.00")),
            ("1112", Decimal("0.00"), Decimal("1110000.00")),
        ]

    def test_one_entry_per_expense(self, ledger, expense_service, approved, enable_auto_journal, test_actor_id):
        enable_auto_journal("auto_journal_expense")
        expense = approved()
        first = expense_service.create_from_expense(expense, test_actor_id)
        second = expense_service.create_from_expense(expense, test_actor_id)
        assert first.id == second.id

    def test_no_expense_account(self, ledger, expense_service, approved, enable_auto_journal, test_actor_id):
        enable_auto_journal("auto_journal_expense")
        assert expense_service.create_from_expense(approved(account_code=None), test_actor_id) is None


class TestReversal:
    """Tests for reverse_expense_posting()."""

    def test_reverse_voids_entry(
        self, ledger, expense_service, approved, enable_auto_journal, journal_selector, test_actor_id
    ):
        enable_auto_journal("auto_journal_expense")
        posted = expense_service.post_expense(approved(), test_actor_id).expense

        result = expense_service.reverse_expense_posting(posted, "Duplicate invoice", test_actor_id)

        assert result.success
        assert result.expense.status == ExpenseStatus.APPROVED
        assert result.expense.journal_entry_id is None
        voided = journal_selector.get(posted.journal_entry_id)
        assert voided.status == JournalEntryStatus.VOIDED
        assert voided.void_reason == "Expense reversed: Duplicate invoice"

    def test_reverse_requires_posted(self, ledger, expense_service, approved, test_actor_id):
        result = expense_service.reverse_expense_posting(approved(), "n/a", test_actor_id)
        assert not result.success

    def test_posted_cannot_be_cancelled(self, ledger, expense_service, approved, test_actor_id):
        posted = expense_service.post_expense(approved(), test_actor_id).expense
        with pytest.raises(DocumentStateError):
            expense_service.cancel_expense(posted)


class TestMemo:
    def test_payee_when_no_supplier(self):
        expense = _expense(supplier_name=None, payee_name="Budi", reference_number=None)
        assert build_memo(expense) == "Expense: EXP-2026-0001 - Budi"
