"""
Expense Journal Service (``ledger_modules.expense.service``).

Responsibility
--------------
Approves, cancels, posts and reverses expenses, creating and voiding the
matching automatic journal entry.

Invariants enforced
-------------------
* Only approved expenses post; only posted expenses reverse.
* At most one live journal entry per expense (looked up by document
  reference before creating).
* Posting and its journal entry happen inside one savepoint.

Failure modes
-------------
* ``DocumentStateError`` for approve/cancel from the wrong status.
* post/reverse from the wrong status -> unsuccessful ExpensePostingResult.
* Kernel errors (unknown account code, closed period at post) propagate
  and roll the savepoint back.

Usage::

    service = ExpenseJournalService(session, clock)
    expense = service.approve_expense(expense, actor_id)
    result = service.post_expense(expense, actor_id)
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from ledger_kernel.domain import amounts
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import DocumentStateError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import EntryType, JournalEntry
from ledger_modules.expense.models import (
    PAYMENT_LABELS,
    Expense,
    ExpensePostingResult,
    ExpenseStatus,
    PaymentMethod,
)
from ledger_modules.journal_bridge.models import AutoJournalHeader, JournalSwitch
from ledger_modules.journal_bridge.service import AutoJournalService

logger = get_logger("modules.expense.service")


def expense_ref(expense: Expense) -> DocumentRef:
    return DocumentRef(DocumentType.EXPENSE, expense.id)


def build_memo(expense: Expense) -> str:
    """``Expense: EXP-1 - <supplier or payee> - Ref: <reference>``."""
    parts = [f"Expense: {expense.expense_number}"]
    party = expense.supplier_name or expense.payee_name
    if party:
        parts.append(party)
    if expense.reference_number:
        parts.append(f"Ref: {expense.reference_number}")
    return " - ".join(parts)


def build_credit_description(expense: Expense) -> str:
    label = "Payment"
    if expense.payment_method is not None:
        label = PAYMENT_LABELS.get(PaymentMethod(expense.payment_method), "Payment")
    return f"{label} - {expense.expense_number}"


class ExpenseJournalService(AutoJournalService):
    """Expense lifecycle plus automatic journaling."""

    switch = JournalSwitch.EXPENSE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def approve_expense(self, expense: Expense, actor_id: UUID) -> Expense:
        if expense.status != ExpenseStatus.DRAFT:
            raise DocumentStateError(expense.expense_number, ExpenseStatus(expense.status).value, "approve")
        logger.info("expense_approved", extra={"expense_number": expense.expense_number, "actor_id": actor_id})
        return replace(expense, status=ExpenseStatus.APPROVED)

    def cancel_expense(self, expense: Expense) -> Expense:
        """Cancel a draft or approved expense.  Posted expenses must be reversed first."""
        if expense.status == ExpenseStatus.POSTED:
            raise DocumentStateError(expense.expense_number, ExpenseStatus(expense.status).value, "cancel")
        return replace(expense, status=ExpenseStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Journal lines
    # ------------------------------------------------------------------

    def build_lines(self, expense: Expense) -> list[JournalLineSpec]:
        """
        Debit expense (and PPN input), credit paid-from or AP.

        Returns an empty list when no credit account can be determined.
        """
        credit_account = expense.paid_from_account_code or self.account_code("default_ap_account")
        if not credit_account:
            return []

        total = expense.total_amount
        description = expense.description or f"Expense - {expense.expense_number}"
        dims = {"expense_id": expense.id, "supplier_id": expense.supplier_id}

        lines = []
        ppn_account = self.account_code("default_ppn_input_account")
        if expense.tax_amount > 0 and ppn_account and self.settings.is_enabled("tax_ppn_enabled"):
            lines.append(JournalLineSpec.debit(expense.account_code, amounts.money(expense.amount), description, **dims))
            lines.append(
                JournalLineSpec.debit(
                    ppn_account,
                    amounts.money(expense.tax_amount),
                    f"PPN Input - {expense.expense_number}",
                    expense_id=expense.id,
                )
            )
        else:
            lines.append(JournalLineSpec.debit(expense.account_code, total, description, **dims))

        lines.append(JournalLineSpec.credit(credit_account, total, build_credit_description(expense), **dims))
        return lines

    def create_from_expense(self, expense: Expense, actor_id: UUID) -> JournalEntry | None:
        """
        Journal entry for ``expense``.

        Returns the existing live entry when one is already recorded, and
        None when expense journaling is disabled, the expense has no
        expense account, or no credit account can be found.
        """
        if not self.is_enabled():
            return None

        reference = expense_ref(expense)
        existing = self.live_entry(reference)
        if existing is not None:
            logger.info(
                "expense_journal_exists",
                extra={"expense_number": expense.expense_number, "entry_number": existing.entry_number},
            )
            return self.journal.get_entry(existing.id)

        if not expense.account_code:
            return None
        lines = self.build_lines(expense)
        if not lines:
            logger.warning("expense_no_credit_account", extra={"expense_number": expense.expense_number})
            return None

        header = AutoJournalHeader(
            entry_date=expense.expense_date,
            entry_type=EntryType.AUTO_EXPENSE,
            reference=reference,
            memo=build_memo(expense),
            currency=expense.currency,
            exchange_rate=expense.exchange_rate,
        )
        return self.create_journal_entry(header, lines, actor_id)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_expense(self, expense: Expense, actor_id: UUID) -> ExpensePostingResult:
        if not expense.can_post:
            return ExpensePostingResult(False, "Expense cannot be posted.", expense)

        with self.atomic("expense_post"):
            entry = self.create_from_expense(expense, actor_id)

        message = "Expense posted successfully."
        if entry is not None:
            message += f" Journal entry {entry.entry_number} created."
        elif not self.is_enabled():
            message += " Auto-journaling is disabled."

        posted = replace(
            expense,
            status=ExpenseStatus.POSTED,
            journal_entry_id=entry.id if entry is not None else None,
        )
        logger.info(
            "expense_posted",
            extra={
                "expense_number": expense.expense_number,
                "total_amount": expense.total_amount,
                "entry_number": entry.entry_number if entry is not None else None,
            },
        )
        return ExpensePostingResult(
            True,
            message,
            posted,
            journal_entry_id=posted.journal_entry_id,
            entry_number=entry.entry_number if entry is not None else None,
        )

    def reverse_expense_posting(self, expense: Expense, reason: str, actor_id: UUID) -> ExpensePostingResult:
        """Void the expense's entry (when voidable) and return it to approved."""
        if expense.status != ExpenseStatus.POSTED:
            return ExpensePostingResult(False, "Only posted expenses can be reversed.", expense)

        with self.atomic("expense_reverse"):
            if expense.journal_entry_id is not None:
                self.void_journal_entry(expense.journal_entry_id, f"Expense reversed: {reason}", actor_id)

        reverted = replace(expense, status=ExpenseStatus.APPROVED, journal_entry_id=None)
        logger.info("expense_posting_reversed", extra={"expense_number": expense.expense_number, "reason": reason})
        return ExpensePostingResult(True, "Expense posting reversed successfully.", reverted)
