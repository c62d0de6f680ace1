"""
Expense Posting (``ledger_modules.expense``).

Responsibility
--------------
Lifecycle of operational expenses (draft -> approved -> posted, or
cancelled) and their automatic journal entries: debit the expense account,
split input VAT to the PPN input account when enabled, credit the
paid-from account or default accounts payable.

Architecture position
---------------------
**Modules layer** -- ``ExpenseJournalService`` extends
``AutoJournalService``.  Expense documents are frozen DTOs; the service
returns updated copies rather than mutating them.
"""

from ledger_modules.expense.models import (
    Expense,
    ExpensePostingResult,
    ExpenseStatus,
    PaymentMethod,
)
from ledger_modules.expense.service import ExpenseJournalService

__all__ = [
    "Expense",
    "ExpenseJournalService",
    "ExpensePostingResult",
    "ExpenseStatus",
    "PaymentMethod",
]
