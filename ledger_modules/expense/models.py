"""
Expense Domain Models.

The nouns of expense posting: the expense document, how it was paid and
the outcome of posting or reversing it.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain import amounts


class ExpenseStatus(str, Enum):
    """Expense lifecycle states."""
    DRAFT = "draft"
    APPROVED = "approved"
    POSTED = "posted"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How the expense was paid."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    CHECK = "check"
    OTHER = "other"


PAYMENT_LABELS = {
    PaymentMethod.CASH: "Cash Payment",
    PaymentMethod.BANK_TRANSFER: "Bank Transfer",
    PaymentMethod.CREDIT_CARD: "Credit Card",
    PaymentMethod.CHECK: "Check Payment",
    PaymentMethod.OTHER: "Payment",
}


@dataclass(frozen=True)
class Expense:
    """
    An operational expense.

    ``account_code`` is the expense account debited; ``paid_from_account_code``
    the cash or bank account credited (accounts payable when absent).
    """
    id: UUID
    expense_number: str
    expense_date: date
    account_code: str | None
    amount: Decimal
    tax_amount: Decimal = Decimal("0")
    paid_from_account_code: str | None = None
    payment_method: PaymentMethod | None = None
    supplier_id: UUID | None = None
    supplier_name: str | None = None
    payee_name: str | None = None
    reference_number: str | None = None
    description: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    status: ExpenseStatus = ExpenseStatus.DRAFT
    journal_entry_id: UUID | None = None

    @property
    def total_amount(self) -> Decimal:
        return amounts.add(self.amount, self.tax_amount)

    @property
    def can_post(self) -> bool:
        return self.status == ExpenseStatus.APPROVED


@dataclass(frozen=True)
class ExpensePostingResult:
    """Outcome of post_expense / reverse_expense_posting."""
    success: bool
    message: str
    expense: Expense
    journal_entry_id: UUID | None = None
    entry_number: str | None = None
