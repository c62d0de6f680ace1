"""Payment Domain Models."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.references import DocumentType


class PaymentDirection(str, Enum):
    """RECEIVED from a customer, or MADE to a supplier."""
    RECEIVED = "received"
    MADE = "made"

    @property
    def document_type(self) -> DocumentType:
        if self == PaymentDirection.RECEIVED:
            return DocumentType.CUSTOMER_PAYMENT
        return DocumentType.SUPPLIER_PAYMENT


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    OTHER = "other"


class PaymentStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Payment:
    """
    A customer receipt or supplier payment.

    ``party_id`` is the customer for receipts and the supplier for
    payments.  ``account_code`` is the cash or bank account used; when
    absent the default cash account (cash method) or default bank account
    (anything else) applies.
    """
    id: UUID
    payment_number: str
    payment_date: date
    direction: PaymentDirection
    amount: Decimal
    party_id: UUID | None = None
    party_name: str | None = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    account_code: str | None = None
    reference_number: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    status: PaymentStatus = PaymentStatus.DRAFT
    journal_entry_id: UUID | None = None
