"""Header data and feature switches for automatic journal entries."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.models.journal import EntryType


class JournalSwitch(str, Enum):
    """Financial settings that enable automatic journals per document kind."""

    MASTER = "auto_journal_enabled"
    SALES = "auto_journal_sales"
    PURCHASE = "auto_journal_purchase"
    PAYMENT = "auto_journal_payment"
    EXPENSE = "auto_journal_expense"


@dataclass(frozen=True)
class AutoJournalHeader:
    """Everything about an automatic entry except its lines."""

    entry_date: date
    entry_type: EntryType
    reference: DocumentRef
    memo: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
