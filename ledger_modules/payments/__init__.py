"""
Payments (``ledger_modules.payments``).

Responsibility
--------------
Customer receipts (cash or bank against receivables) and supplier payments
(payables against cash or bank), with cancellation voiding the entry.

Architecture position
---------------------
**Modules layer** -- ``PaymentService`` extends ``AutoJournalService``.
"""

from ledger_modules.payments.models import (
    Payment,
    PaymentDirection,
    PaymentMethod,
    PaymentStatus,
)
from ledger_modules.payments.service import PaymentService

__all__ = [
    "Payment",
    "PaymentDirection",
    "PaymentMethod",
    "PaymentService",
    "PaymentStatus",
]
