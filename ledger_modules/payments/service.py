"""
Payment Service (``ledger_modules.payments.service``).

Responsibility
--------------
Completes and cancels payments and keeps their journal entries in step:
receipts debit cash/bank and credit receivables, supplier payments debit
payables and credit cash/bank.

Invariants enforced
-------------------
* One live entry per payment document.
* Cancelling a completed payment voids its entry in the same savepoint.

Failure modes
-------------
* ``DocumentStateError`` for complete/cancel from the wrong status.
* ``InvalidAmountError`` for a non-positive amount.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from ledger_kernel.domain import amounts
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.exceptions import DocumentStateError, InvalidAmountError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import EntryType, JournalEntry
from ledger_modules.journal_bridge.models import AutoJournalHeader, JournalSwitch
from ledger_modules.journal_bridge.service import AutoJournalService
from ledger_modules.payments.models import (
    Payment,
    PaymentDirection,
    PaymentMethod,
    PaymentStatus,
)

logger = get_logger("modules.payments.service")


def payment_ref(payment: Payment) -> DocumentRef:
    return DocumentRef(PaymentDirection(payment.direction).document_type, payment.id)


class PaymentService(AutoJournalService):
    """Customer receipts and supplier payments."""

    switch = JournalSwitch.PAYMENT

    def _cash_account(self, payment: Payment) -> str | None:
        if payment.account_code:
            return payment.account_code
        if payment.method == PaymentMethod.CASH:
            return self.account_code("default_cash_account")
        return self.account_code("default_bank_account")

    def build_lines(self, payment: Payment) -> list[JournalLineSpec]:
        """Lines for ``payment``; empty when an account cannot be resolved."""
        cash = self._cash_account(payment)
        amount = amounts.money(payment.amount)
        if payment.direction == PaymentDirection.RECEIVED:
            counter = self.account_code("default_ar_account")
            if cash is None or counter is None:
                return []
            return [
                JournalLineSpec.debit(cash, amount, f"Receipt - {payment.payment_number}"),
                JournalLineSpec.credit(
                    counter, amount, f"Receivable - {payment.payment_number}", customer_id=payment.party_id
                ),
            ]
        counter = self.account_code("default_ap_account")
        if cash is None or counter is None:
            return []
        return [
            JournalLineSpec.debit(
                counter, amount, f"Payable - {payment.payment_number}", supplier_id=payment.party_id
            ),
            JournalLineSpec.credit(cash, amount, f"Payment - {payment.payment_number}"),
        ]

    def _journal(self, payment: Payment, actor_id: UUID) -> JournalEntry | None:
        reference = payment_ref(payment)
        existing = self.live_entry(reference)
        if existing is not None:
            return self.journal.get_entry(existing.id)

        lines = self.build_lines(payment)
        if not lines:
            logger.warning("payment_journal_missing_account", extra={"payment_number": payment.payment_number})
            return None

        label = "Receipt" if payment.direction == PaymentDirection.RECEIVED else "Payment"
        parts = [f"{label}: {payment.payment_number}"]
        if payment.party_name:
            parts.append(payment.party_name)
        if payment.reference_number:
            parts.append(f"Ref: {payment.reference_number}")
        header = AutoJournalHeader(
            entry_date=payment.payment_date,
            entry_type=EntryType.AUTO_PAYMENT,
            reference=reference,
            memo=" - ".join(parts),
            currency=payment.currency,
            exchange_rate=payment.exchange_rate,
        )
        return self.create_journal_entry(header, lines, actor_id)

    def complete_payment(self, payment: Payment, actor_id: UUID) -> Payment:
        """
        Complete a draft payment and journal it when payment journaling is on.

        Raises:
            DocumentStateError: Payment is not a draft.
            InvalidAmountError: amount <= 0.
        """
        if payment.status != PaymentStatus.DRAFT:
            raise DocumentStateError(payment.payment_number, PaymentStatus(payment.status).value, "complete")
        if amounts.money(payment.amount) <= 0:
            raise InvalidAmountError(payment.amount, "payment amount must be positive")

        with LogContext.bind(actor_id=actor_id, operation="payment_complete"):
            with self.atomic("payment_complete"):
                entry = self._journal(payment, actor_id) if self.is_enabled() else None
            logger.info(
                "payment_completed",
                extra={
                    "payment_number": payment.payment_number,
                    "direction": PaymentDirection(payment.direction).value,
                    "amount": payment.amount,
                    "entry_number": entry.entry_number if entry is not None else None,
                },
            )
        return replace(
            payment,
            status=PaymentStatus.COMPLETED,
            journal_entry_id=entry.id if entry is not None else None,
        )

    def cancel_payment(self, payment: Payment, reason: str, actor_id: UUID) -> Payment:
        """Cancel a payment, voiding its journal entry when it has one."""
        if payment.status == PaymentStatus.CANCELLED:
            raise DocumentStateError(payment.payment_number, PaymentStatus(payment.status).value, "cancel")

        with self.atomic("payment_cancel"):
            if payment.journal_entry_id is not None:
                self.void_journal_entry(payment.journal_entry_id, f"Payment cancelled: {reason}", actor_id)

        logger.info("payment_cancelled", extra={"payment_number": payment.payment_number, "reason": reason})
        return replace(payment, status=PaymentStatus.CANCELLED, journal_entry_id=None)
