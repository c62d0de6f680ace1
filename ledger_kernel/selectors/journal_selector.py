"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only query access to journal entries and their lines.
    Converts ORM entries to frozen JournalEntryInfo DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Lines within an entry are ordered by line_number.
    - Multi-entry results are ordered by entry_date, then entry_number.

Failure modes:
    - Returns None or an empty list when nothing matches.

Audit relevance:
    Supports the lookups auditors start from: by number, by source
    document, by period and by date range.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import JournalEntryInfo, JournalLineInfo
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.models.journal import EntryType, JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.base import BaseSelector


def entry_to_dto(entry: JournalEntry) -> JournalEntryInfo:
    lines = tuple(
        JournalLineInfo(
            id=line.id,
            line_number=line.line_number,
            account_id=line.account_id,
            account_code=line.account.code,
            description=line.description,
            debit_amount=line.debit_amount,
            credit_amount=line.credit_amount,
            debit_amount_base=line.debit_amount_base,
            credit_amount_base=line.credit_amount_base,
            customer_id=line.customer_id,
            supplier_id=line.supplier_id,
            product_id=line.product_id,
            expense_id=line.expense_id,
        )
        for line in sorted(entry.lines, key=lambda l: l.line_number)
    )
    return JournalEntryInfo(
        id=entry.id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        fiscal_period_id=entry.fiscal_period_id,
        entry_type=EntryType(entry.entry_type),
        status=JournalEntryStatus(entry.status),
        memo=entry.memo,
        currency=entry.currency,
        exchange_rate=entry.exchange_rate,
        total_debit=entry.total_debit,
        total_credit=entry.total_credit,
        reference=entry.reference,
        reverses_id=entry.reverses_id,
        reversed_by_id=entry.reversed_by_id,
        posted_at=entry.posted_at,
        posted_by_id=entry.posted_by_id,
        voided_at=entry.voided_at,
        voided_by_id=entry.voided_by_id,
        void_reason=entry.void_reason,
        lines=lines,
    )


class JournalSelector(BaseSelector[JournalEntry]):
    """
    Journal entry queries.

    Non-goals:
        - Does not compute balances; see BalanceSelector.
    """

    _ordering = (JournalEntry.entry_date, JournalEntry.entry_number)

    def _many(self, stmt, status: JournalEntryStatus | None) -> list[JournalEntryInfo]:
        if status is not None:
            stmt = stmt.where(JournalEntry.status == JournalEntryStatus(status).value)
        stmt = stmt.order_by(*self._ordering)
        return [entry_to_dto(e) for e in self.session.execute(stmt).scalars()]

    def get(self, entry_id: UUID) -> JournalEntryInfo | None:
        entry = self.session.get(JournalEntry, entry_id)
        return entry_to_dto(entry) if entry else None

    def get_by_number(self, entry_number: str) -> JournalEntryInfo | None:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.entry_number == entry_number)
        ).scalar_one_or_none()
        return entry_to_dto(entry) if entry else None

    def by_reference(
        self,
        reference: DocumentRef,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntryInfo]:
        stmt = select(JournalEntry).where(
            JournalEntry.reference_type == reference.document_type.value,
            JournalEntry.reference_id == reference.document_id,
        )
        return self._many(stmt, status)

    def by_period(
        self,
        fiscal_period_id: UUID,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntryInfo]:
        stmt = select(JournalEntry).where(JournalEntry.fiscal_period_id == fiscal_period_id)
        return self._many(stmt, status)

    def by_date_range(
        self,
        start_date: date,
        end_date: date,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntryInfo]:
        """Entries dated within [start_date, end_date], both inclusive."""
        stmt = select(JournalEntry).where(
            JournalEntry.entry_date >= start_date,
            JournalEntry.entry_date <= end_date,
        )
        return self._many(stmt, status)
