"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    double-entry record from which every balance is derived.
Architecture position: Kernel > Models.  May import from db/ and domain value
    objects.  MUST NOT import from services/, selectors/ or outer layers.

Invariants enforced:
    - entry_number is unique ("JE-2026-00001"), allocated by SequenceService
      from a per-year counter row.
    - (journal_entry_id, line_number) is unique.
    - Each line has exactly one positive side (checked by JournalService
      before insert).
    - For a POSTED entry sum(debit) == sum(credit) exactly, in transaction
      currency and in base currency (checked by JournalService.post()).
    - Status moves DRAFT -> POSTED -> VOIDED only.

Failure modes:
    - IntegrityError on a duplicate entry_number or line_number.
    - EntryNotDraftError / EntryNotPostedError raised by JournalService on
      an illegal transition.

Audit relevance:
    Voiding keeps every line; the voided_* columns record who voided it,
    when and why.  Reversals are separate entries linked both ways through
    reverses_id / reversed_by_id.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.references import DocumentRef, DocumentType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.fiscal_calendar import FiscalPeriod


class JournalEntryStatus(str, Enum):
    """DRAFT -> POSTED -> VOIDED.  No other transitions."""

    DRAFT = "draft"
    POSTED = "posted"
    VOIDED = "voided"


class EntryType(str, Enum):
    MANUAL = "manual"
    AUTO_SALES = "auto_sales"
    AUTO_PURCHASE = "auto_purchase"
    AUTO_PAYMENT = "auto_payment"
    AUTO_EXPENSE = "auto_expense"
    CLOSING = "closing"
    OPENING = "opening"
    ADJUSTMENT = "adjustment"
    REVERSAL = "reversal"


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Contract:
        Lines may only be added, replaced or removed while the entry is a
        draft.  Posting and voiding go through JournalService so that the
        balance aggregator moves in the same transaction.

    Guarantees:
        - total_debit / total_credit mirror the lines after
          JournalService.calculate_totals().
        - exchange_rate is a snapshot taken at creation, scale 6.

    Non-goals:
        - Does not validate balance itself; ``is_balanced`` is a read-side
          convenience.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_period", "fiscal_period_id"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_reference", "reference_type", "reference_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(
        String(20),
        default=EntryType.MANUAL,
        nullable=False,
    )

    # Source document (type + id); both null for manual entries
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    memo: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(18, 6),
        default=Decimal("1.000000"),
        nullable=False,
    )

    total_debit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    total_credit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    reverses_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    reversed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    voided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
        lazy="selectin",
    )

    fiscal_period: Mapped["FiscalPeriod"] = relationship()

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def reference(self) -> DocumentRef | None:
        if self.reference_type is None or self.reference_id is None:
            return None
        return DocumentRef(DocumentType(self.reference_type), self.reference_id)

    @reference.setter
    def reference(self, ref: DocumentRef | None) -> None:
        if ref is None:
            self.reference_type = None
            self.reference_id = None
        else:
            self.reference_type = ref.document_type.value
            self.reference_id = ref.document_id

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_voided(self) -> bool:
        return self.status == JournalEntryStatus.VOIDED

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


class JournalLine(TrackedBase):
    """
    One debit or credit line.

    Guarantees:
        - Exactly one of debit_amount / credit_amount is positive.
        - *_base amounts are the transaction amounts times the entry's
          exchange rate at scale 2.  post() may move a residual cent onto a
          single line so base totals balance too.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_line_number"),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    debit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    credit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    debit_amount_base: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    credit_amount_base: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    # Analysis dimensions, ids owned by master-data collaborators
    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    product_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    expense_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_number} dr={self.debit_amount} cr={self.credit_amount}>"

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0
