"""
JournalService -- the double-entry journal engine.

Responsibility:
    Creates draft journal entries from line specifications, edits drafts,
    and drives the DRAFT -> POSTED -> VOIDED lifecycle.  Posting and voiding
    move the balance aggregator in the same savepoint as the status change.

Architecture position:
    Kernel > Services -- imperative shell.  Collaborates with
    FiscalCalendarService (period resolution), SequenceService (entry
    numbers) and BalanceService (aggregates).  Read models live in
    JournalSelector.

Invariants enforced:
    - Every line has exactly one positive side and references an active,
      non-header account.
    - A posted entry balances exactly at scale 2 in transaction currency
      AND in base currency; base rounding residue is settled onto one line
      before any balance moves.
    - Balance rows are locked in ascending account-id order after the entry
      row, so concurrent posts touching the same accounts cannot deadlock.
    - Status only moves DRAFT -> POSTED -> VOIDED.  Lines of a voided entry
      are kept.
    - An entry is reversed at most once.

Failure modes:
    - ValidationError subclasses for malformed lines, amounts, dates and a
      missing void reason (raised before any write).
    - StateConflictError subclasses for illegal transitions, unbalanced
      entries at post time and closed periods.
    - ReferenceIntegrityError subclasses for unknown or unusable accounts,
      periods and entries.
    - LockConflictError when the database reports lock contention inside
      post/void/reverse.

Audit relevance:
    posted_*/voided_* columns record who moved an entry and when.  Every
    transition is logged with the entry number.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain import amounts
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    ClosedPeriodError,
    EntryAlreadyReversedError,
    EntryDateOutsidePeriodError,
    EntryNotDraftError,
    EntryNotPostableError,
    EntryNotPostedError,
    FiscalPeriodNotFoundError,
    HeaderAccountError,
    InvalidAmountError,
    InvalidJournalLineError,
    JournalEntryNotFoundError,
    ReversalEntryError,
    VoidReasonRequiredError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.fiscal_calendar import FiscalPeriod
from ledger_kernel.models.journal import (
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.fiscal_calendar_service import FiscalCalendarService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")

DEFAULT_BASE_CURRENCY = "IDR"
DEFAULT_ENTRY_PREFIX = "JE"


class JournalService(BaseService[JournalEntry]):
    """
    Write side of the journal.

    Contract:
        Methods take entry ids and return the ORM entry they touched, flushed
        but not committed.  Callers wanting immutable views use
        JournalSelector.

    Guarantees:
        - post(), void() and reverse() are all-or-nothing.
        - Posting never changes transaction-currency amounts; only base
          amounts may absorb a rounding residue.

    Non-goals:
        - Does not decide which documents produce entries; that is the
          document bridge's job (ledger_modules.journal_bridge).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        base_currency: str = DEFAULT_BASE_CURRENCY,
        entry_number_prefix: str = DEFAULT_ENTRY_PREFIX,
    ):
        super().__init__(session, clock)
        self.base_currency = validate_currency(base_currency)
        self.entry_number_prefix = entry_number_prefix
        self._calendar = FiscalCalendarService(session, self.clock)
        self._balances = BalanceService(session, self.clock)
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def _lock_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def _resolve_period(self, entry_date: date, fiscal_period_id: UUID | None) -> FiscalPeriod:
        if fiscal_period_id is not None:
            period = self._calendar.get_period_orm(fiscal_period_id)
            if not period.contains(entry_date):
                raise EntryDateOutsidePeriodError(entry_date.isoformat(), period.name)
            return period
        period = self._calendar._period_for_date_orm(entry_date)
        if period is None:
            raise FiscalPeriodNotFoundError(entry_date.isoformat())
        return period

    def _postable_account(self, account_code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.code == account_code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_code)
        self._check_account_usable(account)
        return account

    @staticmethod
    def _check_account_usable(account: Account) -> None:
        if not account.is_active:
            raise AccountInactiveError(account.code)
        if account.is_header:
            raise HeaderAccountError(account.code)

    # ------------------------------------------------------------------
    # Line construction
    # ------------------------------------------------------------------

    def _build_line(
        self,
        line_number: int,
        spec: JournalLineSpec,
        exchange_rate: Decimal,
        actor_id: UUID,
    ) -> JournalLine:
        try:
            debit = amounts.money(spec.debit_amount)
            credit = amounts.money(spec.credit_amount)
        except InvalidAmountError as exc:
            raise InvalidJournalLineError(line_number, exc.reason) from exc

        if debit < 0 or credit < 0:
            raise InvalidJournalLineError(line_number, "amounts must not be negative")
        if debit > 0 and credit > 0:
            raise InvalidJournalLineError(line_number, "line has both a debit and a credit")
        if debit == 0 and credit == 0:
            raise InvalidJournalLineError(line_number, "line has neither a debit nor a credit")

        account = self._postable_account(spec.account_code)

        return JournalLine(
            line_number=line_number,
            account_id=account.id,
            account=account,
            description=spec.description,
            debit_amount=debit,
            credit_amount=credit,
            debit_amount_base=amounts.multiply(debit, exchange_rate),
            credit_amount_base=amounts.multiply(credit, exchange_rate),
            customer_id=spec.customer_id,
            supplier_id=spec.supplier_id,
            product_id=spec.product_id,
            expense_id=spec.expense_id,
            created_by_id=actor_id,
        )

    def _build_lines(
        self,
        specs: Sequence[JournalLineSpec],
        exchange_rate: Decimal,
        actor_id: UUID,
        start: int = 1,
    ) -> list[JournalLine]:
        return [
            self._build_line(number, spec, exchange_rate, actor_id)
            for number, spec in enumerate(specs, start=start)
        ]

    @staticmethod
    def _recalculate(entry: JournalEntry) -> None:
        entry.total_debit = amounts.total(line.debit_amount for line in entry.lines)
        entry.total_credit = amounts.total(line.credit_amount for line in entry.lines)

    def _require_draft(self, entry: JournalEntry) -> None:
        if entry.status != JournalEntryStatus.DRAFT:
            raise EntryNotDraftError(entry.entry_number, entry.status)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def create_entry(
        self,
        entry_date: date,
        lines: Sequence[JournalLineSpec],
        actor_id: UUID,
        *,
        fiscal_period_id: UUID | None = None,
        entry_type: EntryType | str = EntryType.MANUAL,
        reference: DocumentRef | None = None,
        memo: str | None = None,
        currency: str | None = None,
        exchange_rate: amounts.AmountLike = Decimal("1"),
        reverses_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Create a draft entry with its lines.

        Preconditions: Every line is individually valid.  Balance is NOT
            required at this stage; an unbalanced draft simply cannot be
            posted.
        Postconditions: Entry flushed in DRAFT with a freshly allocated
            entry number and totals computed from its lines.

        Raises:
            InvalidJournalLineError: A line is malformed (carries its number).
            InvalidAmountError: Non-positive exchange rate or float input.
            AccountNotFoundError / AccountInactiveError / HeaderAccountError.
            FiscalPeriodNotFoundError: No period covers ``entry_date``.
            EntryDateOutsidePeriodError: Explicit period does not contain it.
        """
        currency = validate_currency(currency or self.base_currency)
        rate = amounts.rate(exchange_rate)
        if rate <= 0:
            raise InvalidAmountError(exchange_rate, "exchange rate must be positive")

        period = self._resolve_period(entry_date, fiscal_period_id)
        built = self._build_lines(lines, rate, actor_id)

        entry = JournalEntry(
            entry_number=self._sequences.format_entry_number(entry_date.year, self.entry_number_prefix),
            entry_date=entry_date,
            fiscal_period_id=period.id,
            entry_type=EntryType(entry_type).value,
            memo=memo,
            currency=currency,
            exchange_rate=rate,
            status=JournalEntryStatus.DRAFT.value,
            reverses_id=reverses_id,
            lines=built,
            created_by_id=actor_id,
        )
        entry.reference = reference
        self._recalculate(entry)
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_created",
            extra={
                "entry_number": entry.entry_number,
                "entry_type": entry.entry_type,
                "line_count": len(built),
                "total_debit": entry.total_debit,
                "total_credit": entry.total_credit,
                "document": str(reference) if reference else None,
            },
        )
        return entry

    def add_line(self, entry_id: UUID, line: JournalLineSpec, actor_id: UUID) -> JournalLine:
        """Append one line to a draft and refresh its totals."""
        entry = self._lock_entry(entry_id)
        self._require_draft(entry)

        next_number = max((existing.line_number for existing in entry.lines), default=0) + 1
        built = self._build_line(next_number, line, entry.exchange_rate, actor_id)
        entry.lines.append(built)
        self._recalculate(entry)
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_line_added",
            extra={"entry_number": entry.entry_number, "line_number": next_number},
        )
        return built

    def replace_lines(
        self,
        entry_id: UUID,
        lines: Sequence[JournalLineSpec],
        actor_id: UUID,
    ) -> JournalEntry:
        """
        Replace every line of a draft, renumbering from 1.

        All new lines are validated before the old ones are removed.
        """
        entry = self._lock_entry(entry_id)
        self._require_draft(entry)

        built = self._build_lines(lines, entry.exchange_rate, actor_id)

        # old rows must be gone before new ones reuse their line numbers
        entry.lines.clear()
        self.session.flush()
        entry.lines.extend(built)
        self._recalculate(entry)
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_lines_replaced",
            extra={"entry_number": entry.entry_number, "line_count": len(built)},
        )
        return entry

    def calculate_totals(self, entry_id: UUID) -> tuple[Decimal, Decimal]:
        """Recompute and store total_debit / total_credit from the lines."""
        entry = self.get_entry(entry_id)
        if entry.status == JournalEntryStatus.DRAFT:
            self._recalculate(entry)
            self.session.flush()
        return entry.total_debit, entry.total_credit

    def can_edit(self, entry_id: UUID) -> bool:
        return self.get_entry(entry_id).status == JournalEntryStatus.DRAFT

    def can_delete(self, entry_id: UUID) -> bool:
        return self.get_entry(entry_id).status == JournalEntryStatus.DRAFT

    def delete_entry(self, entry_id: UUID) -> None:
        """Remove a draft and its lines.  Posted and voided entries are permanent."""
        entry = self._lock_entry(entry_id)
        self._require_draft(entry)
        entry_number = entry.entry_number
        self.session.delete(entry)
        self.session.flush()
        logger.info("journal_entry_deleted", extra={"entry_number": entry_number})

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _post_blocker(self, entry: JournalEntry) -> str | None:
        """Why ``entry`` cannot be posted right now, or None."""
        if entry.status != JournalEntryStatus.DRAFT:
            return f"status is {entry.status}"
        if len(entry.lines) < 2:
            return "an entry needs at least two lines"
        debit = amounts.total(line.debit_amount for line in entry.lines)
        credit = amounts.total(line.credit_amount for line in entry.lines)
        if not amounts.is_balanced(debit, credit):
            return f"debits {debit} do not equal credits {credit}"
        period = entry.fiscal_period
        if not FiscalCalendarService.is_postable(period):
            return f"period {period.name} is {period.status}"
        for line in entry.lines:
            if not line.account.is_active:
                return f"account {line.account.code} is inactive"
        return None

    def can_post(self, entry_id: UUID) -> bool:
        return self._post_blocker(self.get_entry(entry_id)) is None

    @staticmethod
    def _settle_base_residue(entry: JournalEntry) -> Decimal:
        """
        Make base-currency totals balance exactly.

        Per-line conversion can leave a difference of a few cents between
        base debits and base credits.  The difference is added to the
        largest line on the smaller side.  Returns the residue moved.
        """
        base_debit = amounts.total(line.debit_amount_base for line in entry.lines)
        base_credit = amounts.total(line.credit_amount_base for line in entry.lines)
        residue = amounts.subtract(base_debit, base_credit)
        if amounts.is_zero(residue):
            return amounts.ZERO

        if residue > 0:
            target = max(
                (line for line in entry.lines if line.credit_amount > 0),
                key=lambda line: (line.credit_amount_base, -line.line_number),
            )
            target.credit_amount_base = amounts.add(target.credit_amount_base, residue)
        else:
            target = max(
                (line for line in entry.lines if line.debit_amount > 0),
                key=lambda line: (line.debit_amount_base, -line.line_number),
            )
            target.debit_amount_base = amounts.add(target.debit_amount_base, -residue)
        return residue

    @staticmethod
    def _deltas_by_account(lines: Iterable[JournalLine], sign: int = 1) -> dict[UUID, tuple[Decimal, Decimal]]:
        sums: dict[UUID, list[Decimal]] = defaultdict(lambda: [amounts.ZERO, amounts.ZERO])
        for line in lines:
            sums[line.account_id][0] += line.debit_amount_base
            sums[line.account_id][1] += line.credit_amount_base
        return {
            account_id: (amounts.money(debit * sign), amounts.money(credit * sign))
            for account_id, (debit, credit) in sums.items()
        }

    def _apply_deltas(self, entry: JournalEntry, actor_id: UUID, sign: int) -> None:
        deltas = self._deltas_by_account(entry.lines, sign)
        for account_id in sorted(deltas, key=str):
            debit, credit = deltas[account_id]
            self._balances.apply_delta(account_id, entry.fiscal_period_id, debit, credit, actor_id)

    def post(self, entry_id: UUID, actor_id: UUID) -> JournalEntry:
        """
        Post a draft entry.

        Preconditions: Entry is a balanced draft with >= 2 lines in an open
            or adjusting period, every line account still active.
        Postconditions: Balance rows of every touched account moved by the
            base amounts; status POSTED, posted_at / posted_by_id stamped.

        Raises:
            EntryNotDraftError, EntryNotPostableError, ClosedPeriodError,
            EntryDateOutsidePeriodError, AccountInactiveError,
            HeaderAccountError, LockConflictError.
        """
        with LogContext.bind(actor_id=actor_id, operation="journal_post"):
            with self.atomic("journal_post"):
                entry = self._lock_entry(entry_id)
                self._require_draft(entry)

                if len(entry.lines) < 2:
                    raise EntryNotPostableError(entry.entry_number, "an entry needs at least two lines")

                self._recalculate(entry)
                if not amounts.is_balanced(entry.total_debit, entry.total_credit):
                    raise EntryNotPostableError(
                        entry.entry_number,
                        f"debits {entry.total_debit} do not equal credits {entry.total_credit}",
                    )

                period = self.session.execute(
                    select(FiscalPeriod)
                    .where(FiscalPeriod.id == entry.fiscal_period_id)
                    .with_for_update(read=True)
                ).scalar_one()
                if not FiscalCalendarService.is_postable(period):
                    raise ClosedPeriodError(period.name, period.status)
                if not period.contains(entry.entry_date):
                    raise EntryDateOutsidePeriodError(entry.entry_date.isoformat(), period.name)

                for line in entry.lines:
                    self._check_account_usable(line.account)

                residue = self._settle_base_residue(entry)
                # base amounts must hit the database while the entry is still a draft
                self.session.flush()

                self._apply_deltas(entry, actor_id, sign=1)

                entry.status = JournalEntryStatus.POSTED.value
                entry.posted_at = self.clock.now()
                entry.posted_by_id = actor_id
                entry.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "journal_entry_posted",
                extra={
                    "entry_number": entry.entry_number,
                    "fiscal_period_id": entry.fiscal_period_id,
                    "total_debit": entry.total_debit,
                    "total_credit": entry.total_credit,
                    "base_residue": residue,
                },
            )
        return entry

    # ------------------------------------------------------------------
    # Voiding / reversal
    # ------------------------------------------------------------------

    def can_void(self, entry_id: UUID) -> bool:
        entry = self.get_entry(entry_id)
        return (
            entry.status == JournalEntryStatus.POSTED
            and entry.reversed_by_id is None
            and entry.reverses_id is None
        )

    def _require_voidable(self, entry: JournalEntry) -> None:
        if entry.status != JournalEntryStatus.POSTED:
            raise EntryNotPostedError(entry.entry_number, entry.status)
        if entry.reversed_by_id is not None:
            raise EntryAlreadyReversedError(entry.entry_number, str(entry.reversed_by_id))
        if entry.reverses_id is not None:
            raise ReversalEntryError(entry.entry_number, str(entry.reverses_id))

    def void(self, entry_id: UUID, actor_id: UUID, reason: str) -> JournalEntry:
        """
        Void a posted entry, backing its amounts out of the balances.

        Postconditions: Balance rows restored to their pre-post values;
            status VOIDED with reason, actor and time.  Lines are kept.

        Raises:
            VoidReasonRequiredError: Blank reason (nothing written).
            EntryNotPostedError, EntryAlreadyReversedError, LockConflictError.
            ReversalEntryError: The entry is itself a reversal.
        """
        if not reason or not reason.strip():
            raise VoidReasonRequiredError(self.get_entry(entry_id).entry_number)

        with LogContext.bind(actor_id=actor_id, operation="journal_void"):
            with self.atomic("journal_void"):
                entry = self._lock_entry(entry_id)
                self._require_voidable(entry)

                self._apply_deltas(entry, actor_id, sign=-1)

                entry.status = JournalEntryStatus.VOIDED.value
                entry.voided_at = self.clock.now()
                entry.voided_by_id = actor_id
                entry.void_reason = reason.strip()
                entry.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "journal_entry_voided",
                extra={"entry_number": entry.entry_number, "reason": entry.void_reason},
            )
        return entry

    def reverse(
        self,
        entry_id: UUID,
        actor_id: UUID,
        entry_date: date | None = None,
        memo: str | None = None,
    ) -> JournalEntry:
        """
        Post a mirror entry that cancels ``entry_id`` and link the two.

        The reversal swaps debit and credit on every line, keeps the
        original's currency, rate and document reference, and is dated
        ``entry_date`` (default: today per the clock).

        Postconditions: New entry POSTED with reverses_id set; original's
            reversed_by_id points at it.  The original stays POSTED.

        Raises:
            EntryNotPostedError, EntryAlreadyReversedError, ReversalEntryError,
            plus anything create_entry() or post() raise for the reversal
            date.
        """
        with self.atomic("journal_reverse"):
            original = self._lock_entry(entry_id)
            self._require_voidable(original)

            specs = [
                JournalLineSpec(
                    account_code=line.account.code,
                    debit_amount=line.credit_amount,
                    credit_amount=line.debit_amount,
                    description=line.description,
                    customer_id=line.customer_id,
                    supplier_id=line.supplier_id,
                    product_id=line.product_id,
                    expense_id=line.expense_id,
                )
                for line in original.lines
            ]
            reversal = self.create_entry(
                entry_date or self.clock.today(),
                specs,
                actor_id,
                entry_type=EntryType.REVERSAL,
                reference=original.reference,
                memo=memo or f"Reversal of {original.entry_number}",
                currency=original.currency,
                exchange_rate=original.exchange_rate,
                reverses_id=original.id,
            )
            self.post(reversal.id, actor_id)

            original.reversed_by_id = reversal.id
            original.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "journal_entry_reversed",
            extra={"entry_number": original.entry_number, "reversal_number": reversal.entry_number},
        )
        return reversal
