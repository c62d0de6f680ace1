"""
Auto-Journal Service (``ledger_modules.journal_bridge.service``).

Responsibility
--------------
Turns a header plus line specifications produced by a document module into
a posted journal entry, and backs such entries out again when the document
is cancelled.

Architecture position
---------------------
**Modules layer** -- base class for every document posting service.
Composes ``JournalService`` (writes), ``JournalSelector`` (idempotency
lookups), ``FiscalCalendarService`` (period check) and ``SettingsService``
(feature switches, default accounts).

Invariants enforced
-------------------
* Line sets that do not balance at money scale never reach the journal.
* A document has at most one live (draft or posted) automatic entry;
  subclasses check ``has_journal_entry`` before creating one.
* The caller owns the transaction; this service only flushes.

Failure modes
-------------
* Unbalanced lines or no postable period  -> ``None`` and a warning log.
* Kernel validation errors (unknown account, malformed line) propagate.
* Draft created but not postable  -> draft kept, warning logged.

Audit relevance
---------------
Every created, skipped and voided automatic entry is logged with the
document reference it belongs to.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain import amounts
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalEntryInfo, JournalLineSpec
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.fiscal_calendar_service import FiscalCalendarService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.settings_service import SettingsService
from ledger_modules.journal_bridge.models import AutoJournalHeader, JournalSwitch

logger = get_logger("modules.journal_bridge")

LIVE_STATUSES = (JournalEntryStatus.DRAFT, JournalEntryStatus.POSTED)


class AutoJournalService(BaseService[JournalEntry]):
    """
    Create, find and void automatic journal entries.

    Contract:
        ``journal`` and ``settings`` may be injected (for instance built by
        ``ledger_config.bridges`` from a configuration set); otherwise they
        are created with kernel defaults on the same session and clock.

    Non-goals:
        - Knows nothing about document semantics; subclasses build lines.
    """

    switch: JournalSwitch | None = None

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        journal: JournalService | None = None,
        settings: SettingsService | None = None,
    ):
        super().__init__(session, clock)
        self.journal = journal or JournalService(session, self.clock)
        self.settings = settings or SettingsService(session, self.clock)
        self._calendar = FiscalCalendarService(session, self.clock)
        self._entries = JournalSelector(session)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def is_enabled(self, switch: JournalSwitch | str | None = None) -> bool:
        """Master switch AND the per-document switch (default: ``self.switch``)."""
        if not self.settings.is_enabled(JournalSwitch.MASTER.value):
            return False
        switch = switch or self.switch
        if switch is None:
            return True
        return self.settings.is_enabled(JournalSwitch(switch).value)

    def account_code(self, setting_key: str) -> str | None:
        """Account code stored under ``setting_key``; blank means unset."""
        value = self.settings.get(setting_key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def create_journal_entry(
        self,
        header: AutoJournalHeader,
        lines: Sequence[JournalLineSpec],
        actor_id: UUID,
        auto_post: bool = True,
    ) -> JournalEntry | None:
        """
        Create an automatic entry and post it when possible.

        Preconditions: ``lines`` balance at money scale.
        Postconditions: Draft flushed; POSTED when ``auto_post`` and the
            entry passes ``can_post``.

        Returns:
            The entry, or None when the lines do not balance or no postable
            period covers ``header.entry_date``.
        """
        debit = amounts.total(line.debit_amount for line in lines)
        credit = amounts.total(line.credit_amount for line in lines)
        if not amounts.is_balanced(debit, credit):
            logger.warning(
                "auto_journal_unbalanced",
                extra={"document": str(header.reference), "total_debit": debit, "total_credit": credit},
            )
            return None

        period = self._calendar.period_for_date(header.entry_date)
        if period is None or not FiscalCalendarService.is_postable(period):
            logger.warning(
                "auto_journal_no_open_period",
                extra={"document": str(header.reference), "entry_date": header.entry_date.isoformat()},
            )
            return None

        with LogContext.bind(actor_id=actor_id, operation="auto_journal"):
            entry = self.journal.create_entry(
                header.entry_date,
                lines,
                actor_id,
                fiscal_period_id=period.id,
                entry_type=header.entry_type,
                reference=header.reference,
                memo=header.memo,
                currency=header.currency,
                exchange_rate=header.exchange_rate,
            )
            if auto_post:
                if self.journal.can_post(entry.id):
                    self.journal.post(entry.id, actor_id)
                else:
                    logger.warning(
                        "auto_journal_left_in_draft",
                        extra={"entry_number": entry.entry_number, "document": str(header.reference)},
                    )
        return entry

    def void_journal_entry(self, entry_id: UUID, reason: str, actor_id: UUID) -> bool:
        """Void a posted automatic entry; False when it is not voidable."""
        if not self.journal.can_void(entry_id):
            logger.warning("auto_journal_void_skipped", extra={"entry_id": entry_id})
            return False
        self.journal.void(entry_id, actor_id, reason)
        return True

    def find_by_reference(self, reference: DocumentRef) -> list[JournalEntryInfo]:
        return self._entries.by_reference(reference)

    def live_entry(self, reference: DocumentRef) -> JournalEntryInfo | None:
        """The draft or posted entry of ``reference``, if any."""
        for entry in self.find_by_reference(reference):
            if entry.status in LIVE_STATUSES:
                return entry
        return None

    def has_journal_entry(self, reference: DocumentRef) -> bool:
        return self.live_entry(reference) is not None
