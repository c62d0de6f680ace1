"""
Document-to-Journal Bridge (``ledger_modules.journal_bridge``).

Responsibility
--------------
Shared machinery for automatic journal entries: balance pre-check, period
check, create-then-post, idempotency per document reference, feature
switches and default account lookup.

Architecture position
---------------------
**Modules layer** -- base class for the expense, sales, purchasing and
payments services.  Delegates every write to ``ledger_kernel`` services.
"""

from ledger_modules.journal_bridge.models import AutoJournalHeader, JournalSwitch
from ledger_modules.journal_bridge.service import AutoJournalService

__all__ = [
    "AutoJournalHeader",
    "AutoJournalService",
    "JournalSwitch",
]
