"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from ledger_kernel.services.fiscal_calendar_service import FiscalCalendarService
from ledger_kernel.services.inventory_service import InventoryLedgerService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.retry import run_in_transaction
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.settings_service import SettingsCache, SettingsService

__all__ = [
    "BalanceService",
    "ChartOfAccountsService",
    "FiscalCalendarService",
    "InventoryLedgerService",
    "JournalService",
    "SequenceService",
    "SettingsCache",
    "SettingsService",
    "run_in_transaction",
]
