"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.account_balance import AccountBalance
from ledger_kernel.models.financial_setting import FinancialSetting, SettingValueType
from ledger_kernel.models.fiscal_calendar import (
    POSTABLE_PERIOD_STATUSES,
    FiscalPeriod,
    FiscalYear,
    FiscalYearStatus,
    PeriodStatus,
)
from ledger_kernel.models.inventory import (
    FIFO_LAYER_MOVEMENTS,
    INBOUND_MOVEMENTS,
    OUTBOUND_MOVEMENTS,
    InventoryMovement,
    InventoryStock,
    MovementType,
)
from ledger_kernel.models.journal import (
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "AccountBalance",
    "FinancialSetting",
    "SettingValueType",
    "FiscalYear",
    "FiscalYearStatus",
    "FiscalPeriod",
    "PeriodStatus",
    "POSTABLE_PERIOD_STATUSES",
    "InventoryStock",
    "InventoryMovement",
    "MovementType",
    "INBOUND_MOVEMENTS",
    "OUTBOUND_MOVEMENTS",
    "FIFO_LAYER_MOVEMENTS",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "EntryType",
    "SequenceCounter",
]
