"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.inventory_selector import InventorySelector
from ledger_kernel.selectors.journal_selector import JournalSelector

__all__ = [
    "AccountSelector",
    "BalanceSelector",
    "InventorySelector",
    "JournalSelector",
]
