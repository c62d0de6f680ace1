"""
Ledger Kernel - double-entry accounting core for SME operations.

- Chart of accounts hierarchy
- Fiscal years and periods with ordered close/reopen/lock
- Journal entries with draft -> posted -> voided lifecycle
- Per-period account balance aggregation with explicit carry-forward
- Inventory stock and append-only movement ledger (average and FIFO cost)
"""

__version__ = "0.1.0"
