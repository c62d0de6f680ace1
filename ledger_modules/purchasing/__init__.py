"""
Purchasing (``ledger_modules.purchasing``).

Responsibility
--------------
Goods receipt against purchase orders: one ``purchase_in`` movement per
line at the line's unit cost in base currency, and the inventory /
input VAT against accounts payable journal entry.

Architecture position
---------------------
**Modules layer** -- ``PurchasingService`` extends ``AutoJournalService``.
"""

from ledger_modules.purchasing.models import (
    GoodsReceiptResult,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
)
from ledger_modules.purchasing.service import PurchasingService

__all__ = [
    "GoodsReceiptResult",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "PurchasingService",
]
