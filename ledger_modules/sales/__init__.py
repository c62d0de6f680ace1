"""
Sales (``ledger_modules.sales``).

Responsibility
--------------
Sales order confirmation (stock reservation), delivery (stock issue at
average cost) and the revenue and cost-of-goods journal entries a delivery
produces.

Architecture position
---------------------
**Modules layer** -- ``SalesService`` extends ``AutoJournalService`` and
drives ``InventoryLedgerService``.  Orders are frozen DTOs owned by the
caller.
"""

from ledger_modules.sales.models import (
    SalesDeliveryResult,
    SalesOrder,
    SalesOrderLine,
    SalesOrderStatus,
)
from ledger_modules.sales.service import SalesService

__all__ = [
    "SalesDeliveryResult",
    "SalesOrder",
    "SalesOrderLine",
    "SalesOrderStatus",
    "SalesService",
]
