"""
Pure domain layer: amounts, references, DTOs, account tree traversal, clock.

Nothing in this package touches the database.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.references import DocumentRef, DocumentType

__all__ = [
    "Clock",
    "DeterministicClock",
    "DocumentRef",
    "DocumentType",
    "SystemClock",
]
