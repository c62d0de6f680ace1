"""
Module: ledger_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - name is unique; current_value only grows, under SELECT ... FOR UPDATE.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """One named sequence, e.g. ``journal_entry:2026`` or ``inventory_movement:<product id>``."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
