"""
Module: ledger_kernel.models.financial_setting
Responsibility: ORM persistence for typed key/value financial settings
    (auto-journal switches, default account codes, tax flags).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - key is unique.
    - value is stored as text and cast on read according to value_type.
    - is_system rows are read-only (enforced by SettingsService).
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class SettingValueType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    JSON = "json"


class FinancialSetting(TrackedBase):
    __tablename__ = "financial_settings"

    __table_args__ = (
        UniqueConstraint("key", name="uq_financial_setting_key"),
        Index("idx_financial_setting_group", "group"),
    )

    key: Mapped[str] = mapped_column(String(100), nullable=False)

    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    value_type: Mapped[SettingValueType] = mapped_column(
        String(20),
        default=SettingValueType.STRING,
        nullable=False,
    )

    group: Mapped[str] = mapped_column(String(50), default="general", nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<FinancialSetting {self.key}={self.value!r}>"
