"""
Ledger configuration schema.

Frozen dataclasses that the YAML configuration set is parsed into.  They
carry no behaviour beyond small derived properties; bootstrap.py and
bridges.py turn them into kernel calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

COSTING_METHODS = ("average", "fifo")


@dataclass(frozen=True)
class LedgerParameters:
    """Ledger-wide parameters (ledger.yaml)."""

    base_currency: str = "IDR"
    entry_number_prefix: str = "JE"
    settings_ttl_seconds: int = 3600
    costing_method: str = "average"
    reconciliation_tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class AccountDefinition:
    """One chart-of-accounts row (chart_of_accounts.yaml)."""

    code: str
    name: str
    account_type: str
    parent_code: str | None = None
    is_header: bool = False
    is_system: bool = False
    is_bank_account: bool = False
    is_contra: bool = False
    description: str | None = None


@dataclass(frozen=True)
class SettingDefinition:
    """One seeded financial setting (financial_settings.yaml)."""

    key: str
    value: str | None
    value_type: str = "string"
    group: str = "general"
    description: str | None = None
    is_system: bool = False


@dataclass(frozen=True)
class LedgerConfig:
    """A loaded configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON form of every parsed
    fragment; two sets with the same content have the same checksum.
    """

    name: str
    version: int
    ledger: LedgerParameters
    accounts: tuple[AccountDefinition, ...] = field(default_factory=tuple)
    settings: tuple[SettingDefinition, ...] = field(default_factory=tuple)
    description: str | None = None
    checksum: str = ""

    def account(self, code: str) -> AccountDefinition | None:
        for account in self.accounts:
            if account.code == code:
                return account
        return None

    def setting(self, key: str) -> SettingDefinition | None:
        for setting in self.settings:
            if setting.key == key:
                return setting
        return None
