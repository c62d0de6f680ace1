"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML files of one configuration set directory and parses them
into the frozen dataclasses of ``ledger_config.schema``.  Callers use
``ledger_config.load_ledger_config()``; this module is the tooling
underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with the offending
  entry; required fields never get silent defaults.
* ``validate_config`` checks the whole set before it is returned: unique
  account codes, parents listed before children and marked as headers,
  known account and setting types, a known costing method and a valid
  ISO 4217 base currency.
* ``compute_checksum`` is deterministic for the same parsed content.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Structural problems -> ``ValueError`` listing every problem found.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    COSTING_METHODS,
    AccountDefinition,
    LedgerConfig,
    LedgerParameters,
    SettingDefinition,
)
from ledger_kernel.db.types import is_valid_currency
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.financial_setting import SettingValueType

LEDGER_FILE = "ledger.yaml"
ACCOUNTS_FILE = "chart_of_accounts.yaml"
SETTINGS_FILE = "financial_settings.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def parse_ledger_parameters(data: dict[str, Any]) -> LedgerParameters:
    raw_tolerance = data.get("reconciliation_tolerance", "0.01")
    try:
        tolerance = Decimal(str(raw_tolerance))
    except InvalidOperation as exc:
        raise ValueError(f"reconciliation_tolerance is not a decimal: {raw_tolerance!r}") from exc
    return LedgerParameters(
        base_currency=str(data.get("base_currency", "IDR")).upper(),
        entry_number_prefix=str(data.get("entry_number_prefix", "JE")),
        settings_ttl_seconds=int(data.get("settings_ttl_seconds", 3600)),
        costing_method=str(data.get("costing_method", "average")),
        reconciliation_tolerance=tolerance,
    )


def parse_account(data: dict[str, Any]) -> AccountDefinition:
    """Parse one account entry.  ``code``, ``name`` and ``type`` are required."""
    return AccountDefinition(
        code=str(data["code"]),
        name=str(data["name"]),
        account_type=str(data["type"]),
        parent_code=_text(data.get("parent")),
        is_header=bool(data.get("header", False)),
        is_system=bool(data.get("system", False)),
        is_bank_account=bool(data.get("bank", False)),
        is_contra=bool(data.get("contra", False)),
        description=data.get("description"),
    )


def parse_setting(data: dict[str, Any]) -> SettingDefinition:
    """Parse one setting entry.  ``key`` is required."""
    return SettingDefinition(
        key=str(data["key"]),
        value=_text(data.get("value")),
        value_type=str(data.get("type", "string")),
        group=str(data.get("group", "general")),
        description=data.get("description"),
        is_system=bool(data.get("system", False)),
    )


def compute_checksum(
    ledger: LedgerParameters,
    accounts: tuple[AccountDefinition, ...],
    settings: tuple[SettingDefinition, ...],
) -> str:
    canonical = json.dumps(
        {
            "ledger": asdict(ledger),
            "accounts": [asdict(a) for a in accounts],
            "settings": [asdict(s) for s in settings],
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def validate_config(config: LedgerConfig) -> list[str]:
    """Return every structural problem in ``config`` (empty when valid)."""
    errors: list[str] = []
    account_types = {t.value for t in AccountType}
    setting_types = {t.value for t in SettingValueType}

    if not is_valid_currency(config.ledger.base_currency):
        errors.append(f"base_currency {config.ledger.base_currency!r} is not an ISO 4217 code")
    if config.ledger.costing_method not in COSTING_METHODS:
        errors.append(f"costing_method must be one of {COSTING_METHODS}")
    if config.ledger.settings_ttl_seconds < 0:
        errors.append("settings_ttl_seconds must not be negative")

    seen: dict[str, AccountDefinition] = {}
    for account in config.accounts:
        if account.code in seen:
            errors.append(f"account {account.code}: duplicate code")
        if account.account_type not in account_types:
            errors.append(f"account {account.code}: unknown type {account.account_type!r}")
        if account.parent_code is not None:
            parent = seen.get(account.parent_code)
            if parent is None:
                errors.append(f"account {account.code}: parent {account.parent_code} not defined before it")
            elif not parent.is_header:
                errors.append(f"account {account.code}: parent {account.parent_code} is not a header")
        seen[account.code] = account

    keys: set[str] = set()
    for setting in config.settings:
        if setting.key in keys:
            errors.append(f"setting {setting.key}: duplicate key")
        keys.add(setting.key)
        if setting.value_type not in setting_types:
            errors.append(f"setting {setting.key}: unknown type {setting.value_type!r}")

    return errors


def load_config_set(directory: Path) -> LedgerConfig:
    """
    Load and validate the configuration set in ``directory``.

    Raises:
        FileNotFoundError: ledger.yaml is missing.
        ValueError: The set fails validation.
    """
    header = load_yaml_file(directory / LEDGER_FILE)
    accounts_path = directory / ACCOUNTS_FILE
    settings_path = directory / SETTINGS_FILE
    accounts_data = load_yaml_file(accounts_path) if accounts_path.is_file() else {}
    settings_data = load_yaml_file(settings_path) if settings_path.is_file() else {}

    ledger = parse_ledger_parameters(header.get("ledger") or {})
    accounts = tuple(parse_account(a) for a in accounts_data.get("accounts") or ())
    settings = tuple(parse_setting(s) for s in settings_data.get("settings") or ())

    config = LedgerConfig(
        name=str(header.get("name", directory.name)),
        version=int(header.get("version", 1)),
        ledger=ledger,
        accounts=accounts,
        settings=settings,
        description=header.get("description"),
        checksum=compute_checksum(ledger, accounts, settings),
    )

    errors = validate_config(config)
    if errors:
        raise ValueError(
            f"Configuration set {directory} failed validation:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
    return config
