"""
Seed a ledger database from a configuration set.

bootstrap_ledger() creates the chart of accounts and the financial
settings of a LedgerConfig through the kernel services, so every seeded
row passes the same validation as a row created by hand.  Accounts and
settings that already exist are left untouched; running it twice is a
no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.financial_setting import FinancialSetting, SettingValueType
from ledger_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from ledger_kernel.services.settings_service import cast_value

logger = get_logger("config.bootstrap")


@dataclass(frozen=True)
class BootstrapResult:
    accounts_created: int
    accounts_skipped: int
    settings_created: int
    settings_skipped: int


def bootstrap_ledger(
    session: Session,
    config: LedgerConfig,
    actor_id: UUID,
    clock: Clock | None = None,
) -> BootstrapResult:
    """
    Create every account and setting of ``config`` that does not exist yet.

    Preconditions: ``config`` passed loader validation (parents first).
    Postconditions: Rows flushed, not committed.
    """
    coa = ChartOfAccountsService(session, clock)
    existing_codes = set(session.execute(select(Account.code)).scalars())

    accounts_created = 0
    for definition in config.accounts:
        if definition.code in existing_codes:
            continue
        coa.create_account(
            definition.code,
            definition.name,
            definition.account_type,
            actor_id,
            parent_code=definition.parent_code,
            is_header=definition.is_header,
            is_system=definition.is_system,
            is_bank_account=definition.is_bank_account,
            is_contra=definition.is_contra,
            description=definition.description,
        )
        accounts_created += 1

    existing_keys = set(session.execute(select(FinancialSetting.key)).scalars())
    settings_created = 0
    for definition in config.settings:
        if definition.key in existing_keys:
            continue
        value_type = SettingValueType(definition.value_type)
        # empty defaults are stored as-is; only real values must cast
        if definition.value:
            cast_value(definition.key, definition.value, value_type)
        session.add(
            FinancialSetting(
                key=definition.key,
                value=definition.value,
                value_type=value_type.value,
                group=definition.group,
                description=definition.description,
                is_system=definition.is_system,
                created_by_id=actor_id,
            )
        )
        settings_created += 1
    session.flush()

    result = BootstrapResult(
        accounts_created=accounts_created,
        accounts_skipped=len(config.accounts) - accounts_created,
        settings_created=settings_created,
        settings_skipped=len(config.settings) - settings_created,
    )
    logger.info(
        "ledger_bootstrapped",
        extra={
            "config_name": config.name,
            "config_checksum": config.checksum,
            "accounts_created": result.accounts_created,
            "settings_created": result.settings_created,
        },
    )
    return result
