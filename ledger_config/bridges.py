"""
Config -> Kernel Bridges.

Build kernel services from a loaded LedgerConfig.  These live in
ledger_config because the kernel never imports ledger_config.

Usage:
    from ledger_config.bridges import build_journal_service, build_settings_service

    config = load_ledger_config()
    journal = build_journal_service(session, config, clock)
    settings = build_settings_service(session, config, clock)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.settings_service import SettingsCache, SettingsService


def build_settings_cache(config: LedgerConfig) -> SettingsCache:
    return SettingsCache(ttl_seconds=config.ledger.settings_ttl_seconds)


def build_journal_service(
    session: Session,
    config: LedgerConfig,
    clock: Clock | None = None,
) -> JournalService:
    """JournalService with the set's base currency and entry-number prefix."""
    return JournalService(
        session,
        clock,
        base_currency=config.ledger.base_currency,
        entry_number_prefix=config.ledger.entry_number_prefix,
    )


def build_settings_service(
    session: Session,
    config: LedgerConfig,
    clock: Clock | None = None,
    cache: SettingsCache | None = None,
) -> SettingsService:
    return SettingsService(session, clock, cache or build_settings_cache(config))
