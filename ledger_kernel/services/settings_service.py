"""
SettingsService -- typed financial settings with a read-through cache.

Responsibility:
    Reads and writes FinancialSetting rows, casting the stored text to the
    declared value type.  Feature switches (``auto_journal_*``,
    ``tax_ppn_enabled``) and default account codes are read here.

Architecture position:
    Kernel > Services.  Used by ledger_modules to decide whether a document
    produces a journal entry and which accounts it hits.

Invariants enforced:
    - System settings are read-only.
    - A cached value is served for at most ``ttl_seconds`` of clock time;
      a write through this service invalidates the key immediately.

Failure modes:
    - SystemSettingError when writing a system setting.
    - InvalidSettingValueError when a value cannot be cast to its type.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import InvalidSettingValueError, SystemSettingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.financial_setting import FinancialSetting, SettingValueType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.settings")

DEFAULT_TTL_SECONDS = 3600

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off", "")


def cast_value(key: str, raw: str | None, value_type: SettingValueType | str) -> Any:
    """Convert stored text into a Python value of ``value_type``."""
    if raw is None:
        return None
    value_type = SettingValueType(value_type)
    try:
        if value_type == SettingValueType.BOOLEAN:
            word = raw.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            raise ValueError(raw)
        if value_type == SettingValueType.INTEGER:
            return int(raw.strip())
        if value_type == SettingValueType.DECIMAL:
            return Decimal(raw.strip())
        if value_type == SettingValueType.JSON:
            return json.loads(raw)
    except (ValueError, InvalidOperation) as exc:
        raise InvalidSettingValueError(key, value_type.value, raw) from exc
    return raw


def serialize_value(key: str, value: Any, value_type: SettingValueType | str) -> str | None:
    """Inverse of cast_value.  The result is validated by casting it back."""
    if value is None:
        return None
    value_type = SettingValueType(value_type)
    if value_type == SettingValueType.BOOLEAN and isinstance(value, bool):
        text = "1" if value else "0"
    elif value_type == SettingValueType.JSON:
        text = json.dumps(value, default=str)
    elif isinstance(value, float):
        raise InvalidSettingValueError(key, value_type.value, repr(value))
    else:
        text = str(value)
    cast_value(key, text, value_type)
    return text


@dataclass(frozen=True)
class _CachedSetting:
    raw: str | None
    value_type: str
    expires_at: datetime


class SettingsCache:
    """
    Key -> stored setting with an expiry taken from the clock.

    Share one instance between services to share cached reads.  A missing
    key is cached too, so repeated lookups of an unset switch stay cheap.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._entries: dict[str, _CachedSetting | None] = {}
        self._missing_until: dict[str, datetime] = {}

    def lookup(self, key: str, now: datetime) -> tuple[bool, _CachedSetting | None]:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > now:
            return True, entry
        missing_until = self._missing_until.get(key)
        if missing_until is not None and missing_until > now:
            return True, None
        return False, None

    def store(self, key: str, setting: FinancialSetting | None, now: datetime) -> _CachedSetting | None:
        expires_at = now + self.ttl
        if setting is None:
            self._entries.pop(key, None)
            self._missing_until[key] = expires_at
            return None
        self._missing_until.pop(key, None)
        entry = _CachedSetting(setting.value, setting.value_type, expires_at)
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
            self._missing_until.clear()
        else:
            self._entries.pop(key, None)
            self._missing_until.pop(key, None)


class SettingsService(BaseService[FinancialSetting]):
    """
    Typed access to financial settings.

    Contract:
        get() returns the cast value or ``default`` when the key is unset.
        set() creates the row when absent (type from ``value_type`` or
        "string"); for an existing row the stored type is kept unless one is
        given.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cache: SettingsCache | None = None,
    ):
        super().__init__(session, clock)
        self.cache = cache or SettingsCache()

    def _find(self, key: str) -> FinancialSetting | None:
        return self.session.execute(
            select(FinancialSetting).where(FinancialSetting.key == key)
        ).scalar_one_or_none()

    def get(self, key: str, default: Any = None) -> Any:
        now = self.clock.now()
        hit, entry = self.cache.lookup(key, now)
        if hit:
            logger.debug("setting_cache_hit", extra={"setting_key": key})
        else:
            entry = self.cache.store(key, self._find(key), now)
        if entry is None:
            return default
        value = cast_value(key, entry.raw, entry.value_type)
        return default if value is None else value

    def is_enabled(self, key: str) -> bool:
        return bool(self.get(key, False))

    def set(
        self,
        key: str,
        value: Any,
        actor_id: UUID,
        *,
        value_type: SettingValueType | str | None = None,
        group: str | None = None,
        description: str | None = None,
    ) -> FinancialSetting:
        """
        Write a setting.

        Raises:
            SystemSettingError: The existing row is a system setting.
            InvalidSettingValueError: ``value`` does not fit the type.
        """
        setting = self._find(key)
        if setting is not None:
            if setting.is_system:
                logger.warning("system_setting_write_rejected", extra={"setting_key": key})
                raise SystemSettingError(key)
            stored_type = SettingValueType(value_type or setting.value_type)
            setting.value = serialize_value(key, value, stored_type)
            setting.value_type = stored_type.value
            if group is not None:
                setting.group = group
            if description is not None:
                setting.description = description
            setting.updated_by_id = actor_id
        else:
            stored_type = SettingValueType(value_type or SettingValueType.STRING)
            setting = FinancialSetting(
                key=key,
                value=serialize_value(key, value, stored_type),
                value_type=stored_type.value,
                group=group or "general",
                description=description,
                is_system=False,
                created_by_id=actor_id,
            )
            self.session.add(setting)
        self.session.flush()
        self.cache.invalidate(key)

        logger.info("setting_updated", extra={"setting_key": key, "value_type": stored_type.value})
        return setting

    def get_by_group(self, group: str) -> dict[str, Any]:
        rows = self.session.execute(
            select(FinancialSetting)
            .where(FinancialSetting.group == group)
            .order_by(FinancialSetting.key)
        ).scalars()
        return {row.key: cast_value(row.key, row.value, row.value_type) for row in rows}

    def all_settings(self) -> dict[str, Any]:
        rows = self.session.execute(select(FinancialSetting).order_by(FinancialSetting.key)).scalars()
        return {row.key: cast_value(row.key, row.value, row.value_type) for row in rows}

    def invalidate(self, key: str | None = None) -> None:
        """Drop one cached key, or every key."""
        self.cache.invalidate(key)
