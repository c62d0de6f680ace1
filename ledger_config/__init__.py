"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Loads a named configuration set (ledger parameters, chart of accounts,
    financial settings) from YAML through ``load_ledger_config()``.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_modules``.  The kernel never imports ``ledger_config``;
    bridges.py and bootstrap.py translate a loaded set into kernel calls.

Invariants enforced:
    - Every returned LedgerConfig has passed loader validation.
    - The same YAML content always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the named set does not exist.
    - ``ValueError`` -- the set fails validation.

Audit relevance:
    Every successful load emits a ``ledger_config_loaded`` log entry with
    the set name, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.bootstrap import BootstrapResult, bootstrap_ledger
from ledger_config.loader import load_config_set
from ledger_config.schema import (
    AccountDefinition,
    LedgerConfig,
    LedgerParameters,
    SettingDefinition,
)
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_SET = "default"


def load_ledger_config(set_name: str = DEFAULT_SET, config_dir: Path | None = None) -> LedgerConfig:
    """Load and validate configuration set ``set_name``.

    Args:
        set_name: Directory name under the sets directory.
        config_dir: Override for the sets directory (tests).

    Raises:
        FileNotFoundError: No such set.
        ValueError: Validation failed.
    """
    directory = (config_dir or _DEFAULT_CONFIG_DIR) / set_name
    if not directory.is_dir():
        raise FileNotFoundError(f"No ledger configuration set at {directory}")

    config = load_config_set(directory)
    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_name": config.name,
            "config_version": config.version,
            "config_checksum": config.checksum,
            "account_count": len(config.accounts),
            "setting_count": len(config.settings),
        },
    )
    return config


__all__ = [
    "AccountDefinition",
    "BootstrapResult",
    "LedgerConfig",
    "LedgerParameters",
    "SettingDefinition",
    "bootstrap_ledger",
    "load_ledger_config",
]
