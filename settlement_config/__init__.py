"""
settlement_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains a
    ``LedgerSettings``.  No other component reads configuration files or
    environment variables.

Architecture position:
    Configuration -- sits beside the kernel.  The kernel only imports the
    pure ``schema`` module; callers load settings here and pass them in.

Failure modes:
    - ``FileNotFoundError`` -- SETTLEMENT_LEDGER_CONFIG names a missing file.
    - ``ValueError`` -- a setting is out of range.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from settlement_config.loader import load_settings
from settlement_config.schema import LedgerSettings, PartyDefaults

CONFIG_ENV_VAR = "SETTLEMENT_LEDGER_CONFIG"

_logger = logging.getLogger("settlement_kernel.config")


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """
    The ONLY public configuration entrypoint.

    Resolution order: explicit ``config_path``, then the file named by
    SETTLEMENT_LEDGER_CONFIG, then the packaged defaults.  Every call emits
    a ``ledger_settings_loaded`` log entry carrying the settings checksum.
    """
    path = config_path or os.environ.get(CONFIG_ENV_VAR) or None
    settings = load_settings(path)

    _logger.info(
        "ledger_settings_loaded",
        extra={
            "config_path": str(path) if path else "defaults",
            "checksum": settings.checksum,
            "tolerance": settings.tolerance,
            "allow_overpayment": settings.allow_overpayment,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "LedgerSettings",
    "PartyDefaults",
    "get_active_settings",
    "load_settings",
]
