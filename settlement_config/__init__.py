"""
settlement_config -- single public entrypoint for settlement engine settings.

Responsibility:
    Provides the runtime way to obtain settings through
    ``get_active_settings()``.  Services receive an ``EngineSettings`` and
    wire it into the engines; engines never read configuration themselves.

Architecture position:
    Configuration -- YAML-driven settings.  Sits above ``settlement_kernel``
    and below ``settlement_services``.  Has no dependency on engines.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ConfigurationError`` -- the file parses but holds invalid values.

Audit relevance:
    Every ``get_active_settings()`` call emits a ``SETTLEMENT_CONFIG_TRACE``
    log entry with the settings id, version and checksum, tying each
    settlement run to the exact settings that governed it.
"""

from __future__ import annotations

from pathlib import Path

from settlement_config.loader import load_settings, parse_settings
from settlement_config.schema import EngineSettings
from settlement_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default settings file shipped with the package
DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(path: Path | None = None) -> EngineSettings:
    """Load the settings for a settlement run.

    Args:
        path: Override settings file. Defaults to ``sets/default.yaml``.

    Returns:
        Frozen EngineSettings.
    """
    settings = load_settings(path or DEFAULT_SETTINGS_PATH)

    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "settings_id": settings.settings_id,
            "settings_version": settings.version,
            "checksum": settings.checksum,
            "currency": settings.currency,
            "tolerance": str(settings.effective_tolerance),
            "default_mode": settings.default_mode,
            "cap_by_creditor": settings.cap_by_creditor,
        },
    )
    return settings


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "EngineSettings",
    "get_active_settings",
    "load_settings",
    "parse_settings",
]
