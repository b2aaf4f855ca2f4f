"""
Settings Loader (``settlement_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen
``settlement_config.schema.EngineSettings``.  Runtime callers should go
through ``settlement_config.get_active_settings()``.

Invariants enforced
-------------------
* Every parse error raises ``ConfigurationError`` naming the source file
  and the offending key.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  content so a settlement run can be tied to the exact settings it used.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown currency, negative tolerance, unknown mode  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import SETTLEMENT_MODES, EngineSettings
from settlement_kernel.domain.currency import CurrencyRegistry
from settlement_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed settings mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_tolerance(value: Any, source: str) -> Decimal | None:
    """Parse an optional positive tolerance; None means derive from currency."""
    if value is None:
        return None
    try:
        tolerance = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(source, f"tolerance is not a number: {value!r}") from exc
    if not tolerance.is_finite() or tolerance <= 0:
        raise ConfigurationError(source, f"tolerance must be positive: {value!r}")
    return tolerance


def parse_settings(data: dict[str, Any], source: str = "<memory>") -> EngineSettings:
    """
    Parse an ``EngineSettings`` from a dict.

    Missing keys fall back to the schema defaults; present keys are
    validated.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(source, "top level must be a mapping")

    currency = data.get("currency", "USD")
    if not CurrencyRegistry.is_valid(currency):
        raise ConfigurationError(source, f"unsupported currency: {currency!r}")

    settlement = data.get("settlement") or {}
    attribution = data.get("attribution") or {}

    mode = settlement.get("default_mode", "aggregate")
    if mode not in SETTLEMENT_MODES:
        raise ConfigurationError(
            source,
            f"settlement.default_mode must be one of {sorted(SETTLEMENT_MODES)}, got {mode!r}",
        )

    cap_by_creditor = attribution.get("cap_by_creditor", False)
    if not isinstance(cap_by_creditor, bool):
        raise ConfigurationError(source, "attribution.cap_by_creditor must be a boolean")

    return EngineSettings(
        settings_id=str(data.get("settings_id", "default")),
        version=int(data.get("version", 1)),
        currency=currency.upper().strip(),
        tolerance=parse_tolerance(data.get("tolerance"), source),
        default_mode=mode,
        cap_by_creditor=cap_by_creditor,
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> EngineSettings:
    """Load and parse a settings YAML file."""
    return parse_settings(load_yaml_file(path), source=str(path))
