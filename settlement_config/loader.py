"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen
``settlement_config.schema.LedgerSettings``.  Runtime callers go through
``settlement_config.get_active_settings()``; this module is the tooling
behind it.

Invariants enforced
-------------------
* Keys missing from an override file fall back to ``defaults.yaml``.
* Parse errors raise ``ValueError`` with a message naming the key.
* ``compute_checksum`` is deterministic for identical parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import LedgerSettings, PartyDefaults

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_INSTRUMENT_STATUSES = frozenset({"issued", "cleared", "cancelled"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from a YAML scalar; floats go through str()."""
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from exc


def parse_parties(data: dict[str, Any] | None) -> PartyDefaults:
    data = data or {}
    return PartyDefaults(
        payer_name=data.get("payer_name"),
        payee_name=data.get("payee_name"),
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse LedgerSettings from a (merged) settings dict.

    Raises:
        ValueError: if a value is out of range or of the wrong shape.
    """
    ledger = data.get("ledger", {})
    instruments = data.get("instruments", {})
    parties = instruments.get("parties", {})

    tolerance = parse_decimal(ledger.get("tolerance", "0.01"), "ledger.tolerance")
    if tolerance < 0:
        raise ValueError(f"ledger.tolerance must be >= 0, got {tolerance}")

    percentage_places = int(ledger.get("percentage_places", 2))
    if percentage_places < 0:
        raise ValueError(
            f"ledger.percentage_places must be >= 0, got {percentage_places}"
        )

    label_template = str(ledger.get("label_template", "paiement #{number}"))
    if "{number}" not in label_template:
        raise ValueError(
            f"ledger.label_template must contain '{{number}}', got {label_template!r}"
        )

    default_status = str(instruments.get("default_status", "issued"))
    if default_status not in _INSTRUMENT_STATUSES:
        raise ValueError(
            f"instruments.default_status must be one of "
            f"{sorted(_INSTRUMENT_STATUSES)}, got {default_status!r}"
        )

    return LedgerSettings(
        tolerance=tolerance,
        percentage_places=percentage_places,
        label_template=label_template,
        allow_overpayment=bool(ledger.get("allow_overpayment", False)),
        require_instrument_total_match=bool(
            ledger.get("require_instrument_total_match", True)
        ),
        default_instrument_status=default_status,
        receivable_parties=parse_parties(parties.get("receivable")),
        payable_parties=parse_parties(parties.get("payable")),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path | str | None = None) -> LedgerSettings:
    """
    Load settings from ``path`` layered over ``defaults.yaml``.

    With no path, the packaged defaults are returned.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = _merge(data, load_yaml_file(Path(path)))
    return parse_settings(data)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
