"""
Configuration Loader (``valuation_config.loader``).

Responsibility
--------------
Loads a YAML valuation configuration file and parses it into the typed
``valuation_config.schema`` dataclasses.  Callers obtain configuration
through ``valuation_config.get_active_config()``, which adds validation and
tracing on top of this module.

Expected document shape::

    default_currency: INR
    custom_valuations:
      - name: P2P Monthly Interest
        account: "Assets:p2p:*"
        note_contains: live
        formula: amount + simple_interest(amount, 12, days_held)

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong document shape or missing required keys  -> ``ValueError`` /
  ``KeyError`` with a descriptive message.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from valuation_config.schema import DEFAULT_CURRENCY, ValuationConfig, ValuationRule

VALUATIONS_KEY = "custom_valuations"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _text(value: Any, field_name: str, required: bool = True) -> str:
    if value is None:
        if required:
            raise KeyError(field_name)
        return ""
    if isinstance(value, (dict, list)):
        raise ValueError(f"{field_name} must be a scalar, got {type(value).__name__}")
    return str(value)


def parse_rule(data: dict[str, Any]) -> ValuationRule:
    """Parse one ``custom_valuations`` entry."""
    if not isinstance(data, dict):
        raise ValueError(f"valuation rule must be a mapping, got {type(data).__name__}")
    return ValuationRule(
        name=_text(data.get("name"), "name", required=False).strip(),
        account=_text(data.get("account"), "account").strip(),
        formula=_text(data.get("formula"), "formula").strip(),
        note_contains=_text(data.get("note_contains"), "note_contains", required=False),
    )


def compute_checksum(data: Any) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def build_config(
    rules: list[ValuationRule] | tuple[ValuationRule, ...],
    default_currency: str = DEFAULT_CURRENCY,
    source: str = "",
) -> ValuationConfig:
    """Assemble a snapshot and stamp it with its checksum."""
    rules = tuple(rules)
    checksum = compute_checksum({
        "default_currency": default_currency,
        "rules": [rule.to_dict() for rule in rules],
    })
    return ValuationConfig(
        default_currency=default_currency,
        rules=rules,
        checksum=checksum,
        source=source,
    )


def parse_config(data: dict[str, Any], source: str = "") -> ValuationConfig:
    """Parse a loaded YAML document into a ``ValuationConfig``."""
    entries = data.get(VALUATIONS_KEY) or []
    if not isinstance(entries, list):
        raise ValueError(f"{VALUATIONS_KEY} must be a list, got {type(entries).__name__}")
    rules = [parse_rule(entry) for entry in entries]
    currency = _text(data.get("default_currency"), "default_currency", required=False)
    return build_config(rules, default_currency=currency or DEFAULT_CURRENCY, source=source)


def load_config_file(path: Path) -> ValuationConfig:
    """Load and parse a configuration file (no validation)."""
    path = Path(path)
    return parse_config(load_yaml_file(path), source=str(path))
