from __future__ import annotations

import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

from hwqual.domain.settings import WizardConfig

_FIELD_TYPES = {field.name: field.type for field in fields(WizardConfig)}
_CONVERTERS = {"str": str, "int": int, "float": float}


def _coerce(name: str, value: Any) -> Any:
    converter = _CONVERTERS.get(str(_FIELD_TYPES[name]), str)
    try:
        return converter(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {name}: {value!r}") from exc


def load_config(path: Path | None) -> WizardConfig:
    """Load wizard settings from a JSON file; a missing file yields defaults.

    Unknown keys are ignored so older config files keep working.
    """
    if path is None or not path.exists():
        return WizardConfig()

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a JSON object: {path}")

    values = {key: _coerce(key, value) for key, value in raw.items() if key in _FIELD_TYPES and value is not None}
    return WizardConfig(**values)


def apply_overrides(config: WizardConfig, overrides: dict[str, Any]) -> WizardConfig:
    values = {key: _coerce(key, value) for key, value in overrides.items() if key in _FIELD_TYPES and value is not None}
    if not values:
        return config
    return replace(config, **values)

