"""
Config accessors for core node kinds.

Missing keys fall back to the kind's default; present keys with the
wrong type reject the config (ValueError), which the compiler reports
as ConfigValidationFailed.
"""

from __future__ import annotations

from typing import Any, Dict


def as_config(config: Any) -> Dict[str, Any]:
    """Treat a missing config as empty; reject non-objects."""
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"config must be an object, got {type(config).__name__}")
    return config


def get_str(config: Any, key: str, default: str) -> str:
    value = as_config(config).get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def get_int(config: Any, key: str, default: int) -> int:
    value = as_config(config).get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def get_number(config: Any, key: str, default: float) -> float:
    value = as_config(config).get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return value


def get_bool(config: Any, key: str, default: bool) -> bool:
    value = as_config(config).get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean")
    return value


def get_choice(config: Any, key: str, default: str, choices: tuple) -> str:
    value = get_str(config, key, default)
    if value not in choices:
        raise ValueError(f"'{key}' must be one of {', '.join(choices)}, got '{value}'")
    return value
