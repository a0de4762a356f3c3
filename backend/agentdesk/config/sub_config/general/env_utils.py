"""
Environment helpers for config sections.

``read_env_defaults`` builds constructor kwargs from environment
variables, coercing each value to the dataclass field's default type.
``env_sync`` mirrors a changed value back into ``os.environ``.
"""

from __future__ import annotations

import os
from dataclasses import MISSING
from logging import getLogger
from typing import Any, Callable, Dict

logger = getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_VALUES
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def read_env_defaults(
    env_map: Dict[str, str],
    dataclass_fields: Dict[str, Any],
) -> Dict[str, Any]:
    """Read environment overrides for the fields listed in ``env_map``.

    Values that fail to coerce are skipped with a warning so a bad
    environment never prevents the config from loading.
    """
    values: Dict[str, Any] = {}
    for field_name, env_name in env_map.items():
        raw = os.environ.get(env_name)
        if raw is None or field_name not in dataclass_fields:
            continue
        default = dataclass_fields[field_name].default
        if default is MISSING:
            default = ""
        try:
            values[field_name] = _coerce(raw, default)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
    return values


def env_sync(env_name: str) -> Callable[[Any, Any], None]:
    """Return an ``apply_change`` hook that writes the new value to the env."""

    def _apply(old: Any, new: Any) -> None:
        if new is None or new == "":
            os.environ.pop(env_name, None)
        elif isinstance(new, bool):
            os.environ[env_name] = "true" if new else "false"
        else:
            os.environ[env_name] = str(new)

    return _apply
