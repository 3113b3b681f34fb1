from __future__ import annotations

import os as _os
from typing import Optional


def envvar_value_by_name(name: str) -> Optional[str]:
    """Get the current value of an env var by name, or None if missing."""
    return _os.environ.get(name)


def env_flag(name: str) -> bool:
    """True when the env var is set to something other than an empty/false value."""
    value = envvar_value_by_name(name)
    if value is None:
        return False

    return value.strip().lower() not in ("", "0", "false", "no", "off")


def env_int(name: str, default: int) -> int:
    value = envvar_value_by_name(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed >= 0 else default


def debug_enabled() -> bool:
    return env_flag("CHAINSMITH_DEBUG")


def indent_width() -> int:
    return env_int("CHAINSMITH_INDENT", 4)
