from __future__ import annotations

import os


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def new_id(prefix: str) -> str:
    return f"{prefix}_{os.urandom(6).hex()}"


def coerce_str(value, default: str) -> str:
    """Return ``str(value)``, or ``default`` when value is missing or falsy.

    Inbound fields come from untrusted peers; any falsy value (``None``, empty
    string, ``0``, ``False``, empty containers) maps to the default.
    """
    if not value:
        return default
    try:
        return str(value)
    except Exception:
        return default
