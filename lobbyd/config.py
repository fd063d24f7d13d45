from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, replace
from typing import Any

from .constants import (
    DEFAULT_DISPLAY_NAME,
    DEFAULT_GAME_VERSION,
    REAP_INTERVAL_S,
    STALE_AFTER_S,
)


@dataclass(frozen=True)
class HubRuntimeConfig:
    config_path: str | None = None
    configdir: str | None = None
    identity_path: str | None = None
    dest_name: str = "lobbyd.relay"
    announce_on_start: bool = True
    announce_period_s: float = 0.0
    hub_name: str = "lobbyd"
    reap_interval_s: float = REAP_INTERVAL_S
    stale_after_s: float = STALE_AFTER_S
    default_display_name: str = DEFAULT_DISPLAY_NAME
    default_game_version: str = DEFAULT_GAME_VERSION
    max_resource_bytes: int = 256 * 1024  # 256 KiB default
    log_level: str = "INFO"
    log_rns_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


_LOGGING_KEYS = {
    "level": "log_level",
    "rns_level": "log_rns_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}

_FLOAT_KEYS = ("announce_period_s", "reap_interval_s", "stale_after_s")


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: HubRuntimeConfig, data: dict) -> HubRuntimeConfig:
    """Overlay a parsed TOML document onto ``base``.

    Keys may live at the top level or under ``[hub]``; ``[logging]`` keys are
    mapped onto the ``log_*`` fields. Unknown keys are ignored.
    """
    hub = data.get("hub") if isinstance(data, dict) else None
    if isinstance(hub, dict):
        data = {**data, **hub}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, Any] = {
            field: log_table.get(key)
            for key, field in _LOGGING_KEYS.items()
            if key in log_table
        }
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where to load from; do not let the file override it.
    allowed.discard("config_path")

    updates = {k: v for k, v in data.items() if k in allowed}

    if "announce" in data and "announce_on_start" not in updates:
        updates["announce_on_start"] = bool(data["announce"])

    for key in _FLOAT_KEYS:
        if key in updates:
            try:
                updates[key] = float(updates[key])
            except (TypeError, ValueError) as e:
                raise ValueError(f"{key} must be a number: {updates[key]!r}") from e

    for key in ("configdir", "identity_path", "log_file", "log_datefmt"):
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(base, **updates) if updates else base


def load_config(path: str, base: HubRuntimeConfig | None = None) -> HubRuntimeConfig:
    cfg = base if base is not None else HubRuntimeConfig()
    cfg = apply_config_data(cfg, load_toml(path))
    return replace(cfg, config_path=path)
