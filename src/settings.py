"""Gesture tuning and lightweight persistence for the demo host.

This module centralizes two small pieces of data the host and the refresh
controller need to agree on across sessions:

* The pull tuning (``threshold`` / ``resistance`` / ``disabled``) so a user's
  preferred feel survives restarts.
* Refresh bookkeeping (how many refreshes ran and when the last one finished)
  so the list header can show when data was last reloaded.

The functions are intentionally tiny and pure to keep them easy to unit test
without pygame running.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from src.control_types import PullConfig


STATE_PATH = Path.home() / ".pull_refresh_demo.json"
# Sentinel to allow callers to explicitly clear the stored config without
# overloading ``None`` (which legitimately represents "no stored config").
_CONFIG_UNSET = object()


@dataclass
class PersistedSettings:
    """Combined on-disk settings shared by the CLI and the host screen."""

    config: Optional[PullConfig] = None
    refresh_count: int = 0
    last_refreshed_at: Optional[float] = None


def _decode_config(data: Any) -> Optional[PullConfig]:
    if not isinstance(data, dict) or "threshold" not in data or "resistance" not in data:
        return None
    disabled = data.get("disabled", False)
    # Only real JSON booleans; the string "false" is truthy.
    if not isinstance(disabled, bool):
        return None
    try:
        return PullConfig(
            threshold=float(data["threshold"]),
            resistance=float(data["resistance"]),
            disabled=disabled,
        )
    except (TypeError, ValueError):
        return None


def _decode_settings(data: Dict[str, Any]) -> PersistedSettings:
    last_refreshed_at = data.get("last_refreshed_at")
    return PersistedSettings(
        config=_decode_config(data.get("config")),
        refresh_count=int(data.get("refresh_count", 0)),
        last_refreshed_at=float(last_refreshed_at) if last_refreshed_at is not None else None,
    )


def _encode_settings(settings: PersistedSettings) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"refresh_count": int(settings.refresh_count)}
    if settings.last_refreshed_at is not None:
        payload["last_refreshed_at"] = settings.last_refreshed_at
    if settings.config:
        payload["config"] = {
            "threshold": settings.config.threshold,
            "resistance": settings.config.resistance,
            "disabled": settings.config.disabled,
        }
    return payload


def load_settings(path: Path = STATE_PATH) -> PersistedSettings:
    """Load persisted values from disk; missing or broken files fall back to defaults."""

    if not path.exists():
        return PersistedSettings()

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError):
        return PersistedSettings()

    if not isinstance(data, dict):
        return PersistedSettings()

    try:
        return _decode_settings(data)
    except (TypeError, ValueError):
        return PersistedSettings()


def persist_settings(
    *,
    config: Optional[PullConfig] | object = _CONFIG_UNSET,
    refresh_count: Optional[int] = None,
    last_refreshed_at: Optional[float] = None,
    path: Path = STATE_PATH,
) -> PersistedSettings:
    """Merge incoming values with any existing file and write it back to disk.

    ``config`` accepts ``None`` to intentionally clear the stored tuning, while
    the private ``_CONFIG_UNSET`` sentinel means "leave it as-is". The refresh
    count never goes backwards.
    """

    current = load_settings(path)
    if config is not _CONFIG_UNSET:
        current.config = config  # may be ``None`` to clear the file
    if refresh_count is not None:
        current.refresh_count = max(current.refresh_count, int(refresh_count))
    if last_refreshed_at is not None:
        current.last_refreshed_at = float(last_refreshed_at)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_encode_settings(current), indent=2))
    return current


def resolve_config(
    stored: Optional[PullConfig],
    *,
    threshold: Optional[float] = None,
    resistance: Optional[float] = None,
    disabled: Optional[bool] = None,
) -> PullConfig:
    """Layer CLI overrides on top of the stored tuning (or the defaults)."""

    config = stored or PullConfig()
    overrides: Dict[str, Any] = {}
    if threshold is not None:
        overrides["threshold"] = threshold
    if resistance is not None:
        overrides["resistance"] = resistance
    if disabled is not None:
        overrides["disabled"] = disabled
    return replace(config, **overrides) if overrides else config
