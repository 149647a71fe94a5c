from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from genxai.config import load_settings

logger = logging.getLogger(__name__)

_SESSION: dict[str, Any] = {}


class PreferenceStore:
    """Persistent preferences kept as an append-only log of set/remove events."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path else load_settings().preferences_path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _append(self, event: dict) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, sort_keys=True) + "\n")

    def _load_events(self) -> list[dict]:
        if not self.path.exists():
            return []
        events: list[dict] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def all(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for event in self._load_events():
            name = event.get("name")
            if not name:
                continue
            if event.get("action") == "set":
                values[name] = event.get("value")
            elif event.get("action") == "remove":
                values.pop(name, None)
        return values

    def get(self, name: str, default: Any = None) -> Any:
        return self.all().get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._append(
            {
                "action": "set",
                "name": name,
                "value": value,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    def remove(self, name: str) -> None:
        self._append(
            {
                "action": "remove",
                "name": name,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )


def session_values() -> dict[str, Any]:
    return dict(_SESSION)


def clear_session_value(name: str) -> None:
    _SESSION.pop(name, None)


def get_preference(
    name: str,
    default: Any = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> Any:
    if clear_session:
        clear_session_value(name)
    if not skip_session and name in _SESSION:
        logger.debug("Preference %s from session", name)
        return _SESSION[name]
    if session_only:
        return default
    return PreferenceStore(preferences_path).get(name, default)


def set_preference(
    name: str,
    value: Any,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> None:
    if clear_session:
        clear_session_value(name)
        logger.debug("Cleared session preference %s", name)
        return
    if session_only:
        _SESSION[name] = value
        logger.debug("Set session preference %s", name)
        return
    store = PreferenceStore(preferences_path)
    if value is None:
        store.remove(name)
    else:
        store.set(name, value)
    if not skip_session:
        clear_session_value(name)
    logger.debug("Set persistent preference %s in %s", name, store.path)
