"""User preference storage: a small read/write contract.

The search pipeline only reads preferences (to shape queries); writes come
from the assistant's preference flow or an API client.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from dealwear.models.contracts import Preferences

logger = structlog.get_logger()


class PreferenceStore(Protocol):
    def get(self) -> Preferences: ...

    def set(self, partial: dict[str, Any]) -> Preferences: ...


def _merge(current: Preferences, partial: dict[str, Any]) -> Preferences:
    known = {k: v for k, v in partial.items() if k in Preferences.model_fields and k != "last_updated"}
    merged = current.model_dump() | known
    merged["last_updated"] = datetime.now(UTC).isoformat()
    return Preferences.model_validate(merged)


class MemoryPreferenceStore:
    def __init__(self, initial: Preferences | None = None) -> None:
        self._prefs = initial or Preferences()

    def get(self) -> Preferences:
        return self._prefs.model_copy(deep=True)

    def set(self, partial: dict[str, Any]) -> Preferences:
        self._prefs = _merge(self._prefs, partial)
        return self.get()


class FilePreferenceStore:
    """Preferences persisted as one JSON document.

    A missing or unreadable file reads as defaults; write failures are
    logged and the previous state returned.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def get(self) -> Preferences:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Preferences()
        except OSError as exc:
            logger.warning("preferences_read_failed", path=str(self._path), error=str(exc))
            return Preferences()
        try:
            return Preferences.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("preferences_corrupt", path=str(self._path))
            return Preferences()

    def set(self, partial: dict[str, Any]) -> Preferences:
        current = self.get()
        updated = _merge(current, partial)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(updated.model_dump_json(), encoding="utf-8")
        except OSError as exc:
            logger.warning("preferences_write_failed", path=str(self._path), error=str(exc))
            return current
        return updated
