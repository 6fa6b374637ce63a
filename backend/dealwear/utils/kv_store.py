"""Bounded key-value stores backing the search result cache.

Both stores hold string values and raise StorageFullError when a write
would add a key beyond capacity; overwriting an existing key always fits.
There is no locking: concurrent writers are last-writer-wins.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Protocol


class StorageFullError(Exception):
    """Raised when a store has no room for another key."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryKeyValueStore:
    def __init__(self, max_entries: int = 500) -> None:
        self._max_entries = max_entries
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if key not in self._data and len(self._data) >= self._max_entries:
            raise StorageFullError(f"memory store full ({self._max_entries} entries)")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """One file per key under ``directory``.

    File names are a digest of the key; the key itself is stored on the
    first line so ``keys()`` can be answered from disk.
    """

    def __init__(self, directory: str | Path, max_entries: int = 500) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._max_entries = max_entries

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode()).hexdigest()[:20]
        return self._dir / f"{digest}.json"

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent.

        A file that is not valid UTF-8 raises UnicodeDecodeError.
        """
        path = self._path(key)
        try:
            stored_key, _, value = path.read_text(encoding="utf-8").partition("\n")
        except FileNotFoundError:
            return None
        if stored_key != key:
            return None
        return value

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        if not path.exists() and len(self._files()) >= self._max_entries:
            raise StorageFullError(f"file store full ({self._max_entries} entries)")
        # Written beside the target and swapped in, so a failed overwrite
        # leaves the previous value readable.
        tmp_path: Path | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".", suffix=".part")
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(f"{key}\n{value}")
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            # ENOSPC / EDQUOT and friends
            raise StorageFullError(str(exc)) from exc

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        found: list[str] = []
        for path in self._files():
            try:
                with path.open(encoding="utf-8") as fh:
                    found.append(fh.readline().rstrip("\n"))
            except (OSError, UnicodeDecodeError):
                continue
        return found

    def _files(self) -> list[Path]:
        return sorted(self._dir.glob("*.json"))
