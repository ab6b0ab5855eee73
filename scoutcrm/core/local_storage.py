"""Durable key/value storage for client-side state.

Plays the role browser localStorage plays for the web client: the offline
creation queue, remote deletes still owed, the bulk-import counter, AI
usage and the auth session all live here so they survive a process restart.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from scoutcrm.core.logging import get_logger

logger = get_logger(__name__)

OFFLINE_QUEUE_KEY = "scout_offline_queue"
BULK_LIMIT_KEY = "scout_bulk_limit"
AI_USAGE_KEY = "scout_ai_usage"
PENDING_DELETES_KEY = "scout_pending_deletes"


class LocalStore(Protocol):
    """Minimal persistent key/value interface."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileLocalStore:
    """One JSON file per key inside a state directory.

    Writes go to a temp file in the same directory followed by ``os.replace``,
    so readers only ever see the previous or the new document.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable local state for key {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


class MemoryLocalStore:
    """Volatile store for tests and demo mode.

    Values are round-tripped through JSON so callers cannot keep references
    into stored state.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
