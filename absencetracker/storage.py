"""
Persistent key-value storage for the tracker's state.

The core only needs two operations:

    load(key)         -> JSON value or None
    save(key, value)  -> True / False

Each logical key (courses, attendance, semesters, active semester pointer,
notification settings) is stored as its own JSON file inside the data directory:

    ~/.absencetracker/courses.json
    ~/.absencetracker/attendance.json
    ...

Rules:
- reading never crashes the application, a missing or corrupted file simply
  yields None and the caller substitutes its default
- writing reports failure as False, the in-memory state stays authoritative
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger(__name__)


COURSES_KEY = "courses"
ATTENDANCE_KEY = "attendance"
SEMESTERS_KEY = "semesters"
ACTIVE_SEMESTER_KEY = "active_semester"
NOTIFICATION_SETTINGS_KEY = "notification_settings"

STORAGE_KEYS = (
    COURSES_KEY,
    ATTENDANCE_KEY,
    SEMESTERS_KEY,
    ACTIVE_SEMESTER_KEY,
    NOTIFICATION_SETTINGS_KEY,
)


class JsonFileStore:
    """
    Store every key as <directory>/<key>.json.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self.path_for(key)

        # First run: file does not exist yet
        if not path.exists():
            return None

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            log.warning("Ignoring unreadable %s: %s", path, exc)
            return None

    def save(self, key: str, value: Any) -> bool:
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            log.warning("Could not save %s: %s", path, exc)
            return False
        return True


class MemoryStore:
    """
    Dict-backed store for ephemeral sessions.

    Values are round-tripped through JSON so callers observe the same
    copy semantics as with JsonFileStore.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def save(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            log.warning("Could not save %s: %s", key, exc)
            return False
        return True
