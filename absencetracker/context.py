"""
Session context: the in-memory state every core operation works on.

TrackerState bundles
- the key-value store used for persistence
- the three owned collections (semesters, courses, attendance)
- the active semester pointer
- the single undo slot (never persisted)
- the notification settings value object

Mutation model:
Every change is a whole-collection read-modify-write. A module reads the
current snapshot, builds a new list, hands it to Collection.replace*() and
then calls state.commit(key). Callers must serialize mutations; there is no
protection against two writers racing on the same stale snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from absencetracker.model import (
    COURSE_COLORS,
    AttendanceRecord,
    Course,
    NotificationSettings,
    Semester,
    UndoEntry,
)
from absencetracker.shortname import generate_short_name
from absencetracker.storage import (
    ACTIVE_SEMESTER_KEY,
    ATTENDANCE_KEY,
    COURSES_KEY,
    NOTIFICATION_SETTINGS_KEY,
    SEMESTERS_KEY,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


class Collection(Generic[T]):
    """
    Owned, versioned list of entities.

    items is an immutable snapshot (tuple); replacing it bumps version so a
    future writer can detect a stale read by comparing versions. Entities are
    never changed in place: writers swap in new instances (dataclasses.replace),
    so an older snapshot keeps the values it was read with.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: tuple[T, ...] = tuple(items)
        self.version = 0

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def in_semester(self, semester_id: Optional[str]) -> list[T]:
        return [x for x in self._items if getattr(x, "semester_id", None) == semester_id]

    def replace(self, items: Iterable[T]) -> int:
        self._items = tuple(items)
        self.version += 1
        return self.version

    def replace_semester(self, semester_id: Optional[str], items: Iterable[T]) -> int:
        """
        Swap out the entities of one semester, keeping every other semester untouched.
        """
        others = [x for x in self._items if getattr(x, "semester_id", None) != semester_id]
        return self.replace(others + list(items))

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        """
        Drop matching entities. Returns how many were removed.
        """
        kept = [x for x in self._items if not predicate(x)]
        removed = len(self._items) - len(kept)
        if removed:
            self.replace(kept)
        return removed


@dataclass
class TrackerState:
    store: Any
    semesters: Collection[Semester] = field(default_factory=Collection)
    courses: Collection[Course] = field(default_factory=Collection)
    attendance: Collection[AttendanceRecord] = field(default_factory=Collection)
    active_semester_id: Optional[str] = None
    undo_entry: Optional[UndoEntry] = None
    notification_settings: NotificationSettings = field(default_factory=NotificationSettings)

    def active_courses(self) -> list[Course]:
        return self.courses.in_semester(self.active_semester_id)

    def active_attendance(self) -> list[AttendanceRecord]:
        return self.attendance.in_semester(self.active_semester_id)

    def find_semester(self, semester_id: Optional[str]) -> Optional[Semester]:
        for s in self.semesters:
            if s.id == semester_id:
                return s
        return None

    def _payload(self, key: str) -> Any:
        if key == SEMESTERS_KEY:
            return [s.to_dict() for s in self.semesters]
        if key == COURSES_KEY:
            return [c.to_dict() for c in self.courses]
        if key == ATTENDANCE_KEY:
            return [r.to_dict() for r in self.attendance]
        if key == ACTIVE_SEMESTER_KEY:
            return self.active_semester_id
        if key == NOTIFICATION_SETTINGS_KEY:
            return self.notification_settings.to_dict()
        raise KeyError(key)

    def commit(self, *keys: str) -> bool:
        """
        Persist the given keys. Returns False if any save failed.
        """
        ok = True
        for key in keys:
            if not self.store.save(key, self._payload(key)):
                log.warning("Persisting %r failed; keeping in-memory state", key)
                ok = False
        return ok


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_list(store: Any, key: str, factory: Callable[[dict[str, Any]], T]) -> list[T]:
    raw = store.load(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        log.warning("Stored %r is not a list; using []", key)
        return []

    out: list[T] = []
    for item in raw:
        if not isinstance(item, dict):
            log.warning("Skipping malformed %s entry: %r", key, item)
            continue
        try:
            out.append(factory(item))
        except (TypeError, ValueError) as exc:
            log.warning("Skipping malformed %s entry: %s", key, exc)
    return out


def load_state(store: Any) -> TrackerState:
    """
    Build a TrackerState from the store, substituting defaults for anything
    missing or corrupt.
    """
    active = store.load(ACTIVE_SEMESTER_KEY)
    if not isinstance(active, str):
        active = None

    raw_settings = store.load(NOTIFICATION_SETTINGS_KEY)
    settings = NotificationSettings()
    if isinstance(raw_settings, dict):
        try:
            settings = NotificationSettings.from_dict(raw_settings)
        except TypeError:
            log.warning("Ignoring malformed notification settings")

    return TrackerState(
        store=store,
        semesters=Collection(_load_list(store, SEMESTERS_KEY, Semester.from_dict)),
        courses=Collection(_load_list(store, COURSES_KEY, Course.from_dict)),
        attendance=Collection(_load_list(store, ATTENDANCE_KEY, AttendanceRecord.from_dict)),
        active_semester_id=active,
        notification_settings=settings,
    )


def migrate_legacy(state: TrackerState) -> bool:
    """
    Fill in fields that older data files did not have:
    semester_id, color/color_hex and short_name on courses, semester_id on records.

    Returns True if anything changed.
    """
    if not state.active_semester_id:
        return False

    changed_courses = False
    courses: list[Course] = []
    for index, course in enumerate(state.courses):
        fixes: dict[str, Any] = {}
        if not course.semester_id:
            fixes["semester_id"] = state.active_semester_id
        if not course.color or not course.color_hex:
            fixes["color"], fixes["color_hex"] = COURSE_COLORS[index % len(COURSE_COLORS)]
        if not course.short_name:
            fixes["short_name"] = generate_short_name(course.name, course.course_code or "")
        if fixes:
            course = replace(course, **fixes)
            changed_courses = True
        courses.append(course)

    changed_records = False
    records: list[AttendanceRecord] = []
    for record in state.attendance:
        if not record.semester_id:
            record = replace(record, semester_id=state.active_semester_id)
            changed_records = True
        records.append(record)

    keys = []
    if changed_courses:
        state.courses.replace(courses)
        keys.append(COURSES_KEY)
    if changed_records:
        state.attendance.replace(records)
        keys.append(ATTENDANCE_KEY)
    if keys:
        log.info("Migrated legacy data: %s", ", ".join(keys))
        state.commit(*keys)
    return bool(keys)


def open_state(store: Any) -> TrackerState:
    """
    Load state, make sure a usable active semester exists and migrate old data.
    """
    from absencetracker.semesters import ensure_active

    state = load_state(store)
    ensure_active(state)
    migrate_legacy(state)
    return state
