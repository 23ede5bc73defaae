"""
Central data model definitions used across the project.

This module defines the canonical structure of Semester, Course and
AttendanceRecord objects so that:
- all modules share the same field names
- the JSON written by storage.py always has the same shape
- loading old or partially written data never crashes (from_dict fills defaults)

Field names are snake_case, dates are ISO 'YYYY-MM-DD' strings and
weekday numbers follow Python's date.weekday() (0 = Monday ... 6 = Sunday).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Share of scheduled sessions a student may miss when no explicit budget is given
DEFAULT_ALLOWED_ABSENCE_PERCENTAGE = 0.2

# Assumed number of teaching weeks, used only by the fallback budget heuristic
WEEKS_PER_SEMESTER = 16

# Below this attendance percentage a course shows the "at risk" banner
AT_RISK_PERCENTAGE = 80

# remaining_absences at or below this value turns the status to WARNING
WARNING_REMAINING_ABSENCES = 2

DEFAULT_CREDIT_HOURS = 2
DEFAULT_SEMESTER_NAME = "Current Semester"

# Fixed palette (name, hex). Order matters: new courses take the first unused color.
COURSE_COLORS: List[tuple[str, str]] = [
    ("blue", "#3B82F6"),
    ("emerald", "#10B981"),
    ("purple", "#8B5CF6"),
    ("amber", "#F59E0B"),
    ("rose", "#F43F5E"),
    ("cyan", "#06B6D4"),
    ("indigo", "#6366F1"),
    ("lime", "#84CC16"),
    ("orange", "#F97316"),
    ("pink", "#EC4899"),
    ("teal", "#14B8A6"),
    ("slate", "#64748B"),
]

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WEEKDAY_FULL_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class SessionStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    CANCELLED = "cancelled"
    PROXY = "proxy"


class DayStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    MIXED = "mixed"


class RiskStatus(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def palette_hex(color_name: Optional[str]) -> Optional[str]:
    for name, hex_value in COURSE_COLORS:
        if name == color_name:
            return hex_value
    return None


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """
    Keep only keys that are dataclass fields of cls (unknown keys are ignored).
    """
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Semester:
    """
    A named data partition owning a disjoint set of courses and attendance records.

    is_active is cosmetic only. The authoritative pointer is
    TrackerState.active_semester_id.
    """

    id: str
    name: str
    created_at: str = field(default_factory=now_iso)
    is_active: bool = False
    is_archived: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Semester":
        return cls(**_known_fields(cls, data))


@dataclass
class Course:
    """
    Represents one course the student attends in a semester.

    weekdays may list the same day twice to express two sessions on that day
    (back-to-back classes). enrollment_start_date is the day the student joined;
    sessions before it are not counted (None means start_date).
    schedule holds timetable slots as plain dicts:
    {"day", "start_time", "end_time", "room", "building", "slot_count"}.
    """

    id: str
    semester_id: Optional[str]
    name: str
    weekdays: List[int]
    start_date: str
    end_date: str
    short_name: Optional[str] = None
    enrollment_start_date: Optional[str] = None
    credit_hours: float = DEFAULT_CREDIT_HOURS
    initial_absences: int = 0
    allowed_absences: int = 0
    color: Optional[str] = None
    color_hex: Optional[str] = None
    order: Optional[int] = None
    created_at: str = field(default_factory=now_iso)
    schedule: List[dict[str, Any]] = field(default_factory=list)
    instructor: Optional[str] = None
    room: Optional[str] = None
    building: Optional[str] = None
    course_code: Optional[str] = None
    section: Optional[str] = None
    time_slot: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Course":
        return cls(**_known_fields(cls, data))


@dataclass
class AttendanceRecord:
    """
    One deviation from the default "present" assumption for a course on a date.
    """

    id: str
    course_id: str
    semester_id: Optional[str]
    date: str
    status: SessionStatus
    is_override: bool = False
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttendanceRecord":
        kwargs = _known_fields(cls, data)
        kwargs["status"] = SessionStatus(kwargs.get("status", SessionStatus.ABSENT.value))
        return cls(**kwargs)


@dataclass
class UndoEntry:
    """
    The single pending inverse operation. Lives only in memory.
    """

    type: str
    date: str
    semester_id: Optional[str]
    previous_state: List[AttendanceRecord]
    description: str
    courses_count: int = 0


@dataclass
class NotificationSettings:
    enabled: bool = False
    time: str = "21:00"
    last_checked: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationSettings":
        return cls(**_known_fields(cls, data))


@dataclass
class Stats:
    """
    Display-ready attendance statistics for one course.
    """

    percentage: float
    absences: int
    remaining_absences: int
    adjusted_total: int
    total_sessions: int
    cancelled: int
    status: RiskStatus
    is_at_risk: bool
