"""
Validation of course input.

Course input arrives as a plain dict (from the CLI, the interactive mode or
the timetable importer). Each check below returns an Err with a distinct
reason code or None when the input passes. validate_course_input() runs them
in a fixed order and stops at the first failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DATE_FIELDS = (
    ("start_date", "start"),
    ("end_date", "end"),
    ("enrollment_start_date", "enrollment"),
)

INVALID_DATA = "INVALID_DATA"
MISSING_NAME = "MISSING_NAME"
INVALID_WEEKDAYS = "INVALID_WEEKDAYS"
INVALID_DATE = "INVALID_DATE"
INVALID_CREDIT_HOURS = "INVALID_CREDIT_HOURS"
INVALID_ABSENCES = "INVALID_ABSENCES"
INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
DUPLICATE = "DUPLICATE"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: str
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def check_structured(data: Any) -> Optional[Err]:
    if not isinstance(data, dict):
        return Err(INVALID_DATA, "Invalid course data")
    return None


def check_name(data: dict[str, Any]) -> Optional[Err]:
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return Err(MISSING_NAME, "Course name is required")
    return None


def check_weekdays(data: dict[str, Any]) -> Optional[Err]:
    weekdays = data.get("weekdays")
    if not isinstance(weekdays, (list, tuple)) or len(weekdays) == 0:
        return Err(INVALID_WEEKDAYS, "Weekdays must be specified")
    for day in weekdays:
        # bool is an int subclass, but True is not a weekday
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            return Err(INVALID_WEEKDAYS, "Invalid weekday values")
    return None


def _is_iso_day(value: Any) -> bool:
    if not isinstance(value, str) or not DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def check_dates(data: dict[str, Any]) -> Optional[Err]:
    for key, label in DATE_FIELDS:
        value = data.get(key)
        if value and not _is_iso_day(value):
            return Err(INVALID_DATE, f"Invalid {label} date format")
    return None


def check_credit_hours(data: dict[str, Any]) -> Optional[Err]:
    if data.get("credit_hours") is None:
        return None
    value = data["credit_hours"]
    if isinstance(value, bool):
        return Err(INVALID_CREDIT_HOURS, "Credit hours must be between 0-10")
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return Err(INVALID_CREDIT_HOURS, "Credit hours must be between 0-10")
    if hours != hours or not 0 <= hours <= 10:
        return Err(INVALID_CREDIT_HOURS, "Credit hours must be between 0-10")
    return None


def check_absences(data: dict[str, Any]) -> Optional[Err]:
    for key, label in (("initial_absences", "Initial"), ("allowed_absences", "Allowed")):
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return Err(INVALID_ABSENCES, f"{label} absences must be a whole number of 0 or more")
    return None


def check_date_range(data: dict[str, Any]) -> Optional[Err]:
    """
    Normalized dates: start and end required, start <= end, and an
    enrollment date (if any) inside that range.
    """
    days = {}
    for key, label in DATE_FIELDS:
        value = data.get(key)
        if value is None and key == "enrollment_start_date":
            continue
        if not _is_iso_day(value):
            return Err(INVALID_DATE, f"Invalid {label} date format")
        days[key] = date.fromisoformat(value)

    if days["start_date"] > days["end_date"]:
        return Err(INVALID_DATE_RANGE, "Start date must not be after end date")
    enrolled = days.get("enrollment_start_date")
    if enrolled is not None and not days["start_date"] <= enrolled <= days["end_date"]:
        return Err(INVALID_DATE_RANGE, "Enrollment date must lie between start and end date")
    return None


COURSE_CHECKS: list[Callable[[Any], Optional[Err]]] = [
    check_structured,
    check_name,
    check_weekdays,
    check_dates,
    check_credit_hours,
    check_absences,
]

# Re-checked on a stored course after a partial update
STORED_COURSE_CHECKS: list[Callable[[Any], Optional[Err]]] = [
    check_name,
    check_weekdays,
    check_credit_hours,
    check_absences,
    check_date_range,
]


def validate_course_input(data: Any) -> Result[dict[str, Any]]:
    for check in COURSE_CHECKS:
        err = check(data)
        if err is not None:
            return err
    return Ok(data)


def validate_stored_course(data: dict[str, Any]) -> Optional[Err]:
    for check in STORED_COURSE_CHECKS:
        err = check(data)
        if err is not None:
            return err
    return None
