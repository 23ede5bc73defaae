"""
Course registry.

Registration pipeline (register):
1. validate the raw input dict (validation.py, fail fast)
2. make sure an active semester exists and tag the course with it
3. normalize start/end dates (both default to today, one mirrors the other;
   enrollment defaults to the start date)
4. reject impossible date ranges and duplicates within the semester
5. derive the absence budget from the schedule (heuristic on failure)
6. pick a color: first unused palette color, else cycle by course count

All reads and writes here only see the active semester's courses. Stored
courses are never changed in place; every change stores a new Course.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional

from absencetracker.context import TrackerState
from absencetracker.ids import generate_id
from absencetracker.model import (
    COURSE_COLORS,
    DEFAULT_ALLOWED_ABSENCE_PERCENTAGE,
    DEFAULT_CREDIT_HOURS,
    WEEKS_PER_SEMESTER,
    Course,
    palette_hex,
)
from absencetracker.schedule import today_iso, total_sessions
from absencetracker.semesters import ensure_active
from absencetracker.shortname import generate_short_name
from absencetracker.storage import ATTENDANCE_KEY, COURSES_KEY
from absencetracker.validation import (
    DUPLICATE,
    Err,
    Ok,
    Result,
    check_date_range,
    validate_course_input,
    validate_stored_course,
)

log = logging.getLogger(__name__)

# Fields update() must never overwrite
PROTECTED_FIELDS = {"id", "semester_id", "created_at"}

COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
MISSING_COURSE_CODE = "MISSING_COURSE_CODE"
DIFFERENT_COURSE = "DIFFERENT_COURSE"
SAME_SECTION = "SAME_SECTION"


@dataclass
class BatchResult:
    added: list[Course] = field(default_factory=list)
    duplicates: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.added or self.duplicates)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def list_courses(state: TrackerState) -> list[Course]:
    """
    Active semester's courses in display order.
    """
    courses = state.active_courses()
    # stable sort: courses without an order keep insertion order at the end
    return sorted(courses, key=lambda c: c.order if c.order is not None else len(courses))


def get_course(state: TrackerState, course_id: str) -> Optional[Course]:
    for c in state.active_courses():
        if c.id == course_id:
            return c
    return None


def assign_color(used_colors: list[Optional[str]], course_count: int) -> tuple[str, str]:
    """
    First palette color not in used_colors. When every color is taken the
    palette cycles by course count, which may repeat a color in use.
    """
    for name, hex_value in COURSE_COLORS:
        if name not in used_colors:
            return name, hex_value
    return COURSE_COLORS[course_count % len(COURSE_COLORS)]


def default_allowed_absences(course: Course) -> int:
    try:
        total = total_sessions(course)
    except (TypeError, ValueError) as exc:
        log.warning(
            "Could not count sessions for %r, falling back to credit-hour heuristic: %s",
            course.name,
            exc,
        )
        total = float(course.credit_hours) * WEEKS_PER_SEMESTER
    return int(math.floor(total * DEFAULT_ALLOWED_ABSENCE_PERCENTAGE))


def _credit_hours(value: Any) -> float:
    if value is None or value == "" or float(value) == 0:
        return DEFAULT_CREDIT_HOURS
    hours = float(value)
    return int(hours) if hours.is_integer() else hours


def _find_duplicate(existing: list[Course], data: dict[str, Any]) -> Optional[Course]:
    """
    Same course_code (timetable courses) or, without codes, the same name.
    """
    code = data.get("course_code")
    for c in existing:
        if code and c.course_code:
            if c.course_code == code:
                return c
        elif c.name == data["name"].strip():
            return c
    return None


def _duplicate_message(existing: Course, data: dict[str, Any]) -> str:
    label = data.get("course_code") or data["name"]
    if existing.section and data.get("section") and existing.section != data.get("section"):
        return f"{label} is already added in section {existing.section}. Remove it first to change sections."
    if data.get("section"):
        return f"{label} ({data['section']}) is already added"
    return f"{label} is already added"


def _build_course(
    data: dict[str, Any],
    semester_id: str,
    existing: list[Course],
    used_colors: list[Optional[str]],
) -> Result[Course]:
    """
    Validate and turn one input dict into a Course (not stored yet).
    """
    checked = validate_course_input(data)
    if isinstance(checked, Err):
        return checked

    enrolled = data.get("enrollment_start_date")
    start = data.get("start_date") or enrolled or data.get("end_date") or today_iso()
    end = data.get("end_date") or start
    range_err = check_date_range({"start_date": start, "end_date": end, "enrollment_start_date": enrolled})
    if range_err is not None:
        return range_err

    dup = _find_duplicate(existing, data)
    if dup is not None:
        return Err(DUPLICATE, _duplicate_message(dup, data))

    name = data["name"].strip()
    course = Course(
        id=generate_id("course"),
        semester_id=semester_id,
        name=name,
        short_name=data.get("short_name") or generate_short_name(name, data.get("course_code") or ""),
        credit_hours=_credit_hours(data.get("credit_hours")),
        weekdays=list(data["weekdays"]),
        start_date=start,
        end_date=end,
        enrollment_start_date=enrolled or start,
        initial_absences=data.get("initial_absences") or 0,
        order=len(existing),
        schedule=list(data.get("schedule") or []),
        instructor=data.get("instructor"),
        room=data.get("room"),
        building=data.get("building"),
        course_code=data.get("course_code"),
        section=data.get("section"),
        time_slot=data.get("time_slot"),
    )

    allowed = data.get("allowed_absences")
    if allowed is None:
        allowed = default_allowed_absences(course)

    requested = data.get("color")
    if palette_hex(requested):
        color, color_hex = requested, palette_hex(requested)
    else:
        color, color_hex = assign_color(used_colors, len(existing))

    return Ok(replace(course, allowed_absences=allowed, color=color, color_hex=color_hex))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def register(state: TrackerState, data: Any) -> Result[Course]:
    """
    Validate, complete and store a new course in the active semester.

    Returns Ok(course) or Err(reason, message); nothing is stored on Err.
    """
    semester_id = ensure_active(state)
    existing = state.courses.in_semester(semester_id)

    result = _build_course(data, semester_id, existing, [c.color for c in existing])
    if isinstance(result, Err):
        log.info("Rejected course input: %s (%s)", result.reason, result.message)
        return result

    state.courses.replace_semester(semester_id, existing + [result.value])
    state.commit(COURSES_KEY)
    return result


def register_many(state: TrackerState, items: list[Any]) -> BatchResult:
    """
    Register several courses in one write. Invalid items land in errors,
    duplicates (against stored courses and earlier items) in duplicates.
    """
    result = BatchResult()
    if not isinstance(items, list) or not items:
        return result

    semester_id = ensure_active(state)
    existing = state.courses.in_semester(semester_id)
    used_colors = [c.color for c in existing]
    new_courses: list[Course] = []

    for index, data in enumerate(items):
        built = _build_course(data, semester_id, existing + new_courses, used_colors)
        if isinstance(built, Err):
            if built.reason == DUPLICATE:
                result.duplicates.append({**data, "message": built.message})
            else:
                result.errors.append({"index": index, "error": built.reason, "message": built.message})
            continue
        new_courses.append(built.value)
        used_colors.append(built.value.color)

    if new_courses:
        state.courses.replace_semester(semester_id, existing + new_courses)
        state.commit(COURSES_KEY)
    result.added = new_courses
    return result


def _store(state: TrackerState, course: Course) -> None:
    """
    Swap the stored course with the same id for course, keeping its position.
    """
    state.courses.replace([course if c.id == course.id else c for c in state.courses])
    state.commit(COURSES_KEY)


def update(state: TrackerState, course_id: str, changes: dict[str, Any]) -> Result[Course]:
    """
    Shallow-merge changes into a course. id, semester_id and created_at are kept.

    The merged course is validated again (name, weekdays, credit hours,
    absences, date range); on Err the stored course stays as it was.
    """
    course = get_course(state, course_id)
    if course is None:
        return Err(COURSE_NOT_FOUND, "Course not found")

    allowed = {f.name for f in fields(Course)} - PROTECTED_FIELDS
    merged = replace(course, **{k: v for k, v in changes.items() if k in allowed})
    if "color" in changes and "color_hex" not in changes and palette_hex(merged.color):
        merged = replace(merged, color_hex=palette_hex(merged.color))
    # an enrollment date that only mirrored the start date follows it
    if (
        "start_date" in changes
        and "enrollment_start_date" not in changes
        and course.enrollment_start_date in (None, course.start_date)
    ):
        merged = replace(merged, enrollment_start_date=merged.start_date)

    err = validate_stored_course(merged.to_dict())
    if err is not None:
        log.info("Rejected update of %s: %s (%s)", course_id, err.reason, err.message)
        return err

    _store(state, merged)
    return Ok(merged)


def delete(state: TrackerState, course_id: str) -> bool:
    """
    Remove a course and every attendance record that belongs to it.
    """
    if get_course(state, course_id) is None:
        return False
    state.courses.remove_where(lambda c: c.id == course_id)
    state.attendance.remove_where(lambda r: r.course_id == course_id)
    state.commit(COURSES_KEY, ATTENDANCE_KEY)
    return True


def delete_all(state: TrackerState) -> int:
    """
    Remove every course and attendance record of the active semester.
    """
    semester_id = state.active_semester_id
    count = len(state.courses.in_semester(semester_id))
    state.courses.replace_semester(semester_id, [])
    state.attendance.replace_semester(semester_id, [])
    if state.undo_entry is not None and state.undo_entry.semester_id == semester_id:
        state.undo_entry = None
    state.commit(COURSES_KEY, ATTENDANCE_KEY)
    return count


def reorder(state: TrackerState, course_id: str, direction: str) -> bool:
    """
    Swap a course with its left/right neighbour and renumber the semester's order.
    No-op (False) at either boundary.
    """
    ordered = list_courses(state)
    index = next((i for i, c in enumerate(ordered) if c.id == course_id), -1)
    if index == -1 or direction not in ("left", "right"):
        return False

    target = index - 1 if direction == "left" else index + 1
    if target < 0 or target >= len(ordered):
        return False

    ordered[index], ordered[target] = ordered[target], ordered[index]
    renumbered = [replace(c, order=position) for position, c in enumerate(ordered)]

    state.courses.replace_semester(state.active_semester_id, renumbered)
    state.commit(COURSES_KEY)
    return True


def change_section(state: TrackerState, course_id: str, new_data: dict[str, Any]) -> Result[Course]:
    """
    Move a timetable course to another section of the same course code.

    The course keeps its id (and therefore its attendance), color, dates and
    absence budget; timetable metadata comes from new_data.
    """
    old = get_course(state, course_id)
    if old is None:
        return Err(COURSE_NOT_FOUND, "Original course not found")
    if not old.course_code or not new_data.get("course_code"):
        return Err(MISSING_COURSE_CODE, "Cannot change section for manually added courses")
    if old.course_code != new_data["course_code"]:
        return Err(DIFFERENT_COURSE, "Cannot change to a different course")
    if old.section == new_data.get("section"):
        return Err(SAME_SECTION, "Course is already in this section")

    changes = {"section": new_data.get("section")}
    for key in ("name", "instructor", "room", "building", "schedule", "time_slot", "weekdays", "credit_hours"):
        if new_data.get(key):
            changes[key] = new_data[key]
    moved = replace(old, **changes)

    err = validate_stored_course(moved.to_dict())
    if err is not None:
        return err

    _store(state, moved)
    log.info("Changed %s from section %s to %s", old.course_code, old.section, moved.section)
    return Ok(moved)
