"""
Attendance ledger.

Records only store deviations from "present". Operations:

- toggle_session    one course on one date (manual marking, not undoable)
- toggle_day        every course on a date, flips between all-absent and
                    all-present; the only undoable action
- undo              restores the date touched by the last toggle_day
- mark_days_absent  bulk absent marking for several dates (not undoable)
- clear             wipes the active semester's attendance

Multiple records for the same (course, date) only appear when a course has
back-to-back sessions and a bulk operation marked each of them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from absencetracker.context import TrackerState
from absencetracker.ids import generate_id
from absencetracker.model import AttendanceRecord, Course, DayStatus, SessionStatus, UndoEntry
from absencetracker.schedule import has_class_on_date, session_count_on_date
from absencetracker.semesters import ensure_active
from absencetracker.stats import day_status
from absencetracker.storage import ATTENDANCE_KEY

log = logging.getLogger(__name__)

TOGGLE_DAY = "toggle_day"


def records_for(
    state: TrackerState,
    course_id: Optional[str] = None,
    day: Optional[str] = None,
) -> list[AttendanceRecord]:
    return [
        r
        for r in state.active_attendance()
        if (course_id is None or r.course_id == course_id) and (day is None or r.date == day)
    ]


def _absent_records(courses: Iterable[Course], day: str, semester_id: str) -> list[AttendanceRecord]:
    """
    One ABSENT record per session of every course that meets on day.
    """
    out: list[AttendanceRecord] = []
    for course in courses:
        for _ in range(session_count_on_date(course, day)):
            out.append(
                AttendanceRecord(
                    id=generate_id("attendance"),
                    course_id=course.id,
                    semester_id=semester_id,
                    date=day,
                    status=SessionStatus.ABSENT,
                )
            )
    return out


def toggle_session(
    state: TrackerState,
    course_id: str,
    day: str,
    new_status: Optional[SessionStatus] = None,
) -> None:
    """
    Set or clear the status of one course on one date.

    - existing record + None      -> removed (back to implicit present)
    - existing record + status    -> overwritten, flagged as override
    - no record + absent/cancelled/proxy -> new record
    - no record + present or None -> nothing to store
    """
    semester_id = ensure_active(state)
    current = state.attendance.in_semester(semester_id)
    matches = [r for r in current if r.course_id == course_id and r.date == day]

    if matches:
        if new_status is None:
            updated = [r for r in current if not (r.course_id == course_id and r.date == day)]
        else:
            updated = [
                replace(r, status=SessionStatus(new_status), is_override=True)
                if r.course_id == course_id and r.date == day
                else r
                for r in current
            ]
    else:
        if new_status is None or SessionStatus(new_status) == SessionStatus.PRESENT:
            return
        updated = current + [
            AttendanceRecord(
                id=generate_id("attendance"),
                course_id=course_id,
                semester_id=semester_id,
                date=day,
                status=SessionStatus(new_status),
            )
        ]

    state.attendance.replace_semester(semester_id, updated)
    state.commit(ATTENDANCE_KEY)


def toggle_day(state: TrackerState, day: str) -> Optional[UndoEntry]:
    """
    Flip a whole day.

    If anything is marked that day (ABSENT or MIXED) every record for the date
    is removed. If the day is fully present, every session is marked absent.
    The records the date had before are kept in the undo slot.

    Returns the undo entry, or None when no course meets on day.
    """
    semester_id = ensure_active(state)
    courses = state.courses.in_semester(semester_id)
    current = state.attendance.in_semester(semester_id)

    on_date = [c for c in courses if has_class_on_date(c, day)]
    if not on_date:
        return None

    previous = [r for r in current if r.date == day]
    kept = [r for r in current if r.date != day]
    count = len(on_date)
    plural = "s" if count > 1 else ""

    if day_status(day, courses, current) in (DayStatus.ABSENT, DayStatus.MIXED):
        updated = kept
        description = f"Marked {count} course{plural} present"
    else:
        updated = kept + _absent_records(on_date, day, semester_id)
        description = f"Marked {count} course{plural} absent"

    state.attendance.replace_semester(semester_id, updated)
    state.commit(ATTENDANCE_KEY)

    # a new undoable action silently replaces the previous one
    state.undo_entry = UndoEntry(
        type=TOGGLE_DAY,
        date=day,
        semester_id=semester_id,
        previous_state=previous,
        description=description,
        courses_count=count,
    )
    log.info("%s on %s", description, day)
    return state.undo_entry


def undo(state: TrackerState) -> bool:
    """
    Restore the records of the date changed by the last toggle_day.
    Returns False when there is nothing to undo.
    """
    entry = state.undo_entry
    if entry is None:
        return False

    if entry.type == TOGGLE_DAY:
        known_courses = {c.id for c in state.courses.in_semester(entry.semester_id)}
        current = state.attendance.in_semester(entry.semester_id)
        restored = [r for r in current if r.date != entry.date]
        # records of courses deleted since the toggle are not resurrected
        restored += [r for r in entry.previous_state if r.course_id in known_courses]
        state.attendance.replace_semester(entry.semester_id, restored)
        state.commit(ATTENDANCE_KEY)
        log.info("Undid: %s on %s", entry.description, entry.date)

    state.undo_entry = None
    return True


def mark_days_absent(state: TrackerState, days: Iterable[str]) -> int:
    """
    Mark every session on each date absent, replacing the records those dates had.
    Returns the number of records created.
    """
    days = list(dict.fromkeys(days))
    if not days:
        return 0

    semester_id = ensure_active(state)
    courses = state.courses.in_semester(semester_id)
    current = state.attendance.in_semester(semester_id)

    new_records: list[AttendanceRecord] = []
    for day in days:
        new_records.extend(_absent_records([c for c in courses if has_class_on_date(c, day)], day, semester_id))

    wanted = set(days)
    updated = [r for r in current if r.date not in wanted] + new_records
    state.attendance.replace_semester(semester_id, updated)
    state.commit(ATTENDANCE_KEY)
    return len(new_records)


def clear(state: TrackerState) -> int:
    """
    Remove every attendance record of the active semester.
    """
    semester_id = state.active_semester_id
    count = len(state.attendance.in_semester(semester_id))
    state.attendance.replace_semester(semester_id, [])
    if state.undo_entry is not None and state.undo_entry.semester_id == semester_id:
        state.undo_entry = None
    state.commit(ATTENDANCE_KEY)
    return count
