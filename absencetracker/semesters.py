"""
Semester partition management.

Every course and attendance record belongs to exactly one semester. The
active semester is the single pointer state.active_semester_id; the
is_active flag on each Semester mirrors it for display only.

Rules:
- ensure_active() never fails and always leaves a usable active semester
- archiving keeps the data, deleting cascades to courses and attendance
- the last remaining semester cannot be deleted
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from absencetracker.context import TrackerState
from absencetracker.ids import generate_id
from absencetracker.model import DEFAULT_SEMESTER_NAME, Semester
from absencetracker.storage import (
    ACTIVE_SEMESTER_KEY,
    ATTENDANCE_KEY,
    COURSES_KEY,
    SEMESTERS_KEY,
)

log = logging.getLogger(__name__)


def _is_usable(semester: Optional[Semester]) -> bool:
    return semester is not None and not semester.is_archived


def _set_active(state: TrackerState, semester_id: Optional[str]) -> None:
    """
    Point the active semester at semester_id and keep the cosmetic flags in sync.
    """
    state.active_semester_id = semester_id
    state.semesters.replace(replace(s, is_active=s.id == semester_id) for s in state.semesters)
    state.commit(SEMESTERS_KEY, ACTIVE_SEMESTER_KEY)


def _swap(state: TrackerState, semester: Semester) -> None:
    state.semesters.replace(semester if s.id == semester.id else s for s in state.semesters)
    state.commit(SEMESTERS_KEY)


def _first_usable(state: TrackerState, exclude: Optional[str] = None) -> Optional[Semester]:
    for s in state.semesters:
        if s.id != exclude and not s.is_archived:
            return s
    return None


def list_semesters(state: TrackerState, include_archived: bool = True) -> list[Semester]:
    return [s for s in state.semesters if include_archived or not s.is_archived]


def get_active(state: TrackerState) -> Optional[str]:
    return state.active_semester_id


def ensure_active(state: TrackerState) -> str:
    """
    Return a valid active semester id, falling back to the first non-archived
    semester or creating "Current Semester" when nothing usable exists.
    """
    if _is_usable(state.find_semester(state.active_semester_id)):
        return state.active_semester_id

    fallback = _first_usable(state)
    if fallback is not None:
        log.info("Active semester missing; falling back to %s", fallback.name)
        _set_active(state, fallback.id)
        return fallback.id

    semester = Semester(id=generate_id("semester"), name=DEFAULT_SEMESTER_NAME, is_active=True)
    state.semesters.replace(list(state.semesters) + [semester])
    log.info("Provisioned default semester %s", semester.id)
    _set_active(state, semester.id)
    return semester.id


def switch_active(state: TrackerState, semester_id: str) -> bool:
    semester = state.find_semester(semester_id)
    if not _is_usable(semester):
        return False
    _set_active(state, semester_id)
    return True


def create(state: TrackerState, name: Optional[str] = None) -> Semester:
    """
    Create a semester and make it active. Unnamed semesters become "Semester {n+1}".
    """
    clean = (name or "").strip()
    semester = Semester(
        id=generate_id("semester"),
        name=clean or f"Semester {len(state.semesters) + 1}",
    )
    state.semesters.replace(list(state.semesters) + [semester])
    _set_active(state, semester.id)
    return semester


def rename(state: TrackerState, semester_id: str, name: str) -> bool:
    semester = state.find_semester(semester_id)
    clean = (name or "").strip()
    if semester is None or not clean:
        return False
    _swap(state, replace(semester, name=clean))
    return True


def archive(state: TrackerState, semester_id: str) -> bool:
    """
    Soft-delete a semester. If it was active, another non-archived semester
    takes over, otherwise the active pointer is left unset.
    """
    semester = state.find_semester(semester_id)
    if semester is None:
        return False

    _swap(state, replace(semester, is_archived=True))

    if state.active_semester_id == semester_id:
        replacement = _first_usable(state, exclude=semester_id)
        _set_active(state, replacement.id if replacement else None)
    return True


def unarchive(state: TrackerState, semester_id: str) -> bool:
    semester = state.find_semester(semester_id)
    if semester is None:
        return False
    _swap(state, replace(semester, is_archived=False))
    return True


def delete(state: TrackerState, semester_id: str) -> bool:
    """
    Delete a semester with all its courses and attendance records.

    Refuses (returns False, changes nothing) when semester_id is unknown or
    is the only semester left.
    """
    if state.find_semester(semester_id) is None:
        return False
    if len(state.semesters) <= 1:
        log.info("Refusing to delete the only semester %s", semester_id)
        return False

    removed_courses = state.courses.remove_where(lambda c: c.semester_id == semester_id)
    removed_records = state.attendance.remove_where(lambda r: r.semester_id == semester_id)
    state.semesters.remove_where(lambda s: s.id == semester_id)
    state.commit(COURSES_KEY, ATTENDANCE_KEY, SEMESTERS_KEY)

    if state.undo_entry is not None and state.undo_entry.semester_id == semester_id:
        state.undo_entry = None

    log.info(
        "Deleted semester %s (%d courses, %d attendance records)",
        semester_id,
        removed_courses,
        removed_records,
    )

    if state.active_semester_id == semester_id:
        replacement = _first_usable(state)
        _set_active(state, replacement.id if replacement else None)
    return True
