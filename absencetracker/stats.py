"""
Attendance statistics (pure functions).

A course without a record on a scheduled date counts as attended. Records
change that default:
- absent     counts as an absence
- proxy      counts as present
- cancelled  removes the session from the total, so it never penalizes

Status thresholds (one value drives every color in the UI):
    remaining_absences <= 0  -> DANGER
    remaining_absences <= 2  -> WARNING
    otherwise                -> SAFE

is_at_risk (percentage below 80) is independent of the status.
"""

from __future__ import annotations

from typing import Iterable

from absencetracker.context import TrackerState
from absencetracker.courses import list_courses
from absencetracker.model import (
    AT_RISK_PERCENTAGE,
    WARNING_REMAINING_ABSENCES,
    AttendanceRecord,
    Course,
    DayStatus,
    RiskStatus,
    SessionStatus,
    Stats,
)
from absencetracker.schedule import session_count_on_date, total_sessions


def day_status(day: str, courses: Iterable[Course], records: Iterable[AttendanceRecord]) -> DayStatus:
    """
    Aggregate status of all sessions scheduled on day.

    PRESENT if no session is marked, ABSENT if every session is marked
    non-present, MIXED otherwise. A day without classes is PRESENT.
    """
    records = list(records)
    total = 0
    marked = 0
    for course in courses:
        sessions = session_count_on_date(course, day)
        if sessions == 0:
            continue
        total += sessions
        count = sum(
            1
            for r in records
            if r.course_id == course.id and r.date == day and r.status != SessionStatus.PRESENT
        )
        marked += min(count, sessions)

    if marked == 0:
        return DayStatus.PRESENT
    if marked >= total:
        return DayStatus.ABSENT
    return DayStatus.MIXED


def risk_status(remaining_absences: int) -> RiskStatus:
    if remaining_absences <= 0:
        return RiskStatus.DANGER
    if remaining_absences <= WARNING_REMAINING_ABSENCES:
        return RiskStatus.WARNING
    return RiskStatus.SAFE


def course_stats(course: Course, records: Iterable[AttendanceRecord]) -> Stats:
    total = total_sessions(course)

    absent = 0
    cancelled = 0
    for r in records:
        if r.course_id != course.id:
            continue
        if r.status == SessionStatus.ABSENT:
            absent += 1
        elif r.status == SessionStatus.CANCELLED:
            cancelled += 1

    adjusted_total = max(total - cancelled, 0)
    absences = course.initial_absences + absent

    if adjusted_total > 0:
        percentage = (adjusted_total - absences) / adjusted_total * 100
    else:
        percentage = 100.0
    percentage = min(max(percentage, 0.0), 100.0)

    remaining = course.allowed_absences - absences

    return Stats(
        percentage=percentage,
        absences=absences,
        remaining_absences=remaining,
        adjusted_total=adjusted_total,
        total_sessions=total,
        cancelled=cancelled,
        status=risk_status(remaining),
        is_at_risk=percentage < AT_RISK_PERCENTAGE,
    )


def state_stats(state: TrackerState) -> list[tuple[Course, Stats]]:
    """
    Stats for every course of the active semester, in display order.
    """
    records = state.active_attendance()
    return [(c, course_stats(c, records)) for c in list_courses(state)]


def get_course_stats(state: TrackerState, course_id: str) -> Stats | None:
    for course in state.active_courses():
        if course.id == course_id:
            return course_stats(course, state.active_attendance())
    return None
