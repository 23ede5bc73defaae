"""
Schedule calculations (pure functions).

Given a course's weekdays, date range and timetable slots, compute how many
sessions take place on a date and over the whole course.

Back-to-back classes:
- a weekday listed twice in course.weekdays means two sessions that day
- two timetable slots on the same weekday in course.schedule mean the same
The larger of both counts wins, so a course described both ways is not
counted twice.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from typing import Any, Optional

from absencetracker.model import WEEKDAY_FULL_NAMES, Course


def parse_date(value: str) -> date:
    """
    Parse 'YYYY-MM-DD'. Raises ValueError for anything else.
    """
    return date.fromisoformat(str(value).strip())


def today_iso() -> str:
    return date.today().isoformat()


def weekday_from_name(day: Any) -> Optional[int]:
    """
    Map 'Monday' / 'mon' / 'MONDAY' / 0..6 to a weekday number, None if unknown.
    """
    if isinstance(day, int) and not isinstance(day, bool):
        return day if 0 <= day <= 6 else None

    text = str(day or "").strip().lower()
    if not text:
        return None
    for i, name in enumerate(WEEKDAY_FULL_NAMES):
        if name.lower() == text or name.lower()[:3] == text[:3]:
            return i
    return None


def sessions_per_weekday(course: Course) -> dict[int, int]:
    """
    Return {weekday: number of sessions} for every scheduled weekday.
    """
    listed = Counter(int(d) for d in course.weekdays)

    slots: Counter[int] = Counter()
    for slot in course.schedule or []:
        wd = weekday_from_name(slot.get("day")) if isinstance(slot, dict) else None
        if wd is not None:
            slots[wd] += 1

    return {wd: max(count, slots.get(wd, 0), 1) for wd, count in listed.items()}


def effective_start(course: Course) -> date:
    """
    First date that counts: the enrollment date when set, else start_date.
    """
    return parse_date(course.enrollment_start_date or course.start_date)


def session_count_on_date(course: Course, day: str) -> int:
    d = parse_date(day)
    if d < effective_start(course) or d > parse_date(course.end_date):
        return 0
    return sessions_per_weekday(course).get(d.weekday(), 0)


def has_class_on_date(course: Course, day: str) -> bool:
    return session_count_on_date(course, day) > 0


def class_dates(course: Course) -> list[str]:
    """
    All dates from the effective start to end_date (inclusive) with at least one session.
    """
    per_day = sessions_per_weekday(course)
    current = effective_start(course)
    end = parse_date(course.end_date)

    out: list[str] = []
    while current <= end:
        if current.weekday() in per_day:
            out.append(current.isoformat())
        current += timedelta(days=1)
    return out


def total_sessions(course: Course) -> int:
    per_day = sessions_per_weekday(course)
    return sum(per_day[parse_date(d).weekday()] for d in class_dates(course))
