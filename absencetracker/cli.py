"""
CLI (Command Line Interface).

Quick terminal commands, e.g.:

    absencetracker course add "Operating Systems" --days tue,thu --start 2024-01-01 --end 2024-05-31
    absencetracker course list
    absencetracker mark OS 2024-01-04 absent
    absencetracker day today
    absencetracker stats
    absencetracker semester create "Spring 2025"
    absencetracker import timetable.json --section BCS-5B
    absencetracker import --sheet Monday=monday.csv --sheet Wednesday=wednesday.csv --section BCS-5B
    absencetracker interactive

Courses and semesters can be referenced by list number, id (or id prefix),
short name or name.

Note:
- The interactive UI lives in absencetracker/interactive.py
- This CLI prints plain text (no rich formatting)
- Undo only exists inside one process, so it is offered in interactive mode
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from absencetracker import attendance, courses, semesters
from absencetracker.config import configure_logging, load_settings
from absencetracker.context import TrackerState, open_state
from absencetracker.model import WEEKDAY_NAMES, Course, Semester, SessionStatus, Stats
from absencetracker.notifications import check_reminder, update_notification_settings
from absencetracker.schedule import parse_date, today_iso, weekday_from_name
from absencetracker.stats import get_course_stats, state_stats
from absencetracker.storage import JsonFileStore
from absencetracker.timetable import TimetableError, load_day_sheets, load_timetable, section_course_inputs

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _open(data_dir: Path) -> TrackerState:
    return open_state(JsonFileStore(data_dir))


def _day_arg(value: str) -> str:
    """
    argparse type: 'today' or a real YYYY-MM-DD date.
    """
    text = value.strip()
    if text.lower() == "today":
        return today_iso()
    try:
        return parse_date(text).isoformat()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r} (expected YYYY-MM-DD or today)")


def _parse_days(text: str) -> Optional[list[int]]:
    """
    'mon,wed' or '0,2' -> [0, 2]. Repeating a day means two sessions that day.
    """
    out: list[int] = []
    for part in (text or "").split(","):
        part = part.strip()
        if not part:
            continue
        wd = weekday_from_name(int(part)) if part.isdigit() else weekday_from_name(part)
        if wd is None:
            return None
        out.append(wd)
    return out or None


def _match(items: Sequence[Any], ref: str, names: tuple[str, ...]) -> Optional[Any]:
    ref = (ref or "").strip()
    if not ref:
        return None
    if ref.isdigit() and 1 <= int(ref) <= len(items):
        return items[int(ref) - 1]
    for item in items:
        if item.id == ref:
            return item
    lowered = ref.lower()
    for item in items:
        for attr in names:
            value = getattr(item, attr, None)
            if isinstance(value, str) and value.lower() == lowered:
                return item
    prefixed = [item for item in items if item.id.startswith(ref)]
    return prefixed[0] if len(prefixed) == 1 else None


def _resolve_course(state: TrackerState, ref: str) -> Optional[Course]:
    return _match(courses.list_courses(state), ref, ("short_name", "name", "course_code"))


def _resolve_semester(state: TrackerState, ref: str) -> Optional[Semester]:
    return _match(semesters.list_semesters(state), ref, ("name",))


def _days_label(course: Course) -> str:
    return ",".join(WEEKDAY_NAMES[d] for d in course.weekdays if 0 <= d <= 6)


def _stats_line(course: Course, s: Stats) -> str:
    risk = "  AT RISK" if s.is_at_risk else ""
    return (
        f"{s.percentage:5.1f}% | absences {s.absences}/{course.allowed_absences} "
        f"| left {s.remaining_absences} | {s.status.value.upper()}{risk}"
    )


# ---------------------------------------------------------------------------
# Semester commands
# ---------------------------------------------------------------------------


def _cmd_semester(args: argparse.Namespace, state: TrackerState) -> int:
    action = args.action

    if action == "list":
        for i, s in enumerate(semesters.list_semesters(state), start=1):
            marker = "*" if s.id == state.active_semester_id else " "
            archived = " (archived)" if s.is_archived else ""
            n = len(state.courses.in_semester(s.id))
            print(f"{marker} {i}) {s.name}{archived} | {n} courses | {s.id}")
        return 0

    if action == "create":
        s = semesters.create(state, args.name)
        print(f"Created and switched to: {s.name}")
        return 0

    semester = _resolve_semester(state, args.ref)
    if semester is None:
        print(f"Semester not found: {args.ref}")
        return 1

    if action == "switch":
        if not semesters.switch_active(state, semester.id):
            print(f"Cannot switch to archived semester: {semester.name}")
            return 1
        print(f"Active semester: {semester.name}")
    elif action == "rename":
        if not semesters.rename(state, semester.id, args.name or ""):
            print("Please provide a new name.")
            return 1
        print(f"Renamed to: {args.name.strip()}")
    elif action == "archive":
        semesters.archive(state, semester.id)
        print(f"Archived: {semester.name}")
    elif action == "unarchive":
        semesters.unarchive(state, semester.id)
        print(f"Unarchived: {semester.name}")
    elif action == "delete":
        if not semesters.delete(state, semester.id):
            print("Cannot delete the only semester.")
            return 1
        print(f"Deleted: {semester.name}")
    return 0


# ---------------------------------------------------------------------------
# Course commands
# ---------------------------------------------------------------------------


def _course_input(args: argparse.Namespace) -> dict[str, Any]:
    data: dict[str, Any] = {"name": args.name}
    if args.days is not None:
        data["weekdays"] = _parse_days(args.days) or []
    optional = {
        "start_date": args.start,
        "end_date": args.end,
        "enrollment_start_date": args.enrolled,
        "credit_hours": args.credits,
        "allowed_absences": args.allowed,
        "initial_absences": args.initial,
        "course_code": args.code,
        "section": args.section,
        "short_name": args.short,
        "color": args.color,
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    return data


def _cmd_course(args: argparse.Namespace, state: TrackerState) -> int:
    action = args.action

    if action == "add":
        result = courses.register(state, _course_input(args))
        if not result.ok:
            print(f"Error: {result.message} ({result.reason})")
            return 1
        c = result.value
        print(f"Added: {c.short_name} | {c.name} | {_days_label(c)} | allowed absences {c.allowed_absences}")
        return 0

    if action == "list":
        listed = courses.list_courses(state)
        if not listed:
            print("No courses in this semester.")
            return 0
        for i, c in enumerate(listed, start=1):
            print(f"{i}) {c.short_name} | {c.name} | {_days_label(c)} | {c.start_date}..{c.end_date} | {c.color}")
        return 0

    if action == "clear":
        n = courses.delete_all(state)
        print(f"Removed {n} courses and their attendance.")
        return 0

    course = _resolve_course(state, args.ref)
    if course is None:
        print(f"Course not found: {args.ref}")
        return 1

    if action == "update":
        changes = {
            "name": args.name,
            "short_name": args.short,
            "allowed_absences": args.allowed,
            "initial_absences": args.initial,
            "start_date": args.start,
            "end_date": args.end,
            "enrollment_start_date": args.enrolled,
            "color": args.color,
        }
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            print("Nothing to update.")
            return 1
        result = courses.update(state, course.id, changes)
        if not result.ok:
            print(f"Error: {result.message} ({result.reason})")
            return 1
        print(f"Updated: {result.value.short_name}")
    elif action == "remove":
        courses.delete(state, course.id)
        print(f"Removed: {course.short_name} (and its attendance)")
    elif action == "move":
        if not courses.reorder(state, course.id, args.direction):
            print("Already at the edge.")
            return 0
        print(f"Moved {course.short_name} {args.direction}.")
    elif action == "section":
        result = courses.change_section(
            state, course.id, {"course_code": course.course_code, "section": args.section}
        )
        if not result.ok:
            print(f"Error: {result.message} ({result.reason})")
            return 1
        print(f"{course.course_code} is now in section {args.section}.")
    return 0


# ---------------------------------------------------------------------------
# Attendance commands
# ---------------------------------------------------------------------------


def _cmd_mark(args: argparse.Namespace, state: TrackerState) -> int:
    course = _resolve_course(state, args.ref)
    if course is None:
        print(f"Course not found: {args.ref}")
        return 1
    day = args.date
    status = None if args.status == "clear" else SessionStatus(args.status)
    attendance.toggle_session(state, course.id, day, status)
    print(f"{course.short_name} {day}: {args.status}")
    print(f"  {_stats_line(course, get_course_stats(state, course.id))}")
    return 0


def _cmd_day(args: argparse.Namespace, state: TrackerState) -> int:
    day = args.date
    entry = attendance.toggle_day(state, day)
    if entry is None:
        print(f"No classes on {day}.")
        return 0
    print(f"{day}: {entry.description}")
    return 0


def _cmd_absent(args: argparse.Namespace, state: TrackerState) -> int:
    days = list(args.dates)
    n = attendance.mark_days_absent(state, days)
    print(f"Marked {n} sessions absent on {len(days)} day(s).")
    return 0


def _cmd_clear_attendance(args: argparse.Namespace, state: TrackerState) -> int:
    n = attendance.clear(state)
    print(f"Removed {n} attendance records.")
    return 0


def _cmd_stats(args: argparse.Namespace, state: TrackerState) -> int:
    if args.ref:
        course = _resolve_course(state, args.ref)
        if course is None:
            print(f"Course not found: {args.ref}")
            return 1
        print(f"{course.short_name} | {_stats_line(course, get_course_stats(state, course.id))}")
        return 0

    rows = state_stats(state)
    if not rows:
        print("No courses in this semester.")
        return 0
    for c, s in rows:
        print(f"{c.short_name:<10} {_stats_line(c, s)}")
        if s.is_at_risk:
            print(f"{'':<10} Attendance below 80% in {c.name}!")
    return 0


# ---------------------------------------------------------------------------
# Import / reminder
# ---------------------------------------------------------------------------


def _sheet_arg(value: str) -> tuple[str, str]:
    """
    argparse type: 'Monday=monday.csv' or 'tue=https://...' -> (day, source).
    """
    day, sep, source = value.partition("=")
    if not sep or not day.strip() or not source.strip():
        raise argparse.ArgumentTypeError(f"invalid sheet: {value!r} (expected DAY=FILE_OR_URL)")
    if weekday_from_name(day.strip()) is None:
        raise argparse.ArgumentTypeError(f"invalid sheet day: {day!r}")
    return day.strip(), source.strip()


def _cmd_import(args: argparse.Namespace, state: TrackerState, default_url: Optional[str]) -> int:
    sheets = dict(args.sheet or [])
    source = (args.source or default_url or "").strip()
    if not sheets and not source:
        print("Please provide a timetable file or URL, or --sheet DAY=FILE_OR_URL.")
        return 1

    try:
        sections = load_day_sheets(sheets) if sheets else load_timetable(source)
        inputs = section_course_inputs(sections, args.section, args.start, args.end)
    except TimetableError as exc:
        print(f"Error: {exc}")
        return 1

    result = courses.register_many(state, inputs)
    for c in result.added:
        print(f"Added: {c.short_name} | {c.name} | {_days_label(c)}")
    for d in result.duplicates:
        print(f"Skipped: {d.get('message')}")
    for e in result.errors:
        print(f"Error at #{e['index'] + 1}: {e['message']}")
    print(f"Imported {len(result.added)} of {len(inputs)} courses from section {args.section.upper()}.")
    return 0 if result.success else 1


def _cmd_reminder(args: argparse.Namespace, state: TrackerState) -> int:
    changes: dict[str, Any] = {}
    if args.on:
        changes["enabled"] = True
    if args.off:
        changes["enabled"] = False
    if args.time:
        changes["time"] = args.time
    if changes:
        try:
            update_notification_settings(state, **changes)
        except ValueError as exc:
            print(f"Error: {exc}")
            return 1

    if args.check:
        if check_reminder(state):
            print("Time to mark your attendance!")
        return 0

    s = state.notification_settings
    print(f"Reminder: {'on' if s.enabled else 'off'} at {s.time} (last: {s.last_checked or '-'})")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_course_fields(p: argparse.ArgumentParser) -> None:
    p.add_argument("--start", type=str, help="Start date YYYY-MM-DD")
    p.add_argument("--end", type=str, help="End date YYYY-MM-DD")
    p.add_argument("--enrolled", type=str, help="Enrollment date YYYY-MM-DD (default: start date)")
    p.add_argument("--allowed", type=int, help="Allowed absences")
    p.add_argument("--initial", type=int, help="Absences before tracking started")
    p.add_argument("--short", type=str, help="Short name")
    p.add_argument("--color", type=str, help="Palette color name")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="absencetracker", description="Absence Tracker CLI")
    parser.add_argument("--data-dir", type=Path, default=None, help="Data directory (default: ~/.absencetracker)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show info log messages")
    sub = parser.add_subparsers(dest="command", required=True)

    # semester
    p_sem = sub.add_parser("semester", help="Manage semesters")
    sem_sub = p_sem.add_subparsers(dest="action", required=True)
    sem_sub.add_parser("list", help="List semesters")
    p = sem_sub.add_parser("create", help="Create a semester and switch to it")
    p.add_argument("name", nargs="?", default=None)
    for action in ("switch", "archive", "unarchive", "delete"):
        p = sem_sub.add_parser(action, help=f"{action.capitalize()} a semester")
        p.add_argument("ref", type=str, help="Number, id or name")
    p = sem_sub.add_parser("rename", help="Rename a semester")
    p.add_argument("ref", type=str)
    p.add_argument("name", type=str)

    # course
    p_course = sub.add_parser("course", help="Manage courses")
    course_sub = p_course.add_subparsers(dest="action", required=True)
    p = course_sub.add_parser("add", help="Add a course")
    p.add_argument("name", type=str)
    p.add_argument("--days", type=str, required=True, help="Weekdays, e.g. mon,wed or 0,2")
    p.add_argument("--credits", type=float, help="Credit hours (0-10)")
    p.add_argument("--code", type=str, help="Course code")
    p.add_argument("--section", type=str, help="Section")
    _add_course_fields(p)
    course_sub.add_parser("list", help="List courses of the active semester")
    course_sub.add_parser("clear", help="Remove all courses of the active semester")
    p = course_sub.add_parser("update", help="Change course fields")
    p.add_argument("ref", type=str)
    p.add_argument("--name", type=str)
    _add_course_fields(p)
    p = course_sub.add_parser("remove", help="Remove a course and its attendance")
    p.add_argument("ref", type=str)
    p = course_sub.add_parser("move", help="Move a course left/right")
    p.add_argument("ref", type=str)
    p.add_argument("direction", choices=["left", "right"])
    p = course_sub.add_parser("section", help="Switch a timetable course to another section")
    p.add_argument("ref", type=str)
    p.add_argument("section", type=str)

    # attendance
    p = sub.add_parser("mark", help="Mark one course on one date")
    p.add_argument("ref", type=str, help="Course number, short name or id")
    p.add_argument("date", type=_day_arg, help="YYYY-MM-DD or 'today'")
    p.add_argument("status", choices=[s.value for s in SessionStatus] + ["clear"])

    p = sub.add_parser("day", help="Toggle all courses on a date (absent <-> present)")
    p.add_argument("date", nargs="?", type=_day_arg, default="today")

    p = sub.add_parser("absent", help="Mark whole days absent")
    p.add_argument("dates", nargs="+", type=_day_arg, help="Dates YYYY-MM-DD")

    sub.add_parser("clear-attendance", help="Remove all attendance of the active semester")

    p = sub.add_parser("stats", help="Show attendance statistics")
    p.add_argument("ref", nargs="?", default=None)

    # import
    p = sub.add_parser("import", help="Import a section from a timetable JSON file, URL or weekday sheets")
    p.add_argument("source", nargs="?", default=None, help="timetable.json path or URL")
    p.add_argument(
        "--sheet",
        type=_sheet_arg,
        action="append",
        help="Weekday sheet as DAY=FILE_OR_URL (.csv export or published HTML), repeatable",
    )
    p.add_argument("--section", type=str, required=True, help="Section, e.g. BCS-5B")
    p.add_argument("--start", type=str, help="Start date YYYY-MM-DD")
    p.add_argument("--end", type=str, help="End date YYYY-MM-DD")

    # reminder
    p = sub.add_parser("reminder", help="Daily reminder settings")
    p.add_argument("--on", action="store_true")
    p.add_argument("--off", action="store_true")
    p.add_argument("--time", type=str, help="HH:MM")
    p.add_argument("--check", action="store_true", help="Print a reminder if one is due now")

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(logging.INFO if args.verbose else settings.log_level)

    state = _open(args.data_dir or settings.data_dir)

    if args.command == "semester":
        raise SystemExit(_cmd_semester(args, state))
    if args.command == "course":
        raise SystemExit(_cmd_course(args, state))
    if args.command == "mark":
        raise SystemExit(_cmd_mark(args, state))
    if args.command == "day":
        raise SystemExit(_cmd_day(args, state))
    if args.command == "absent":
        raise SystemExit(_cmd_absent(args, state))
    if args.command == "clear-attendance":
        raise SystemExit(_cmd_clear_attendance(args, state))
    if args.command == "stats":
        raise SystemExit(_cmd_stats(args, state))
    if args.command == "import":
        raise SystemExit(_cmd_import(args, state, settings.timetable_url))
    if args.command == "reminder":
        raise SystemExit(_cmd_reminder(args, state))

    if args.command == "interactive":
        from absencetracker.interactive import run_interactive

        run_interactive(state)
        raise SystemExit(0)

    raise SystemExit(2)
