from __future__ import annotations

from datetime import timedelta
from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from absencetracker import attendance, courses, semesters
from absencetracker.context import TrackerState
from absencetracker.model import WEEKDAY_NAMES, Course, DayStatus, RiskStatus, SessionStatus
from absencetracker.schedule import has_class_on_date, parse_date, today_iso, weekday_from_name
from absencetracker.stats import day_status, state_stats

console = Console()

STATUS_STYLE = {
    RiskStatus.SAFE: "green",
    RiskStatus.WARNING: "yellow",
    RiskStatus.DANGER: "red",
}


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    # prompts carry no markup; "[blank = back]" must print literally
    return console.input(escape(msg))


def _ask_date(msg: str, default: Optional[str] = None) -> Optional[str]:
    default = default or today_iso()
    raw = _prompt(f"{msg} [{default}]: ").strip()
    if not raw:
        return default
    try:
        return parse_date(raw).isoformat()
    except ValueError:
        _println("Invalid date (expected YYYY-MM-DD).")
        return None


def _pick_course(state: TrackerState) -> Optional[Course]:
    listed = courses.list_courses(state)
    if not listed:
        _println("No courses in this semester.")
        return None
    for i, c in enumerate(listed, start=1):
        _println(f"{i}) [bold {c.color_hex or 'white'}]{c.short_name}[/] {c.name}")
    pick = _prompt("Course number [blank = back]: ").strip()
    if not pick:
        return None
    if not pick.isdigit() or not 1 <= int(pick) <= len(listed):
        _println("Out of range.")
        return None
    return listed[int(pick) - 1]


def run_interactive(state: TrackerState) -> None:
    """
    Interactive menu loop. Undo lives only as long as this loop.
    """
    while True:
        _print_header(state)

        undo_hint = f" ({state.undo_entry.description})" if state.undo_entry else ""
        choice = _prompt(
            "\n[1] Dashboard\n"
            "[2] Toggle a whole day (absent <-> present)\n"
            f"[3] Undo{undo_hint}\n"
            "[4] Mark one course\n"
            "[5] Mark a date range absent\n"
            "[6] Add course\n"
            "[7] Switch semester\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        if choice == "1":
            _flow_dashboard(state)
        elif choice == "2":
            _flow_toggle_day(state)
        elif choice == "3":
            _flow_undo(state)
        elif choice == "4":
            _flow_mark_session(state)
        elif choice == "5":
            _flow_mark_range(state)
        elif choice == "6":
            _flow_add_course(state)
        elif choice == "7":
            _flow_switch_semester(state)
        else:
            _println("Invalid choice.")


def _print_header(state: TrackerState) -> None:
    semester = state.find_semester(state.active_semester_id)
    name = semester.name if semester else "(none)"
    n_courses = len(state.active_courses())
    n_records = len(state.active_attendance())
    _println("\n=== Absence Tracker (interactive) ===")
    _println(f"Semester: [bold]{name}[/] | Courses: {n_courses} | Records: {n_records}")


def _flow_dashboard(state: TrackerState) -> None:
    rows = state_stats(state)
    if not rows:
        _println("No courses in this semester.")
        return

    table = Table(title="Attendance", box=box.SIMPLE)
    table.add_column("Course")
    table.add_column("Days")
    table.add_column("Attendance", justify="right")
    table.add_column("Absences", justify="right")
    table.add_column("Left", justify="right")
    table.add_column("Status")

    at_risk: list[str] = []
    for c, s in rows:
        style = STATUS_STYLE[s.status]
        days = ",".join(WEEKDAY_NAMES[d] for d in c.weekdays if 0 <= d <= 6)
        table.add_row(
            f"[bold {c.color_hex or 'white'}]{c.short_name}[/] {c.name}",
            days,
            f"[{style}]{s.percentage:.1f}%[/]",
            f"{s.absences}/{c.allowed_absences}",
            f"[{style}]{s.remaining_absences}[/]",
            f"[{style}]{s.status.value}[/]",
        )
        if s.is_at_risk:
            at_risk.append(c.name)

    console.print(table)
    for name in at_risk:
        _println(f"[bold red]Attendance below 80% in {name}![/]")


def _flow_toggle_day(state: TrackerState) -> None:
    day = _ask_date("Date")
    if day is None:
        return

    scheduled = [c for c in state.active_courses() if has_class_on_date(c, day)]
    if not scheduled:
        _println(f"No classes on {day}.")
        return

    current = day_status(day, state.active_courses(), state.active_attendance())
    _println(f"{day}: {len(scheduled)} course(s), currently {current.value}.")
    if current != DayStatus.PRESENT:
        confirm = _prompt("This clears every mark for that day. Continue? [y/N]: ").strip().lower()
        if confirm != "y":
            return

    entry = attendance.toggle_day(state, day)
    if entry is not None:
        _println(f"{entry.description}. Choose [3] to undo.")


def _flow_undo(state: TrackerState) -> None:
    entry = state.undo_entry
    if attendance.undo(state):
        _println(f"Undone: {entry.description} ({entry.date})")
    else:
        _println("Nothing to undo.")


def _flow_mark_session(state: TrackerState) -> None:
    course = _pick_course(state)
    if course is None:
        return
    day = _ask_date("Date")
    if day is None:
        return

    raw = _prompt("Status [a]bsent / [c]ancelled / [p]roxy / [r]eset: ").strip().lower()
    statuses = {
        "a": SessionStatus.ABSENT,
        "c": SessionStatus.CANCELLED,
        "p": SessionStatus.PROXY,
        "r": None,
    }
    if raw[:1] not in statuses:
        _println("Invalid status.")
        return

    attendance.toggle_session(state, course.id, day, statuses[raw[:1]])
    _println(f"Saved {course.short_name} on {day}.")


def _flow_mark_range(state: TrackerState) -> None:
    start = _ask_date("From")
    if start is None:
        return
    end = _ask_date("To", default=start)
    if end is None:
        return

    first, last = parse_date(start), parse_date(end)
    if first > last:
        _println("'From' is after 'To'.")
        return

    days = []
    current = first
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)

    n = attendance.mark_days_absent(state, days)
    _println(f"Marked {n} sessions absent between {start} and {end}.")


def _flow_add_course(state: TrackerState) -> None:
    name = _prompt("Course name [blank = back]: ").strip()
    if not name:
        return

    raw_days = _prompt("Weekdays (e.g. mon,wed): ").strip()
    weekdays = []
    for part in raw_days.split(","):
        wd = weekday_from_name(part.strip())
        if wd is not None:
            weekdays.append(wd)

    data = {
        "name": name,
        "weekdays": weekdays,
        "start_date": _prompt("Start date YYYY-MM-DD [today]: ").strip() or None,
        "end_date": _prompt("End date YYYY-MM-DD [same as start]: ").strip() or None,
    }
    allowed = _prompt("Allowed absences [auto]: ").strip()
    if allowed.isdigit():
        data["allowed_absences"] = int(allowed)

    result = courses.register(state, data)
    if not result.ok:
        _println(f"[red]{result.message}[/]")
        return
    c = result.value
    _println(f"Added [bold {c.color_hex or 'white'}]{c.short_name}[/] with {c.allowed_absences} allowed absences.")


def _flow_switch_semester(state: TrackerState) -> None:
    listed = semesters.list_semesters(state, include_archived=False)
    for i, s in enumerate(listed, start=1):
        marker = "*" if s.id == state.active_semester_id else " "
        _println(f"{marker} {i}) {s.name}")
    _println(f"  {len(listed) + 1}) New semester")

    pick = _prompt("Select [blank = back]: ").strip()
    if not pick:
        return
    if not pick.isdigit() or not 1 <= int(pick) <= len(listed) + 1:
        _println("Out of range.")
        return

    if int(pick) == len(listed) + 1:
        name = _prompt("Name [auto]: ").strip()
        s = semesters.create(state, name or None)
        _println(f"Created and switched to {s.name}.")
        return

    s = listed[int(pick) - 1]
    semesters.switch_active(state, s.id)
    _println(f"Switched to {s.name}.")
