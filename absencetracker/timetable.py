"""
Timetable import (university sheet -> course inputs).

The university publishes one sheet per weekday, laid out by room:

    row 0-3   title, slot numbers, slot times, "CLASSROOMS" header
    row 4+    room name, then 9 slot cells

    cell:  "DAA BCS-5B\nFahad Sherwani"   (course code, section, instructor)

Sheets are read either as CSV exports or as the published HTML table
(load_day_sheets), or a catalog parsed elsewhere is loaded as JSON
(load_timetable).
Parsed entries are grouped by section:

    {"BCS-5B": [{"course_code": "DAA", "section": "BCS-5B", "day": "Monday", ...}, ...]}

and one section's entries can be turned into course inputs for
courses.register_many().

Important rules:
- consecutive slots of the same course, day and room are ONE session (labs)
- credit hours = number of distinct days the course meets
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from absencetracker.model import WEEKDAY_FULL_NAMES
from absencetracker.schedule import weekday_from_name
from absencetracker.shortname import generate_short_name

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sheet layout
# ---------------------------------------------------------------------------

HEADER_ROWS = 4
SLOT_COUNT = 9

TIME_SLOTS = {
    1: "08:00-08:50",
    2: "08:55-09:45",
    3: "09:50-10:40",
    4: "10:45-11:35",
    5: "11:40-12:30",
    6: "12:35-13:25",
    7: "13:30-14:20",
    8: "14:25-15:15",
    9: "15:20-16:05",
}

COURSE_NAMES = {
    "DAA": "Design & Analysis of Algorithms",
    "DBS": "Database Systems",
    "SDA": "Software Design & Architecture",
    "CN": "Computer Networks",
    "TBW": "Technical & Business Writing",
    "COAL": "Computer Organization & Assembly Language",
    "DS": "Data Structures",
    "TOA": "Theory of Automata",
    "AP": "Applied Physics",
    "IS": "Information Security",
    "OOP": "Object Oriented Programming",
    "PF": "Programming Fundamentals",
    "LA": "Linear Algebra",
    "DLD": "Digital Logic Design",
    "OS": "Operating Systems",
    "SE": "Software Engineering",
    "AI": "Artificial Intelligence",
    "ML": "Machine Learning",
}

CELL_RE = re.compile(r"^([A-Z]+)\s+([A-Z]+-?\d+[A-Z]?)")

REQUEST_TIMEOUT = 30


class TimetableError(Exception):
    """Raised when a timetable cannot be fetched or read."""


# ---------------------------------------------------------------------------
# Cell / sheet parsing
# ---------------------------------------------------------------------------


def parse_cell_entry(cell_text: str, room: str, day: str, slot_number: int) -> Optional[Dict[str, Any]]:
    """
    Parse one slot cell. Empty and 'reserved' cells return None.
    """
    if not cell_text or not cell_text.strip() or "reserved" in cell_text.lower():
        return None

    lines = [line.strip() for line in cell_text.splitlines() if line.strip()]
    if not lines:
        return None

    match = CELL_RE.match(lines[0])
    if not match:
        return None

    course_code, section = match.group(1), match.group(2).upper()
    return {
        "course_code": course_code,
        "course_name": COURSE_NAMES.get(course_code, course_code),
        "section": section,
        "instructor": lines[1] if len(lines) > 1 else "TBA",
        "room": room.strip(),
        "day": day,
        "time_slot": TIME_SLOTS.get(slot_number, f"Slot {slot_number}"),
        "slot_number": slot_number,
    }


def _rows_to_entries(rows: List[List[str]], day: str) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    current_room = ""

    for columns in rows[HEADER_ROWS:]:
        if not columns:
            continue

        # First column is the room; blank means "same room as above"
        room = (columns[0] or "").strip()
        if room:
            current_room = room

        for slot in range(1, SLOT_COUNT + 1):
            if slot >= len(columns):
                break
            entry = parse_cell_entry(columns[slot], current_room, day, slot)
            if entry:
                entries.append(entry)

    return entries


def parse_day_csv(csv_text: str, day: str) -> List[Dict[str, Any]]:
    """
    Parse one weekday sheet exported as CSV (quoted cells may contain newlines).
    """
    rows = list(csv.reader(io.StringIO(csv_text)))
    return _rows_to_entries(rows, day)


def parse_day_html(html: str, day: str) -> List[Dict[str, Any]]:
    """
    Parse one weekday sheet published as an HTML table.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if table is None:
        return []

    rows: List[List[str]] = []
    for tr in table.select("tr"):
        cells = tr.find_all(["td", "th"])
        rows.append([cell.get_text("\n", strip=True) for cell in cells])

    return _rows_to_entries(rows, day)


def group_by_section(entries: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    sections: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for entry in entries:
        sections[entry["section"]].append(entry)
    return dict(sections)


def sections_from_entries(entries: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Group parsed entries by section and fill in credit hours.
    """
    sections = group_by_section(entries)

    # credit hours = distinct days per course code within the section
    for section_entries in sections.values():
        days_by_code: Dict[str, set] = defaultdict(set)
        for e in section_entries:
            days_by_code[e["course_code"]].add(e["day"])
        for e in section_entries:
            e["credit_hours"] = len(days_by_code[e["course_code"]])

    return sections


def parse_timetable(day_sheets: Dict[str, str], fmt: str = "csv") -> Dict[str, List[Dict[str, Any]]]:
    """
    Parse all weekday sheets ({"Monday": text, ...}) into a section catalog.
    """
    parse_day = parse_day_html if fmt == "html" else parse_day_csv

    entries: List[Dict[str, Any]] = []
    for day, text in day_sheets.items():
        entries.extend(parse_day(text, day))
    return sections_from_entries(entries)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def _clean_entries(section: str, entries: List[Any]) -> List[Dict[str, Any]]:
    kept = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("course_code"), str) or not entry["course_code"]:
            log.warning("Skipping malformed timetable entry in %s: %r", section, entry)
            continue
        kept.append(entry)
    return kept


def _unwrap(payload: Any) -> Dict[str, List[Dict[str, Any]]]:
    """
    Accept both {"data": {...sections...}} and a bare section dict.
    Entries without a course code are dropped, and so are sections left empty.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise TimetableError("Timetable JSON must be an object of sections")

    sections: Dict[str, List[Dict[str, Any]]] = {}
    for key, entries in payload.items():
        if not isinstance(entries, list):
            continue
        section = str(key).upper()
        kept = _clean_entries(section, entries)
        if kept:
            sections[section] = kept
    return sections


def fetch_timetable(url: str) -> Dict[str, List[Dict[str, Any]]]:
    """
    Download a parsed timetable (JSON) from url.
    """
    try:
        resp = requests.get(url, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as exc:
        raise TimetableError(f"Could not fetch timetable from {url}: {exc}") from exc
    except ValueError as exc:
        raise TimetableError(f"Timetable at {url} is not valid JSON") from exc
    return _unwrap(payload)


def fetch_day_sheet(url: str, day: str) -> List[Dict[str, Any]]:
    """
    Download one published weekday sheet (HTML) and parse it.
    """
    try:
        resp = requests.get(url, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise TimetableError(f"Could not fetch {day} sheet from {url}: {exc}") from exc
    return parse_day_html(resp.text, day)


def load_timetable_file(path: str | Path) -> Dict[str, List[Dict[str, Any]]]:
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TimetableError(f"Could not read timetable file {p}: {exc}") from exc
    return _unwrap(payload)


def load_timetable(source: str) -> Dict[str, List[Dict[str, Any]]]:
    if source.startswith(("http://", "https://")):
        return fetch_timetable(source)
    return load_timetable_file(source)


def _read_day_sheet(source: str, day: str) -> List[Dict[str, Any]]:
    is_csv = source.lower().endswith(".csv")
    if source.startswith(("http://", "https://")):
        if not is_csv:
            return fetch_day_sheet(source, day)
        try:
            resp = requests.get(source, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise TimetableError(f"Could not fetch {day} sheet from {source}: {exc}") from exc
        return parse_day_csv(resp.text, day)

    p = Path(source)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TimetableError(f"Could not read {day} sheet {p}: {exc}") from exc
    return parse_day_csv(text, day) if is_csv else parse_day_html(text, day)


def load_day_sheets(sheets: Dict[str, str]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Read raw weekday sheets ({"mon": "monday.csv", "Tuesday": "https://..."})
    and build a section catalog from them.

    Sources ending in .csv are read as CSV exports, everything else as the
    published HTML table. Raises TimetableError for unknown days or
    unreadable sources.
    """
    entries: List[Dict[str, Any]] = []
    for day_name, source in sheets.items():
        weekday = weekday_from_name(day_name)
        if weekday is None:
            raise TimetableError(f"Unknown weekday: {day_name!r}")
        day = WEEKDAY_FULL_NAMES[weekday]
        day_entries = _read_day_sheet(source, day)
        log.info("Read %d entries from %s sheet %s", len(day_entries), day, source)
        entries.extend(day_entries)
    return sections_from_entries(entries)



# ---------------------------------------------------------------------------
# Section -> course inputs
# ---------------------------------------------------------------------------


def _merge_sessions(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Merge consecutive slots (same day and room) into single sessions.
    """
    ordered = sorted(
        entries,
        key=lambda e: (weekday_from_name(e.get("day")) or 0, e.get("slot_number") or 0),
    )
    sessions: List[Dict[str, Any]] = []
    for e in ordered:
        prev = sessions[-1] if sessions else None
        if (
            prev is not None
            and prev["day"] == e.get("day")
            and prev["room"] == e.get("room")
            and prev["_last_slot"] + 1 == e.get("slot_number")
        ):
            prev["end_time"] = str(e.get("time_slot", "")).split("-")[-1].strip()
            prev["slot_count"] += 1
            prev["_last_slot"] = e.get("slot_number")
            continue

        start, _, end = str(e.get("time_slot", "")).partition("-")
        sessions.append(
            {
                "day": e.get("day"),
                "start_time": start.strip(),
                "end_time": end.strip(),
                "room": e.get("room"),
                "building": e.get("building"),
                "slot_count": 1,
                "_last_slot": e.get("slot_number") or 0,
            }
        )

    for s in sessions:
        s.pop("_last_slot", None)
    return sessions


def section_course_inputs(
    sections: Dict[str, List[Dict[str, Any]]],
    section: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Turn one section's entries into course input dicts (one per course code).
    Raises TimetableError if the section does not exist.
    """
    key = section.strip().upper()
    entries = sections.get(key)
    if not entries:
        raise TimetableError(f"Section {key} not found in timetable")

    by_code: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for e in entries:
        by_code[e["course_code"]].append(e)

    inputs: List[Dict[str, Any]] = []
    for code, course_entries in sorted(by_code.items()):
        schedule = _merge_sessions(course_entries)
        weekdays = sorted(
            wd for wd in (weekday_from_name(s["day"]) for s in schedule) if wd is not None
        )
        if not weekdays:
            log.warning("Skipping %s %s: no recognizable weekdays", code, key)
            continue

        first = course_entries[0]
        name = first.get("course_name") or code
        inputs.append(
            {
                "name": name,
                "short_name": code if len(code) <= 6 else generate_short_name(name, code),
                "course_code": code,
                "section": key,
                "instructor": first.get("instructor"),
                "room": first.get("room"),
                "building": first.get("building"),
                "time_slot": first.get("time_slot"),
                "credit_hours": first.get("credit_hours") or len(set(weekdays)),
                "weekdays": weekdays,
                "schedule": schedule,
                "start_date": start_date,
                "end_date": end_date,
            }
        )
    return inputs
