"""
Unit tests for the timetable importer.

The sample sheets mimic the published layout: four header rows, then one
row per room with nine slot cells.
"""

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from absencetracker import courses
from absencetracker.context import open_state
from absencetracker.storage import MemoryStore
from absencetracker.timetable import (
    TimetableError,
    fetch_day_sheet,
    fetch_timetable,
    load_day_sheets,
    load_timetable,
    parse_cell_entry,
    parse_day_csv,
    parse_day_html,
    parse_timetable,
    section_course_inputs,
)

MONDAY_CSV = '''Timetable Fall 2024,,,,,,,,,
,1,2,3,4,5,6,7,8,9
,08:00-08:50,08:55-09:45,09:50-10:40,10:45-11:35,11:40-12:30,12:35-13:25,13:30-14:20,14:25-15:15,15:20-16:05
CLASSROOMS,,,,,,,,,
E-1,"DAA BCS-5B
Fahad Sherwani","DAA BCS-5B
Fahad Sherwani",,,"DBS BCS-5A
Javeria Farooq",,,,
,,Reserved,,,,,,,
'''

WEDNESDAY_CSV = '''Timetable Fall 2024,,,,,,,,,
,1,2,3,4,5,6,7,8,9
,08:00-08:50,08:55-09:45,09:50-10:40,10:45-11:35,11:40-12:30,12:35-13:25,13:30-14:20,14:25-15:15,15:20-16:05
CLASSROOMS,,,,,,,,,
E-3,,,"DAA BCS-5B
Fahad Sherwani",,,,,,
'''

TUESDAY_HTML = """
<html><body><table>
<tr><td>Timetable Fall 2024</td></tr>
<tr><td></td><td>1</td><td>2</td></tr>
<tr><td></td><td>08:00-08:50</td><td>08:55-09:45</td></tr>
<tr><th>CLASSROOMS</th></tr>
<tr><td>C-301</td><td>OS BCS-3C<br/>Ali Khan</td><td></td></tr>
<tr><td></td><td></td><td>SE BCS-3C</td></tr>
</table></body></html>
"""


class TestParsing(unittest.TestCase):
    def test_parse_cell_entry(self) -> None:
        entry = parse_cell_entry("DBS BCS-5A\nJaveria Farooq", " E-1 ", "Monday", 5)
        self.assertEqual(entry["course_code"], "DBS")
        self.assertEqual(entry["course_name"], "Database Systems")
        self.assertEqual(entry["section"], "BCS-5A")
        self.assertEqual(entry["instructor"], "Javeria Farooq")
        self.assertEqual(entry["room"], "E-1")
        self.assertEqual(entry["time_slot"], "11:40-12:30")

    def test_skipped_cells(self) -> None:
        self.assertIsNone(parse_cell_entry("", "E-1", "Monday", 1))
        self.assertIsNone(parse_cell_entry("Reserved for FSC", "E-1", "Monday", 1))
        self.assertIsNone(parse_cell_entry("lunch break", "E-1", "Monday", 1))

    def test_parse_day_csv(self) -> None:
        entries = parse_day_csv(MONDAY_CSV, "Monday")
        self.assertEqual(
            [(e["course_code"], e["slot_number"]) for e in entries],
            [("DAA", 1), ("DAA", 2), ("DBS", 5)],
        )

    def test_parse_day_html(self) -> None:
        entries = parse_day_html(TUESDAY_HTML, "Tuesday")
        self.assertEqual(len(entries), 2)
        self.assertEqual(entries[0]["instructor"], "Ali Khan")
        # blank room column continues the room above
        self.assertEqual(entries[1]["room"], "C-301")
        self.assertEqual(entries[1]["instructor"], "TBA")

    def test_html_without_table(self) -> None:
        self.assertEqual(parse_day_html("<p>closed</p>", "Monday"), [])

    def test_parse_timetable_groups_by_section(self) -> None:
        sections = parse_timetable({"Monday": MONDAY_CSV, "Wednesday": WEDNESDAY_CSV})
        self.assertEqual(sorted(sections), ["BCS-5A", "BCS-5B"])
        self.assertEqual(len(sections["BCS-5B"]), 3)
        # DAA meets on two distinct days
        self.assertEqual({e["credit_hours"] for e in sections["BCS-5B"]}, {2})
        self.assertEqual(sections["BCS-5A"][0]["credit_hours"], 1)


class TestSectionCourseInputs(unittest.TestCase):
    def setUp(self) -> None:
        self.sections = parse_timetable({"Monday": MONDAY_CSV, "Wednesday": WEDNESDAY_CSV})

    def test_consecutive_slots_are_one_session(self) -> None:
        inputs = section_course_inputs(self.sections, "bcs-5b", "2024-01-01", "2024-01-31")
        self.assertEqual(len(inputs), 1)
        daa = inputs[0]
        self.assertEqual(daa["course_code"], "DAA")
        self.assertEqual(daa["section"], "BCS-5B")
        self.assertEqual(daa["weekdays"], [0, 2])
        self.assertEqual(
            [(s["day"], s["start_time"], s["end_time"], s["slot_count"]) for s in daa["schedule"]],
            [("Monday", "08:00", "09:45", 2), ("Wednesday", "09:50", "10:40", 1)],
        )

    def test_unknown_section(self) -> None:
        with self.assertRaises(TimetableError):
            section_course_inputs(self.sections, "BCS-9Z")

    def test_inputs_register_cleanly(self) -> None:
        state = open_state(MemoryStore())
        inputs = section_course_inputs(self.sections, "BCS-5B", "2024-01-01", "2024-01-31")
        result = courses.register_many(state, inputs)
        self.assertEqual(len(result.added), 1)
        course = result.added[0]
        self.assertEqual(course.short_name, "DAA")
        self.assertEqual(course.credit_hours, 2)
        # Mondays and Wednesdays in January 2024: 5 + 5 sessions
        self.assertEqual(course.allowed_absences, 2)

        again = courses.register_many(state, inputs)
        self.assertEqual(len(again.duplicates), 1)


class TestSources(unittest.TestCase):
    def test_fetch_timetable(self) -> None:
        resp = mock.Mock()
        resp.json.return_value = {"success": True, "data": {"bcs-5b": [{"course_code": "DAA"}]}}
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp) as get:
            sections = fetch_timetable("https://example.org/timetable.json")
        get.assert_called_once()
        resp.raise_for_status.assert_called_once()
        self.assertEqual(sections, {"BCS-5B": [{"course_code": "DAA"}]})

    def test_fetch_network_error(self) -> None:
        with mock.patch(
            "absencetracker.timetable.requests.get",
            side_effect=requests.ConnectionError("offline"),
        ):
            with self.assertRaises(TimetableError):
                fetch_timetable("https://example.org/timetable.json")

    def test_fetch_invalid_json(self) -> None:
        resp = mock.Mock()
        resp.json.side_effect = ValueError("no json")
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp):
            with self.assertRaises(TimetableError):
                fetch_timetable("https://example.org/timetable.json")

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "timetable.json"
            p.write_text(json.dumps({"BCS-5A": [{"course_code": "DBS"}]}), encoding="utf-8")
            self.assertEqual(load_timetable(str(p)), {"BCS-5A": [{"course_code": "DBS"}]})

            p.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(TimetableError):
                load_timetable(str(p))

    def test_missing_file(self) -> None:
        with self.assertRaises(TimetableError):
            load_timetable("/nonexistent/timetable.json")

    def test_entries_without_code_are_dropped(self) -> None:
        payload = {
            "data": {
                "bcs-5b": [{"course_code": "DAA", "day": "Monday"}, {"day": "Monday"}, "DBS", None],
                "bcs-5c": [{"course_code": ""}],
            }
        }
        resp = mock.Mock()
        resp.json.return_value = payload
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp):
            with self.assertLogs("absencetracker.timetable", level="WARNING"):
                sections = fetch_timetable("https://example.org/timetable.json")
        self.assertEqual(sections, {"BCS-5B": [{"course_code": "DAA", "day": "Monday"}]})

    def test_fetch_day_sheet(self) -> None:
        resp = mock.Mock()
        resp.text = TUESDAY_HTML
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp) as get:
            entries = fetch_day_sheet("https://example.org/tuesday.html", "Tuesday")
        get.assert_called_once()
        resp.raise_for_status.assert_called_once()
        self.assertEqual([e["course_code"] for e in entries], ["OS", "SE"])

    def test_fetch_day_sheet_network_error(self) -> None:
        with mock.patch(
            "absencetracker.timetable.requests.get",
            side_effect=requests.ConnectionError("offline"),
        ):
            with self.assertRaises(TimetableError):
                fetch_day_sheet("https://example.org/tuesday.html", "Tuesday")


class TestDaySheets(unittest.TestCase):
    def test_load_files(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            monday = Path(d) / "monday.csv"
            monday.write_text(MONDAY_CSV, encoding="utf-8")
            wednesday = Path(d) / "wednesday.csv"
            wednesday.write_text(WEDNESDAY_CSV, encoding="utf-8")
            tuesday = Path(d) / "tuesday.html"
            tuesday.write_text(TUESDAY_HTML, encoding="utf-8")

            sections = load_day_sheets({"mon": str(monday), "Wednesday": str(wednesday), "TUE": str(tuesday)})

        self.assertEqual(sorted(sections), ["BCS-3C", "BCS-5A", "BCS-5B"])
        # day names are normalized before parsing
        self.assertEqual({e["day"] for e in sections["BCS-5B"]}, {"Monday", "Wednesday"})
        self.assertEqual({e["credit_hours"] for e in sections["BCS-5B"]}, {2})
        self.assertEqual({e["day"] for e in sections["BCS-3C"]}, {"Tuesday"})

    def test_csv_url(self) -> None:
        resp = mock.Mock()
        resp.text = MONDAY_CSV
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp):
            sections = load_day_sheets({"Monday": "https://example.org/monday.csv"})
        self.assertEqual(len(sections["BCS-5B"]), 2)

    def test_html_url(self) -> None:
        resp = mock.Mock()
        resp.text = TUESDAY_HTML
        with mock.patch("absencetracker.timetable.requests.get", return_value=resp):
            sections = load_day_sheets({"Tuesday": "https://example.org/tuesday"})
        inputs = section_course_inputs(sections, "BCS-3C", "2024-01-01", "2024-01-31")
        self.assertEqual([i["course_code"] for i in inputs], ["OS", "SE"])
        self.assertEqual(inputs[0]["weekdays"], [1])

    def test_unknown_day(self) -> None:
        with self.assertRaises(TimetableError):
            load_day_sheets({"Someday": "monday.csv"})

    def test_unreadable_file(self) -> None:
        with self.assertRaises(TimetableError):
            load_day_sheets({"Monday": "/nonexistent/monday.csv"})



if __name__ == "__main__":
    unittest.main()
