"""
Unit tests for the attendance ledger (toggle, undo, bulk marking).

Courses used below, January 2024:
- OS   Tue/Thu
- DB   Tue
- LAB  Mon, two back-to-back sessions
"""

import unittest

from absencetracker import attendance, courses, semesters
from absencetracker.context import open_state
from absencetracker.model import SessionStatus
from absencetracker.storage import ATTENDANCE_KEY, MemoryStore

TUESDAY = "2024-01-02"
THURSDAY = "2024-01-04"
MONDAY = "2024-01-08"
SATURDAY = "2024-01-06"


def course_input(name: str, weekdays):
    return {"name": name, "weekdays": weekdays, "start_date": "2024-01-01", "end_date": "2024-01-31"}


class AttendanceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryStore()
        self.state = open_state(self.store)
        self.os = courses.register(self.state, course_input("Operating Systems", [1, 3])).value
        self.db = courses.register(self.state, course_input("Database Systems", [1])).value
        self.lab = courses.register(self.state, course_input("Networks Lab", [0, 0])).value

    def snapshot(self):
        return sorted((r.id, r.course_id, r.date, r.status) for r in self.state.active_attendance())


class TestToggleSession(AttendanceTestCase):
    def test_mark_and_reset(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.ABSENT)
        records = attendance.records_for(self.state, self.os.id, TUESDAY)
        self.assertEqual([r.status for r in records], [SessionStatus.ABSENT])
        self.assertFalse(records[0].is_override)
        self.assertEqual(len(self.store.load(ATTENDANCE_KEY)), 1)

        attendance.toggle_session(self.state, self.os.id, TUESDAY, None)
        self.assertEqual(attendance.records_for(self.state), [])

    def test_present_without_record_stores_nothing(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.PRESENT)
        attendance.toggle_session(self.state, self.os.id, TUESDAY, None)
        self.assertEqual(attendance.records_for(self.state), [])

    def test_overwrite_sets_override(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.ABSENT)
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.CANCELLED)
        records = attendance.records_for(self.state, self.os.id)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].status, SessionStatus.CANCELLED)
        self.assertTrue(records[0].is_override)

    def test_overwrite_leaves_earlier_copies_alone(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.ABSENT)
        old = self.state.active_attendance()[0]
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.PROXY)
        self.assertEqual(old.status, SessionStatus.ABSENT)
        self.assertFalse(old.is_override)
        self.assertEqual(self.state.active_attendance()[0].status, SessionStatus.PROXY)

    def test_manual_marks_are_not_undoable(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.ABSENT)
        self.assertIsNone(self.state.undo_entry)
        self.assertFalse(attendance.undo(self.state))


class TestToggleDay(AttendanceTestCase):
    def test_present_day_becomes_absent(self) -> None:
        entry = attendance.toggle_day(self.state, TUESDAY)
        self.assertEqual(entry.description, "Marked 2 courses absent")
        self.assertEqual(entry.courses_count, 2)
        self.assertEqual(entry.previous_state, [])
        self.assertEqual(
            sorted(r.course_id for r in attendance.records_for(self.state, day=TUESDAY)),
            sorted([self.os.id, self.db.id]),
        )

    def test_absent_day_becomes_present(self) -> None:
        attendance.toggle_day(self.state, TUESDAY)
        entry = attendance.toggle_day(self.state, TUESDAY)
        self.assertEqual(entry.description, "Marked 2 courses present")
        self.assertEqual(attendance.records_for(self.state, day=TUESDAY), [])

    def test_mixed_day_is_cleared(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.CANCELLED)
        attendance.toggle_day(self.state, TUESDAY)
        self.assertEqual(attendance.records_for(self.state, day=TUESDAY), [])

    def test_back_to_back_sessions_get_one_record_each(self) -> None:
        entry = attendance.toggle_day(self.state, MONDAY)
        self.assertEqual(entry.description, "Marked 1 course absent")
        self.assertEqual(len(attendance.records_for(self.state, self.lab.id, MONDAY)), 2)

    def test_day_without_classes(self) -> None:
        self.assertIsNone(attendance.toggle_day(self.state, SATURDAY))
        self.assertIsNone(self.state.undo_entry)
        self.assertEqual(attendance.records_for(self.state), [])

    def test_other_dates_untouched(self) -> None:
        attendance.toggle_session(self.state, self.os.id, THURSDAY, SessionStatus.ABSENT)
        attendance.toggle_day(self.state, TUESDAY)
        attendance.toggle_day(self.state, TUESDAY)
        self.assertEqual(len(attendance.records_for(self.state, day=THURSDAY)), 1)


class TestUndo(AttendanceTestCase):
    def test_undo_restores_previous_records(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.CANCELLED)
        attendance.toggle_session(self.state, self.os.id, THURSDAY, SessionStatus.ABSENT)
        before = self.snapshot()

        attendance.toggle_day(self.state, TUESDAY)
        self.assertNotEqual(self.snapshot(), before)

        self.assertTrue(attendance.undo(self.state))
        self.assertEqual(self.snapshot(), before)
        self.assertIsNone(self.state.undo_entry)
        self.assertFalse(attendance.undo(self.state))

    def test_undo_of_absent_toggle(self) -> None:
        attendance.toggle_day(self.state, TUESDAY)
        self.assertTrue(attendance.undo(self.state))
        self.assertEqual(attendance.records_for(self.state), [])

    def test_only_last_toggle_is_undoable(self) -> None:
        attendance.toggle_day(self.state, TUESDAY)
        attendance.toggle_day(self.state, THURSDAY)

        self.assertTrue(attendance.undo(self.state))
        self.assertEqual(attendance.records_for(self.state, day=THURSDAY), [])
        self.assertEqual(len(attendance.records_for(self.state, day=TUESDAY)), 2)
        self.assertFalse(attendance.undo(self.state))

    def test_undo_skips_deleted_courses(self) -> None:
        attendance.toggle_session(self.state, self.db.id, TUESDAY, SessionStatus.ABSENT)
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.ABSENT)
        attendance.toggle_day(self.state, TUESDAY)
        courses.delete(self.state, self.db.id)

        self.assertTrue(attendance.undo(self.state))
        self.assertEqual(
            [r.course_id for r in attendance.records_for(self.state, day=TUESDAY)],
            [self.os.id],
        )

    def test_undo_stays_in_its_semester(self) -> None:
        first = self.state.active_semester_id
        attendance.toggle_day(self.state, TUESDAY)
        semesters.create(self.state, "Spring")

        self.assertTrue(attendance.undo(self.state))
        self.assertEqual(self.state.attendance.in_semester(first), [])
        self.assertEqual(self.state.active_attendance(), [])


class TestBulk(AttendanceTestCase):
    def test_mark_days_absent(self) -> None:
        created = attendance.mark_days_absent(self.state, [TUESDAY, THURSDAY, SATURDAY, TUESDAY])
        # Tue: OS + DB, Thu: OS, Sat: nothing
        self.assertEqual(created, 3)
        self.assertIsNone(self.state.undo_entry)

    def test_mark_days_absent_replaces_existing(self) -> None:
        attendance.toggle_session(self.state, self.os.id, TUESDAY, SessionStatus.CANCELLED)
        attendance.mark_days_absent(self.state, [TUESDAY])
        statuses = [r.status for r in attendance.records_for(self.state, self.os.id, TUESDAY)]
        self.assertEqual(statuses, [SessionStatus.ABSENT])

    def test_mark_no_days(self) -> None:
        self.assertEqual(attendance.mark_days_absent(self.state, []), 0)

    def test_clear(self) -> None:
        attendance.toggle_day(self.state, TUESDAY)
        self.assertEqual(attendance.clear(self.state), 2)
        self.assertEqual(attendance.records_for(self.state), [])
        self.assertIsNone(self.state.undo_entry)
        self.assertEqual(self.store.load(ATTENDANCE_KEY), [])


if __name__ == "__main__":
    unittest.main()
