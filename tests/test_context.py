import tempfile
import unittest

from absencetracker import attendance, courses
from absencetracker.context import Collection, load_state, migrate_legacy, open_state
from absencetracker.model import COURSE_COLORS, SessionStatus
from absencetracker.storage import (
    ACTIVE_SEMESTER_KEY,
    ATTENDANCE_KEY,
    COURSES_KEY,
    NOTIFICATION_SETTINGS_KEY,
    SEMESTERS_KEY,
    JsonFileStore,
    MemoryStore,
)


class FailingStore(MemoryStore):
    """Accepts reads, refuses every write."""

    def save(self, key, value):
        return False


class TestCollection(unittest.TestCase):
    def test_replace_bumps_version(self) -> None:
        col = Collection([1, 2])
        self.assertEqual(col.version, 0)
        col.replace([3])
        self.assertEqual(list(col), [3])
        self.assertEqual(col.version, 1)

    def test_remove_where(self) -> None:
        col = Collection([1, 2, 3])
        self.assertEqual(col.remove_where(lambda x: x > 1), 2)
        self.assertEqual(col.items, (1,))
        self.assertEqual(col.remove_where(lambda x: x > 5), 0)
        self.assertEqual(col.version, 1)


class TestLoadState(unittest.TestCase):
    def test_corrupt_values_fall_back_to_defaults(self) -> None:
        store = MemoryStore(
            {
                COURSES_KEY: {"not": "a list"},
                ATTENDANCE_KEY: ["junk", {"id": "a"}],
                ACTIVE_SEMESTER_KEY: 42,
                NOTIFICATION_SETTINGS_KEY: "on",
            }
        )
        state = load_state(store)
        self.assertEqual(len(state.courses), 0)
        self.assertEqual(len(state.attendance), 0)
        self.assertIsNone(state.active_semester_id)
        self.assertFalse(state.notification_settings.enabled)

    def test_unknown_fields_are_ignored(self) -> None:
        store = MemoryStore({SEMESTERS_KEY: [{"id": "semester-1", "name": "Fall", "legacy": True}]})
        state = load_state(store)
        self.assertEqual(state.semesters.items[0].name, "Fall")

    def test_state_survives_reopen(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            state = open_state(JsonFileStore(d))
            course = courses.register(
                state,
                {"name": "Operating Systems", "weekdays": [1, 3], "start_date": "2024-01-01", "end_date": "2024-01-31"},
            ).value
            attendance.toggle_session(state, course.id, "2024-01-02", SessionStatus.PROXY)

            reopened = open_state(JsonFileStore(d))
            self.assertEqual(reopened.active_semester_id, state.active_semester_id)
            self.assertEqual(reopened.active_courses()[0].id, course.id)
            self.assertEqual(reopened.active_attendance()[0].status, SessionStatus.PROXY)

    def test_failed_writes_keep_memory_state(self) -> None:
        state = open_state(FailingStore())
        with self.assertLogs("absencetracker.context", level="WARNING"):
            result = courses.register(state, {"name": "Ethics", "weekdays": [0]})
        self.assertTrue(result.ok)
        self.assertEqual(len(state.active_courses()), 1)


class TestMigrateLegacy(unittest.TestCase):
    def test_old_records_get_semester_color_and_short_name(self) -> None:
        store = MemoryStore(
            {
                COURSES_KEY: [
                    {
                        "id": "c1",
                        "semester_id": None,
                        "name": "Operating Systems",
                        "weekdays": [1],
                        "start_date": "2024-01-01",
                        "end_date": "2024-01-31",
                    },
                    {
                        "id": "c2",
                        "semester_id": None,
                        "name": "Ethics",
                        "weekdays": [2],
                        "start_date": "2024-01-01",
                        "end_date": "2024-01-31",
                    },
                ],
                ATTENDANCE_KEY: [
                    {"id": "a1", "course_id": "c1", "semester_id": None, "date": "2024-01-02", "status": "absent"}
                ],
            }
        )
        state = open_state(store)
        sid = state.active_semester_id

        self.assertEqual([c.semester_id for c in state.courses], [sid, sid])
        self.assertEqual([c.color for c in state.courses], [COURSE_COLORS[0][0], COURSE_COLORS[1][0]])
        self.assertEqual([c.short_name for c in state.courses], ["OS", "ETHICS"])
        self.assertEqual(state.attendance.items[0].semester_id, sid)
        self.assertEqual(store.load(COURSES_KEY)[0]["semester_id"], sid)

        # second run finds nothing to do
        self.assertFalse(migrate_legacy(state))


if __name__ == "__main__":
    unittest.main()
