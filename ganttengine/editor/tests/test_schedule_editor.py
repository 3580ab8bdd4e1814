import tempfile
import unittest
from datetime import date
from pathlib import Path
from ganttengine.editor.schedule_editor import HistoryEntry, JsonFilePersistence, ScheduleEditor
from ganttengine.store.task_model import DependencyType
from ganttengine.store.task_store import TaskStore
from ganttengine.store.task_table import parse_task_table
from ganttengine.utils.dedent_strip import dedent_strip

class RecordingPersistence:
    def __init__(self, succeed: bool = True):
        self.saved: list[TaskStore] = []
        self.succeed = succeed

    def save(self, store: TaskStore) -> bool:
        self.saved.append(store)
        return self.succeed

class RecordingHistory:
    def __init__(self):
        self.entries: list[HistoryEntry] = []

    def record(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)

def _store():
    return parse_task_table(dedent_strip("""
        Task;Name;Duration;Start;Predecessor
        A;Plan;2;2024-03-04;-
        B;Do;3;;-
        C;Check;1;;-
    """))

class TestScheduleEditor(unittest.TestCase):
    def test_successful_change_is_recorded_and_saved(self):
        # Arrange
        persistence = RecordingPersistence()
        history = RecordingHistory()
        editor = ScheduleEditor(_store(), persistence=persistence, history=history)

        # Act
        result = editor.link(["A", "B", "C"])

        # Assert
        self.assertTrue(result.success)
        self.assertIs(editor.store, result.store)
        self.assertEqual(len(history.entries), 1)
        entry = history.entries[0]
        self.assertEqual(entry.description, "Link A, B, C")
        self.assertEqual(entry.before_state["dependencies"], [])
        self.assertEqual(len(entry.after_state["dependencies"]), 2)
        self.assertEqual(persistence.saved, [editor.store])

    def test_no_change_is_not_recorded(self):
        history = RecordingHistory()
        editor = ScheduleEditor(_store(), history=history)
        editor.link(["A", "B"])
        editor.link(["A", "B"])
        self.assertEqual(len(history.entries), 1)

    def test_failed_operation_is_not_applied(self):
        # Arrange
        persistence = RecordingPersistence()
        editor = ScheduleEditor(_store(), persistence=persistence)
        before = editor.store.to_dict()

        # Act
        result = editor.indent(["A"])

        # Assert
        self.assertFalse(result.success)
        self.assertEqual(editor.store.to_dict(), before)
        self.assertEqual(persistence.saved, [])

    def test_indent_keeps_the_tasks_that_moved(self):
        # Arrange
        history = RecordingHistory()
        editor = ScheduleEditor(_store(), history=history)

        # Act
        result = editor.indent(["A", "B"])

        # Assert
        self.assertFalse(result.success)
        self.assertEqual([error.task_id for error in result.errors], ["A"])
        self.assertEqual(editor.store.require("B").parent_id, "A")
        self.assertEqual(len(history.entries), 1)

    def test_outdent_keeps_the_tasks_that_moved(self):
        editor = ScheduleEditor(_store())
        editor.indent(["B"])
        result = editor.outdent(["A", "B"])
        self.assertFalse(result.success)
        self.assertIsNone(editor.store.require("B").parent_id)
        self.assertEqual(editor.store.require("B").level, 0)
        self.assertFalse(editor.store.require("A").is_summary)

    def test_link_then_reschedule(self):
        editor = ScheduleEditor(_store())
        editor.link(["A", "B", "C"])
        result = editor.reschedule()
        self.assertTrue(result.success)
        self.assertEqual(editor.store.require("B").start_date, date(2024, 3, 5))
        self.assertEqual(editor.store.require("C").start_date, date(2024, 3, 7))

    def test_update_lag_and_hierarchy(self):
        editor = ScheduleEditor(_store())
        editor.add_dependency("A", "B", DependencyType.SS)
        editor.update_lag("A", "B", "+1d")
        editor.indent(["B", "C"])
        self.assertEqual(editor.store.find_dependency("A", "B").lag, "+1d")
        self.assertEqual(editor.store.require("A").children, ["B", "C"])
        editor.outdent(["C"])
        self.assertIsNone(editor.store.require("C").parent_id)

    def test_validate_and_auto_fix(self):
        history = RecordingHistory()
        editor = ScheduleEditor(_store(), history=history)
        issues = editor.validate_logic().issues
        self.assertEqual(history.entries, [])
        result = editor.auto_fix([issue.issue_id for issue in issues])
        self.assertGreater(result.fixed_count, 0)
        self.assertEqual(len(history.entries), 1)
        self.assertEqual(len(editor.store.dependencies), 2)

    def test_save_failure_keeps_the_change(self):
        editor = ScheduleEditor(_store(), persistence=RecordingPersistence(succeed=False))
        editor.link(["A", "B"])
        self.assertEqual(len(editor.store.dependencies), 1)

class TestJsonFilePersistence(unittest.TestCase):
    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            # Arrange
            path = Path(tmpdir) / "schedule.json"
            persistence = JsonFilePersistence(path)
            editor = ScheduleEditor(_store(), persistence=persistence)

            # Act
            editor.link(["A", "B"])
            loaded = persistence.load()

            # Assert
            self.assertEqual(loaded.to_dict(), editor.store.to_dict())

    def test_save_to_missing_directory(self):
        persistence = JsonFilePersistence("/no/such/dir/for/ganttengine/schedule.json")
        self.assertFalse(persistence.save(_store()))
