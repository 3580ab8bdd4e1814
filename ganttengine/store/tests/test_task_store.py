import unittest
from datetime import date
from decimal import Decimal
from ganttengine.errors import NotFoundError
from ganttengine.store.task_model import Dependency, DependencyType, Task
from ganttengine.store.task_store import TaskStore

def _tree_store() -> TaskStore:
    """
    P
      A
      B
        B1
    C
    """
    return TaskStore(tasks=[
        Task(id="P", is_summary=True, children=["A", "B"]),
        Task(id="A", level=1, parent_id="P"),
        Task(id="B", level=1, parent_id="P", is_summary=True, children=["B1"]),
        Task(id="B1", level=2, parent_id="B"),
        Task(id="C"),
    ])

class TestTaskStore(unittest.TestCase):
    def test_duplicate_task_id(self):
        store = TaskStore(tasks=[Task(id="A")])
        with self.assertRaises(ValueError):
            store.add_task(Task(id="A"))

    def test_require_unknown(self):
        store = TaskStore()
        with self.assertRaises(NotFoundError) as cm:
            store.require("X")
        self.assertEqual(cm.exception.task_id, "X")

    def test_document_order(self):
        store = _tree_store()
        self.assertEqual(store.in_document_order(["C", "A", "X", "A"]), ["A", "C"])
        self.assertEqual(store.unknown_ids(["C", "X", "Y", "X"]), ["X", "Y"])

    def test_containment_queries(self):
        store = _tree_store()
        self.assertEqual([t.id for t in store.ancestors("B1")], ["B", "P"])
        self.assertEqual([t.id for t in store.descendants("P")], ["A", "B", "B1"])
        self.assertEqual([t.id for t in store.children_of("B")], ["B1"])
        self.assertIsNone(store.parent_of("C"))

    def test_check_hierarchy_valid(self):
        self.assertEqual(_tree_store().check_hierarchy(), [])

    def test_check_hierarchy_detects_problems(self):
        # Arrange
        store = TaskStore(tasks=[
            Task(id="P", children=["A"]),
            Task(id="A", level=3, parent_id="P"),
            Task(id="B", parent_id="P", level=1),
        ])

        # Act
        problems = store.check_hierarchy()

        # Assert
        messages = "\n".join(problem.message for problem in problems)
        self.assertIn("has level 3, expected 1", messages)
        self.assertIn("'B' is missing from the children of 'P'", messages)
        self.assertIn("has children but is not a summary", messages)

    def test_add_dependency_unknown_endpoint(self):
        store = TaskStore(tasks=[Task(id="A")])
        with self.assertRaises(NotFoundError):
            store.add_dependency(Dependency(predecessor_id="A", successor_id="B"))

    def test_add_dependency_duplicate_key(self):
        store = TaskStore(tasks=[Task(id="A"), Task(id="B")])
        store.add_dependency(Dependency(predecessor_id="A", successor_id="B"))
        with self.assertRaises(ValueError):
            store.add_dependency(Dependency(predecessor_id="A", successor_id="B", lag="+2d"))
        # Same endpoints with another type is a separate edge.
        store.add_dependency(Dependency(predecessor_id="A", successor_id="B", type=DependencyType.SS))
        self.assertEqual(len(store.dependencies), 2)

    def test_edge_views_are_derived(self):
        # Arrange
        store = TaskStore(tasks=[Task(id="A"), Task(id="B"), Task(id="C")])
        ab = Dependency(predecessor_id="A", successor_id="B")
        bc = Dependency(predecessor_id="B", successor_id="C", type=DependencyType.FF, lag="+1d")
        store.add_dependency(ab)
        store.add_dependency(bc)

        # Act
        store.remove_dependency(ab)

        # Assert
        self.assertEqual(store.predecessor_ids("B"), [])
        self.assertEqual(store.successor_ids("A"), [])
        self.assertEqual(store.successors("B"), [bc])
        self.assertEqual(store.find_dependency("B", "C"), bc)
        self.assertIsNone(store.find_dependency("B", "C", DependencyType.FS))

    def test_reaches(self):
        store = TaskStore(
            tasks=[Task(id="A"), Task(id="B"), Task(id="C"), Task(id="D")],
            dependencies=[
                Dependency(predecessor_id="A", successor_id="B"),
                Dependency(predecessor_id="B", successor_id="C"),
            ],
        )
        self.assertTrue(store.reaches("A", "C"))
        self.assertFalse(store.reaches("C", "A"))
        self.assertFalse(store.reaches("A", "D"))

    def test_copy_is_independent(self):
        # Arrange
        store = TaskStore(tasks=[Task(id="A", duration=Decimal("2"), start_date=date(2024, 1, 1))])

        # Act
        copy = store.copy()
        copy.require("A").start_date = date(2024, 6, 1)
        copy.add_task(Task(id="B"))

        # Assert
        self.assertEqual(store.require("A").start_date, date(2024, 1, 1))
        self.assertNotIn("B", store)

    def test_dict_roundtrip(self):
        store = _tree_store()
        store.add_dependency(Dependency(predecessor_id="A", successor_id="C", type=DependencyType.SS, lag="-1.5d"))
        restored = TaskStore.from_dict(store.to_dict())
        self.assertEqual(restored.to_dict(), store.to_dict())
        self.assertEqual(restored.task_ids, ["P", "A", "B", "B1", "C"])
