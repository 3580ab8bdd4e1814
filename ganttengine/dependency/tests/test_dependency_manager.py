import unittest
from ganttengine.dependency.dependency_manager import (
    add_dependency, can_link, can_manage_lag, can_unlink, dependencies_among, link, unlink, update_lag
)
from ganttengine.errors import NotFoundError, ValidationError
from ganttengine.store.task_model import DependencyType
from ganttengine.store.task_table import parse_task_table
from ganttengine.utils.dedent_strip import dedent_strip

def _store(predecessors: str = "-;-;-;-"):
    a, b, c, d = predecessors.split(";")
    return parse_task_table(dedent_strip(f"""
        Task;Duration;Predecessor
        A;1;{a}
        B;2;{b}
        C;3;{c}
        D;4;{d}
    """))

class TestLink(unittest.TestCase):
    def test_link_chains_in_document_order(self):
        # Act
        result = link(_store(), ["C", "A", "B"])

        # Assert
        self.assertTrue(result.success)
        keys = [edge.key for edge in result.store.dependencies]
        self.assertEqual(keys, [("A", "B", DependencyType.FS), ("B", "C", DependencyType.FS)])
        self.assertTrue(all(edge.lag == "0d" for edge in result.created))

    def test_link_is_idempotent(self):
        once = link(_store(), ["A", "B", "C"])
        twice = link(once.store, ["A", "B", "C"])
        self.assertEqual(twice.created, [])
        self.assertEqual(twice.store.to_dict(), once.store.to_dict())

    def test_link_skips_pairs_connected_the_other_way(self):
        result = link(_store("B;-;-;-"), ["A", "B"])
        self.assertTrue(result.success)
        self.assertEqual(result.created, [])

    def test_link_refuses_cycle(self):
        # Arrange, C -> A already exists, linking A -> B -> C would close a loop.
        store = _store("C;-;-;-")

        # Act
        result = link(store, ["A", "B", "C"])

        # Assert
        self.assertFalse(result.success)
        self.assertIsInstance(result.errors[0], ValidationError)
        self.assertIn("circular", result.errors[0].message)
        self.assertIsNone(result.store.find_dependency("B", "C"))
        self.assertIsNotNone(result.store.find_dependency("A", "B"))

    def test_link_unknown_id(self):
        result = link(_store(), ["A", "X"])
        self.assertIsInstance(result.errors[0], NotFoundError)

    def test_can_link_accounts_for_earlier_pairs(self):
        self.assertTrue(can_link(_store(), ["A", "B", "C"]))
        self.assertFalse(can_link(_store("C;-;-;-"), ["A", "B", "C"]))
        self.assertFalse(can_link(_store(), ["A"]))

class TestUnlink(unittest.TestCase):
    def test_unlink_removes_edges_between_selected_pairs(self):
        # Arrange
        store = _store("-;A;A,B;C")

        # Act
        result = unlink(store, ["A", "B", "C"])

        # Assert
        self.assertEqual(len(result.removed), 3)
        remaining = [edge.key for edge in result.store.dependencies]
        self.assertEqual(remaining, [("C", "D", DependencyType.FS)])
        self.assertEqual(len(store.dependencies), 4)

    def test_can_unlink(self):
        self.assertTrue(can_unlink(_store("-;A;-;-"), ["B", "A"]))
        self.assertFalse(can_unlink(_store("-;A;-;-"), ["A", "C"]))

class TestUpdateLag(unittest.TestCase):
    def test_update_lag(self):
        result = update_lag(_store("-;A;-;-"), "A", "B", "+2d")
        self.assertTrue(result.success)
        edge = result.store.find_dependency("A", "B")
        self.assertEqual(edge.lag, "+2d")
        self.assertEqual(edge.type, DependencyType.FS)

    def test_update_lag_and_type(self):
        result = update_lag(_store("-;A;-;-"), "A", "B", "-1.5d", DependencyType.SS)
        self.assertTrue(result.success)
        self.assertEqual(len(result.store.dependencies), 1)
        edge = result.store.dependencies[0]
        self.assertEqual(edge.key, ("A", "B", DependencyType.SS))
        self.assertEqual(edge.lag, "-1.5d")

    def test_invalid_lag(self):
        for lag in ["2", "d2", "++1d"]:
            with self.subTest(lag=lag):
                result = update_lag(_store("-;A;-;-"), "A", "B", lag)
                self.assertFalse(result.success)
                self.assertIsInstance(result.errors[0], ValidationError)
                self.assertEqual(result.store.find_dependency("A", "B").lag, "0d")

    def test_missing_edge(self):
        result = update_lag(_store(), "A", "B", "1d")
        self.assertIsInstance(result.errors[0], NotFoundError)

    def test_can_manage_lag(self):
        store = _store("-;A;-;-")
        self.assertTrue(can_manage_lag(store, ["A", "B"]))
        self.assertFalse(can_manage_lag(store, ["A", "C"]))
        self.assertEqual(len(dependencies_among(store, ["B", "A"])), 1)

class TestAddDependency(unittest.TestCase):
    def test_typed_edge(self):
        result = add_dependency(_store(), "A", "C", DependencyType.FF, "+1d")
        self.assertTrue(result.success)
        self.assertEqual(result.created[0].key, ("A", "C", DependencyType.FF))

    def test_refuses_cycle_and_self_loop(self):
        self.assertFalse(add_dependency(_store("-;A;-;-"), "B", "A").success)
        self.assertFalse(add_dependency(_store(), "A", "A").success)
        self.assertFalse(add_dependency(_store(), "A", "B", lag="2").success)
