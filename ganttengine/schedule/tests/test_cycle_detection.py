import unittest
from ganttengine.errors import ValidationError
from ganttengine.schedule.cycle_detection import detect_circular_dependencies, format_cycle, topological_order
from ganttengine.store.task_table import parse_task_table
from ganttengine.utils.dedent_strip import dedent_strip

class TestCycleDetection(unittest.TestCase):
    def test_acyclic(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Predecessor
            A;1;-
            B;1;A
            C;1;A,B
        """))
        self.assertEqual(detect_circular_dependencies(store), [])

    def test_two_task_cycle(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Predecessor
            A;1;B
            B;1;A
        """))
        cycles = detect_circular_dependencies(store)
        self.assertEqual(cycles, [["A", "B", "A"]])
        self.assertEqual(format_cycle(cycles[0]), "A → B → A")

    def test_longer_cycle_reported_once(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Predecessor
            A;1;C
            B;1;A
            C;1;B
            D;1;C
        """))
        self.assertEqual(detect_circular_dependencies(store), [["A", "B", "C", "A"]])

    def test_long_chain_does_not_hit_recursion_limit(self):
        rows = ["Task;Duration;Predecessor", "T0;1;-"]
        rows += [f"T{i};1;T{i - 1}" for i in range(1, 1500)]
        store = parse_task_table("\n".join(rows))
        self.assertEqual(detect_circular_dependencies(store), [])

class TestTopologicalOrder(unittest.TestCase):
    def test_ties_broken_by_document_order(self):
        # Arrange
        store = parse_task_table(dedent_strip("""
            Task;Duration;Predecessor
            A;1;D
            B;1;-
            C;1;-
            D;1;-
        """))

        # Act
        order = topological_order(store)

        # Assert
        self.assertEqual(order, ["B", "C", "D", "A"])

    def test_containment_puts_summary_after_children(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Parent;Predecessor
            P;0;;-
            A;1;P;-
            B;1;P;A
        """))
        self.assertEqual(topological_order(store), ["P", "A", "B"])
        self.assertEqual(topological_order(store, include_containment=True), ["A", "B", "P"])

    def test_containment_puts_summary_predecessor_before_children(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Parent;Predecessor
            S;0;;X
            A;1;S;-
            B;1;S;A
            X;1;;-
        """))
        self.assertEqual(topological_order(store), ["A", "X", "B", "S"])
        self.assertEqual(topological_order(store, include_containment=True), ["X", "A", "B", "S"])

    def test_cycle_raises(self):
        store = parse_task_table(dedent_strip("""
            Task;Duration;Predecessor
            A;1;B
            B;1;A
            C;1;-
        """))
        with self.assertRaises(ValidationError) as cm:
            topological_order(store)
        self.assertIn("A, B", cm.exception.message)
