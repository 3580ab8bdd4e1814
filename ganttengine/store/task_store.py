"""
In-memory arena of tasks addressed by stable id.

The store owns two separate graphs over the same ids:
- containment, a tree given by ``Task.parent_id`` and ``Task.children``.
- dependencies, a DAG given by one list of ``Dependency`` edges.

Document order is the order in which tasks were added. Engine operations never
mutate the store they receive, they work on ``copy()`` and hand the copy back.
"""
import logging
from collections import defaultdict
from typing import Iterable, Iterator, Optional
from ganttengine.errors import NotFoundError, StructuralError
from ganttengine.store.task_model import Dependency, DependencyType, Task

logger = logging.getLogger(__name__)

class TaskStore:
    def __init__(self, tasks: Iterable[Task] = (), dependencies: Iterable[Dependency] = ()):
        self._tasks: dict[str, Task] = {}
        self._positions: dict[str, int] = {}
        self._edges: list[Dependency] = []
        self._predecessor_index: dict[str, list[Dependency]] = {}
        self._successor_index: dict[str, list[Dependency]] = {}
        self._index_dirty = True
        for task in tasks:
            self.add_task(task)
        for dependency in dependencies:
            self.add_dependency(dependency)

    # ────────────────────────────────────────────────────────────────────────
    #  Tasks
    # --------------------------------------------------------------------
    def add_task(self, task: Task) -> None:
        if not isinstance(task, Task):
            raise ValueError("task must be a Task")
        if task.id in self._tasks:
            raise ValueError(f"Duplicate task id: {task.id!r}")
        self._positions[task.id] = len(self._tasks)
        self._tasks[task.id] = task

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def task_ids(self) -> list[str]:
        return list(self._tasks.keys())

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id!r} not found", task_id=task_id)
        return task

    def index_of(self, task_id: str) -> int:
        try:
            return self._positions[task_id]
        except KeyError:
            raise NotFoundError(f"Task {task_id!r} not found", task_id=task_id)

    def in_document_order(self, task_ids: Iterable[str]) -> list[str]:
        """Known ids sorted by position, duplicates removed. Unknown ids are dropped."""
        unique = {task_id for task_id in task_ids if task_id in self._tasks}
        return sorted(unique, key=lambda task_id: self._positions[task_id])

    def unknown_ids(self, task_ids: Iterable[str]) -> list[str]:
        result: list[str] = []
        for task_id in task_ids:
            if task_id not in self._tasks and task_id not in result:
                result.append(task_id)
        return result

    # ────────────────────────────────────────────────────────────────────────
    #  Containment
    # --------------------------------------------------------------------
    def parent_of(self, task_id: str) -> Optional[Task]:
        parent_id = self.require(task_id).parent_id
        if parent_id is None:
            return None
        return self._tasks.get(parent_id)

    def children_of(self, task_id: str) -> list[Task]:
        return [self._tasks[child_id] for child_id in self.require(task_id).children if child_id in self._tasks]

    def ancestors(self, task_id: str) -> list[Task]:
        """Parent first, root last."""
        result: list[Task] = []
        seen = {task_id}
        parent = self.parent_of(task_id)
        while parent is not None and parent.id not in seen:
            result.append(parent)
            seen.add(parent.id)
            parent = self.parent_of(parent.id)
        return result

    def descendants(self, task_id: str) -> list[Task]:
        """All tasks below task_id, depth first in children order."""
        result: list[Task] = []
        seen = {task_id}
        stack = list(reversed(self.children_of(task_id)))
        while stack:
            task = stack.pop()
            if task.id in seen:
                continue
            seen.add(task.id)
            result.append(task)
            stack.extend(reversed(self.children_of(task.id)))
        return result

    def check_hierarchy(self) -> list[StructuralError]:
        """
        Verify the containment invariants:
        - level is parent's level + 1 when there is a parent, otherwise 0.
        - children and parent_id agree in both directions.
        """
        problems: list[StructuralError] = []
        for task in self._tasks.values():
            if task.parent_id is None:
                if task.level != 0:
                    problems.append(StructuralError(f"Task {task.id!r} has no parent but level {task.level}", task_id=task.id))
            else:
                parent = self._tasks.get(task.parent_id)
                if parent is None:
                    problems.append(StructuralError(f"Task {task.id!r} refers to missing parent {task.parent_id!r}", task_id=task.id))
                else:
                    if task.level != parent.level + 1:
                        problems.append(StructuralError(
                            f"Task {task.id!r} has level {task.level}, expected {parent.level + 1} below {parent.id!r}",
                            task_id=task.id
                        ))
                    if task.id not in parent.children:
                        problems.append(StructuralError(f"Task {task.id!r} is missing from the children of {parent.id!r}", task_id=task.id))

            if task.children and not task.is_summary:
                problems.append(StructuralError(f"Task {task.id!r} has children but is not a summary", task_id=task.id))
            if len(set(task.children)) != len(task.children):
                problems.append(StructuralError(f"Task {task.id!r} lists a child more than once", task_id=task.id))
            for child_id in task.children:
                child = self._tasks.get(child_id)
                if child is None:
                    problems.append(StructuralError(f"Task {task.id!r} lists missing child {child_id!r}", task_id=task.id))
                elif child.parent_id != task.id:
                    problems.append(StructuralError(
                        f"Task {task.id!r} lists child {child_id!r} whose parent is {child.parent_id!r}",
                        task_id=task.id
                    ))
        return problems

    # ────────────────────────────────────────────────────────────────────────
    #  Dependencies
    # --------------------------------------------------------------------
    @property
    def dependencies(self) -> list[Dependency]:
        return list(self._edges)

    def add_dependency(self, dependency: Dependency) -> None:
        if not isinstance(dependency, Dependency):
            raise ValueError("dependency must be a Dependency")
        for task_id in (dependency.predecessor_id, dependency.successor_id):
            if task_id not in self._tasks:
                raise NotFoundError(f"Dependency {dependency} refers to missing task {task_id!r}", task_id=task_id)
        if any(edge.key == dependency.key for edge in self._edges):
            raise ValueError(f"Duplicate dependency: {dependency}")
        self._edges.append(dependency)
        self._index_dirty = True

    def remove_dependency(self, dependency: Dependency) -> bool:
        for index, edge in enumerate(self._edges):
            if edge.key == dependency.key:
                del self._edges[index]
                self._index_dirty = True
                return True
        return False

    def replace_dependency(self, old: Dependency, new: Dependency) -> None:
        """Overwrite an edge in place, keeping its position in the edge list."""
        for index, edge in enumerate(self._edges):
            if edge.key == old.key:
                self._edges[index] = new
                self._index_dirty = True
                return
        raise NotFoundError(f"Dependency {old} not found", task_id=old.successor_id)

    def _ensure_index(self) -> None:
        if not self._index_dirty:
            return
        predecessor_index: dict[str, list[Dependency]] = defaultdict(list)
        successor_index: dict[str, list[Dependency]] = defaultdict(list)
        for edge in self._edges:
            predecessor_index[edge.successor_id].append(edge)
            successor_index[edge.predecessor_id].append(edge)
        self._predecessor_index = dict(predecessor_index)
        self._successor_index = dict(successor_index)
        self._index_dirty = False

    def predecessors(self, task_id: str) -> list[Dependency]:
        """Edges pointing into task_id."""
        self._ensure_index()
        return list(self._predecessor_index.get(task_id, []))

    def successors(self, task_id: str) -> list[Dependency]:
        """Edges leaving task_id."""
        self._ensure_index()
        return list(self._successor_index.get(task_id, []))

    def predecessor_ids(self, task_id: str) -> list[str]:
        return list(dict.fromkeys(edge.predecessor_id for edge in self.predecessors(task_id)))

    def successor_ids(self, task_id: str) -> list[str]:
        return list(dict.fromkeys(edge.successor_id for edge in self.successors(task_id)))

    def dependencies_of(self, task_id: str) -> list[Dependency]:
        """Every edge touching task_id, incoming first."""
        return self.predecessors(task_id) + self.successors(task_id)

    def edges_between(self, task_id_a: str, task_id_b: str) -> list[Dependency]:
        return [edge for edge in self.successors(task_id_a) if edge.successor_id == task_id_b] + \
               [edge for edge in self.successors(task_id_b) if edge.successor_id == task_id_a]

    def has_edge_between(self, task_id_a: str, task_id_b: str) -> bool:
        return len(self.edges_between(task_id_a, task_id_b)) > 0

    def find_dependency(self, predecessor_id: str, successor_id: str, dep_type: Optional[DependencyType] = None) -> Optional[Dependency]:
        for edge in self.successors(predecessor_id):
            if edge.successor_id == successor_id and (dep_type is None or edge.type == dep_type):
                return edge
        return None

    def reaches(self, start_id: str, target_id: str) -> bool:
        """Depth first search along successor edges. True if target_id is reachable from start_id."""
        if start_id == target_id:
            return True
        seen = {start_id}
        stack = [start_id]
        while stack:
            current = stack.pop()
            for successor_id in self.successor_ids(current):
                if successor_id == target_id:
                    return True
                if successor_id not in seen:
                    seen.add(successor_id)
                    stack.append(successor_id)
        return False

    # ────────────────────────────────────────────────────────────────────────
    #  Copy & serialization
    # --------------------------------------------------------------------
    def copy(self) -> 'TaskStore':
        """Deep copy. Dependencies are immutable so the edge objects are shared."""
        clone = TaskStore(tasks=[task.model_copy(deep=True) for task in self._tasks.values()])
        # The edges were validated when they entered this store.
        clone._edges = list(self._edges)
        return clone

    def to_dict(self) -> dict:
        return {
            "tasks": [task.model_dump(mode="json") for task in self._tasks.values()],
            "dependencies": [edge.model_dump(mode="json") for edge in self._edges],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TaskStore':
        if not isinstance(data, dict):
            raise ValueError("data must be a dict")
        return cls(
            tasks=[Task.model_validate(item) for item in data.get("tasks", [])],
            dependencies=[Dependency.model_validate(item) for item in data.get("dependencies", [])],
        )

    def __repr__(self) -> str:
        return f"TaskStore(tasks={len(self._tasks)}, dependencies={len(self._edges)})"
