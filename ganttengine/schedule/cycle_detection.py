"""
Cycle detection and topological ordering of the dependency graph.

https://en.wikipedia.org/wiki/Topological_sorting
"""
import logging
from collections import deque
from typing import Iterator
from ganttengine.errors import ValidationError
from ganttengine.store.task_store import TaskStore

logger = logging.getLogger(__name__)

def format_cycle(path: list[str]) -> str:
    return " → ".join(path)

def detect_circular_dependencies(store: TaskStore) -> list[list[str]]:
    """
    Depth first search with an explicit recursion stack, following predecessor -> successor edges.

    Returns one path per back edge found, first node repeated at the end, like ["A", "B", "A"].
    An empty list means the dependency graph is acyclic.
    Iterative so that long chains don't hit the interpreter's recursion limit.
    """
    visited: set[str] = set()
    cycles: list[list[str]] = []

    for root_id in store.task_ids:
        if root_id in visited:
            continue
        visited.add(root_id)
        path: list[str] = [root_id]
        on_path: set[str] = {root_id}
        stack: list[tuple[str, Iterator[str]]] = [(root_id, iter(store.successor_ids(root_id)))]

        while stack:
            node_id, successors = stack[-1]
            descended = False
            for successor_id in successors:
                if successor_id in on_path:
                    cycle = path[path.index(successor_id):] + [successor_id]
                    logger.debug(f"Cycle found: {format_cycle(cycle)}")
                    cycles.append(cycle)
                    continue
                if successor_id in visited:
                    continue
                visited.add(successor_id)
                path.append(successor_id)
                on_path.add(successor_id)
                stack.append((successor_id, iter(store.successor_ids(successor_id))))
                descended = True
                break
            if not descended:
                stack.pop()
                on_path.discard(node_id)
                path.pop()

    return cycles

def topological_order(store: TaskStore, include_containment: bool = False) -> list[str]:
    """
    Kahn's algorithm over every task in the store, ties broken by document order.

    With include_containment each summary also waits for its children,
    so a summary can be rolled up when it is reached, and the children of a summary
    wait for the predecessors of that summary.

    :raises: ValidationError when the graph has a cycle.
    """
    incoming: dict[str, set[str]] = {task_id: set() for task_id in store.task_ids}
    outgoing: dict[str, list[str]] = {task_id: [] for task_id in store.task_ids}

    def add_edge(source_id: str, target_id: str) -> None:
        if source_id not in incoming or target_id not in incoming or source_id in incoming[target_id]:
            return
        incoming[target_id].add(source_id)
        outgoing[source_id].append(target_id)

    for edge in store.dependencies:
        add_edge(edge.predecessor_id, edge.successor_id)
    if include_containment:
        for task in store:
            for child_id in task.children:
                add_edge(child_id, task.id)
            if not task.children:
                continue
            descendant_ids = [descendant.id for descendant in store.descendants(task.id)]
            branch = {task.id} | set(descendant_ids) | {ancestor.id for ancestor in store.ancestors(task.id)}
            for edge in store.predecessors(task.id):
                if edge.predecessor_id in branch:
                    continue
                for descendant_id in descendant_ids:
                    add_edge(edge.predecessor_id, descendant_id)

    in_deg = {task_id: len(sources) for task_id, sources in incoming.items()}
    queue = deque([task_id for task_id in store.task_ids if in_deg[task_id] == 0])
    order: list[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for target_id in outgoing[node_id]:
            in_deg[target_id] -= 1
            if in_deg[target_id] == 0:
                queue.append(target_id)

    if len(order) != len(store):
        blocked = [task_id for task_id, deg in in_deg.items() if deg > 0]
        raise ValidationError(f"Cycle detected involving: {', '.join(blocked)}", task_id=blocked[0])

    return order
