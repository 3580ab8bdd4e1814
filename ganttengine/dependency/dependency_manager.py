"""
Link, unlink and lag edits between tasks, with cycle prevention.

A new edge predecessor -> successor closes a cycle exactly when the predecessor is already
reachable from the successor, so every creation is guarded by a depth first reachability search.
"""
import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Optional
from ganttengine.errors import EngineError, NotFoundError, ValidationError
from ganttengine.store.task_model import Dependency, DependencyType, Task, is_valid_lag
from ganttengine.store.task_store import TaskStore

logger = logging.getLogger(__name__)

@dataclass
class DependencyResult:
    store: TaskStore
    created: list[Dependency] = field(default_factory=list)
    removed: list[Dependency] = field(default_factory=list)
    updated: list[Dependency] = field(default_factory=list)
    errors: list[EngineError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

def _reachable(adjacency: dict[str, set[str]], start_id: str, target_id: str) -> bool:
    """Depth first search over a successor adjacency map."""
    if start_id == target_id:
        return True
    seen = {start_id}
    stack = [start_id]
    while stack:
        current = stack.pop()
        for successor_id in adjacency.get(current, ()):
            if successor_id == target_id:
                return True
            if successor_id not in seen:
                seen.add(successor_id)
                stack.append(successor_id)
    return False

def _adjacency(store: TaskStore) -> dict[str, set[str]]:
    adjacency: dict[str, set[str]] = {}
    for edge in store.dependencies:
        adjacency.setdefault(edge.predecessor_id, set()).add(edge.successor_id)
    return adjacency

def _cycle_error(predecessor: Task, successor: Task) -> ValidationError:
    return ValidationError(
        f"Linking {predecessor.display_name!r} -> {successor.display_name!r} would create a circular dependency",
        task_id=successor.id
    )

# ────────────────────────────────────────────────────────────────────────────────
#  Operations
# ----------------------------------------------------------------------------
def link(store: TaskStore, selected_ids: list[str]) -> DependencyResult:
    """
    Chain the selected tasks in document order with Finish-to-Start edges and a "0d" lag.
    Pairs that are already connected, in either direction, are left alone,
    so calling link() twice gives the same edges as calling it once.
    """
    result = DependencyResult(store=store.copy())
    working = result.store
    for task_id in working.unknown_ids(selected_ids):
        result.errors.append(NotFoundError(f"Task {task_id!r} not found", task_id=task_id))

    ordered = working.in_document_order(selected_ids)
    for predecessor_id, successor_id in zip(ordered, ordered[1:]):
        if working.has_edge_between(predecessor_id, successor_id):
            logger.debug(f"link: {predecessor_id!r} and {successor_id!r} are already connected")
            continue
        if working.reaches(successor_id, predecessor_id):
            result.errors.append(_cycle_error(working.require(predecessor_id), working.require(successor_id)))
            continue
        dependency = Dependency(predecessor_id=predecessor_id, successor_id=successor_id, type=DependencyType.FS, lag="0d")
        working.add_dependency(dependency)
        result.created.append(dependency)

    logger.info(f"link() created {len(result.created)} dependencies")
    return result

def unlink(store: TaskStore, selected_ids: list[str]) -> DependencyResult:
    """Remove every edge between any two of the selected tasks."""
    result = DependencyResult(store=store.copy())
    working = result.store
    for task_id in working.unknown_ids(selected_ids):
        result.errors.append(NotFoundError(f"Task {task_id!r} not found", task_id=task_id))

    for task_id_a, task_id_b in combinations(working.in_document_order(selected_ids), 2):
        for edge in working.edges_between(task_id_a, task_id_b):
            working.remove_dependency(edge)
            result.removed.append(edge)

    logger.info(f"unlink() removed {len(result.removed)} dependencies")
    return result

def update_lag(
    store: TaskStore,
    predecessor_id: str,
    successor_id: str,
    lag: str,
    dep_type: Optional[DependencyType] = None,
) -> DependencyResult:
    """
    Overwrite the lag of the edge predecessor_id -> successor_id.
    When dep_type is given the relationship type is replaced too.
    """
    result = DependencyResult(store=store.copy())
    working = result.store
    if not is_valid_lag(lag):
        result.errors.append(ValidationError(
            f"Invalid lag {lag!r}, expected a signed number of days like '+2d', '-1.5d' or '0d'",
            task_id=successor_id
        ))
        return result

    existing = working.find_dependency(predecessor_id, successor_id)
    if existing is None:
        result.errors.append(NotFoundError(
            f"No dependency from {predecessor_id!r} to {successor_id!r}",
            task_id=successor_id
        ))
        return result

    replacement = Dependency(
        predecessor_id=existing.predecessor_id,
        successor_id=existing.successor_id,
        type=dep_type or existing.type,
        lag=lag,
    )
    if replacement.key != existing.key and working.find_dependency(predecessor_id, successor_id, replacement.type) is not None:
        # An edge with the new type already exists, merge into it.
        working.remove_dependency(existing)
        working.replace_dependency(replacement, replacement)
        result.removed.append(existing)
    else:
        working.replace_dependency(existing, replacement)
    result.updated.append(replacement)
    logger.info(f"update_lag() {existing} is now {replacement}")
    return result

def add_dependency(
    store: TaskStore,
    predecessor_id: str,
    successor_id: str,
    dep_type: DependencyType = DependencyType.FS,
    lag: str = "0d",
) -> DependencyResult:
    """Create a single typed edge, refusing duplicates and cycles."""
    result = DependencyResult(store=store.copy())
    working = result.store
    for task_id in (predecessor_id, successor_id):
        if task_id not in working:
            result.errors.append(NotFoundError(f"Task {task_id!r} not found", task_id=task_id))
    if not is_valid_lag(lag):
        result.errors.append(ValidationError(f"Invalid lag {lag!r}", task_id=successor_id))
    if predecessor_id == successor_id:
        result.errors.append(ValidationError(f"Task {predecessor_id!r} cannot depend on itself", task_id=successor_id))
    if result.errors:
        return result

    if working.has_edge_between(predecessor_id, successor_id):
        result.errors.append(ValidationError(
            f"Tasks {predecessor_id!r} and {successor_id!r} are already connected",
            task_id=successor_id
        ))
        return result
    if working.reaches(successor_id, predecessor_id):
        result.errors.append(_cycle_error(working.require(predecessor_id), working.require(successor_id)))
        return result

    dependency = Dependency(predecessor_id=predecessor_id, successor_id=successor_id, type=dep_type, lag=lag)
    working.add_dependency(dependency)
    result.created.append(dependency)
    logger.info(f"add_dependency() created {dependency}")
    return result

def dependencies_among(store: TaskStore, selected_ids: list[str]) -> list[Dependency]:
    """Edges whose both endpoints are selected, in edge list order."""
    selected = set(selected_ids)
    return [edge for edge in store.dependencies if edge.predecessor_id in selected and edge.successor_id in selected]

# ────────────────────────────────────────────────────────────────────────────────
#  Guards
# ----------------------------------------------------------------------------
def can_link(store: TaskStore, selected_ids: list[str]) -> bool:
    """
    True when at least two known tasks are selected and linking them would not close a cycle.
    Edges added by earlier pairs of the same selection are taken into account.
    """
    ordered = store.in_document_order(selected_ids)
    if len(ordered) < 2:
        return False
    adjacency = _adjacency(store)
    for predecessor_id, successor_id in zip(ordered, ordered[1:]):
        if store.has_edge_between(predecessor_id, successor_id):
            continue
        if _reachable(adjacency, successor_id, predecessor_id):
            return False
        adjacency.setdefault(predecessor_id, set()).add(successor_id)
    return True

def can_unlink(store: TaskStore, selected_ids: list[str]) -> bool:
    return any(
        store.has_edge_between(task_id_a, task_id_b)
        for task_id_a, task_id_b in combinations(store.in_document_order(selected_ids), 2)
    )

def can_manage_lag(store: TaskStore, selected_ids: list[str]) -> bool:
    return len(dependencies_among(store, selected_ids)) > 0
