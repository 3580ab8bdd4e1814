"""
Indent, outdent and summary grouping of tasks, plus the date/duration rollup of summary tasks.

Every operation takes a TaskStore and returns a HierarchyResult holding an updated copy.
The input store is left untouched.

Rollup rules
------------
A summary task spans its direct children: start is the earliest child start, end is the
latest child end, and duration is the span in days + 1. By default the rollup continues
through every ancestor, see EngineSettings.rollup_ancestors.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional
from ganttengine.errors import EngineError, NotFoundError, StructuralError
from ganttengine.store.task_model import Task
from ganttengine.store.task_store import TaskStore
from ganttengine.utils.engine_settings import EngineSettings

logger = logging.getLogger(__name__)

@dataclass
class HierarchyResult:
    store: TaskStore
    changed_ids: list[str] = field(default_factory=list)
    errors: list[EngineError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

    def _mark_changed(self, task_id: str) -> None:
        if task_id not in self.changed_ids:
            self.changed_ids.append(task_id)

# ────────────────────────────────────────────────────────────────────────────────
#  Rollup
# ----------------------------------------------------------------------------
def rollup_children(store: TaskStore, task: Task) -> bool:
    """Recompute a summary's dates from its direct children. Returns True if a value changed."""
    dated = [child for child in store.children_of(task.id) if child.start_date is not None and child.end_date is not None]
    if not dated:
        return False
    start = min(child.start_date for child in dated)
    end = max(child.end_date for child in dated)
    duration = Decimal((end - start).days + 1)
    changed = (task.start_date, task.end_date, task.duration) != (start, end, duration)
    task.start_date = start
    task.end_date = end
    task.duration = duration
    return changed

def rollup_summary(store: TaskStore, task_id: Optional[str], settings: EngineSettings) -> list[str]:
    """
    Recompute the rollup of task_id in place, then of its ancestors when
    settings.rollup_ancestors is set. Returns the ids whose dates changed.
    """
    changed: list[str] = []
    seen: set[str] = set()
    current = store.get(task_id) if task_id is not None else None
    while current is not None and current.id not in seen:
        seen.add(current.id)
        if current.is_summary and rollup_children(store, current):
            changed.append(current.id)
            logger.debug(f"Rollup of {current.id!r}: {current.start_date} .. {current.end_date}, duration {current.duration}")
        if not settings.rollup_ancestors:
            break
        current = store.get(current.parent_id) if current.parent_id is not None else None
    return changed

def rollup_all_summaries(store: TaskStore) -> list[str]:
    """Recompute every summary in place, deepest first, so each parent sees final child dates."""
    changed: list[str] = []
    summaries = sorted((task for task in store if task.is_summary), key=lambda task: -task.level)
    for task in summaries:
        if rollup_children(store, task):
            changed.append(task.id)
    return changed

def recalculate_rollups(store: TaskStore) -> HierarchyResult:
    result = HierarchyResult(store=store.copy())
    for task_id in rollup_all_summaries(result.store):
        result._mark_changed(task_id)
    logger.info(f"recalculate_rollups() updated {len(result.changed_ids)} summary tasks")
    return result

# ────────────────────────────────────────────────────────────────────────────────
#  Reparenting
# ----------------------------------------------------------------------------
def _find_indent_parent(store: TaskStore, task: Task) -> Optional[Task]:
    """Nearest earlier task whose level is at most the task's own level."""
    tasks = store.tasks
    excluded = {descendant.id for descendant in store.descendants(task.id)}
    for candidate in reversed(tasks[:store.index_of(task.id)]):
        if candidate.id in excluded:
            continue
        if candidate.level <= task.level:
            return candidate
    return None

def _detach(store: TaskStore, task: Task) -> Optional[Task]:
    old_parent = store.get(task.parent_id) if task.parent_id is not None else None
    if old_parent is not None:
        old_parent.children = [child_id for child_id in old_parent.children if child_id != task.id]
        if not old_parent.children:
            old_parent.is_summary = False
    return old_parent

def _attach(store: TaskStore, task: Task, new_parent: Optional[Task]) -> None:
    """Place task below new_parent (None means root) and shift its subtree to the new depth."""
    new_level = new_parent.level + 1 if new_parent is not None else 0
    delta = new_level - task.level
    task.level = new_level
    task.parent_id = new_parent.id if new_parent is not None else None
    if delta != 0:
        for descendant in store.descendants(task.id):
            descendant.level += delta
    if new_parent is not None:
        new_parent.children = store.in_document_order(new_parent.children + [task.id])
        new_parent.is_summary = True

def _unknown_id_errors(store: TaskStore, selected_ids: Iterable[str]) -> list[EngineError]:
    return [NotFoundError(f"Task {task_id!r} not found", task_id=task_id) for task_id in store.unknown_ids(selected_ids)]

# ────────────────────────────────────────────────────────────────────────────────
#  Operations
# ----------------------------------------------------------------------------
def indent(store: TaskStore, selected_ids: list[str], settings: Optional[EngineSettings] = None) -> HierarchyResult:
    """
    Move each selected task one level down, below the nearest earlier task whose level
    is at most its own. Selected ids are processed in document order.
    """
    settings = settings or EngineSettings()
    result = HierarchyResult(store=store.copy())
    working = result.store
    result.errors.extend(_unknown_id_errors(working, selected_ids))

    for task_id in working.in_document_order(selected_ids):
        task = working.require(task_id)
        new_parent = _find_indent_parent(working, task)
        if new_parent is None:
            result.errors.append(StructuralError(f"Task {task.display_name!r} has no preceding task to indent under", task_id=task.id))
            continue
        if new_parent.id == task.parent_id:
            result.warnings.append(f"Task {task.display_name!r} is already directly below {new_parent.display_name!r}")
            continue

        old_parent = _detach(working, task)
        _attach(working, task, new_parent)
        result._mark_changed(task.id)
        result._mark_changed(new_parent.id)
        logger.debug(f"indent: {task.id!r} now below {new_parent.id!r} at level {task.level}")

        if old_parent is not None:
            result._mark_changed(old_parent.id)
            for changed_id in rollup_summary(working, old_parent.id, settings):
                result._mark_changed(changed_id)
        for changed_id in rollup_summary(working, new_parent.id, settings):
            result._mark_changed(changed_id)

    logger.info(f"indent() changed {len(result.changed_ids)} tasks, {len(result.errors)} errors")
    return result

def outdent(store: TaskStore, selected_ids: list[str], settings: Optional[EngineSettings] = None) -> HierarchyResult:
    """Move each selected task up to its grandparent, or to the root when there is none."""
    settings = settings or EngineSettings()
    result = HierarchyResult(store=store.copy())
    working = result.store
    result.errors.extend(_unknown_id_errors(working, selected_ids))

    for task_id in working.in_document_order(selected_ids):
        task = working.require(task_id)
        if task.parent_id is None or task.level == 0:
            result.errors.append(StructuralError(f"Task {task.display_name!r} is already at the top level", task_id=task.id))
            continue

        old_parent = _detach(working, task)
        grandparent = working.get(old_parent.parent_id) if old_parent is not None and old_parent.parent_id is not None else None
        _attach(working, task, grandparent)
        result._mark_changed(task.id)
        logger.debug(f"outdent: {task.id!r} now {'below ' + repr(grandparent.id) if grandparent else 'at the root'}")

        for parent in (old_parent, grandparent):
            if parent is None:
                continue
            result._mark_changed(parent.id)
            for changed_id in rollup_summary(working, parent.id, settings):
                result._mark_changed(changed_id)

    logger.info(f"outdent() changed {len(result.changed_ids)} tasks, {len(result.errors)} errors")
    return result

def make_summary(store: TaskStore, selected_ids: list[str], settings: Optional[EngineSettings] = None) -> HierarchyResult:
    """
    Turn each selected task into a summary of the rows that follow it one level deeper.
    The scan skips deeper rows and stops at the first row at or above the task's own level.
    """
    settings = settings or EngineSettings()
    result = HierarchyResult(store=store.copy())
    working = result.store
    result.errors.extend(_unknown_id_errors(working, selected_ids))
    tasks = working.tasks

    for task_id in working.in_document_order(selected_ids):
        task = working.require(task_id)
        collected: list[Task] = []
        for other in tasks[working.index_of(task.id) + 1:]:
            if other.level <= task.level:
                break
            if other.level == task.level + 1:
                collected.append(other)

        for child in collected:
            if child.parent_id == task.id:
                continue
            old_parent = _detach(working, child)
            child.parent_id = task.id
            result._mark_changed(child.id)
            if old_parent is not None:
                result._mark_changed(old_parent.id)
                for changed_id in rollup_summary(working, old_parent.id, settings):
                    result._mark_changed(changed_id)

        task.children = working.in_document_order(task.children + [child.id for child in collected])
        if not task.is_summary:
            task.is_summary = True
            result._mark_changed(task.id)
        if not task.children:
            result.warnings.append(f"Task {task.display_name!r} has no rows below it to group")
        for changed_id in rollup_summary(working, task.id, settings):
            result._mark_changed(changed_id)

    logger.info(f"make_summary() changed {len(result.changed_ids)} tasks")
    return result

# ────────────────────────────────────────────────────────────────────────────────
#  Guards
# ----------------------------------------------------------------------------
def can_indent(store: TaskStore, selected_ids: list[str]) -> bool:
    ordered = store.in_document_order(selected_ids)
    if not ordered:
        return False
    return _find_indent_parent(store, store.require(ordered[0])) is not None

def can_outdent(store: TaskStore, selected_ids: list[str]) -> bool:
    return any(store.require(task_id).parent_id is not None for task_id in store.in_document_order(selected_ids))

def can_make_summary(store: TaskStore, selected_ids: list[str]) -> bool:
    return True
