"""
Forward pass scheduler. Moves the start/end dates of tasks so every dependency edge is honored,
then applies the date constraints of each task.

Dates are whole days with an inclusive end, see ganttengine.store.task_model.
For an edge with lag L (rounded up to whole days) the earliest start of the successor is:

    FS  pred.end   + L
    SS  pred.start + L
    FF  pred.end   + L - (span - 1)
    SF  pred.start + L - (span - 1)

Example, T1 has duration 5 and starts 2024-01-01, so it ends 2024-01-05.
T2 depends on T1 with FS and lag "0d", so T2 starts 2024-01-05.

PROMPT> python -m ganttengine.schedule.reschedule
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional
from ganttengine.errors import EngineError, NotFoundError, ValidationError
from ganttengine.hierarchy.hierarchy_manager import rollup_all_summaries, rollup_children
from ganttengine.schedule.cycle_detection import detect_circular_dependencies, format_cycle, topological_order
from ganttengine.store.task_model import ConstraintType, Dependency, DependencyType, Task, end_from_start, start_from_end
from ganttengine.store.task_store import TaskStore
from ganttengine.utils.engine_settings import EngineSettings

logger = logging.getLogger(__name__)

@dataclass
class DateChange:
    task_id: str
    field_name: str
    old_value: Any
    new_value: Any
    reason: str

    def __str__(self) -> str:
        return f"{self.task_id}.{self.field_name}: {self.old_value} -> {self.new_value} ({self.reason})"

@dataclass
class RescheduleResult:
    success: bool
    store: TaskStore
    errors: list[EngineError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    changes: list[DateChange] = field(default_factory=list)

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

@dataclass
class DependencyViolation:
    dependency: Dependency
    required: date
    actual: date

    @property
    def message(self) -> str:
        field_name = "start" if self.dependency.type in (DependencyType.FS, DependencyType.SS) else "end"
        return (
            f"Dependency {self.dependency} is violated: {self.dependency.successor_id} {field_name} "
            f"{self.actual.isoformat()} is before {self.required.isoformat()}"
        )

# ────────────────────────────────────────────────────────────────────────────────
#  Edge rules
# ----------------------------------------------------------------------------
def _required_start(edge: Dependency, predecessor: Task, successor: Task) -> Optional[date]:
    """Earliest start of the successor allowed by one edge. None when the predecessor has no dates."""
    if predecessor.start_date is None or predecessor.end_date is None:
        return None
    lag = timedelta(days=edge.lag_days)
    back = timedelta(days=successor.span_days - 1)
    if edge.type == DependencyType.FS:
        return predecessor.end_date + lag
    if edge.type == DependencyType.SS:
        return predecessor.start_date + lag
    if edge.type == DependencyType.FF:
        return predecessor.end_date + lag - back
    return predecessor.start_date + lag - back

def find_dependency_violations(store: TaskStore) -> list[DependencyViolation]:
    """Check every edge against the current dates. Edges touching undated tasks are skipped."""
    violations: list[DependencyViolation] = []
    for edge in store.dependencies:
        predecessor = store.require(edge.predecessor_id)
        successor = store.require(edge.successor_id)
        if None in (predecessor.start_date, predecessor.end_date, successor.start_date, successor.end_date):
            continue
        lag = timedelta(days=edge.lag_days)
        if edge.type == DependencyType.FS:
            required, actual = predecessor.end_date + lag, successor.start_date
        elif edge.type == DependencyType.SS:
            required, actual = predecessor.start_date + lag, successor.start_date
        elif edge.type == DependencyType.FF:
            required, actual = predecessor.end_date + lag, successor.end_date
        else:
            required, actual = predecessor.start_date + lag, successor.end_date
        if actual < required:
            violations.append(DependencyViolation(dependency=edge, required=required, actual=actual))
    return violations

# ────────────────────────────────────────────────────────────────────────────────
#  Reschedule
# ----------------------------------------------------------------------------
def _record(changes: list[DateChange], task: Task, field_name: str, new_value: Any, reason: str) -> None:
    old_value = getattr(task, field_name)
    if old_value == new_value:
        return
    setattr(task, field_name, new_value)
    changes.append(DateChange(task_id=task.id, field_name=field_name, old_value=old_value, new_value=new_value, reason=reason))

def _inherited_requirements(store: TaskStore, task: Task) -> list[tuple[Dependency, Task]]:
    """Edges into the summaries above task. Each one also holds back every task in that summary."""
    result: list[tuple[Dependency, Task]] = []
    ancestors = store.ancestors(task.id)
    ancestor_ids = {ancestor.id for ancestor in ancestors}
    for ancestor in ancestors:
        subtree = {descendant.id for descendant in store.descendants(ancestor.id)}
        for edge in store.predecessors(ancestor.id):
            # Edges from inside the same branch of the tree are not passed down.
            if edge.predecessor_id in subtree or edge.predecessor_id in ancestor_ids:
                continue
            result.append((edge, store.require(edge.predecessor_id)))
    return result

def _schedule_task(
    store: TaskStore,
    task: Task,
    project_start: Optional[date],
    result: RescheduleResult,
) -> None:
    reason = "dependencies"
    candidates: list[date] = []
    for edge in store.predecessors(task.id):
        required = _required_start(edge, store.require(edge.predecessor_id), task)
        if required is None:
            result.warnings.append(f"Predecessor {edge.predecessor_id!r} of {task.id!r} has no dates, the edge was ignored")
            continue
        candidates.append(required)
    for edge, predecessor in _inherited_requirements(store, task):
        required = _required_start(edge, predecessor, task)
        if required is not None:
            candidates.append(required)

    if candidates:
        start = max(candidates)
    elif task.start_date is not None:
        start = task.start_date
        reason = "unchanged"
    elif project_start is not None:
        start = project_start
        reason = "project start"
    else:
        result.errors.append(ValidationError(
            f"Task {task.display_name!r} has no start date, no predecessors and there is no project start",
            task_id=task.id
        ))
        return

    constraint_type = task.constraint_type
    constraint_date = task.constraint_date
    if task.has_half_constraint():
        result.warnings.append(f"Task {task.display_name!r} has an incomplete constraint, it was ignored")
        constraint_type = None

    if constraint_type == ConstraintType.START_NO_EARLIER_THAN and start < constraint_date:
        start = constraint_date
        reason = "constraint"
    elif constraint_type == ConstraintType.MUST_START_ON and start != constraint_date:
        start = constraint_date
        reason = "constraint"
    elif constraint_type == ConstraintType.START_NO_LATER_THAN and start > constraint_date:
        result.errors.append(ValidationError(
            f"Task {task.display_name!r} cannot start by {constraint_date.isoformat()}, "
            f"its dependencies require {start.isoformat()}",
            task_id=task.id
        ))
        return

    end = end_from_start(start, task.duration)
    if constraint_type == ConstraintType.MUST_FINISH_ON and end != constraint_date:
        end = constraint_date
        start = start_from_end(end, task.duration)
        reason = "constraint"
    elif constraint_type == ConstraintType.FINISH_NO_LATER_THAN and end > constraint_date:
        result.errors.append(ValidationError(
            f"Task {task.display_name!r} ends {end.isoformat()}, after its {constraint_type.value} "
            f"date {constraint_date.isoformat()}",
            task_id=task.id
        ))

    _record(result.changes, task, "start_date", start, reason)
    _record(result.changes, task, "end_date", end, reason)

def _rollup_with_changes(store: TaskStore, task: Task, changes: list[DateChange]) -> None:
    before = (task.start_date, task.end_date, task.duration)
    if not rollup_children(store, task):
        return
    for field_name, old_value in zip(("start_date", "end_date", "duration"), before):
        new_value = getattr(task, field_name)
        if old_value != new_value:
            changes.append(DateChange(task_id=task.id, field_name=field_name, old_value=old_value, new_value=new_value, reason="rollup"))

def reschedule(
    store: TaskStore,
    selected_ids: Optional[Iterable[str]] = None,
    settings: Optional[EngineSettings] = None,
) -> RescheduleResult:
    """
    Reschedule the selected tasks, or every task when selected_ids is None.

    Tasks outside the selection keep their dates but still drive their successors.
    On a circular dependency nothing is changed and success is False.
    """
    settings = settings or EngineSettings()

    cycles = detect_circular_dependencies(store)
    if cycles:
        errors: list[EngineError] = [
            ValidationError(f"Circular dependencies detected: {format_cycle(cycle)}", task_id=cycle[0])
            for cycle in cycles
        ]
        logger.warning(f"reschedule() refused, {len(cycles)} circular dependencies")
        return RescheduleResult(success=False, store=store.copy(), errors=errors)

    result = RescheduleResult(success=True, store=store.copy())
    working = result.store

    if selected_ids is None:
        selected = set(working.task_ids)
    else:
        selected_list = list(selected_ids)
        for task_id in working.unknown_ids(selected_list):
            result.errors.append(NotFoundError(f"Task {task_id!r} not found", task_id=task_id))
        selected = set(working.in_document_order(selected_list))
        if not selected_list:
            result.warnings.append("No tasks selected for rescheduling")
            return result

    project_start = settings.project_start
    if project_start is None:
        known_starts = [task.start_date for task in working if task.start_date is not None]
        project_start = min(known_starts) if known_starts else None

    rollup_at_end = False
    try:
        order = topological_order(working, include_containment=True)
    except ValidationError as e:
        # A summary depending on one of its own children, schedule without the containment edges.
        result.warnings.append(f"Summary rollup deferred, containment conflicts with dependencies: {e.message}")
        order = topological_order(working)
        rollup_at_end = True

    for task_id in order:
        task = working.require(task_id)
        if task.is_summary and task.children:
            if not rollup_at_end:
                _rollup_with_changes(working, task, result.changes)
            continue
        if task_id not in selected:
            continue
        _schedule_task(working, task, project_start, result)

    if rollup_at_end:
        for task_id in rollup_all_summaries(working):
            logger.debug(f"reschedule() deferred rollup of {task_id!r}")

    for violation in find_dependency_violations(working):
        result.warnings.append(violation.message)

    result.success = not result.errors
    logger.info(
        f"reschedule() {len(result.changes)} date changes, {len(result.errors)} errors, {len(result.warnings)} warnings"
    )
    return result

# ────────────────────────────────────────────────────────────────────────────────
#  Guards
# ----------------------------------------------------------------------------
def can_reschedule(store: TaskStore, selected_ids: Optional[Iterable[str]] = None) -> bool:
    if selected_ids is not None and store.unknown_ids(selected_ids):
        return False
    return not detect_circular_dependencies(store)

def reschedule_warnings(store: TaskStore, selected_ids: Optional[Iterable[str]] = None) -> list[str]:
    """Things worth telling the user before a reschedule. Does not change the store."""
    warnings: list[str] = []
    if selected_ids is None:
        ids = store.task_ids
    else:
        selected_list = list(selected_ids)
        for task_id in store.unknown_ids(selected_list):
            warnings.append(f"Task {task_id!r} not found")
        ids = store.in_document_order(selected_list)
    for task_id in ids:
        task = store.require(task_id)
        if task.is_summary and task.children:
            continue
        if not store.dependencies_of(task_id):
            warnings.append(f"Task {task.display_name!r} has no dependencies and keeps its own dates")
    return warnings

if __name__ == "__main__":
    from ganttengine.store.task_table import export_task_table, parse_task_table
    from ganttengine.utils.dedent_strip import dedent_strip

    logging.basicConfig(level=logging.DEBUG)
    table = dedent_strip("""
        Task;Name;Duration;Start;Predecessor
        T1;Design;5;2024-01-01;
        T2;Build;10;;T1
        T3;Review;2;;T2(SS+3d)
        T4;Ship;1;;T2,T3(FF)
    """)
    store = parse_task_table(table)
    result = reschedule(store)
    print(export_task_table(result.store))
    for change in result.changes:
        print(change)
