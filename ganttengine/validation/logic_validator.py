"""
Audit of the schedule logic. Five independent checks, each a plain function from a TaskStore
to a list of LogicIssue, so callers can run any subset:

- circular dependencies (error)
- tasks without successors (warning)
- overlapping work on the same resource (warning, never fixable)
- half filled constraints (error)
- tasks without predecessors (info)

auto_fix() applies the remediation carried by each selected issue.

PROMPT> python -m ganttengine.validation.logic_validator
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Iterable, Optional
from ganttengine.errors import EngineError
from ganttengine.schedule.cycle_detection import detect_circular_dependencies, format_cycle
from ganttengine.store.task_model import Task
from ganttengine.store.task_store import TaskStore
from ganttengine.validation.logic_issue import (
    AttachPredecessor, AttachSuccessor, ClearConstraint, IssueKind, LogicIssue, RemoveDependency, Severity
)

logger = logging.getLogger(__name__)

@dataclass
class LogicValidationResult:
    issues: list[LogicIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when no issue has error severity."""
        return not any(issue.severity == Severity.ERROR for issue in self.issues)

    def by_severity(self, severity: Severity) -> list[LogicIssue]:
        return [issue for issue in self.issues if issue.severity == severity]

    def by_kind(self, kind: IssueKind) -> list[LogicIssue]:
        return [issue for issue in self.issues if issue.kind == kind]

    def find(self, issue_id: str) -> Optional[LogicIssue]:
        for issue in self.issues:
            if issue.issue_id == issue_id:
                return issue
        return None

@dataclass
class AutoFixResult:
    store: TaskStore
    fixed_count: int = 0
    fixed_issue_ids: list[str] = field(default_factory=list)
    errors: list[EngineError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

# ────────────────────────────────────────────────────────────────────────────────
#  Checks
# ----------------------------------------------------------------------------
def check_circular_dependencies(store: TaskStore) -> list[LogicIssue]:
    issues: list[LogicIssue] = []
    reported: set[str] = set()

    # Two task loops, the predecessor and successor sets of a task intersect.
    for task in store:
        both = set(store.predecessor_ids(task.id)) & set(store.successor_ids(task.id))
        for other_id in store.in_document_order(both):
            # Drop the edge that points backwards in document order.
            if store.index_of(task.id) < store.index_of(other_id):
                remediation = RemoveDependency(predecessor_id=other_id, successor_id=task.id)
            else:
                remediation = RemoveDependency(predecessor_id=task.id, successor_id=other_id)
            issues.append(LogicIssue(
                kind=IssueKind.CIRCULAR_DEPENDENCY,
                task_id=task.id,
                task_name=task.display_name,
                issue=f"Circular dependency between {task.display_name!r} and {store.require(other_id).display_name!r}",
                severity=Severity.ERROR,
                suggested_fix=remediation.describe(),
                related_task_id=other_id,
                remediation=remediation,
            ))
            reported.add(task.id)

    # Longer loops. The fix is left to the user, there is no obvious edge to drop.
    for cycle in detect_circular_dependencies(store):
        if len(cycle) <= 3:
            continue
        for task_id in store.in_document_order(cycle):
            if task_id in reported:
                continue
            reported.add(task_id)
            task = store.require(task_id)
            issues.append(LogicIssue(
                kind=IssueKind.CIRCULAR_DEPENDENCY,
                task_id=task_id,
                task_name=task.display_name,
                issue=f"Task {task.display_name!r} is on the circular dependency {format_cycle(cycle)}",
                severity=Severity.ERROR,
            ))
    return issues

def _link_candidate(store: TaskStore, task: Task, later: bool) -> Optional[Task]:
    """
    Nearest task after (later=True) or before the given one in document order that is not a summary,
    not already connected to it, and can be linked without closing a cycle.
    """
    tasks = store.tasks
    position = store.index_of(task.id)
    candidates = tasks[position + 1:] if later else list(reversed(tasks[:position]))
    for candidate in candidates:
        if candidate.is_summary or store.has_edge_between(task.id, candidate.id):
            continue
        if later and store.reaches(candidate.id, task.id):
            continue
        if not later and store.reaches(task.id, candidate.id):
            continue
        return candidate
    return None

def check_missing_successors(store: TaskStore) -> list[LogicIssue]:
    issues: list[LogicIssue] = []
    for task in store:
        if task.is_summary or store.successors(task.id):
            continue
        candidate = _link_candidate(store, task, later=True)
        remediation = AttachSuccessor(task_id=task.id, successor_id=candidate.id) if candidate else None
        issues.append(LogicIssue(
            kind=IssueKind.MISSING_SUCCESSOR,
            task_id=task.id,
            task_name=task.display_name,
            issue=f"Task {task.display_name!r} has no successor",
            severity=Severity.WARNING,
            suggested_fix=remediation.describe() if remediation else None,
            remediation=remediation,
        ))
    return issues

def check_missing_predecessors(store: TaskStore) -> list[LogicIssue]:
    issues: list[LogicIssue] = []
    for task in store:
        if task.is_summary or store.predecessors(task.id):
            continue
        candidate = _link_candidate(store, task, later=False)
        remediation = AttachPredecessor(task_id=task.id, predecessor_id=candidate.id) if candidate else None
        issues.append(LogicIssue(
            kind=IssueKind.MISSING_PREDECESSOR,
            task_id=task.id,
            task_name=task.display_name,
            issue=f"Task {task.display_name!r} has no predecessor",
            severity=Severity.INFO,
            suggested_fix=remediation.describe() if remediation else None,
            remediation=remediation,
        ))
    return issues

def check_resource_overlaps(store: TaskStore) -> list[LogicIssue]:
    """Pairs of tasks on the same resource whose [start, end + 1 day) windows intersect."""
    issues: list[LogicIssue] = []
    by_resource: dict[str, list[Task]] = {}
    for task in store:
        if task.assigned_resource and task.start_date is not None and task.end_date is not None:
            by_resource.setdefault(task.assigned_resource, []).append(task)

    for resource, tasks in by_resource.items():
        for i, first in enumerate(tasks):
            first_end = first.end_date + timedelta(days=1)
            for second in tasks[i + 1:]:
                second_end = second.end_date + timedelta(days=1)
                if first.start_date < second_end and second.start_date < first_end:
                    issues.append(LogicIssue(
                        kind=IssueKind.RESOURCE_OVERLAP,
                        task_id=first.id,
                        task_name=first.display_name,
                        issue=f"Resource {resource!r} is booked on {first.display_name!r} and {second.display_name!r} at the same time",
                        severity=Severity.WARNING,
                        suggested_fix=f"Reschedule {second.display_name!r} or assign another resource",
                        related_task_id=second.id,
                    ))
    return issues

def check_invalid_constraints(store: TaskStore) -> list[LogicIssue]:
    issues: list[LogicIssue] = []
    for task in store:
        if not task.has_half_constraint():
            continue
        missing = "date" if task.constraint_date is None else "type"
        remediation = ClearConstraint(task_id=task.id)
        issues.append(LogicIssue(
            kind=IssueKind.INVALID_CONSTRAINT,
            task_id=task.id,
            task_name=task.display_name,
            issue=f"Task {task.display_name!r} has a constraint without a {missing}",
            severity=Severity.ERROR,
            suggested_fix=remediation.describe(),
            remediation=remediation,
        ))
    return issues

ALL_CHECKS: list[Callable[[TaskStore], list[LogicIssue]]] = [
    check_circular_dependencies,
    check_missing_successors,
    check_resource_overlaps,
    check_invalid_constraints,
    check_missing_predecessors,
]

def validate_logic(store: TaskStore, checks: Optional[Iterable[Callable[[TaskStore], list[LogicIssue]]]] = None) -> LogicValidationResult:
    """Run the checks, all of them by default. Does not change the store."""
    result = LogicValidationResult()
    for check in (checks if checks is not None else ALL_CHECKS):
        found = check(store)
        logger.debug(f"{check.__name__}() found {len(found)} issues")
        result.issues.extend(found)
    logger.info(f"validate_logic() found {len(result.issues)} issues")
    return result

def auto_fix(store: TaskStore, issue_ids: Iterable[str]) -> AutoFixResult:
    """
    Validate again and apply the remediation of each fixable issue that is selected,
    either by its issue_id or by its task_id. Issues without a remediation are skipped.
    """
    wanted = set(issue_ids)
    result = AutoFixResult(store=store.copy())
    working = result.store

    for issue in validate_logic(working).issues:
        if not issue.fixable:
            continue
        if issue.issue_id not in wanted and issue.task_id not in wanted:
            continue
        try:
            changed = issue.remediation.apply(working)
        except EngineError as e:
            logger.warning(f"auto_fix() could not fix {issue.issue_id}: {e.message}")
            result.errors.append(e)
            continue
        if changed:
            result.fixed_count += 1
            result.fixed_issue_ids.append(issue.issue_id)

    logger.info(f"auto_fix() fixed {result.fixed_count} issues")
    return result

if __name__ == "__main__":
    from ganttengine.store.task_table import parse_task_table
    from ganttengine.utils.dedent_strip import dedent_strip

    logging.basicConfig(level=logging.DEBUG)
    table = dedent_strip("""
        Task;Name;Duration;Start;Predecessor;Resource;Constraint;ConstraintDate
        A;Survey;3;2024-01-01;-;ann;;
        B;Permit;2;2024-01-02;A;ann;must-start-on;
        C;Order parts;4;2024-01-01;-;bob;;
    """)
    result = validate_logic(parse_task_table(table))
    for issue in result.issues:
        print(f"{issue.severity.value:8} {issue.issue_id:40} {issue.issue} fix={issue.suggested_fix}")
    for kind in IssueKind:
        print(f"{kind.value}: {len(result.by_kind(kind))}")
