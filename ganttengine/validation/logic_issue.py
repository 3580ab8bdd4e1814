"""
Schedule logic issues and the typed remediations that auto_fix() applies.

Every issue has a kind from a closed enum. A remediation, when present, is a small
value object that knows how to change the store, so fixing never depends on the wording
of the issue text.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from ganttengine.errors import ValidationError
from ganttengine.store.task_model import Dependency, DependencyType
from ganttengine.store.task_store import TaskStore

class IssueKind(str, Enum):
    CIRCULAR_DEPENDENCY = "circular-dependency"
    MISSING_SUCCESSOR = "missing-successor"
    RESOURCE_OVERLAP = "resource-overlap"
    INVALID_CONSTRAINT = "invalid-constraint"
    MISSING_PREDECESSOR = "missing-predecessor"

class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

class Remediation(ABC):
    @abstractmethod
    def apply(self, store: TaskStore) -> bool:
        """Change the store in place. Returns True if anything changed."""
        pass

    @abstractmethod
    def describe(self) -> str:
        pass

def _add_fs_edge(store: TaskStore, predecessor_id: str, successor_id: str) -> bool:
    if store.has_edge_between(predecessor_id, successor_id):
        return False
    if store.reaches(successor_id, predecessor_id):
        raise ValidationError(
            f"Linking {predecessor_id!r} -> {successor_id!r} would create a circular dependency",
            task_id=successor_id
        )
    store.add_dependency(Dependency(predecessor_id=predecessor_id, successor_id=successor_id, type=DependencyType.FS, lag="0d"))
    return True

@dataclass(frozen=True)
class AttachSuccessor(Remediation):
    task_id: str
    successor_id: str

    def apply(self, store: TaskStore) -> bool:
        return _add_fs_edge(store, self.task_id, self.successor_id)

    def describe(self) -> str:
        return f"Link {self.task_id} to successor {self.successor_id} (FS)"

@dataclass(frozen=True)
class AttachPredecessor(Remediation):
    task_id: str
    predecessor_id: str

    def apply(self, store: TaskStore) -> bool:
        return _add_fs_edge(store, self.predecessor_id, self.task_id)

    def describe(self) -> str:
        return f"Link predecessor {self.predecessor_id} to {self.task_id} (FS)"

@dataclass(frozen=True)
class ClearConstraint(Remediation):
    task_id: str

    def apply(self, store: TaskStore) -> bool:
        return store.require(self.task_id).clear_constraint()

    def describe(self) -> str:
        return f"Clear the constraint of {self.task_id}"

@dataclass(frozen=True)
class RemoveDependency(Remediation):
    predecessor_id: str
    successor_id: str

    def apply(self, store: TaskStore) -> bool:
        removed = False
        for edge in store.edges_between(self.predecessor_id, self.successor_id):
            if edge.predecessor_id == self.predecessor_id:
                removed = store.remove_dependency(edge) or removed
        return removed

    def describe(self) -> str:
        return f"Remove the dependency {self.predecessor_id} -> {self.successor_id}"

@dataclass
class LogicIssue:
    kind: IssueKind
    task_id: str
    task_name: str
    issue: str
    severity: Severity
    suggested_fix: Optional[str] = None
    related_task_id: Optional[str] = None
    remediation: Optional[Remediation] = None

    @property
    def issue_id(self) -> str:
        """Stable id like "missing-successor:T3" or "resource-overlap:T1:T2"."""
        parts = [self.kind.value, self.task_id]
        if self.related_task_id is not None:
            parts.append(self.related_task_id)
        return ":".join(parts)

    @property
    def fixable(self) -> bool:
        return self.remediation is not None
