"""
Stateful wrapper around the pure engine functions, for a UI that edits one schedule.

Each mutating call runs the engine on the current store. When the call succeeded and the
store actually changed, the editor swaps in the new store, records a HistoryEntry with the
before/after snapshots and asks the persistence layer to save.

PROMPT> python -m ganttengine.editor.schedule_editor
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Union
from ganttengine.dependency.dependency_manager import DependencyResult, add_dependency, link, unlink, update_lag
from ganttengine.hierarchy.hierarchy_manager import HierarchyResult, indent, make_summary, outdent
from ganttengine.schedule.reschedule import RescheduleResult, reschedule
from ganttengine.store.task_model import DependencyType
from ganttengine.store.task_store import TaskStore
from ganttengine.utils.engine_settings import EngineSettings
from ganttengine.validation.logic_validator import AutoFixResult, LogicValidationResult, auto_fix, validate_logic
from ganttengine.validation.slack import ConstraintClearResult, SlackResult, clear_constraints, recalculate_slack

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class HistoryEntry:
    description: str
    before_state: dict
    after_state: dict

class Persistence(Protocol):
    def save(self, store: TaskStore) -> bool:
        ...

class HistoryRecorder(Protocol):
    def record(self, entry: HistoryEntry) -> None:
        ...

class JsonFilePersistence:
    """Keeps the schedule as one JSON document on disk."""
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, store: TaskStore) -> bool:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(store.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save schedule to {self.path}: {e}")
            return False
        logger.debug(f"Saved schedule to {self.path}")
        return True

    def load(self) -> TaskStore:
        with open(self.path, "r", encoding="utf-8") as f:
            return TaskStore.from_dict(json.load(f))

class ScheduleEditor:
    def __init__(
        self,
        store: TaskStore,
        persistence: Optional[Persistence] = None,
        history: Optional[HistoryRecorder] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.store = store
        self.persistence = persistence
        self.history = history
        self.settings = settings or EngineSettings()

    def _commit(self, description: str, result: Any, success: bool) -> None:
        if not success:
            logger.info(f"{description}: not applied, the operation reported errors")
            return
        before_state = self.store.to_dict()
        after_state = result.store.to_dict()
        if before_state == after_state:
            logger.debug(f"{description}: nothing changed")
            return
        self.store = result.store
        if self.history is not None:
            self.history.record(HistoryEntry(description=description, before_state=before_state, after_state=after_state))
        if self.persistence is not None and not self.persistence.save(self.store):
            logger.warning(f"{description}: the change was applied but could not be saved")

    # ── Hierarchy ────────────────────────────────────────────────
    # Tasks that could not move are reported in result.errors, the ones that moved are kept.
    def indent(self, selected_ids: list[str]) -> HierarchyResult:
        result = indent(self.store, selected_ids, self.settings)
        self._commit(f"Indent {', '.join(selected_ids)}", result, bool(result.changed_ids))
        return result

    def outdent(self, selected_ids: list[str]) -> HierarchyResult:
        result = outdent(self.store, selected_ids, self.settings)
        self._commit(f"Outdent {', '.join(selected_ids)}", result, bool(result.changed_ids))
        return result

    def make_summary(self, selected_ids: list[str]) -> HierarchyResult:
        result = make_summary(self.store, selected_ids, self.settings)
        self._commit(f"Make summary {', '.join(selected_ids)}", result, bool(result.changed_ids))
        return result

    # ── Dependencies ─────────────────────────────────────────────
    def link(self, selected_ids: list[str]) -> DependencyResult:
        result = link(self.store, selected_ids)
        self._commit(f"Link {', '.join(selected_ids)}", result, result.success)
        return result

    def unlink(self, selected_ids: list[str]) -> DependencyResult:
        result = unlink(self.store, selected_ids)
        self._commit(f"Unlink {', '.join(selected_ids)}", result, result.success)
        return result

    def add_dependency(self, predecessor_id: str, successor_id: str, dep_type: DependencyType = DependencyType.FS, lag: str = "0d") -> DependencyResult:
        result = add_dependency(self.store, predecessor_id, successor_id, dep_type, lag)
        self._commit(f"Add dependency {predecessor_id} -> {successor_id}", result, result.success)
        return result

    def update_lag(self, predecessor_id: str, successor_id: str, lag: str, dep_type: Optional[DependencyType] = None) -> DependencyResult:
        result = update_lag(self.store, predecessor_id, successor_id, lag, dep_type)
        self._commit(f"Set lag {predecessor_id} -> {successor_id} to {lag}", result, result.success)
        return result

    # ── Scheduling & validation ──────────────────────────────────
    def reschedule(self, selected_ids: Optional[Iterable[str]] = None) -> RescheduleResult:
        result = reschedule(self.store, selected_ids, self.settings)
        self._commit("Reschedule", result, result.success)
        return result

    def recalculate_slack(self) -> SlackResult:
        result = recalculate_slack(self.store, self.settings)
        self._commit("Recalculate slack", result, result.success)
        return result

    def clear_constraints(self, ids: Optional[Iterable[str]] = None) -> ConstraintClearResult:
        result = clear_constraints(self.store, ids)
        self._commit("Clear constraints", result, result.success)
        return result

    def validate_logic(self) -> LogicValidationResult:
        return validate_logic(self.store)

    def auto_fix(self, issue_ids: Iterable[str]) -> AutoFixResult:
        result = auto_fix(self.store, issue_ids)
        # Partial fixes are kept, the failed ones are reported in result.errors.
        self._commit("Auto fix", result, result.fixed_count > 0)
        return result

if __name__ == "__main__":
    from ganttengine.store.task_table import export_task_table, parse_task_table
    from ganttengine.utils.dedent_strip import dedent_strip

    class PrintHistory:
        def record(self, entry: HistoryEntry) -> None:
            print(f"history: {entry.description}")

    logging.basicConfig(level=logging.DEBUG)
    store = parse_task_table(dedent_strip("""
        Task;Name;Duration;Start;Predecessor
        A;Plan;2;2024-03-04;-
        B;Do;3;;-
        C;Check;1;;-
    """))
    editor = ScheduleEditor(store, history=PrintHistory())
    editor.link(["A", "B", "C"])
    editor.reschedule()
    print(export_task_table(editor.store))
