"""
Slack (float) figures per task, and bulk removal of date constraints.

Two modes, picked with EngineSettings.slack_mode:
- heuristic: total = duration × slack_total_ratio, free = total × slack_free_ratio,
  both rounded half up to 0.01. No graph traversal.
- critical_path: total and free float from a forward/backward pass, see
  ganttengine.schedule.critical_path. A summary gets the smallest values among its children.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
from ganttengine.errors import EngineError, NotFoundError, ValidationError
from ganttengine.schedule.critical_path import compute_critical_path
from ganttengine.store.task_model import Slack, Task, ZERO
from ganttengine.store.task_store import TaskStore
from ganttengine.utils.engine_settings import EngineSettings, SlackMode

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

@dataclass
class SlackResult:
    store: TaskStore
    errors: list[EngineError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

@dataclass
class ConstraintClearResult:
    store: TaskStore
    tasks_cleared: int = 0
    errors: list[EngineError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def tasks(self) -> list[Task]:
        return self.store.tasks

def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)

def _heuristic_slack(task: Task, settings: EngineSettings) -> Slack:
    total = max(ZERO, task.duration * settings.slack_total_ratio)
    free = total * settings.slack_free_ratio
    return Slack(total=_round(total), free=_round(free))

def _critical_path_slack(store: TaskStore) -> None:
    analysis = compute_critical_path(store)
    for task_id, timing in analysis.timings.items():
        store.require(task_id).slack = Slack(total=_round(timing.total_float), free=_round(timing.free_float))

    # Deepest summaries first, so an outer summary sees the values of the inner ones.
    summaries = sorted((task for task in store if task.is_summary and task.children), key=lambda task: -task.level)
    for summary in summaries:
        child_slacks = [child.slack for child in store.children_of(summary.id) if child.slack is not None]
        if not child_slacks:
            summary.slack = Slack()
            continue
        summary.slack = Slack(
            total=min(slack.total for slack in child_slacks),
            free=min(slack.free for slack in child_slacks),
        )

def recalculate_slack(store: TaskStore, settings: Optional[EngineSettings] = None) -> SlackResult:
    settings = settings or EngineSettings()
    result = SlackResult(store=store.copy())
    working = result.store

    if settings.slack_mode == SlackMode.CRITICAL_PATH:
        try:
            _critical_path_slack(working)
        except ValidationError as e:
            logger.warning(f"recalculate_slack() critical path failed: {e.message}")
            result.errors.append(e)
            result.store = store.copy()
            return result
    else:
        for task in working:
            task.slack = _heuristic_slack(task, settings)

    logger.info(f"recalculate_slack() mode {settings.slack_mode.value}, {len(working)} tasks")
    return result

def clear_constraints(store: TaskStore, ids: Optional[Iterable[str]] = None) -> ConstraintClearResult:
    """Remove the constraint pair from the given tasks, or from every task when ids is None."""
    result = ConstraintClearResult(store=store.copy())
    working = result.store
    if ids is None:
        target_ids = working.task_ids
    else:
        id_list = list(ids)
        for task_id in working.unknown_ids(id_list):
            result.errors.append(NotFoundError(f"Task {task_id!r} not found", task_id=task_id))
        target_ids = working.in_document_order(id_list)

    for task_id in target_ids:
        if working.require(task_id).clear_constraint():
            result.tasks_cleared += 1

    logger.info(f"clear_constraints() cleared {result.tasks_cleared} tasks")
    return result
