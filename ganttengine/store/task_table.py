"""
Semicolon separated task tables, used for fixtures, imports and quick inspection of a schedule.

Columns (case insensitive):
- Task (required): the task id.
- Duration (required): days, may be fractional.
- Name, Start, End, Level, Parent, Predecessor, Resource, Constraint, ConstraintDate (optional).

Predecessors are comma separated, like ``A``, ``A(SS)``, ``A(FS+2d)`` or ``A(FF-1.5)``.
A missing type means FS, a missing lag means "0d".

PROMPT> python -m ganttengine.store.task_table
"""
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Optional
import pandas as pd
from ganttengine.store.task_model import (
    ConstraintType, Dependency, DependencyType, Task, ZERO, end_from_start, format_lag, parse_lag
)
from ganttengine.store.task_store import TaskStore

logger = logging.getLogger(__name__)

_DEP_RE = re.compile(r"([\w-]+)(?:\(([SF]{2})(?:([-+]?\d+(?:\.\d+)?)d?)?\))?", re.IGNORECASE)

def parse_dependency(dep_str: str, successor_id: str) -> Dependency:
    dep_str = dep_str.strip()
    m = _DEP_RE.fullmatch(dep_str)
    if not m:
        raise ValueError(f"Invalid dependency format: {dep_str!r} for task {successor_id!r}")
    predecessor_id, dep_type_str, lag_str = m.groups()
    dep_type = DependencyType(dep_type_str.upper()) if dep_type_str else DependencyType.FS
    lag = format_lag(Decimal(lag_str)) if lag_str else "0d"
    return Dependency(predecessor_id=predecessor_id, successor_id=successor_id, type=dep_type, lag=lag)

def format_dependency(dependency: Dependency) -> str:
    """Inverse of parse_dependency(), as seen from the successor."""
    if dependency.type == DependencyType.FS and parse_lag(dependency.lag) == ZERO:
        return dependency.predecessor_id
    lag = "" if parse_lag(dependency.lag) == ZERO else dependency.lag
    return f"{dependency.predecessor_id}({dependency.type.value}{lag})"

def _parse_date(value: str, column: str, task_id: str) -> Optional[date]:
    value = value.strip()
    if value in ("", "-"):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid {column} date for task {task_id}: {value!r}")

def parse_task_table(data: str) -> TaskStore:
    """Parse a semicolon separated text block into a TaskStore."""
    df = pd.read_csv(
        StringIO(data),
        sep=";",
        comment="#",
        dtype=str,
        keep_default_na=False,
    )

    # normalise column names, "Constraint Date" and "constraint_date" become "constraintdate"
    df.columns = df.columns.str.strip().str.lower().str.replace(r"[\s_]", "", regex=True)
    required = {"task", "duration"}
    if not required.issubset(df.columns):
        missing = required - set(df.columns)
        raise ValueError(f"Missing columns: {', '.join(sorted(missing))}")

    # duplication early exit
    if df["task"].str.strip().duplicated(keep=False).any():
        dups = df.loc[df["task"].str.strip().duplicated(keep=False), "task"].tolist()
        raise ValueError(f"Duplicate task IDs: {', '.join(dups)}")

    def cell(row: pd.Series, column: str) -> str:
        if column not in row.index or pd.isna(row[column]):
            return ""
        return str(row[column]).strip()

    tasks: list[Task] = []
    predecessor_strings: dict[str, str] = {}
    has_level_column = "level" in df.columns

    for _, row in df.iterrows():
        task_id = cell(row, "task")
        duration_str = cell(row, "duration")
        if duration_str == "":
            raise ValueError(f"Duration empty for task {task_id}")
        try:
            duration = Decimal(duration_str)
        except InvalidOperation:
            raise ValueError(f"Non‑numeric duration for task {task_id}: '{duration_str}'")
        if duration < ZERO:
            raise ValueError(f"Duration must not be negative for {task_id}")

        start_date = _parse_date(cell(row, "start"), "start", task_id)
        end_date = _parse_date(cell(row, "end"), "end", task_id)
        if end_date is None and start_date is not None:
            end_date = end_from_start(start_date, duration)

        constraint_str = cell(row, "constraint")
        constraint_type = ConstraintType(constraint_str.lower()) if constraint_str not in ("", "-") else None

        level_str = cell(row, "level")
        level = int(level_str) if has_level_column and level_str != "" else 0

        tasks.append(Task(
            id=task_id,
            name=cell(row, "name"),
            duration=duration,
            start_date=start_date,
            end_date=end_date,
            level=level,
            parent_id=cell(row, "parent") or None,
            assigned_resource=cell(row, "resource") or None,
            constraint_type=constraint_type,
            constraint_date=_parse_date(cell(row, "constraintdate"), "constraint", task_id),
        ))
        predecessor_strings[task_id] = cell(row, "predecessor") or "-"

    store = TaskStore(tasks=tasks)

    # Wire the containment tree from the Parent column.
    for task in store:
        if task.parent_id is None:
            continue
        parent = store.get(task.parent_id)
        if parent is None:
            raise ValueError(f"Parent {task.parent_id!r} of task {task.id!r} not found")
        parent.children.append(task.id)
        parent.is_summary = True
    if not has_level_column:
        for task in store:
            task.level = len(store.ancestors(task.id))

    for task_id, pred_str in predecessor_strings.items():
        if pred_str == "-":
            continue
        for item in pred_str.split(","):
            store.add_dependency(parse_dependency(item, task_id))

    logger.debug(f"parse_task_table() parsed {len(store)} tasks and {len(store.dependencies)} dependencies")
    return store

def _d(val: Optional[object]) -> str:
    """Shortest plain string. Decimals without exponent or trailing zeros, None as empty field."""
    if val is None:
        return ""
    if isinstance(val, Decimal):
        return format(val.normalize(), "f")
    if isinstance(val, date):
        return val.isoformat()
    if hasattr(val, "value"):
        return str(val.value)
    return str(val)

def export_task_table(store: TaskStore, *, sep: str = ";") -> str:
    """
    Deterministic line-oriented dump of the store, in document order.
    The output can be read back with parse_task_table().
    """
    if not isinstance(store, TaskStore):
        raise ValueError("store must be a TaskStore")

    data_rows: list[dict[str, str]] = []
    for task in store:
        predecessor = ",".join(format_dependency(edge) for edge in store.predecessors(task.id))
        data_rows.append({
            "Task": task.id,
            "Name": task.name,
            "Duration": _d(task.duration),
            "Start": _d(task.start_date),
            "End": _d(task.end_date),
            "Level": str(task.level),
            "Parent": _d(task.parent_id),
            "Predecessor": predecessor or "-",
            "Resource": _d(task.assigned_resource),
            "Constraint": _d(task.constraint_type),
            "ConstraintDate": _d(task.constraint_date),
            "TotalSlack": _d(task.slack.total) if task.slack else "",
            "FreeSlack": _d(task.slack.free) if task.slack else "",
        })

    columns = ["Task", "Name", "Duration", "Start", "End", "Level", "Parent", "Predecessor",
               "Resource", "Constraint", "ConstraintDate", "TotalSlack", "FreeSlack"]
    df = pd.DataFrame(data_rows, columns=columns)
    return df.to_csv(sep=sep, index=False, lineterminator="\n")

if __name__ == "__main__":
    from ganttengine.utils.dedent_strip import dedent_strip

    logging.basicConfig(level=logging.DEBUG)
    input = dedent_strip("""
        Task;Name;Duration;Start;Predecessor
        A;Excavation;3;2024-01-01;-
        B;Foundations;2;;A(FS+1d)
        C;Framing;4;;B
    """)
    print(export_task_table(parse_task_table(input)))
