"""
Records that the scheduling engine works on: tasks and the dependency edges between them.

Uses ``decimal.Decimal`` for fractional durations & lags.

Calendar convention
-------------------
Dates are whole calendar days and ``end_date`` is inclusive.
A task occupies ``max(1, ceil(duration))`` days, so a 5 day task starting on
2024-01-01 ends on 2024-01-05, and a 0 day milestone starts and ends on the same day.
A fractional lag is rounded up to whole days, "1.5d" delays by 2 days and "-1.5d" pulls in by 1 day.
"""
import re
from datetime import date, timedelta
from decimal import Decimal, ROUND_CEILING
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ZERO = Decimal("0")

# ────────────────────────────────────────────────────────────────────────────────
#  Dependency types
# ----------------------------------------------------------------------------
class DependencyType(str, Enum):
    FS = "FS"  # Finish‑to‑Start
    SS = "SS"  # Start‑to‑Start
    FF = "FF"  # Finish‑to‑Finish
    SF = "SF"  # Start‑to‑Finish

class ConstraintType(str, Enum):
    AS_SOON_AS_POSSIBLE = "as-soon-as-possible"
    START_NO_EARLIER_THAN = "start-no-earlier-than"
    MUST_START_ON = "must-start-on"
    START_NO_LATER_THAN = "start-no-later-than"
    MUST_FINISH_ON = "must-finish-on"
    FINISH_NO_LATER_THAN = "finish-no-later-than"

    @classmethod
    def _missing_(cls, value: object) -> Optional['ConstraintType']:
        # Short ids used by the ribbon buttons.
        aliases = {
            "asap": cls.AS_SOON_AS_POSSIBLE,
            "start-no-earlier": cls.START_NO_EARLIER_THAN,
            "start-no-later": cls.START_NO_LATER_THAN,
            "finish-no-later": cls.FINISH_NO_LATER_THAN,
        }
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None

# ────────────────────────────────────────────────────────────────────────────────
#  Lag grammar, like "0d", "+2d", "-1.5d"
# ----------------------------------------------------------------------------
LAG_PATTERN = r"^[+-]?\d+(\.\d+)?d$"
_LAG_RE = re.compile(LAG_PATTERN)

def is_valid_lag(text: object) -> bool:
    return isinstance(text, str) and _LAG_RE.match(text) is not None

def parse_lag(text: str) -> Decimal:
    """Return the signed number of days in a lag string. Raises ValueError when malformed."""
    if not is_valid_lag(text):
        raise ValueError(f"Invalid lag {text!r}, expected a signed number of days like '+2d', '-1.5d' or '0d'")
    return Decimal(text[:-1])

def format_lag(days: Decimal) -> str:
    """Inverse of parse_lag(), Decimal("2") -> "2d", Decimal("-1.50") -> "-1.5d"."""
    if days == ZERO:
        return "0d"
    return f"{format(days.normalize(), 'f')}d"

def ceil_days(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))

def span_in_days(duration: Decimal) -> int:
    """Number of calendar days occupied by a task of the given duration."""
    return max(1, ceil_days(duration))

def end_from_start(start: date, duration: Decimal) -> date:
    return start + timedelta(days=span_in_days(duration) - 1)

def start_from_end(end: date, duration: Decimal) -> date:
    return end - timedelta(days=span_in_days(duration) - 1)

# ────────────────────────────────────────────────────────────────────────────────
#  Data classes
# ----------------------------------------------------------------------------
class Dependency(BaseModel):
    """
    A directed edge: the successor is constrained by the predecessor.

    The task store keeps exactly one list of these. Per-task predecessor/successor
    views are derived by lookup, so there is no second copy that can drift.
    """
    model_config = ConfigDict(frozen=True)

    predecessor_id: str = Field(description="Id of the task that drives the successor.")
    successor_id: str = Field(description="Id of the task being constrained.")
    type: DependencyType = Field(default=DependencyType.FS, description="Relationship type.")
    lag: str = Field(default="0d", description="Signed offset in days, like '+2d' or '-1.5d'.")

    @field_validator("lag")
    @classmethod
    def _check_lag(cls, value: str) -> str:
        parse_lag(value)
        return value

    @model_validator(mode="after")
    def _check_not_self_loop(self) -> 'Dependency':
        if self.predecessor_id == self.successor_id:
            raise ValueError(f"Task {self.predecessor_id!r} cannot depend on itself")
        return self

    @property
    def key(self) -> tuple[str, str, DependencyType]:
        return (self.predecessor_id, self.successor_id, self.type)

    @property
    def lag_value(self) -> Decimal:
        return parse_lag(self.lag)

    @property
    def lag_days(self) -> int:
        return ceil_days(self.lag_value)

    def connects(self, task_id_a: str, task_id_b: str) -> bool:
        """True if the edge joins the two tasks, in either direction."""
        return {self.predecessor_id, self.successor_id} == {task_id_a, task_id_b}

    def __str__(self) -> str:
        return f"{self.predecessor_id}->{self.successor_id} {self.type.value}{self.lag}"

class Slack(BaseModel):
    total: Decimal = ZERO
    free: Decimal = ZERO

class Task(BaseModel):
    """
    One row of the schedule.

    ``constraint_type`` and ``constraint_date`` belong together, but the model accepts a half
    filled pair so the logic validator can report it instead of the import failing.
    """
    id: str = Field(min_length=1)
    name: str = ""
    duration: Decimal = Field(default=ZERO, ge=0, description="Working days, may be fractional.")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    level: int = Field(default=0, ge=0, description="Depth in the hierarchy, root tasks are 0.")
    parent_id: Optional[str] = None
    children: list[str] = Field(default_factory=list, description="Ordered ids of the direct children.")
    is_summary: bool = False
    constraint_type: Optional[ConstraintType] = None
    constraint_date: Optional[date] = None
    assigned_resource: Optional[str] = None
    slack: Optional[Slack] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def span_days(self) -> int:
        return span_in_days(self.duration)

    def has_any_constraint_field(self) -> bool:
        return self.constraint_type is not None or self.constraint_date is not None

    def has_half_constraint(self) -> bool:
        return (self.constraint_type is None) != (self.constraint_date is None)

    def clear_constraint(self) -> bool:
        """Remove the constraint pair. Returns True if anything was removed."""
        changed = self.has_any_constraint_field()
        self.constraint_type = None
        self.constraint_date = None
        return changed
