"""
Settings that tune the scheduling engine, loaded from environment variables and the .env file.

Environment variables take priority over the .env file, and the .env file over the defaults.
The engine functions never call load() themselves, they receive an EngineSettings from the caller,
so the same input always gives the same schedule.

PROMPT> python -m ganttengine.utils.engine_settings
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Optional
import logging
import os
from dotenv import dotenv_values
from ganttengine.utils.engine_config import EngineConfig, EngineConfigError

logger = logging.getLogger(__name__)

class SettingKeyEnum(str, Enum):
    PROJECT_START = "GANTTENGINE_PROJECT_START"
    SLACK_MODE = "GANTTENGINE_SLACK_MODE"
    SLACK_TOTAL_RATIO = "GANTTENGINE_SLACK_TOTAL_RATIO"
    SLACK_FREE_RATIO = "GANTTENGINE_SLACK_FREE_RATIO"
    ROLLUP_ANCESTORS = "GANTTENGINE_ROLLUP_ANCESTORS"

class SlackMode(str, Enum):
    # Fixed ratio of the duration, cheap and good enough for the UI badges.
    HEURISTIC = "heuristic"
    # Forward/backward pass over the dependency network.
    CRITICAL_PATH = "critical_path"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}

@dataclass(frozen=True)
class EngineSettings:
    """
    Attributes:
        project_start: Start date for tasks that have no start date and no predecessors.
            When None, the earliest start date in the task store is used.
        slack_mode: How recalculate_slack() computes total/free slack.
        slack_total_ratio: Heuristic mode, total slack as a fraction of the duration.
        slack_free_ratio: Heuristic mode, free slack as a fraction of the total slack.
        rollup_ancestors: When True a summary rollup continues up through all the ancestors,
            when False only the immediate parent is recomputed.
    """
    project_start: Optional[date] = None
    slack_mode: SlackMode = SlackMode.HEURISTIC
    slack_total_ratio: Decimal = Decimal("0.2")
    slack_free_ratio: Decimal = Decimal("0.5")
    rollup_ancestors: bool = True

    @classmethod
    def load(cls) -> 'EngineSettings':
        config = EngineConfig.load()
        values: dict[str, Optional[str]] = {}
        if config.dotenv_path is not None:
            logger.info(f"Loading settings from .env file: {config.dotenv_path}")
            values.update(dotenv_values(dotenv_path=config.dotenv_path))

        env_var_count = 0
        for key in SettingKeyEnum:
            env_value = os.environ.get(key.value)
            if env_value:
                values[key.value] = env_value
                env_var_count += 1
        logger.debug(f"EngineSettings.load() {env_var_count} settings came from environment variables")
        return cls.from_dict(values)

    @classmethod
    def from_dict(cls, values: Mapping[str, Optional[str]]) -> 'EngineSettings':
        """
        Build settings from string values, keyed by SettingKeyEnum values.
        Unknown keys are ignored. Empty values fall back to the defaults.

        :raises: EngineConfigError if a value cannot be parsed.
        """
        defaults = cls()

        def _get(key: SettingKeyEnum) -> Optional[str]:
            value = values.get(key.value)
            if value is None:
                return None
            value = value.strip()
            return value or None

        project_start = defaults.project_start
        raw = _get(SettingKeyEnum.PROJECT_START)
        if raw is not None:
            try:
                project_start = date.fromisoformat(raw)
            except ValueError:
                raise EngineConfigError(f"{SettingKeyEnum.PROJECT_START.value} must be an ISO date (YYYY-MM-DD), got {raw!r}")

        slack_mode = defaults.slack_mode
        raw = _get(SettingKeyEnum.SLACK_MODE)
        if raw is not None:
            try:
                slack_mode = SlackMode(raw.lower())
            except ValueError:
                allowed = ", ".join(m.value for m in SlackMode)
                raise EngineConfigError(f"{SettingKeyEnum.SLACK_MODE.value} must be one of: {allowed}, got {raw!r}")

        slack_total_ratio = cls._parse_ratio(SettingKeyEnum.SLACK_TOTAL_RATIO, _get(SettingKeyEnum.SLACK_TOTAL_RATIO), defaults.slack_total_ratio)
        slack_free_ratio = cls._parse_ratio(SettingKeyEnum.SLACK_FREE_RATIO, _get(SettingKeyEnum.SLACK_FREE_RATIO), defaults.slack_free_ratio)

        rollup_ancestors = defaults.rollup_ancestors
        raw = _get(SettingKeyEnum.ROLLUP_ANCESTORS)
        if raw is not None:
            if raw.lower() in _TRUE_STRINGS:
                rollup_ancestors = True
            elif raw.lower() in _FALSE_STRINGS:
                rollup_ancestors = False
            else:
                raise EngineConfigError(f"{SettingKeyEnum.ROLLUP_ANCESTORS.value} must be a boolean, got {raw!r}")

        return cls(
            project_start=project_start,
            slack_mode=slack_mode,
            slack_total_ratio=slack_total_ratio,
            slack_free_ratio=slack_free_ratio,
            rollup_ancestors=rollup_ancestors,
        )

    @staticmethod
    def _parse_ratio(key: SettingKeyEnum, raw: Optional[str], default: Decimal) -> Decimal:
        if raw is None:
            return default
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise EngineConfigError(f"{key.value} must be a number, got {raw!r}")
        if not value.is_finite() or value < 0:
            raise EngineConfigError(f"{key.value} must be a non-negative number, got {raw!r}")
        return value

if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    settings = EngineSettings.load()
    print(f"settings: {settings!r}")
