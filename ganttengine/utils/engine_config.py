"""
Locate the engine's .env file.

Finds the file by checking the following locations in order:
1. The directory specified by the GANTTENGINE_CONFIG_PATH environment variable. It must be an absolute path.
2. The current working directory (CWD).
3. The project root directory (assumed to be two levels above this file's location).

Usage: without any GANTTENGINE_CONFIG_PATH environment variable.
PROMPT> python -m ganttengine.utils.engine_config

Usage: with a GANTTENGINE_CONFIG_PATH environment variable set.
PROMPT> GANTTENGINE_CONFIG_PATH='/home/alice/schedules' python -m ganttengine.utils.engine_config
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV_VAR = "GANTTENGINE_CONFIG_PATH"

class ConfigNameEnum(str, Enum):
    DOTENV = ".env"

class EngineConfigError(Exception):
    """Raised when there is an error with the configuration."""
    pass

@dataclass
class EngineConfig:
    """
    Holds the resolved path to the .env file and the directory from the env var.

    Attributes:
        config_dir: Optional[Path] - The directory specified by GANTTENGINE_CONFIG_PATH
        dotenv_path: Optional[Path] - Path to the .env file, None when there is no such file
    """
    config_dir: Optional[Path]
    dotenv_path: Optional[Path]

    @classmethod
    def load(cls) -> 'EngineConfig':
        """
        Resolve the configuration paths by searching the predefined locations.

        Unlike a long running server, the engine is often used from tests that
        change the CWD and the environment, so nothing is cached here.
        """
        config_dir = cls.resolve_config_dir()
        dotenv_path = cls.find_file_in_search_order(ConfigNameEnum.DOTENV.value, config_dir)
        return cls(config_dir=config_dir, dotenv_path=dotenv_path)

    def raise_if_dotenv_not_found(self) -> None:
        """
        :raises: EngineConfigError if the .env file could not be located.
        """
        if self.dotenv_path is None:
            msg = f"Required configuration file {ConfigNameEnum.DOTENV.value!r} was not found"
            logger.error(msg)
            raise EngineConfigError(msg)

    @classmethod
    def resolve_config_dir(cls) -> Optional[Path]:
        """
        Resolves and validates the GANTTENGINE_CONFIG_PATH environment variable.
        It's expected to be an absolute path to a directory.

        :return: A Path object if valid, otherwise None.
        """
        path_str = os.environ.get(CONFIG_PATH_ENV_VAR)
        if path_str is None:
            logger.debug(f"{CONFIG_PATH_ENV_VAR} is not set")
            return None

        path_obj = Path(path_str)
        if not path_obj.is_absolute():
            logger.error(f"{CONFIG_PATH_ENV_VAR} must be an absolute path: {path_obj!r}")
            return None
        if not path_obj.is_dir():
            logger.error(f"{CONFIG_PATH_ENV_VAR} must be a directory: {path_obj!r}")
            return None
        logger.debug(f"Using {CONFIG_PATH_ENV_VAR}: {path_obj!r}")
        return path_obj

    @classmethod
    def find_file_in_search_order(cls, filename: str, config_dir: Optional[Path]) -> Optional[Path]:
        """
        Finds a configuration file based on a precedence of locations.

        :param filename: The name of the file to find (e.g., ".env").
        :param config_dir: The validated absolute directory path from GANTTENGINE_CONFIG_PATH.
        :return: The Path to the file if found, otherwise None.
        """
        if config_dir is not None:
            config_file_path = config_dir / filename
            if config_file_path.is_file():
                logger.debug(f"Found {filename!r} at config_file_path: {config_file_path!r}")
                return config_file_path

        cwd_file_path = Path.cwd() / filename
        if cwd_file_path.is_file():
            logger.debug(f"Found {filename!r} at cwd_file_path: {cwd_file_path!r}")
            return cwd_file_path

        root_file_path = Path(__file__).parent.parent.parent / filename
        if root_file_path.is_file():
            logger.debug(f"Found {filename!r} at root_file_path: {root_file_path!r}")
            return root_file_path

        # A missing .env is normal, all settings have defaults.
        logger.debug(f"{filename!r} not found in any of the search locations (ENV_VAR, CWD, Project Root).")
        return None

if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    config = EngineConfig.load()
    print(f"config: {config!r}")
