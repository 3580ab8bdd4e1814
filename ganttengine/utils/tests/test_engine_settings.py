import os
import tempfile
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest import mock
from ganttengine.utils.engine_config import CONFIG_PATH_ENV_VAR, EngineConfig, EngineConfigError
from ganttengine.utils.engine_settings import EngineSettings, SettingKeyEnum, SlackMode

class TestEngineSettings(unittest.TestCase):
    def test_defaults(self):
        settings = EngineSettings.from_dict({})
        self.assertIsNone(settings.project_start)
        self.assertEqual(settings.slack_mode, SlackMode.HEURISTIC)
        self.assertEqual(settings.slack_total_ratio, Decimal("0.2"))
        self.assertEqual(settings.slack_free_ratio, Decimal("0.5"))
        self.assertTrue(settings.rollup_ancestors)

    def test_from_dict_parses_values(self):
        # Arrange
        values = {
            "GANTTENGINE_PROJECT_START": "2024-02-01",
            "GANTTENGINE_SLACK_MODE": "CRITICAL_PATH",
            "GANTTENGINE_SLACK_TOTAL_RATIO": "0.3",
            "GANTTENGINE_SLACK_FREE_RATIO": " 0.25 ",
            "GANTTENGINE_ROLLUP_ANCESTORS": "no",
        }

        # Act
        settings = EngineSettings.from_dict(values)

        # Assert
        self.assertEqual(settings.project_start, date(2024, 2, 1))
        self.assertEqual(settings.slack_mode, SlackMode.CRITICAL_PATH)
        self.assertEqual(settings.slack_total_ratio, Decimal("0.3"))
        self.assertEqual(settings.slack_free_ratio, Decimal("0.25"))
        self.assertFalse(settings.rollup_ancestors)

    def test_empty_value_falls_back_to_default(self):
        settings = EngineSettings.from_dict({"GANTTENGINE_SLACK_MODE": "  "})
        self.assertEqual(settings.slack_mode, SlackMode.HEURISTIC)

    def test_invalid_values_raise(self):
        cases = [
            {"GANTTENGINE_PROJECT_START": "01/02/2024"},
            {"GANTTENGINE_SLACK_MODE": "magic"},
            {"GANTTENGINE_SLACK_TOTAL_RATIO": "abc"},
            {"GANTTENGINE_SLACK_FREE_RATIO": "-0.1"},
            {"GANTTENGINE_ROLLUP_ANCESTORS": "maybe"},
        ]
        for values in cases:
            with self.subTest(values=values):
                with self.assertRaises(EngineConfigError):
                    EngineSettings.from_dict(values)

    def test_load_env_var_overrides_dotenv_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            # Arrange
            Path(tmpdir, ".env").write_text(
                "GANTTENGINE_SLACK_MODE=critical_path\nGANTTENGINE_SLACK_TOTAL_RATIO=0.4\n",
                encoding="utf-8",
            )
            env = {
                CONFIG_PATH_ENV_VAR: tmpdir,
                SettingKeyEnum.SLACK_TOTAL_RATIO.value: "0.1",
            }

            # Act
            with mock.patch.dict(os.environ, env, clear=False):
                os.environ.pop(SettingKeyEnum.SLACK_MODE.value, None)
                settings = EngineSettings.load()

            # Assert
            self.assertEqual(settings.slack_mode, SlackMode.CRITICAL_PATH)
            self.assertEqual(settings.slack_total_ratio, Decimal("0.1"))

class TestEngineConfig(unittest.TestCase):
    def test_config_dir_from_env_var(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            Path(tmpdir, ".env").write_text("", encoding="utf-8")
            with mock.patch.dict(os.environ, {CONFIG_PATH_ENV_VAR: tmpdir}, clear=False):
                config = EngineConfig.load()
            self.assertEqual(config.config_dir, Path(tmpdir))
            self.assertEqual(config.dotenv_path, Path(tmpdir) / ".env")

    def test_missing_config_dir_is_ignored(self):
        with mock.patch.dict(os.environ, {CONFIG_PATH_ENV_VAR: "/no/such/dir/for/ganttengine"}, clear=False):
            config = EngineConfig.load()
        self.assertIsNone(config.config_dir)

    def test_raise_if_dotenv_not_found(self):
        config = EngineConfig(config_dir=None, dotenv_path=None)
        with self.assertRaises(EngineConfigError):
            config.raise_if_dotenv_not_found()
