"""Unit tests for ConfigManager."""

import json
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.config_manager import (
    AppConfig,
    ConfigManager,
    LiveLogSettings,
    LoggingSettings,
    apply_env_overrides,
)


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "test_config.json"
        self.config_manager = ConfigManager(str(self.config_path))

    def tearDown(self):
        """Clean up test environment."""
        if Path(self.temp_dir).exists():
            shutil.rmtree(self.temp_dir)

    def test_create_default_config(self):
        """Test default configuration creation."""
        config = self.config_manager.load_config()

        self.assertIsInstance(config, AppConfig)
        self.assertIsInstance(config.livelog, LiveLogSettings)
        self.assertIsInstance(config.logging, LoggingSettings)

        self.assertEqual(config.livelog.debounce_ms, 150)
        self.assertEqual(config.livelog.poll_interval_ms, 16)
        self.assertEqual(config.livelog.queue_capacity, 1024)
        self.assertTrue(config.livelog.follow)
        self.assertFalse(config.livelog.json_pretty)
        self.assertEqual(config.logging.log_level, "INFO")

    def test_save_and_load_config(self):
        """Test configuration saving and loading."""
        config = self.config_manager.load_config()
        config.livelog.debounce_ms = 300
        config.livelog.json_pretty = True
        config.logging.log_level = "DEBUG"

        self.config_manager.save_config(config)

        loaded_config = ConfigManager(str(self.config_path)).load_config()
        self.assertEqual(loaded_config.livelog.debounce_ms, 300)
        self.assertTrue(loaded_config.livelog.json_pretty)
        self.assertEqual(loaded_config.logging.log_level, "DEBUG")

    def test_config_validation(self):
        """Invalid or out-of-range values fall back to defaults."""
        invalid_config = {
            "livelog": {
                "debounce_ms": 999999,
                "poll_interval_ms": "fast",
                "queue_capacity": 2,
                "follow": "yes",
                "line_wrap": True,
                "unknown_key": 1,
            },
            "logging": {"log_level": "chatty"},
        }
        with open(self.config_path, 'w') as f:
            json.dump(invalid_config, f)

        config = self.config_manager.load_config()
        self.assertEqual(config.livelog.debounce_ms, 150)
        self.assertEqual(config.livelog.poll_interval_ms, 16)
        self.assertEqual(config.livelog.queue_capacity, 1024)
        self.assertTrue(config.livelog.follow)
        self.assertTrue(config.livelog.line_wrap)
        self.assertEqual(config.logging.log_level, "INFO")

    def test_corrupt_config_uses_backup(self):
        """A broken config file falls back to the backup written on save."""
        config = self.config_manager.load_config()
        config.livelog.debounce_ms = 250
        self.config_manager.save_config(config)
        # Second save copies the first file into the backup
        self.config_manager.save_config(config)

        self.config_path.write_text("{ not json", encoding="utf-8")
        recovered = ConfigManager(str(self.config_path)).load_config()
        self.assertEqual(recovered.livelog.debounce_ms, 250)

    def test_corrupt_config_without_backup_uses_defaults(self):
        self.config_path.write_text("{ not json", encoding="utf-8")
        config = ConfigManager(str(self.config_path)).load_config()
        self.assertEqual(config.livelog.debounce_ms, 150)

    def test_update_settings(self):
        """Test settings update methods."""
        self.config_manager.update_livelog_settings(debounce_ms=400, show_relative_time=True, bogus=1)

        config = ConfigManager(str(self.config_path)).load_config()
        self.assertEqual(config.livelog.debounce_ms, 400)
        self.assertTrue(config.livelog.show_relative_time)

    def test_reset_to_defaults(self):
        self.config_manager.update_livelog_settings(debounce_ms=400)
        self.config_manager.reset_to_defaults()
        self.assertEqual(self.config_manager.get_livelog_settings().debounce_ms, 150)


class TestEnvironmentOverrides(unittest.TestCase):
    def test_overrides_apply(self):
        settings = apply_env_overrides(
            LiveLogSettings(),
            {
                "BARK_DEBOUNCE_MS": "75",
                "BARK_POLL_INTERVAL_MS": "33",
                "BARK_QUEUE_CAPACITY": "64",
                "BARK_JSON_PRETTY": "true",
                "BARK_LINE_WRAP": "0",
            },
        )
        self.assertEqual(settings.debounce_ms, 75)
        self.assertEqual(settings.poll_interval_ms, 33)
        self.assertEqual(settings.queue_capacity, 64)
        self.assertTrue(settings.json_pretty)
        self.assertFalse(settings.line_wrap)

    def test_invalid_overrides_are_ignored(self):
        settings = apply_env_overrides(
            LiveLogSettings(),
            {"BARK_DEBOUNCE_MS": "soon", "BARK_JSON_PRETTY": "maybe", "BARK_QUEUE_CAPACITY": "1"},
        )
        self.assertEqual(settings.debounce_ms, 150)
        self.assertFalse(settings.json_pretty)
        self.assertEqual(settings.queue_capacity, 1024, "Out-of-range values are reset")


if __name__ == "__main__":
    unittest.main()
