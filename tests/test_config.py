import unittest
from pathlib import Path

from pm_server.config import DEFAULT_DB_PATH, load_settings


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        settings = load_settings({})
        self.assertEqual(settings.db_path, DEFAULT_DB_PATH)
        self.assertEqual((settings.host, settings.port), ("127.0.0.1", 8000))
        self.assertFalse(settings.cookie_secure)
        self.assertIsNone(settings.cron_secret)
        self.assertEqual(settings.log_level, "INFO")
        self.assertIsNone(settings.log_dir)

    def test_environment_overrides(self):
        settings = load_settings(
            {
                "PM_DB_PATH": "/tmp/pm.db",
                "PM_HOST": "0.0.0.0",
                "PM_PORT": "9000",
                "PM_COOKIE_SECURE": "1",
                "PM_CRON_SECRET": " s3cret ",
                "PM_LOG_LEVEL": "debug",
                "PM_LOG_DIR": "logs",
            }
        )
        self.assertEqual(settings.db_path, Path("/tmp/pm.db"))
        self.assertEqual((settings.host, settings.port), ("0.0.0.0", 9000))
        self.assertTrue(settings.cookie_secure)
        self.assertEqual(settings.cron_secret, "s3cret")
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.log_dir, Path("logs"))

    def test_blank_values_fall_back(self):
        settings = load_settings({"PM_PORT": " ", "PM_CRON_SECRET": "", "PM_COOKIE_SECURE": "yes"})
        self.assertEqual(settings.port, 8000)
        self.assertIsNone(settings.cron_secret)
        self.assertFalse(settings.cookie_secure)
