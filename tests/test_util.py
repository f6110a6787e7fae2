import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from catalog.util import get_path_for_write, load_settings
from constants import DB_FILE, DEFAULT_PORT


class LoadSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.env_file = str(Path(self.temp_dir.name) / ".env")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_defaults_without_env_file(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings(self.env_file)
        self.assertEqual(settings["db_file"], get_path_for_write(DB_FILE))
        self.assertEqual(settings["port"], DEFAULT_PORT)
        self.assertEqual(settings["log_level"], "INFO")

    def test_env_file_values_are_read(self) -> None:
        db_path = str(Path(self.temp_dir.name) / "other.db")
        Path(self.env_file).write_text(
            f"ERP_DB_FILE={db_path}\nERP_PORT=9000\nERP_LOG_LEVEL=debug\n", encoding="utf-8"
        )
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings(self.env_file)
        self.assertEqual(settings["db_file"], db_path)
        self.assertEqual(settings["port"], 9000)
        self.assertEqual(settings["log_level"], "DEBUG")

    def test_invalid_port_falls_back_to_default(self) -> None:
        with mock.patch.dict(os.environ, {"ERP_PORT": "http"}, clear=True):
            settings = load_settings(self.env_file)
        self.assertEqual(settings["port"], DEFAULT_PORT)


if __name__ == "__main__":
    unittest.main()
