"""Tests for libreclient.config -- run parameters and configuration persistence."""

import os
import tempfile
import unittest
from unittest import mock

from libreclient.config import (
    DEFAULTS,
    MeasurementConfig,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


class TestMeasurementConfig(unittest.TestCase):
    def test_defaults_valid(self):
        cfg = MeasurementConfig()
        self.assertEqual(cfg.streams, 3)
        self.assertEqual(cfg.ping_count, 10)
        self.assertEqual(cfg.download_chunk_mb, 100)
        self.assertEqual(cfg.upload_size, 1024 * 1024)

    def test_rejects_zero_streams(self):
        with self.assertRaises(ValueError):
            MeasurementConfig(streams=0)

    def test_rejects_non_positive_durations(self):
        with self.assertRaises(ValueError):
            MeasurementConfig(download_duration=0)
        with self.assertRaises(ValueError):
            MeasurementConfig(upload_duration=-1.0)

    def test_rejects_zero_ping_count(self):
        with self.assertRaises(ValueError):
            MeasurementConfig(ping_count=0)

    def test_rejects_bad_sizes(self):
        with self.assertRaises(ValueError):
            MeasurementConfig(download_chunk_mb=0)
        with self.assertRaises(ValueError):
            MeasurementConfig(upload_size=0)

    def test_frozen(self):
        cfg = MeasurementConfig()
        with self.assertRaises(AttributeError):
            cfg.streams = 5

    def test_from_mapping(self):
        cfg = MeasurementConfig.from_mapping(
            {"connections": 6, "ping_count": 4, "chunk_size": 25, "upload_size": 2048, "server": "x"}
        )
        self.assertEqual(cfg.streams, 6)
        self.assertEqual(cfg.ping_count, 4)
        self.assertEqual(cfg.download_chunk_mb, 25)
        self.assertEqual(cfg.upload_size, 2048)
        self.assertEqual(cfg.download_duration, DEFAULTS["download_duration"])


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("server", "server_list", "max_servers", "connections", "ping_count",
                    "download_duration", "upload_duration", "chunk_size", "upload_size",
                    "log_level"):
            self.assertIn(key, DEFAULTS)

    def test_defaults_build_valid_config(self):
        MeasurementConfig.from_mapping(DEFAULTS)


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("libreclient.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["connections"], 3)
                self.assertEqual(cfg["server"], "")

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "sub", "config.json")
            with mock.patch("libreclient.config._config_path", return_value=path):
                save_config({"connections": 8, "server": "https://speed.example.com/"})
                cfg = load_config()
                self.assertEqual(cfg["connections"], 8)
                self.assertEqual(cfg["server"], "https://speed.example.com/")
                # Defaults still present
                self.assertEqual(cfg["ping_count"], 10)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("libreclient.config._config_path", return_value=path):
                with self.assertLogs("libreclient.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["connections"], 3)

    def test_get_set_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("libreclient.config._config_path", return_value=path):
                set_config_value("max_servers", 5)
                self.assertEqual(get_config_value("max_servers"), 5)

                set_config_value("log_level", "DEBUG")
                self.assertEqual(get_config_value("log_level"), "DEBUG")


if __name__ == "__main__":
    unittest.main()
