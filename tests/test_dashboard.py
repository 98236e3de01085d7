"""Smoke tests for the rich dashboard and logging setup."""

import logging
import math
import os
import tempfile
import unittest
from unittest import mock

from rich.console import Console
from rich.logging import RichHandler

from libreclient.latency import PingResult
from libreclient.logging_setup import configure_logging
from libreclient.progress import ProgressEvent
from libreclient.server import Server
from libreclient.stats import StreamStats
from libreclient.transfer import TransferResult
from ui import dashboard


class TestHistogram(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(dashboard.create_histogram([]), "No data")

    def test_length_and_extremes(self):
        h = dashboard.create_histogram([1.0, 5.0, 10.0])
        self.assertEqual(len(h), 3)
        self.assertEqual(h[0], "▁")
        self.assertEqual(h[-1], "█")

    def test_flat(self):
        self.assertEqual(len(dashboard.create_histogram([3.0, 3.0])), 2)


class TestPrintHelpers(unittest.TestCase):
    def setUp(self):
        self.console = Console(record=True, width=120)
        patcher = mock.patch.object(dashboard, "console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_empty_samples_no_crash(self):
        result = PingResult(server=Server(name="x", base_url="http://x/"), attempts=3)
        dashboard.print_latency_details(result)
        self.assertIn("No latency samples", self.console.export_text())

    def test_server_selection_marks_unreachable(self):
        a = Server(name="alpha", base_url="http://a/", latency_ms=15.0)
        b = Server(name="beta", base_url="http://b/", latency_ms=math.inf)
        dashboard.print_server_selection([b, a], selected=a)
        text = self.console.export_text()
        self.assertIn("alpha", text)
        self.assertIn("unreachable", text)

    def test_speed_result_lists_streams(self):
        result = TransferResult(
            direction="download", speed_mbps=80.0, bytes_total=10_000_000, duration_s=1.0,
            streams=[StreamStats(id=0, bytes_transferred=6_000_000), StreamStats(id=1, bytes_transferred=4_000_000)],
        )
        dashboard.print_speed_result(result, "Download Results")
        text = self.console.export_text()
        self.assertIn("Download Results", text)
        self.assertIn("Per-Stream Stats", text)

    def test_progress_display_lifecycle(self):
        display = dashboard.ProgressDisplay()
        display.progress.disable = True
        display.start("Downloading")
        display.update(ProgressEvent(phase="download", fraction=0.5, bytes_total=1000, elapsed=1.0))
        display.update(ProgressEvent(phase="download", fraction=1.0, bytes_total=2000, elapsed=2.0))
        display.stop()
        display.update(ProgressEvent(phase="download", fraction=1.0, bytes_total=2000, elapsed=2.0))


class TestConfigureLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))

        def _restore():
            for h in list(root.handlers):
                root.removeHandler(h)
                h.close()
            root.setLevel(saved[0])
            for h in saved[1]:
                root.addHandler(h)

        self.addCleanup(_restore)

    def test_rich_handler_installed(self):
        configure_logging("info")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.INFO)
        self.assertEqual(len(root.handlers), 1)
        self.assertIsInstance(root.handlers[0], RichHandler)

    def test_log_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "run.log")
            configure_logging("DEBUG", path)
            logging.getLogger("libreclient.test").debug("hello file")
            for h in logging.getLogger().handlers:
                h.flush()
            with open(path) as fh:
                self.assertIn("hello file", fh.read())
            for h in list(logging.getLogger().handlers):
                logging.getLogger().removeHandler(h)
                h.close()

    def test_unknown_level_falls_back(self):
        configure_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
