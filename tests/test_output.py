"""Tests for ui.output and ui.dashboard helpers."""

import io
import json
import logging
import os
import tempfile
import unittest
from logging.handlers import RotatingFileHandler
from unittest import mock

from client.runner import TestResult
from client.stats import PING, PhaseResult
from ui.dashboard import create_histogram, print_latency_details
from ui.logging_setup import configure_logging
from ui.output import create_result_json, format_text_result, save_json


def _sample_result():
    result = TestResult(target="http://localhost:8080", connections=4)
    for i, v in enumerate([10.0, 12.0, 11.0, 15.0]):
        result.ping.samples.append(float(i), v)
    result.ping.mean, result.ping.jitter = 12.0, 2.333
    result.download.mean = 150.0
    result.download.bytes_total = 1000
    result.upload.mean = 40.0
    result.upload.confirmed_bytes = 500
    result.data_transferred = 1500
    return result


class TestCreateResultJson(unittest.TestCase):
    def test_fields(self):
        out = create_result_json(_sample_result().to_dict())
        self.assertEqual(out["server"], "http://localhost:8080")
        self.assertEqual(out["connections"], 4)
        self.assertEqual(out["ping"], 12.0)
        self.assertEqual(out["latency"]["rtt"]["min"], 10.0)
        self.assertEqual(out["latency"]["rtt"]["max"], 15.0)
        self.assertEqual(out["latency"]["rtt"]["median"], 11.5)
        self.assertEqual(out["latency"]["count"], 4)
        self.assertEqual(out["download"]["speed_mbps"], 150.0)
        self.assertEqual(out["upload"]["confirmed_bytes"], 500)
        self.assertEqual(out["data_transferred"], 1500)
        self.assertTrue(out["rating"].startswith("Great"))

    def test_empty_result(self):
        out = create_result_json({})
        self.assertEqual(out["latency"]["count"], 0)
        self.assertEqual(out["latency"]["rtt"]["min"], 0)

    def test_serialisable(self):
        json.dumps(create_result_json(_sample_result().to_dict()))


class TestSaveJson(unittest.TestCase):
    def test_writes_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            save_json({"ping": 12.0}, path)
            with open(path, encoding="utf-8") as fh:
                self.assertEqual(json.load(fh), {"ping": 12.0})
            self.assertEqual(os.listdir(tmpdir), ["result.json"])

    def test_missing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "nope", "result.json")
            with self.assertRaises(IOError):
                save_json({}, path)


class TestFormatText(unittest.TestCase):
    def test_contains_values(self):
        text = format_text_result(12.0, 2.5, 150.0, 40.0, "http://h", rating="Great")
        self.assertIn("Ping: 12.0 ms (jitter: 2.50 ms)", text)
        self.assertIn("Download: 150.00 Mbps", text)
        self.assertIn("Upload: 40.00 Mbps", text)
        self.assertIn("Rating: Great", text)

    def test_without_rating(self):
        self.assertNotIn("Rating", format_text_result(1, 0, 1, 1, "http://h"))


class TestDashboardHelpers(unittest.TestCase):
    def test_histogram_empty(self):
        self.assertEqual(create_histogram([]), "No data")

    def test_histogram_width(self):
        self.assertEqual(len(create_histogram([1.0, 2.0, 3.0] * 30, width=40)), 40)

    def test_latency_details_without_samples(self):
        print_latency_details(PhaseResult.empty(PING))


class TestConfigureLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))

        def _restore():
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            root.setLevel(saved[0])
            for handler in saved[1]:
                root.addHandler(handler)

        self.addCleanup(_restore)

    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "logs", "httpspeed.log")
            configure_logging("info", path)
            root = logging.getLogger()
            self.assertEqual(root.level, logging.INFO)
            self.assertTrue(any(isinstance(h, RotatingFileHandler) for h in root.handlers))
            logging.getLogger("client.test").info("hello")
            for handler in root.handlers:
                handler.flush()
            with open(path, encoding="utf-8") as fh:
                self.assertIn("[INFO] client.test - hello", fh.read())
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()

    def test_console_logs_go_to_stderr(self):
        stdout, stderr = io.StringIO(), io.StringIO()
        with mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr):
            configure_logging("WARNING")
            logging.getLogger("client.download").warning("Download stream 0 failed: boom")
        self.assertEqual(stdout.getvalue(), "")
        self.assertIn("Download stream 0 failed: boom", stderr.getvalue())

    def test_unknown_level_defaults_to_warning(self):
        configure_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
