"""Tests for client.config and server.config -- configuration handling."""

import json
import os
import tempfile
import unittest
from unittest import mock

from client.config import (
    DEFAULTS,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from server.config import ServerConfig
from server.constants import DEFAULT_PORT, DEFAULT_SIZE_MB, MAX_SIZE_MB, MIB


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("server_url", "connection_mode", "ping_count",
                    "download_duration", "upload_duration", "upload_size_mb", "log_level"):
            self.assertIn(key, DEFAULTS)


class TestLoadSaveConfig(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "sub", "config.json")
        patcher = mock.patch("client.config._config_path", return_value=self.path)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)

    def test_load_defaults_when_missing(self):
        cfg = load_config()
        self.assertEqual(cfg, DEFAULTS)

    def test_save_and_load(self):
        save_config({"ping_count": 20, "server_url": "http://h:9000"})
        cfg = load_config()
        self.assertEqual(cfg["ping_count"], 20)
        self.assertEqual(cfg["server_url"], "http://h:9000")
        # Missing keys filled from defaults
        self.assertEqual(cfg["connection_mode"], DEFAULTS["connection_mode"])

    def test_corrupt_file_falls_back(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        with self.assertLogs("client.config", level="WARNING"):
            cfg = load_config()
        self.assertEqual(cfg, DEFAULTS)

    def test_set_value_coerces_type(self):
        set_config_value("ping_count", "12")
        set_config_value("download_duration", "7.5")
        with open(self.path, encoding="utf-8") as fh:
            data = json.load(fh)
        self.assertEqual(data["ping_count"], 12)
        self.assertEqual(data["download_duration"], 7.5)

    def test_set_string_value(self):
        set_config_value("connection_mode", "single")
        self.assertEqual(get_config_value("connection_mode"), "single")

    def test_set_unknown_key(self):
        with self.assertRaises(KeyError):
            set_config_value("plan", "100")

    def test_set_bad_number(self):
        with self.assertRaises(ValueError):
            set_config_value("ping_count", "many")


class TestServerConfigSizes(unittest.TestCase):
    def setUp(self):
        self.config = ServerConfig()

    def test_missing_size_uses_default(self):
        self.assertEqual(self.config.resolve_size_mb(None), DEFAULT_SIZE_MB)

    def test_blank_size_uses_default(self):
        self.assertEqual(self.config.resolve_size_mb("  "), DEFAULT_SIZE_MB)

    def test_non_integer_uses_default(self):
        self.assertEqual(self.config.resolve_size_mb("abc"), DEFAULT_SIZE_MB)
        self.assertEqual(self.config.resolve_size_mb("2.5"), DEFAULT_SIZE_MB)

    def test_zero_clamped_to_min(self):
        self.assertEqual(self.config.resolve_size_mb("0"), 1)

    def test_negative_clamped_to_min(self):
        self.assertEqual(self.config.resolve_size_mb("-5"), 1)

    def test_large_clamped_to_max(self):
        self.assertEqual(self.config.resolve_size_mb("5000"), MAX_SIZE_MB)

    def test_in_range(self):
        self.assertEqual(self.config.resolve_size_mb("25"), 25)

    def test_bytes(self):
        self.assertEqual(self.config.resolve_size_bytes("2"), 2 * MIB)


class TestServerConfigEnv(unittest.TestCase):
    def test_defaults(self):
        cfg = ServerConfig.from_env({})
        self.assertEqual(cfg.port, DEFAULT_PORT)
        self.assertEqual(cfg.host, "0.0.0.0")

    def test_port_and_host(self):
        cfg = ServerConfig.from_env({"PORT": "9000", "HOST": "127.0.0.1"})
        self.assertEqual(cfg.port, 9000)
        self.assertEqual(cfg.host, "127.0.0.1")

    def test_invalid_port(self):
        with self.assertLogs("server.config", level="WARNING"):
            cfg = ServerConfig.from_env({"PORT": "eighty"})
        self.assertEqual(cfg.port, DEFAULT_PORT)


if __name__ == "__main__":
    unittest.main()
