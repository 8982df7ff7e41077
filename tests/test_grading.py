"""Tests for client.grading -- connection rating and share text."""

import unittest

from client.grading import format_share_text, rate_connection


class TestRateConnection(unittest.TestCase):
    def test_excellent(self):
        label, color = rate_connection(350.0, 10.0)
        self.assertTrue(label.startswith("Excellent"))
        self.assertEqual(color, "green")

    def test_fast_but_laggy_is_great(self):
        label, _ = rate_connection(350.0, 30.0)
        self.assertTrue(label.startswith("Great"))

    def test_great(self):
        label, _ = rate_connection(150.0, 40.0)
        self.assertTrue(label.startswith("Great"))

    def test_good_ignores_ping(self):
        label, color = rate_connection(50.0, 200.0)
        self.assertTrue(label.startswith("Good"))
        self.assertEqual(color, "yellow")

    def test_poor(self):
        label, color = rate_connection(10.0, 15.0)
        self.assertTrue(label.startswith("Poor"))
        self.assertEqual(color, "red")

    def test_thresholds_are_strict(self):
        self.assertTrue(rate_connection(300.0, 10.0)[0].startswith("Great"))
        self.assertTrue(rate_connection(25.0, 10.0)[0].startswith("Poor"))


class TestShareText(unittest.TestCase):
    def test_contains_values(self):
        text = format_share_text(
            ping_ms=12.0,
            jitter_ms=2.0,
            download_mbps=120.5,
            upload_mbps=30.25,
            server_url="http://localhost:8080",
            data_transferred_mb=64.0,
        )
        self.assertIn("Ping: 12 ms (jitter: 2 ms)", text)
        self.assertIn("Download: 120.5 Mbps", text)
        self.assertIn("Upload: 30.2 Mbps", text)
        self.assertIn("http://localhost:8080", text)
        self.assertIn("Data transferred: 64.0 MB", text)
        self.assertIn("Rating: Great", text)

    def test_no_data_line_when_zero(self):
        text = format_share_text(10, 1, 10, 5, "http://h")
        self.assertNotIn("Data transferred", text)


if __name__ == "__main__":
    unittest.main()
