"""Latency phase against a live in-process backend."""

import unittest

import aiohttp
from aiohttp.test_utils import TestServer

from client.api import Target
from client.constants import PING_SCALE
from client.context import TestContext
from client.latency import LatencyTester
from client.stats import PING
from server.app import create_app


class TestLatencyTester(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.server = TestServer(create_app())
        await self.server.start_server()
        self.target = Target(str(self.server.make_url("/")))

    async def asyncTearDown(self):
        await self.server.close()

    async def test_collects_samples(self):
        progress = []
        tester = LatencyTester(ping_count=4, interval=0)
        tester.on_progress = lambda p, v: progress.append(p)
        context = TestContext()

        result = await tester.test(self.target, context)

        self.assertEqual(result.kind, PING)
        self.assertEqual(len(result.samples), 4)
        self.assertGreater(result.mean, 0)
        self.assertGreaterEqual(result.jitter, 0)
        self.assertEqual(progress[-1], 1.0)
        self.assertEqual(context.status, PING)
        self.assertEqual(context.scale.ceiling, PING_SCALE)

    async def test_single_probe_has_zero_jitter(self):
        result = await LatencyTester(ping_count=1, interval=0).test(self.target)
        self.assertEqual(len(result.samples), 1)
        self.assertEqual(result.jitter, 0.0)

    async def test_http_error_propagates(self):
        tester = LatencyTester(ping_count=2, interval=0)
        with self.assertRaises(aiohttp.ClientResponseError):
            await tester.test(Target(str(self.server.make_url("/missing"))))

    async def test_unreachable_propagates(self):
        await self.server.close()
        tester = LatencyTester(ping_count=2, interval=0)
        with self.assertRaises(aiohttp.ClientError):
            await tester.test(self.target)


if __name__ == "__main__":
    unittest.main()
