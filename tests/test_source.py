"""Tests for server.source -- the chunked download state machine."""

import asyncio
import unittest

from server.constants import MIB
from server.source import ChunkedSource, SourceState


class FakeChannel:
    """In-memory channel whose buffer fills after ``capacity`` writes."""

    def __init__(self, capacity=None, close_after=None):
        self.capacity = capacity
        self.close_after = close_after
        self.chunks = []
        self.pending = 0
        self.drains = 0
        self.concurrent_drains = 0
        self.max_concurrent_drains = 0
        self.states_seen_in_drain = []
        self.source = None

    @property
    def closing(self):
        return self.close_after is not None and len(self.chunks) >= self.close_after

    async def write(self, data):
        self.chunks.append(data)
        self.pending += 1
        return self.capacity is None or self.pending < self.capacity

    async def drain(self):
        self.concurrent_drains += 1
        self.max_concurrent_drains = max(self.max_concurrent_drains, self.concurrent_drains)
        if self.source is not None:
            self.states_seen_in_drain.append(self.source.state)
        await asyncio.sleep(0)
        self.pending = 0
        self.drains += 1
        self.concurrent_drains -= 1

    @property
    def total(self):
        return sum(len(c) for c in self.chunks)


class StuckChannel(FakeChannel):
    """Never drains."""

    async def write(self, data):
        self.chunks.append(data)
        return False

    async def drain(self):
        await asyncio.Event().wait()


class BufferCheckingChannel:
    """Counts writes without keeping them; flags any chunk that is not the shared buffer."""

    closing = False

    def __init__(self, source):
        self.source = source
        self.writes = 0
        self.foreign_chunks = 0

    async def write(self, data):
        self.writes += 1
        if data is not self.source.buffer:
            self.foreign_chunks += 1
        return True

    async def drain(self):
        pass


class ResettingChannel(FakeChannel):
    async def write(self, data):
        raise ConnectionResetError("peer reset")


class TestChunkedSource(unittest.IsolatedAsyncioTestCase):
    async def test_exact_byte_count(self):
        source = ChunkedSource(10 * 1024, chunk_size=1024)
        channel = FakeChannel()
        sent = await source.pump(channel)
        self.assertEqual(sent, 10 * 1024)
        self.assertEqual(channel.total, 10 * 1024)
        self.assertEqual(source.state, SourceState.DONE)
        self.assertEqual(source.stop_reason, "complete")

    async def test_remainder_is_sliced(self):
        source = ChunkedSource(2500, chunk_size=1024)
        channel = FakeChannel()
        await source.pump(channel)
        self.assertEqual([len(c) for c in channel.chunks], [1024, 1024, 452])
        self.assertEqual(channel.total, 2500)

    async def test_full_chunks_reuse_one_buffer(self):
        source = ChunkedSource(4096, chunk_size=1024)
        channel = FakeChannel()
        await source.pump(channel)
        for chunk in channel.chunks:
            self.assertIs(chunk, source.buffer)
        self.assertEqual(source.buffer, bytes(1024))

    async def test_zero_target_sends_nothing(self):
        source = ChunkedSource(0, chunk_size=1024)
        channel = FakeChannel()
        sent = await source.pump(channel)
        self.assertEqual(sent, 0)
        self.assertEqual(channel.chunks, [])
        self.assertEqual(source.stop_reason, "complete")

    async def test_waits_for_drain_when_full(self):
        source = ChunkedSource(8 * 1024, chunk_size=1024)
        channel = FakeChannel(capacity=3)
        channel.source = source
        await source.pump(channel)
        self.assertEqual(channel.total, 8 * 1024)
        self.assertGreater(channel.drains, 0)
        self.assertEqual(channel.max_concurrent_drains, 1)
        self.assertTrue(all(s is SourceState.WAITING_FOR_DRAIN for s in channel.states_seen_in_drain))

    async def test_no_drain_when_room(self):
        source = ChunkedSource(8 * 1024, chunk_size=1024)
        channel = FakeChannel()
        await source.pump(channel)
        self.assertEqual(channel.drains, 0)

    async def test_disconnect_stops_writing(self):
        source = ChunkedSource(100 * 1024, chunk_size=1024)
        channel = FakeChannel(close_after=5)
        sent = await source.pump(channel)
        self.assertEqual(sent, 5 * 1024)
        self.assertEqual(source.stop_reason, "disconnected")

    async def test_connection_reset(self):
        source = ChunkedSource(100 * 1024, chunk_size=1024)
        sent = await source.pump(ResettingChannel())
        self.assertEqual(sent, 0)
        self.assertEqual(source.stop_reason, "disconnected")
        self.assertEqual(source.state, SourceState.DONE)

    async def test_ceiling_while_writing(self):
        ticks = iter(range(1000))
        source = ChunkedSource(None, chunk_size=1024, max_duration=3, clock=lambda: next(ticks))
        sent = await source.pump(FakeChannel())
        self.assertEqual(source.stop_reason, "timeout")
        self.assertGreater(sent, 0)

    async def test_ceiling_while_waiting_for_drain(self):
        source = ChunkedSource(100 * 1024, chunk_size=1024, max_duration=0.05)
        channel = StuckChannel()
        sent = await asyncio.wait_for(source.pump(channel), timeout=2)
        self.assertEqual(sent, 1024)
        self.assertEqual(source.stop_reason, "timeout")
        self.assertEqual(source.state, SourceState.DONE)

    async def test_gigabyte_stream_reuses_one_buffer(self):
        source = ChunkedSource(1000 * MIB)
        channel = BufferCheckingChannel(source)
        sent = await source.pump(channel)
        self.assertEqual(sent, 1000 * MIB)
        self.assertEqual(channel.writes, 1000 * MIB // len(source.buffer))
        self.assertEqual(channel.foreign_chunks, 0)

    async def test_unbounded_next_chunk(self):
        source = ChunkedSource(None, chunk_size=512)
        self.assertIs(source.next_chunk(), source.buffer)

    def test_invalid_chunk_size(self):
        with self.assertRaises(ValueError):
            ChunkedSource(10, chunk_size=0)


if __name__ == "__main__":
    unittest.main()
