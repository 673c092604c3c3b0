"""
Tests for the output sinks.
"""

import asyncio
import io

import pytest

from mdstream.exceptions import SinkUnavailableError
from mdstream.sinks import QueueSink, TextStreamSink


class TestQueueSink:
    """Test cases for QueueSink."""

    def test_fragments_arrive_in_order_until_close(self):
        async def scenario():
            sink = QueueSink(maxsize=1)

            async def produce():
                for text in ("one", "two", "three"):
                    await sink.write(text)
                await sink.close()

            producer = asyncio.create_task(produce())
            received = [fragment async for fragment in sink.fragments()]
            await producer
            return received, sink.closed

        received, closed = asyncio.run(scenario())

        assert received == ["one", "two", "three"]
        assert closed

    def test_write_waits_for_consumer(self):
        async def scenario():
            sink = QueueSink(maxsize=1)
            await sink.write("first")
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(sink.write("second"), timeout=0.05)

        asyncio.run(scenario())

    def test_write_after_close_raises(self):
        async def scenario():
            sink = QueueSink(maxsize=2)
            await sink.close()
            with pytest.raises(SinkUnavailableError):
                await sink.write("late")

        asyncio.run(scenario())

    def test_double_close_raises(self):
        async def scenario():
            sink = QueueSink(maxsize=2)
            await sink.close()
            with pytest.raises(SinkUnavailableError):
                await sink.close()

        asyncio.run(scenario())

    def test_abandoned_sink_rejects_writes(self):
        async def scenario():
            sink = QueueSink()
            sink.abandon()
            assert sink.abandoned
            with pytest.raises(SinkUnavailableError):
                await sink.write("text")
            # Closing an abandoned sink must not block on the full queue
            await asyncio.wait_for(sink.close(), timeout=1.0)

        asyncio.run(scenario())


class TestTextStreamSink:
    """Test cases for TextStreamSink."""

    def test_writes_and_close(self):
        stream = io.StringIO()
        sink = TextStreamSink(stream)

        async def scenario():
            await sink.write("<h1>a</h1>")
            await sink.write("<p>b</p>")
            await sink.close()

        asyncio.run(scenario())

        assert stream.getvalue() == "<h1>a</h1><p>b</p>"
        assert not stream.closed

    def test_close_stream_option(self):
        stream = io.StringIO()
        asyncio.run(TextStreamSink(stream, close_stream=True).close())
        assert stream.closed

    def test_broken_stream_raises_sink_unavailable(self):
        stream = io.StringIO()
        stream.close()
        sink = TextStreamSink(stream)

        with pytest.raises(SinkUnavailableError):
            asyncio.run(sink.write("text"))

    def test_use_after_close_raises(self):
        sink = TextStreamSink(io.StringIO())
        asyncio.run(sink.close())

        with pytest.raises(SinkUnavailableError):
            asyncio.run(sink.write("text"))
        with pytest.raises(SinkUnavailableError):
            asyncio.run(sink.close())
