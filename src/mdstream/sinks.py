"""
Output sinks: append-only, closable destinations for pipeline output.

``QueueSink`` feeds an HTTP streaming response through a bounded queue, so a
slow client slows the pipeline down instead of letting fragments pile up.
``TextStreamSink`` writes straight to a text stream such as stdout.
"""

import asyncio
from typing import AsyncIterator, Optional, Protocol, TextIO

from mdstream.exceptions import SinkUnavailableError


class OutputSink(Protocol):
    """Protocol for pipeline output destinations."""

    async def write(self, text: str) -> None:
        """Append text; may suspend until the destination accepts it."""
        ...

    async def close(self) -> None:
        """Signal that no further writes will follow."""
        ...


class QueueSink:
    """
    Sink drained by an async consumer, typically a StreamingResponse.

    ``write`` returns once the fragment is in the queue; with the default
    queue size of one the producer is at most one fragment ahead of the
    consumer.
    """

    _END = object()

    def __init__(self, maxsize: int = 1):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._abandoned = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    async def write(self, text: str) -> None:
        if self._abandoned:
            raise SinkUnavailableError("Consumer has gone away")
        if self._closed:
            raise SinkUnavailableError("Sink is closed")
        await self._queue.put(text)

    async def close(self) -> None:
        if self._closed:
            raise SinkUnavailableError("Sink is already closed")
        self._closed = True
        if not self._abandoned:
            await self._queue.put(self._END)

    def abandon(self) -> None:
        """Mark the consumer as gone; later writes raise SinkUnavailableError."""
        self._abandoned = True

    async def fragments(self) -> AsyncIterator[str]:
        """Yield written fragments in order until the sink is closed."""
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item


class TextStreamSink:
    """Sink writing to a text stream, flushing after every fragment."""

    def __init__(self, stream: TextIO, close_stream: bool = False):
        """
        Args:
            stream: Destination stream
            close_stream: Close the stream itself when the sink is closed
        """
        self._stream: Optional[TextIO] = stream
        self._close_stream = close_stream

    async def write(self, text: str) -> None:
        if self._stream is None:
            raise SinkUnavailableError("Sink is closed")
        try:
            self._stream.write(text)
            self._stream.flush()
        except (BrokenPipeError, OSError, ValueError) as e:
            raise SinkUnavailableError(f"Output stream unavailable: {e}") from e

    async def close(self) -> None:
        if self._stream is None:
            raise SinkUnavailableError("Sink is already closed")
        stream, self._stream = self._stream, None
        try:
            stream.flush()
            if self._close_stream:
                stream.close()
        except (BrokenPipeError, OSError, ValueError) as e:
            raise SinkUnavailableError(f"Output stream unavailable: {e}") from e
