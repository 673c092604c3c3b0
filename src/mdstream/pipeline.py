"""
Sequential document pipeline.

``SequentialPipeline`` streams an ordered list of Markdown documents into an
output sink, one document at a time:

1. write a header naming the document,
2. read the whole document from the source,
3. render it and write the rendered body, or write an error notice if the
   document could not be read or rendered,
4. move on to the next document; after the last one, close the sink.

Fragments reach the sink in document order and never interleave, because a
run is a single coroutine that awaits every read and write before taking the
next step. Only one document's text is held in memory at a time.

If the sink itself fails the run is aborted: no further documents are read
and the sink is not closed.
"""

import asyncio
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple

from mdstream.app_logger import AppLogger, LogContext, get_default_logger
from mdstream.document_source import DocumentSource
from mdstream.events import PipelineEvent, PipelineEventManager, PipelineEventType
from mdstream.exceptions import (
    DocumentUnreadableError,
    PipelineStateError,
    SinkUnavailableError,
)
from mdstream.fragments import FragmentFormatter
from mdstream.renderer import Renderer
from mdstream.sinks import OutputSink


class PipelineState(Enum):
    """States of a single pipeline run."""

    IDLE = "idle"
    READING = "reading"
    RENDERING = "rendering"
    ADVANCING = "advancing"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass
class PipelineRun:
    """Cursor and state of one pass over a document list."""

    documents: Tuple[str, ...]
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    cursor: int = 0
    state: PipelineState = PipelineState.IDLE

    def __post_init__(self):
        self.documents = tuple(self.documents)

    @property
    def current_document(self) -> Optional[str]:
        if self.cursor < len(self.documents):
            return self.documents[self.cursor]
        return None

    @property
    def is_finished(self) -> bool:
        return self.cursor == len(self.documents)

    def advance(self) -> None:
        """Move past the current document."""
        self.state = PipelineState.ADVANCING
        self.cursor += 1


class SequentialPipeline:
    """
    Drives a DocumentSource and a Renderer across a document list.

    The pipeline itself holds no per-run state, so one instance can serve any
    number of concurrent runs, each with its own sink.
    """

    def __init__(
        self,
        source: DocumentSource,
        renderer: Renderer,
        formatter: Optional[FragmentFormatter] = None,
        event_manager: Optional[PipelineEventManager] = None,
        logger: Optional[AppLogger] = None,
    ):
        """
        Initialise the pipeline.

        Args:
            source: Where document text is read from
            renderer: Converts a whole document to HTML
            formatter: Builds header, body and error fragments
            event_manager: Optional receiver of lifecycle events
            logger: Optional AppLogger, defaults to the application logger
        """
        self.source = source
        self.renderer = renderer
        self.formatter = formatter or FragmentFormatter()
        self._event_manager = event_manager
        self._logger = logger or get_default_logger()

    async def run(self, documents: Iterable[str], sink: OutputSink) -> None:
        """Stream the documents into the sink, then close it."""
        await self.execute(PipelineRun(tuple(documents)), sink)

    async def execute(self, run: PipelineRun, sink: OutputSink) -> None:
        """
        Drive an explicitly created run to completion.

        Raises:
            PipelineStateError: If the run has already been started
        """
        if run.state is not PipelineState.IDLE:
            raise PipelineStateError(f"Run {run.run_id} is already {run.state.value}")

        context = LogContext(component="SequentialPipeline", correlation_id=run.run_id)
        self._logger.info(
            "Starting pipeline run",
            context=context.for_operation("run"),
            document_count=len(run.documents),
        )
        self._emit(PipelineEventType.RUN_STARTED, run)

        try:
            while not run.is_finished:
                await self._process_document(run, sink, context)
                run.advance()
        except SinkUnavailableError as e:
            self._abort(run, context, str(e))
            return
        except asyncio.CancelledError:
            self._abort(run, context, "cancelled")
            raise
        except Exception as e:
            self._abort(run, context, str(e))
            raise

        run.state = PipelineState.COMPLETE
        try:
            await sink.close()
        except SinkUnavailableError as e:
            self._logger.warning(
                "Sink failed while closing",
                context=context.for_operation("close"),
                error=str(e),
            )
        self._logger.info(
            "Pipeline run complete",
            context=context.for_operation("close"),
            document_count=len(run.documents),
        )
        self._emit(PipelineEventType.RUN_COMPLETED, run)

    async def _process_document(
        self, run: PipelineRun, sink: OutputSink, context: LogContext
    ) -> None:
        identifier = run.documents[run.cursor]
        doc_context = context.for_operation("document", document=identifier)
        started = time.monotonic()

        run.state = PipelineState.READING
        self._logger.debug("Reading document", context=doc_context, index=run.cursor)
        self._emit(PipelineEventType.DOCUMENT_STARTED, run, document=identifier)
        await sink.write(self.formatter.header(identifier))

        try:
            text = await self._read_document(identifier)
        except DocumentUnreadableError as e:
            self._logger.error(
                "Error reading document", context=doc_context, error=e.reason
            )
            await self._write_failure(run, sink, identifier, e.reason)
            return

        run.state = PipelineState.RENDERING
        try:
            html = await asyncio.to_thread(self.renderer, text)
        except Exception as e:
            self._logger.error(
                "Error rendering document",
                context=doc_context,
                exc_info=True,
                error=str(e),
            )
            await self._write_failure(run, sink, identifier, str(e))
            return

        await sink.write(self.formatter.body(identifier, html))
        duration = time.monotonic() - started
        self._logger.info(
            "Document rendered",
            context=doc_context,
            characters=len(text),
            duration=round(duration, 4),
        )
        self._emit(
            PipelineEventType.DOCUMENT_RENDERED,
            run,
            document=identifier,
            duration=duration,
        )

    async def _read_document(self, identifier: str) -> str:
        """Accumulate the full text of a document; rendering needs all of it."""
        parts = []
        async with aclosing(self.source.read_chunks(identifier)) as chunks:
            async for chunk in chunks:
                parts.append(chunk)
        return "".join(parts)

    async def _write_failure(
        self, run: PipelineRun, sink: OutputSink, identifier: str, reason: str
    ) -> None:
        run.state = PipelineState.ADVANCING
        self._emit(
            PipelineEventType.DOCUMENT_FAILED,
            run,
            document=identifier,
            metadata={"reason": reason},
        )
        await sink.write(self.formatter.error_notice(identifier))

    def _abort(self, run: PipelineRun, context: LogContext, reason: str) -> None:
        run.state = PipelineState.ABORTED
        self._logger.warning(
            "Pipeline run aborted",
            context=context.for_operation("abort", document=run.current_document),
            reason=reason,
            cursor=run.cursor,
        )
        self._emit(
            PipelineEventType.RUN_ABORTED,
            run,
            document=run.current_document,
            metadata={"reason": reason},
        )

    def _emit(self, event_type: PipelineEventType, run: PipelineRun, **details) -> None:
        if self._event_manager is None:
            return
        self._event_manager.emit(
            PipelineEvent(
                event_type=event_type,
                run_id=run.run_id,
                index=run.cursor,
                **details,
            )
        )
