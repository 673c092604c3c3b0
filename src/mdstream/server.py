"""
HTTP content server.

``ContentServer`` wires the pipeline components together from a
``ServerConfig`` and exposes them as a FastAPI application:

- ``GET /``            the HTML shell
- ``GET /style.css``   the stylesheet
- ``GET /content``     the rendered documents of ``?topic=``, streamed
- ``GET /metrics``     pipeline statistics as JSON

Every other path answers with a plain-text 404.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, PlainTextResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mdstream.app_logger import AppLogger, LogContext, get_default_logger
from mdstream.config import ServerConfig
from mdstream.document_source import FileDocumentSource
from mdstream.events import PipelineEventManager
from mdstream.exceptions import ConfigurationError, TopicNotFoundError
from mdstream.metrics_collector import MetricsCollector
from mdstream.pipeline import SequentialPipeline
from mdstream.reader_pool import ReaderPool
from mdstream.renderer import MarkdownRenderer
from mdstream.sinks import QueueSink


class ContentServer:
    """
    Orchestrates the content pipeline and its HTTP front end.

    Components:
    -----------
    - ReaderPool: threads for blocking file reads
    - FileDocumentSource: reads documents from the content directory
    - MarkdownRenderer: converts each document to HTML
    - SequentialPipeline: streams one topic's documents per request
    - MetricsCollector: listens to pipeline events
    """

    def __init__(self, config: ServerConfig, logger: Optional[AppLogger] = None):
        """
        Initialise the server and its components.

        Args:
            config: Effective server configuration
            logger: Optional AppLogger, defaults to the application logger
        """
        self.config = config
        self.catalog = config.catalog
        self._logger = logger or get_default_logger()
        self._context = LogContext(component="ContentServer")

        self.reader_pool = ReaderPool(max_workers=config.reader_workers, logger=logger)
        self.source = FileDocumentSource(
            str(config.content_dir),
            reader_pool=self.reader_pool,
            chunk_size=config.chunk_size,
            logger=logger,
        )
        self.renderer = MarkdownRenderer(config.markdown_extensions)
        self.metrics_collector = MetricsCollector()
        self.event_manager = PipelineEventManager(logger=logger)
        self.event_manager.add_listener(self.metrics_collector)
        self.pipeline = SequentialPipeline(
            self.source,
            self.renderer,
            event_manager=self.event_manager,
            logger=logger,
        )

    def validate_setup(self) -> None:
        """
        Validate the server setup before starting.

        Raises:
            FileNotFoundError: If the content directory doesn't exist
            NotADirectoryError: If the content path is not a directory
            PermissionError: If the content directory is not accessible
            ConfigurationError: If the static assets are missing
        """
        self.source.validate_directory()
        for asset in ("index.html", "style.css"):
            if not (self.config.static_dir / asset).is_file():
                raise ConfigurationError(
                    f"Static asset {asset} not found in {self.config.static_dir}"
                )

        for topic in self.catalog.topics():
            missing = [
                doc
                for doc in self.catalog.documents_for(topic)
                if not self.source.is_readable(doc)
            ]
            if missing:
                self._logger.warning(
                    "Topic references missing documents",
                    context=self._context.for_operation("validate"),
                    topic=topic,
                    missing=missing,
                )

    def create_app(self) -> FastAPI:
        """Build the FastAPI application serving this server's routes."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self._logger.info(
                "Content server started",
                context=self._context.for_operation("startup"),
                content_dir=str(self.source.base_directory),
                topics=self.catalog.topics(),
            )
            yield
            self.cleanup()

        app = FastAPI(title="mdstream", lifespan=lifespan)
        static_dir = self.config.static_dir

        @app.exception_handler(StarletteHTTPException)
        async def plain_text_errors(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                return PlainTextResponse("404 Not Found", status_code=404)
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

        @app.get("/")
        async def index() -> FileResponse:
            return FileResponse(static_dir / "index.html", media_type="text/html")

        @app.get("/style.css")
        async def stylesheet() -> FileResponse:
            return FileResponse(static_dir / "style.css", media_type="text/css")

        @app.get("/content")
        async def content(topic: Optional[str] = None):
            try:
                documents = self.catalog.documents_for(topic)
            except TopicNotFoundError:
                self._logger.info(
                    "Unknown topic requested",
                    context=self._context.for_operation("content"),
                    topic=topic,
                )
                return PlainTextResponse("Topic not found.", status_code=404)

            sink = QueueSink(maxsize=self.config.sink_queue_size)
            return StreamingResponse(
                self.stream_documents(documents, sink),
                media_type="text/html; charset=utf-8",
            )

        @app.get("/metrics")
        async def metrics() -> dict:
            return {
                "pipeline": self.metrics_collector.get_metrics(),
                "reader_pool": self.reader_pool.get_metrics(),
            }

        return app

    async def stream_documents(
        self, documents: Tuple[str, ...], sink: QueueSink
    ) -> AsyncIterator[str]:
        """
        Run the pipeline for one response and yield its fragments.

        If the response stops consuming (client disconnect), the sink is
        abandoned and the run is cancelled, which releases the document
        being read.
        """
        task = asyncio.create_task(self._produce(documents, sink))
        completed = False
        try:
            async for fragment in sink.fragments():
                yield fragment
            completed = True
        finally:
            if not completed:
                sink.abandon()
                task.cancel()
        await task

    async def _produce(self, documents: Tuple[str, ...], sink: QueueSink) -> None:
        try:
            await self.pipeline.run(documents, sink)
        except Exception as e:
            self._logger.error(
                "Pipeline run failed",
                context=self._context.for_operation("stream"),
                exc_info=True,
                error=str(e),
            )
            # End the response rather than leave the client waiting
            if not sink.closed:
                await sink.close()

    def run(self) -> int:
        """
        Main server execution method.

        Returns:
            Exit code (0 for success, 1 for error)
        """
        try:
            self.validate_setup()
            app = self.create_app()
            print(f"Serving on http://{self.config.host}:{self.config.port}")
            uvicorn.run(app, host=self.config.host, port=self.config.port)
            return 0

        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            print(f"Directory error: {e}")
            return 1
        except ConfigurationError as e:
            print(f"Configuration error: {e}")
            return 1
        except OSError as e:
            print(f"Server error: {e}")
            return 1
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Clean up server resources."""
        self.reader_pool.shutdown(wait=True)

    def get_metrics(self) -> dict:
        return self.metrics_collector.get_metrics()
