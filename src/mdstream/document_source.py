"""
Document sources: where the pipeline reads Markdown text from.

A source turns a document identifier into an async iterator of text chunks.
Failure to read is signalled by ``DocumentUnreadableError``; the file handle
is released however the iteration ends.
"""

import asyncio
import glob
from pathlib import Path
from typing import AsyncIterator, ClassVar, List, Optional, Protocol

from mdstream.app_logger import AppLogger, LogContext, get_default_logger
from mdstream.exceptions import DocumentUnreadableError
from mdstream.reader_pool import ReaderPool

DEFAULT_CHUNK_SIZE = 64 * 1024


def _close_opened_handle(opening: "asyncio.Future") -> None:
    if not opening.cancelled() and opening.exception() is None:
        opening.result().close()


class DocumentSource(Protocol):
    """Protocol for anything that can stream a document's text."""

    def read_chunks(self, identifier: str) -> AsyncIterator[str]:
        """Stream the text of a document in chunks."""
        ...


class FileDocumentSource:
    """
    Reads UTF-8 Markdown documents from a content directory.

    Identifiers are paths relative to the content directory. Every blocking
    open and read runs on a ReaderPool.
    """

    MARKDOWN_EXTENSIONS: ClassVar[List[str]] = [
        "*.md",
        "*.markdown",
        "*.mdown",
        "*.mkd",
    ]

    def __init__(
        self,
        base_directory: str,
        reader_pool: Optional[ReaderPool] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: Optional[AppLogger] = None,
    ):
        """
        Initialise the source.

        Args:
            base_directory: Directory holding the documents
            reader_pool: Pool for blocking reads; a private one is created if None
            chunk_size: Number of characters per read
            logger: Optional AppLogger, defaults to the application logger
        """
        self.base_directory = Path(base_directory).expanduser().resolve()
        self.chunk_size = chunk_size
        self._owns_pool = reader_pool is None
        self._reader_pool = reader_pool or ReaderPool(max_workers=1, logger=logger)
        self._logger = logger or get_default_logger()
        self._log_context = LogContext(component="FileDocumentSource")

    def resolve_path(self, identifier: str) -> Path:
        """
        Map an identifier to a file path inside the content directory.

        Raises:
            DocumentUnreadableError: If the identifier escapes the directory
        """
        path = (self.base_directory / identifier).resolve()
        if not path.is_relative_to(self.base_directory):
            raise DocumentUnreadableError(identifier, "outside the content directory")
        return path

    async def read_chunks(self, identifier: str) -> AsyncIterator[str]:
        """
        Stream a document's text in chunks of ``chunk_size`` characters.

        Raises:
            DocumentUnreadableError: If the file cannot be opened, read or decoded
        """
        path = self.resolve_path(identifier)
        context = self._log_context.for_operation("read", document=identifier)

        # The open keeps running on its reader thread if this coroutine is
        # cancelled, so the handle it produces must still be closed
        opening = asyncio.ensure_future(
            self._reader_pool.run(open, path, encoding="utf-8")
        )
        try:
            handle = await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(_close_opened_handle)
            raise
        except OSError as e:
            raise DocumentUnreadableError(identifier, e.strerror or str(e)) from e

        self._logger.debug("Opened document", context=context, path=str(path))
        try:
            while True:
                try:
                    chunk = await self._reader_pool.run(handle.read, self.chunk_size)
                except (OSError, UnicodeDecodeError) as e:
                    raise DocumentUnreadableError(identifier, str(e)) from e
                if not chunk:
                    return
                yield chunk
        finally:
            handle.close()
            self._logger.debug("Closed document", context=context)

    def validate_directory(self) -> None:
        """
        Validate that the content directory exists and is accessible.

        Raises:
            FileNotFoundError: If the directory doesn't exist
            NotADirectoryError: If the path is not a directory
            PermissionError: If the directory is not accessible
        """
        if not self.base_directory.exists():
            raise FileNotFoundError(f"Directory {self.base_directory} does not exist")

        if not self.base_directory.is_dir():
            raise NotADirectoryError(f"{self.base_directory} is not a directory")

        try:
            next(self.base_directory.iterdir(), None)
        except PermissionError as e:
            raise PermissionError(f"Cannot access directory {self.base_directory}: {e}")

    def is_readable(self, identifier: str) -> bool:
        """Check whether an identifier names an existing file in the directory."""
        try:
            return self.resolve_path(identifier).is_file()
        except DocumentUnreadableError:
            return False

    def list_documents(self) -> List[str]:
        """
        Find all Markdown documents below the content directory.

        Returns:
            Identifiers relative to the content directory, sorted
        """
        self.validate_directory()

        found = set()
        for extension in self.MARKDOWN_EXTENSIONS:
            pattern = str(self.base_directory / "**" / extension)
            found.update(glob.glob(pattern, recursive=True))

        return sorted(
            Path(path).resolve().relative_to(self.base_directory).as_posix()
            for path in found
        )

    def close(self) -> None:
        """Release the private reader pool, if this source created one."""
        if self._owns_pool:
            self._reader_pool.shutdown(wait=True)
