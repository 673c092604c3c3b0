"""
Shared test fixtures and helpers for the mdstream test suite.

Provides temporary content directories, an in-memory document source and a
recording sink that log every interaction in order.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple, Union

import pytest

from mdstream.app_logger import NullAppLogger, set_default_logger
from mdstream.config import ServerConfig
from mdstream.exceptions import DocumentUnreadableError, SinkUnavailableError

SAMPLE_DOCUMENTS = {
    "intro.md": "# Introduction\n\nWelcome to the guide.\n",
    "usage.md": "# Usage\n\n| Option | Meaning |\n| --- | --- |\n| -v | verbose |\n",
    "advanced.md": "# Advanced\n\n```python\nprint('hi')\n```\n",
}


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch) -> Generator[None, None, None]:
    """Silence application logging and isolate MDSTREAM_* environment."""
    for variable in (
        "MDSTREAM_CONFIG",
        "MDSTREAM_HOST",
        "MDSTREAM_PORT",
        "MDSTREAM_CONTENT_DIR",
        "MDSTREAM_LOG_LEVEL",
        "MDSTREAM_LOG_FORMAT",
        "MDSTREAM_LOG_HANDLERS",
        "MDSTREAM_LOG_VERBOSITY",
        "MDSTREAM_LOG_FILE",
        "MDSTREAM_LOG_EXCLUDE",
    ):
        monkeypatch.delenv(variable, raising=False)

    set_default_logger(NullAppLogger())
    yield
    set_default_logger(None)
    python_logger = logging.getLogger("mdstream")
    for handler in list(python_logger.handlers):
        python_logger.removeHandler(handler)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for testing.

    Yields:
        Path to the temporary directory
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def content_dir(temp_dir: Path) -> Path:
    """A content directory holding SAMPLE_DOCUMENTS plus a nested document."""
    content = temp_dir / "content"
    content.mkdir()
    for name, text in SAMPLE_DOCUMENTS.items():
        (content / name).write_text(text, encoding="utf-8")
    (content / "extra").mkdir()
    (content / "extra" / "notes.markdown").write_text("# Notes\n", encoding="utf-8")
    (content / "readme.txt").write_text("not markdown", encoding="utf-8")
    return content


@pytest.fixture
def non_existent_dir(temp_dir: Path) -> Path:
    return temp_dir / "does_not_exist"


@pytest.fixture
def server_config(content_dir: Path) -> ServerConfig:
    """Configuration with one complete topic and one with a missing document."""
    return ServerConfig(
        content_dir=content_dir,
        topics={
            "guide": ("intro.md", "usage.md", "advanced.md"),
            "broken": ("intro.md", "missing.md", "usage.md"),
        },
    )


class RecordingSink:
    """
    Sink that records writes and closes, optionally into a shared log.

    Args:
        log: Shared list that also receives ("write", text) and ("close",)
        fail_after: Raise SinkUnavailableError on the write after this many
    """

    def __init__(self, log: Optional[list] = None, fail_after: Optional[int] = None):
        self.writes: List[str] = []
        self.close_count = 0
        self.log = log if log is not None else []
        self._fail_after = fail_after

    async def write(self, text: str) -> None:
        if self._fail_after is not None and len(self.writes) >= self._fail_after:
            raise SinkUnavailableError("client went away")
        self.writes.append(text)
        self.log.append(("write", text))
        await asyncio.sleep(0)

    async def close(self) -> None:
        self.close_count += 1
        self.log.append(("close",))


Document = Union[str, Exception, Tuple[str, Exception]]


class MemorySource:
    """
    In-memory document source.

    Each identifier maps to its text, to an exception raised on open, or to a
    (partial text, exception) pair raised after the partial text is
    delivered. Unknown identifiers are unreadable. Opens and closes are
    recorded in ``log`` so tests can check ordering against sink writes.
    """

    def __init__(
        self,
        documents: Dict[str, Document],
        chunk_size: int = 3,
        log: Optional[list] = None,
        block_on: Optional[str] = None,
    ):
        self.documents = documents
        self.chunk_size = chunk_size
        self.log = log if log is not None else []
        self.block_on = block_on
        self.release = asyncio.Event() if block_on else None
        self.open_count = 0
        self.max_open = 0

    async def read_chunks(self, identifier: str):
        document = self.documents.get(identifier)
        if document is None:
            raise DocumentUnreadableError(identifier, "no such document")
        if isinstance(document, Exception):
            raise document

        text, failure = document if isinstance(document, tuple) else (document, None)
        self.open_count += 1
        self.max_open = max(self.max_open, self.open_count)
        self.log.append(("open", identifier))
        try:
            for start in range(0, len(text), self.chunk_size):
                await asyncio.sleep(0)
                yield text[start : start + self.chunk_size]
                if identifier == self.block_on:
                    await self.release.wait()
            if failure is not None:
                raise failure
        finally:
            self.open_count -= 1
            self.log.append(("closed", identifier))


def identity(text: str) -> str:
    return text


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
