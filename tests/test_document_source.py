"""
Tests for FileDocumentSource.

Covers chunked reading, the failure modes that make a document unreadable,
path containment and Markdown discovery.
"""

import asyncio
import time
from pathlib import Path

import pytest

from mdstream.document_source import FileDocumentSource
from mdstream.exceptions import DocumentUnreadableError
from mdstream.reader_pool import ReaderPool


@pytest.fixture
def reader_pool():
    pool = ReaderPool(max_workers=2)
    yield pool
    pool.shutdown()


def collect(source: FileDocumentSource, identifier: str):
    async def gather():
        return [chunk async for chunk in source.read_chunks(identifier)]

    return asyncio.run(gather())


class TestFileDocumentSource:
    """Test cases for FileDocumentSource."""

    def test_init_resolves_directory(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)
        assert source.base_directory == content_dir.resolve()

    def test_reads_document_in_chunks(self, content_dir: Path, reader_pool):
        (content_dir / "chunked.md").write_text("abcdefghij", encoding="utf-8")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool, chunk_size=4)

        assert collect(source, "chunked.md") == ["abcd", "efgh", "ij"]

    def test_empty_document_yields_nothing(self, content_dir: Path, reader_pool):
        (content_dir / "empty.md").write_text("", encoding="utf-8")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        assert collect(source, "empty.md") == []

    def test_unicode_survives_chunk_boundaries(self, content_dir: Path, reader_pool):
        text = "# Título\n\n你好世界 🚀 ñandú"
        (content_dir / "unicode.md").write_text(text, encoding="utf-8")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool, chunk_size=3)

        assert "".join(collect(source, "unicode.md")) == text

    def test_nested_identifier(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)
        assert "".join(collect(source, "extra/notes.markdown")) == "# Notes\n"

    def test_missing_document_is_unreadable(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        with pytest.raises(DocumentUnreadableError) as exc_info:
            collect(source, "missing.md")

        assert exc_info.value.identifier == "missing.md"

    def test_directory_is_unreadable(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        with pytest.raises(DocumentUnreadableError):
            collect(source, "extra")

    def test_invalid_utf8_is_unreadable(self, content_dir: Path, reader_pool):
        (content_dir / "binary.md").write_bytes(b"\xff\xfe\x00\x00\x80\x81\x82\x83")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        with pytest.raises(DocumentUnreadableError):
            collect(source, "binary.md")

    def test_identifier_outside_directory_is_unreadable(
        self, temp_dir: Path, content_dir: Path, reader_pool
    ):
        (temp_dir / "secret.md").write_text("secret", encoding="utf-8")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        with pytest.raises(DocumentUnreadableError, match="outside the content directory"):
            collect(source, "../secret.md")

    def test_early_close_releases_reader(self, content_dir: Path, reader_pool):
        (content_dir / "long.md").write_text("x" * 100, encoding="utf-8")
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool, chunk_size=10)

        async def take_first():
            chunks = source.read_chunks("long.md")
            first = await chunks.__anext__()
            await chunks.aclose()
            return first

        assert asyncio.run(take_first()) == "x" * 10
        assert reader_pool.get_active_count() == 0

    def test_is_readable(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        assert source.is_readable("intro.md")
        assert not source.is_readable("missing.md")
        assert not source.is_readable("extra")
        assert not source.is_readable("../secret.md")

    def test_list_documents(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        assert source.list_documents() == [
            "advanced.md",
            "extra/notes.markdown",
            "intro.md",
            "usage.md",
        ]

    def test_validate_directory(self, content_dir: Path, reader_pool):
        FileDocumentSource(str(content_dir), reader_pool=reader_pool).validate_directory()

    def test_validate_directory_nonexistent(self, non_existent_dir: Path, reader_pool):
        source = FileDocumentSource(str(non_existent_dir), reader_pool=reader_pool)

        with pytest.raises(FileNotFoundError):
            source.validate_directory()

    def test_validate_directory_file_instead_of_dir(self, content_dir: Path, reader_pool):
        source = FileDocumentSource(str(content_dir / "intro.md"), reader_pool=reader_pool)

        with pytest.raises(NotADirectoryError):
            source.validate_directory()

    def test_private_pool_is_closed(self, content_dir: Path):
        source = FileDocumentSource(str(content_dir))
        assert "".join(collect(source, "intro.md")).startswith("# Introduction")

        source.close()

        with pytest.raises(RuntimeError):
            collect(source, "intro.md")

    def test_cancel_during_open_closes_handle(
        self, content_dir: Path, reader_pool, monkeypatch
    ):
        opened = []
        real_open = open

        def slow_open(*args, **kwargs):
            time.sleep(0.2)
            handle = real_open(*args, **kwargs)
            opened.append(handle)
            return handle

        monkeypatch.setattr("mdstream.document_source.open", slow_open, raising=False)
        source = FileDocumentSource(str(content_dir), reader_pool=reader_pool)

        async def cancel_while_opening():
            async def read_all():
                return [chunk async for chunk in source.read_chunks("intro.md")]

            task = asyncio.create_task(read_all())
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            await asyncio.sleep(0.4)

        asyncio.run(cancel_while_opening())

        assert len(opened) == 1
        assert opened[0].closed
