"""Tests for DocumentProcessor against an in-memory database."""

from unittest.mock import patch

import numpy as np
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from conftest import TEST_DATABASE_URL, TEST_DIMENSIONS, make_text
from docindex.exceptions import (
    BackendUnavailableError,
    DomainValidationError,
    StorageError,
)
from docindex.services.backends.mock_backend import MockBackend
from docindex.services.processing import DocumentProcessor


@pytest.fixture
def processor(
    mock_backend: MockBackend,
    session_factory: async_sessionmaker[AsyncSession],
) -> DocumentProcessor:
    """Processor wired to the mock backend and the test database."""
    return DocumentProcessor(mock_backend, session_factory)


@pytest.fixture
async def broken_session_factory():
    """Session factory for a database without any tables."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestProcess:
    """Tests for DocumentProcessor.process."""

    async def test_long_text_is_chunked_and_stored(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """1000 words produce at least 8 contiguous chunks for the tenant."""
        document = await make_document(organization_id="org-a")

        result = await processor.process(document.id, "org-a", make_text(1000))

        assert result.document_id == document.id
        assert result.chunks_created >= 8
        assert result.total_words == 1000
        assert result.dimensions == TEST_DIMENSIONS
        assert result.used_placeholder_embeddings is False
        assert result.processing_time_ms >= 0

        chunks = await processor.list(document.id)
        assert [chunk.chunk_index for chunk in chunks] == list(range(result.chunks_created))
        assert {chunk.organization_id for chunk in chunks} == {"org-a"}
        assert all(chunk.content.strip() for chunk in chunks)

    async def test_repeated_word_text(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """1000 repetitions of one word split into gapless tenant-tagged chunks."""
        document = await make_document(organization_id="org-r")

        result = await processor.process(document.id, "org-r", "word " * 1000)

        assert result.chunks_created >= 8
        chunks = await processor.list(document.id)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert {c.organization_id for c in chunks} == {"org-r"}

    async def test_chunks_carry_backend_metadata(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """Each chunk records its dimensions, model and word count."""
        document = await make_document()

        await processor.process(document.id, "org-1", make_text(300))

        chunks = await processor.list(document.id)
        for chunk in chunks:
            assert chunk.embedding_dimensions == TEST_DIMENSIONS
            assert len(chunk.embedding) == TEST_DIMENSIONS
            assert chunk.embedding_model == "mock-embedding-model"
            assert chunk.word_count == len(chunk.content.split())
            assert chunk.created_at is not None

    async def test_stored_embedding_matches_backend(
        self, processor: DocumentProcessor, mock_backend: MockBackend, make_document
    ) -> None:
        """Stored vectors are the backend's vectors for each chunk text."""
        document = await make_document()

        await processor.process(document.id, "org-1", "A short single chunk of text.")

        (chunk,) = await processor.list(document.id)
        expected = mock_backend.embed_one(chunk.content)
        assert np.allclose(np.asarray(chunk.embedding), expected, atol=1e-6)

    @pytest.mark.parametrize(
        ("document_id", "tenant_id", "text"),
        [
            ("", "org-1", "some text"),
            ("doc-1", "", "some text"),
            ("doc-1", "org-1", "   "),
        ],
    )
    async def test_invalid_input(
        self,
        processor: DocumentProcessor,
        document_id: str,
        tenant_id: str,
        text: str,
    ) -> None:
        """Missing identifiers or blank text are rejected before any work."""
        with pytest.raises(DomainValidationError):
            await processor.process(document_id, tenant_id, text)

    async def test_count_mismatch_uses_placeholders(
        self, processor: DocumentProcessor, mock_backend: MockBackend, make_document
    ) -> None:
        """Too few vectors from the backend fall back to placeholder embeddings."""
        document = await make_document()

        with patch.object(
            mock_backend, "embed_many", return_value=[[0.5] * TEST_DIMENSIONS]
        ):
            result = await processor.process(document.id, "org-1", make_text(500))

        assert result.used_placeholder_embeddings is True
        chunks = await processor.list(document.id)
        assert len(chunks) == result.chunks_created > 1
        for chunk in chunks:
            assert np.allclose(np.asarray(chunk.embedding), 0.01)

    async def test_wrong_length_vectors_use_placeholders(
        self, processor: DocumentProcessor, mock_backend: MockBackend, make_document
    ) -> None:
        """Vectors of the wrong size are never stored."""
        document = await make_document()

        with patch.object(mock_backend, "embed_many", return_value=[[0.5] * 3]):
            result = await processor.process(document.id, "org-1", "Only one chunk.")

        assert result.used_placeholder_embeddings is True
        (chunk,) = await processor.list(document.id)
        assert chunk.embedding_dimensions == TEST_DIMENSIONS

    async def test_backend_failure_propagates(
        self, processor: DocumentProcessor, mock_backend: MockBackend, make_document
    ) -> None:
        """Backend errors surface unchanged and nothing is stored."""
        document = await make_document()

        with (
            patch.object(
                mock_backend,
                "embed_many",
                side_effect=BackendUnavailableError("Mock", "down"),
            ),
            pytest.raises(BackendUnavailableError),
        ):
            await processor.process(document.id, "org-1", make_text(300))

        assert await processor.has_chunks(document.id) is False


class TestReplace:
    """Tests for DocumentProcessor.replace."""

    async def test_replace_swaps_whole_set(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """A 5-chunk set replaced by 3-chunk text leaves exactly 3 chunks."""
        document = await make_document()

        first = await processor.process(document.id, "org-1", make_text(500))
        second = await processor.replace(document.id, "org-1", make_text(300))

        assert first.chunks_created == 5
        assert second.chunks_created == 3
        chunks = await processor.list(document.id)
        assert [chunk.chunk_index for chunk in chunks] == [0, 1, 2]

    async def test_failed_replace_keeps_old_set(
        self, processor: DocumentProcessor, mock_backend: MockBackend, make_document
    ) -> None:
        """When the new set cannot be built the old one stays intact."""
        document = await make_document()
        await processor.process(document.id, "org-1", make_text(500))

        with (
            patch.object(
                mock_backend,
                "embed_many",
                side_effect=BackendUnavailableError("Mock", "down"),
            ),
            pytest.raises(BackendUnavailableError),
        ):
            await processor.replace(document.id, "org-1", make_text(300))

        assert len(await processor.list(document.id)) == 5

    async def test_replace_without_existing_chunks(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """Replacing a document with no chunks behaves like process."""
        document = await make_document()

        result = await processor.replace(document.id, "org-1", make_text(300))

        assert result.chunks_created == 3


class TestLifecycle:
    """Tests for delete_all, has_chunks and stats."""

    async def test_delete_all_is_idempotent(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """Deleting twice removes everything once and then reports zero."""
        document = await make_document()
        result = await processor.process(document.id, "org-1", make_text(500))

        assert await processor.delete_all(document.id) == result.chunks_created
        assert await processor.delete_all(document.id) == 0
        assert await processor.has_chunks(document.id) is False

    async def test_delete_all_unknown_document(self, processor: DocumentProcessor) -> None:
        """Deleting chunks of an unknown document is not an error."""
        assert await processor.delete_all("does-not-exist") == 0

    async def test_has_chunks(self, processor: DocumentProcessor, make_document) -> None:
        """has_chunks reflects whether the document was processed."""
        document = await make_document()
        assert await processor.has_chunks(document.id) is False

        await processor.process(document.id, "org-1", "Some text.")

        assert await processor.has_chunks(document.id) is True

    async def test_stats_counts_chunks_and_documents(
        self, processor: DocumentProcessor, make_document
    ) -> None:
        """Statistics are global across tenants."""
        first = await make_document(organization_id="org-a")
        second = await make_document(organization_id="org-b")
        a = await processor.process(first.id, "org-a", make_text(500))
        b = await processor.process(second.id, "org-b", make_text(300))

        stats = await processor.stats()

        assert stats.total_chunks == a.chunks_created + b.chunks_created
        assert stats.total_documents == 2

    async def test_stats_empty_store(self, processor: DocumentProcessor) -> None:
        """An empty store reports zeros."""
        stats = await processor.stats()

        assert (stats.total_chunks, stats.total_documents) == (0, 0)


class TestStorageFailures:
    """Tests for storage error handling."""

    async def test_write_failure_is_storage_error(
        self, mock_backend: MockBackend, broken_session_factory
    ) -> None:
        """Inserts against a broken store raise StorageError."""
        processor = DocumentProcessor(mock_backend, broken_session_factory)

        with pytest.raises(StorageError) as exc_info:
            await processor.process("doc-1", "org-1", "Some text.")

        assert exc_info.value.error_code == "STORAGE_ERROR"

    async def test_reads_fail_as_storage_error(
        self, mock_backend: MockBackend, broken_session_factory
    ) -> None:
        """list and stats raise StorageError on a broken store."""
        processor = DocumentProcessor(mock_backend, broken_session_factory)

        with pytest.raises(StorageError):
            await processor.list("doc-1")
        with pytest.raises(StorageError):
            await processor.stats()

    async def test_has_chunks_false_on_storage_failure(
        self, mock_backend: MockBackend, broken_session_factory
    ) -> None:
        """has_chunks reports False instead of raising."""
        processor = DocumentProcessor(mock_backend, broken_session_factory)

        assert await processor.has_chunks("doc-1") is False
