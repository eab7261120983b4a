"""Shared fixtures: in-memory SQLite database and a deterministic backend."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from docindex.models import Base, Document, DocumentStatus
from docindex.services.backends.mock_backend import MockBackend

# Use in-memory SQLite; StaticPool keeps every session on the same database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_DIMENSIONS = 64


@pytest.fixture
async def test_engine():
    """Create an async SQLite engine with all tables."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mock_backend() -> MockBackend:
    """Deterministic backend with small vectors."""
    return MockBackend(dimensions=TEST_DIMENSIONS)


@pytest.fixture
def make_document(session_factory: async_sessionmaker[AsyncSession]):
    """Factory that persists a document and returns it."""

    async def _make(
        organization_id: str | None = "org-1",
        file_path: str = "/tmp/missing.txt",
        mime_type: str = "text/plain",
        status: DocumentStatus = DocumentStatus.PENDING,
        filename: str = "doc.txt",
        **fields,
    ) -> Document:
        async with session_factory() as session:
            document = Document(
                filename=filename,
                file_path=file_path,
                mime_type=mime_type,
                organization_id=organization_id,
                status=status,
                **fields,
            )
            session.add(document)
            await session.commit()
            await session.refresh(document)
            return document

    return _make


def make_text(word_count: int, words_per_sentence: int = 12) -> str:
    """Build prose of exactly ``word_count`` words split into sentences."""
    words = [f"word{i}" for i in range(word_count)]
    sentences = [
        " ".join(words[i : i + words_per_sentence]) + "."
        for i in range(0, word_count, words_per_sentence)
    ]
    return " ".join(sentences)
