"""Repository for document database operations."""

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docindex.models.document import Document, DocumentStatus

_CLAIMABLE_EXCLUDED = (DocumentStatus.PROCESSING, DocumentStatus.COMPLETED)


class DocumentRepository:
    """Handle document persistence operations."""

    @staticmethod
    async def create(
        session: AsyncSession,
        filename: str,
        file_path: str,
        mime_type: str,
        organization_id: str | None = None,
    ) -> Document:
        """Create a new document record with PENDING status."""
        document = Document(
            filename=filename,
            file_path=file_path,
            mime_type=mime_type,
            organization_id=organization_id,
            status=DocumentStatus.PENDING,
        )
        session.add(document)
        await session.flush()
        await session.refresh(document)
        return document

    @staticmethod
    async def get_by_id(session: AsyncSession, document_id: str) -> Document | None:
        """Retrieve a document by its ID."""
        result = await session.execute(
            select(Document).where(Document.id == document_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def claim_for_processing(session: AsyncSession, document_id: str) -> bool:
        """Move a document to PROCESSING unless it is already processing or done.

        The check and the write are one conditional UPDATE, so two workers
        racing for the same document cannot both win.
        """
        result = await session.execute(
            update(Document)
            .where(
                Document.id == document_id,
                Document.status.not_in(_CLAIMABLE_EXCLUDED),
            )
            .values(status=DocumentStatus.PROCESSING, error_message=None)
            .execution_options(synchronize_session=False)
        )
        await session.flush()
        return result.rowcount == 1

    @staticmethod
    async def update_status(
        session: AsyncSession,
        document_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> None:
        """Transition a document to a new processing status."""
        values: dict = {"status": status}
        if error_message is not None:
            values["error_message"] = error_message
        await session.execute(
            update(Document).where(Document.id == document_id).values(**values)
        )
        await session.flush()

    @staticmethod
    async def save_extracted_text(
        session: AsyncSession,
        document_id: str,
        text: str,
    ) -> None:
        """Persist the text pulled out of the source file."""
        await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(extracted_text=text)
        )
        await session.flush()

    @staticmethod
    async def save_classification(
        session: AsyncSession,
        document_id: str,
        category: str,
        confidence: float,
        tags: list[str],
    ) -> None:
        """Persist the classification of a document."""
        await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(category=category, confidence=confidence, tags=tags)
        )
        await session.flush()

    @staticmethod
    async def save_summary(
        session: AsyncSession,
        document_id: str,
        summary: str,
        key_points: list[str],
    ) -> None:
        """Persist the summary of a document."""
        await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(summary=summary, key_points=key_points)
        )
        await session.flush()

    @staticmethod
    async def mark_completed(session: AsyncSession, document_id: str) -> None:
        """Finish a document: COMPLETED, error cleared, processed_at stamped."""
        await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(
                status=DocumentStatus.COMPLETED,
                error_message=None,
                processed_at=datetime.now(UTC),
            )
        )
        await session.flush()

    @staticmethod
    async def mark_failed(
        session: AsyncSession,
        document_id: str,
        error_message: str,
    ) -> None:
        """Record a failed processing attempt."""
        await DocumentRepository.update_status(
            session, document_id, DocumentStatus.FAILED, error_message=error_message
        )

    @staticmethod
    async def list_pending(session: AsyncSession, limit: int) -> list[Document]:
        """Documents waiting for processing, oldest first, failed ones included."""
        result = await session.execute(
            select(Document)
            .where(
                Document.status.in_((DocumentStatus.PENDING, DocumentStatus.FAILED))
            )
            .order_by(Document.created_at, Document.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def reset_for_reprocessing(session: AsyncSession, document_id: str) -> bool:
        """Put a document back to PENDING with its error cleared."""
        result = await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(status=DocumentStatus.PENDING, error_message=None)
            .execution_options(synchronize_session=False)
        )
        await session.flush()
        return result.rowcount == 1
