"""Background AI processing of uploaded documents.

Orchestrates the per-document pipeline: claim -> extract -> chunk/embed ->
keyword index -> classify -> summarize, tracking the document status
throughout. Keyword indexing, classification and summarization are best
effort; any other failure marks the document FAILED and is re-raised.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docindex.config import settings
from docindex.db import async_session_factory, session_scope
from docindex.exceptions import NotFoundError
from docindex.jobs.steps import StepOutcome, run_best_effort
from docindex.models.document import Document, DocumentStatus
from docindex.repositories.document import DocumentRepository
from docindex.services.backends.base import AIBackend
from docindex.services.processing import DocumentProcessor, ProcessingResult
from docindex.services.search_index import (
    LoggingSearchIndex,
    SearchIndex,
    build_index_fields,
)
from docindex.services.text_extraction import (
    TextExtractionService,
    is_supported_mime_type,
)


class IngestionOutcome(StrEnum):
    """How a run of the job ended for one document."""

    ALREADY_DONE = "already_done"
    CLAIMED_ELSEWHERE = "claimed_elsewhere"
    UNSUPPORTED_TYPE = "unsupported_type"
    NO_TEXT = "no_text"
    COMPLETED = "completed"


@dataclass
class IngestionReport:
    """Summary of one ``IngestionJob.run`` call."""

    document_id: str
    outcome: IngestionOutcome
    processing: ProcessingResult | None = None
    steps: list[StepOutcome] = field(default_factory=list)
    duration_ms: int = 0


def format_error(exc: BaseException, max_length: int | None = None) -> str:
    """Render an exception as ``"<Type>: <message>"`` capped at ``max_length``."""
    limit = max_length if max_length is not None else settings.error_message_max_length
    return f"{type(exc).__name__}: {exc}"[:limit]


class IngestionJob:
    """Run the AI pipeline for documents, one at a time."""

    def __init__(
        self,
        backend: AIBackend,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        processor: DocumentProcessor | None = None,
        extractor: TextExtractionService | None = None,
        search_index: SearchIndex | None = None,
    ) -> None:
        self.backend = backend
        self.session_factory = session_factory or async_session_factory
        self.processor = processor or DocumentProcessor(backend, self.session_factory)
        self.extractor = extractor or TextExtractionService()
        self.search_index = search_index or LoggingSearchIndex()

    async def run(self, document_id: str) -> IngestionReport:
        """Process one document.

        Completed documents and documents another worker is processing are
        left untouched.

        Raises:
            NotFoundError: If the document does not exist
        """
        start = time.perf_counter()

        async with session_scope(self.session_factory) as session:
            document = await DocumentRepository.get_by_id(session, document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            if document.status in (DocumentStatus.COMPLETED, DocumentStatus.PROCESSING):
                logger.info(
                    "Document already handled, skipping",
                    document_id=document_id,
                    status=document.status.value,
                )
                return IngestionReport(document_id, IngestionOutcome.ALREADY_DONE)

            claimed = await DocumentRepository.claim_for_processing(session, document_id)

        if not claimed:
            logger.info("Document claimed by another worker", document_id=document_id)
            return IngestionReport(document_id, IngestionOutcome.CLAIMED_ELSEWHERE)

        logger.info("Starting AI processing", document_id=document_id)

        try:
            report = await self._run_claimed(document)
        except Exception as exc:
            await self._record_failure(document_id, exc)
            raise

        report.duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "AI processing finished",
            document_id=document_id,
            outcome=report.outcome.value,
            duration_ms=report.duration_ms,
        )
        return report

    async def run_batch(self, limit: int | None = None) -> int:
        """Process up to ``limit`` pending or failed documents; return the success count."""
        limit = limit if limit is not None else settings.batch_limit

        async with self.session_factory() as session:
            documents = await DocumentRepository.list_pending(session, limit)

        if not documents:
            logger.info("No pending documents found")
            return 0

        logger.info("Processing pending documents", count=len(documents), limit=limit)

        success_count = 0
        for document in documents:
            try:
                await self.run(document.id)
            except Exception as exc:
                logger.error(
                    "Batch item failed, continuing",
                    document_id=document.id,
                    error=format_error(exc),
                )
                continue
            success_count += 1

        logger.info(
            "Batch processing completed",
            successful=success_count,
            total=len(documents),
        )
        return success_count

    async def reprocess(self, document_id: str) -> IngestionReport:
        """Reset a document to PENDING and run it again.

        Raises:
            NotFoundError: If the document does not exist
        """
        async with session_scope(self.session_factory) as session:
            found = await DocumentRepository.reset_for_reprocessing(session, document_id)

        if not found:
            raise NotFoundError("Document", document_id)

        logger.info("Document reset for reprocessing", document_id=document_id)
        return await self.run(document_id)

    async def _run_claimed(self, document: Document) -> IngestionReport:
        document_id = document.id

        if not is_supported_mime_type(document.mime_type):
            logger.info(
                "Unsupported MIME type, completing without processing",
                document_id=document_id,
                mime_type=document.mime_type,
            )
            await self._complete(document_id)
            return IngestionReport(document_id, IngestionOutcome.UNSUPPORTED_TYPE)

        extraction = await asyncio.to_thread(
            self.extractor.extract, document.file_path, document.mime_type
        )
        text = extraction.text
        if not text or not text.strip():
            logger.info("No text extracted", document_id=document_id)
            await self._complete(document_id)
            return IngestionReport(document_id, IngestionOutcome.NO_TEXT)

        async with session_scope(self.session_factory) as session:
            await DocumentRepository.save_extracted_text(session, document_id, text)
        document.extracted_text = text

        logger.info(
            "Extracted text saved",
            document_id=document_id,
            char_count=extraction.char_count,
        )

        report = IngestionReport(document_id, IngestionOutcome.COMPLETED)

        tenant_id = document.organization_id
        if tenant_id:
            # Replace so chunks left by an interrupted attempt are dropped
            report.processing = await self.processor.replace(document_id, tenant_id, text)
        else:
            logger.info(
                "Skipping chunk processing, document has no tenant",
                document_id=document_id,
            )

        report.steps.append(
            await run_best_effort(
                "keyword_index",
                lambda: self.search_index.index(document_id, build_index_fields(document)),
                document_id=document_id,
            )
        )
        report.steps.append(
            await run_best_effort(
                "classify",
                lambda: self._classify(document_id, text),
                document_id=document_id,
            )
        )
        report.steps.append(
            await run_best_effort(
                "summarize",
                lambda: self._summarize(document_id, text),
                document_id=document_id,
            )
        )

        await self._complete(document_id)
        return report

    async def _classify(self, document_id: str, text: str) -> str:
        classification = await asyncio.to_thread(self.backend.classify, text)
        async with session_scope(self.session_factory) as session:
            await DocumentRepository.save_classification(
                session,
                document_id,
                category=classification.category,
                confidence=classification.confidence,
                tags=classification.tags,
            )
        logger.info(
            "Document classified",
            document_id=document_id,
            category=classification.category,
            confidence=classification.confidence,
        )
        return classification.category

    async def _summarize(self, document_id: str, text: str) -> str:
        summary = await asyncio.to_thread(self.backend.summarize, text)
        async with session_scope(self.session_factory) as session:
            await DocumentRepository.save_summary(
                session,
                document_id,
                summary=summary.summary,
                key_points=summary.key_points,
            )
        logger.info("Document summarized", document_id=document_id)
        return summary.summary

    async def _complete(self, document_id: str) -> None:
        async with session_scope(self.session_factory) as session:
            await DocumentRepository.mark_completed(session, document_id)

    async def _record_failure(self, document_id: str, exc: Exception) -> None:
        error_msg = format_error(exc)
        logger.error("AI processing failed", document_id=document_id, error=error_msg)
        try:
            async with session_scope(self.session_factory) as session:
                await DocumentRepository.mark_failed(session, document_id, error_msg)
        except Exception as status_exc:
            logger.error(
                "Failed to update document status to FAILED",
                document_id=document_id,
                error=str(status_exc),
            )
