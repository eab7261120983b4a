"""Administrative command line for the ingestion pipeline.

Usage::

    python -m docindex init-db
    python -m docindex process <document-id>
    python -m docindex process-pending --limit 25
    python -m docindex reprocess <document-id>
    python -m docindex stats
    python -m docindex check-backend
"""

import argparse
import asyncio
import sys

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from docindex.config import settings
from docindex.db import init_db
from docindex.exceptions import DocIndexError
from docindex.jobs.ingestion import IngestionJob, IngestionReport
from docindex.logging_config import configure_logging
from docindex.services.backends.factory import BackendSelector, create_backend
from docindex.services.processing import DocumentProcessor


def _print_report(report: IngestionReport) -> None:
    print(f"Document {report.document_id}: {report.outcome.value}")
    if report.processing is not None:
        print(f"  Chunks created:  {report.processing.chunks_created}")
        print(f"  Total words:     {report.processing.total_words}")
        print(f"  Dimensions:      {report.processing.dimensions}")
        if report.processing.used_placeholder_embeddings:
            print("  WARNING: placeholder embeddings stored")
    for step in report.steps:
        state = "ok" if step.performed else f"skipped ({step.error})"
        print(f"  {step.name:<15}  {state}")
    if report.duration_ms:
        print(f"  Time:            {report.duration_ms} ms")


async def _handle_init_db() -> int:
    await init_db()
    print("Database initialized.")
    return 0


async def _handle_process(args: argparse.Namespace) -> int:
    job = IngestionJob(create_backend())
    _print_report(await job.run(args.document_id))
    return 0


async def _handle_process_pending(args: argparse.Namespace) -> int:
    job = IngestionJob(create_backend())
    processed = await job.run_batch(args.limit)
    print(f"Processed {processed} document(s) successfully.")
    return 0


async def _handle_reprocess(args: argparse.Namespace) -> int:
    job = IngestionJob(create_backend())
    _print_report(await job.reprocess(args.document_id))
    return 0


async def _handle_stats() -> int:
    processor = DocumentProcessor(create_backend())
    stats = await processor.stats()
    print("Chunk Store Statistics")
    print("=" * 40)
    print(f"  Total chunks:     {stats.total_chunks}")
    print(f"  Total documents:  {stats.total_documents}")
    return 0


def _handle_check_backend() -> int:
    selector = BackendSelector()
    available = selector.availability_check()
    info = selector.info()
    print(f"Backend:          {info.name}")
    print(f"Chat model:       {info.chat_model}")
    print(f"Embedding model:  {info.embedding_model}")
    print(f"Dimensions:       {info.embedding_dimensions}")
    print(f"Available:        {'yes' if available else 'no'}")
    return 0 if available else 1


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the DocIndex CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docindex",
        description="Manage document chunking, embedding and AI processing.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Enable pgvector and create tables")

    process_parser = subparsers.add_parser("process", help="Run AI processing for a document")
    process_parser.add_argument("document_id", help="Document ID")

    pending_parser = subparsers.add_parser(
        "process-pending", help="Process pending and failed documents"
    )
    pending_parser.add_argument(
        "--limit",
        type=int,
        default=settings.batch_limit,
        help=f"Maximum documents to process (default: {settings.batch_limit})",
    )

    reprocess_parser = subparsers.add_parser(
        "reprocess", help="Reset a document to pending and process it again"
    )
    reprocess_parser.add_argument("document_id", help="Document ID")

    subparsers.add_parser("stats", help="Show chunk store statistics")
    subparsers.add_parser("check-backend", help="Check the configured AI backend")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(args.log_level)

    try:
        if args.command == "init-db":
            return asyncio.run(_handle_init_db())
        if args.command == "process":
            return asyncio.run(_handle_process(args))
        if args.command == "process-pending":
            return asyncio.run(_handle_process_pending(args))
        if args.command == "reprocess":
            return asyncio.run(_handle_reprocess(args))
        if args.command == "stats":
            return asyncio.run(_handle_stats())
        if args.command == "check-backend":
            return _handle_check_backend()
    except DocIndexError as exc:
        logger.error("Command failed", command=args.command, error_code=exc.error_code)
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        logger.error("Database error", command=args.command, error=str(exc))
        print(f"Database error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1
