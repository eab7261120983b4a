"""Background jobs."""

from docindex.jobs.ingestion import IngestionJob, IngestionOutcome, IngestionReport
from docindex.jobs.steps import StepOutcome, run_best_effort

__all__ = [
    "IngestionJob",
    "IngestionOutcome",
    "IngestionReport",
    "StepOutcome",
    "run_best_effort",
]
