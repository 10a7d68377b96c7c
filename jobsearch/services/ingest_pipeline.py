"""
End-to-end ingestion: CSV rows -> linked entities -> relational store -> search index.

Runs strictly in sequence. Any store, index or (abort-policy) row failure stops the
run and is reported as IngestionError with the number of phases that completed.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.orm import Session

from jobsearch.config import settings
from jobsearch.core.errors import IndexWriteError, IngestionError, RowParseError, StoreWriteError
from jobsearch.services.batch_commit import PHASES, CommitResult, commit_entities
from jobsearch.services.entity_linker import link_rows
from jobsearch.services.index_sync import reindex_all
from jobsearch.services.search_index import JobSearchIndex
from jobsearch.services.tabular_ingestor import CsvRowSource

logger = logging.getLogger(__name__)

# read + link, the commit phases, then index
TOTAL_PHASES = 2 + len(PHASES) + 1


@dataclass
class IngestReport:
    rows_read: int = 0
    rows_skipped: int = 0
    unique_jobs: int = 0
    unique_skills: int = 0
    candidate_edges: int = 0
    commit: CommitResult = field(default_factory=CommitResult)
    documents_indexed: int = 0
    phases_completed: int = 0

    def summary(self) -> dict:
        return {
            "rows_read": self.rows_read,
            "rows_skipped": self.rows_skipped,
            "unique_jobs": self.unique_jobs,
            "unique_skills": self.unique_skills,
            "candidate_edges": self.candidate_edges,
            **self.commit.summary(),
            "documents_indexed": self.documents_indexed,
            "phases_completed": self.phases_completed,
        }


def ingest(
    db: Session,
    index: JobSearchIndex | None,
    source_path: str | Path,
    *,
    batch_size: int | None = None,
    chunk_rows: int | None = None,
    bad_row_policy: str | None = None,
    build_index: bool = True,
) -> IngestReport:
    """Ingest a CSV file. index may be None only when build_index is False."""
    batch_size = batch_size or settings.ingest_batch_size
    if chunk_rows is None:
        chunk_rows = settings.ingest_chunk_rows
    policy = bad_row_policy or settings.ingest_bad_row_policy
    report = IngestReport()

    source = CsvRowSource(source_path, chunk_rows=chunk_rows or None, bad_row_policy=policy)
    try:
        linked = link_rows(source)
    except RowParseError as e:
        raise IngestionError(f"Aborted on malformed row: {e}", phase="read", phases_completed=0) from e
    report.rows_read = source.rows_read
    report.rows_skipped = source.skipped_rows
    report.unique_jobs = len(linked.jobs)
    report.unique_skills = len(linked.skill_names)
    report.candidate_edges = len(linked.edges)
    report.phases_completed = 2

    try:
        report.commit = commit_entities(db, linked, batch_size=batch_size)
    except StoreWriteError as e:
        report.phases_completed += e.phases_completed
        raise IngestionError(str(e), phase=e.phase, phases_completed=report.phases_completed) from e
    report.phases_completed += report.commit.phases_completed

    if build_index:
        if index is None:
            raise ValueError("index is required when build_index is True")
        try:
            report.documents_indexed = reindex_all(db, index, batch_size=batch_size)
        except IndexWriteError as e:
            raise IngestionError(str(e), phase="index", phases_completed=report.phases_completed) from e
        report.phases_completed += 1

    logger.info("Ingestion of %s complete: %s", Path(source_path).name, report.summary())
    return report
