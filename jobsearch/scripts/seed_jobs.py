import argparse
import logging
import sys

from jobsearch.config import settings
from jobsearch.core.errors import IngestionError, IndexWriteError
from jobsearch.database import SessionLocal, ensure_tables_exist
from jobsearch.logging_config import setup_logging
from jobsearch.services.index_sync import reindex_all
from jobsearch.services.ingest_pipeline import TOTAL_PHASES, ingest
from jobsearch.services.search_index import get_search_index

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed skills, jobs and the search index from a job CSV")
    parser.add_argument("csv_path", nargs="?", help="Path to the job dataset CSV")
    parser.add_argument("--batch-size", type=int, default=settings.ingest_batch_size, help="Rows per insert / bulk call")
    parser.add_argument(
        "--chunk-rows",
        type=int,
        default=settings.ingest_chunk_rows,
        help="CSV rows read per chunk; 0 loads the whole file",
    )
    parser.add_argument(
        "--on-bad-row",
        choices=["skip", "abort"],
        default=settings.ingest_bad_row_policy,
        help="Skip-and-log or abort on malformed rows",
    )
    parser.add_argument("--skip-index", action="store_true", help="Only write the relational store")
    parser.add_argument("--reindex-only", action="store_true", help="Rebuild the search index from the store and exit")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run, e.g. debug")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    if not args.reindex_only and not args.csv_path:
        parser.error("csv_path is required unless --reindex-only is given")
    if args.batch_size <= 0:
        parser.error("--batch-size must be positive")

    ensure_tables_exist()
    db = SessionLocal()
    try:
        if args.reindex_only:
            try:
                count = reindex_all(db, get_search_index(), batch_size=args.batch_size)
            except IndexWriteError as e:
                logger.error("Reindex failed: %s", e)
                return 1
            logger.info("Reindex complete: %d documents", count)
            return 0

        index = None if args.skip_index else get_search_index()
        try:
            report = ingest(
                db,
                index,
                args.csv_path,
                batch_size=args.batch_size,
                chunk_rows=args.chunk_rows,
                bad_row_policy=args.on_bad_row,
                build_index=not args.skip_index,
            )
        except IngestionError as e:
            logger.error(
                "Seeding failed in phase %s after %d/%d phases: %s",
                e.phase, e.phases_completed, TOTAL_PHASES, e,
            )
            return 1
        logger.info("Seeding complete: %s", report.summary())
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
