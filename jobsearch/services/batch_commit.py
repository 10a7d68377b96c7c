"""
Commit linked entities to the relational store in ordered, chunked phases.

Bulk inserts do not hand back generated ids, so each entity phase is followed by
a re-read by natural key to build the id map the next phase needs
(commit-then-resolve). Every chunk is its own round-trip and commit; a failure
stops the run, and earlier phases stay committed. Re-running is safe because
all inserts skip rows whose unique key already exists.
"""
import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobsearch.core.errors import StoreWriteError
from jobsearch.repos import job_repo, skill_repo
from jobsearch.services.entity_linker import LinkedEntities

logger = logging.getLogger(__name__)

T = TypeVar("T")

PHASES = ("skills", "skill_ids", "jobs", "job_ids", "edges")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for i in range(0, len(items), size):
        yield items[i:i + size]


def batch_insert(items: Sequence[T], insert_fn: Callable[[Sequence[T]], int], batch_size: int) -> int:
    """Run insert_fn over items in chunks of batch_size. Returns total inserted."""
    total = 0
    for batch in chunked(items, batch_size):
        total += insert_fn(batch)
    return total


@dataclass
class CommitResult:
    skills_inserted: int = 0
    jobs_inserted: int = 0
    edges_inserted: int = 0
    edges_dropped: int = 0
    phases_completed: int = 0
    skill_ids: dict[str, int] = field(default_factory=dict)
    job_ids: dict[tuple[str, str], int] = field(default_factory=dict)

    def summary(self) -> dict:
        return {
            "skills_inserted": self.skills_inserted,
            "jobs_inserted": self.jobs_inserted,
            "edges_inserted": self.edges_inserted,
            "edges_dropped": self.edges_dropped,
            "phases_completed": self.phases_completed,
        }


def resolve_edges(
    edges: list[tuple[tuple[str, str], str]],
    job_ids: dict[tuple[str, str], int],
    skill_ids: dict[str, int],
) -> tuple[list[tuple[int, int]], int]:
    """
    Map (job_key, skill_name) edges to unique (job_id, skill_id) pairs.
    Edges whose job or skill has no id are dropped and counted, never inserted.
    """
    resolved: dict[tuple[int, int], None] = {}
    dropped = 0
    for key, skill_name in edges:
        job_id = job_ids.get(key)
        skill_id = skill_ids.get(skill_name)
        if job_id is None or skill_id is None:
            dropped += 1
            logger.debug("Unresolved edge dropped: job=%s skill=%r", key, skill_name)
            continue
        resolved[(job_id, skill_id)] = None
    return list(resolved), dropped


def commit_entities(db: Session, linked: LinkedEntities, batch_size: int = 500) -> CommitResult:
    result = CommitResult()
    phase = PHASES[0]

    def done(name: str) -> None:
        result.phases_completed += 1
        logger.info("Commit phase %r complete (%d/%d)", name, result.phases_completed, len(PHASES))

    try:
        phase = "skills"
        result.skills_inserted = batch_insert(
            linked.skill_names, lambda b: skill_repo.bulk_insert_skills(db, list(b)), batch_size
        )
        done(phase)

        phase = "skill_ids"
        skill_ids = skill_repo.get_skill_id_map(db)
        done(phase)

        phase = "jobs"
        result.jobs_inserted = batch_insert(
            list(linked.jobs.values()), lambda b: job_repo.bulk_insert_jobs(db, list(b)), batch_size
        )
        done(phase)

        phase = "job_ids"
        job_ids = job_repo.get_job_id_map(db)
        done(phase)

        phase = "edges"
        pairs, result.edges_dropped = resolve_edges(linked.edges, job_ids, skill_ids)
        if result.edges_dropped:
            logger.warning("Dropped %d edges referencing unresolved jobs or skills", result.edges_dropped)
        result.edges_inserted = batch_insert(
            pairs, lambda b: job_repo.bulk_insert_job_skills(db, list(b)), batch_size
        )
        done(phase)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Store write failed in phase %r after %d completed phases: %s",
            phase, result.phases_completed, e,
        )
        raise StoreWriteError(phase, result.phases_completed, f"store write failed in phase {phase!r}: {e}") from e

    result.skill_ids = skill_ids
    result.job_ids = job_ids
    logger.info("Commit done: %s", result.summary())
    return result
