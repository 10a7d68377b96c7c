"""
Keep the search index in step with the relational store.

Single-job mutations are pushed inline after the relational commit (write-through);
`reindex_all` rebuilds every document from the store in chunks. The store is the
source of truth: an index failure here leaves the committed row in place and
surfaces as IndexWriteError.
"""
import logging

from sqlalchemy.orm import Session

from jobsearch.models.job import Job
from jobsearch.repos import job_repo
from jobsearch.services.search_index import JobSearchIndex, build_document

logger = logging.getLogger(__name__)


def index_put(index: JobSearchIndex, document: dict) -> None:
    index.put(document)


def index_delete(index: JobSearchIndex, job_id: int) -> bool:
    return index.delete(job_id)


def _sync_job(db: Session, index: JobSearchIndex, job: Job, action: str) -> dict:
    # reload so the document reflects the committed edge set, not the caller's copy
    fresh = job_repo.get_by_id(db, job.id)
    if fresh is None:
        raise ValueError(f"Job {job.id} not found in store")
    document = build_document(fresh)
    index_put(index, document)
    logger.info("Indexed job %d on %s (%d skills)", fresh.id, action, len(document["skills"]))
    return document


def sync_on_create(db: Session, index: JobSearchIndex, job: Job) -> dict:
    return _sync_job(db, index, job, "create")


def sync_on_update(db: Session, index: JobSearchIndex, job: Job) -> dict:
    return _sync_job(db, index, job, "update")


def sync_on_delete(db: Session, index: JobSearchIndex, job_id: int) -> bool:
    """Delete the job row (and its edges) first, then its index document."""
    if not job_repo.delete_one(db, job_id):
        return False
    index_delete(index, job_id)
    return True


def reindex_all(db: Session, index: JobSearchIndex, batch_size: int = 500) -> int:
    """
    Rebuild the index from the store. Returns documents indexed.

    Each page of jobs is bulk-upserted, then documents inside that page's id range
    with no matching row are deleted, so jobs removed from the store while the
    index was unreachable stop being searchable.
    """
    index.ensure_index()
    total = 0
    pruned = 0
    last_id = 0
    for batch in job_repo.iter_with_skills(db, batch_size=batch_size):
        documents = [build_document(job) for job in batch]
        total += index.bulk_index(documents)
        ids = [doc["id"] for doc in documents]
        pruned += index.prune(last_id, ids[-1], ids)
        last_id = ids[-1]
        logger.info("Reindexed %d jobs so far", total)
    pruned += index.prune(last_id, None, [])
    if pruned:
        logger.info("Removed %d index documents with no matching job", pruned)
    return total
