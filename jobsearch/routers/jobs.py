import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobsearch.config import settings
from jobsearch.core.errors import IndexWriteError
from jobsearch.database import get_db
from jobsearch.dependencies import get_index
from jobsearch.models.job import Industry
from jobsearch.repos import job_repo, skill_repo
from jobsearch.schemas.job import JobCreate, JobDocument, JobPage, JobSearchRequest, JobUpdate
from jobsearch.services.index_sync import sync_on_create, sync_on_delete, sync_on_update
from jobsearch.services.job_query import search_jobs
from jobsearch.services.search_index import JobSearchIndex, build_document

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])

STALE_INDEX_DETAIL = "Job saved but the search index could not be updated; it will be refreshed on the next reindex."


def _check_skill_ids(db: Session, skill_ids: list[int] | None) -> None:
    if not skill_ids:
        return
    found = {s.id for s in skill_repo.get_by_ids(db, skill_ids)}
    missing = sorted(set(skill_ids) - found)
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown skill ids: {missing}")


@router.get("", response_model=JobPage)
def list_jobs(
    query: str | None = None,
    industry: Industry | None = None,
    sort_by_salary: Literal["asc", "desc"] | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.search_default_limit, gt=0),
    index: JobSearchIndex = Depends(get_index),
):
    """Search indexed jobs with optional free text, industry filter and salary sort."""
    request = JobSearchRequest(
        query=query,
        industry=industry,
        sort_by_salary=sort_by_salary,
        page=page,
        limit=min(limit, settings.search_max_limit),
    )
    return search_jobs(index, request)


@router.get("/{job_id}", response_model=JobDocument)
def get_job(job_id: int, db: Session = Depends(get_db)):
    job = job_repo.get_by_id(db, job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return build_document(job)


@router.post("", response_model=JobDocument, status_code=status.HTTP_201_CREATED)
def create_job(
    body: JobCreate,
    db: Session = Depends(get_db),
    index: JobSearchIndex = Depends(get_index),
):
    _check_skill_ids(db, body.skill_ids)
    try:
        job = job_repo.create_one(
            db,
            title=body.title,
            company=body.company,
            industry=body.industry,
            location=body.location,
            experience_level=body.experience_level,
            salary=body.salary,
            skill_ids=body.skill_ids,
        )
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A job with this title and company already exists")
    try:
        return sync_on_create(db, index, job)
    except IndexWriteError as e:
        logger.error("Write-through failed after creating job %d: %s", job.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=STALE_INDEX_DETAIL) from e


@router.patch("/{job_id}", response_model=JobDocument)
def update_job(
    job_id: int,
    body: JobUpdate,
    db: Session = Depends(get_db),
    index: JobSearchIndex = Depends(get_index),
):
    _check_skill_ids(db, body.skill_ids)
    fields = body.model_dump(exclude_unset=True)
    try:
        job = job_repo.update_one(db, job_id, **fields)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A job with this title and company already exists")
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    try:
        return sync_on_update(db, index, job)
    except IndexWriteError as e:
        logger.error("Write-through failed after updating job %d: %s", job_id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=STALE_INDEX_DETAIL) from e


@router.delete("/{job_id}")
def delete_job(
    job_id: int,
    db: Session = Depends(get_db),
    index: JobSearchIndex = Depends(get_index),
):
    try:
        deleted = sync_on_delete(db, index, job_id)
    except IndexWriteError as e:
        logger.error("Job %d deleted from store but not from index: %s", job_id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=STALE_INDEX_DETAIL) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return {"success": True}
