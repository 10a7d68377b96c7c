import logging
from collections.abc import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from jobsearch.database import insert_ignoring_conflicts
from jobsearch.models.job import Industry, Job, JobSkill, job_key
from jobsearch.services.tabular_ingestor import JobRow

logger = logging.getLogger(__name__)


def _with_skills(q):
    return q.options(selectinload(Job.skills).selectinload(JobSkill.skill))


def bulk_insert_jobs(db: Session, rows: list[JobRow]) -> int:
    """Insert jobs using ON CONFLICT (title, company) DO NOTHING. Returns count inserted."""
    values = [
        {
            "title": r.title,
            "company": r.company,
            "location": r.location,
            "experience_level": r.experience_level,
            "salary": r.salary,
            "industry": r.industry,
        }
        for r in rows
    ]
    inserted = insert_ignoring_conflicts(db, Job, values, ["title", "company"])
    db.commit()
    return inserted


def get_job_id_map(db: Session) -> dict[tuple[str, str], int]:
    return {job_key(title, company): job_id for job_id, title, company in db.query(Job.id, Job.title, Job.company).all()}


def bulk_insert_job_skills(db: Session, pairs: list[tuple[int, int]]) -> int:
    """Insert (job_id, skill_id) edges, skipping pairs already linked."""
    values = [{"job_id": job_id, "skill_id": skill_id} for job_id, skill_id in pairs]
    inserted = insert_ignoring_conflicts(db, JobSkill, values, ["job_id", "skill_id"])
    db.commit()
    return inserted


def get_by_id(db: Session, job_id: int) -> Job | None:
    return _with_skills(db.query(Job)).filter(Job.id == job_id).first()


def iter_with_skills(db: Session, batch_size: int = 500) -> Iterator[list[Job]]:
    """Yield jobs ordered by id in pages of batch_size, skills eagerly loaded."""
    last_id = 0
    while True:
        batch = (
            _with_skills(db.query(Job))
            .filter(Job.id > last_id)
            .order_by(Job.id)
            .limit(batch_size)
            .all()
        )
        if not batch:
            return
        last_id = batch[-1].id
        yield batch
        # keep the identity map from growing across pages
        db.expunge_all()


def count(db: Session) -> int:
    return db.query(Job).count()


def count_edges(db: Session) -> int:
    return db.query(JobSkill).count()


def create_one(
    db: Session,
    title: str,
    company: str,
    industry: Industry,
    location: str | None = None,
    experience_level: str | None = None,
    salary: int = 0,
    skill_ids: list[int] | None = None,
) -> Job:
    """Create a job and its skill edges. Raises IntegrityError on a duplicate (title, company)."""
    job = Job(
        title=title,
        company=company,
        location=location,
        experience_level=experience_level,
        salary=salary or 0,
        industry=industry,
    )
    job.skills = [JobSkill(skill_id=sid) for sid in dict.fromkeys(skill_ids or [])]
    db.add(job)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    return get_by_id(db, job.id)


def update_one(
    db: Session,
    job_id: int,
    *,
    title: str | None = None,
    company: str | None = None,
    location: str | None = None,
    experience_level: str | None = None,
    salary: int | None = None,
    industry: Industry | None = None,
    skill_ids: list[int] | None = None,
) -> Job | None:
    """Update fields that are not None. skill_ids replaces the whole edge set when given."""
    job = get_by_id(db, job_id)
    if not job:
        return None
    if title is not None:
        job.title = title
    if company is not None:
        job.company = company
    if location is not None:
        job.location = location
    if experience_level is not None:
        job.experience_level = experience_level
    if salary is not None:
        job.salary = salary
    if industry is not None:
        job.industry = industry
    try:
        if skill_ids is not None:
            for edge in list(job.skills):
                db.delete(edge)
            db.flush()
            db.expire(job, ["skills"])
            for sid in dict.fromkeys(skill_ids):
                db.add(JobSkill(job_id=job_id, skill_id=sid))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.expire_all()
    return get_by_id(db, job_id)


def delete_one(db: Session, job_id: int) -> bool:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        return False
    # Remove edges explicitly; SQLite does not enforce FK cascades by default.
    db.query(JobSkill).filter(JobSkill.job_id == job_id).delete(synchronize_session=False)
    db.query(Job).filter(Job.id == job_id).delete(synchronize_session=False)
    db.commit()
    logger.info("Deleted job %d", job_id)
    return True
