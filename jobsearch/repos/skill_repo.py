from sqlalchemy.orm import Session

from jobsearch.database import insert_ignoring_conflicts
from jobsearch.models.skill import Skill


def bulk_insert_skills(db: Session, names: list[str]) -> int:
    """Insert skill names, skipping ones already stored. Returns count inserted."""
    inserted = insert_ignoring_conflicts(db, Skill, [{"name": n} for n in names], ["name"])
    db.commit()
    return inserted


def get_skill_id_map(db: Session) -> dict[str, int]:
    return {name: skill_id for skill_id, name in db.query(Skill.id, Skill.name).all()}


def get_by_ids(db: Session, skill_ids: list[int]) -> list[Skill]:
    if not skill_ids:
        return []
    return db.query(Skill).filter(Skill.id.in_(skill_ids)).all()


def count(db: Session) -> int:
    return db.query(Skill).count()
