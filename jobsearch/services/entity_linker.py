import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from jobsearch.models.job import job_key
from jobsearch.services.tabular_ingestor import JobRow

logger = logging.getLogger(__name__)


def split_skills(text: str | None) -> list[str]:
    """Comma-split a skills field, trimming tokens and dropping empties."""
    if not text:
        return []
    return [s.strip() for s in text.split(",") if s.strip()]


@dataclass
class LinkedEntities:
    skill_names: list[str] = field(default_factory=list)
    jobs: dict[tuple[str, str], JobRow] = field(default_factory=dict)
    edges: list[tuple[tuple[str, str], str]] = field(default_factory=list)
    row_count: int = 0


def link_rows(rows: Iterable[JobRow]) -> LinkedEntities:
    """
    Single pass over normalized rows.
    First row seen for a (title, company) key supplies the job's fields; later rows
    with the same key only add skills and edges. Repeated edges are kept here and
    collapsed at commit time.
    """
    linked = LinkedEntities()
    seen_skills: set[str] = set()
    for row in rows:
        linked.row_count += 1
        key = job_key(row.title, row.company)
        if key not in linked.jobs:
            linked.jobs[key] = row
        for name in split_skills(row.required_skills):
            if name not in seen_skills:
                seen_skills.add(name)
                linked.skill_names.append(name)
            linked.edges.append((key, name))
    logger.info(
        "Linked %d rows: %d unique jobs, %d unique skills, %d candidate edges",
        linked.row_count, len(linked.jobs), len(linked.skill_names), len(linked.edges),
    )
    return linked
