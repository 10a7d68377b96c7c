import logging
from typing import Any

from elasticsearch import ApiError, TransportError

from jobsearch.schemas.job import JobDocument, JobPage, JobSearchRequest, JobSkillOut
from jobsearch.services.search_index import JobSearchIndex
from jobsearch.services.tabular_ingestor import coerce_salary

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ["title^2", "company", "location", "industry"]


def build_search_body(request: JobSearchRequest) -> dict[str, Any]:
    """Translate a search request into keyword arguments for Elasticsearch search()."""
    if request.query and request.query.strip():
        must: list[dict] = [{"multi_match": {"query": request.query.strip(), "fields": SEARCH_FIELDS}}]
    else:
        must = [{"match_all": {}}]
    filters: list[dict] = []
    if request.industry:
        filters.append({"term": {"industry": request.industry.value}})
    body: dict[str, Any] = {
        "query": {"bool": {"must": must, "filter": filters}},
        "from_": (request.page - 1) * request.limit,
        "size": request.limit,
        "track_total_hits": True,
    }
    if request.sort_by_salary:
        body["sort"] = [{"salary": {"order": request.sort_by_salary}}]
    return body


def _as_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _as_str(value) -> str | None:
    return None if value is None else str(value)


def map_hit(hit: dict[str, Any]) -> JobDocument:
    source = hit.get("_source") or {}
    job_id = _as_int(source.get("id"))
    if job_id is None:
        try:
            job_id = int(hit.get("_id"))
        except (TypeError, ValueError):
            job_id = 0
    skills = [
        JobSkillOut(skill_id=_as_int(s.get("skill_id")) or 0, name=str(s["name"]))
        for s in (source.get("skills") if isinstance(source.get("skills"), list) else [])
        if isinstance(s, dict) and s.get("name")
    ]
    return JobDocument(
        id=job_id,
        title=_as_str(source.get("title")) or "",
        company=_as_str(source.get("company")) or "",
        location=_as_str(source.get("location")),
        experience_level=_as_str(source.get("experience_level")),
        salary=coerce_salary(source.get("salary")),
        industry=_as_str(source.get("industry")),
        skills=skills,
    )


def _total(hits: dict[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def search_jobs(index: JobSearchIndex, request: JobSearchRequest) -> JobPage:
    """Run a paginated search. Engine failures yield an empty page instead of raising."""
    body = build_search_body(request)
    try:
        resp = index.search(body)
    except (ApiError, TransportError) as e:
        logger.warning("Job search failed, returning empty result: %s", e)
        return JobPage(data=[], total=0, page=request.page, limit=request.limit)
    hits = resp["hits"]
    return JobPage(
        data=[map_hit(h) for h in hits.get("hits", [])],
        total=_total(hits),
        page=request.page,
        limit=request.limit,
    )
