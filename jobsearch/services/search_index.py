"""
Elasticsearch side of the catalog: index schema, document projection and writes.

One document per job, keyed by the job's id, with its skills embedded as nested
{skill_id, name} objects. Writes ask for an immediate refresh so callers can
search for what they just wrote.
"""
import logging
from functools import lru_cache
from typing import Any

from elasticsearch import ApiError, BadRequestError, Elasticsearch, NotFoundError, TransportError

from jobsearch.config import settings
from jobsearch.core.errors import IndexWriteError

logger = logging.getLogger(__name__)

# industry is a keyword so term filters match the enum value exactly.
JOB_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "integer"},
        "title": {"type": "text"},
        "company": {"type": "text"},
        "location": {"type": "text"},
        "experience_level": {"type": "keyword"},
        "salary": {"type": "integer"},
        "industry": {"type": "keyword"},
        "skills": {
            "type": "nested",
            "properties": {
                "skill_id": {"type": "integer"},
                "name": {"type": "keyword"},
            },
        },
    }
}


def build_document(job) -> dict[str, Any]:
    """Denormalize a Job row and its current skill edges into a search document."""
    industry = job.industry.value if hasattr(job.industry, "value") else job.industry
    return {
        "id": job.id,
        "title": job.title or "Unknown",
        "company": job.company or "Unknown",
        "location": job.location or "Unknown",
        "experience_level": job.experience_level or "Not specified",
        "salary": job.salary or 0,
        "industry": industry,
        "skills": [
            {"skill_id": js.skill.id, "name": js.skill.name}
            for js in (job.skills or [])
            if js.skill is not None
        ],
    }


class JobSearchIndex:
    def __init__(self, client: Elasticsearch, index_name: str = "jobs"):
        self.client = client
        self.index_name = index_name

    def ensure_index(self) -> bool:
        """Create the index with the fixed mapping if absent. Returns True when created."""
        try:
            if self.client.indices.exists(index=self.index_name):
                return False
            self.client.indices.create(index=self.index_name, mappings=JOB_INDEX_MAPPINGS)
        except BadRequestError as e:
            # another process created it between exists() and create()
            if getattr(e, "error", "") == "resource_already_exists_exception":
                return False
            raise IndexWriteError(f"Could not create index {self.index_name!r}: {e}") from e
        except (ApiError, TransportError) as e:
            raise IndexWriteError(f"Could not create index {self.index_name!r}: {e}") from e
        logger.info("Search index %r created", self.index_name)
        return True

    def bulk_index(self, documents: list[dict[str, Any]]) -> int:
        """Upsert documents in one bulk call and refresh. Returns number indexed."""
        if not documents:
            return 0
        operations: list[dict[str, Any]] = []
        for doc in documents:
            operations.append({"index": {"_index": self.index_name, "_id": str(doc["id"])}})
            operations.append(doc)
        try:
            resp = self.client.bulk(operations=operations, refresh=True)
        except (ApiError, TransportError) as e:
            raise IndexWriteError(f"Bulk index of {len(documents)} documents failed: {e}") from e
        if resp["errors"]:
            failed = [
                item["index"]
                for item in resp["items"]
                if item.get("index", {}).get("error")
            ]
            logger.error("Bulk index reported %d failed items, first: %s", len(failed), failed[:1])
            raise IndexWriteError(f"Bulk index failed for {len(failed)} of {len(documents)} documents")
        return len(documents)

    def put(self, document: dict[str, Any]) -> None:
        try:
            self.client.index(
                index=self.index_name,
                id=str(document["id"]),
                document=document,
                refresh=True,
            )
        except (ApiError, TransportError) as e:
            raise IndexWriteError(f"Index write for job {document['id']} failed: {e}") from e

    def delete(self, job_id: int) -> bool:
        """Remove a job document. Returns False if it was already absent."""
        try:
            self.client.delete(index=self.index_name, id=str(job_id), refresh=True)
        except NotFoundError:
            logger.info("Job %d not in search index; nothing to delete", job_id)
            return False
        except (ApiError, TransportError) as e:
            raise IndexWriteError(f"Index delete for job {job_id} failed: {e}") from e
        return True

    def prune(self, above_id: int, up_to_id: int | None, keep_ids: list[int]) -> int:
        """
        Delete documents with id in (above_id, up_to_id] that are not in keep_ids.
        up_to_id=None removes everything above above_id. Returns number deleted.
        """
        id_range: dict[str, int] = {"gt": above_id}
        if up_to_id is not None:
            id_range["lte"] = up_to_id
        query: dict[str, Any] = {"bool": {"filter": [{"range": {"id": id_range}}]}}
        if keep_ids:
            query["bool"]["must_not"] = [{"ids": {"values": [str(i) for i in keep_ids]}}]
        try:
            resp = self.client.delete_by_query(
                index=self.index_name,
                query=query,
                refresh=True,
                conflicts="proceed",
            )
        except (ApiError, TransportError) as e:
            raise IndexWriteError(f"Pruning stale documents above id {above_id} failed: {e}") from e
        return int(resp["deleted"])

    def search(self, body: dict[str, Any]):
        return self.client.search(index=self.index_name, **body)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (ApiError, TransportError):
            return False


def create_client() -> Elasticsearch:
    kwargs: dict[str, Any] = {}
    if settings.elasticsearch_cloud_id:
        kwargs["cloud_id"] = settings.elasticsearch_cloud_id
    else:
        kwargs["hosts"] = [settings.elasticsearch_url]
    if settings.elasticsearch_api_key:
        kwargs["api_key"] = settings.elasticsearch_api_key
    elif settings.elasticsearch_username and settings.elasticsearch_password:
        kwargs["basic_auth"] = (settings.elasticsearch_username, settings.elasticsearch_password)
    return Elasticsearch(**kwargs)


@lru_cache(maxsize=1)
def get_search_index() -> JobSearchIndex:
    return JobSearchIndex(create_client(), settings.elasticsearch_index)
