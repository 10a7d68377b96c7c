import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobsearch.database import Base, get_db
from jobsearch.dependencies import get_index
from jobsearch.main import app
from jobsearch.services.search_index import JobSearchIndex

CSV_HEADER = "Job Title,Company,Location,Experience Level,Salary,Industry,Required Skills\n"


def api_error(cls, status: int, body=None):
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return cls(message=f"status {status}", meta=meta, body=body or {})


class _FakeIndices:
    def __init__(self, es):
        self.es = es
        self.created: dict[str, dict] = {}

    def exists(self, index):
        return index in self.created

    def create(self, index, mappings):
        self.created[index] = mappings
        return {"acknowledged": True}


class FakeElasticsearch:
    """In-memory stand-in for the parts of the Elasticsearch client the index uses."""

    def __init__(self):
        self.indices = _FakeIndices(self)
        self.docs: dict[str, dict] = {}
        self.bulk_calls: list[dict] = []
        self.search_calls: list[dict] = []
        self.delete_by_query_calls: list[dict] = []
        self.refreshes = 0
        self.fail_with: Exception | None = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def bulk(self, operations, refresh=False):
        self._maybe_fail()
        self.bulk_calls.append({"operations": operations, "refresh": refresh})
        items = []
        for action, doc in zip(operations[::2], operations[1::2]):
            doc_id = action["index"]["_id"]
            self.docs[doc_id] = dict(doc)
            items.append({"index": {"_id": doc_id, "status": 200}})
        if refresh:
            self.refreshes += 1
        return {"errors": False, "items": items}

    def index(self, index, id, document, refresh=False):
        self._maybe_fail()
        self.docs[id] = dict(document)
        if refresh:
            self.refreshes += 1
        return {"result": "updated"}

    def delete(self, index, id, refresh=False):
        self._maybe_fail()
        from elasticsearch import NotFoundError

        if id not in self.docs:
            raise api_error(NotFoundError, 404)
        del self.docs[id]
        return {"result": "deleted"}

    def delete_by_query(self, index, query, refresh=False, conflicts=None):
        self._maybe_fail()
        self.delete_by_query_calls.append(query)
        id_range = query["bool"]["filter"][0]["range"]["id"]
        keep = set()
        for clause in query["bool"].get("must_not", []):
            keep.update(clause["ids"]["values"])
        doomed = [
            doc_id
            for doc_id, doc in self.docs.items()
            if doc["id"] > id_range["gt"]
            and ("lte" not in id_range or doc["id"] <= id_range["lte"])
            and doc_id not in keep
        ]
        for doc_id in doomed:
            del self.docs[doc_id]
        if refresh:
            self.refreshes += 1
        return {"deleted": len(doomed)}

    def ping(self):
        return self.fail_with is None

    def search(self, index, query, from_=0, size=10, sort=None, track_total_hits=None):
        self._maybe_fail()
        self.search_calls.append(
            {"query": query, "from_": from_, "size": size, "sort": sort, "track_total_hits": track_total_hits}
        )
        scored = []
        for doc_id, doc in sorted(self.docs.items(), key=lambda kv: int(kv[0])):
            score = self._score(query["bool"]["must"][0], doc)
            if score is None or not self._passes(query["bool"]["filter"], doc):
                continue
            scored.append((score, doc_id, doc))
        if sort:
            order = sort[0]["salary"]["order"]
            scored.sort(key=lambda s: s[2]["salary"], reverse=order == "desc")
        else:
            scored.sort(key=lambda s: -s[0])
        page = scored[from_:from_ + size]
        return {
            "hits": {
                "total": {"value": len(scored), "relation": "eq"},
                "hits": [{"_id": doc_id, "_score": score, "_source": doc} for score, doc_id, doc in page],
            }
        }

    @staticmethod
    def _score(clause, doc):
        if "match_all" in clause:
            return 1.0
        terms = clause["multi_match"]["query"].lower().split()
        score = 0.0
        for spec in clause["multi_match"]["fields"]:
            field, _, boost = spec.partition("^")
            words = str(doc.get(field, "")).lower().split()
            score += sum(1 for t in terms if t in words) * float(boost or 1)
        return score or None

    @staticmethod
    def _passes(filters, doc):
        for f in filters:
            for field, value in f["term"].items():
                if doc.get(field) != value:
                    return False
        return True


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def search_index(fake_es) -> JobSearchIndex:
    return JobSearchIndex(fake_es, "jobs")


@pytest.fixture
def write_csv(tmp_path):
    def _write(rows: list[str], name: str = "jobs.csv", header: str = CSV_HEADER):
        path = tmp_path / name
        path.write_text(header + "".join(r + "\n" for r in rows), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def client(db_session, search_index):
    def _db_override():
        yield db_session

    app.dependency_overrides[get_db] = _db_override
    app.dependency_overrides[get_index] = lambda: search_index
    yield TestClient(app)
    app.dependency_overrides.clear()
