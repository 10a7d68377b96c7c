import pytest
from elasticsearch import ConnectionError as ESConnectionError
from sqlalchemy.exc import OperationalError

import jobsearch.services.batch_commit as bc
from jobsearch.core.errors import IngestionError
from jobsearch.models.job import Job
from jobsearch.repos import job_repo, skill_repo
from jobsearch.schemas.job import JobSearchRequest
from jobsearch.services.ingest_pipeline import TOTAL_PHASES, ingest
from jobsearch.services.job_query import search_jobs

ROWS = [
    'Engineer,Acme,Berlin,Mid Level,85000,Software,"Go,SQL"',
    'Engineer,Acme,Berlin,Mid Level,85000,Software,"Go,SQL"',
    'Analyst,Bank,London,Entry Level,n/a,Finance,"Excel, SQL"',
    "Broken,Row,Nowhere,Mid Level,1,Mining,Go",
]


def test_ingest_builds_store_and_index(db_session, search_index, write_csv):
    path = write_csv(ROWS)
    report = ingest(db_session, search_index, path, batch_size=2, chunk_rows=2)

    assert report.rows_read == 4
    assert report.rows_skipped == 1
    assert (report.unique_jobs, report.unique_skills) == (2, 3)
    assert report.documents_indexed == 2
    assert report.phases_completed == TOTAL_PHASES
    assert job_repo.count(db_session) == 2
    assert skill_repo.count(db_session) == 3
    assert job_repo.count_edges(db_session) == 4
    analyst = db_session.query(Job).filter(Job.title == "Analyst").one()
    assert analyst.salary == 0

    page = search_jobs(search_index, JobSearchRequest(query="Engineer"))
    assert page.total == 1
    assert sorted(s.name for s in page.data[0].skills) == ["Go", "SQL"]


def test_ingest_twice_keeps_counts_identical(db_session, search_index, write_csv):
    path = write_csv(ROWS)
    ingest(db_session, search_index, path)
    before = (skill_repo.count(db_session), job_repo.count(db_session), job_repo.count_edges(db_session))
    second = ingest(db_session, search_index, path)
    after = (skill_repo.count(db_session), job_repo.count(db_session), job_repo.count_edges(db_session))
    assert before == after == (3, 2, 4)
    assert second.commit.jobs_inserted == 0
    assert second.documents_indexed == 2


def test_skip_index_writes_store_only(db_session, fake_es, write_csv):
    report = ingest(db_session, None, write_csv(ROWS[:1]), build_index=False)
    assert report.documents_indexed == 0
    assert job_repo.count(db_session) == 1
    assert fake_es.docs == {}


def test_abort_policy_reports_read_phase(db_session, search_index, write_csv):
    with pytest.raises(IngestionError) as exc:
        ingest(db_session, search_index, write_csv(ROWS), bad_row_policy="abort")
    assert exc.value.phase == "read"
    assert exc.value.phases_completed == 0
    assert job_repo.count(db_session) == 0


def test_store_failure_reports_progress(db_session, search_index, write_csv, monkeypatch):
    def _boom(db, pairs):
        raise OperationalError("INSERT INTO job_skills", {}, Exception("timeout"))

    monkeypatch.setattr(bc.job_repo, "bulk_insert_job_skills", _boom)
    with pytest.raises(IngestionError) as exc:
        ingest(db_session, search_index, write_csv(ROWS))
    assert exc.value.phase == "edges"
    assert exc.value.phases_completed == 2 + 4
    assert job_repo.count(db_session) == 2


def test_index_failure_is_an_ingestion_failure(db_session, search_index, fake_es, write_csv):
    fake_es.fail_with = ESConnectionError("down")
    with pytest.raises(IngestionError) as exc:
        ingest(db_session, search_index, write_csv(ROWS))
    assert exc.value.phase == "index"
    assert exc.value.phases_completed == TOTAL_PHASES - 1
    # relational data is kept for the next run to reindex
    assert job_repo.count(db_session) == 2


def test_row_with_extra_fields_does_not_stop_ingestion(db_session, search_index, write_csv):
    path = write_csv([
        "Engineer,Acme,Berlin,Mid Level,85000,Software,Go",
        "Extra,Co,Rome,Mid Level,1,Software,Go,UNEXPECTED",
        "Analyst,Bank,London,Mid Level,70000,Finance,Excel",
    ])
    report = ingest(db_session, search_index, path)
    assert report.rows_skipped == 1
    assert report.phases_completed == TOTAL_PHASES
    assert sorted(j.title for j in db_session.query(Job).all()) == ["Analyst", "Engineer"]
