import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import jobsearch.database as dbmod
from jobsearch.models.skill import Skill


def test_get_db_closes_session(monkeypatch):
    class _DB:
        def __init__(self):
            self.closed = False

        def close(self):
            self.closed = True

    inst = _DB()
    monkeypatch.setattr(dbmod, "SessionLocal", lambda: inst)
    gen = dbmod.get_db()
    got = next(gen)
    assert got is inst
    with pytest.raises(StopIteration):
        next(gen)
    assert inst.closed is True


def test_ensure_tables_exist_creates_only_missing():
    engine = create_engine("sqlite://", poolclass=StaticPool)
    assert dbmod.ensure_tables_exist(engine) == ["job_skills", "jobs", "skills"]
    assert dbmod.ensure_tables_exist(engine) == []


def test_ensure_tables_exist_failure(monkeypatch):
    def _boom(_engine):
        raise RuntimeError("inspect failed")

    monkeypatch.setattr(dbmod, "inspect", _boom)
    with pytest.raises(RuntimeError):
        dbmod.ensure_tables_exist()


def test_insert_ignoring_conflicts_skips_existing(db_session):
    rows = [{"name": "Go"}, {"name": "SQL"}]
    assert dbmod.insert_ignoring_conflicts(db_session, Skill, rows, ["name"]) == 2
    assert dbmod.insert_ignoring_conflicts(db_session, Skill, rows + [{"name": "Rust"}], ["name"]) == 1
    assert dbmod.insert_ignoring_conflicts(db_session, Skill, [], ["name"]) == 0
    db_session.commit()
    assert db_session.query(Skill).count() == 3


def test_insert_ignoring_conflicts_rejects_unknown_dialect():
    class _Dialect:
        name = "mysql"

    class _Bind:
        dialect = _Dialect()

    class _DB:
        def get_bind(self):
            return _Bind()

    with pytest.raises(RuntimeError):
        dbmod.insert_ignoring_conflicts(_DB(), Skill, [{"name": "Go"}], ["name"])
