import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base

from jobsearch.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
)


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_tables_exist(bind=None) -> list[str]:
    """Create any missing tables without touching existing data. Returns names created."""
    from jobsearch.models import Skill, Job, JobSkill  # noqa: F401

    target = bind or engine
    try:
        inspector = inspect(target)
        existing_tables = set(inspector.get_table_names())

        # create_all only creates missing tables, never alters or drops existing ones.
        Base.metadata.create_all(bind=target)
        target_tables = set(Base.metadata.tables.keys())
        created_tables = sorted(target_tables - existing_tables)

        if created_tables:
            logger.info("Created missing DB tables: %s", ", ".join(created_tables))
        else:
            logger.info("All DB tables already exist; no schema changes applied.")
        return created_tables
    except Exception as e:
        logger.exception("Ensure tables failed: %s", e)
        raise


def insert_ignoring_conflicts(db, model, rows: list[dict], conflict_columns: list[str]) -> int:
    """
    Multi-row INSERT .. ON CONFLICT (cols) DO NOTHING in one round-trip.
    Existing rows are left untouched. Returns the number of rows actually inserted.
    """
    if not rows:
        return 0
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for conflict-ignoring insert: {dialect}")
    stmt = insert(model).values(rows).on_conflict_do_nothing(index_elements=conflict_columns)
    result = db.execute(stmt)
    return max(result.rowcount or 0, 0)
