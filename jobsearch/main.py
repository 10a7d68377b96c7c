import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from jobsearch.config import settings
from jobsearch.core.errors import IndexWriteError
from jobsearch.database import engine, ensure_tables_exist
from jobsearch.dependencies import get_index
from jobsearch.logging_config import setup_logging
from jobsearch.routers import jobs
from jobsearch.services.search_index import JobSearchIndex

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="JobSearch API",
    description="Job catalog with write-through search indexing.",
    version="1.0.0",
)

cors_origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(jobs.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    logger.exception("Unhandled server error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health/live")
def health_live():
    return {"status": "ok"}


@app.get("/health/ready")
def health_ready(index: JobSearchIndex = Depends(get_index)):
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Readiness check failed: database")
        return JSONResponse(status_code=503, content={"status": "not_ready", "component": "database"})
    if not index.ping():
        logger.warning("Readiness check failed: search index unreachable")
        return JSONResponse(status_code=503, content={"status": "not_ready", "component": "search"})
    return {"status": "ready"}


@app.on_event("startup")
def on_startup():
    logger.info("Starting JobSearch API")
    ensure_tables_exist()
    try:
        get_index().ensure_index()
    except IndexWriteError as e:
        # search degrades to empty results until the index is reachable
        logger.error("Search index not ready at startup: %s", e)
