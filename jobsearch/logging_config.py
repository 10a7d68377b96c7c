import logging
import sys

from jobsearch.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# access lines, HTTP transport chatter and SQL echo bury ingest progress
NOISY_LOGGERS = ("uvicorn.access", "elastic_transport", "sqlalchemy.engine")


def resolve_level(level: int | str | None) -> int:
    """Map a level name or number to a logging level; None reads LOG_LEVEL from settings."""
    if level is None:
        level = settings.log_level
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str | None = None, stream=None) -> None:
    """
    Route all records through one handler on the root logger.

    Used by the API process and the seeding CLI. Calling it again replaces the
    handler rather than stacking a second one. Third-party loggers in
    NOISY_LOGGERS never go below WARNING.
    """
    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers.clear()
    root.addHandler(handler)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
