class JobSearchError(Exception):
    """Base class for ingestion, store and index failures."""


class RowParseError(JobSearchError):
    """A single input row could not be normalized."""

    def __init__(self, line_no: int, reason: str):
        super().__init__(f"line {line_no}: {reason}")
        self.line_no = line_no
        self.reason = reason


class StoreWriteError(JobSearchError):
    """A relational batch round-trip failed; later phases of the run were not attempted."""

    def __init__(self, phase: str, phases_completed: int, message: str = ""):
        super().__init__(message or f"store write failed in phase {phase!r}")
        self.phase = phase
        self.phases_completed = phases_completed


class IndexWriteError(JobSearchError):
    """Bulk or single-document index write failed. Relational changes are kept."""


class IngestionError(JobSearchError):
    def __init__(self, message: str, phase: str | None = None, phases_completed: int = 0):
        super().__init__(message)
        self.phase = phase
        self.phases_completed = phases_completed
