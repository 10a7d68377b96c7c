"""
CSV reader for the job dataset.

Rows are read with pandas either in one shot or in bounded chunks and yielded as
normalized `JobRow` records. `CsvRowSource` re-opens the file on every iteration,
so the same source can be walked more than once.
"""
import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from jobsearch.core.errors import IngestionError, RowParseError
from jobsearch.models.job import Industry

logger = logging.getLogger(__name__)

BAD_ROW_POLICIES = ("skip", "abort")

# Dataset header -> row field
COLUMN_ALIASES = {
    "job title": "title",
    "title": "title",
    "company": "company",
    "location": "location",
    "experience level": "experience_level",
    "experience_level": "experience_level",
    "salary": "salary",
    "industry": "industry",
    "required skills": "required_skills",
    "required_skills": "required_skills",
}
REQUIRED_FIELDS = (
    "title",
    "company",
    "location",
    "experience_level",
    "salary",
    "industry",
    "required_skills",
)


@dataclass
class JobRow:
    title: str
    company: str
    location: str
    experience_level: str
    salary: int
    industry: Industry
    required_skills: str
    line_no: int = 0


def coerce_salary(raw) -> int:
    """Parse salary text to an int. Anything non-numeric (or inf/nan) becomes 0."""
    if raw is None:
        return 0
    text = str(raw).strip()
    if not text:
        return 0
    try:
        value = float(text)
    except ValueError:
        return 0
    if not math.isfinite(value):
        return 0
    return int(value)


def _clean(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return str(value).strip()


def parse_row(raw: dict, line_no: int = 0) -> JobRow:
    """Normalize one raw row keyed by row field names. Raises RowParseError."""
    values: dict[str, str] = {}
    for field in REQUIRED_FIELDS:
        value = _clean(raw.get(field))
        if value is None:
            raise RowParseError(line_no, f"missing column {field!r}")
        values[field] = value
    if not values["title"] or not values["company"]:
        raise RowParseError(line_no, "title and company are required")
    try:
        industry = Industry(values["industry"])
    except ValueError:
        raise RowParseError(line_no, f"unknown industry {values['industry']!r}") from None
    return JobRow(
        title=values["title"],
        company=values["company"],
        location=values["location"],
        experience_level=values["experience_level"],
        salary=coerce_salary(values["salary"]),
        industry=industry,
        required_skills=values["required_skills"],
        line_no=line_no,
    )


def _rename_columns(df: pd.DataFrame, path: Path) -> pd.DataFrame:
    mapping = {}
    for col in df.columns:
        key = " ".join(str(col).strip().lower().split())
        if key in COLUMN_ALIASES:
            mapping[col] = COLUMN_ALIASES[key]
    missing = [f for f in REQUIRED_FIELDS if f not in mapping.values()]
    if missing:
        raise IngestionError(f"{path}: missing required columns {missing}", phase="read")
    return df.rename(columns=mapping)


class CsvRowSource:
    """Re-iterable source of JobRow records from a CSV file.

    chunk_rows=None loads the whole file into memory; a positive value streams
    it `chunk_rows` rows at a time. Malformed rows, including rows with extra
    fields, are skipped and logged (policy "skip") or re-raised (policy "abort").
    A file pandas cannot tokenize at all raises IngestionError.
    """

    def __init__(self, path: str | Path, chunk_rows: int | None = 1000, bad_row_policy: str = "skip"):
        if bad_row_policy not in BAD_ROW_POLICIES:
            raise ValueError(f"bad_row_policy must be one of {BAD_ROW_POLICIES}")
        if chunk_rows is not None and chunk_rows <= 0:
            raise ValueError("chunk_rows must be positive")
        self.path = Path(path)
        self.chunk_rows = chunk_rows
        self.bad_row_policy = bad_row_policy
        self.rows_read = 0
        self.skipped_rows = 0

    def _on_bad_line(self, fields: list[str]) -> None:
        # pandas calls this for rows with more fields than the header
        reason = f"row has {len(fields)} fields, more than the header"
        if self.bad_row_policy == "abort":
            raise RowParseError(0, reason)
        self.rows_read += 1
        self.skipped_rows += 1
        logger.warning("Skipping malformed row in %s: %s (starts with %r)", self.path.name, reason, fields[:1])
        return None

    def _frames(self) -> Iterator[pd.DataFrame]:
        if not self.path.exists():
            raise IngestionError(f"source file not found: {self.path}", phase="read")
        # on_bad_lines as a callable needs the python engine
        opts = dict(
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=self._on_bad_line,
        )
        try:
            if self.chunk_rows is None:
                yield pd.read_csv(self.path, **opts)
            else:
                with pd.read_csv(self.path, chunksize=self.chunk_rows, **opts) as reader:
                    yield from reader
        except pd.errors.EmptyDataError as e:
            raise IngestionError(f"{self.path}: file is empty", phase="read") from e
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise IngestionError(f"{self.path}: could not parse CSV: {e}", phase="read") from e

    def __iter__(self) -> Iterator[JobRow]:
        self.rows_read = 0
        self.skipped_rows = 0
        # header is line 1
        line_no = 1
        for frame in self._frames():
            frame = _rename_columns(frame, self.path)
            for raw in frame.to_dict("records"):
                line_no += 1
                self.rows_read += 1
                try:
                    yield parse_row(raw, line_no)
                except RowParseError as e:
                    if self.bad_row_policy == "abort":
                        raise
                    self.skipped_rows += 1
                    logger.warning("Skipping malformed row in %s: %s", self.path.name, e)
        if self.skipped_rows:
            logger.info("Read %d rows from %s, skipped %d", self.rows_read, self.path.name, self.skipped_rows)
