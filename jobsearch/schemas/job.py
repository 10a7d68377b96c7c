from typing import Literal

from pydantic import BaseModel, Field, field_validator

from jobsearch.models.job import Industry


class JobSearchRequest(BaseModel):
    query: str | None = None
    industry: Industry | None = None
    sort_by_salary: Literal["asc", "desc"] | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, gt=0)


class JobSkillOut(BaseModel):
    skill_id: int
    name: str


class JobDocument(BaseModel):
    """A job as stored in the search index."""

    id: int
    title: str
    company: str
    location: str | None = None
    experience_level: str | None = None
    salary: int = 0
    industry: str | None = None
    skills: list[JobSkillOut] = []


class JobPage(BaseModel):
    data: list[JobDocument]
    total: int  # engine-reported match count across all pages
    page: int
    limit: int


def _strip_key(v: str) -> str:
    # title and company form the job's business key; ingestion stores them stripped
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class JobCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    company: str = Field(min_length=1, max_length=500)
    location: str | None = Field(default=None, max_length=500)
    experience_level: str | None = Field(default=None, max_length=100)
    salary: int = Field(default=0, ge=0)
    industry: Industry
    skill_ids: list[int] = []

    @field_validator("title", "company")
    @classmethod
    def strip_business_key(cls, v: str) -> str:
        return _strip_key(v)


class JobUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    company: str | None = Field(default=None, min_length=1, max_length=500)
    location: str | None = Field(default=None, max_length=500)
    experience_level: str | None = Field(default=None, max_length=100)
    salary: int | None = Field(default=None, ge=0)
    industry: Industry | None = None
    skill_ids: list[int] | None = None  # replaces the job's whole skill set

    @field_validator("title", "company")
    @classmethod
    def strip_business_key(cls, v: str | None) -> str | None:
        return None if v is None else _strip_key(v)
