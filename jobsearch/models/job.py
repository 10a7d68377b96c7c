import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jobsearch.database import Base


class Industry(str, enum.Enum):
    SOFTWARE = "Software"
    MANUFACTURING = "Manufacturing"
    MARKETING = "Marketing"
    EDUCATION = "Education"
    RETAIL = "Retail"
    HEALTHCARE = "Healthcare"
    FINANCE = "Finance"


def job_key(title: str, company: str) -> tuple[str, str]:
    """Business key used to recognize the same job across repeated input rows."""
    return (title, company)


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (UniqueConstraint("title", "company", name="uq_jobs_title_company"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    location = Column(String)
    experience_level = Column(String)
    salary = Column(Integer, nullable=False, default=0)
    industry = Column(
        Enum(Industry, name="industry", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    skills = relationship(
        "JobSkill",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class JobSkill(Base):
    """Job <-> Skill edge. No payload; identity is the (job_id, skill_id) pair."""

    __tablename__ = "job_skills"

    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True)

    job = relationship("Job", back_populates="skills")
    skill = relationship("Skill", back_populates="jobs")
