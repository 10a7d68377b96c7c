from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jobsearch.database import Base


class Skill(Base):
    """Distinct skill name. Created on first sight during ingestion, never deleted here."""

    __tablename__ = "skills"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False, index=True)  # case-sensitive
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    jobs = relationship("JobSkill", back_populates="skill")
