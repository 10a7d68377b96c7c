from jobsearch.models.skill import Skill
from jobsearch.models.job import Industry, Job, JobSkill

__all__ = [
    "Skill",
    "Industry",
    "Job",
    "JobSkill",
]
