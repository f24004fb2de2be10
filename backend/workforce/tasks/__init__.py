"""
Background Job Handlers

Handlers executed by the job worker:
- jobs.py: CV processing, fit score calculation, skill map generation
"""

from workforce.tasks.jobs import (
    JOB_HANDLERS,
    JobContext,
    calculate_all_fit_scores,
    process_cv_job,
    process_fit_score_job,
    process_skill_map_job,
)

__all__ = [
    "JOB_HANDLERS",
    "JobContext",
    "calculate_all_fit_scores",
    "process_cv_job",
    "process_fit_score_job",
    "process_skill_map_job",
]
