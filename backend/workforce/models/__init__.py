from workforce.models.project import Project
from workforce.models.milestone import (
    Milestone,
    MilestoneStatus,
    AssignmentStatus,
    BackupStatus,
    RiskLevel,
    COMMITTED_STATUSES,
)
from workforce.models.candidate import Candidate
from workforce.models.fit_score import FitScore
from workforce.models.business_interest import BusinessInterest
from workforce.models.risk_alert import RiskAlert
from workforce.models.background_job import BackgroundJob, JobType, JobStatus
from workforce.models.jira import JiraSettings, JiraSyncLog

__all__ = [
    "Project",
    "Milestone",
    "MilestoneStatus",
    "AssignmentStatus",
    "BackupStatus",
    "RiskLevel",
    "COMMITTED_STATUSES",
    "Candidate",
    "FitScore",
    "BusinessInterest",
    "RiskAlert",
    "BackgroundJob",
    "JobType",
    "JobStatus",
    "JiraSettings",
    "JiraSyncLog",
]
