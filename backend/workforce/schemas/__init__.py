from workforce.schemas.analysis import SkillMap, CVAnalysis, FitAnalysis, RiskAnalysis
from workforce.schemas.milestone import MilestoneResponse, TopCandidatesResponse, RiskAlertResponse
from workforce.schemas.assignment import CandidateAction, RejectRequest, ValidationResponse
from workforce.schemas.interest import InterestCreate, InterestUpdate, InterestResponse, PriorityRequest, PriorityResponse
from workforce.schemas.jobs import JobCreate, JobCreatedResponse, JobStatusResponse
from workforce.schemas.scoring import FitScoreRequest, SkillMapRequest, SkillMapResponse
from workforce.schemas.jira import JiraSettingsUpdate, JiraSettingsResponse, SyncResponse, SyncLogResponse

__all__ = [
    "SkillMap",
    "CVAnalysis",
    "FitAnalysis",
    "RiskAnalysis",
    "MilestoneResponse",
    "TopCandidatesResponse",
    "RiskAlertResponse",
    "CandidateAction",
    "RejectRequest",
    "ValidationResponse",
    "InterestCreate",
    "InterestUpdate",
    "InterestResponse",
    "PriorityRequest",
    "PriorityResponse",
    "JobCreate",
    "JobCreatedResponse",
    "JobStatusResponse",
    "FitScoreRequest",
    "SkillMapRequest",
    "SkillMapResponse",
    "JiraSettingsUpdate",
    "JiraSettingsResponse",
    "SyncResponse",
    "SyncLogResponse",
]
