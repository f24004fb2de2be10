from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional


class MilestoneResponse(BaseModel):
    id: str
    project_id: str
    name: str
    description: str
    status: str
    estimated_hours: Optional[int] = None
    skill_map: Optional[Dict[str, Any]] = None
    assigned_candidate_id: Optional[str] = None
    assignment_status: str
    assignment_confirmed_at: Optional[datetime] = None
    backup_candidate_id: Optional[str] = None
    backup_assignment_status: str
    delay_percentage: int
    risk_level: Optional[str] = None
    jira_issue_key: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CandidateMatch(BaseModel):
    candidate_id: str
    name: str
    email: str
    score: int
    reasoning: Optional[str] = None
    source: str


class TopCandidatesResponse(BaseModel):
    milestone_id: str
    candidates: List[CandidateMatch]


class RiskAssessRequest(BaseModel):
    delay_percentage: Optional[int] = None


class RiskAlertResponse(BaseModel):
    id: str
    milestone_id: str
    risk_level: str
    delay_percentage: int
    ai_analysis: Optional[Dict[str, Any]] = None
    backup_activated: bool
    created_at: datetime

    class Config:
        from_attributes = True
