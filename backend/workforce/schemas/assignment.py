from pydantic import BaseModel
from typing import List, Optional

from workforce.schemas.milestone import MilestoneResponse


class CandidateAction(BaseModel):
    candidate_id: str


class RejectRequest(CandidateAction):
    reason: Optional[str] = None


class ValidationResponse(BaseModel):
    valid: bool
    error: Optional[str] = None
    active_assignments: List[MilestoneResponse] = []
