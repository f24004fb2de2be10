from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Dict, List, Literal, Optional

InterestStatusValue = Literal["open", "accepted", "declined", "withdrawn"]


class InterestCreate(BaseModel):
    business_user_id: str
    candidate_id: str
    milestone_id: str
    offer_budget: float = Field(ge=0)
    candidate_preference: Optional[int] = Field(default=None, ge=1, le=5)


class InterestUpdate(BaseModel):
    offer_budget: Optional[float] = Field(default=None, ge=0)
    candidate_preference: Optional[int] = Field(default=None, ge=1, le=5)
    status: Optional[InterestStatusValue] = None

    @field_validator("offer_budget", "status")
    @classmethod
    def _not_null(cls, value, info):
        # Omitted fields keep their stored value; an explicit null is rejected
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class InterestResponse(BaseModel):
    id: str
    business_user_id: str
    candidate_id: str
    milestone_id: str
    offer_budget: float
    candidate_preference: Optional[int] = None
    priority_score: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class PriorityInput(BaseModel):
    id: str
    fit_score: int = Field(ge=0, le=100)
    offer_budget: float = Field(ge=0)
    candidate_preference: Optional[int] = Field(default=None, ge=1, le=5)
    created_at: Optional[datetime] = None


class PriorityRequest(BaseModel):
    interests: List[PriorityInput]
    top: int = Field(default=3, ge=1)


class PriorityResult(BaseModel):
    id: str
    priority_score: int
    breakdown: Dict[str, int]


class PriorityResponse(BaseModel):
    scores: List[PriorityResult]
    top: List[PriorityResult]
