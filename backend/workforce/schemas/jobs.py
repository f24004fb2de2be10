from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class JobCreate(BaseModel):
    job_type: str
    user_id: str
    user_email: Optional[str] = None
    payload: Dict[str, Any] = {}


class JobCreatedResponse(BaseModel):
    job_id: str


class JobStatusResponse(BaseModel):
    id: str
    job_type: str
    status: str
    progress: int
    attempts: int
    max_attempts: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
