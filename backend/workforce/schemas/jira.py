from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class JiraSettingsUpdate(BaseModel):
    jira_domain: str
    jira_email: str
    jira_api_token: str


class JiraSettingsResponse(BaseModel):
    business_user_id: str
    jira_domain: Optional[str] = None
    jira_email: Optional[str] = None
    is_configured: bool
    last_synced_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SyncResponse(BaseModel):
    success: bool
    status: str
    log_id: str
    can_retry: bool
    created: int
    updated: int
    failed: int
    error: Optional[str] = None
    message: Optional[str] = None


class SyncLogResponse(BaseModel):
    id: str
    sync_type: str
    status: str
    project_id: Optional[str] = None
    jira_project_key: Optional[str] = None
    milestones_created: int
    milestones_updated: int
    error: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    can_retry: bool
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
