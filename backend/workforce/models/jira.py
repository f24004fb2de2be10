"""
Jira Models - connection settings and sync audit log.

JiraSettings.jira_api_token is always stored encrypted
(workforce.services.encryption). JiraSyncLog rows are created when a sync
starts and finalized once; they are never mutated after completed_at is set.
"""

from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, JSON
from workforce.database import Base, utcnow
import uuid


class JiraSettings(Base):
    __tablename__ = "jira_settings"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    business_user_id = Column(String, nullable=False, unique=True)
    jira_domain = Column(String(500), nullable=True)  # e.g. "company.atlassian.net"
    jira_email = Column(String(320), nullable=True)
    jira_api_token = Column(Text, nullable=True)
    is_configured = Column(Boolean, nullable=False, default=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class JiraSyncLog(Base):
    """
    Attributes:
        sync_type: import_projects, sync_project, sync_milestone
        status: success, failed, partial
        error_details: JSON {type, status_code, stack}
        can_retry: Derived from the error category
    """

    __tablename__ = "jira_sync_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    business_user_id = Column(String, nullable=False, index=True)
    sync_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="success")
    project_id = Column(String, nullable=True, index=True)
    jira_project_key = Column(String(50), nullable=True)
    milestones_created = Column(Integer, nullable=False, default=0)
    milestones_updated = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    error_details = Column(JSON(none_as_null=True), nullable=True)
    can_retry = Column(Boolean, nullable=False, default=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
