"""
Project Model - a business's body of work, optionally linked to a Jira project.

Deleting a project removes its milestones together with their fit scores,
risk alerts and business interests (see Storage.delete_project).
"""

from sqlalchemy import Column, String, Text, DateTime
from workforce.database import Base, utcnow
import uuid


class Project(Base):
    """
    Project entity owning milestones.

    Attributes:
        business_user_id: Owner (business account)
        status: active, completed or on-hold
        jira_project_key: Linked Jira project (nullable)
        last_jira_sync_*: Outcome of the most recent Jira sync
    """

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    business_user_id = Column(String, nullable=False, index=True)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="active")
    jira_project_key = Column(String(50), nullable=True)
    last_jira_sync_at = Column(DateTime, nullable=True)
    last_jira_sync_status = Column(String(20), nullable=True)  # success, failed, partial
    last_jira_sync_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
