"""
Milestone Model - a unit of project work requiring skills.

Assignment Flow (primary):
    unassigned → offered → confirmed → active → completed
    offered → unassigned (reject), confirmed/active → unassigned (release)

Assignment Flow (backup):
    none → standby → offered → active, standby → active (risk activation)

A candidate may hold at most one committed (confirmed/active) primary
assignment system-wide; the partial unique index below enforces it.
"""

import enum
import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, ForeignKey, Index, text
from workforce.database import Base, utcnow


class MilestoneStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class AssignmentStatus(str, enum.Enum):
    UNASSIGNED = "unassigned"
    OFFERED = "offered"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"


class BackupStatus(str, enum.Enum):
    NONE = "none"
    STANDBY = "standby"
    OFFERED = "offered"
    ACTIVE = "active"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


COMMITTED_STATUSES = (AssignmentStatus.CONFIRMED.value, AssignmentStatus.ACTIVE.value)

_COMMITTED_PREDICATE = text("assignment_status IN ('confirmed', 'active')")


class Milestone(Base):
    """
    Milestone entity with skill requirements and assignment tracks.

    Attributes:
        skill_map: JSON {milestone, required_skills, experience_level, soft_skills}
        assigned_candidate_id / assignment_status: primary track
        backup_candidate_id / backup_assignment_status: backup track
        delay_percentage: Time overrun against the estimate (>= 0)
        risk_level: low, medium, high or None when never assessed
        jira_*: Source issue coordinates for idempotent re-sync
    """

    __tablename__ = "milestones"
    __table_args__ = (
        Index(
            "uq_milestones_committed_candidate",
            "assigned_candidate_id",
            unique=True,
            sqlite_where=_COMMITTED_PREDICATE,
            postgresql_where=_COMMITTED_PREDICATE,
        ),
        Index("ix_milestones_project_jira_key", "project_id", "jira_issue_key"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default=MilestoneStatus.PENDING.value)
    estimated_hours = Column(Integer, nullable=True)
    skill_map = Column(JSON(none_as_null=True), nullable=True)

    assigned_candidate_id = Column(String, nullable=True, index=True)
    assignment_status = Column(String(20), nullable=False, default=AssignmentStatus.UNASSIGNED.value)
    assignment_confirmed_at = Column(DateTime, nullable=True)
    backup_candidate_id = Column(String, nullable=True, index=True)
    backup_assignment_status = Column(String(20), nullable=False, default=BackupStatus.NONE.value)

    delay_percentage = Column(Integer, nullable=False, default=0)
    risk_level = Column(String(10), nullable=True)

    jira_issue_key = Column(String(50), nullable=True)
    jira_epic_key = Column(String(50), nullable=True)
    jira_sprint_id = Column(String(50), nullable=True)
    jira_sprint_name = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
