"""
BackgroundJob Model - deferred work drained by the job worker.

Status Flow:
    pending → processing → completed
    pending → processing → pending (retry while attempts < max_attempts)
    pending → processing → failed (attempts == max_attempts)
"""

import enum
import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON
from workforce.database import Base, utcnow


class JobType(str, enum.Enum):
    CV_PROCESSING = "cv_processing"
    FIT_SCORE_CALCULATION = "fit_score_calculation"
    SKILL_MAP_GENERATION = "skill_map_generation"


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BackgroundJob(Base):
    __tablename__ = "background_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    job_type = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    user_id = Column(String, nullable=False)
    user_email = Column(String(320), nullable=True)
    payload = Column(JSON(none_as_null=True), nullable=True)
    result = Column(JSON(none_as_null=True), nullable=True)
    error = Column(Text, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<BackgroundJob(id={self.id}, job_type={self.job_type}, status={self.status})>"
