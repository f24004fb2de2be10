"""
FitScore Model - candidate/milestone match quality.

Exactly one row per (candidate_id, milestone_id); writers upsert through
Storage.upsert_fit_score so re-syncs and re-scores never duplicate rows.
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from workforce.database import Base, utcnow
import uuid


class FitScore(Base):
    """
    Attributes:
        score: Composite fit (0-100)
        skill_overlap / experience_match / soft_skill_relevance: Sub-scores (0-100)
        reasoning: Human-readable explanation
        source: "ai" or "fallback"
        status: pending, accepted, rejected
    """

    __tablename__ = "fit_scores"
    __table_args__ = (
        UniqueConstraint("candidate_id", "milestone_id", name="uq_fit_scores_candidate_milestone"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(String, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    skill_overlap = Column(Integer, nullable=False, default=0)
    experience_match = Column(Integer, nullable=False, default=0)
    soft_skill_relevance = Column(Integer, nullable=False, default=0)
    reasoning = Column(Text, nullable=True)
    source = Column(String(20), nullable=False, default="ai")
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
