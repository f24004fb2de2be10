from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from workforce.database import Base, utcnow
import uuid


class BusinessInterest(Base):
    """
    One business's live bid for a candidate on a milestone.

    priority_score is derived from fit, budget and candidate preference and is
    recomputed for the candidate's whole set of open interests whenever any
    input changes.
    """

    __tablename__ = "business_interests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    business_user_id = Column(String, nullable=False, index=True)
    candidate_id = Column(String, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(String, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True)
    offer_budget = Column(Float, nullable=False, default=0.0)
    candidate_preference = Column(Integer, nullable=True)  # 1-5 stars
    priority_score = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="open")  # open, accepted, declined, withdrawn
    created_at = Column(DateTime, nullable=False, default=utcnow)
