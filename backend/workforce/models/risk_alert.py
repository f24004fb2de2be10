from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, ForeignKey
from workforce.database import Base, utcnow
import uuid


class RiskAlert(Base):
    """Snapshot of a milestone risk assessment."""

    __tablename__ = "risk_alerts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    milestone_id = Column(String, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True)
    risk_level = Column(String(10), nullable=False)
    delay_percentage = Column(Integer, nullable=False, default=0)
    ai_analysis = Column(JSON(none_as_null=True), nullable=True)
    backup_activated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
