from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON
from workforce.database import Base, utcnow
import uuid


class Candidate(Base):
    """
    Candidate entity.

    is_available turns False once the candidate commits to a confirmed/active
    assignment (or an active backup) and is the double-booking guard.
    """

    __tablename__ = "candidates"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(500), nullable=False)
    skills = Column(JSON, nullable=False, default=list)
    experience = Column(Text, nullable=True)
    education = Column(Text, nullable=True)
    cv_analysis = Column(JSON(none_as_null=True), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
