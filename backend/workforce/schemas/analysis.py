"""
Structured AI judge outputs.

These models are the shared shape for both the AI path and the deterministic
fallback path. Score fields are rounded half-up and clamped to [0, 100] when
the model is built, so fractional AI output becomes an integer at the
boundary instead of being truncated later.
"""

import math
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

SCORE_MIN = 0
SCORE_MAX = 100


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (54.5 -> 55)."""
    # Weighted sums like 0.3 * 25 carry float noise around the .5 boundary
    return int(math.floor(round(value, 9) + 0.5))


def clamp_score(value: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, value))


def _clean_list(values) -> List[str]:
    if not values:
        return []
    return [str(v).strip() for v in values if v is not None and str(v).strip()]


class SkillMap(BaseModel):
    """Structured requirement extracted for a milestone."""

    milestone: str = ""
    required_skills: List[str] = Field(default_factory=list)
    experience_level: str = ""
    soft_skills: List[str] = Field(default_factory=list)

    @field_validator("required_skills", "soft_skills", mode="before")
    @classmethod
    def _strip_skills(cls, value):
        return _clean_list(value)


class CVAnalysis(BaseModel):
    name: str = "Candidate"
    email: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: str = ""
    education: str = ""
    soft_skills: List[str] = Field(default_factory=list)
    domain_expertise: List[str] = Field(default_factory=list)

    @field_validator("skills", "soft_skills", "domain_expertise", mode="before")
    @classmethod
    def _strip_lists(cls, value):
        return _clean_list(value)


class FitAnalysis(BaseModel):
    """
    Candidate/milestone fit.

    Attributes:
        score: Composite fit (0-100)
        skill_overlap: Required-skill coverage (0-100)
        experience_match: Experience level alignment (0-100)
        soft_skill_relevance: Soft-skill coverage (0-100)
        reasoning: Explanation surfaced to users
        source: "ai" when produced by the AI judge, "fallback" otherwise
    """

    score: int
    skill_overlap: int
    experience_match: int
    soft_skill_relevance: int
    reasoning: str = ""
    source: str = "ai"

    @field_validator("score", "skill_overlap", "experience_match", "soft_skill_relevance", mode="before")
    @classmethod
    def _round_and_clamp(cls, value):
        if isinstance(value, bool) or value is None:
            raise ValueError("score must be a number")
        return round_half_up(clamp_score(float(value)))

    @property
    def used_ai(self) -> bool:
        return self.source == "ai"


class RiskAnalysis(BaseModel):
    risk_level: Literal["low", "medium", "high"]
    delay_percentage: int = Field(ge=0)
    predicted_issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    backup_required: bool = False

    @field_validator("delay_percentage", mode="before")
    @classmethod
    def _round_delay(cls, value):
        return max(0, round_half_up(float(value)))
