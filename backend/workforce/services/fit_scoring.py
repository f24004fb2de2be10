"""
Fit-Scoring Engine - AI judgment with deterministic fallback

Every AI-dependent step (fit score, skill map, CV analysis, risk prediction)
runs through score_or_fallback, which owns the AI/fallback contract:

    score_or_fallback(primary, fallback, operation)
    ├── await primary()          -> (result, "ai")
    └── on any exception
        ├── logger.warning(...)
        ├── ai_fallbacks_total{operation} += 1
        └── fallback()           -> (result, "fallback")

AI failures never propagate to callers; results are always tagged with their
source so users and metrics can tell AI judgments from rule-based ones.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple, TypeVar

from prometheus_client import Counter

from workforce.schemas.analysis import CVAnalysis, FitAnalysis, RiskAnalysis, SkillMap
from workforce.services.ai_judge import AIJudge
from workforce.services.fallback_scoring import (
    calculate_fallback_fit_score,
    extract_fallback_skill_map,
    fallback_cv_analysis,
    fallback_risk_analysis,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"

AI_FALLBACKS = Counter(
    "ai_fallbacks_total",
    "AI judge failures recovered by the rule-based fallback",
    ["operation"],
)

FIT_SCORES_CALCULATED = Counter(
    "fit_scores_calculated_total",
    "Fit scores calculated",
    ["source"],
)


async def score_or_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Any],
    operation: str,
) -> Tuple[T, str]:
    """
    Run the AI path, falling back to the deterministic path on any failure.

    Args:
        primary: Zero-argument coroutine factory calling the AI judge
        fallback: Zero-argument callable (sync or async) computing the fallback
        operation: Label for logs and the ai_fallbacks_total metric

    Returns:
        Tuple of (result, source) where source is "ai" or "fallback"
    """
    try:
        return await primary(), SOURCE_AI
    except Exception as e:
        logger.warning(f"AI {operation} failed, using rule-based fallback: {e}")
        AI_FALLBACKS.labels(operation=operation).inc()

    result = fallback()
    if inspect.isawaitable(result):
        result = await result
    return result, SOURCE_FALLBACK


class FitScoringEngine:
    """
    Facade over the AI judge and the rule-based scorer.

    Each method returns a result in the same shape regardless of which path
    produced it, plus the source where the shape has no tag of its own.
    """

    def __init__(self, judge: Optional[AIJudge] = None):
        self.judge = judge

    async def score_fit(
        self,
        candidate_skills: Iterable[str],
        candidate_experience: Optional[str],
        skill_map: SkillMap,
    ) -> FitAnalysis:
        """
        Score one candidate against one milestone skill map.

        Returns:
            FitAnalysis with integer sub-scores in [0, 100] and source "ai" or
            "fallback"
        """
        skills = [s for s in (candidate_skills or []) if s]
        experience = candidate_experience or ""

        async def primary() -> FitAnalysis:
            if self.judge is None:
                raise RuntimeError("AI judge not configured")
            return await self.judge.calculate_fit_score(skills, experience, skill_map)

        analysis, source = await score_or_fallback(
            primary,
            lambda: calculate_fallback_fit_score(skills, experience, skill_map),
            "fit_score",
        )
        if analysis.source != source:
            analysis = analysis.model_copy(update={"source": source})

        FIT_SCORES_CALCULATED.labels(source=source).inc()
        return analysis

    async def generate_skill_map(self, name: str, description: str = "") -> Tuple[SkillMap, str]:
        async def primary() -> SkillMap:
            if self.judge is None:
                raise RuntimeError("AI judge not configured")
            return await self.judge.generate_skill_map(name, description)

        return await score_or_fallback(
            primary,
            lambda: extract_fallback_skill_map(name, description),
            "skill_map",
        )

    async def analyze_cv(self, cv_text: str) -> Tuple[CVAnalysis, str]:
        async def primary() -> CVAnalysis:
            if self.judge is None:
                raise RuntimeError("AI judge not configured")
            return await self.judge.analyze_cv_text(cv_text)

        return await score_or_fallback(
            primary,
            lambda: fallback_cv_analysis(cv_text),
            "cv_analysis",
        )

    async def predict_risk(
        self,
        name: str,
        description: str,
        delay_percentage: int,
        estimated_hours: int,
    ) -> Tuple[RiskAnalysis, str]:
        async def primary() -> RiskAnalysis:
            if self.judge is None:
                raise RuntimeError("AI judge not configured")
            return await self.judge.predict_risk(name, description, delay_percentage, estimated_hours)

        return await score_or_fallback(
            primary,
            lambda: fallback_risk_analysis(delay_percentage),
            "risk_prediction",
        )


_engine_instance: Optional[FitScoringEngine] = None


def get_scoring_engine() -> FitScoringEngine:
    global _engine_instance

    if _engine_instance is None:
        from workforce.services.ai_judge import get_ai_judge

        _engine_instance = FitScoringEngine(judge=get_ai_judge())

    return _engine_instance
