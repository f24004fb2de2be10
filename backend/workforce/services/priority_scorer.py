"""
Priority Scorer - ranks competing business offers for one candidate

Formula:
    priority = round_half_up(0.4 × fit + 0.3 × budget + 0.3 × preference)

    fit         Candidate's fit score for the milestone, clamped to [0, 100]
    budget      min(100, 100 × offer / max_budget); without a max budget a
                positive offer counts as 100 and a zero offer as 0
    preference  Candidate's 1-5 star rating mapped to 0-100, 50 when unrated

Budgets are normalized against the highest offer in the batch, so scores
are only comparable within one batch. Whenever any input for a candidate
changes, the candidate's whole set of open interests is rescored together.

Ties in top_k break by interest created_at ascending (earlier offer wins),
then by id.

Example:
    Fit 80, no preference, offers of $1000 / $2000 / $500 in one batch:
    62 / 77 / 55 -> the $2000 offer ranks first.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from workforce.schemas.analysis import clamp_score, round_half_up

logger = logging.getLogger(__name__)

FIT_WEIGHT = 0.4
BUDGET_WEIGHT = 0.3
PREFERENCE_WEIGHT = 0.3

NEUTRAL_PREFERENCE = 50.0


@dataclass
class PriorityScore:
    """
    Attributes:
        priority_score: Composite priority (0-100)
        breakdown: Rounded weighted contribution of each input
    """
    priority_score: int
    breakdown: Dict[str, int]


@dataclass
class InterestInput:
    """One competing interest, as needed for batch scoring."""
    id: str
    fit_score: float
    offer_budget: float
    candidate_preference: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class ScoredInterest:
    id: str
    priority_score: int
    breakdown: Dict[str, int] = field(default_factory=dict)
    created_at: Optional[datetime] = None


def normalize_budget(offer_budget: float, max_budget: Optional[float]) -> float:
    offer = max(0.0, offer_budget or 0.0)
    if max_budget and max_budget > 0:
        return min(100.0, offer / max_budget * 100)
    return 100.0 if offer > 0 else 0.0


def normalize_preference(candidate_preference: Optional[int]) -> float:
    if candidate_preference is None:
        return NEUTRAL_PREFERENCE
    rating = max(1, min(5, candidate_preference))
    return (rating - 1) / 4 * 100


def calculate_priority_score(
    fit_score: float,
    offer_budget: float,
    candidate_preference: Optional[int] = None,
    max_budget: Optional[float] = None,
) -> PriorityScore:
    """
    Score one interest.

    Example:
        >>> calculate_priority_score(80, 2000, max_budget=2000).priority_score
        77
    """
    fit_contribution = clamp_score(fit_score) * FIT_WEIGHT
    budget_contribution = normalize_budget(offer_budget, max_budget) * BUDGET_WEIGHT
    preference_contribution = normalize_preference(candidate_preference) * PREFERENCE_WEIGHT

    priority = round_half_up(fit_contribution + budget_contribution + preference_contribution)

    return PriorityScore(
        priority_score=int(clamp_score(priority)),
        breakdown={
            "fit_contribution": round_half_up(fit_contribution),
            "budget_contribution": round_half_up(budget_contribution),
            "preference_contribution": round_half_up(preference_contribution),
        },
    )


def score_batch(interests: Sequence[InterestInput]) -> List[ScoredInterest]:
    """Score competing interests against the batch's highest budget."""
    if not interests:
        return []

    max_budget = max((i.offer_budget or 0.0) for i in interests)

    scored = []
    for interest in interests:
        result = calculate_priority_score(
            fit_score=interest.fit_score,
            offer_budget=interest.offer_budget,
            candidate_preference=interest.candidate_preference,
            max_budget=max_budget,
        )
        scored.append(ScoredInterest(
            id=interest.id,
            priority_score=result.priority_score,
            breakdown=result.breakdown,
            created_at=interest.created_at,
        ))
    return scored


def top_k(scored: Sequence, k: int = 3) -> List:
    """
    Highest priority first, ties by created_at ascending then id.

    Accepts anything with priority_score, created_at and id attributes
    (ScoredInterest or BusinessInterest rows). The input is not mutated.
    """
    def sort_key(item):
        created_at = item.created_at or datetime.min
        return (-item.priority_score, created_at, item.id)

    return sorted(scored, key=sort_key)[:max(0, k)]


async def recompute_candidate_priorities(storage, candidate_id: str) -> List[ScoredInterest]:
    """
    Rescore every open interest for a candidate and persist the results.

    An interest whose milestone has no fit score for the candidate yet is
    scored with fit 0.
    """
    interests = await storage.list_interests(candidate_id=candidate_id, status="open")
    if not interests:
        return []

    inputs = []
    for interest in interests:
        fit = await storage.get_fit_score(candidate_id, interest.milestone_id)
        inputs.append(InterestInput(
            id=interest.id,
            fit_score=fit.score if fit else 0,
            offer_budget=interest.offer_budget,
            candidate_preference=interest.candidate_preference,
            created_at=interest.created_at,
        ))

    scored = score_batch(inputs)
    await storage.set_priority_scores({s.id: s.priority_score for s in scored})
    logger.info(f"Recomputed {len(scored)} priority scores for candidate {candidate_id}")
    return scored
