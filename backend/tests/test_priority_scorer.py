"""
Tests for the Priority Scorer

Tests cover:
- Budget and preference normalization
- Three-offer batch (62 / 77 / 55)
- Monotonicity in fit, budget and preference
- Top-k ordering with created_at / id tie-breaks
- Persisted recomputation for a candidate's open interests
"""

from datetime import datetime, timedelta

import pytest

from workforce.schemas.analysis import FitAnalysis
from workforce.services.priority_scorer import (
    InterestInput,
    ScoredInterest,
    calculate_priority_score,
    normalize_budget,
    normalize_preference,
    recompute_candidate_priorities,
    score_batch,
    top_k,
)


class TestNormalization:
    """Test input normalization."""

    def test_budget_relative_to_batch_max(self):
        assert normalize_budget(1000, 2000) == 50.0
        assert normalize_budget(2000, 2000) == 100.0

    def test_budget_capped_at_100(self):
        assert normalize_budget(3000, 2000) == 100.0

    def test_budget_without_max(self):
        assert normalize_budget(500, None) == 100.0
        assert normalize_budget(0, None) == 0.0

    def test_preference_neutral_when_unrated(self):
        assert normalize_preference(None) == 50.0

    @pytest.mark.parametrize("stars,expected", [(1, 0.0), (3, 50.0), (5, 100.0)])
    def test_preference_stars(self, stars, expected):
        assert normalize_preference(stars) == expected


class TestCalculatePriorityScore:
    """Test single-interest scoring."""

    def test_breakdown_contributions(self):
        result = calculate_priority_score(80, 2000, max_budget=2000)

        assert result.priority_score == 77
        assert result.breakdown == {
            "fit_contribution": 32,
            "budget_contribution": 30,
            "preference_contribution": 15,
        }

    def test_result_is_bounded_integer(self):
        result = calculate_priority_score(150, 10_000, candidate_preference=5, max_budget=100)
        assert result.priority_score == 100
        assert isinstance(result.priority_score, int)

    def test_monotonic_in_fit(self):
        low = calculate_priority_score(40, 1000, max_budget=2000).priority_score
        high = calculate_priority_score(90, 1000, max_budget=2000).priority_score
        assert high >= low

    def test_monotonic_in_budget(self):
        low = calculate_priority_score(80, 500, max_budget=2000).priority_score
        high = calculate_priority_score(80, 1500, max_budget=2000).priority_score
        assert high >= low

    def test_monotonic_in_preference(self):
        low = calculate_priority_score(80, 1000, candidate_preference=2, max_budget=2000).priority_score
        high = calculate_priority_score(80, 1000, candidate_preference=4, max_budget=2000).priority_score
        assert high >= low


class TestScoreBatch:
    """Test batch-consistent scoring."""

    def test_three_offers(self):
        """Budgets $1000/$2000/$500 with fit 80 and no ratings."""
        interests = [
            InterestInput(id="a", fit_score=80, offer_budget=1000),
            InterestInput(id="b", fit_score=80, offer_budget=2000),
            InterestInput(id="c", fit_score=80, offer_budget=500),
        ]

        scored = score_batch(interests)

        assert [s.priority_score for s in scored] == [62, 77, 55]
        assert top_k(scored, 1)[0].id == "b"

    def test_empty_batch(self):
        assert score_batch([]) == []

    def test_all_zero_budgets(self):
        scored = score_batch([InterestInput(id="a", fit_score=50, offer_budget=0)])
        # 20 + 0 + 15
        assert scored[0].priority_score == 35


class TestTopK:
    """Test ranking and tie-breaks."""

    def test_highest_first(self):
        scored = [
            ScoredInterest(id="a", priority_score=60),
            ScoredInterest(id="b", priority_score=90),
            ScoredInterest(id="c", priority_score=75),
        ]
        assert [s.id for s in top_k(scored, 2)] == ["b", "c"]

    def test_ties_break_by_created_at_then_id(self):
        t0 = datetime(2024, 1, 1)
        scored = [
            ScoredInterest(id="late", priority_score=70, created_at=t0 + timedelta(hours=1)),
            ScoredInterest(id="z-early", priority_score=70, created_at=t0),
            ScoredInterest(id="a-early", priority_score=70, created_at=t0),
        ]
        assert [s.id for s in top_k(scored, 3)] == ["a-early", "z-early", "late"]

    def test_input_not_mutated(self):
        scored = [ScoredInterest(id="a", priority_score=1), ScoredInterest(id="b", priority_score=2)]
        top_k(scored, 1)
        assert [s.id for s in scored] == ["a", "b"]

    def test_k_larger_than_input(self):
        assert len(top_k([ScoredInterest(id="a", priority_score=1)], 5)) == 1


class TestRecomputeCandidatePriorities:
    """Test persisted batch rescoring."""

    @pytest.mark.asyncio
    async def test_three_businesses_persisted(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()
        await storage.upsert_fit_score(
            candidate.id,
            milestone.id,
            FitAnalysis(score=80, skill_overlap=80, experience_match=80, soft_skill_relevance=80),
        )
        for business, budget in (("biz-a", 1000), ("biz-b", 2000), ("biz-c", 500)):
            await storage.create_interest(
                business_user_id=business,
                candidate_id=candidate.id,
                milestone_id=milestone.id,
                offer_budget=budget,
            )

        await recompute_candidate_priorities(storage, candidate.id)

        interests = await storage.list_interests(candidate_id=candidate.id)
        by_business = {i.business_user_id: i.priority_score for i in interests}
        assert by_business == {"biz-a": 62, "biz-b": 77, "biz-c": 55}
        assert top_k(interests, 1)[0].business_user_id == "biz-b"

    @pytest.mark.asyncio
    async def test_missing_fit_score_counts_as_zero(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()
        interest = await storage.create_interest(
            business_user_id="biz-a",
            candidate_id=candidate.id,
            milestone_id=milestone.id,
            offer_budget=1000,
        )

        scored = await recompute_candidate_priorities(storage, candidate.id)

        # 0 + 30 + 15
        assert scored[0].priority_score == 45
        assert (await storage.get_interest(interest.id)).priority_score == 45

    @pytest.mark.asyncio
    async def test_closed_interests_ignored(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()
        await storage.create_interest(
            business_user_id="biz-a",
            candidate_id=candidate.id,
            milestone_id=milestone.id,
            offer_budget=5000,
            status="withdrawn",
        )

        assert await recompute_candidate_priorities(storage, candidate.id) == []
