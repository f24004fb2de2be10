"""
Tests for the Storage facade

Tests cover:
- Fit score upsert keeps one row per (candidate, milestone)
- A concurrent duplicate insert is retried as an update
- Latest risk alert lookup
"""

import asyncio

import pytest
from unittest.mock import patch

from workforce.schemas.analysis import FitAnalysis
from workforce.storage import Storage


def analysis(score: int) -> FitAnalysis:
    return FitAnalysis(score=score, skill_overlap=score, experience_match=score, soft_skill_relevance=score)


class TestUpsertFitScore:
    """Test the one-row-per-pair upsert."""

    @pytest.mark.asyncio
    async def test_update_in_place(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()

        first = await storage.upsert_fit_score(candidate.id, milestone.id, analysis(60))
        second = await storage.upsert_fit_score(candidate.id, milestone.id, analysis(75))

        assert second.id == first.id
        assert (await storage.get_fit_score(candidate.id, milestone.id)).score == 75

    @pytest.mark.asyncio
    async def test_concurrent_upserts_leave_one_row(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()

        results = await asyncio.gather(
            *(storage.upsert_fit_score(candidate.id, milestone.id, analysis(50 + i)) for i in range(5)),
            return_exceptions=True,
        )

        assert [r for r in results if isinstance(r, Exception)] == []
        assert len(await storage.list_fit_scores_for_milestone(milestone.id)) == 1

    @pytest.mark.asyncio
    async def test_lost_insert_race_becomes_update(self, storage, factory):
        candidate = await factory.candidate()
        milestone = await factory.milestone()
        await storage.upsert_fit_score(candidate.id, milestone.id, analysis(40))

        real_find = Storage._find_fit_score
        lookups = []

        async def stale_first_lookup(session, candidate_id, milestone_id):
            # First lookup misses the row another writer already committed
            lookups.append(candidate_id)
            if len(lookups) == 1:
                return None
            return await real_find(session, candidate_id, milestone_id)

        with patch.object(Storage, "_find_fit_score", staticmethod(stale_first_lookup)), \
                patch("workforce.storage.logger") as mock_logger:
            fit_score = await storage.upsert_fit_score(candidate.id, milestone.id, analysis(90))

        assert fit_score.score == 90
        assert len(lookups) == 2
        mock_logger.info.assert_called_once()
        scores = await storage.list_fit_scores_for_milestone(milestone.id)
        assert [s.score for s in scores] == [90]


class TestRiskAlerts:
    """Test alert lookups."""

    @pytest.mark.asyncio
    async def test_latest_alert(self, storage, factory):
        milestone = await factory.milestone()
        assert await storage.get_latest_risk_alert(milestone.id) is None

        await storage.create_risk_alert(milestone_id=milestone.id, risk_level="low", delay_percentage=5)
        await asyncio.sleep(0.01)
        await storage.create_risk_alert(milestone_id=milestone.id, risk_level="high", delay_percentage=30)

        latest = await storage.get_latest_risk_alert(milestone.id)
        assert latest.delay_percentage == 30
