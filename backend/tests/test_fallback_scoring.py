"""
Tests for Rule-Based Fallback Scoring

Tests cover:
- Skill overlap (case-insensitive set intersection)
- Experience match heuristics per required level
- Soft skill relevance (neutral when nothing is required)
- Composite fit score weighting and rounding
- Keyword skill map, CV and risk fallbacks
- round_half_up at the .5 boundary
"""

import pytest

from workforce.schemas.analysis import FitAnalysis, SkillMap, round_half_up
from workforce.services.fallback_scoring import (
    calculate_experience_match,
    calculate_fallback_fit_score,
    calculate_skill_overlap,
    calculate_soft_skill_relevance,
    extract_fallback_skill_map,
    extract_years,
    fallback_cv_analysis,
    fallback_risk_analysis,
    risk_level_for_delay,
)


class TestRoundHalfUp:
    """Half-up rounding used for every persisted score."""

    def test_half_rounds_up(self):
        assert round_half_up(54.5) == 55
        assert round_half_up(62.5) == 63

    def test_below_half_rounds_down(self):
        assert round_half_up(66.666) == 67
        assert round_half_up(61.4) == 61

    def test_float_noise_at_boundary(self):
        """0.3 * 25 is 7.499999... in binary floating point."""
        assert round_half_up(32 + 0.3 * 25 + 15) == 55


class TestSkillOverlap:
    """Test required-skill coverage."""

    def test_two_of_three_skills(self):
        """{python, sql} vs {python, react, sql} -> 67."""
        assert calculate_skill_overlap({"python", "sql"}, {"python", "react", "sql"}) == 67

    def test_case_and_whitespace_insensitive(self):
        assert calculate_skill_overlap(["Python ", "POSTGRES"], ["python", "postgres"]) == 100

    def test_no_required_skills(self):
        """Empty requirement divides by max(1, 0) and scores 0."""
        assert calculate_skill_overlap(["python"], []) == 0

    def test_no_candidate_skills(self):
        assert calculate_skill_overlap([], ["python"]) == 0


class TestExperienceMatch:
    """Test experience heuristics."""

    def test_missing_experience(self):
        assert calculate_experience_match("", "Senior") == 40

    def test_missing_level(self):
        assert calculate_experience_match("3 years of Django", "") == 60

    def test_senior_with_many_years(self):
        assert calculate_experience_match("8 years backend development", "Senior") == 90

    def test_senior_with_title_but_no_years(self):
        assert calculate_experience_match("Senior engineer at Acme", "Advanced") == 85

    def test_mid_level_sweet_spot(self):
        assert calculate_experience_match("4 yrs full stack", "Intermediate") == 90

    def test_junior_with_too_many_years(self):
        assert calculate_experience_match("10 years experience", "Junior") == 50

    def test_unknown_level(self):
        assert calculate_experience_match("2 years", "Wizard") == 65
        assert calculate_experience_match("lots", "Wizard") == 45

    def test_extract_years_takes_largest(self):
        assert extract_years("2 years at A, then 6+ years at B") == 6


class TestSoftSkillRelevance:
    """Test soft skill coverage."""

    def test_neutral_when_none_required(self):
        assert calculate_soft_skill_relevance(["python"], "anything", []) == 50

    def test_neutral_without_evidence(self):
        assert calculate_soft_skill_relevance([], "", ["communication"]) == 50

    def test_evidence_from_experience_text(self):
        score = calculate_soft_skill_relevance(
            ["python"],
            "Led agile teams with strong communication",
            ["communication", "leadership"],
        )
        assert score == 50

    def test_full_coverage(self):
        assert calculate_soft_skill_relevance(["Teamwork", "mentoring"], "", ["teamwork", "mentoring"]) == 100


class TestFallbackFitScore:
    """Test composite fallback fit score."""

    def test_backend_api_milestone(self):
        """python/postgres milestone, candidate with both plus react, no soft skills required."""
        skill_map = SkillMap(milestone="Backend API", required_skills=["python", "postgres"])

        result = calculate_fallback_fit_score(["python", "postgres", "react"], "", skill_map)

        assert result.skill_overlap == 100
        assert result.soft_skill_relevance == 50
        assert result.experience_match == 40
        # 100*0.6 + 40*0.3 + 50*0.1
        assert result.score == 77
        assert result.source == "fallback"
        assert "rule-based" in result.reasoning

    def test_scores_are_integers_in_range(self):
        skill_map = SkillMap(required_skills=["python", "react", "sql"], experience_level="Senior")
        result = calculate_fallback_fit_score(["python", "sql"], "6 years", skill_map)

        for value in (result.score, result.skill_overlap, result.experience_match, result.soft_skill_relevance):
            assert isinstance(value, int)
            assert 0 <= value <= 100

    def test_used_ai_flag(self):
        result = calculate_fallback_fit_score([], "", SkillMap())
        assert result.used_ai is False


class TestFitAnalysisValidation:
    """FitAnalysis rounds and clamps judge output."""

    def test_fractional_scores_round_half_up(self):
        analysis = FitAnalysis(score=72.5, skill_overlap=80.4, experience_match=60, soft_skill_relevance=50)
        assert analysis.score == 73
        assert analysis.skill_overlap == 80

    def test_out_of_range_scores_clamped(self):
        analysis = FitAnalysis(score=140, skill_overlap=-5, experience_match=60, soft_skill_relevance=50)
        assert analysis.score == 100
        assert analysis.skill_overlap == 0

    def test_missing_score_rejected(self):
        with pytest.raises(ValueError):
            FitAnalysis(score=None, skill_overlap=1, experience_match=1, soft_skill_relevance=1)


class TestKeywordFallbacks:
    """Test skill map, CV and risk fallbacks."""

    def test_skill_map_from_keywords(self):
        skill_map = extract_fallback_skill_map("Senior Django API", "Python and PostgreSQL, agile team")

        assert "python" in skill_map.required_skills
        assert "django" in skill_map.required_skills
        assert "postgresql" in skill_map.required_skills
        assert skill_map.experience_level == "Advanced"
        assert "agile" in skill_map.soft_skills
        assert skill_map.milestone == "Senior Django API"

    def test_skill_map_without_keywords(self):
        skill_map = extract_fallback_skill_map("Write docs")
        assert skill_map.required_skills == ["general programming"]
        assert skill_map.experience_level == "Intermediate"

    def test_java_does_not_match_javascript(self):
        skill_map = extract_fallback_skill_map("Frontend", "JavaScript widgets")
        assert "javascript" in skill_map.required_skills
        assert "java" not in skill_map.required_skills

    def test_cv_analysis(self):
        cv = fallback_cv_analysis("Jane Doe jane@example.com\nPython, Docker, AWS. Strong communication.")

        assert cv.email == "jane@example.com"
        assert set(cv.skills) >= {"python", "docker", "aws"}
        assert "communication" in cv.soft_skills
        assert cv.education == "Not specified"

    @pytest.mark.parametrize("delay,level", [(0, "low"), (9, "low"), (10, "medium"), (20, "medium"), (21, "high")])
    def test_risk_tiers(self, delay, level):
        assert risk_level_for_delay(delay) == level

    def test_high_risk_requires_backup(self):
        analysis = fallback_risk_analysis(35)
        assert analysis.risk_level == "high"
        assert analysis.backup_required is True
        assert analysis.delay_percentage == 35

    def test_low_risk_has_no_issues(self):
        analysis = fallback_risk_analysis(0)
        assert analysis.predicted_issues == []
        assert analysis.backup_required is False
