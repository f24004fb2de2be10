"""
Rule-Based Fallback Scoring - deterministic scoring when the AI judge fails.

Fit Score Composition:
    - Skill Overlap (60%): |candidate ∩ required| / max(1, |required|)
    - Experience Match (30%): Keyword/years heuristic against the required level
    - Soft Skill Relevance (10%): Coverage of required soft skills (50 = neutral)

Also provides keyword-based fallbacks for skill map generation, CV analysis
and risk prediction so every AI-dependent step has a deterministic twin with
the same output shape.
"""

import re
from typing import Iterable, List, Optional, Set

from workforce.schemas.analysis import (
    CVAnalysis,
    FitAnalysis,
    RiskAnalysis,
    SkillMap,
    round_half_up,
)

SKILL_WEIGHT = 0.6
EXPERIENCE_WEIGHT = 0.3
SOFT_SKILL_WEIGHT = 0.1

NEUTRAL_SCORE = 50
NO_EXPERIENCE_SCORE = 40
NO_LEVEL_SCORE = 60

# Ordered so that the first matching level wins
SENIOR_LEVELS = ["senior", "lead", "principal", "advanced", "expert", "staff"]
MID_LEVELS = ["mid", "intermediate"]
JUNIOR_LEVELS = ["junior", "entry", "beginner", "graduate"]

TECH_KEYWORDS = [
    "javascript", "typescript", "python", "java", "react", "node.js", "nodejs",
    "angular", "vue", "sql", "mongodb", "postgresql", "postgres", "aws", "docker",
    "kubernetes", "git", "rest api", "graphql", "html", "css", "tailwind",
    "bootstrap", "express", "django", "spring", "flask", "fastapi", "redis",
    "elasticsearch", "terraform", "golang", "rust",
]

SOFT_SKILL_KEYWORDS = [
    "communication", "teamwork", "collaboration", "leadership", "agile", "scrum",
    "problem solving", "project management", "mentoring", "analytical",
]

YEARS_PATTERN = re.compile(r"(\d+)\+?\s*(?:years?|yrs?)", re.IGNORECASE)


def normalize_skills(skills: Optional[Iterable[str]]) -> Set[str]:
    """Lowercase and trim skills, dropping empties."""
    if not skills:
        return set()
    return {s.strip().lower() for s in skills if s and s.strip()}


def _contains_keyword(text: str, keyword: str) -> bool:
    pattern = r"(?<![\w.])" + re.escape(keyword) + r"(?![\w])"
    return re.search(pattern, text) is not None


def calculate_skill_overlap(candidate_skills: Iterable[str], required_skills: Iterable[str]) -> int:
    candidate = normalize_skills(candidate_skills)
    required = normalize_skills(required_skills)
    matched = len(candidate & required)
    return round_half_up(100 * matched / max(1, len(required)))


def extract_years(experience: str) -> int:
    """Largest "N years" figure mentioned in the text (0 if none)."""
    years = [int(match) for match in YEARS_PATTERN.findall(experience or "")]
    return max(years) if years else 0


def calculate_experience_match(candidate_experience: str, experience_level: Optional[str]) -> int:
    if not candidate_experience or not candidate_experience.strip():
        return NO_EXPERIENCE_SCORE
    if not experience_level or not experience_level.strip():
        return NO_LEVEL_SCORE

    text = candidate_experience.lower()
    level = experience_level.lower()
    years = extract_years(text)

    if any(word in level for word in SENIOR_LEVELS):
        if years >= 5:
            return 90
        if years >= 3:
            return 70
        if "senior" in text or "lead" in text:
            return 85
        return 50

    if any(word in level for word in MID_LEVELS):
        if 2 <= years < 6:
            return 90
        if years >= 1:
            return 75
        return 60

    if any(word in level for word in JUNIOR_LEVELS):
        if years <= 2:
            return 90
        if years <= 4:
            return 70
        return 50

    return 65 if years > 0 else 45


def calculate_soft_skill_relevance(
    candidate_skills: Iterable[str],
    candidate_experience: str,
    required_soft_skills: Iterable[str],
) -> int:
    """
    Share of required soft skills evidenced by the candidate.

    Evidence is an exact skill match or a mention in the experience text.
    Returns the neutral midpoint when nothing is required or the candidate
    offers no evidence to judge.
    """
    required = normalize_skills(required_soft_skills)
    if not required:
        return NEUTRAL_SCORE

    candidate = normalize_skills(candidate_skills)
    text = (candidate_experience or "").lower()
    if not candidate and not text.strip():
        return NEUTRAL_SCORE

    matched = sum(1 for skill in required if skill in candidate or _contains_keyword(text, skill))
    return round_half_up(100 * matched / len(required))


def generate_fallback_reasoning(skill_overlap: int, experience_match: int, soft_skill_relevance: int) -> str:
    parts: List[str] = []

    if skill_overlap >= 80:
        parts.append("Strong skill match with most required competencies.")
    elif skill_overlap >= 60:
        parts.append("Good skill alignment with key requirements.")
    elif skill_overlap >= 40:
        parts.append("Partial skill match - some gaps in required skills.")
    else:
        parts.append("Limited skill overlap - significant training may be needed.")

    if experience_match >= 80:
        parts.append("Experience level aligns well with position requirements.")
    elif experience_match >= 60:
        parts.append("Adequate experience for the role.")
    else:
        parts.append("Experience level may not fully match requirements.")

    if soft_skill_relevance >= 70:
        parts.append("Profile demonstrates relevant soft skills.")
    else:
        parts.append("Additional soft skill development may be beneficial.")

    parts.append("[Note: Score calculated using rule-based system]")
    return " ".join(parts)


def calculate_fallback_fit_score(
    candidate_skills: Iterable[str],
    candidate_experience: str,
    skill_map: SkillMap,
) -> FitAnalysis:
    """
    Rule-based fit score (used when the AI judge fails).

    Example:
        >>> skill_map = SkillMap(required_skills=["python", "react", "sql"])
        >>> calculate_fallback_fit_score({"python", "sql"}, "", skill_map).skill_overlap
        67
    """
    candidate_skills = list(candidate_skills or [])
    skill_overlap = calculate_skill_overlap(candidate_skills, skill_map.required_skills)
    experience_match = calculate_experience_match(candidate_experience, skill_map.experience_level)
    soft_skill_relevance = calculate_soft_skill_relevance(
        candidate_skills, candidate_experience, skill_map.soft_skills
    )

    score = round_half_up(
        skill_overlap * SKILL_WEIGHT
        + experience_match * EXPERIENCE_WEIGHT
        + soft_skill_relevance * SOFT_SKILL_WEIGHT
    )

    return FitAnalysis(
        score=score,
        skill_overlap=skill_overlap,
        experience_match=experience_match,
        soft_skill_relevance=soft_skill_relevance,
        reasoning=generate_fallback_reasoning(skill_overlap, experience_match, soft_skill_relevance),
        source="fallback",
    )


def _find_keywords(text: str, keywords: Iterable[str]) -> List[str]:
    lowered = (text or "").lower()
    return [keyword for keyword in keywords if _contains_keyword(lowered, keyword)]


def extract_fallback_skill_map(name: str, description: str = "") -> SkillMap:
    """Keyword-based skill map (used when AI skill map generation fails)."""
    combined = f"{name} {description}".lower()

    required_skills = _find_keywords(combined, TECH_KEYWORDS)

    experience_level = "Intermediate"
    if "senior" in combined or "lead" in combined:
        experience_level = "Advanced"
    elif "junior" in combined or "entry" in combined:
        experience_level = "Entry"

    return SkillMap(
        milestone=name,
        required_skills=required_skills or ["general programming"],
        experience_level=experience_level,
        soft_skills=_find_keywords(combined, SOFT_SKILL_KEYWORDS),
    )


def fallback_cv_analysis(cv_text: str) -> CVAnalysis:
    """Keyword-based CV profile (used when AI CV analysis fails)."""
    text = cv_text or ""
    email_match = re.search(r"[\w.+-]+@[\w-]+\.[\w.-]+", text)
    return CVAnalysis(
        name="Candidate",
        email=email_match.group(0) if email_match else None,
        skills=_find_keywords(text, TECH_KEYWORDS),
        experience=text[:500].strip(),
        education="Not specified",
        soft_skills=_find_keywords(text, SOFT_SKILL_KEYWORDS),
    )


def risk_level_for_delay(delay_percentage: int) -> str:
    """Delay <10%: low, 10-20%: medium, >20%: high."""
    if delay_percentage > 20:
        return "high"
    if delay_percentage >= 10:
        return "medium"
    return "low"


def fallback_risk_analysis(delay_percentage: int) -> RiskAnalysis:
    """Threshold-based risk prediction (used when AI risk prediction fails)."""
    level = risk_level_for_delay(delay_percentage)
    issues: List[str] = []
    recommendations: List[str] = []
    if level != "low":
        issues.append(f"Milestone is running {delay_percentage}% over its time estimate.")
        recommendations.append("Review scope and remaining estimate with the assignee.")
    if level == "high":
        recommendations.append("Prepare the backup candidate to take over.")
    return RiskAnalysis(
        risk_level=level,
        delay_percentage=delay_percentage,
        predicted_issues=issues,
        recommendations=recommendations,
        backup_required=level == "high",
    )
