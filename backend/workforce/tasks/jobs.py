"""
Background Job Handlers

Handlers for each BackgroundJob.job_type:
- cv_processing: analyze CV text, update the candidate, fan out fit scores
- fit_score_calculation: score one candidate against one milestone
- skill_map_generation: build a milestone's skill map

Every AI step goes through FitScoringEngine (AI with rule-based fallback),
so an AI outage degrades results instead of failing jobs. Results report
used_ai so callers can tell the two apart.

A handler raising marks the attempt failed; the worker decides between
retry and terminal failure.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict

from prometheus_client import Counter, Histogram

from workforce.models import BackgroundJob, JobType
from workforce.schemas.analysis import SkillMap
from workforce.services.fit_scoring import SOURCE_AI, FitScoringEngine
from workforce.services.priority_scorer import recompute_candidate_priorities
from workforce.storage import Storage

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

JOB_DURATION = Histogram(
    "background_job_duration_seconds",
    "Time spent executing background jobs",
    ["job_type"]
)

JOB_FAILURES = Counter(
    "background_job_failures_total",
    "Number of failed background job attempts",
    ["job_type"]
)


@dataclass
class JobContext:
    """Everything a handler needs for one job attempt."""
    job: BackgroundJob
    storage: Storage
    engine: FitScoringEngine

    @property
    def payload(self) -> Dict[str, Any]:
        return self.job.payload or {}

    async def progress(self, percent: int) -> None:
        await self.storage.update_job(self.job.id, progress=percent)


JobHandler = Callable[[JobContext], Awaitable[Dict[str, Any]]]


# ==================== Helper Functions ====================

def load_cv_text(payload: Dict[str, Any]) -> str:
    """
    CV text from the payload: inline cv_text, or a text file at file_path.

    Raises:
        ValueError: No text could be loaded
    """
    text = payload.get("cv_text")
    if not text and payload.get("file_path"):
        path = Path(payload["file_path"])
        try:
            text = path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise ValueError(f"Failed to read CV file {path}: {e}") from e

    if not text or not text.strip():
        raise ValueError("Failed to extract text from CV")
    return text


async def calculate_all_fit_scores(storage: Storage, engine: FitScoringEngine, candidate_id: str) -> int:
    """
    Score a candidate against every milestone that has a skill map.

    A failure on one milestone is logged and skipped. Priorities for the
    candidate are recomputed once after all scores are written.

    Returns:
        Number of fit scores written
    """
    candidate = await storage.get_candidate(candidate_id)
    if not candidate or not candidate.skills:
        return 0

    milestones = await storage.get_milestones_with_skill_map()
    match_count = 0

    for milestone in milestones:
        try:
            skill_map = SkillMap.model_validate(milestone.skill_map)
            analysis = await engine.score_fit(candidate.skills, candidate.experience or "", skill_map)
            await storage.upsert_fit_score(candidate_id, milestone.id, analysis)
            match_count += 1
        except Exception as e:
            logger.error(f"[Fit Score] Failed for milestone {milestone.id}: {e}")

    if match_count:
        await recompute_candidate_priorities(storage, candidate_id)

    logger.info(f"Calculated {match_count} fit scores for candidate {candidate_id}")
    return match_count


# ==================== Job Handlers ====================

async def process_cv_job(ctx: JobContext) -> Dict[str, Any]:
    candidate_id = ctx.payload.get("candidate_id")
    candidate = await ctx.storage.get_candidate(candidate_id) if candidate_id else None
    if candidate is None:
        raise ValueError(f"Candidate not found: {candidate_id}")

    logger.info(f"[CV Processing] Loading CV for candidate {candidate_id}")

    # Step 1: text loaded
    text = load_cv_text(ctx.payload)
    await ctx.progress(10)

    # Step 2: analysis done
    cv_analysis, source = await ctx.engine.analyze_cv(text)
    await ctx.progress(50)

    # Step 3: candidate updated
    await ctx.storage.update_candidate(
        candidate_id,
        cv_analysis=cv_analysis.model_dump(),
        skills=cv_analysis.skills,
        experience=cv_analysis.experience,
        education=cv_analysis.education,
    )
    await ctx.progress(70)

    # Step 4: fan-out to every milestone with a skill map
    await ctx.progress(90)
    match_count = await calculate_all_fit_scores(ctx.storage, ctx.engine, candidate_id)

    return {
        "candidate_id": candidate_id,
        "cv_analyzed": True,
        "used_ai": source == SOURCE_AI,
        "matches_found": match_count,
        "skills": cv_analysis.skills,
    }


async def process_fit_score_job(ctx: JobContext) -> Dict[str, Any]:
    candidate_id = ctx.payload.get("candidate_id")
    milestone_id = ctx.payload.get("milestone_id")

    candidate = await ctx.storage.get_candidate(candidate_id) if candidate_id else None
    milestone = await ctx.storage.get_milestone(milestone_id) if milestone_id else None
    if not candidate or not milestone:
        raise ValueError("Candidate or milestone not found")

    if not milestone.skill_map or not candidate.skills:
        raise ValueError("Missing skill data for fit score calculation")

    skill_map = SkillMap.model_validate(milestone.skill_map)
    analysis = await ctx.engine.score_fit(candidate.skills, candidate.experience or "", skill_map)
    await ctx.storage.upsert_fit_score(candidate_id, milestone_id, analysis)
    await recompute_candidate_priorities(ctx.storage, candidate_id)

    return {
        "candidate_id": candidate_id,
        "milestone_id": milestone_id,
        "score": analysis.score,
        "used_ai": analysis.used_ai,
    }


async def process_skill_map_job(ctx: JobContext) -> Dict[str, Any]:
    milestone_id = ctx.payload.get("milestone_id")
    milestone = await ctx.storage.get_milestone(milestone_id) if milestone_id else None
    if milestone is None:
        raise ValueError(f"Milestone not found: {milestone_id}")

    name = ctx.payload.get("name") or milestone.name
    description = ctx.payload.get("description") or milestone.description or ""

    skill_map, source = await ctx.engine.generate_skill_map(name, description)
    await ctx.storage.update_milestone(milestone_id, skill_map=skill_map.model_dump())

    return {
        "milestone_id": milestone_id,
        "skill_map": skill_map.model_dump(),
        "used_ai": source == SOURCE_AI,
    }


JOB_HANDLERS: Dict[str, JobHandler] = {
    JobType.CV_PROCESSING.value: process_cv_job,
    JobType.FIT_SCORE_CALCULATION.value: process_fit_score_job,
    JobType.SKILL_MAP_GENERATION.value: process_skill_map_job,
}
