from fastapi import APIRouter, Depends

from workforce.api.deps import get_engine
from workforce.schemas import FitAnalysis, FitScoreRequest, SkillMapRequest, SkillMapResponse
from workforce.schemas.interest import PriorityRequest, PriorityResponse, PriorityResult
from workforce.services.fit_scoring import SOURCE_AI, FitScoringEngine
from workforce.services.priority_scorer import InterestInput, score_batch, top_k

router = APIRouter()


@router.post("/fit", response_model=FitAnalysis)
async def score_fit(request: FitScoreRequest, engine: FitScoringEngine = Depends(get_engine)):
    """Synchronous fit score; falls back to rule-based scoring when AI is unavailable."""
    return await engine.score_fit(request.skills, request.experience, request.skill_map)


@router.post("/skill-map", response_model=SkillMapResponse)
async def generate_skill_map(request: SkillMapRequest, engine: FitScoringEngine = Depends(get_engine)):
    skill_map, source = await engine.generate_skill_map(request.name, request.description)
    return SkillMapResponse(skill_map=skill_map, used_ai=source == SOURCE_AI)


@router.post("/priority", response_model=PriorityResponse)
async def score_priorities(request: PriorityRequest):
    """Score one batch of competing offers (budgets normalized within the batch)."""
    scored = score_batch([
        InterestInput(
            id=i.id,
            fit_score=i.fit_score,
            offer_budget=i.offer_budget,
            candidate_preference=i.candidate_preference,
            created_at=i.created_at,
        )
        for i in request.interests
    ])

    def to_result(s):
        return PriorityResult(id=s.id, priority_score=s.priority_score, breakdown=s.breakdown)

    return PriorityResponse(
        scores=[to_result(s) for s in scored],
        top=[to_result(s) for s in top_k(scored, request.top)],
    )
