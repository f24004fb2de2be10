from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List

from workforce.api.deps import get_risk_monitor, get_storage
from workforce.schemas import RiskAlertResponse, TopCandidatesResponse
from workforce.schemas.milestone import CandidateMatch, RiskAssessRequest
from workforce.services.risk_monitor import RiskMonitor
from workforce.storage import Storage

router = APIRouter()


@router.get("/{milestone_id}/top-candidates", response_model=TopCandidatesResponse)
async def top_candidates(
    milestone_id: str,
    limit: int = Query(10, ge=1, le=100),
    storage: Storage = Depends(get_storage),
):
    if not await storage.get_milestone(milestone_id):
        raise HTTPException(status_code=404, detail="Milestone not found")

    rows = await storage.get_top_candidates_for_milestone(milestone_id, limit=limit)
    return TopCandidatesResponse(
        milestone_id=milestone_id,
        candidates=[
            CandidateMatch(
                candidate_id=candidate.id,
                name=candidate.name,
                email=candidate.email,
                score=fit.score,
                reasoning=fit.reasoning,
                source=fit.source,
            )
            for fit, candidate in rows
        ],
    )


@router.post("/{milestone_id}/risk", response_model=RiskAlertResponse)
async def assess_risk(
    milestone_id: str,
    request: RiskAssessRequest,
    monitor: RiskMonitor = Depends(get_risk_monitor),
):
    alert = await monitor.assess_milestone(milestone_id, request.delay_percentage)
    if alert is None:
        raise HTTPException(status_code=404, detail="Milestone not found")
    return RiskAlertResponse.model_validate(alert)


@router.get("/{milestone_id}/risk-alerts", response_model=List[RiskAlertResponse])
async def risk_alerts(milestone_id: str, storage: Storage = Depends(get_storage)):
    alerts = await storage.list_risk_alerts(milestone_id)
    return [RiskAlertResponse.model_validate(a) for a in alerts]
