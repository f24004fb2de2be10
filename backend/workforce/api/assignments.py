"""
Assignment endpoints.

Successful transitions return the milestone. Rejected transitions return
409 with {valid: false, error, active_assignments}; an unknown milestone or
candidate returns 404 with the same body.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from typing import List

from workforce.api.deps import get_assignment_service
from workforce.schemas import CandidateAction, MilestoneResponse, RejectRequest, ValidationResponse
from workforce.services.assignments import (
    CANDIDATE_NOT_FOUND,
    MILESTONE_NOT_FOUND,
    AssignmentResult,
    AssignmentService,
)

router = APIRouter()

NOT_FOUND_ERRORS = {CANDIDATE_NOT_FOUND, MILESTONE_NOT_FOUND}


def to_validation(result: AssignmentResult) -> ValidationResponse:
    return ValidationResponse(
        valid=result.valid,
        error=result.error,
        active_assignments=[MilestoneResponse.model_validate(m) for m in result.active_assignments],
    )


def assignment_response(result: AssignmentResult):
    if result.valid:
        return MilestoneResponse.model_validate(result.milestone)

    status_code = 404 if result.error in NOT_FOUND_ERRORS else 409
    return JSONResponse(status_code=status_code, content=jsonable_encoder(to_validation(result)))


# ==================== Queries ====================

@router.get("/milestones/{milestone_id}/validate", response_model=ValidationResponse)
async def validate_assignment(
    milestone_id: str,
    candidate_id: str = Query(...),
    service: AssignmentService = Depends(get_assignment_service),
):
    return to_validation(await service.validate_assignment(candidate_id, milestone_id))


@router.get("/candidates/{candidate_id}/assignments", response_model=List[MilestoneResponse])
async def active_assignments(candidate_id: str, service: AssignmentService = Depends(get_assignment_service)):
    milestones = await service.get_active_assignments(candidate_id)
    return [MilestoneResponse.model_validate(m) for m in milestones]


# ==================== Primary Track ====================

@router.post("/milestones/{milestone_id}/offer", response_model=MilestoneResponse)
async def offer(milestone_id: str, request: CandidateAction, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.offer(milestone_id, request.candidate_id))


@router.post("/milestones/{milestone_id}/confirm", response_model=MilestoneResponse)
async def confirm(milestone_id: str, request: CandidateAction, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.confirm(milestone_id, request.candidate_id))


@router.post("/milestones/{milestone_id}/reject", response_model=MilestoneResponse)
async def reject(milestone_id: str, request: RejectRequest, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.reject(milestone_id, request.candidate_id, request.reason))


@router.post("/milestones/{milestone_id}/start", response_model=MilestoneResponse)
async def start(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.start(milestone_id))


@router.post("/milestones/{milestone_id}/complete", response_model=MilestoneResponse)
async def complete(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.complete(milestone_id))


@router.post("/milestones/{milestone_id}/release", response_model=MilestoneResponse)
async def release(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.release(milestone_id))


# ==================== Backup Track ====================

@router.post("/milestones/{milestone_id}/backup", response_model=MilestoneResponse)
async def assign_backup(milestone_id: str, request: CandidateAction, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.assign_backup(milestone_id, request.candidate_id))


@router.post("/milestones/{milestone_id}/backup/offer", response_model=MilestoneResponse)
async def offer_backup(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.offer_backup(milestone_id))


@router.post("/milestones/{milestone_id}/backup/accept", response_model=MilestoneResponse)
async def accept_backup(milestone_id: str, request: CandidateAction, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.accept_backup(milestone_id, request.candidate_id))


@router.post("/milestones/{milestone_id}/backup/activate", response_model=MilestoneResponse)
async def activate_backup(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.activate_backup(milestone_id))


@router.delete("/milestones/{milestone_id}/backup", response_model=MilestoneResponse)
async def clear_backup(milestone_id: str, service: AssignmentService = Depends(get_assignment_service)):
    return assignment_response(await service.clear_backup(milestone_id))
