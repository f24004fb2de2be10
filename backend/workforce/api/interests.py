"""
Business interest endpoints.

Creating or changing an interest rescores every open interest of the
candidate in one batch, so the returned priority is consistent with its
competitors.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from workforce.api.deps import get_storage
from workforce.schemas import InterestCreate, InterestResponse, InterestUpdate
from workforce.services.priority_scorer import recompute_candidate_priorities, top_k
from workforce.storage import Storage

router = APIRouter()


@router.post("", response_model=InterestResponse, status_code=201)
async def create_interest(request: InterestCreate, storage: Storage = Depends(get_storage)):
    if not await storage.get_candidate(request.candidate_id):
        raise HTTPException(status_code=404, detail="Candidate not found")
    if not await storage.get_milestone(request.milestone_id):
        raise HTTPException(status_code=404, detail="Milestone not found")

    interest = await storage.create_interest(**request.model_dump())
    await recompute_candidate_priorities(storage, request.candidate_id)
    return InterestResponse.model_validate(await storage.get_interest(interest.id))


@router.patch("/{interest_id}", response_model=InterestResponse)
async def update_interest(interest_id: str, request: InterestUpdate, storage: Storage = Depends(get_storage)):
    interest = await storage.get_interest(interest_id)
    if not interest:
        raise HTTPException(status_code=404, detail="Interest not found")

    update_data = request.model_dump(exclude_unset=True)
    if update_data:
        await storage.update_interest(interest_id, **update_data)
        await recompute_candidate_priorities(storage, interest.candidate_id)

    return InterestResponse.model_validate(await storage.get_interest(interest_id))


@router.get("", response_model=List[InterestResponse])
async def list_interests(
    candidate_id: Optional[str] = Query(None),
    milestone_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    top: Optional[int] = Query(None, ge=1),
    storage: Storage = Depends(get_storage),
):
    """List interests; with top=k, only the k highest-priority ones."""
    interests = await storage.list_interests(candidate_id=candidate_id, milestone_id=milestone_id, status=status)
    if top is not None:
        interests = top_k(interests, top)
    return [InterestResponse.model_validate(i) for i in interests]
