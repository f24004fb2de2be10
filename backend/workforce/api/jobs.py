from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from workforce.api.deps import get_storage
from workforce.schemas import JobCreate, JobCreatedResponse, JobStatusResponse
from workforce.storage import Storage
from workforce.worker import enqueue_job

router = APIRouter()


@router.post("", response_model=JobCreatedResponse, status_code=202)
async def create_job(request: JobCreate, storage: Storage = Depends(get_storage)):
    try:
        job = await enqueue_job(
            storage,
            request.job_type,
            request.user_id,
            request.payload,
            user_email=request.user_email,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JobCreatedResponse(job_id=job.id)


@router.get("", response_model=List[JobStatusResponse])
async def list_jobs(
    user_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    storage: Storage = Depends(get_storage),
):
    jobs = await storage.list_jobs(user_id=user_id, status=status)
    return [JobStatusResponse.model_validate(job) for job in jobs]


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str, storage: Storage = Depends(get_storage)):
    job = await storage.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse.model_validate(job)
