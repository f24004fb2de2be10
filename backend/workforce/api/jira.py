from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List

from workforce.api.deps import get_engine, get_storage
from workforce.schemas import JiraSettingsResponse, JiraSettingsUpdate, SyncLogResponse, SyncResponse
from workforce.services.fit_scoring import FitScoringEngine
from workforce.services.jira_sync import sync_jira_project
from workforce.storage import Storage

router = APIRouter()


@router.get("/settings/{business_user_id}", response_model=JiraSettingsResponse)
async def get_jira_settings(business_user_id: str, storage: Storage = Depends(get_storage)):
    settings = await storage.get_jira_settings(business_user_id)
    if not settings:
        raise HTTPException(status_code=404, detail="Jira not configured")
    return JiraSettingsResponse.model_validate(settings)


@router.put("/settings/{business_user_id}", response_model=JiraSettingsResponse)
async def save_jira_settings(
    business_user_id: str,
    request: JiraSettingsUpdate,
    storage: Storage = Depends(get_storage),
):
    """Store connection settings; the API token is encrypted at rest and never returned."""
    settings = await storage.save_jira_settings(
        business_user_id,
        jira_domain=request.jira_domain,
        jira_email=request.jira_email,
        jira_api_token=request.jira_api_token,
    )
    return JiraSettingsResponse.model_validate(settings)


@router.post("/projects/{project_id}/sync", response_model=SyncResponse)
async def sync_project(
    project_id: str,
    storage: Storage = Depends(get_storage),
    engine: FitScoringEngine = Depends(get_engine),
):
    project = await storage.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        result = await sync_jira_project(storage, project, engine)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SyncResponse(
        success=result.success,
        status=result.status,
        log_id=result.log_id,
        can_retry=result.can_retry,
        created=result.created,
        updated=result.updated,
        failed=result.failed,
        error=result.error,
        message=result.message,
    )


@router.get("/sync-logs", response_model=List[SyncLogResponse])
async def list_sync_logs(
    business_user_id: str = Query(...),
    limit: int = Query(20, ge=1, le=100),
    storage: Storage = Depends(get_storage),
):
    logs = await storage.list_sync_logs(business_user_id, limit=limit)
    return [SyncLogResponse.model_validate(log) for log in logs]
