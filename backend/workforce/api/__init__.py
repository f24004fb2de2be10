from fastapi import APIRouter
from workforce.api import assignments, interests, jira, jobs, milestones, scoring

api_router = APIRouter()
api_router.include_router(scoring.router, prefix="/scoring", tags=["scoring"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(assignments.router, tags=["assignments"])
api_router.include_router(milestones.router, prefix="/milestones", tags=["milestones"])
api_router.include_router(interests.router, prefix="/interests", tags=["interests"])
api_router.include_router(jira.router, prefix="/jira", tags=["jira"])
