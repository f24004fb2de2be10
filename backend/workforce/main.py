"""
Lean Workforce Matching API - Main Application Entry Point

This module initializes the FastAPI application with:
- Logging configured from settings.log_level
- Database schema initialization
- Credential encryption check (fails fast in production without a key)
- Background scheduler (job queue polling, risk sweeps)
- Prometheus metrics
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware (localhost:3000)
    ├── Prometheus Middleware + /metrics
    └── API Router
        ├── /scoring - Synchronous fit, skill map and priority scoring
        ├── /jobs - Background job submission and status
        ├── /milestones/{id}/... - Assignment transitions (primary + backup)
        ├── /milestones - Top candidates and risk assessment
        ├── /interests - Business interests with priority scores
        └── /jira - Jira settings, sync and sync logs
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workforce.config import get_settings
from workforce.database import init_db
from workforce.api import api_router
from workforce.api.deps import get_risk_monitor, get_storage
from workforce.middleware import setup_metrics
from workforce.scheduler import start_scheduler, stop_scheduler
from workforce.services.ai_judge import get_ai_judge
from workforce.services.cache import get_ai_cache
from workforce.services.encryption import validate_encryption_config
from workforce.services.fit_scoring import get_scoring_engine
from workforce.worker import JobWorker

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Validate the encryption key (raises EncryptionConfigError)
        2. Initialize database tables
        3. Start the job worker poll and risk sweep

    Shutdown:
        1. Stop the scheduler
        2. Close the redis cache connection
    """
    validate_encryption_config(settings)
    await init_db()

    worker = JobWorker(get_storage(), get_scoring_engine())
    start_scheduler(worker, get_risk_monitor())
    yield
    stop_scheduler()

    cache = get_ai_cache()
    if cache:
        await cache.close()


app = FastAPI(
    title="Lean Workforce Matching API",
    description="Candidate/milestone fit scoring, offer prioritization and assignment tracking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "ai_available": get_ai_judge().available}
