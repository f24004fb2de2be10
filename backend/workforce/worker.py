"""
Job Worker - drains the background_jobs table

Processing Pipeline (one poll):
    1. Claim up to max_concurrent pending jobs (pending -> processing, attempts + 1)
    2. Run the claimed jobs concurrently, each through its JOB_HANDLERS entry
    3. Success: completed, result stored, progress 100, success email
    4. Failure: back to pending while attempts < max_attempts,
       otherwise failed with a failure email

Jobs are claimed with a conditional UPDATE, so several workers (or
overlapping polls) never process the same job twice. A job whose type has
no handler fails like any other handler error.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from workforce.config import get_settings
from workforce.database import utcnow
from workforce.models import BackgroundJob, JobStatus, JobType
from workforce.services.fit_scoring import FitScoringEngine, get_scoring_engine
from workforce.services.notifications import notify_job_outcome
from workforce.storage import Storage
from workforce.tasks.jobs import JOB_DURATION, JOB_FAILURES, JOB_HANDLERS, JobContext, JobHandler

logger = logging.getLogger(__name__)

Notifier = Callable[[Optional[str], str, str, Optional[str]], Awaitable[bool]]


async def enqueue_job(
    storage: Storage,
    job_type: str,
    user_id: str,
    payload: Dict[str, Any],
    user_email: Optional[str] = None,
    max_attempts: Optional[int] = None,
) -> BackgroundJob:
    """
    Persist a pending job for the worker.

    Raises:
        ValueError: Unknown job type
    """
    valid_types = {t.value for t in JobType}
    if job_type not in valid_types:
        raise ValueError(f"Unknown job type: {job_type}")

    job = await storage.create_job(
        job_type=job_type,
        status=JobStatus.PENDING.value,
        user_id=user_id,
        user_email=user_email,
        payload=payload,
        max_attempts=max_attempts or get_settings().job_max_attempts,
    )
    logger.info(f"Enqueued {job_type} job {job.id}")
    return job


class JobWorker:
    """
    Polling worker for BackgroundJob rows.

    Attributes:
        storage: Persistence facade
        engine: Fit-scoring engine passed to handlers
        max_concurrent: Jobs claimed and run per poll
        notifier: Async email hook (user_email, job_type, outcome, error)
    """

    def __init__(
        self,
        storage: Storage,
        engine: Optional[FitScoringEngine] = None,
        max_concurrent: Optional[int] = None,
        notifier: Notifier = notify_job_outcome,
        handlers: Optional[Dict[str, JobHandler]] = None,
    ):
        self.storage = storage
        self.engine = engine or get_scoring_engine()
        self.max_concurrent = max_concurrent or get_settings().worker_max_concurrent_jobs
        self.notifier = notifier
        self.handlers = handlers if handlers is not None else JOB_HANDLERS

    async def poll_once(self) -> int:
        """
        Claim and process one batch of pending jobs.

        Returns:
            Number of jobs processed
        """
        jobs = await self.storage.claim_pending_jobs(self.max_concurrent)
        if not jobs:
            return 0

        logger.info(f"Processing {len(jobs)} background jobs")
        results = await asyncio.gather(*(self.process_job(job) for job in jobs), return_exceptions=True)

        for job, outcome in zip(jobs, results):
            if isinstance(outcome, Exception):
                logger.error(f"Job {job.id} could not be finalized: {outcome}")

        return len(jobs)

    async def process_job(self, job: BackgroundJob) -> None:
        start_time = time.time()
        handler = self.handlers.get(job.job_type)

        try:
            if handler is None:
                raise ValueError(f"Unknown job type: {job.job_type}")

            result = await handler(JobContext(job=job, storage=self.storage, engine=self.engine))

            await self.storage.update_job(
                job.id,
                status=JobStatus.COMPLETED.value,
                result=result,
                progress=100,
                error=None,
                completed_at=utcnow(),
            )
            logger.info(f"Job {job.id} ({job.job_type}) completed")
            await self.notifier(job.user_email, job.job_type, "success", None)

        except Exception as e:
            JOB_FAILURES.labels(job_type=job.job_type).inc()
            error_message = str(e) or e.__class__.__name__
            should_retry = job.attempts < job.max_attempts

            if should_retry:
                await self.storage.update_job(job.id, status=JobStatus.PENDING.value, error=error_message)
                logger.warning(
                    f"Job {job.id} failed (attempt {job.attempts}/{job.max_attempts}), will retry: {error_message}"
                )
            else:
                await self.storage.update_job(
                    job.id,
                    status=JobStatus.FAILED.value,
                    error=error_message,
                    completed_at=utcnow(),
                )
                logger.error(f"Job {job.id} failed after {job.attempts} attempts: {error_message}")
                await self.notifier(job.user_email, job.job_type, "failure", error_message)

        finally:
            JOB_DURATION.labels(job_type=job.job_type).observe(time.time() - start_time)
