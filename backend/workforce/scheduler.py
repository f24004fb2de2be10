"""
Background Scheduler - job queue polling and risk sweeps

Schedule:
    poll_jobs    every WORKER_POLL_INTERVAL_SECONDS (default 5s)
    risk_sweep   every RISK_SWEEP_INTERVAL_MINUTES (default 30m)

Both jobs run with max_instances=1 and coalesce=True: a slow poll is never
overlapped by the next tick, and missed ticks collapse into one run.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from workforce.config import get_settings
from workforce.services.risk_monitor import RiskMonitor
from workforce.worker import JobWorker

logger = logging.getLogger(__name__)

settings = get_settings()
scheduler = AsyncIOScheduler()


async def poll_jobs(worker: JobWorker) -> None:
    try:
        await worker.poll_once()
    except Exception as e:
        logger.error(f"Job poll failed: {e}")


async def run_risk_sweep(monitor: RiskMonitor) -> None:
    try:
        await monitor.sweep()
    except Exception as e:
        logger.error(f"Risk sweep failed: {e}")


def start_scheduler(worker: JobWorker, monitor: RiskMonitor) -> None:
    """Start the background scheduler"""
    scheduler.add_job(
        poll_jobs,
        trigger=IntervalTrigger(seconds=settings.worker_poll_interval_seconds),
        args=[worker],
        id="poll_jobs",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_risk_sweep,
        trigger=IntervalTrigger(minutes=settings.risk_sweep_interval_minutes),
        args=[monitor],
        id="risk_sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started: polling jobs every {settings.worker_poll_interval_seconds}s, "
        f"risk sweep every {settings.risk_sweep_interval_minutes}m"
    )


def stop_scheduler() -> None:
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
