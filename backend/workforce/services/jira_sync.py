"""
Jira Sync - logged, idempotent import of Jira issues as milestones

Sync Flow:
    run_logged_sync(storage, context, operation)
    ├── create JiraSyncLog (completed_at = NULL)
    ├── await operation() -> SyncOutcome(created, updated, failed)
    ├── finalize log once: success | partial | failed (+ error details, can_retry)
    └── update project last_jira_sync_* fields

    sync_project_issues(storage, project, issues, engine)
    └── per issue (failures counted, never abort the batch):
        ├── match milestone by jira_issue_key, then by name among unlinked milestones
        ├── estimated hours = time_estimate / 3600 (default 40), delay, status
        ├── skill map (AI with fallback)
        ├── create or update milestone
        └── upsert fit score for every candidate with skills

Error Categories (categorize_sync_error):
    network_error         connect/timeout failures    retry
    rate_limit            HTTP 429                    retry
    authentication_error  HTTP 401/403                no retry
    not_found             HTTP 404                    no retry
    server_error          HTTP >= 500                 retry
    client_error          other HTTP 4xx              no retry
    unknown_error         anything else               retry
"""

import logging
import traceback
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

import httpx
from prometheus_client import Counter

from workforce.database import utcnow
from workforce.models import MilestoneStatus, Project
from workforce.schemas.analysis import round_half_up
from workforce.services.fit_scoring import FitScoringEngine
from workforce.services.jira_client import Issue, JiraClient
from workforce.services.priority_scorer import recompute_candidate_priorities
from workforce.services.risk_monitor import DEFAULT_ESTIMATED_HOURS, delay_from_time_tracking
from workforce.storage import Storage

logger = logging.getLogger(__name__)

SYNC_OUTCOMES = Counter(
    "jira_syncs_total",
    "Jira sync attempts by outcome",
    ["sync_type", "status"],
)

SYNC_SUCCESS = "success"
SYNC_PARTIAL = "partial"
SYNC_FAILED = "failed"

DONE_STATUSES = {"done", "closed", "resolved", "complete", "completed"}
IN_PROGRESS_STATUSES = {"in progress", "in review", "in development", "review", "testing"}

HIGH_DELAY_THRESHOLD = 20


class JiraNotConfiguredError(RuntimeError):
    """Business has no usable Jira credentials ("not connected")."""


def _status_code(error: BaseException) -> Optional[int]:
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "status_code", None) or getattr(error, "status", None)
    return status if isinstance(status, int) else None


def _is_network_error(error: BaseException) -> bool:
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    message = str(error)
    return "ECONNREFUSED" in message or "ETIMEDOUT" in message


def categorize_sync_error(error: BaseException) -> Tuple[bool, str]:
    """
    Classify a sync failure.

    Returns:
        Tuple of (can_retry, error_type)
    """
    if _is_network_error(error):
        return True, "network_error"

    status = _status_code(error)
    if status == 429:
        return True, "rate_limit"
    if status in (401, 403):
        return False, "authentication_error"
    if status == 404:
        return False, "not_found"
    if status is not None and status >= 500:
        return True, "server_error"
    if status is not None and 400 <= status < 500:
        return False, "client_error"

    return True, "unknown_error"


def get_sync_error_message(error: str, can_retry: bool) -> str:
    """User-facing text for a failed sync."""
    lowered = error.lower()

    if "not connected" in lowered or "401" in error or "403" in error:
        return "Jira connection failed. Please check your Jira credentials in settings."

    if "404" in error:
        return "Jira project or issue not found. It may have been deleted or you don't have access."

    if "429" in error or "rate limit" in lowered:
        return "Jira rate limit reached. Please try again in a few minutes."

    if "ECONNREFUSED" in error or "ETIMEDOUT" in error or "connect" in lowered:
        return "Unable to connect to Jira. Please check your internet connection and try again."

    if "500" in error or "502" in error or "503" in error:
        return "Jira server error. This is temporary - please try again later."

    if can_retry:
        return f"Jira sync failed: {error}. You can try again using the Retry button."

    return f"Jira sync failed: {error}. Please check your Jira configuration."


@dataclass
class SyncContext:
    business_user_id: str
    sync_type: str  # import_projects, sync_project, sync_milestone
    project_id: Optional[str] = None
    jira_project_key: Optional[str] = None


@dataclass
class SyncOutcome:
    """Counts reported by a sync operation."""
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    data: Any = None


@dataclass
class SyncResult:
    success: bool
    status: str
    log_id: str
    can_retry: bool = False
    created: int = 0
    updated: int = 0
    failed: int = 0
    error: Optional[str] = None
    message: Optional[str] = None
    data: Any = None


async def _record_project_sync(storage: Storage, context: SyncContext, status: str, error: Optional[str]) -> None:
    if context.project_id:
        await storage.update_project(
            context.project_id,
            last_jira_sync_at=utcnow(),
            last_jira_sync_status=status,
            last_jira_sync_error=error,
        )


async def run_logged_sync(
    storage: Storage,
    context: SyncContext,
    operation: Callable[[], Awaitable[SyncOutcome]],
) -> SyncResult:
    """
    Run a sync operation with a JiraSyncLog entry finalized exactly once.

    Never raises for operation failures; the outcome is in the result and the log.
    """
    sync_log = await storage.create_sync_log(
        business_user_id=context.business_user_id,
        sync_type=context.sync_type,
        project_id=context.project_id,
        jira_project_key=context.jira_project_key,
        status=SYNC_SUCCESS,
        started_at=utcnow(),
    )

    try:
        outcome = await operation()
    except Exception as e:
        logger.error(f"[Jira Sync Error] {context.sync_type}: {e}")
        can_retry, error_type = categorize_sync_error(e)
        error_message = str(e) or e.__class__.__name__

        await storage.update_sync_log(
            sync_log.id,
            status=SYNC_FAILED,
            error=error_message,
            error_details={
                "type": error_type,
                "status_code": _status_code(e),
                "stack": traceback.format_exc(),
            },
            can_retry=can_retry,
            completed_at=utcnow(),
        )
        await _record_project_sync(storage, context, SYNC_FAILED, error_message)
        SYNC_OUTCOMES.labels(sync_type=context.sync_type, status=SYNC_FAILED).inc()

        return SyncResult(
            success=False,
            status=SYNC_FAILED,
            log_id=sync_log.id,
            can_retry=can_retry,
            error=error_message,
            message=get_sync_error_message(error_message, can_retry),
        )

    outcome = outcome or SyncOutcome()
    status = SYNC_PARTIAL if outcome.failed else SYNC_SUCCESS
    error_message = "; ".join(outcome.errors) if outcome.errors else None

    await storage.update_sync_log(
        sync_log.id,
        status=status,
        milestones_created=outcome.created,
        milestones_updated=outcome.updated,
        error=error_message,
        error_details={"type": "partial_failure", "failed": outcome.failed} if outcome.failed else None,
        can_retry=bool(outcome.failed),
        completed_at=utcnow(),
    )
    await _record_project_sync(storage, context, status, error_message)
    SYNC_OUTCOMES.labels(sync_type=context.sync_type, status=status).inc()

    message = f"Synced {outcome.created + outcome.updated} tasks from Jira ({outcome.created} new, {outcome.updated} updated)"
    if outcome.failed:
        message += f", {outcome.failed} failed"

    return SyncResult(
        success=True,
        status=status,
        log_id=sync_log.id,
        can_retry=bool(outcome.failed),
        created=outcome.created,
        updated=outcome.updated,
        failed=outcome.failed,
        error=error_message,
        message=message,
        data=outcome.data,
    )


def estimated_hours_from_issue(issue: Issue) -> int:
    if issue.time_estimate:
        return max(1, round_half_up(issue.time_estimate / 3600))
    return DEFAULT_ESTIMATED_HOURS


def milestone_status_from_issue(issue: Issue, delay_percentage: int) -> str:
    jira_status = (issue.status or "").strip().lower()
    if jira_status in DONE_STATUSES:
        return MilestoneStatus.COMPLETED.value
    if delay_percentage > HIGH_DELAY_THRESHOLD:
        return MilestoneStatus.DELAYED.value
    if jira_status in IN_PROGRESS_STATUSES:
        return MilestoneStatus.IN_PROGRESS.value
    return MilestoneStatus.PENDING.value


async def sync_project_issues(
    storage: Storage,
    project: Project,
    issues: Sequence[Issue],
    engine: FitScoringEngine,
) -> SyncOutcome:
    """
    Create or update one milestone per issue and refresh fit scores.

    Re-running with the same issues updates rows in place; no duplicate
    milestones or fit scores are created.
    """
    outcome = SyncOutcome()
    candidates = await storage.get_candidates_with_skills()

    for issue in issues:
        try:
            existing = await storage.get_milestone_by_jira_key(project.id, issue.key)
            if existing is None:
                existing = await storage.get_unlinked_milestone_by_name(project.id, issue.summary)

            delay = delay_from_time_tracking(issue.time_estimate, issue.time_spent)
            skill_map, source = await engine.generate_skill_map(issue.summary, issue.description or "")

            fields = {
                "name": issue.summary,
                "description": issue.description or "",
                "estimated_hours": estimated_hours_from_issue(issue),
                "skill_map": skill_map.model_dump(),
                "status": milestone_status_from_issue(issue, delay),
                "delay_percentage": delay,
                "jira_issue_key": issue.key,
                "jira_epic_key": issue.epic_key,
                "jira_sprint_id": issue.sprint_id,
                "jira_sprint_name": issue.sprint_name,
            }

            if existing:
                milestone = await storage.update_milestone(existing.id, **fields)
                outcome.updated += 1
                logger.info(f"Updated milestone {milestone.id} from {issue.key} (skill map: {source})")
            else:
                milestone = await storage.create_milestone(project_id=project.id, **fields)
                outcome.created += 1
                logger.info(f"Created milestone {milestone.id} from {issue.key} (skill map: {source})")
        except Exception as e:
            outcome.failed += 1
            outcome.errors.append(f"{issue.key}: {e}")
            logger.error(f"Failed to sync Jira issue {issue.key}: {e}")
            continue

        for candidate in candidates:
            try:
                analysis = await engine.score_fit(candidate.skills, candidate.experience or "", skill_map)
                await storage.upsert_fit_score(candidate.id, milestone.id, analysis)
            except Exception as e:
                logger.error(f"Failed to calculate fit score for candidate {candidate.id} on {issue.key}: {e}")

    for candidate in candidates:
        try:
            await recompute_candidate_priorities(storage, candidate.id)
        except Exception as e:
            logger.error(f"Failed to recompute priorities for candidate {candidate.id}: {e}")

    return outcome


async def sync_jira_project(
    storage: Storage,
    project: Project,
    engine: FitScoringEngine,
    client: Optional[JiraClient] = None,
) -> SyncResult:
    """
    Fetch a linked project's issues and sync them, logged as sync_project.

    Raises:
        ValueError: The project is not linked to a Jira project
    """
    if not project.jira_project_key:
        raise ValueError("Project is not linked to Jira")

    context = SyncContext(
        business_user_id=project.business_user_id,
        sync_type="sync_project",
        project_id=project.id,
        jira_project_key=project.jira_project_key,
    )

    async def operation() -> SyncOutcome:
        jira = client
        if jira is None:
            credentials = await storage.get_jira_credentials(project.business_user_id)
            if credentials is None:
                raise JiraNotConfiguredError("Jira not connected for this business")
            jira = JiraClient.from_credentials(credentials)

        issues = await jira.search_issues(project.jira_project_key)
        outcome = await sync_project_issues(storage, project, issues, engine)
        await storage.mark_jira_synced(project.business_user_id)
        return outcome

    return await run_logged_sync(storage, context, operation)
