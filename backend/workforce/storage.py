"""
Storage - persistence facade over the async SQLAlchemy session factory

Every method opens its own short-lived session and returns detached ORM
objects (the session factory uses expire_on_commit=False, so attributes stay
readable after commit). Callers needing several writes to commit or roll
back together use Storage.transaction().

Architecture:
    Storage(session_factory)
    ├── Projects / Milestones / Candidates   CRUD + filtered lists
    ├── FitScores                            upsert on (candidate, milestone)
    ├── BusinessInterests                    CRUD + bulk priority update
    ├── RiskAlerts                           append-only
    ├── BackgroundJobs                       create + atomic claim
    └── Jira                                 encrypted settings + immutable sync logs
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workforce.database import Base, utcnow
from workforce.models import (
    COMMITTED_STATUSES,
    BackgroundJob,
    BackupStatus,
    BusinessInterest,
    Candidate,
    FitScore,
    JiraSettings,
    JiraSyncLog,
    JobStatus,
    Milestone,
    MilestoneStatus,
    Project,
    RiskAlert,
)
from workforce.schemas.analysis import FitAnalysis
from workforce.services.encryption import safe_decrypt, safe_encrypt

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

MIN_TOP_CANDIDATE_SCORE = 50


class NotFoundError(LookupError):
    """Requested entity does not exist."""


class SyncLogFinalizedError(RuntimeError):
    """A sync log with completed_at set was about to be mutated."""


class Storage:
    """
    Async repository for every entity in workforce.models.

    Attributes:
        session_factory: async_sessionmaker producing AsyncSession objects
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session with an open transaction, committed on exit, rolled back on error."""
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    # ==================== Generic Helpers ====================

    async def _get(self, model: Type[ModelT], entity_id: str) -> Optional[ModelT]:
        async with self.session_factory() as session:
            return await session.get(model, entity_id)

    async def _create(self, model: Type[ModelT], **fields: Any) -> ModelT:
        async with self.session_factory() as session:
            entity = model(**fields)
            session.add(entity)
            await session.commit()
            return entity

    async def _update(self, model: Type[ModelT], entity_id: str, **fields: Any) -> Optional[ModelT]:
        async with self.session_factory() as session:
            entity = await session.get(model, entity_id)
            if entity is None:
                return None
            for field, value in fields.items():
                setattr(entity, field, value)
            await session.commit()
            return entity

    async def _list(self, query) -> List[Any]:
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ==================== Projects ====================

    async def create_project(self, **fields: Any) -> Project:
        return await self._create(Project, **fields)

    async def get_project(self, project_id: str) -> Optional[Project]:
        return await self._get(Project, project_id)

    async def list_projects(self, business_user_id: Optional[str] = None) -> List[Project]:
        query = select(Project)
        if business_user_id:
            query = query.where(Project.business_user_id == business_user_id)
        return await self._list(query.order_by(Project.created_at.desc()))

    async def update_project(self, project_id: str, **fields: Any) -> Optional[Project]:
        return await self._update(Project, project_id, **fields)

    async def delete_project(self, project_id: str) -> bool:
        """
        Delete a project and everything hanging off its milestones.

        Children are deleted explicitly so the cascade does not depend on the
        database enforcing foreign keys (SQLite does not by default).
        """
        async with self.transaction() as session:
            project = await session.get(Project, project_id)
            if project is None:
                return False

            milestone_ids = select(Milestone.id).where(Milestone.project_id == project_id)
            await session.execute(delete(FitScore).where(FitScore.milestone_id.in_(milestone_ids)))
            await session.execute(delete(RiskAlert).where(RiskAlert.milestone_id.in_(milestone_ids)))
            await session.execute(
                delete(BusinessInterest).where(BusinessInterest.milestone_id.in_(milestone_ids))
            )
            await session.execute(delete(Milestone).where(Milestone.project_id == project_id))
            await session.delete(project)

        logger.info(f"Deleted project {project_id} with its milestones")
        return True

    # ==================== Milestones ====================

    async def create_milestone(self, **fields: Any) -> Milestone:
        return await self._create(Milestone, **fields)

    async def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return await self._get(Milestone, milestone_id)

    async def list_milestones(self, project_id: Optional[str] = None) -> List[Milestone]:
        query = select(Milestone)
        if project_id:
            query = query.where(Milestone.project_id == project_id)
        return await self._list(query.order_by(Milestone.created_at.desc()))

    async def update_milestone(self, milestone_id: str, **fields: Any) -> Optional[Milestone]:
        return await self._update(Milestone, milestone_id, **fields)

    async def get_milestones_with_skill_map(self) -> List[Milestone]:
        """Milestones eligible for fit scoring (skill map present)."""
        return await self._list(
            select(Milestone).where(Milestone.skill_map.is_not(None)).order_by(Milestone.created_at)
        )

    async def list_open_milestones(self) -> List[Milestone]:
        """Milestones that are not completed (risk sweep candidates)."""
        return await self._list(
            select(Milestone)
            .where(Milestone.status != MilestoneStatus.COMPLETED.value)
            .order_by(Milestone.created_at)
        )

    async def get_milestone_by_jira_key(self, project_id: str, jira_issue_key: str) -> Optional[Milestone]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Milestone).where(
                    Milestone.project_id == project_id,
                    Milestone.jira_issue_key == jira_issue_key,
                )
            )
            return result.scalars().first()

    async def get_unlinked_milestone_by_name(self, project_id: str, name: str) -> Optional[Milestone]:
        """Milestone with this name that no Jira issue has claimed yet."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Milestone).where(
                    Milestone.project_id == project_id,
                    Milestone.name == name,
                    Milestone.jira_issue_key.is_(None),
                )
            )
            return result.scalars().first()

    # ==================== Candidates ====================

    async def create_candidate(self, **fields: Any) -> Candidate:
        return await self._create(Candidate, **fields)

    async def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        return await self._get(Candidate, candidate_id)

    async def get_candidate_by_email(self, email: str) -> Optional[Candidate]:
        async with self.session_factory() as session:
            result = await session.execute(select(Candidate).where(Candidate.email == email))
            return result.scalar_one_or_none()

    async def list_candidates(self) -> List[Candidate]:
        return await self._list(select(Candidate).order_by(Candidate.created_at.desc()))

    async def update_candidate(self, candidate_id: str, **fields: Any) -> Optional[Candidate]:
        return await self._update(Candidate, candidate_id, **fields)

    async def get_candidates_with_skills(self) -> List[Candidate]:
        candidates = await self._list(select(Candidate).order_by(Candidate.created_at))
        return [c for c in candidates if c.skills]

    # ==================== Fit Scores ====================

    async def get_fit_score(self, candidate_id: str, milestone_id: str) -> Optional[FitScore]:
        async with self.session_factory() as session:
            return await self._find_fit_score(session, candidate_id, milestone_id)

    @staticmethod
    async def _find_fit_score(session: AsyncSession, candidate_id: str, milestone_id: str) -> Optional[FitScore]:
        result = await session.execute(
            select(FitScore).where(
                FitScore.candidate_id == candidate_id,
                FitScore.milestone_id == milestone_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_fit_score(self, candidate_id: str, milestone_id: str, analysis: FitAnalysis) -> FitScore:
        """
        Insert or update the single fit score row for a pair.

        A concurrent insert of the same pair loses on the unique constraint
        and is retried as an update.
        """
        values = {
            "score": analysis.score,
            "skill_overlap": analysis.skill_overlap,
            "experience_match": analysis.experience_match,
            "soft_skill_relevance": analysis.soft_skill_relevance,
            "reasoning": analysis.reasoning,
            "source": analysis.source,
        }

        async with self.session_factory() as session:
            existing = await self._find_fit_score(session, candidate_id, milestone_id)
            if existing is None:
                fit_score = FitScore(candidate_id=candidate_id, milestone_id=milestone_id, **values)
                session.add(fit_score)
                try:
                    await session.commit()
                    return fit_score
                except IntegrityError:
                    await session.rollback()
                    logger.info(f"Fit score for {candidate_id}/{milestone_id} inserted concurrently, updating")
            else:
                return await self._apply_fit_values(session, existing, values)

        async with self.session_factory() as session:
            existing = await self._find_fit_score(session, candidate_id, milestone_id)
            return await self._apply_fit_values(session, existing, values)

    @staticmethod
    async def _apply_fit_values(session: AsyncSession, fit_score: FitScore, values: Dict[str, Any]) -> FitScore:
        for field, value in values.items():
            setattr(fit_score, field, value)
        fit_score.updated_at = utcnow()
        await session.commit()
        return fit_score

    async def list_fit_scores_for_candidate(self, candidate_id: str) -> List[FitScore]:
        return await self._list(
            select(FitScore).where(FitScore.candidate_id == candidate_id).order_by(FitScore.score.desc())
        )

    async def list_fit_scores_for_milestone(self, milestone_id: str) -> List[FitScore]:
        return await self._list(
            select(FitScore).where(FitScore.milestone_id == milestone_id).order_by(FitScore.score.desc())
        )

    async def get_top_candidates_for_milestone(
        self,
        milestone_id: str,
        limit: int = 10,
    ) -> List[Tuple[FitScore, Candidate]]:
        """Fit scores >= 50 for a milestone with their candidates, best first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(FitScore, Candidate)
                .join(Candidate, Candidate.id == FitScore.candidate_id)
                .where(
                    FitScore.milestone_id == milestone_id,
                    FitScore.score >= MIN_TOP_CANDIDATE_SCORE,
                )
                .order_by(FitScore.score.desc(), FitScore.created_at)
                .limit(limit)
            )
            return [(fit_score, candidate) for fit_score, candidate in result.all()]

    # ==================== Business Interests ====================

    async def create_interest(self, **fields: Any) -> BusinessInterest:
        return await self._create(BusinessInterest, **fields)

    async def get_interest(self, interest_id: str) -> Optional[BusinessInterest]:
        return await self._get(BusinessInterest, interest_id)

    async def update_interest(self, interest_id: str, **fields: Any) -> Optional[BusinessInterest]:
        return await self._update(BusinessInterest, interest_id, **fields)

    async def list_interests(
        self,
        candidate_id: Optional[str] = None,
        milestone_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[BusinessInterest]:
        query = select(BusinessInterest)
        if candidate_id:
            query = query.where(BusinessInterest.candidate_id == candidate_id)
        if milestone_id:
            query = query.where(BusinessInterest.milestone_id == milestone_id)
        if status:
            query = query.where(BusinessInterest.status == status)
        return await self._list(query.order_by(BusinessInterest.created_at, BusinessInterest.id))

    async def set_priority_scores(self, scores: Dict[str, int]) -> None:
        """Persist a batch of priority scores in one transaction."""
        if not scores:
            return
        async with self.transaction() as session:
            for interest_id, priority_score in scores.items():
                await session.execute(
                    update(BusinessInterest)
                    .where(BusinessInterest.id == interest_id)
                    .values(priority_score=priority_score)
                )

    # ==================== Risk Alerts ====================

    async def create_risk_alert(self, **fields: Any) -> RiskAlert:
        return await self._create(RiskAlert, **fields)

    async def list_risk_alerts(self, milestone_id: str) -> List[RiskAlert]:
        return await self._list(
            select(RiskAlert).where(RiskAlert.milestone_id == milestone_id).order_by(RiskAlert.created_at.desc())
        )

    async def get_latest_risk_alert(self, milestone_id: str) -> Optional[RiskAlert]:
        alerts = await self._list(
            select(RiskAlert)
            .where(RiskAlert.milestone_id == milestone_id)
            .order_by(RiskAlert.created_at.desc())
            .limit(1)
        )
        return alerts[0] if alerts else None

    # ==================== Background Jobs ====================

    async def create_job(self, **fields: Any) -> BackgroundJob:
        return await self._create(BackgroundJob, **fields)

    async def get_job(self, job_id: str) -> Optional[BackgroundJob]:
        return await self._get(BackgroundJob, job_id)

    async def update_job(self, job_id: str, **fields: Any) -> Optional[BackgroundJob]:
        return await self._update(BackgroundJob, job_id, **fields)

    async def list_jobs(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[BackgroundJob]:
        query = select(BackgroundJob)
        if user_id:
            query = query.where(BackgroundJob.user_id == user_id)
        if status:
            query = query.where(BackgroundJob.status == status)
        return await self._list(query.order_by(BackgroundJob.created_at.desc()))

    async def claim_pending_jobs(self, limit: int) -> List[BackgroundJob]:
        """
        Atomically move up to `limit` pending jobs to processing.

        Each claim is a conditional UPDATE guarded by status = 'pending', so a
        job seen by two pollers is claimed by exactly one of them. Claiming
        stamps started_at and counts the attempt.
        """
        if limit <= 0:
            return []

        async with self.session_factory() as session:
            result = await session.execute(
                select(BackgroundJob.id)
                .where(BackgroundJob.status == JobStatus.PENDING.value)
                .order_by(BackgroundJob.created_at, BackgroundJob.id)
                .limit(limit)
            )
            candidate_ids = list(result.scalars().all())

            claimed_ids = []
            for job_id in candidate_ids:
                claim = await session.execute(
                    update(BackgroundJob)
                    .where(
                        BackgroundJob.id == job_id,
                        BackgroundJob.status == JobStatus.PENDING.value,
                    )
                    .values(
                        status=JobStatus.PROCESSING.value,
                        started_at=utcnow(),
                        attempts=BackgroundJob.attempts + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if claim.rowcount == 1:
                    claimed_ids.append(job_id)
            await session.commit()

            if not claimed_ids:
                return []
            result = await session.execute(
                select(BackgroundJob)
                .where(BackgroundJob.id.in_(claimed_ids))
                .order_by(BackgroundJob.created_at, BackgroundJob.id)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    # ==================== Jira ====================

    async def get_jira_settings(self, business_user_id: str) -> Optional[JiraSettings]:
        """Stored settings (api token still encrypted)."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(JiraSettings).where(JiraSettings.business_user_id == business_user_id)
            )
            return result.scalar_one_or_none()

    async def save_jira_settings(
        self,
        business_user_id: str,
        jira_domain: str,
        jira_email: str,
        jira_api_token: str,
    ) -> JiraSettings:
        """Create or replace a business's Jira connection, encrypting the token."""
        encrypted_token = safe_encrypt(jira_api_token)
        async with self.session_factory() as session:
            result = await session.execute(
                select(JiraSettings).where(JiraSettings.business_user_id == business_user_id)
            )
            jira_settings = result.scalar_one_or_none()
            if jira_settings is None:
                jira_settings = JiraSettings(business_user_id=business_user_id)
                session.add(jira_settings)

            jira_settings.jira_domain = jira_domain
            jira_settings.jira_email = jira_email
            jira_settings.jira_api_token = encrypted_token
            jira_settings.is_configured = bool(jira_domain and jira_email and jira_api_token)
            await session.commit()
            return jira_settings

    async def get_jira_credentials(self, business_user_id: str) -> Optional[Dict[str, str]]:
        """Decrypted credentials, or None when Jira is not configured."""
        jira_settings = await self.get_jira_settings(business_user_id)
        if jira_settings is None or not jira_settings.is_configured:
            return None
        return {
            "domain": jira_settings.jira_domain,
            "email": jira_settings.jira_email,
            "api_token": safe_decrypt(jira_settings.jira_api_token),
        }

    async def mark_jira_synced(self, business_user_id: str) -> None:
        async with self.transaction() as session:
            await session.execute(
                update(JiraSettings)
                .where(JiraSettings.business_user_id == business_user_id)
                .values(last_synced_at=utcnow())
            )

    async def create_sync_log(self, **fields: Any) -> JiraSyncLog:
        return await self._create(JiraSyncLog, **fields)

    async def get_sync_log(self, log_id: str) -> Optional[JiraSyncLog]:
        return await self._get(JiraSyncLog, log_id)

    async def update_sync_log(self, log_id: str, **fields: Any) -> JiraSyncLog:
        """
        Update an open sync log.

        Raises:
            NotFoundError: Unknown log id
            SyncLogFinalizedError: The log already has completed_at set
        """
        async with self.session_factory() as session:
            sync_log = await session.get(JiraSyncLog, log_id)
            if sync_log is None:
                raise NotFoundError(f"Sync log {log_id} not found")
            if sync_log.completed_at is not None:
                raise SyncLogFinalizedError(f"Sync log {log_id} is already finalized")
            for field, value in fields.items():
                setattr(sync_log, field, value)
            await session.commit()
            return sync_log

    async def list_sync_logs(
        self,
        business_user_id: str,
        project_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[JiraSyncLog]:
        query = select(JiraSyncLog).where(JiraSyncLog.business_user_id == business_user_id)
        if project_id:
            query = query.where(JiraSyncLog.project_id == project_id)
        return await self._list(query.order_by(JiraSyncLog.started_at.desc()).limit(limit))


def committed_milestones_query(candidate_id: str, exclude_milestone_id: Optional[str] = None):
    """
    Milestones where the candidate holds a committed primary or an active backup.

    Served by the indexes on assigned_candidate_id and backup_candidate_id.
    """
    query = select(Milestone).where(
        or_(
            and_(
                Milestone.assigned_candidate_id == candidate_id,
                Milestone.assignment_status.in_(COMMITTED_STATUSES),
            ),
            and_(
                Milestone.backup_candidate_id == candidate_id,
                Milestone.backup_assignment_status == BackupStatus.ACTIVE.value,
            ),
        )
    )
    if exclude_milestone_id:
        query = query.where(Milestone.id != exclude_milestone_id)
    return query.order_by(Milestone.created_at)
