"""
Assignment State Machine - primary/backup transitions without double-booking

Primary track:
    unassigned --offer--> offered --confirm--> confirmed --start--> active --complete--> completed
    offered --reject--> unassigned
    confirmed/active --release--> unassigned

Backup track:
    none --assign_backup--> standby --offer_backup--> offered --accept_backup--> active
    standby --activate_backup--> active          (risk-triggered)
    standby/offered/active --clear_backup--> none

Double-booking guard (a candidate holds at most one committed primary or
active backup system-wide):
    1. Validation: candidate available + indexed query for committed
       milestones (assigned_candidate_id / backup_candidate_id indexes)
    2. Serialization: every transition runs under one asyncio.Lock inside a
       single database transaction
    3. Storage: partial unique index uq_milestones_committed_candidate; an
       IntegrityError is reported as a double-booking failure

Validation failures are returned as AssignmentResult(valid=False, error=...)
and never raised. Error messages are shown to users verbatim.

Activating a backup never touches the primary assignment; resolving the
primary is left to the business.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.database import utcnow
from workforce.models import (
    AssignmentStatus,
    BackupStatus,
    Candidate,
    Milestone,
    MilestoneStatus,
    Project,
)
from workforce.storage import Storage, committed_milestones_query

logger = logging.getLogger(__name__)

PRIMARY_TRANSITIONS: Dict[str, Tuple[FrozenSet[AssignmentStatus], AssignmentStatus]] = {
    "offer": (frozenset({AssignmentStatus.UNASSIGNED}), AssignmentStatus.OFFERED),
    "confirm": (frozenset({AssignmentStatus.OFFERED}), AssignmentStatus.CONFIRMED),
    "reject": (frozenset({AssignmentStatus.OFFERED}), AssignmentStatus.UNASSIGNED),
    "start": (frozenset({AssignmentStatus.CONFIRMED}), AssignmentStatus.ACTIVE),
    "complete": (frozenset({AssignmentStatus.ACTIVE}), AssignmentStatus.COMPLETED),
    "release": (frozenset({AssignmentStatus.CONFIRMED, AssignmentStatus.ACTIVE}), AssignmentStatus.UNASSIGNED),
}

BACKUP_TRANSITIONS: Dict[str, Tuple[FrozenSet[BackupStatus], BackupStatus]] = {
    "assign_backup": (frozenset({BackupStatus.NONE}), BackupStatus.STANDBY),
    "offer_backup": (frozenset({BackupStatus.STANDBY}), BackupStatus.OFFERED),
    "accept_backup": (frozenset({BackupStatus.OFFERED}), BackupStatus.ACTIVE),
    "activate_backup": (frozenset({BackupStatus.STANDBY}), BackupStatus.ACTIVE),
    "clear_backup": (
        frozenset({BackupStatus.STANDBY, BackupStatus.OFFERED, BackupStatus.ACTIVE}),
        BackupStatus.NONE,
    ),
}

CANDIDATE_NOT_FOUND = "Candidate not found"
MILESTONE_NOT_FOUND = "Milestone not found"
NOT_ASSIGNED = "You are not assigned to this milestone"
ALREADY_CONFIRMED = "Assignment already confirmed"
STORAGE_CONFLICT = (
    "Candidate is already committed to another milestone. "
    "Complete or reassign existing work before adding new assignments."
)


def unavailable_message(name: str) -> str:
    return (
        f"{name} is currently marked as unavailable. "
        f"Please ask them to update their availability status."
    )


def backup_unavailable_message(name: str) -> str:
    return (
        f"{name} is currently unavailable. "
        f"Please confirm their availability before assigning as backup."
    )


def double_booking_message(name: str, project_names: List[str]) -> str:
    return (
        f"{name} is already assigned to {len(project_names)} active project(s): "
        f"{', '.join(project_names)}. Complete or reassign existing work before adding new assignments."
    )


def invalid_transition_message(action: str, status: str) -> str:
    return f"Cannot {action.replace('_', ' ')} from status '{status}'"


def can_transition(table: Dict, action: str, current: str) -> bool:
    allowed, _ = table[action]
    return current in {s.value for s in allowed}


@dataclass
class AssignmentResult:
    """
    Outcome of a transition.

    Attributes:
        valid: True when the transition was applied
        error: User-facing message when valid is False
        milestone: Milestone state after the transition (when found)
        active_assignments: Conflicting milestones for double-booking failures
    """
    valid: bool
    error: Optional[str] = None
    milestone: Optional[Milestone] = None
    active_assignments: List[Milestone] = field(default_factory=list)

    @classmethod
    def fail(cls, error: str, milestone: Optional[Milestone] = None, active_assignments=None):
        return cls(valid=False, error=error, milestone=milestone, active_assignments=active_assignments or [])


class AssignmentService:
    """
    Applies assignment transitions against storage.

    One instance should serve the whole process so that the lock serializes
    every transition.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self._lock = asyncio.Lock()

    async def _run(self, action: str, apply: Callable[[AsyncSession], Awaitable[AssignmentResult]]) -> AssignmentResult:
        async with self._lock:
            try:
                async with self.storage.transaction() as session:
                    result = await apply(session)
            except IntegrityError as e:
                logger.warning(f"Assignment {action} rejected by storage constraint: {e}")
                return AssignmentResult.fail(STORAGE_CONFLICT)

        if result.valid:
            logger.info(f"Assignment {action} applied to milestone {result.milestone.id}")
        return result

    # ==================== Validation ====================

    @staticmethod
    async def _active_assignments(
        session: AsyncSession,
        candidate_id: str,
        exclude_milestone_id: Optional[str] = None,
    ) -> List[Milestone]:
        result = await session.execute(committed_milestones_query(candidate_id, exclude_milestone_id))
        return list(result.scalars().all())

    @staticmethod
    async def _project_names(session: AsyncSession, milestones: List[Milestone]) -> List[str]:
        project_ids = [m.project_id for m in milestones]
        result = await session.execute(select(Project.id, Project.name).where(Project.id.in_(project_ids)))
        names = dict(result.all())
        return [names.get(pid, "Unknown Project") for pid in project_ids]

    async def _validate_commitment(
        self,
        session: AsyncSession,
        candidate: Optional[Candidate],
        milestone: Milestone,
    ) -> Optional[AssignmentResult]:
        """Availability and double-booking check; None when the candidate may commit."""
        if candidate is None:
            return AssignmentResult.fail(CANDIDATE_NOT_FOUND, milestone)

        if candidate.is_available is False:
            return AssignmentResult.fail(unavailable_message(candidate.name), milestone)

        active = await self._active_assignments(session, candidate.id, exclude_milestone_id=milestone.id)
        if active:
            project_names = await self._project_names(session, active)
            return AssignmentResult.fail(
                double_booking_message(candidate.name, project_names),
                milestone,
                active,
            )
        return None

    async def _restore_availability(self, session: AsyncSession, candidate_id: Optional[str]) -> None:
        """Mark the candidate available again once nothing commits them."""
        if not candidate_id:
            return
        candidate = await session.get(Candidate, candidate_id)
        if candidate is None:
            return
        if not await self._active_assignments(session, candidate_id):
            candidate.is_available = True

    async def validate_assignment(self, candidate_id: str, milestone_id: str) -> AssignmentResult:
        """Dry-run of the offer checks without changing anything."""
        async with self.storage.session_factory() as session:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            candidate = await session.get(Candidate, candidate_id)
            failure = await self._validate_commitment(session, candidate, milestone)
            return failure or AssignmentResult(valid=True, milestone=milestone)

    async def get_active_assignments(self, candidate_id: str) -> List[Milestone]:
        async with self.storage.session_factory() as session:
            return await self._active_assignments(session, candidate_id)

    # ==================== Primary Track ====================

    async def offer(self, milestone_id: str, candidate_id: str) -> AssignmentResult:
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if not can_transition(PRIMARY_TRANSITIONS, "offer", milestone.assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("offer", milestone.assignment_status), milestone
                )

            candidate = await session.get(Candidate, candidate_id)
            failure = await self._validate_commitment(session, candidate, milestone)
            if failure:
                return failure

            milestone.assigned_candidate_id = candidate_id
            milestone.assignment_status = AssignmentStatus.OFFERED.value
            milestone.assignment_confirmed_at = None
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("offer", apply)

    async def confirm(self, milestone_id: str, candidate_id: str) -> AssignmentResult:
        """Candidate accepts an offer; re-validated at confirmation time."""
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if milestone.assigned_candidate_id != candidate_id:
                return AssignmentResult.fail(NOT_ASSIGNED, milestone)
            if milestone.assignment_status in (AssignmentStatus.CONFIRMED.value, AssignmentStatus.ACTIVE.value):
                return AssignmentResult.fail(ALREADY_CONFIRMED, milestone)
            if not can_transition(PRIMARY_TRANSITIONS, "confirm", milestone.assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("confirm", milestone.assignment_status), milestone
                )

            candidate = await session.get(Candidate, candidate_id)
            failure = await self._validate_commitment(session, candidate, milestone)
            if failure:
                return failure

            milestone.assignment_status = AssignmentStatus.CONFIRMED.value
            milestone.assignment_confirmed_at = utcnow()
            candidate.is_available = False
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("confirm", apply)

    async def reject(self, milestone_id: str, candidate_id: str, reason: Optional[str] = None) -> AssignmentResult:
        """Candidate declines an offer. Availability is left as is."""
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if milestone.assigned_candidate_id != candidate_id:
                return AssignmentResult.fail(NOT_ASSIGNED, milestone)
            if not can_transition(PRIMARY_TRANSITIONS, "reject", milestone.assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("reject", milestone.assignment_status), milestone
                )

            milestone.assigned_candidate_id = None
            milestone.assignment_status = AssignmentStatus.UNASSIGNED.value
            milestone.assignment_confirmed_at = None
            logger.info(
                f"Candidate {candidate_id} rejected assignment to milestone {milestone_id}. "
                f"Reason: {reason or 'Not provided'}"
            )
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("reject", apply)

    async def _simple_primary(self, action: str, milestone_id: str) -> AssignmentResult:
        _, target = PRIMARY_TRANSITIONS[action]

        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if not can_transition(PRIMARY_TRANSITIONS, action, milestone.assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message(action, milestone.assignment_status), milestone
                )

            candidate_id = milestone.assigned_candidate_id
            milestone.assignment_status = target.value

            if action == "release":
                milestone.assigned_candidate_id = None
                milestone.assignment_confirmed_at = None
            elif action == "start":
                milestone.status = MilestoneStatus.IN_PROGRESS.value
            elif action == "complete":
                milestone.status = MilestoneStatus.COMPLETED.value

            if action in ("release", "complete"):
                await self._restore_availability(session, candidate_id)
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run(action, apply)

    async def start(self, milestone_id: str) -> AssignmentResult:
        return await self._simple_primary("start", milestone_id)

    async def complete(self, milestone_id: str) -> AssignmentResult:
        return await self._simple_primary("complete", milestone_id)

    async def release(self, milestone_id: str) -> AssignmentResult:
        return await self._simple_primary("release", milestone_id)

    # ==================== Backup Track ====================

    async def assign_backup(self, milestone_id: str, candidate_id: str) -> AssignmentResult:
        """Put a candidate on standby. Only availability is required."""
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if not can_transition(BACKUP_TRANSITIONS, "assign_backup", milestone.backup_assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("assign_backup", milestone.backup_assignment_status), milestone
                )

            candidate = await session.get(Candidate, candidate_id)
            if candidate is None:
                return AssignmentResult.fail(CANDIDATE_NOT_FOUND, milestone)
            if candidate.is_available is False:
                return AssignmentResult.fail(backup_unavailable_message(candidate.name), milestone)

            milestone.backup_candidate_id = candidate_id
            milestone.backup_assignment_status = BackupStatus.STANDBY.value
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("assign_backup", apply)

    async def offer_backup(self, milestone_id: str) -> AssignmentResult:
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if not can_transition(BACKUP_TRANSITIONS, "offer_backup", milestone.backup_assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("offer_backup", milestone.backup_assignment_status), milestone
                )
            milestone.backup_assignment_status = BackupStatus.OFFERED.value
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("offer_backup", apply)

    async def _commit_backup(self, action: str, milestone_id: str, candidate_id: Optional[str]) -> AssignmentResult:
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if candidate_id is not None and milestone.backup_candidate_id != candidate_id:
                return AssignmentResult.fail(NOT_ASSIGNED, milestone)
            if not can_transition(BACKUP_TRANSITIONS, action, milestone.backup_assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message(action, milestone.backup_assignment_status), milestone
                )

            candidate = await session.get(Candidate, milestone.backup_candidate_id)
            failure = await self._validate_commitment(session, candidate, milestone)
            if failure:
                return failure

            milestone.backup_assignment_status = BackupStatus.ACTIVE.value
            candidate.is_available = False
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run(action, apply)

    async def accept_backup(self, milestone_id: str, candidate_id: str) -> AssignmentResult:
        """Backup candidate accepts an offered backup role."""
        return await self._commit_backup("accept_backup", milestone_id, candidate_id)

    async def activate_backup(self, milestone_id: str) -> AssignmentResult:
        """
        Risk-triggered standby -> active.

        The backup is validated like an offer and becomes unavailable; the
        primary assignment is left untouched.
        """
        return await self._commit_backup("activate_backup", milestone_id, None)

    async def clear_backup(self, milestone_id: str) -> AssignmentResult:
        async def apply(session: AsyncSession) -> AssignmentResult:
            milestone = await session.get(Milestone, milestone_id)
            if milestone is None:
                return AssignmentResult.fail(MILESTONE_NOT_FOUND)
            if not can_transition(BACKUP_TRANSITIONS, "clear_backup", milestone.backup_assignment_status):
                return AssignmentResult.fail(
                    invalid_transition_message("clear_backup", milestone.backup_assignment_status), milestone
                )

            was_active = milestone.backup_assignment_status == BackupStatus.ACTIVE.value
            candidate_id = milestone.backup_candidate_id
            milestone.backup_candidate_id = None
            milestone.backup_assignment_status = BackupStatus.NONE.value
            if was_active:
                await self._restore_availability(session, candidate_id)
            return AssignmentResult(valid=True, milestone=milestone)

        return await self._run("clear_backup", apply)
