"""
Risk Monitor - delay-based risk assessment and backup activation

Delay:
    delay% = round((time_spent - time_estimate) / time_estimate × 100)
    0 when the estimate is unknown or not yet exceeded

Tiers:
    delay < 10%   -> low
    10% - 20%     -> medium
    delay > 20%   -> high (milestone marked delayed)

Crossing into high with a backup on standby activates the backup through the
assignment state machine. The primary assignment is not touched.
"""

import logging
from typing import Optional

from workforce.models import BackupStatus, MilestoneStatus, RiskAlert, RiskLevel
from workforce.schemas.analysis import round_half_up
from workforce.services.assignments import AssignmentService
from workforce.services.fallback_scoring import risk_level_for_delay
from workforce.services.fit_scoring import FitScoringEngine
from workforce.storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_HOURS = 40


def delay_from_time_tracking(time_estimate: Optional[float], time_spent: Optional[float]) -> int:
    """Percentage overrun of time spent against the estimate."""
    estimate = time_estimate or 0
    spent = time_spent or 0
    if estimate > 0 and spent > estimate:
        return round_half_up((spent - estimate) / estimate * 100)
    return 0


class RiskMonitor:
    """
    Assesses milestone risk and records RiskAlert snapshots.

    Attributes:
        storage: Persistence facade
        engine: Fit-scoring engine (AI risk prediction with fallback)
        assignments: State machine used for backup activation
    """

    def __init__(self, storage: Storage, engine: FitScoringEngine, assignments: AssignmentService):
        self.storage = storage
        self.engine = engine
        self.assignments = assignments

    async def assess_milestone(self, milestone_id: str, delay_percentage: Optional[int] = None) -> Optional[RiskAlert]:
        """
        Predict risk for one milestone and persist the outcome.

        Args:
            milestone_id: Milestone to assess
            delay_percentage: Fresh delay measurement; the stored value is used when None

        Returns:
            The created RiskAlert, or None when the milestone does not exist
        """
        milestone = await self.storage.get_milestone(milestone_id)
        if milestone is None:
            return None

        delay = max(0, delay_percentage if delay_percentage is not None else (milestone.delay_percentage or 0))
        analysis, source = await self.engine.predict_risk(
            milestone.name,
            milestone.description or "",
            delay,
            milestone.estimated_hours or DEFAULT_ESTIMATED_HOURS,
        )

        previous_level = milestone.risk_level
        is_high = analysis.risk_level == RiskLevel.HIGH.value

        await self.storage.update_milestone(
            milestone_id,
            risk_level=analysis.risk_level,
            delay_percentage=delay,
            status=MilestoneStatus.DELAYED.value if is_high else milestone.status,
        )

        backup_activated = False
        crossed_into_high = is_high and previous_level != RiskLevel.HIGH.value
        if crossed_into_high and milestone.backup_assignment_status == BackupStatus.STANDBY.value:
            result = await self.assignments.activate_backup(milestone_id)
            backup_activated = result.valid
            if result.valid:
                logger.warning(f"Milestone {milestone_id} at high risk ({delay}% delay): backup activated")
            else:
                logger.warning(f"Milestone {milestone_id} at high risk but backup activation failed: {result.error}")

        ai_analysis = analysis.model_dump()
        ai_analysis["source"] = source

        alert = await self.storage.create_risk_alert(
            milestone_id=milestone_id,
            risk_level=analysis.risk_level,
            delay_percentage=delay,
            ai_analysis=ai_analysis,
            backup_activated=backup_activated,
        )
        logger.info(f"Risk assessed for milestone {milestone_id}: {analysis.risk_level} ({source})")
        return alert

    async def sweep(self) -> int:
        """
        Re-assess open milestones whose delay tier no longer matches the stored level.

        A milestone already assessed at its current delay is skipped even when
        the judge's level disagrees with the delay tier.

        Returns:
            Number of milestones assessed
        """
        assessed = 0
        for milestone in await self.storage.list_open_milestones():
            delay = milestone.delay_percentage or 0
            if delay == 0 and milestone.risk_level is None:
                continue
            if risk_level_for_delay(delay) == milestone.risk_level:
                continue
            latest = await self.storage.get_latest_risk_alert(milestone.id)
            if latest is not None and latest.delay_percentage == delay:
                continue

            try:
                await self.assess_milestone(milestone.id)
                assessed += 1
            except Exception as e:
                logger.error(f"Risk assessment failed for milestone {milestone.id}: {e}")

        if assessed:
            logger.info(f"Risk sweep assessed {assessed} milestones")
        return assessed
