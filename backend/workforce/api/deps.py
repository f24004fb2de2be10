"""
Shared FastAPI dependencies.

Storage, the assignment state machine and the risk monitor are process-wide
singletons; the assignment lock only serializes transitions when every
request goes through the same AssignmentService.
"""

from typing import Optional

from workforce.database import async_session
from workforce.services.assignments import AssignmentService
from workforce.services.fit_scoring import FitScoringEngine, get_scoring_engine
from workforce.services.risk_monitor import RiskMonitor
from workforce.storage import Storage

_storage: Optional[Storage] = None
_assignments: Optional[AssignmentService] = None
_risk_monitor: Optional[RiskMonitor] = None


def get_storage() -> Storage:
    global _storage
    if _storage is None:
        _storage = Storage(async_session)
    return _storage


def get_assignment_service() -> AssignmentService:
    global _assignments
    if _assignments is None:
        _assignments = AssignmentService(get_storage())
    return _assignments


def get_risk_monitor() -> RiskMonitor:
    global _risk_monitor
    if _risk_monitor is None:
        _risk_monitor = RiskMonitor(get_storage(), get_scoring_engine(), get_assignment_service())
    return _risk_monitor


def get_engine() -> FitScoringEngine:
    return get_scoring_engine()
