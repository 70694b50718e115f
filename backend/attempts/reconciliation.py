"""
Academic Record Saga and Reconciliation

Completing an attempt is a two-step saga: the attempt is written as
COMPLETED first, then an ``AttemptCompleted`` event is applied to the owning
user's academic record. The attempt ID is the idempotency key, so applying
the same event twice changes nothing.

If the second step fails, the attempt stays COMPLETED and the gap is logged.
``ReconciliationService`` later finds COMPLETED attempts missing from their
user's ledger and applies each of them exactly once.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from backend.common.error_handling import IntegrityGapError, UserNotFoundError, log_error
from backend.common.logger import app_logger, attempt_context
from backend.domain.users.repository import UserRepository
from .models import Attempt, AttemptStatus
from .repository import AttemptRepository

logger = app_logger.getChild("attempts.reconciliation")


@dataclass(frozen=True)
class AttemptCompleted:
    """Domain event emitted once an attempt has been written as COMPLETED."""
    attempt_id: str
    user_id: str
    assessment_id: str
    score: int
    completed_at: datetime

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> 'AttemptCompleted':
        return cls(
            attempt_id=attempt.id,
            user_id=attempt.user_id,
            assessment_id=attempt.assessment_id,
            score=attempt.score,
            completed_at=attempt.metadata.completed_at,
        )


class AcademicRecordUpdater:
    """Applies AttemptCompleted events to user academic records."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def apply(self, event: AttemptCompleted) -> bool:
        """
        Apply an event to the user's totals.

        Returns:
            True if applied now, False if the attempt was already counted
        """
        applied = await self.users.apply_contribution(
            event.user_id, event.attempt_id, event.score, event.completed_at
        )
        log = attempt_context(logger, event.attempt_id, event.user_id)
        if applied:
            log.info(f"Applied score {event.score} to academic record")
        else:
            log.debug("Academic record already includes this attempt")
        return applied


@dataclass
class ReconciliationReport:
    checked: int = 0
    repaired: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "checked": self.checked,
            "repaired": list(self.repaired),
            "failed": list(self.failed),
        }


class ReconciliationService:
    """Detects and repairs completed attempts missing from academic records."""

    def __init__(self, attempts: AttemptRepository, users: UserRepository,
                 updater: AcademicRecordUpdater = None):
        self.attempts = attempts
        self.users = users
        self.updater = updater or AcademicRecordUpdater(users)

    async def find_gaps(self) -> List[Attempt]:
        """COMPLETED attempts whose contribution is absent from their user's ledger."""
        completed = await self.attempts.list_by_status(AttemptStatus.COMPLETED)
        ledgers: Dict[str, set] = {}
        gaps = []
        for attempt in completed:
            if attempt.user_id not in ledgers:
                try:
                    ledgers[attempt.user_id] = set(await self.users.applied_attempt_ids(attempt.user_id))
                except UserNotFoundError:
                    logger.warning(f"User {attempt.user_id} of attempt {attempt.id} no longer exists")
                    ledgers[attempt.user_id] = None
            if ledgers[attempt.user_id] is None:
                continue
            if attempt.id not in ledgers[attempt.user_id]:
                gaps.append(attempt)
        return gaps

    async def reconcile(self) -> ReconciliationReport:
        """
        Apply every missing contribution once.

        A failure on one attempt is logged and recorded in the report; the
        pass continues with the rest.
        """
        gaps = await self.find_gaps()
        report = ReconciliationReport(checked=len(gaps))

        for attempt in gaps:
            try:
                if await self.updater.apply(AttemptCompleted.from_attempt(attempt)):
                    report.repaired.append(attempt.id)
            except Exception as e:
                log_error(IntegrityGapError(attempt.id, attempt.user_id, cause=e), include_stack_trace=False)
                report.failed.append(attempt.id)

        logger.info(
            f"Reconciliation finished: {len(gaps)} gaps, "
            f"{len(report.repaired)} repaired, {len(report.failed)} failed"
        )
        return report
