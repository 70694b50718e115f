"""
Eligibility Guard

Decides whether a user may start a new attempt on an assessment. Read-only:
the caller supplies the user's existing attempts on that assessment.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from backend.common.error_handling import IneligibleError
from backend.domain.assessments.model import AssessmentDefinition
from backend.domain.users.model import UserAcademicRecord
from .models import Attempt, AttemptStatus


class DenyReason(enum.Enum):
    NOT_ACTIVE = "NOT_ACTIVE"
    ALREADY_IN_PROGRESS = "ALREADY_IN_PROGRESS"
    ATTEMPTS_EXCEEDED = "ATTEMPTS_EXCEEDED"


@dataclass(frozen=True)
class EligibilityDecision:
    """
    Result of an eligibility check.

    ``existing_attempt_id`` is set for ALREADY_IN_PROGRESS so the caller can
    resume that attempt instead of creating a duplicate.
    """
    allowed: bool
    completed_count: int = 0
    reason: Optional[DenyReason] = None
    existing_attempt_id: Optional[str] = None

    def to_error(self, assessment: AssessmentDefinition) -> IneligibleError:
        messages = {
            DenyReason.NOT_ACTIVE: f"Assessment {assessment.id} is not active",
            DenyReason.ALREADY_IN_PROGRESS: "An attempt on this assessment is already in progress",
            DenyReason.ATTEMPTS_EXCEEDED: (
                f"Maximum attempts ({assessment.settings.max_attempts}) reached for this assessment"
            ),
        }
        details = {
            "assessment_id": assessment.id,
            "completed_attempts": self.completed_count,
            "max_attempts": assessment.settings.max_attempts,
        }
        if self.existing_attempt_id:
            details["attempt_id"] = self.existing_attempt_id
        return IneligibleError(self.reason.value, messages[self.reason], details=details)


def can_start(user: UserAcademicRecord,
              assessment: AssessmentDefinition,
              attempts: Iterable[Attempt]) -> EligibilityDecision:
    """
    Check whether ``user`` may start ``assessment``.

    Checks run in order: the assessment must be ACTIVE, the user must not
    already have an attempt in progress, and the number of COMPLETED attempts
    must be below ``max_attempts``. Abandoned attempts do not count.

    Args:
        user: The student
        assessment: The assessment to start
        attempts: The user's attempts on this assessment, any status

    Returns:
        An EligibilityDecision
    """
    attempts = [a for a in attempts if a.user_id == user.id and a.assessment_id == assessment.id]
    completed = sum(1 for a in attempts if a.status == AttemptStatus.COMPLETED)

    if not assessment.is_active:
        return EligibilityDecision(False, completed, DenyReason.NOT_ACTIVE)

    in_progress = next((a for a in attempts if a.is_in_progress), None)
    if in_progress is not None:
        return EligibilityDecision(False, completed, DenyReason.ALREADY_IN_PROGRESS, in_progress.id)

    if completed >= assessment.settings.max_attempts:
        return EligibilityDecision(False, completed, DenyReason.ATTEMPTS_EXCEEDED)

    return EligibilityDecision(True, completed)
