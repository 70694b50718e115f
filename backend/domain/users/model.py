"""
User Domain Model

Only the parts of a user account the attempt engine touches: identity and
role for reports, and the cumulative academic record that completed attempts
feed into.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.common.serialization import SerializableMixin, parse_datetime
from backend.common.utils import round_half_up


class UserRole(enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class UserStatus(enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


@dataclass
class AcademicRecord(SerializableMixin):
    """
    Cumulative results of a user's completed attempts.

    ``applied_attempt_ids`` is the ledger of attempts already folded into the
    totals. An attempt contributes at most once, so replaying a completion is
    a no-op.
    """

    __serializable_fields__ = [
        "total_assessments", "total_score", "average_score",
        "last_activity", "applied_attempt_ids"
    ]
    __optional_fields__ = list(__serializable_fields__)

    total_assessments: int = 0
    total_score: int = 0
    average_score: int = 0
    last_activity: Optional[datetime] = None
    applied_attempt_ids: List[str] = field(default_factory=list)

    def has_applied(self, attempt_id: str) -> bool:
        return attempt_id in self.applied_attempt_ids

    def apply(self, attempt_id: str, score: int, when: datetime) -> bool:
        """
        Fold one completed attempt into the totals.

        Args:
            attempt_id: Idempotency key
            score: The attempt's 0-100 score
            when: Completion time, becomes ``last_activity``

        Returns:
            True if applied, False if this attempt was already counted
        """
        if self.has_applied(attempt_id):
            return False

        self.total_assessments += 1
        self.total_score += score
        self.average_score = round_half_up(self.total_score / self.total_assessments)
        self.last_activity = when
        self.applied_attempt_ids.append(attempt_id)
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AcademicRecord':
        kwargs = cls._collect_kwargs(data)
        kwargs["last_activity"] = parse_datetime(kwargs.get("last_activity"))
        kwargs["applied_attempt_ids"] = list(kwargs.get("applied_attempt_ids") or [])
        return cls(**kwargs)


@dataclass
class UserAcademicRecord(SerializableMixin):
    """A platform user together with their academic record."""

    __serializable_fields__ = [
        "id", "name", "email", "role", "status", "grade", "created_by", "academic"
    ]
    __optional_fields__ = ["status", "grade", "created_by", "academic"]

    id: str
    name: str
    email: str
    role: UserRole = UserRole.STUDENT
    status: UserStatus = UserStatus.ACTIVE
    grade: Optional[str] = None
    created_by: Optional[str] = None
    academic: AcademicRecord = field(default_factory=AcademicRecord)

    def __post_init__(self):
        if isinstance(self.role, str):
            self.role = UserRole(self.role)
        if isinstance(self.status, str):
            self.status = UserStatus(self.status)
        if isinstance(self.academic, dict):
            self.academic = AcademicRecord.from_dict(self.academic)

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def summary(self) -> Dict[str, Any]:
        """Identity fields shown in reports."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "grade": self.grade,
        }
