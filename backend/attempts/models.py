"""
Attempt Domain Model

An Attempt is one student's single run through one assessment. It owns a
snapshot of the assessment's questions taken at start time, the per-question
results, the derived score and the analytics computed at completion.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from backend.common.error_handling import InvalidStateError
from backend.common.serialization import SerializableMixin, camelize, parse_datetime
from backend.common.utils import percentage
from backend.config import ScoringPolicy
from backend.domain.questions.model import Question
from .scoring import question_value


class AttemptStatus(enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


@dataclass
class AttemptQuestion(SerializableMixin):
    """
    The per-question record of an attempt.

    ``snapshot`` is the grading-relevant question content copied at start;
    ``grading_outcome`` stays None until the question is answered.
    """

    __serializable_fields__ = [
        "question_id", "points", "user_answer", "is_correct", "points_awarded",
        "time_spent_seconds", "explanation_viewed", "grading_outcome", "snapshot"
    ]
    __optional_fields__ = [
        "user_answer", "is_correct", "points_awarded", "time_spent_seconds",
        "explanation_viewed", "grading_outcome", "snapshot"
    ]

    question_id: str
    points: int = 1
    user_answer: Any = None
    is_correct: bool = False
    points_awarded: int = 0
    time_spent_seconds: int = 0
    explanation_viewed: bool = False
    grading_outcome: Optional[str] = None
    snapshot: Dict[str, Any] = field(default_factory=dict)

    @property
    def answered(self) -> bool:
        return self.user_answer is not None

    def snapshot_question(self) -> Question:
        return Question.from_snapshot(self.snapshot)

    def to_api_dict(self) -> Dict[str, Any]:
        """Wire form; the snapshot (with correct answers) never leaves the server."""
        data = self.to_dict()
        data.pop("snapshot")
        user_answer = data.pop("user_answer")
        data = camelize(data)
        data["userAnswer"] = user_answer
        return data


@dataclass
class AttemptMetadata(SerializableMixin):
    __serializable_fields__ = [
        "started_at", "completed_at", "abandoned_at", "attempt_number",
        "is_adaptive", "difficulty_adjustments", "time_limit_minutes", "abandon_reason"
    ]
    __optional_fields__ = list(__serializable_fields__)

    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None
    attempt_number: int = 1
    is_adaptive: bool = False
    difficulty_adjustments: List[Dict[str, Any]] = field(default_factory=list)
    time_limit_minutes: Optional[int] = None
    abandon_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttemptMetadata':
        kwargs = cls._collect_kwargs(data)
        for key in ("started_at", "completed_at", "abandoned_at"):
            if key in kwargs:
                kwargs[key] = parse_datetime(kwargs[key])
        return cls(**kwargs)


@dataclass
class TopicAccuracy(SerializableMixin):
    __serializable_fields__ = ["topic", "questions_attempted", "questions_correct", "accuracy"]

    topic: str
    questions_attempted: int = 0
    questions_correct: int = 0
    accuracy: int = 0


@dataclass
class TimeAnalysis(SerializableMixin):
    """``time_distribution`` has the keys quick, medium and slow."""

    __serializable_fields__ = ["average_time_per_question", "time_distribution"]

    average_time_per_question: int = 0
    time_distribution: Dict[str, int] = field(
        default_factory=lambda: {"quick": 0, "medium": 0, "slow": 0}
    )


@dataclass
class DifficultyBand(SerializableMixin):
    __serializable_fields__ = ["accuracy", "count"]

    accuracy: int = 0
    count: int = 0


@dataclass
class AttemptAnalytics(SerializableMixin):
    __serializable_fields__ = ["accuracy_by_topic", "time_analysis", "difficulty_analysis"]

    accuracy_by_topic: List[TopicAccuracy] = field(default_factory=list)
    time_analysis: TimeAnalysis = field(default_factory=TimeAnalysis)
    difficulty_analysis: Dict[str, DifficultyBand] = field(
        default_factory=lambda: {band: DifficultyBand() for band in ("easy", "medium", "hard")}
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttemptAnalytics':
        return cls(
            accuracy_by_topic=[TopicAccuracy.from_dict(t) for t in data.get("accuracy_by_topic", [])],
            time_analysis=TimeAnalysis.from_dict(data.get("time_analysis") or {
                "average_time_per_question": 0,
                "time_distribution": {"quick": 0, "medium": 0, "slow": 0},
            }),
            difficulty_analysis={
                band: DifficultyBand.from_dict(values)
                for band, values in (data.get("difficulty_analysis") or {}).items()
            },
        )


@dataclass
class Attempt(SerializableMixin):
    """
    One student's run through one assessment.

    Attributes:
        id: Unique identifier
        user_id: The student
        assessment_id: The assessment being taken
        questions: Per-question records in presentation order
        status: Lifecycle state
        score: 0-100, derived at completion
        total_points: Maximum points, derived at completion
        points_awarded: Points earned, derived at completion
        time_taken_seconds: Wall-clock time from start to completion
        metadata: Timing and numbering details
        analytics: Computed at completion
        version: Optimistic concurrency counter, bumped on every write
    """

    __serializable_fields__ = [
        "id", "user_id", "assessment_id", "questions", "status", "score",
        "total_points", "points_awarded", "time_taken_seconds", "metadata",
        "analytics", "version"
    ]
    __optional_fields__ = [
        "status", "score", "total_points", "points_awarded",
        "time_taken_seconds", "metadata", "analytics", "version"
    ]

    id: str
    user_id: str
    assessment_id: str
    questions: List[AttemptQuestion] = field(default_factory=list)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    score: int = 0
    total_points: int = 0
    points_awarded: int = 0
    time_taken_seconds: int = 0
    metadata: AttemptMetadata = field(default_factory=AttemptMetadata)
    analytics: Optional[AttemptAnalytics] = None
    version: int = 0

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())
        if isinstance(self.status, str):
            self.status = AttemptStatus(self.status)

    @classmethod
    def new(cls, user_id: str, assessment_id: str, questions: List[AttemptQuestion],
            metadata: AttemptMetadata) -> 'Attempt':
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            assessment_id=assessment_id,
            questions=questions,
            metadata=metadata,
        )

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED

    def ensure_in_progress(self, operation: str) -> None:
        if not self.is_in_progress:
            raise InvalidStateError(self.id, self.status.value, operation)

    def deadline(self, grace_seconds: int = 0) -> Optional[datetime]:
        """Last moment a submission is accepted, or None without a time limit."""
        if not self.metadata.time_limit_minutes:
            return None
        return self.metadata.started_at + timedelta(
            minutes=self.metadata.time_limit_minutes, seconds=grace_seconds
        )

    def is_expired(self, now: datetime, grace_seconds: int = 0) -> bool:
        deadline = self.deadline(grace_seconds)
        return deadline is not None and now > deadline

    def progress(self) -> Dict[str, int]:
        answered = sum(1 for q in self.questions if q.answered)
        return {
            "answered": answered,
            "total": len(self.questions),
            "percent": percentage(answered, len(self.questions)),
        }

    def recompute_totals(self, policy: ScoringPolicy) -> None:
        """
        Derive total_points, points_awarded and score from the question records.

        Under FLAT, total_points is the question count and points_awarded the
        number of correct answers. A zero total scores 0.
        """
        self.total_points = sum(question_value(q.points, policy) for q in self.questions)
        self.points_awarded = sum(q.points_awarded for q in self.questions if q.is_correct)
        self.score = percentage(self.points_awarded, self.total_points)

    def mark_completed(self, now: datetime) -> None:
        self.status = AttemptStatus.COMPLETED
        if self.metadata.completed_at is None:
            self.metadata.completed_at = now
        elapsed = self.metadata.completed_at - self.metadata.started_at
        self.time_taken_seconds = max(0, int(elapsed.total_seconds()))

    def mark_abandoned(self, now: datetime, reason: str) -> None:
        self.status = AttemptStatus.ABANDONED
        self.metadata.abandoned_at = now
        self.metadata.abandon_reason = reason

    def result_summary(self) -> Dict[str, int]:
        return {
            "score": self.score,
            "total_points": self.total_points,
            "points_awarded": self.points_awarded,
        }

    def to_api_dict(self) -> Dict[str, Any]:
        data = self.to_dict()
        data.pop("questions")
        data = camelize(data)
        data["questions"] = [q.to_api_dict() for q in self.questions]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attempt':
        kwargs = cls._collect_kwargs(data)
        kwargs["questions"] = [AttemptQuestion.from_dict(q) for q in kwargs.get("questions", [])]
        if "metadata" in kwargs:
            kwargs["metadata"] = AttemptMetadata.from_dict(kwargs["metadata"])
        if kwargs.get("analytics"):
            kwargs["analytics"] = AttemptAnalytics.from_dict(kwargs["analytics"])
        return cls(**kwargs)
