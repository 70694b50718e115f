"""
Assessment Definition Domain Model

An assessment is an ordered, weighted list of question references plus the
settings that govern attempts (time limit, attempt cap, passing score).
Authored by teachers; read-only to the attempt engine.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.common.serialization import SerializableMixin, parse_datetime


class AssessmentDifficulty(enum.Enum):
    """Difficulty of a whole assessment. ADAPTIVE flags the attempt as adaptive."""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    ADAPTIVE = "ADAPTIVE"


class AssessmentStatus(enum.Enum):
    """Publication status; only ACTIVE assessments can be started."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


@dataclass
class AssessmentQuestion(SerializableMixin):
    """A reference to a bank question with its weight and position."""

    __serializable_fields__ = ["question_id", "points", "order"]

    question_id: str
    points: int
    order: int

    def __post_init__(self):
        if self.points < 1:
            raise ValueError(f"Question {self.question_id} must be worth at least 1 point")


@dataclass
class AssessmentSettings(SerializableMixin):
    """Per-assessment attempt settings."""

    __serializable_fields__ = [
        "time_limit_minutes", "shuffle_questions", "shuffle_answers",
        "allow_backtracking", "show_results_immediately",
        "passing_score_percent", "max_attempts"
    ]
    __optional_fields__ = list(__serializable_fields__)

    time_limit_minutes: int = 60
    shuffle_questions: bool = False
    shuffle_answers: bool = False
    allow_backtracking: bool = True
    show_results_immediately: bool = True
    passing_score_percent: int = 70
    max_attempts: int = 3

    def __post_init__(self):
        if self.time_limit_minutes < 1:
            raise ValueError("time_limit_minutes must be at least 1")
        if not 0 <= self.passing_score_percent <= 100:
            raise ValueError("passing_score_percent must be between 0 and 100")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


@dataclass
class AssessmentDefinition(SerializableMixin):
    """
    An assessment as authored by a teacher.

    Attributes:
        id: Unique identifier
        title: Display title
        subject: Subject used by subject-level reports
        topic: Headline topic of the assessment
        difficulty: Difficulty tier, or ADAPTIVE
        questions: Question references sorted by ``order``
        settings: Attempt settings
        status: Publication status
        created_by: ID of the authoring teacher or admin
        version: Informal content version
    """

    __serializable_fields__ = [
        "id", "title", "subject", "topic", "difficulty", "questions", "settings",
        "status", "created_by", "version", "created_at", "updated_at"
    ]
    __optional_fields__ = [
        "settings", "status", "created_by", "version", "created_at", "updated_at"
    ]

    id: str
    title: str
    subject: str
    topic: str
    difficulty: AssessmentDifficulty
    questions: List[AssessmentQuestion] = field(default_factory=list)
    settings: AssessmentSettings = field(default_factory=AssessmentSettings)
    status: AssessmentStatus = AssessmentStatus.DRAFT
    created_by: Optional[str] = None
    version: str = "1.0"
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())
        if isinstance(self.difficulty, str):
            self.difficulty = AssessmentDifficulty(self.difficulty)
        if isinstance(self.status, str):
            self.status = AssessmentStatus(self.status)
        if isinstance(self.settings, dict):
            self.settings = AssessmentSettings.from_dict(self.settings)

        self.questions = sorted(
            (AssessmentQuestion.from_dict(q) if isinstance(q, dict) else q for q in self.questions),
            key=lambda q: q.order
        )
        self._validate_order()

    def _validate_order(self) -> None:
        """Orders must be unique and run 1..n with no gaps."""
        orders = [q.order for q in self.questions]
        if orders != list(range(1, len(orders) + 1)):
            raise ValueError(f"Question orders must be unique and contiguous from 1, got {orders}")

        question_ids = [q.question_id for q in self.questions]
        if len(set(question_ids)) != len(question_ids):
            raise ValueError("An assessment may reference each question only once")

    @property
    def is_active(self) -> bool:
        return self.status == AssessmentStatus.ACTIVE

    @property
    def is_adaptive(self) -> bool:
        return self.difficulty == AssessmentDifficulty.ADAPTIVE

    @property
    def passing_score(self) -> int:
        return self.settings.passing_score_percent

    def total_points(self) -> int:
        """Sum of the configured points of every question."""
        return sum(q.points for q in self.questions)

    def question_ids(self) -> List[str]:
        return [q.question_id for q in self.questions]

    @classmethod
    def create(cls,
               title: str,
               subject: str,
               topic: str,
               difficulty: AssessmentDifficulty,
               question_ids: List[str],
               settings: Optional[AssessmentSettings] = None,
               points: Optional[Dict[str, int]] = None,
               status: AssessmentStatus = AssessmentStatus.ACTIVE,
               created_by: Optional[str] = None) -> 'AssessmentDefinition':
        """
        Build an assessment from question IDs in presentation order.

        Args:
            points: Optional per-question weights; unlisted questions are worth 1
        """
        points = points or {}
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            subject=subject,
            topic=topic,
            difficulty=difficulty,
            questions=[
                AssessmentQuestion(question_id=qid, points=points.get(qid, 1), order=i)
                for i, qid in enumerate(question_ids, start=1)
            ],
            settings=settings or AssessmentSettings(),
            status=status,
            created_by=created_by
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AssessmentDefinition':
        kwargs = cls._collect_kwargs(data)
        for key in ("created_at", "updated_at"):
            if kwargs.get(key):
                kwargs[key] = parse_datetime(kwargs[key])
            else:
                kwargs.pop(key, None)
        return cls(**kwargs)
