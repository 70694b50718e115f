"""
Question Domain Model Module

This module defines the core domain entities for the question bank. Questions
are authored elsewhere; the attempt engine only reads them.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
import uuid

from backend.common.serialization import SerializableMixin, parse_datetime


class QuestionType(enum.Enum):
    """Supported question formats."""
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    MATCHING = "MATCHING"
    ESSAY = "ESSAY"

    @property
    def uses_options(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)

    @property
    def uses_correct_answer(self) -> bool:
        return self in (QuestionType.SHORT_ANSWER, QuestionType.ESSAY)


class Difficulty(enum.Enum):
    """Difficulty tier of a question."""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class QuestionStatus(enum.Enum):
    """Lifecycle status; only ACTIVE questions may be added to new assessments."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    REVIEW = "REVIEW"


@dataclass
class AnswerOption(SerializableMixin):
    """One selectable option of a multiple-choice or true/false question."""

    __serializable_fields__ = ["text", "is_correct", "explanation"]
    __optional_fields__ = ["is_correct", "explanation"]

    text: str
    is_correct: bool = False
    explanation: str = ""


@dataclass
class Question(SerializableMixin):
    """
    Represents a question in the question bank.

    Attributes:
        id: Unique identifier for the question
        question_text: The question prompt
        question_type: Format of the question, drives grading
        subject: Subject the question belongs to
        topic: Topic used for analytics banding
        difficulty: Difficulty tier used for analytics banding
        options: Answer options (MULTIPLE_CHOICE / TRUE_FALSE only)
        correct_answer: Expected free-text answer (SHORT_ANSWER / ESSAY only)
        explanation: Explanation shown after answering
        tags: Free-form tags
        status: Lifecycle status
        version: Informal content version
        created_at: When the question was created
        updated_at: When the question was last updated
    """

    __serializable_fields__ = [
        "id", "question_text", "question_type", "subject", "topic", "difficulty",
        "options", "correct_answer", "explanation", "tags", "status", "version",
        "created_at", "updated_at"
    ]

    id: str
    question_text: str
    question_type: QuestionType
    subject: str
    topic: str
    difficulty: Difficulty
    options: List[AnswerOption] = field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: str = ""
    tags: List[str] = field(default_factory=list)
    status: QuestionStatus = QuestionStatus.DRAFT
    version: str = "1.0"
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        """Coerce enum values and enforce per-type field population."""
        if not self.id:
            self.id = str(uuid.uuid4())

        if isinstance(self.question_type, str):
            self.question_type = QuestionType(self.question_type)
        if isinstance(self.difficulty, str):
            self.difficulty = Difficulty(self.difficulty)
        if isinstance(self.status, str):
            self.status = QuestionStatus(self.status)

        self.options = [
            AnswerOption.from_dict(o) if isinstance(o, dict) else o
            for o in (self.options or [])
        ]

        if not self.question_text:
            raise ValueError("Question text is required")
        if not self.topic:
            raise ValueError("Topic is required")

        if self.question_type.uses_options:
            if not self.options:
                raise ValueError(f"{self.question_type.value} questions require options")
            if not any(o.is_correct for o in self.options):
                raise ValueError("At least one option must be marked correct")
            if self.correct_answer is not None:
                raise ValueError(f"{self.question_type.value} questions do not take a correct_answer")
        else:
            if self.options:
                raise ValueError(f"{self.question_type.value} questions do not take options")

        if self.question_type.uses_correct_answer and not self.correct_answer:
            raise ValueError(f"{self.question_type.value} questions require a correct_answer")

    @classmethod
    def create(cls,
               question_text: str,
               question_type: QuestionType,
               subject: str,
               topic: str,
               difficulty: Difficulty,
               options: Optional[List[AnswerOption]] = None,
               correct_answer: Optional[str] = None,
               explanation: str = "",
               status: QuestionStatus = QuestionStatus.ACTIVE) -> 'Question':
        """
        Create a new question with a generated ID.

        Returns:
            A new Question instance
        """
        return cls(
            id=str(uuid.uuid4()),
            question_text=question_text,
            question_type=question_type,
            subject=subject,
            topic=topic,
            difficulty=difficulty,
            options=options or [],
            correct_answer=correct_answer,
            explanation=explanation,
            status=status
        )

    @property
    def correct_option_texts(self) -> frozenset:
        """Texts of every option marked correct."""
        return frozenset(o.text for o in self.options if o.is_correct)

    def grading_snapshot(self) -> Dict[str, Any]:
        """
        The grading- and analytics-relevant content of this question.

        Copied into an attempt at start time so later edits by a teacher do
        not change how an in-flight or historical attempt is graded.
        """
        return {
            "id": self.id,
            "question_text": self.question_text,
            "question_type": self.question_type.value,
            "subject": self.subject,
            "topic": self.topic,
            "difficulty": self.difficulty.value,
            "options": [o.to_dict() for o in self.options],
            "correct_answer": self.correct_answer,
            "status": self.status.value,
            "version": self.version,
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> 'Question':
        """Rebuild a read-only Question from ``grading_snapshot`` output."""
        return cls.from_dict(snapshot)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        """
        Create a Question from a dictionary.

        Args:
            data: Dictionary containing question data

        Returns:
            A Question instance
        """
        kwargs = {k: v for k, v in data.items() if k in cls.__serializable_fields__}
        for key in ("created_at", "updated_at"):
            if kwargs.get(key):
                kwargs[key] = parse_datetime(kwargs[key])
            else:
                kwargs.pop(key, None)
        return cls(**kwargs)
