"""
Builders for test data.
"""

from datetime import datetime, timedelta

from backend.domain.assessments.model import (
    AssessmentDefinition,
    AssessmentDifficulty,
    AssessmentSettings,
    AssessmentStatus,
)
from backend.domain.questions.model import Difficulty, Question, QuestionStatus

START_TIME = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        self.now += timedelta(seconds=seconds, minutes=minutes)


def make_question(question_id, question_type, topic="Algebra", difficulty=Difficulty.EASY,
                  options=None, correct_answer=None, subject="Mathematics"):
    return Question(
        id=question_id,
        question_text=f"Question {question_id}",
        question_type=question_type,
        subject=subject,
        topic=topic,
        difficulty=difficulty,
        options=options or [],
        correct_answer=correct_answer,
        status=QuestionStatus.ACTIVE,
    )


def make_assessment(assessment_id, question_ids, subject="Mathematics", topic="Algebra",
                    status=AssessmentStatus.ACTIVE, points=None, **settings):
    assessment = AssessmentDefinition.create(
        title=f"Assessment {assessment_id}",
        subject=subject,
        topic=topic,
        difficulty=AssessmentDifficulty.EASY,
        question_ids=question_ids,
        settings=AssessmentSettings(**settings),
        points=points,
        status=status,
        created_by="teacher-1",
    )
    assessment.id = assessment_id
    return assessment
