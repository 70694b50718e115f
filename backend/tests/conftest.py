"""
Shared fixtures for the ExamForge backend tests.

Everything runs against the in-memory repositories with a controllable
clock, so time-limit behavior can be tested without sleeping.
"""

import pytest

from backend.attempts.memory_repository import MemoryAttemptRepository
from backend.config import Settings
from backend.container import build_container
from backend.domain.assessments.memory_repository import MemoryAssessmentRepository
from backend.domain.assessments.model import AssessmentStatus
from backend.domain.questions.memory_repository import MemoryQuestionRepository
from backend.domain.questions.model import AnswerOption, Difficulty, QuestionType
from backend.domain.users.memory_repository import MemoryUserRepository
from backend.domain.users.model import UserAcademicRecord, UserRole
from backend.tests.factories import FakeClock, make_assessment, make_question


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(CONFLICT_RETRY_DELAY=0.0)


@pytest.fixture
def question_bank():
    """Four Algebra/Geometry questions covering every graded type."""
    return [
        make_question("q-mc", QuestionType.MULTIPLE_CHOICE, options=[
            AnswerOption("3"), AnswerOption("4", True), AnswerOption("5"),
        ]),
        make_question("q-tf", QuestionType.TRUE_FALSE, options=[
            AnswerOption("True", True), AnswerOption("False"),
        ]),
        make_question("q-short", QuestionType.SHORT_ANSWER, difficulty=Difficulty.MEDIUM,
                      correct_answer="Paris"),
        make_question("q-essay", QuestionType.ESSAY, topic="Geometry", difficulty=Difficulty.HARD,
                      correct_answer="A model essay"),
    ]


@pytest.fixture
def assessment():
    return make_assessment(
        "assessment-1", ["q-mc", "q-tf", "q-short"],
        points={"q-short": 2}, time_limit_minutes=30, max_attempts=3,
    )


@pytest.fixture
def inactive_assessment():
    return make_assessment("assessment-draft", ["q-mc"], status=AssessmentStatus.DRAFT)


@pytest.fixture
def users():
    return [
        UserAcademicRecord(id="teacher-1", name="Tara Teacher", email="tara@example.com",
                           role=UserRole.TEACHER),
        UserAcademicRecord(id="student-1", name="Sam Student", email="sam@example.com",
                           grade="10", created_by="teacher-1"),
        UserAcademicRecord(id="student-2", name="Alex Student", email="alex@example.com",
                           grade="10", created_by="teacher-1"),
    ]


@pytest.fixture
def container(question_bank, assessment, inactive_assessment, users, settings, clock):
    return build_container(
        MemoryQuestionRepository(question_bank),
        MemoryAssessmentRepository([assessment, inactive_assessment]),
        MemoryUserRepository(users),
        MemoryAttemptRepository(),
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def service(container):
    return container.attempt_service
