"""
Service wiring.

Builds the repositories and services for one storage backend and bundles
them in a ServiceContainer, which the application keeps on ``app.state``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import sessionmaker

from backend.attempts.memory_repository import MemoryAttemptRepository
from backend.attempts.reconciliation import ReconciliationService
from backend.attempts.repository import AttemptRepository
from backend.attempts.service import AttemptService
from backend.common.utils import utcnow
from backend.config import Settings, settings as default_settings
from backend.domain.assessments.memory_repository import MemoryAssessmentRepository
from backend.domain.assessments.repository import AssessmentRepository
from backend.domain.questions.memory_repository import MemoryQuestionRepository
from backend.domain.questions.repository import QuestionRepository
from backend.domain.users.memory_repository import MemoryUserRepository
from backend.domain.users.repository import UserRepository
from backend.reports.service import ReportService


@dataclass
class ServiceContainer:
    questions: QuestionRepository
    assessments: AssessmentRepository
    users: UserRepository
    attempts: AttemptRepository
    attempt_service: AttemptService
    report_service: ReportService
    reconciliation: ReconciliationService


def build_container(questions: QuestionRepository,
                    assessments: AssessmentRepository,
                    users: UserRepository,
                    attempts: AttemptRepository,
                    settings: Settings = default_settings,
                    clock: Callable[[], datetime] = utcnow) -> ServiceContainer:
    """Wire services over the given repositories."""
    return ServiceContainer(
        questions=questions,
        assessments=assessments,
        users=users,
        attempts=attempts,
        attempt_service=AttemptService(
            attempts, assessments, questions, users, settings=settings, clock=clock
        ),
        report_service=ReportService(
            attempts, assessments, questions, users, settings=settings, clock=clock
        ),
        reconciliation=ReconciliationService(attempts, users),
    )


def build_memory_container(settings: Settings = default_settings,
                           clock: Callable[[], datetime] = utcnow) -> ServiceContainer:
    """Empty in-memory stores, for development and tests."""
    return build_container(
        MemoryQuestionRepository(),
        MemoryAssessmentRepository(),
        MemoryUserRepository(),
        MemoryAttemptRepository(),
        settings=settings,
        clock=clock,
    )


def build_sql_container(session_factory: sessionmaker,
                        settings: Settings = default_settings,
                        clock: Callable[[], datetime] = utcnow) -> ServiceContainer:
    """SQL-backed stores sharing one session factory."""
    from backend.database.repositories import (
        SqlAssessmentRepository,
        SqlAttemptRepository,
        SqlQuestionRepository,
        SqlUserRepository,
    )

    return build_container(
        SqlQuestionRepository(session_factory),
        SqlAssessmentRepository(session_factory),
        SqlUserRepository(session_factory),
        SqlAttemptRepository(session_factory),
        settings=settings,
        clock=clock,
    )
