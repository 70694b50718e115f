"""
Service layer for performance reports.

Loads the attempts, assessments and users a report needs and hands them to
the pure reductions in ``backend.attempts.reports``.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List

from backend.attempts import reports
from backend.attempts.models import Attempt, AttemptStatus
from backend.attempts.repository import AttemptRepository
from backend.common.logger import get_logger
from backend.common.utils import utcnow
from backend.config import Settings, settings as default_settings
from backend.domain.assessments.repository import AssessmentRepository
from backend.domain.questions.repository import QuestionRepository
from backend.domain.users.repository import UserRepository

logger = get_logger(__name__)


class ReportService:
    """
    Builds the assessment, user, class, subject and system reports.
    """

    def __init__(self,
                 attempts: AttemptRepository,
                 assessments: AssessmentRepository,
                 questions: QuestionRepository,
                 users: UserRepository,
                 settings: Settings = default_settings,
                 clock: Callable[[], datetime] = utcnow):
        self.attempts = attempts
        self.assessments = assessments
        self.questions = questions
        self.users = users
        self.settings = settings
        self.clock = clock

    async def _completed_for_user(self, user_id: str) -> List[Attempt]:
        return await self.attempts.list_for_user(user_id, status=AttemptStatus.COMPLETED)

    async def assessment_report(self, assessment_id: str) -> Dict[str, Any]:
        """
        Report on one assessment.

        Raises:
            AssessmentNotFoundError: Unknown assessment
        """
        assessment = await self.assessments.require(assessment_id)
        attempts = await self.attempts.list_for_assessments([assessment_id], status=AttemptStatus.COMPLETED)
        users = await self.users.get_many({a.user_id for a in attempts})
        questions = await self.questions.get_many(assessment.question_ids())
        logger.debug(f"Assessment report for {assessment_id} over {len(attempts)} attempts")
        return reports.assessment_report(assessment, attempts, users, questions)

    async def user_report(self, user_id: str) -> Dict[str, Any]:
        """
        Report on one user.

        Raises:
            UserNotFoundError: Unknown user
        """
        user = await self.users.require(user_id)
        attempts = await self._completed_for_user(user_id)
        assessments = await self.assessments.get_many({a.assessment_id for a in attempts})
        return reports.user_report(user, attempts, assessments, self.settings.DEFAULT_PASSING_SCORE)

    async def user_topics(self, user_id: str) -> List[Dict[str, Any]]:
        """Accumulated topic accuracy for one user, weakest first."""
        await self.users.require(user_id)
        attempts = await self._completed_for_user(user_id)
        return [entry.to_dict() for entry in reports.topic_rollup(attempts)]

    async def class_report(self, teacher_id: str) -> Dict[str, Any]:
        """
        Report on the students a teacher created.

        Raises:
            UserNotFoundError: Unknown teacher
        """
        await self.users.require(teacher_id)
        students = await self.users.find_students_of(teacher_id)
        attempts: List[Attempt] = []
        for student in students:
            attempts.extend(await self._completed_for_user(student.id))
        assessments = await self.assessments.get_many({a.assessment_id for a in attempts})
        logger.debug(f"Class report for {teacher_id}: {len(students)} students, {len(attempts)} attempts")
        return reports.class_report(
            teacher_id, students, attempts, assessments, self.settings.DEFAULT_PASSING_SCORE
        )

    async def subject_report(self, subject: str) -> Dict[str, Any]:
        """Report on a subject; an unknown subject yields an empty report."""
        assessments = [a for a in await self.assessments.find_by_subject(subject) if a.is_active]
        attempts = await self.attempts.list_for_assessments(
            [a.id for a in assessments], status=AttemptStatus.COMPLETED
        )
        users = await self.users.get_many({a.user_id for a in attempts})
        return reports.subject_report(
            subject, assessments, attempts, users, self.settings.DEFAULT_PASSING_SCORE
        )

    async def system_stats(self) -> Dict[str, int]:
        attempts = await self.attempts.list_by_status(AttemptStatus.COMPLETED)
        return reports.system_attempt_stats(attempts, self.clock())
