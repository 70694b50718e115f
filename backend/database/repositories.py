"""
SQL Repository Implementations

SQLAlchemy (async) implementations of the domain repository interfaces.
Every public method opens its own session and transaction. Transient
connection failures are retried a bounded number of times and then surface
as DatabaseError.
"""

import functools
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from backend.attempts.models import Attempt, AttemptStatus
from backend.attempts.repository import AttemptRepository, InsertResult
from backend.common.error_handling import (
    AttemptNotFoundError,
    ConcurrencyConflictError,
    DatabaseError,
    UserNotFoundError,
    retry,
)
from backend.common.utils import round_half_up
from backend.database.models import (
    AcademicContributionModel,
    AssessmentModel,
    AttemptModel,
    QuestionModel,
    UserModel,
)
from backend.domain.assessments.model import AssessmentDefinition
from backend.domain.assessments.repository import AssessmentRepository
from backend.domain.questions.model import Question, QuestionStatus
from backend.domain.questions.repository import QuestionRepository
from backend.domain.users.model import UserAcademicRecord, UserRole
from backend.domain.users.repository import UserRepository

logger = logging.getLogger(__name__)

IN_PROGRESS = AttemptStatus.IN_PROGRESS.value


def db_operation(func):
    """Retry transient connection failures, then raise DatabaseError."""
    retried = retry(max_retries=2, retry_delay=0.1, retry_exceptions=(OperationalError,))(func)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await retried(*args, **kwargs)
        except OperationalError as e:
            raise DatabaseError(f"Database operation {func.__name__} failed", cause=e) from e

    return wrapper


class SqlRepository:
    """Holds the session factory shared by the SQL repositories."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory


class SqlQuestionRepository(SqlRepository, QuestionRepository):

    @db_operation
    async def get_by_id(self, question_id: str) -> Optional[Question]:
        async with self.session_factory() as session:
            row = await session.get(QuestionModel, question_id)
            return Question.from_dict(row.document) if row else None

    @db_operation
    async def get_many(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        question_ids = list(question_ids)
        if not question_ids:
            return {}
        async with self.session_factory() as session:
            result = await session.execute(select(QuestionModel).where(QuestionModel.id.in_(question_ids)))
            return {row.id: Question.from_dict(row.document) for row in result.scalars()}

    @db_operation
    async def save(self, question: Question) -> Question:
        document = question.to_dict()
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(QuestionModel, question.id)
                if row is None:
                    session.add(QuestionModel.from_document(document))
                else:
                    row.refresh_from(document)
        return question

    @db_operation
    async def delete(self, question_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(QuestionModel, question_id)
                if row is None:
                    return False
                await session.delete(row)
        return True

    async def _find(self, *criteria, limit: int) -> List[Question]:
        query = select(QuestionModel).where(
            QuestionModel.status == QuestionStatus.ACTIVE.value, *criteria
        ).limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [Question.from_dict(row.document) for row in result.scalars()]

    @db_operation
    async def find_by_topic(self, topic: str, limit: int = 10) -> List[Question]:
        return await self._find(QuestionModel.topic == topic, limit=limit)


class SqlAssessmentRepository(SqlRepository, AssessmentRepository):

    @db_operation
    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentDefinition]:
        async with self.session_factory() as session:
            row = await session.get(AssessmentModel, assessment_id)
            return AssessmentDefinition.from_dict(row.document) if row else None

    @db_operation
    async def get_many(self, assessment_ids: Iterable[str]) -> Dict[str, AssessmentDefinition]:
        assessment_ids = list(assessment_ids)
        if not assessment_ids:
            return {}
        async with self.session_factory() as session:
            result = await session.execute(
                select(AssessmentModel).where(AssessmentModel.id.in_(assessment_ids))
            )
            return {row.id: AssessmentDefinition.from_dict(row.document) for row in result.scalars()}

    @db_operation
    async def save(self, assessment: AssessmentDefinition) -> AssessmentDefinition:
        document = assessment.to_dict()
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(AssessmentModel, assessment.id)
                if row is None:
                    session.add(AssessmentModel.from_document(document))
                else:
                    row.refresh_from(document)
        return assessment

    @db_operation
    async def delete(self, assessment_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(AssessmentModel, assessment_id)
                if row is None:
                    return False
                await session.delete(row)
        return True

    @db_operation
    async def find_by_subject(self, subject: str) -> List[AssessmentDefinition]:
        async with self.session_factory() as session:
            result = await session.execute(select(AssessmentModel).where(AssessmentModel.subject == subject))
            return [AssessmentDefinition.from_dict(row.document) for row in result.scalars()]


class SqlUserRepository(SqlRepository, UserRepository):
    """
    Users are stored as a document plus academic counter columns. The
    ``academic_contributions`` table is the per-attempt ledger.
    """

    @staticmethod
    def _to_domain(row: UserModel, ledger: List[str]) -> UserAcademicRecord:
        document = dict(row.document)
        document["academic"] = {
            "total_assessments": row.total_assessments,
            "total_score": row.total_score,
            "average_score": row.average_score,
            "last_activity": row.last_activity,
            "applied_attempt_ids": ledger,
        }
        return UserAcademicRecord.from_dict(document)

    async def _ledgers(self, session, user_ids: List[str]) -> Dict[str, List[str]]:
        result = await session.execute(
            select(AcademicContributionModel.user_id, AcademicContributionModel.attempt_id)
            .where(AcademicContributionModel.user_id.in_(user_ids))
            .order_by(AcademicContributionModel.applied_at)
        )
        ledgers: Dict[str, List[str]] = {user_id: [] for user_id in user_ids}
        for user_id, attempt_id in result.all():
            ledgers[user_id].append(attempt_id)
        return ledgers

    @db_operation
    async def get_by_id(self, user_id: str) -> Optional[UserAcademicRecord]:
        async with self.session_factory() as session:
            row = await session.get(UserModel, user_id)
            if row is None:
                return None
            ledgers = await self._ledgers(session, [user_id])
            return self._to_domain(row, ledgers[user_id])

    @db_operation
    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserAcademicRecord]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        async with self.session_factory() as session:
            result = await session.execute(select(UserModel).where(UserModel.id.in_(user_ids)))
            rows = list(result.scalars())
            ledgers = await self._ledgers(session, [row.id for row in rows])
            return {row.id: self._to_domain(row, ledgers[row.id]) for row in rows}

    @db_operation
    async def save(self, user: UserAcademicRecord) -> UserAcademicRecord:
        """
        Insert or update a user's profile fields.

        Academic counters are written only when the user is first inserted;
        afterwards they change only through ``apply_contribution``.
        """
        document = user.to_dict()
        document.pop("academic")
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(UserModel, user.id)
                if row is None:
                    row = UserModel.from_document(document)
                    row.total_assessments = user.academic.total_assessments
                    row.total_score = user.academic.total_score
                    row.average_score = user.academic.average_score
                    row.last_activity = user.academic.last_activity
                    session.add(row)
                else:
                    row.refresh_from(document)
        return user

    @db_operation
    async def find_students_of(self, teacher_id: str) -> List[UserAcademicRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserModel).where(
                    UserModel.created_by == teacher_id,
                    UserModel.role == UserRole.STUDENT.value,
                )
            )
            rows = list(result.scalars())
            ledgers = await self._ledgers(session, [row.id for row in rows]) if rows else {}
            return [self._to_domain(row, ledgers[row.id]) for row in rows]

    @db_operation
    async def apply_contribution(
        self,
        user_id: str,
        attempt_id: str,
        score: int,
        when: datetime
    ) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row = await session.get(UserModel, user_id, with_for_update=True)
                    if row is None:
                        raise UserNotFoundError(user_id)

                    # Primary key on attempt_id rejects a second contribution
                    session.add(AcademicContributionModel(
                        attempt_id=attempt_id, user_id=user_id, score=score, applied_at=when
                    ))
                    await session.flush()

                    row.total_assessments += 1
                    row.total_score += score
                    row.average_score = round_half_up(row.total_score / row.total_assessments)
                    row.last_activity = when
        except IntegrityError:
            logger.debug(f"Attempt {attempt_id} already applied to user {user_id}")
            return False
        return True

    @db_operation
    async def applied_attempt_ids(self, user_id: str) -> List[str]:
        async with self.session_factory() as session:
            if await session.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            ledgers = await self._ledgers(session, [user_id])
            return ledgers[user_id]


class SqlAttemptRepository(SqlRepository, AttemptRepository):
    """
    Attempts with compare-and-set updates on ``version``. The partial unique
    index on (user_id, assessment_id) WHERE status = 'IN_PROGRESS' decides
    races between concurrent starts.
    """

    @staticmethod
    def _to_domain(row: AttemptModel) -> Attempt:
        document = dict(row.document)
        document["version"] = row.version
        return Attempt.from_dict(document)

    async def _select(self, *criteria) -> List[Attempt]:
        query = select(AttemptModel).where(*criteria).order_by(AttemptModel.started_at)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [self._to_domain(row) for row in result.scalars()]

    @db_operation
    async def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        async with self.session_factory() as session:
            row = await session.get(AttemptModel, attempt_id)
            return self._to_domain(row) if row else None

    @db_operation
    async def add_if_no_active(self, attempt: Attempt) -> InsertResult:
        # Two rounds: a loser whose winner finished in between inserts on the second
        for _ in range(2):
            existing = await self.find_active(attempt.user_id, attempt.assessment_id)
            if existing is not None:
                return InsertResult(existing, created=False)

            attempt.version = 1
            document = attempt.to_dict()
            row = AttemptModel.from_document(document)
            row.version = 1
            row.started_at = attempt.metadata.started_at
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        session.add(row)
                return InsertResult(Attempt.from_dict(document), created=True)
            except IntegrityError:
                logger.info(
                    f"Concurrent start for user {attempt.user_id} on assessment {attempt.assessment_id}"
                )

        raise ConcurrencyConflictError(attempt.id, expected_version=0)

    @db_operation
    async def update(self, attempt: Attempt, expected_version: int) -> Attempt:
        new_version = expected_version + 1
        document = attempt.to_dict()
        document["version"] = new_version

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(AttemptModel)
                    .where(AttemptModel.id == attempt.id, AttemptModel.version == expected_version)
                    .values(version=new_version, **AttemptModel.indexed_values(document))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    current = await session.get(AttemptModel, attempt.id)
                    if current is None:
                        raise AttemptNotFoundError(
                            f"Attempt with ID {attempt.id} not found",
                            details={"attempt_id": attempt.id}
                        )
                    raise ConcurrencyConflictError(attempt.id, expected_version, current.version)

        attempt.version = new_version
        return Attempt.from_dict(document)

    @db_operation
    async def find_active(self, user_id: str, assessment_id: str) -> Optional[Attempt]:
        attempts = await self._select(
            AttemptModel.user_id == user_id,
            AttemptModel.assessment_id == assessment_id,
            AttemptModel.status == IN_PROGRESS,
        )
        return attempts[0] if attempts else None

    @db_operation
    async def list_for_user(
        self,
        user_id: str,
        assessment_id: Optional[str] = None,
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        criteria = [AttemptModel.user_id == user_id]
        if assessment_id is not None:
            criteria.append(AttemptModel.assessment_id == assessment_id)
        if status is not None:
            criteria.append(AttemptModel.status == status.value)
        return await self._select(*criteria)

    @db_operation
    async def list_for_assessments(
        self,
        assessment_ids: List[str],
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        if not assessment_ids:
            return []
        criteria = [AttemptModel.assessment_id.in_(assessment_ids)]
        if status is not None:
            criteria.append(AttemptModel.status == status.value)
        return await self._select(*criteria)

    @db_operation
    async def list_by_status(self, status: AttemptStatus) -> List[Attempt]:
        return await self._select(AttemptModel.status == status.value)
