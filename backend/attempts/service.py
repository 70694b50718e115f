"""
Attempt Service

The attempt state machine. An attempt moves IN_PROGRESS -> COMPLETED or
IN_PROGRESS -> ABANDONED and never leaves a terminal state.

Every mutation is a read-modify-write against a version-checked repository;
a ConcurrencyConflictError re-runs the whole cycle a bounded number of times
before it surfaces to the caller.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from backend.common.error_handling import (
    AttemptExpiredError,
    AttemptNotFoundError,
    ConcurrencyConflictError,
    IntegrityGapError,
    InvalidRequestError,
    InvalidStateError,
    QuestionNotFoundError,
    log_error,
    retry,
)
from backend.common.logger import app_logger, attempt_context, log_execution_time
from backend.common.utils import format_duration, utcnow
from backend.config import Settings, settings as default_settings
from backend.domain.assessments.repository import AssessmentRepository
from backend.domain.questions.model import Question
from backend.domain.questions.repository import QuestionRepository
from backend.domain.users.repository import UserRepository
from .analytics import TimeBuckets, compute_attempt_analytics, snapshot_questions
from .answers import answer_payload, parse_answer
from .eligibility import DenyReason, can_start
from .models import Attempt, AttemptMetadata, AttemptQuestion
from .reconciliation import AcademicRecordUpdater, AttemptCompleted
from .repository import AttemptRepository
from .scoring import grade, question_value

logger = app_logger.getChild("attempts.service")

TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
ABANDONED_BY_USER = "abandoned_by_user"


@dataclass
class StartResult:
    attempt: Attempt
    resumed: bool = False


@dataclass
class SubmissionResult:
    is_correct: bool
    points_awarded: int
    grading_outcome: str
    progress: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            "points_awarded": self.points_awarded,
            "grading_outcome": self.grading_outcome,
            "progress": self.progress,
        }


@dataclass
class CompletionResult:
    attempt: Attempt
    user_score: Dict[str, int]
    already_completed: bool = False


class AttemptService:
    """
    Runs the attempt lifecycle.

    Args:
        attempts: Attempt store
        assessments: Assessment definitions (read-only)
        questions: Question bank (read-only)
        users: Users and academic records
        settings: Engine settings
        clock: Returns the current naive UTC time
        updater: Applies completion events to academic records
    """

    def __init__(self,
                 attempts: AttemptRepository,
                 assessments: AssessmentRepository,
                 questions: QuestionRepository,
                 users: UserRepository,
                 settings: Settings = default_settings,
                 clock: Callable[[], datetime] = utcnow,
                 updater: Optional[AcademicRecordUpdater] = None):
        self.attempts = attempts
        self.assessments = assessments
        self.questions = questions
        self.users = users
        self.settings = settings
        self.clock = clock
        self.updater = updater or AcademicRecordUpdater(users)
        self.buckets = TimeBuckets(settings.QUICK_ANSWER_SECONDS, settings.SLOW_ANSWER_SECONDS)

        on_conflict = retry(
            max_retries=settings.ATTEMPT_CONFLICT_RETRIES,
            retry_delay=settings.CONFLICT_RETRY_DELAY,
            retry_exceptions=(ConcurrencyConflictError,),
        )
        self._submit = on_conflict(self._submit_once)
        self._complete = on_conflict(self._complete_once)
        self._abandon = on_conflict(self._abandon_once)

    # Start / resume

    @log_execution_time(logger)
    async def start(self, user_id: str, assessment_id: str) -> StartResult:
        """
        Start an attempt, or resume the one already in progress.

        Raises:
            UserNotFoundError: Unknown user
            AssessmentNotFoundError: Unknown assessment
            QuestionNotFoundError: The assessment references a missing question
            IneligibleError: Assessment not active or attempts exhausted
        """
        user = await self.users.require(user_id)
        assessment = await self.assessments.require(assessment_id)

        existing = await self.attempts.list_for_user(user_id, assessment_id)
        decision = can_start(user, assessment, existing)

        if decision.reason == DenyReason.ALREADY_IN_PROGRESS:
            active = await self._expire_if_overdue(await self.attempts.require(decision.existing_attempt_id))
            if active.is_in_progress:
                attempt_context(logger, active.id, user_id).info("Resuming attempt in progress")
                return StartResult(active, resumed=True)
            decision = can_start(user, assessment, await self.attempts.list_for_user(user_id, assessment_id))

        if not decision.allowed:
            logger.info(
                f"User {user_id} denied start of assessment {assessment_id}: {decision.reason.value}"
            )
            raise decision.to_error(assessment)

        questions_by_id = await self.questions.require_many(assessment.question_ids())
        records = [
            AttemptQuestion(
                question_id=ref.question_id,
                points=ref.points,
                snapshot=questions_by_id[ref.question_id].grading_snapshot(),
            )
            for ref in assessment.questions
        ]
        attempt = Attempt.new(
            user_id=user_id,
            assessment_id=assessment_id,
            questions=records,
            metadata=AttemptMetadata(
                started_at=self.clock(),
                attempt_number=decision.completed_count + 1,
                is_adaptive=assessment.is_adaptive,
                time_limit_minutes=assessment.settings.time_limit_minutes,
            ),
        )

        inserted = await self.attempts.add_if_no_active(attempt)
        log = attempt_context(logger, inserted.attempt.id, user_id, assessment_id=assessment_id)
        if inserted.created:
            log.info(f"Started attempt #{attempt.metadata.attempt_number} with {len(records)} questions")
        else:
            log.info("Concurrent start lost the race; resuming the winner")
        return StartResult(inserted.attempt, resumed=not inserted.created)

    async def get_active(self, user_id: str, assessment_id: str) -> Attempt:
        """
        The user's IN_PROGRESS attempt on an assessment.

        An attempt past its time limit is abandoned here and reported as absent.

        Raises:
            AttemptNotFoundError: No attempt in progress
        """
        attempt = await self.attempts.find_active(user_id, assessment_id)
        if attempt is not None:
            attempt = await self._expire_if_overdue(attempt)
        if attempt is None or not attempt.is_in_progress:
            raise AttemptNotFoundError(
                "No active attempt found",
                details={"user_id": user_id, "assessment_id": assessment_id}
            )
        return attempt

    async def require_active(self, user_id: str, assessment_id: str) -> Attempt:
        """
        Like ``get_active`` but without the time limit check, so the
        operation that follows can report the expiry itself.
        """
        attempt = await self.attempts.find_active(user_id, assessment_id)
        if attempt is None:
            raise AttemptNotFoundError(
                "No active attempt found",
                details={"user_id": user_id, "assessment_id": assessment_id}
            )
        return attempt

    # Answer submission

    @log_execution_time(logger)
    async def submit_answer(self,
                            attempt_id: str,
                            question_index: int,
                            user_answer: Any,
                            time_spent_seconds: int = 0) -> SubmissionResult:
        """
        Grade and record the answer at ``question_index``.

        Resubmitting an index overwrites the earlier answer.

        Raises:
            InvalidStateError: The attempt is not in progress
            AttemptExpiredError: The time limit has elapsed
            InvalidRequestError: Bad index, negative time or missing answer
            ConcurrencyConflictError: Retries exhausted
        """
        return await self._submit(attempt_id, question_index, user_answer, time_spent_seconds)

    async def _submit_once(self, attempt_id: str, question_index: int,
                           user_answer: Any, time_spent_seconds: int) -> SubmissionResult:
        attempt = await self.attempts.require(attempt_id)
        attempt.ensure_in_progress("submit an answer to")
        await self._reject_if_expired(attempt)

        if isinstance(question_index, bool) or not isinstance(question_index, int) \
                or not 0 <= question_index < len(attempt.questions):
            raise InvalidRequestError(
                "Invalid question index",
                details={"question_index": question_index, "question_count": len(attempt.questions)}
            )
        if time_spent_seconds is None or time_spent_seconds < 0:
            raise InvalidRequestError(
                "timeSpent must be a non-negative number of seconds",
                details={"time_spent": time_spent_seconds}
            )

        record = attempt.questions[question_index]
        question = await self._grading_question(record)
        answer = parse_answer(question.question_type, user_answer)
        result = grade(question, answer, question_value(record.points, self.settings.SCORING_POLICY))

        record.user_answer = answer_payload(answer)
        record.is_correct = result.is_correct
        record.points_awarded = result.points_awarded
        record.time_spent_seconds = int(time_spent_seconds)
        record.grading_outcome = result.outcome.value

        saved = await self.attempts.update(attempt, expected_version=attempt.version)
        attempt_context(logger, attempt_id, attempt.user_id).debug(
            f"Question {question_index} graded {result.outcome.value}, correct={result.is_correct}"
        )
        return SubmissionResult(
            is_correct=result.is_correct,
            points_awarded=result.points_awarded,
            grading_outcome=result.outcome.value,
            progress=saved.progress(),
        )

    # Completion

    @log_execution_time(logger)
    async def complete(self, attempt_id: str) -> CompletionResult:
        """
        Complete an attempt: derive totals and analytics, then update the
        owner's academic record.

        Completing an already COMPLETED attempt returns the stored result.
        The academic record update is keyed by attempt ID, so it is applied
        at most once however often this runs. If it fails, the attempt stays
        COMPLETED, the gap is logged, and reconciliation repairs it later.

        Raises:
            InvalidStateError: The attempt was abandoned
            AttemptExpiredError: The time limit has elapsed
        """
        result = await self._complete(attempt_id)
        await self._record_completion(result.attempt)
        return result

    async def _complete_once(self, attempt_id: str) -> CompletionResult:
        attempt = await self.attempts.require(attempt_id)
        if attempt.is_completed:
            return CompletionResult(attempt, attempt.result_summary(), already_completed=True)

        attempt.ensure_in_progress("complete")
        await self._reject_if_expired(attempt)

        attempt.recompute_totals(self.settings.SCORING_POLICY)
        attempt.mark_completed(self.clock())
        attempt.analytics = compute_attempt_analytics(
            attempt, await self._analytics_questions(attempt), self.buckets
        )

        saved = await self.attempts.update(attempt, expected_version=attempt.version)
        attempt_context(logger, saved.id, saved.user_id).info(
            f"Completed with score {saved.score} ({saved.points_awarded}/{saved.total_points}) "
            f"in {format_duration(saved.time_taken_seconds)}"
        )
        return CompletionResult(saved, saved.result_summary())

    async def _record_completion(self, attempt: Attempt) -> None:
        try:
            await self.updater.apply(AttemptCompleted.from_attempt(attempt))
        except Exception as e:
            log_error(IntegrityGapError(attempt.id, attempt.user_id, cause=e), include_stack_trace=False)

    async def recompute_analytics(self, attempt_id: str) -> Attempt:
        """
        Recompute the analytics of a COMPLETED attempt.

        Totals and answers are left untouched.
        """
        attempt = await self.attempts.require(attempt_id)
        if not attempt.is_completed:
            raise InvalidStateError(attempt.id, attempt.status.value, "recompute analytics of")
        attempt.analytics = compute_attempt_analytics(
            attempt, await self._analytics_questions(attempt), self.buckets
        )
        return await self.attempts.update(attempt, expected_version=attempt.version)

    # Abandonment

    async def abandon(self, attempt_id: str, reason: str = ABANDONED_BY_USER) -> Attempt:
        """
        Abandon an attempt in progress. Terminal, with no scoring effects.

        Raises:
            InvalidStateError: The attempt is already terminal
        """
        return await self._abandon(attempt_id, reason)

    async def _abandon_once(self, attempt_id: str, reason: str) -> Attempt:
        attempt = await self.attempts.require(attempt_id)
        attempt.ensure_in_progress("abandon")
        attempt.mark_abandoned(self.clock(), reason)
        saved = await self.attempts.update(attempt, expected_version=attempt.version)
        attempt_context(logger, attempt_id, attempt.user_id).info(f"Abandoned: {reason}")
        return saved

    # Time limit

    async def _expire_if_overdue(self, attempt: Attempt) -> Attempt:
        if attempt.is_in_progress and attempt.is_expired(self.clock(), self.settings.TIME_LIMIT_GRACE_SECONDS):
            attempt.mark_abandoned(self.clock(), TIME_LIMIT_EXCEEDED)
            attempt = await self.attempts.update(attempt, expected_version=attempt.version)
            attempt_context(logger, attempt.id, attempt.user_id).info("Time limit elapsed; attempt abandoned")
        return attempt

    async def _reject_if_expired(self, attempt: Attempt) -> None:
        expired = await self._expire_if_overdue(attempt)
        if not expired.is_in_progress:
            raise AttemptExpiredError(attempt.id, attempt.metadata.time_limit_minutes)

    # Question content

    async def _grading_question(self, record: AttemptQuestion) -> Question:
        if record.snapshot and not self.settings.GRADE_AGAINST_LIVE_QUESTIONS:
            return record.snapshot_question()
        question = await self.questions.get_by_id(record.question_id)
        if question is None:
            raise QuestionNotFoundError(record.question_id)
        return question

    async def _analytics_questions(self, attempt: Attempt) -> Dict[str, Question]:
        """Question content to join against, from the same source grading uses."""
        question_ids: List[str] = [r.question_id for r in attempt.questions]
        if self.settings.GRADE_AGAINST_LIVE_QUESTIONS or not all(r.snapshot for r in attempt.questions):
            return await self.questions.require_many(question_ids)
        return snapshot_questions(attempt)
