"""
Tests for the attempt lifecycle: start, submit, complete, abandon, the time
limit, optimistic concurrency and the completion saga.
"""

import asyncio
import logging

import pytest

from backend.attempts.memory_repository import MemoryAttemptRepository
from backend.attempts.models import AttemptStatus
from backend.attempts.service import TIME_LIMIT_EXCEEDED, AttemptService
from backend.common.error_handling import (
    AssessmentNotFoundError,
    AttemptExpiredError,
    AttemptNotFoundError,
    ConcurrencyConflictError,
    IneligibleError,
    InvalidRequestError,
    InvalidStateError,
    UserNotFoundError,
)
from backend.config import ScoringPolicy, Settings
from backend.container import build_container
from backend.domain.assessments.memory_repository import MemoryAssessmentRepository
from backend.domain.questions.memory_repository import MemoryQuestionRepository
from backend.domain.questions.model import AnswerOption, QuestionType
from backend.domain.users.memory_repository import MemoryUserRepository
from backend.tests.factories import make_assessment, make_question

STUDENT = "student-1"
ASSESSMENT = "assessment-1"


class FlakyAttemptRepository(MemoryAttemptRepository):
    """Fails the first ``failures`` updates with a version conflict."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures
        self.update_calls = 0

    async def update(self, attempt, expected_version):
        self.update_calls += 1
        if self.update_calls <= self.failures:
            raise ConcurrencyConflictError(attempt.id, expected_version, expected_version + 1)
        return await super().update(attempt, expected_version)


class FailingUpdater:
    """Academic record updater whose store is down."""

    async def apply(self, event):
        raise ConnectionError("user store unavailable")


async def answer_all(service, attempt_id, answers, time_spent=10):
    for index, answer in enumerate(answers):
        await service.submit_answer(attempt_id, index, answer, time_spent)


class TestStart:

    @pytest.mark.asyncio
    async def test_creates_snapshot_attempt(self, service, clock):
        result = await service.start(STUDENT, ASSESSMENT)
        attempt = result.attempt

        assert result.resumed is False
        assert attempt.status == AttemptStatus.IN_PROGRESS
        assert attempt.version == 1
        assert attempt.metadata.attempt_number == 1
        assert attempt.metadata.started_at == clock.now
        assert attempt.metadata.time_limit_minutes == 30
        assert attempt.metadata.is_adaptive is False
        assert [q.question_id for q in attempt.questions] == ["q-mc", "q-tf", "q-short"]
        assert [q.points for q in attempt.questions] == [1, 1, 2]
        for record in attempt.questions:
            assert record.user_answer is None
            assert record.is_correct is False
            assert record.points_awarded == 0
            assert record.time_spent_seconds == 0
            assert record.snapshot["topic"] == "Algebra"

    @pytest.mark.asyncio
    async def test_second_start_resumes(self, service):
        first = await service.start(STUDENT, ASSESSMENT)
        second = await service.start(STUDENT, ASSESSMENT)

        assert second.resumed is True
        assert second.attempt.id == first.attempt.id

    @pytest.mark.asyncio
    async def test_unknown_user_and_assessment(self, service):
        with pytest.raises(UserNotFoundError):
            await service.start("nobody", ASSESSMENT)
        with pytest.raises(AssessmentNotFoundError):
            await service.start(STUDENT, "missing")

    @pytest.mark.asyncio
    async def test_inactive_assessment_denied(self, service):
        with pytest.raises(IneligibleError) as exc_info:
            await service.start(STUDENT, "assessment-draft")
        assert exc_info.value.reason == "NOT_ACTIVE"

    @pytest.mark.asyncio
    async def test_concurrent_starts_yield_one_attempt(self, service, container):
        results = await asyncio.gather(*[service.start(STUDENT, ASSESSMENT) for _ in range(5)])

        assert len({r.attempt.id for r in results}) == 1
        assert sum(1 for r in results if not r.resumed) == 1
        stored = await container.attempts.list_for_user(STUDENT, ASSESSMENT)
        assert len(stored) == 1

    @pytest.mark.asyncio
    async def test_fourth_start_denied_after_three_completions(self, service):
        for number in (1, 2, 3):
            started = await service.start(STUDENT, ASSESSMENT)
            assert started.attempt.metadata.attempt_number == number
            await service.complete(started.attempt.id)

        with pytest.raises(IneligibleError) as exc_info:
            await service.start(STUDENT, ASSESSMENT)

        assert exc_info.value.reason == "ATTEMPTS_EXCEEDED"
        assert exc_info.value.details["completed_attempts"] == 3

    @pytest.mark.asyncio
    async def test_abandoned_attempts_do_not_use_up_the_limit(self, service):
        for _ in range(4):
            started = await service.start(STUDENT, ASSESSMENT)
            await service.abandon(started.attempt.id)

        started = await service.start(STUDENT, ASSESSMENT)
        assert started.attempt.metadata.attempt_number == 1


class TestSubmitAnswer:

    @pytest.mark.asyncio
    async def test_correct_answer_graded(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        result = await service.submit_answer(attempt.id, 0, "4", 12)

        assert result.is_correct is True
        assert result.points_awarded == 1
        assert result.grading_outcome == "GRADED"
        assert result.progress == {"answered": 1, "total": 3, "percent": 33}

    @pytest.mark.asyncio
    async def test_resubmission_overwrites(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        await service.submit_answer(attempt.id, 2, "London", 5)
        result = await service.submit_answer(attempt.id, 2, "  paris ", 8)

        stored = await container.attempts.get_by_id(attempt.id)
        record = stored.questions[2]
        assert result.progress["answered"] == 1
        assert record.is_correct is True
        assert record.user_answer == "  paris "
        assert record.time_spent_seconds == 8

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [-1, 3, 99])
    async def test_index_out_of_range(self, service, index):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        with pytest.raises(InvalidRequestError):
            await service.submit_answer(attempt.id, index, "4")

    @pytest.mark.asyncio
    async def test_missing_answer_and_negative_time(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        with pytest.raises(InvalidRequestError):
            await service.submit_answer(attempt.id, 0, None)
        with pytest.raises(InvalidRequestError):
            await service.submit_answer(attempt.id, 0, "4", -1)

    @pytest.mark.asyncio
    async def test_unknown_attempt(self, service):
        with pytest.raises(AttemptNotFoundError):
            await service.submit_answer("missing", 0, "4")

    @pytest.mark.asyncio
    async def test_concurrent_submissions_all_recorded(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        await asyncio.gather(
            service.submit_answer(attempt.id, 0, "4"),
            service.submit_answer(attempt.id, 1, "True"),
            service.submit_answer(attempt.id, 2, "Paris"),
        )

        stored = await container.attempts.get_by_id(attempt.id)
        assert all(q.answered and q.is_correct for q in stored.questions)

    @pytest.mark.asyncio
    async def test_grades_against_start_time_snapshot(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        edited = make_question("q-mc", QuestionType.MULTIPLE_CHOICE, options=[
            AnswerOption("3", True), AnswerOption("4"), AnswerOption("5"),
        ])
        await container.questions.save(edited)

        result = await service.submit_answer(attempt.id, 0, "4")
        assert result.is_correct is True


class TestComplete:

    @pytest.mark.asyncio
    async def test_totals_and_user_record(self, service, container, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["4", True, "London"])
        clock.advance(minutes=5)

        result = await service.complete(attempt.id)
        completed = result.attempt

        assert completed.status == AttemptStatus.COMPLETED
        assert completed.total_points == 3
        assert completed.points_awarded == 2
        assert completed.score == 67
        assert completed.time_taken_seconds == 300
        assert completed.metadata.completed_at == clock.now
        assert result.user_score == {"score": 67, "total_points": 3, "points_awarded": 2}

        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 1
        assert user.academic.total_score == 67
        assert user.academic.average_score == 67
        assert user.academic.last_activity == clock.now

    @pytest.mark.asyncio
    async def test_totals_invariant(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["5", False, "Paris"])

        completed = (await service.complete(attempt.id)).attempt

        expected = sum(q.points_awarded for q in completed.questions if q.is_correct)
        assert completed.points_awarded == expected
        assert completed.score == round(100 * completed.points_awarded / completed.total_points)

    @pytest.mark.asyncio
    async def test_unanswered_attempt_scores_zero(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        completed = (await service.complete(attempt.id)).attempt

        assert completed.score == 0
        assert completed.points_awarded == 0
        assert completed.analytics.time_analysis.average_time_per_question == 0

    @pytest.mark.asyncio
    async def test_analytics_attached(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["4", True, "London"], time_spent=45)

        analytics = (await service.complete(attempt.id)).attempt.analytics

        assert analytics.accuracy_by_topic[0].topic == "Algebra"
        assert analytics.accuracy_by_topic[0].accuracy == 67
        assert analytics.time_analysis.time_distribution == {"quick": 0, "medium": 3, "slow": 0}
        assert analytics.difficulty_analysis["medium"].count == 1

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["4", True, "Paris"])

        first = await service.complete(attempt.id)
        second = await service.complete(attempt.id)

        assert second.already_completed is True
        assert second.attempt.score == first.attempt.score == 100
        assert second.attempt.version == first.attempt.version
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 1
        assert user.academic.applied_attempt_ids == [attempt.id]

    @pytest.mark.asyncio
    async def test_no_submissions_after_completion(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await service.complete(attempt.id)

        with pytest.raises(InvalidStateError):
            await service.submit_answer(attempt.id, 0, "4")

    @pytest.mark.asyncio
    async def test_weighted_policy_uses_question_points(self, question_bank, assessment, users, clock):
        container = build_container(
            MemoryQuestionRepository(question_bank),
            MemoryAssessmentRepository([assessment]),
            MemoryUserRepository(users),
            MemoryAttemptRepository(),
            settings=Settings(SCORING_POLICY=ScoringPolicy.WEIGHTED, CONFLICT_RETRY_DELAY=0.0),
            clock=clock,
        )
        service = container.attempt_service
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["3", True, "Paris"])

        completed = (await service.complete(attempt.id)).attempt

        assert completed.total_points == 4
        assert completed.points_awarded == 3
        assert completed.score == 75

    @pytest.mark.asyncio
    async def test_recompute_analytics(self, service):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        with pytest.raises(InvalidStateError):
            await service.recompute_analytics(attempt.id)

        completed = (await service.complete(attempt.id)).attempt
        recomputed = await service.recompute_analytics(attempt.id)

        assert recomputed.analytics == completed.analytics
        assert recomputed.score == completed.score
        assert recomputed.version == completed.version + 1


class TestAbandon:

    @pytest.mark.asyncio
    async def test_abandon_is_terminal(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        abandoned = await service.abandon(attempt.id, "changed my mind")

        assert abandoned.status == AttemptStatus.ABANDONED
        assert abandoned.metadata.abandon_reason == "changed my mind"
        with pytest.raises(InvalidStateError):
            await service.abandon(attempt.id)
        with pytest.raises(InvalidStateError):
            await service.complete(attempt.id)
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 0


class TestTimeLimit:

    @pytest.mark.asyncio
    async def test_submission_at_limit_accepted(self, service, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=30)

        result = await service.submit_answer(attempt.id, 0, "4")
        assert result.is_correct

    @pytest.mark.asyncio
    async def test_submission_one_second_past_limit_rejected(self, service, container, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=30, seconds=1)

        with pytest.raises(AttemptExpiredError):
            await service.submit_answer(attempt.id, 0, "4")
        stored = await container.attempts.get_by_id(attempt.id)
        assert stored.status == AttemptStatus.ABANDONED

    @pytest.mark.asyncio
    async def test_completion_one_second_past_limit_rejected(self, service, container, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=30, seconds=1)

        with pytest.raises(AttemptExpiredError):
            await service.complete(attempt.id)
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 0

    @pytest.mark.asyncio
    async def test_configured_grace_accepts_late_submission(self, question_bank, assessment, users, clock):
        service = build_container(
            MemoryQuestionRepository(question_bank),
            MemoryAssessmentRepository([assessment]),
            MemoryUserRepository(users),
            MemoryAttemptRepository(),
            settings=Settings(TIME_LIMIT_GRACE_SECONDS=30, CONFLICT_RETRY_DELAY=0.0),
            clock=clock,
        ).attempt_service
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=30, seconds=20)

        result = await service.submit_answer(attempt.id, 0, "4")
        assert result.is_correct

    @pytest.mark.asyncio
    async def test_late_submission_expires_attempt(self, service, container, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=31)

        with pytest.raises(AttemptExpiredError):
            await service.submit_answer(attempt.id, 0, "4")

        stored = await container.attempts.get_by_id(attempt.id)
        assert stored.status == AttemptStatus.ABANDONED
        assert stored.metadata.abandon_reason == TIME_LIMIT_EXCEEDED
        with pytest.raises(AttemptNotFoundError):
            await service.get_active(STUDENT, ASSESSMENT)

    @pytest.mark.asyncio
    async def test_late_completion_rejected(self, service, clock):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=45)

        with pytest.raises(AttemptExpiredError):
            await service.complete(attempt.id)

    @pytest.mark.asyncio
    async def test_start_replaces_expired_attempt(self, service, clock):
        first = (await service.start(STUDENT, ASSESSMENT)).attempt
        clock.advance(minutes=31)

        second = await service.start(STUDENT, ASSESSMENT)

        assert second.resumed is False
        assert second.attempt.id != first.id
        assert second.attempt.metadata.attempt_number == 1


class TestOptimisticConcurrency:

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, service, container):
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await service.submit_answer(attempt.id, 0, "4")

        with pytest.raises(ConcurrencyConflictError):
            await container.attempts.update(attempt, expected_version=1)

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, question_bank, assessment, users, settings, clock):
        attempts = FlakyAttemptRepository(failures=1)
        service = build_container(
            MemoryQuestionRepository(question_bank),
            MemoryAssessmentRepository([assessment]),
            MemoryUserRepository(users),
            attempts,
            settings=settings,
            clock=clock,
        ).attempt_service
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        result = await service.submit_answer(attempt.id, 0, "4")

        assert result.is_correct
        assert attempts.update_calls == 2

    @pytest.mark.asyncio
    async def test_conflict_surfaces_after_retries(self, question_bank, assessment, users, settings, clock):
        attempts = FlakyAttemptRepository(failures=100)
        service = build_container(
            MemoryQuestionRepository(question_bank),
            MemoryAssessmentRepository([assessment]),
            MemoryUserRepository(users),
            attempts,
            settings=settings,
            clock=clock,
        ).attempt_service
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt

        with pytest.raises(ConcurrencyConflictError):
            await service.submit_answer(attempt.id, 0, "4")
        assert attempts.update_calls == settings.ATTEMPT_CONFLICT_RETRIES + 1


class TestCompletionSaga:

    @pytest.mark.asyncio
    async def test_failed_record_update_is_logged_and_reconciled(self, container, settings, clock, caplog):
        service = AttemptService(
            container.attempts, container.assessments, container.questions, container.users,
            settings=settings, clock=clock, updater=FailingUpdater(),
        )
        attempt = (await service.start(STUDENT, ASSESSMENT)).attempt
        await answer_all(service, attempt.id, ["4", True, "Paris"])

        with caplog.at_level(logging.ERROR):
            result = await service.complete(attempt.id)

        assert result.attempt.status == AttemptStatus.COMPLETED
        assert "integrity_gap" in caplog.text
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 0

        report = await container.reconciliation.reconcile()

        assert report.repaired == [attempt.id]
        assert report.failed == []
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.total_assessments == 1
        assert user.academic.total_score == 100

        again = await container.reconciliation.reconcile()
        assert again.checked == 0

    @pytest.mark.asyncio
    async def test_recompleting_heals_a_missed_update(self, container, settings, clock):
        failing = AttemptService(
            container.attempts, container.assessments, container.questions, container.users,
            settings=settings, clock=clock, updater=FailingUpdater(),
        )
        attempt = (await failing.start(STUDENT, ASSESSMENT)).attempt
        await failing.complete(attempt.id)

        result = await container.attempt_service.complete(attempt.id)

        assert result.already_completed
        user = await container.users.get_by_id(STUDENT)
        assert user.academic.applied_attempt_ids == [attempt.id]


@pytest.mark.asyncio
async def test_end_to_end_single_question_scenario(users, clock):
    question = make_question("q-b", QuestionType.MULTIPLE_CHOICE, options=[
        AnswerOption("A"), AnswerOption("B", True), AnswerOption("C"),
    ])
    assessment = make_assessment("single", ["q-b"], max_attempts=1)
    service = build_container(
        MemoryQuestionRepository([question]),
        MemoryAssessmentRepository([assessment]),
        MemoryUserRepository(users),
        MemoryAttemptRepository(),
        settings=Settings(CONFLICT_RETRY_DELAY=0.0),
        clock=clock,
    ).attempt_service

    attempt = (await service.start(STUDENT, "single")).attempt
    submission = await service.submit_answer(attempt.id, 0, "B")
    completion = await service.complete(attempt.id)

    assert submission.is_correct is True
    assert submission.points_awarded == 1
    assert completion.attempt.score == 100
    with pytest.raises(IneligibleError):
        await service.start(STUDENT, "single")
