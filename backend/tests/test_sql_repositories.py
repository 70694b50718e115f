"""
Tests for the SQLAlchemy repositories against a file-backed SQLite database.

These cover what the in-memory stores cannot: the partial unique index that
settles concurrent starts, compare-and-set updates on the version column and
the contribution ledger's primary key.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest

from backend.attempts.models import Attempt, AttemptMetadata, AttemptStatus
from backend.common.error_handling import (
    AttemptNotFoundError,
    ConcurrencyConflictError,
    UserNotFoundError,
)
from backend.config import Settings
from backend.container import build_sql_container
from backend.database.init_db import close_database, get_session_factory, initialize_database
from backend.scripts.seed import seed
from backend.tests.factories import START_TIME


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'examforge.db'}"


@asynccontextmanager
async def sql_container(database_url, clock):
    await initialize_database(database_url=database_url, create_schema=True)
    try:
        yield build_sql_container(get_session_factory(), Settings(CONFLICT_RETRY_DELAY=0.0), clock=clock)
    finally:
        await close_database()


def new_attempt(user_id="student-1", assessment_id="assessment-x"):
    return Attempt.new(user_id, assessment_id, [], AttemptMetadata(started_at=START_TIME))


class TestSeededLifecycle:

    @pytest.mark.asyncio
    async def test_attempt_round_trip(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            ids = await seed(container)
            service = container.attempt_service

            attempt = (await service.start("student-1", ids["assessment_id"])).attempt
            for index, answer in enumerate(["4", True, "5", "PI R^2"]):
                await service.submit_answer(attempt.id, index, answer, 20)
            clock.advance(minutes=2)
            result = await service.complete(attempt.id)

            stored = await container.attempts.get_by_id(attempt.id)
            user = await container.users.get_by_id("student-1")
            gaps = await container.reconciliation.find_gaps()

        assert result.attempt.score == 75
        assert stored.status == AttemptStatus.COMPLETED
        assert stored.time_taken_seconds == 120
        assert stored.questions[0].user_answer == ["4"]
        assert stored.analytics.difficulty_analysis["hard"].accuracy == 100
        assert user.academic.total_assessments == 1
        assert user.academic.average_score == 75
        assert user.academic.applied_attempt_ids == [attempt.id]
        assert gaps == []

    @pytest.mark.asyncio
    async def test_seeded_lookups(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            ids = await seed(container)
            students = await container.users.find_students_of(ids["teacher_id"])
            by_subject = await container.assessments.find_by_subject("Mathematics")
            geometry = await container.questions.find_by_topic("Geometry")

        assert sorted(s.id for s in students) == ["student-1", "student-2"]
        assert [a.id for a in by_subject] == [ids["assessment_id"]]
        assert len(by_subject[0].questions) == 4
        assert [q.correct_answer for q in geometry] == ["pi r^2"]

    @pytest.mark.asyncio
    async def test_concurrent_starts_create_one_attempt(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            ids = await seed(container)
            results = await asyncio.gather(*[
                container.attempt_service.start("student-2", ids["assessment_id"]) for _ in range(3)
            ])
            stored = await container.attempts.list_for_user("student-2")

        assert len({r.attempt.id for r in results}) == 1
        assert len(stored) == 1


class TestSqlAttemptRepository:

    @pytest.mark.asyncio
    async def test_second_insert_returns_active_attempt(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            first = await container.attempts.add_if_no_active(new_attempt())
            second = await container.attempts.add_if_no_active(new_attempt())
            other_user = await container.attempts.add_if_no_active(new_attempt(user_id="student-2"))

        assert first.created and other_user.created
        assert second.created is False
        assert second.attempt.id == first.attempt.id
        assert first.attempt.version == 1

    @pytest.mark.asyncio
    async def test_update_checks_version(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            attempt = (await container.attempts.add_if_no_active(new_attempt())).attempt
            stale = await container.attempts.get_by_id(attempt.id)

            attempt.mark_abandoned(START_TIME, "test")
            saved = await container.attempts.update(attempt, expected_version=1)
            with pytest.raises(ConcurrencyConflictError):
                await container.attempts.update(stale, expected_version=1)
            with pytest.raises(AttemptNotFoundError):
                await container.attempts.update(new_attempt(), expected_version=1)
            active = await container.attempts.find_active("student-1", "assessment-x")

        assert saved.version == 2
        assert saved.status == AttemptStatus.ABANDONED
        assert active is None

    @pytest.mark.asyncio
    async def test_new_attempt_allowed_after_terminal(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            first = (await container.attempts.add_if_no_active(new_attempt())).attempt
            first.mark_abandoned(START_TIME, "test")
            await container.attempts.update(first, expected_version=1)

            second = await container.attempts.add_if_no_active(new_attempt())
            abandoned = await container.attempts.list_by_status(AttemptStatus.ABANDONED)

        assert second.created
        assert [a.id for a in abandoned] == [first.id]


class TestSqlUserRepository:

    @pytest.mark.asyncio
    async def test_contribution_applied_once(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            await seed(container)
            users = container.users

            applied = await users.apply_contribution("student-1", "attempt-1", 80, START_TIME)
            repeated = await users.apply_contribution("student-1", "attempt-1", 80, START_TIME)
            await users.apply_contribution("student-1", "attempt-2", 55, START_TIME)
            user = await users.get_by_id("student-1")

        assert applied is True
        assert repeated is False
        assert user.academic.total_assessments == 2
        assert user.academic.total_score == 135
        assert user.academic.average_score == 68
        assert sorted(user.academic.applied_attempt_ids) == ["attempt-1", "attempt-2"]

    @pytest.mark.asyncio
    async def test_unknown_user(self, database_url, clock):
        async with sql_container(database_url, clock) as container:
            with pytest.raises(UserNotFoundError):
                await container.users.apply_contribution("nobody", "attempt-1", 80, START_TIME)
            with pytest.raises(UserNotFoundError):
                await container.users.applied_attempt_ids("nobody")
