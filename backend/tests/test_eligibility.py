"""
Tests for the eligibility guard.
"""

import pytest

from backend.attempts.eligibility import DenyReason, can_start
from backend.attempts.models import Attempt, AttemptStatus
from backend.common.error_handling import ErrorCode


def attempt(status, user_id="student-1", assessment_id="assessment-1", attempt_id=None):
    return Attempt(
        id=attempt_id or f"{user_id}-{assessment_id}-{status.value}",
        user_id=user_id,
        assessment_id=assessment_id,
        status=status,
    )


@pytest.fixture
def student(users):
    return users[1]


class TestCanStart:

    def test_first_attempt_allowed(self, student, assessment):
        decision = can_start(student, assessment, [])

        assert decision.allowed
        assert decision.reason is None
        assert decision.completed_count == 0

    def test_inactive_assessment_denied_first(self, student, inactive_assessment):
        in_progress = attempt(AttemptStatus.IN_PROGRESS, assessment_id=inactive_assessment.id)

        decision = can_start(student, inactive_assessment, [in_progress])

        assert not decision.allowed
        assert decision.reason == DenyReason.NOT_ACTIVE

    def test_in_progress_attempt_reported_with_id(self, student, assessment):
        attempts = [
            attempt(AttemptStatus.COMPLETED, attempt_id="done"),
            attempt(AttemptStatus.IN_PROGRESS, attempt_id="open"),
        ]

        decision = can_start(student, assessment, attempts)

        assert decision.reason == DenyReason.ALREADY_IN_PROGRESS
        assert decision.existing_attempt_id == "open"
        assert decision.completed_count == 1

    def test_max_attempts_reached(self, student, assessment):
        attempts = [attempt(AttemptStatus.COMPLETED, attempt_id=f"done-{n}") for n in range(3)]

        decision = can_start(student, assessment, attempts)

        assert not decision.allowed
        assert decision.reason == DenyReason.ATTEMPTS_EXCEEDED
        assert decision.completed_count == 3

    def test_abandoned_attempts_do_not_count(self, student, assessment):
        attempts = [attempt(AttemptStatus.COMPLETED, attempt_id=f"done-{n}") for n in range(2)]
        attempts += [attempt(AttemptStatus.ABANDONED, attempt_id=f"gave-up-{n}") for n in range(4)]

        decision = can_start(student, assessment, attempts)

        assert decision.allowed
        assert decision.completed_count == 2

    def test_other_users_and_assessments_ignored(self, student, assessment):
        attempts = [
            attempt(AttemptStatus.COMPLETED, user_id="student-2", attempt_id=f"other-{n}") for n in range(3)
        ]
        attempts.append(attempt(AttemptStatus.IN_PROGRESS, assessment_id="assessment-2"))

        assert can_start(student, assessment, attempts).allowed


class TestDenialError:

    def test_error_carries_reason_and_counts(self, student, assessment):
        attempts = [attempt(AttemptStatus.COMPLETED, attempt_id=f"done-{n}") for n in range(3)]
        decision = can_start(student, assessment, attempts)

        error = decision.to_error(assessment)

        assert error.code == ErrorCode.INELIGIBLE
        assert error.reason == "ATTEMPTS_EXCEEDED"
        assert error.details["completed_attempts"] == 3
        assert error.details["max_attempts"] == 3
        assert "Maximum attempts (3)" in error.message
