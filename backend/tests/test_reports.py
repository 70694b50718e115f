"""
Tests for the cross-attempt report reductions and the report service.
"""

from datetime import timedelta

import pytest

from backend.attempts.models import (
    Attempt,
    AttemptAnalytics,
    AttemptMetadata,
    AttemptQuestion,
    AttemptStatus,
    TopicAccuracy,
)
from backend.attempts.reports import (
    assessment_report,
    class_report,
    subject_report,
    system_attempt_stats,
    topic_rollup,
    user_report,
)
from backend.common.error_handling import UserNotFoundError
from backend.tests.factories import START_TIME, make_assessment


def finished(attempt_id, user_id, assessment_id, score, day=0, time_taken=60, records=None, topics=None):
    completed_at = START_TIME + timedelta(days=day, minutes=10)
    return Attempt(
        id=attempt_id,
        user_id=user_id,
        assessment_id=assessment_id,
        questions=records or [],
        status=AttemptStatus.COMPLETED,
        score=score,
        time_taken_seconds=time_taken,
        metadata=AttemptMetadata(started_at=START_TIME + timedelta(days=day), completed_at=completed_at),
        analytics=AttemptAnalytics(accuracy_by_topic=topics or []),
    )


def in_progress(attempt_id, user_id, assessment_id):
    return Attempt(id=attempt_id, user_id=user_id, assessment_id=assessment_id,
                   metadata=AttemptMetadata(started_at=START_TIME))


@pytest.fixture
def science():
    return make_assessment("science-1", ["q-essay"], subject="Science", topic="Biology",
                           passing_score_percent=50)


@pytest.fixture
def users_by_id(users):
    return {u.id: u for u in users}


class TestAssessmentReport:

    def test_no_attempts_is_zeroed(self, assessment):
        report = assessment_report(assessment, [])

        assert report["assessment"]["total_questions"] == 3
        assert report["analytics"] == {
            "total_attempts": 0,
            "average_score": 0,
            "pass_rate": 0,
            "highest_score": 0,
            "lowest_score": 0,
            "time_analysis": {"average_time": 0, "min_time": 0, "max_time": 0},
        }
        assert report["question_analytics"] == []
        assert report["student_performance"] == []

    def test_completed_attempts_only(self, assessment, users_by_id, question_bank):
        attempts = [
            finished("a1", "student-1", "assessment-1", 80, time_taken=100, records=[
                AttemptQuestion("q-mc", is_correct=True, time_spent_seconds=10),
                AttemptQuestion("q-tf", is_correct=False, time_spent_seconds=20),
            ]),
            finished("a2", "student-2", "assessment-1", 60, time_taken=200, records=[
                AttemptQuestion("q-mc", is_correct=True, time_spent_seconds=30),
                AttemptQuestion("q-tf", is_correct=True, time_spent_seconds=40),
            ]),
            in_progress("a3", "student-1", "assessment-1"),
        ]
        questions = {q.id: q for q in question_bank}

        report = assessment_report(assessment, attempts, users_by_id, questions)
        analytics = report["analytics"]

        assert analytics["total_attempts"] == 2
        assert analytics["average_score"] == 70
        assert analytics["pass_rate"] == 50
        assert (analytics["highest_score"], analytics["lowest_score"]) == (80, 60)
        assert analytics["time_analysis"] == {"average_time": 150, "min_time": 100, "max_time": 200}

        by_question = {q["question_id"]: q for q in report["question_analytics"]}
        assert set(by_question) == {"q-mc", "q-tf"}
        assert by_question["q-mc"]["accuracy"] == 100
        assert by_question["q-mc"]["question_text"] == "Question q-mc"
        assert by_question["q-tf"]["accuracy"] == 50
        assert by_question["q-tf"]["average_time"] == 30

        assert [s["user_id"] for s in report["student_performance"]] == ["student-1", "student-2"]
        assert report["student_performance"][0]["name"] == "Sam Student"


class TestUserReport:

    def test_no_attempts(self, users, assessment):
        report = user_report(users[1], [], {assessment.id: assessment})

        assert report["user"]["id"] == "student-1"
        assert report["performance"] == {
            "total_attempts": 0,
            "average_score": 0,
            "pass_rate": 0,
            "best_score": 0,
            "weakest_subject": None,
        }
        assert report["subject_performance"] == []
        assert report["recent_activity"] == []

    def test_weakest_subject_and_pass_rate(self, users, assessment, science):
        attempts = [
            finished("m1", "student-1", "assessment-1", 90, day=0),
            finished("m2", "student-1", "assessment-1", 70, day=1),
            finished("s1", "student-1", "science-1", 55, day=2),
            finished("other", "student-2", "assessment-1", 10, day=3),
        ]
        assessments = {assessment.id: assessment, science.id: science}

        report = user_report(users[1], attempts, assessments)
        performance = report["performance"]

        assert performance["total_attempts"] == 3
        assert performance["average_score"] == 72
        assert performance["pass_rate"] == 100
        assert performance["best_score"] == 90
        assert performance["weakest_subject"] == "Science"

        subjects = {s["subject"]: s for s in report["subject_performance"]}
        assert subjects["Mathematics"] == {
            "subject": "Mathematics", "attempts": 2, "average_score": 80, "best_score": 90
        }
        assert [r["attempt_id"] for r in report["recent_activity"]] == ["s1", "m2", "m1"]

    def test_recent_activity_capped_at_five(self, users, assessment):
        attempts = [finished(f"m{n}", "student-1", "assessment-1", 50, day=n) for n in range(7)]

        report = user_report(users[1], attempts, {assessment.id: assessment})

        assert len(report["recent_activity"]) == 5
        assert report["recent_activity"][0]["attempt_id"] == "m6"


def test_topic_rollup_weakest_first():
    attempts = [
        finished("a1", "student-1", "assessment-1", 60, topics=[
            TopicAccuracy("Algebra", 2, 1, 50), TopicAccuracy("Geometry", 1, 1, 100),
        ]),
        finished("a2", "student-1", "assessment-1", 100, topics=[TopicAccuracy("Algebra", 2, 2, 100)]),
        in_progress("a3", "student-1", "assessment-1"),
    ]

    rollup = topic_rollup(attempts)

    assert rollup == [
        TopicAccuracy("Algebra", 4, 3, 75),
        TopicAccuracy("Geometry", 1, 1, 100),
    ]


class TestClassReport:

    def test_averages_over_active_students(self, users, assessment):
        students = users[1:]
        attempts = [
            finished("a1", "student-1", "assessment-1", 90, day=0),
            finished("a2", "student-1", "assessment-1", 50, day=1),
        ]

        report = class_report("teacher-1", students, attempts, {assessment.id: assessment})
        summary = report["summary"]

        assert summary["total_students"] == 2
        assert summary["average_class_score"] == 70
        assert summary["pass_rate"] == 50
        assert summary["top_performer"]["user_id"] == "student-1"
        assert summary["subject_distribution"] == [{"subject": "Mathematics", "attempts": 2}]

        rows = {row["user_id"]: row for row in report["students"]}
        assert rows["student-1"]["total_attempts"] == 2
        assert rows["student-1"]["assessments"][0]["attempt_id"] == "a2"
        assert rows["student-2"]["total_attempts"] == 0
        assert rows["student-2"]["average_score"] == 0

    def test_empty_class(self):
        summary = class_report("teacher-1", [], [], {})["summary"]

        assert summary["total_students"] == 0
        assert summary["average_class_score"] == 0
        assert summary["pass_rate"] == 0
        assert summary["top_performer"] is None


def test_subject_report_ignores_inactive_assessments(assessment, inactive_assessment, users_by_id):
    attempts = [
        finished("a1", "student-1", "assessment-1", 80),
        finished("a2", "student-2", "assessment-draft", 10),
    ]

    report = subject_report("Mathematics", [assessment, inactive_assessment], attempts, users_by_id)

    assert report["summary"] == {
        "total_assessments": 1, "total_attempts": 1, "average_score": 80, "pass_rate": 100
    }
    assert report["topic_performance"] == [{
        "topic": "Algebra", "attempts": 1, "average_score": 80,
        "assessments": ["Assessment assessment-1"],
    }]
    assert [s["user_id"] for s in report["student_performance"]] == ["student-1"]


def test_system_stats_counts_today_from_midnight():
    attempts = [
        finished("yesterday", "student-1", "assessment-1", 40, day=0),
        finished("today", "student-1", "assessment-1", 80, day=1),
        in_progress("open", "student-1", "assessment-1"),
    ]

    stats = system_attempt_stats(attempts, START_TIME + timedelta(days=1, hours=5))

    assert stats == {"total": 2, "today": 1, "average_score": 60}


class TestReportService:

    @pytest.mark.asyncio
    async def test_reports_over_stored_attempts(self, container, service):
        attempt = (await service.start("student-1", "assessment-1")).attempt
        for index, answer in enumerate(["4", True, "Paris"]):
            await service.submit_answer(attempt.id, index, answer, 20)
        await service.complete(attempt.id)
        reports = container.report_service

        topics = await reports.user_topics("student-1")
        by_assessment = await reports.assessment_report("assessment-1")
        by_user = await reports.user_report("student-1")
        by_class = await reports.class_report("teacher-1")
        system = await reports.system_stats()

        assert topics == [
            {"topic": "Algebra", "questions_attempted": 3, "questions_correct": 3, "accuracy": 100}
        ]
        assert by_assessment["analytics"]["average_score"] == 100
        assert by_user["performance"]["best_score"] == 100
        assert by_class["summary"]["top_performer"]["user_id"] == "student-1"
        assert system == {"total": 1, "today": 1, "average_score": 100}

    @pytest.mark.asyncio
    async def test_unknown_subject_is_empty(self, container):
        report = await container.report_service.subject_report("History")

        assert report["summary"]["total_assessments"] == 0
        assert report["topic_performance"] == []

    @pytest.mark.asyncio
    async def test_unknown_teacher(self, container):
        with pytest.raises(UserNotFoundError):
            await container.report_service.class_report("nobody")
