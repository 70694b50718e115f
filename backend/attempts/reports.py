"""
Cross-Attempt Reports

Read-side reductions over many attempts: per assessment, per user, per
class, per subject and system-wide. Only COMPLETED attempts count. Every
function is pure and returns plain snake_case dicts; an empty input yields a
zeroed report rather than an error.

Mappings keyed by data (topic, subject) are returned as lists of entries so
the API layer can camelCase keys safely.
"""

from collections import OrderedDict
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backend.common.utils import percentage, rounded_mean
from backend.domain.assessments.model import AssessmentDefinition
from backend.domain.questions.model import Question
from backend.domain.users.model import UserAcademicRecord
from .models import Attempt, TopicAccuracy

TOP_STUDENTS = 10
RECENT_ACTIVITY = 5


def completed_only(attempts: Iterable[Attempt]) -> List[Attempt]:
    return [a for a in attempts if a.is_completed]


def _by_recency(attempts: List[Attempt]) -> List[Attempt]:
    return sorted(attempts, key=lambda a: a.metadata.completed_at or a.metadata.started_at, reverse=True)


def _pass_rate(scores: List[int], passing_score: int) -> int:
    return percentage(sum(1 for s in scores if s >= passing_score), len(scores))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _passing_score(attempt: Attempt,
                   assessments_by_id: Mapping[str, AssessmentDefinition],
                   default: int) -> int:
    assessment = assessments_by_id.get(attempt.assessment_id)
    return assessment.passing_score if assessment else default


def assessment_report(assessment: AssessmentDefinition,
                      attempts: Iterable[Attempt],
                      users_by_id: Optional[Mapping[str, UserAcademicRecord]] = None,
                      questions_by_id: Optional[Mapping[str, Question]] = None) -> Dict[str, Any]:
    """
    Score, time and per-question statistics for one assessment.

    Pass rate uses the assessment's own passing score. Student rows are
    ordered by score, best first.
    """
    users_by_id = users_by_id or {}
    questions_by_id = questions_by_id or {}
    attempts = [a for a in completed_only(attempts) if a.assessment_id == assessment.id]
    scores = [a.score for a in attempts]
    times = [a.time_taken_seconds for a in attempts]

    question_analytics = []
    for ref in assessment.questions:
        records = [
            record
            for attempt in attempts
            for record in attempt.questions
            if record.question_id == ref.question_id
        ]
        if not records:
            continue
        correct = sum(1 for r in records if r.is_correct)
        question = questions_by_id.get(ref.question_id)
        question_analytics.append({
            "question_id": ref.question_id,
            "question_text": question.question_text if question else None,
            "accuracy": percentage(correct, len(records)),
            "average_time": rounded_mean(r.time_spent_seconds for r in records),
            "total_attempts": len(records),
            "correct_count": correct,
        })

    student_performance = []
    for attempt in sorted(attempts, key=lambda a: a.score, reverse=True):
        user = users_by_id.get(attempt.user_id)
        student_performance.append({
            "user_id": attempt.user_id,
            "name": user.name if user else None,
            "email": user.email if user else None,
            "score": attempt.score,
            "time_taken": attempt.time_taken_seconds,
            "completed_at": _iso(attempt.metadata.completed_at),
        })

    return {
        "assessment": {
            "id": assessment.id,
            "title": assessment.title,
            "subject": assessment.subject,
            "topic": assessment.topic,
            "difficulty": assessment.difficulty.value,
            "total_questions": len(assessment.questions),
        },
        "analytics": {
            "total_attempts": len(attempts),
            "average_score": rounded_mean(scores),
            "pass_rate": _pass_rate(scores, assessment.passing_score),
            "highest_score": max(scores, default=0),
            "lowest_score": min(scores, default=0),
            "time_analysis": {
                "average_time": rounded_mean(times),
                "min_time": min(times, default=0),
                "max_time": max(times, default=0),
            },
        },
        "question_analytics": question_analytics,
        "student_performance": student_performance,
    }


def _subject_performance(attempts: List[Attempt],
                         assessments_by_id: Mapping[str, AssessmentDefinition]) -> List[Dict[str, Any]]:
    subjects: "OrderedDict[str, List[int]]" = OrderedDict()
    for attempt in attempts:
        assessment = assessments_by_id.get(attempt.assessment_id)
        if assessment is None:
            continue
        subjects.setdefault(assessment.subject, []).append(attempt.score)

    return [
        {
            "subject": subject,
            "attempts": len(scores),
            "average_score": rounded_mean(scores),
            "best_score": max(scores),
        }
        for subject, scores in subjects.items()
    ]


def user_report(user: UserAcademicRecord,
                attempts: Iterable[Attempt],
                assessments_by_id: Mapping[str, AssessmentDefinition],
                default_passing_score: int = 70) -> Dict[str, Any]:
    """
    Performance summary for one user.

    ``weakest_subject`` is the subject with the lowest average score; ties go
    to the subject seen first. None when the user has no completed attempts.
    """
    attempts = _by_recency([a for a in completed_only(attempts) if a.user_id == user.id])
    scores = [a.score for a in attempts]
    passed = sum(
        1 for a in attempts
        if a.score >= _passing_score(a, assessments_by_id, default_passing_score)
    )

    subjects = _subject_performance(attempts, assessments_by_id)
    weakest = min(subjects, key=lambda s: s["average_score"]) if subjects else None

    recent = []
    for attempt in attempts[:RECENT_ACTIVITY]:
        assessment = assessments_by_id.get(attempt.assessment_id)
        recent.append({
            "attempt_id": attempt.id,
            "assessment": assessment.title if assessment else None,
            "subject": assessment.subject if assessment else None,
            "score": attempt.score,
            "date": _iso(attempt.metadata.completed_at),
        })

    return {
        "user": user.summary(),
        "performance": {
            "total_attempts": len(attempts),
            "average_score": rounded_mean(scores),
            "pass_rate": percentage(passed, len(attempts)),
            "best_score": max(scores, default=0),
            "weakest_subject": weakest["subject"] if weakest else None,
        },
        "subject_performance": subjects,
        "recent_activity": recent,
    }


def topic_rollup(attempts: Iterable[Attempt]) -> List[TopicAccuracy]:
    """
    Topic accuracy accumulated across attempts, weakest topic first.

    Built from each attempt's stored analytics; attempts without analytics
    are skipped.
    """
    topics: "OrderedDict[str, TopicAccuracy]" = OrderedDict()
    for attempt in completed_only(attempts):
        if attempt.analytics is None:
            continue
        for entry in attempt.analytics.accuracy_by_topic:
            total = topics.setdefault(entry.topic, TopicAccuracy(topic=entry.topic))
            total.questions_attempted += entry.questions_attempted
            total.questions_correct += entry.questions_correct

    for total in topics.values():
        total.accuracy = percentage(total.questions_correct, total.questions_attempted)
    return sorted(topics.values(), key=lambda t: t.accuracy)


def subject_report(subject: str,
                   assessments: List[AssessmentDefinition],
                   attempts: Iterable[Attempt],
                   users_by_id: Mapping[str, UserAcademicRecord],
                   default_passing_score: int = 70) -> Dict[str, Any]:
    """Topic averages and the top students across a subject's active assessments."""
    assessments_by_id = {a.id: a for a in assessments if a.subject == subject and a.is_active}
    attempts = [a for a in completed_only(attempts) if a.assessment_id in assessments_by_id]
    scores = [a.score for a in attempts]
    passed = sum(
        1 for a in attempts
        if a.score >= _passing_score(a, assessments_by_id, default_passing_score)
    )

    topics: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    students: "OrderedDict[str, List[int]]" = OrderedDict()
    for attempt in attempts:
        assessment = assessments_by_id[attempt.assessment_id]
        entry = topics.setdefault(assessment.topic, {"scores": [], "assessments": []})
        entry["scores"].append(attempt.score)
        if assessment.title not in entry["assessments"]:
            entry["assessments"].append(assessment.title)
        students.setdefault(attempt.user_id, []).append(attempt.score)

    topic_performance = [
        {
            "topic": topic,
            "attempts": len(entry["scores"]),
            "average_score": rounded_mean(entry["scores"]),
            "assessments": entry["assessments"],
        }
        for topic, entry in topics.items()
    ]

    student_rows = []
    for user_id, user_scores in students.items():
        user = users_by_id.get(user_id)
        student_rows.append({
            "user_id": user_id,
            "name": user.name if user else None,
            "email": user.email if user else None,
            "attempts": len(user_scores),
            "average_score": rounded_mean(user_scores),
        })
    student_rows.sort(key=lambda s: s["average_score"], reverse=True)

    return {
        "subject": subject,
        "summary": {
            "total_assessments": len(assessments_by_id),
            "total_attempts": len(attempts),
            "average_score": rounded_mean(scores),
            "pass_rate": percentage(passed, len(attempts)),
        },
        "topic_performance": topic_performance,
        "student_performance": student_rows[:TOP_STUDENTS],
    }


def class_report(teacher_id: str,
                 students: List[UserAcademicRecord],
                 attempts: Iterable[Attempt],
                 assessments_by_id: Mapping[str, AssessmentDefinition],
                 passing_score: int = 70) -> Dict[str, Any]:
    """
    Per-student averages for the students a teacher created.

    The class average is the mean of student averages over students with at
    least one completed attempt. Pass rate counts students whose average
    reaches ``passing_score`` out of all students.
    """
    student_ids = {s.id for s in students}
    attempts = _by_recency([a for a in completed_only(attempts) if a.user_id in student_ids])

    rows: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for student in students:
        rows[student.id] = {
            "user_id": student.id,
            "name": student.name,
            "email": student.email,
            "grade": student.grade,
            "total_attempts": 0,
            "average_score": 0,
            "assessments": [],
        }

    scores: Dict[str, List[int]] = {s.id: [] for s in students}
    subject_counts: "OrderedDict[str, int]" = OrderedDict()
    for attempt in attempts:
        assessment = assessments_by_id.get(attempt.assessment_id)
        scores[attempt.user_id].append(attempt.score)
        rows[attempt.user_id]["assessments"].append({
            "attempt_id": attempt.id,
            "assessment": assessment.title if assessment else None,
            "subject": assessment.subject if assessment else None,
            "score": attempt.score,
            "date": _iso(attempt.metadata.completed_at),
        })
        if assessment is not None:
            subject_counts[assessment.subject] = subject_counts.get(assessment.subject, 0) + 1

    top_performer = None
    active_averages = []
    for user_id, row in rows.items():
        row["total_attempts"] = len(scores[user_id])
        if not scores[user_id]:
            continue
        row["average_score"] = rounded_mean(scores[user_id])
        active_averages.append(row["average_score"])
        if top_performer is None or row["average_score"] > top_performer["average_score"]:
            top_performer = {
                "user_id": user_id,
                "name": row["name"],
                "average_score": row["average_score"],
                "total_attempts": row["total_attempts"],
            }

    passing = sum(1 for user_id, row in rows.items() if scores[user_id] and row["average_score"] >= passing_score)

    return {
        "teacher_id": teacher_id,
        "students": list(rows.values()),
        "summary": {
            "total_students": len(students),
            "average_class_score": rounded_mean(active_averages),
            "pass_rate": percentage(passing, len(students)),
            "top_performer": top_performer,
            "subject_distribution": [
                {"subject": subject, "attempts": count} for subject, count in subject_counts.items()
            ],
        },
    }


def system_attempt_stats(attempts: Iterable[Attempt], now: datetime) -> Dict[str, int]:
    """Completed attempt totals; "today" starts at midnight UTC of ``now``."""
    attempts = completed_only(attempts)
    midnight = datetime.combine(now.date(), time.min)
    return {
        "total": len(attempts),
        "today": sum(
            1 for a in attempts
            if a.metadata.completed_at is not None and a.metadata.completed_at >= midnight
        ),
        "average_score": rounded_mean(a.score for a in attempts),
    }
