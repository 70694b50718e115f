"""
API Integration Tests for the ExamForge Backend

Drives the attempt and report endpoints through FastAPI's TestClient against
the in-memory repositories, covering:
1. The start / answer / complete flow a student goes through
2. Error statuses and the standard error envelope
3. Request validation and the caller identity header
"""

import pytest
from fastapi.testclient import TestClient

from backend import create_app

STUDENT = {"X-User-Id": "student-1"}
BASE = "/api/assessments/assessment-1"


@pytest.fixture
def client(container, settings):
    app = create_app(settings, container=container)
    with TestClient(app) as test_client:
        yield test_client


def start(client, headers=STUDENT):
    return client.post(f"{BASE}/start", headers=headers)


def answer(client, index, user_answer, time_spent=15, headers=STUDENT):
    return client.put(
        f"{BASE}/attempt",
        json={"questionIndex": index, "userAnswer": user_answer, "timeSpent": time_spent},
        headers=headers,
    )


class TestAttemptFlow:

    def test_start_hides_answers(self, client):
        response = start(client)

        assert response.status_code == 200
        body = response.json()
        assert body["resumed"] is False
        assert body["attempt"]["status"] == "IN_PROGRESS"
        assert body["attempt"]["userId"] == "student-1"
        assert [q["questionId"] for q in body["questions"]] == ["q-mc", "q-tf", "q-short"]
        assert body["questions"][0]["options"] == ["3", "4", "5"]
        assert "snapshot" not in body["attempt"]["questions"][0]
        assert "correctAnswer" not in body["questions"][2]

    def test_start_twice_resumes(self, client):
        first = start(client).json()
        second = start(client).json()

        assert second["resumed"] is True
        assert second["attempt"]["id"] == first["attempt"]["id"]

    def test_full_flow(self, client, clock):
        attempt_id = start(client).json()["attempt"]["id"]

        submitted = answer(client, 0, "4")
        answer(client, 1, True)
        answer(client, 2, "London")
        clock.advance(minutes=5)
        completed = client.post(f"{BASE}/complete", headers=STUDENT)

        assert submitted.status_code == 200
        assert submitted.json() == {
            "isCorrect": True,
            "pointsAwarded": 1,
            "gradingOutcome": "GRADED",
            "progress": {"answered": 1, "total": 3, "percent": 33},
        }
        assert completed.status_code == 200
        body = completed.json()
        assert body["attempt"]["id"] == attempt_id
        assert body["attempt"]["status"] == "COMPLETED"
        assert body["attempt"]["score"] == 67
        assert body["attempt"]["timeTakenSeconds"] == 300
        assert body["attempt"]["analytics"]["accuracyByTopic"][0]["topic"] == "Algebra"
        assert body["userScore"] == {"score": 67, "totalPoints": 3, "pointsAwarded": 2}

    def test_get_active_attempt(self, client):
        attempt_id = start(client).json()["attempt"]["id"]
        answer(client, 0, ["4"])

        response = client.get(f"{BASE}/attempt", headers=STUDENT)

        assert response.status_code == 200
        attempt = response.json()["attempt"]
        assert attempt["id"] == attempt_id
        assert attempt["questions"][0]["userAnswer"] == ["4"]
        assert attempt["questions"][0]["isCorrect"] is True

    def test_abandon_with_reason(self, client):
        start(client)

        response = client.post(f"{BASE}/abandon", json={"reason": "out of time"}, headers=STUDENT)

        assert response.status_code == 200
        assert response.json()["attempt"]["status"] == "ABANDONED"
        assert response.json()["attempt"]["metadata"]["abandonReason"] == "out of time"
        assert client.get(f"{BASE}/attempt", headers=STUDENT).status_code == 404


class TestErrors:

    def test_missing_user_header(self, client):
        assert client.post(f"{BASE}/start").status_code == 401

    def test_no_active_attempt(self, client):
        response = client.get(f"{BASE}/attempt", headers=STUDENT)

        assert response.status_code == 404
        assert response.json()["status"] == "error"
        assert response.json()["code"] == "attempt_not_found"

    def test_unknown_assessment(self, client):
        response = client.post("/api/assessments/missing/start", headers=STUDENT)

        assert response.status_code == 404
        assert response.json()["code"] == "assessment_not_found"

    def test_inactive_assessment(self, client):
        response = client.post("/api/assessments/assessment-draft/start", headers=STUDENT)

        assert response.status_code == 400
        assert response.json()["code"] == "ineligible"
        assert response.json()["details"]["reason"] == "NOT_ACTIVE"

    def test_bad_question_index(self, client):
        start(client)

        response = answer(client, 7, "4")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    @pytest.mark.parametrize("payload", [
        {"userAnswer": "4"},
        {"questionIndex": 0, "userAnswer": "4", "timeSpent": -5},
        {"questionIndex": "first", "userAnswer": "4"},
        {"questionIndex": 1.7, "userAnswer": "4"},
        {"questionIndex": True, "userAnswer": "4"},
        {"questionIndex": "2", "userAnswer": "4"},
        {"questionIndex": 0, "userAnswer": "4", "timeSpent": "5"},
    ])
    def test_malformed_body(self, client, payload):
        start(client)

        response = client.put(f"{BASE}/attempt", json=payload, headers=STUDENT)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"
        assert response.json()["details"]["errors"]

    def test_expired_attempt(self, client, clock):
        start(client)
        clock.advance(minutes=31)

        response = answer(client, 0, "4")

        assert response.status_code == 410
        assert response.json()["code"] == "attempt_expired"
        assert client.get(f"{BASE}/attempt", headers=STUDENT).status_code == 404

    def test_completion_one_second_past_limit(self, client, clock):
        start(client)
        clock.advance(minutes=30, seconds=1)

        response = client.post(f"{BASE}/complete", headers=STUDENT)

        assert response.status_code == 410
        assert response.json()["code"] == "attempt_expired"

    def test_attempt_limit(self, client):
        for _ in range(3):
            start(client)
            client.post(f"{BASE}/complete", headers=STUDENT)

        response = start(client)

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "ATTEMPTS_EXCEEDED"


class TestReportEndpoints:

    @pytest.fixture(autouse=True)
    def completed(self, client):
        start(client)
        for index, user_answer in enumerate(["4", True, "Paris"]):
            answer(client, index, user_answer)
        client.post(f"{BASE}/complete", headers=STUDENT)

    def test_assessment_report(self, client):
        response = client.get("/api/reports/assessment/assessment-1", headers=STUDENT)

        assert response.status_code == 200
        analytics = response.json()["analytics"]
        assert analytics["totalAttempts"] == 1
        assert analytics["passRate"] == 100

    def test_user_report_and_topics(self, client):
        report = client.get("/api/reports/user/student-1", headers=STUDENT).json()
        topics = client.get("/api/reports/user/student-1/topics", headers=STUDENT).json()

        assert report["performance"]["weakestSubject"] == "Mathematics"
        assert report["subjectPerformance"][0]["subject"] == "Mathematics"
        assert topics == {"topics": [
            {"topic": "Algebra", "questionsAttempted": 3, "questionsCorrect": 3, "accuracy": 100}
        ]}

    def test_class_subject_and_system(self, client):
        by_class = client.get("/api/reports/class/teacher-1", headers=STUDENT).json()
        by_subject = client.get("/api/reports/subject/Mathematics", headers=STUDENT).json()
        system = client.get("/api/reports/system", headers=STUDENT).json()

        assert by_class["summary"]["totalStudents"] == 2
        assert by_class["summary"]["topPerformer"]["userId"] == "student-1"
        assert by_subject["summary"]["totalAttempts"] == 1
        assert system == {"attempts": {"total": 1, "today": 1, "averageScore": 100}}

    def test_unknown_user(self, client):
        response = client.get("/api/reports/user/nobody", headers=STUDENT)

        assert response.status_code == 404
        assert response.json()["code"] == "user_not_found"

    def test_reports_require_user_header(self, client):
        assert client.get("/api/reports/system").status_code == 401
