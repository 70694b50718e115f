"""
Request models and response shaping for the attempt endpoints.

Wire keys are camelCase; models accept the snake_case field names as well.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt, conint

from .models import Attempt, AttemptQuestion


class SubmitAnswerRequest(BaseModel):
    question_index: StrictInt = Field(..., alias="questionIndex", description="Zero-based index into the attempt's questions")
    user_answer: Optional[Any] = Field(None, alias="userAnswer", description="Option text(s), free text, or matching pairs")
    time_spent: conint(strict=True, ge=0) = Field(0, alias="timeSpent", description="Seconds spent on the question")

    class Config:
        allow_population_by_field_name = True


class AbandonRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=200, description="Why the student gave up")


def present_question(record: AttemptQuestion) -> Dict[str, Any]:
    """A question as shown to the student; correctness flags are withheld."""
    snapshot = record.snapshot
    return {
        "questionId": record.question_id,
        "questionText": snapshot.get("question_text"),
        "questionType": snapshot.get("question_type"),
        "subject": snapshot.get("subject"),
        "topic": snapshot.get("topic"),
        "difficulty": snapshot.get("difficulty"),
        "points": record.points,
        "options": [option["text"] for option in snapshot.get("options", [])],
    }


def start_response(attempt: Attempt, resumed: bool) -> Dict[str, Any]:
    questions: List[Dict[str, Any]] = [present_question(q) for q in attempt.questions]
    return {
        "attempt": attempt.to_api_dict(),
        "questions": questions,
        "resumed": resumed,
    }
