"""
Scoring Engine

Pure grading of one parsed answer against one question. Dispatch is on the
answer variant, which ``parse_answer`` has already matched to the question
type.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Dict, Type

from backend.config import ScoringPolicy
from backend.domain.questions.model import Question
from .answers import Answer, EssayAnswer, MatchingAnswer, MultipleChoiceAnswer, ShortAnswer


class GradingOutcome(enum.Enum):
    """How a grade was reached."""
    GRADED = "GRADED"
    PENDING_MANUAL = "PENDING_MANUAL"  # essays wait for a human
    UNSUPPORTED = "UNSUPPORTED"        # no automatic grader for this type


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    points_awarded: int
    outcome: GradingOutcome = GradingOutcome.GRADED

    def to_dict(self):
        return {
            "is_correct": self.is_correct,
            "points_awarded": self.points_awarded,
            "grading_outcome": self.outcome.value,
        }


def question_value(configured_points: int, policy: ScoringPolicy) -> int:
    """
    Points a question is worth under the scoring policy.

    FLAT counts every question as one point, WEIGHTED uses the points set on
    the assessment.
    """
    if policy == ScoringPolicy.WEIGHTED:
        return configured_points
    return 1


def _grade_choice(question: Question, answer: MultipleChoiceAnswer) -> bool:
    return answer.selected == question.correct_option_texts


def _normalize(text: str) -> str:
    return text.strip().lower()


def _grade_short(question: Question, answer: ShortAnswer) -> bool:
    return _normalize(answer.text) == _normalize(question.correct_answer or "")


_GRADERS: Dict[Type, Callable[[Question, Answer], bool]] = {
    MultipleChoiceAnswer: _grade_choice,
    ShortAnswer: _grade_short,
}

_DEFERRED: Dict[Type, GradingOutcome] = {
    EssayAnswer: GradingOutcome.PENDING_MANUAL,
    MatchingAnswer: GradingOutcome.UNSUPPORTED,
}


def grade(question: Question, answer: Answer, points: int = 1) -> GradeResult:
    """
    Grade an answer.

    Args:
        question: The question content to grade against
        answer: Parsed answer variant
        points: What a correct answer is worth

    Returns:
        GradeResult with ``points_awarded`` equal to ``points`` when correct, else 0
    """
    answer_type = type(answer)

    if answer_type in _DEFERRED:
        return GradeResult(is_correct=False, points_awarded=0, outcome=_DEFERRED[answer_type])

    grader = _GRADERS.get(answer_type)
    if grader is None:
        raise TypeError(f"No grader for answer type {answer_type.__name__}")

    is_correct = grader(question, answer)
    return GradeResult(is_correct=is_correct, points_awarded=points if is_correct else 0)
