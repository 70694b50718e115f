"""
Submitted answer variants.

A raw ``userAnswer`` payload arrives as a string, a list of strings or an
object. It is parsed once, against the question's type, into one of the
variants below so grading never inspects an untyped blob.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Tuple, Union

from backend.common.error_handling import InvalidRequestError
from backend.domain.questions.model import QuestionType


@dataclass(frozen=True)
class MultipleChoiceAnswer:
    """Selected option texts. Used for MULTIPLE_CHOICE and TRUE_FALSE."""
    selected: FrozenSet[str]


@dataclass(frozen=True)
class ShortAnswer:
    text: str


@dataclass(frozen=True)
class EssayAnswer:
    text: str


@dataclass(frozen=True)
class MatchingAnswer:
    """Left/right pairs, sorted by left item."""
    pairs: Tuple[Tuple[str, str], ...]


Answer = Union[MultipleChoiceAnswer, ShortAnswer, EssayAnswer, MatchingAnswer]


def _as_text(value: Any, field_name: str = "userAnswer") -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise InvalidRequestError(
        f"{field_name} must be a string",
        details={"received_type": type(value).__name__}
    )


def _parse_choice(payload: Any) -> MultipleChoiceAnswer:
    # A scalar is a single selection
    if isinstance(payload, (list, tuple, set, frozenset)):
        return MultipleChoiceAnswer(frozenset(_as_text(item) for item in payload))
    return MultipleChoiceAnswer(frozenset([_as_text(payload)]))


def _parse_matching(payload: Any) -> MatchingAnswer:
    if isinstance(payload, dict):
        items = payload.items()
    elif isinstance(payload, (list, tuple)) and all(
        isinstance(p, (list, tuple)) and len(p) == 2 for p in payload
    ):
        items = payload
    else:
        raise InvalidRequestError(
            "Matching answers must be an object or a list of pairs",
            details={"received_type": type(payload).__name__}
        )
    return MatchingAnswer(tuple(sorted((_as_text(k), _as_text(v)) for k, v in items)))


_PARSERS = {
    QuestionType.MULTIPLE_CHOICE: _parse_choice,
    QuestionType.TRUE_FALSE: _parse_choice,
    QuestionType.SHORT_ANSWER: lambda payload: ShortAnswer(_as_text(payload)),
    QuestionType.ESSAY: lambda payload: EssayAnswer(_as_text(payload)),
    QuestionType.MATCHING: _parse_matching,
}


def parse_answer(question_type: QuestionType, payload: Any) -> Answer:
    """
    Parse a raw answer payload for a question of the given type.

    Args:
        question_type: Type of the question being answered
        payload: Raw ``userAnswer`` from the request

    Returns:
        The typed answer variant

    Raises:
        InvalidRequestError: If the payload is missing or has the wrong shape
    """
    if payload is None:
        raise InvalidRequestError("userAnswer is required")
    return _PARSERS[question_type](payload)


def answer_payload(answer: Answer) -> Union[str, list, Dict[str, str]]:
    """Plain JSON form of a parsed answer, as stored on the attempt."""
    if isinstance(answer, MultipleChoiceAnswer):
        return sorted(answer.selected)
    if isinstance(answer, (ShortAnswer, EssayAnswer)):
        return answer.text
    return dict(answer.pairs)
