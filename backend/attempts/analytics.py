"""
Attempt Analytics

Summaries computed once when an attempt completes: accuracy by topic, time
spent per question, and accuracy banded by difficulty. Topic and difficulty
come from the question records, which callers pass in explicitly.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Mapping

from backend.common.error_handling import QuestionNotFoundError
from backend.common.utils import percentage, rounded_mean
from backend.domain.questions.model import Question
from .models import (
    Attempt,
    AttemptAnalytics,
    AttemptQuestion,
    DifficultyBand,
    TimeAnalysis,
    TopicAccuracy,
)

DIFFICULTY_BANDS = ("easy", "medium", "hard")


@dataclass(frozen=True)
class TimeBuckets:
    """Under ``quick_below`` is quick, over ``slow_above`` is slow, the rest medium."""
    quick_below: int = 30
    slow_above: int = 90

    def bucket(self, seconds: int) -> str:
        if seconds < self.quick_below:
            return "quick"
        if seconds > self.slow_above:
            return "slow"
        return "medium"


def topic_accuracy(records: List[AttemptQuestion],
                   questions_by_id: Mapping[str, Question]) -> List[TopicAccuracy]:
    """Per-topic accuracy in order of first appearance."""
    topics: "OrderedDict[str, TopicAccuracy]" = OrderedDict()
    for record in records:
        topic = questions_by_id[record.question_id].topic
        entry = topics.setdefault(topic, TopicAccuracy(topic=topic))
        entry.questions_attempted += 1
        if record.is_correct:
            entry.questions_correct += 1

    for entry in topics.values():
        entry.accuracy = percentage(entry.questions_correct, entry.questions_attempted)
    return list(topics.values())


def time_analysis(records: List[AttemptQuestion], buckets: TimeBuckets = TimeBuckets()) -> TimeAnalysis:
    distribution = {"quick": 0, "medium": 0, "slow": 0}
    for record in records:
        distribution[buckets.bucket(record.time_spent_seconds)] += 1
    return TimeAnalysis(
        average_time_per_question=rounded_mean(r.time_spent_seconds for r in records),
        time_distribution=distribution,
    )


def difficulty_analysis(records: List[AttemptQuestion],
                        questions_by_id: Mapping[str, Question]) -> Dict[str, DifficultyBand]:
    counts = {band: [0, 0] for band in DIFFICULTY_BANDS}  # [correct, total]
    for record in records:
        band = questions_by_id[record.question_id].difficulty.value.lower()
        counts[band][1] += 1
        if record.is_correct:
            counts[band][0] += 1

    return {
        band: DifficultyBand(accuracy=percentage(correct, total), count=total)
        for band, (correct, total) in counts.items()
    }


def compute_attempt_analytics(attempt: Attempt,
                              questions_by_id: Mapping[str, Question],
                              buckets: TimeBuckets = TimeBuckets()) -> AttemptAnalytics:
    """
    Compute the analytics block of a completed attempt.

    Args:
        attempt: The attempt, normally just completed
        questions_by_id: Question content for every question in the attempt
        buckets: Time thresholds for the distribution

    Returns:
        AttemptAnalytics

    Raises:
        QuestionNotFoundError: If a question of the attempt is missing from ``questions_by_id``
    """
    for record in attempt.questions:
        if record.question_id not in questions_by_id:
            raise QuestionNotFoundError(record.question_id, details={"attempt_id": attempt.id})

    return AttemptAnalytics(
        accuracy_by_topic=topic_accuracy(attempt.questions, questions_by_id),
        time_analysis=time_analysis(attempt.questions, buckets),
        difficulty_analysis=difficulty_analysis(attempt.questions, questions_by_id),
    )


def snapshot_questions(attempt: Attempt) -> Dict[str, Question]:
    """Questions as captured in the attempt's own snapshot."""
    return {record.question_id: record.snapshot_question() for record in attempt.questions}
