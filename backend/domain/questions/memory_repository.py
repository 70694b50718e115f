"""
Memory Question Repository Module

This module provides an in-memory implementation of the QuestionRepository
interface for development and testing purposes.
"""

import logging
from typing import Dict, Iterable, List, Optional

from .model import Question
from .repository import QuestionRepository, is_selectable

# Setup logging
logger = logging.getLogger(__name__)


class MemoryQuestionRepository(QuestionRepository):
    """
    In-memory implementation of the QuestionRepository.

    This implementation stores questions in memory and is intended for
    development and testing purposes only.
    """

    def __init__(self, initial_data: Optional[List[Question]] = None):
        """
        Initialize the repository with optional initial data.

        Args:
            initial_data: Optional list of Question entities to initialize with
        """
        self._questions: Dict[str, Question] = {}

        if initial_data:
            for question in initial_data:
                self._questions[question.id] = question

    async def get_by_id(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    async def get_many(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        return {
            question_id: self._questions[question_id]
            for question_id in question_ids
            if question_id in self._questions
        }

    async def save(self, question: Question) -> Question:
        self._questions[question.id] = question
        return question

    async def delete(self, question_id: str) -> bool:
        if question_id in self._questions:
            del self._questions[question_id]
            return True
        return False

    async def find_by_topic(self, topic: str, limit: int = 10) -> List[Question]:
        result = [
            question for question in self._questions.values()
            if question.topic == topic and is_selectable(question)
        ]
        return result[:limit]

    def get_all(self) -> List[Question]:
        """
        Get all questions.

        This method is specific to the memory implementation and not part of
        the QuestionRepository interface.
        """
        return list(self._questions.values())

    def clear(self) -> None:
        """Clear all questions."""
        self._questions.clear()
