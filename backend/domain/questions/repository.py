"""
Question Repository Module

This module defines the repository interface for reading and storing
Question entities.
"""

import abc
import logging
from typing import Dict, Iterable, List, Optional

from backend.common.error_handling import QuestionNotFoundError
from .model import Question, QuestionStatus

# Setup logging
logger = logging.getLogger(__name__)


class QuestionRepository(abc.ABC):
    """
    Abstract base class for question repositories.

    This interface defines the contract for accessing and storing Question entities.
    """

    @abc.abstractmethod
    async def get_by_id(self, question_id: str) -> Optional[Question]:
        """
        Get a question by its ID.

        Args:
            question_id: The ID of the question to retrieve

        Returns:
            The Question entity if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def get_many(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        """
        Get several questions at once.

        Args:
            question_ids: IDs to look up

        Returns:
            Mapping of ID to Question for every ID that exists
        """
        pass

    @abc.abstractmethod
    async def save(self, question: Question) -> Question:
        """
        Save a question.

        If the question doesn't exist, it will be created.
        If it already exists, it will be updated.

        Args:
            question: The Question entity to save

        Returns:
            The saved Question entity
        """
        pass

    @abc.abstractmethod
    async def delete(self, question_id: str) -> bool:
        """
        Delete a question by its ID.

        Returns:
            True if the question was deleted, False otherwise
        """
        pass

    @abc.abstractmethod
    async def find_by_topic(self, topic: str, limit: int = 10) -> List[Question]:
        """
        Find ACTIVE questions by topic.

        Args:
            topic: The topic to search for
            limit: Maximum number of questions to return

        Returns:
            List of matching Question entities
        """
        pass

    async def require_many(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        """
        Like ``get_many`` but every ID must resolve.

        Raises:
            QuestionNotFoundError: For the first ID that does not exist
        """
        question_ids = list(question_ids)
        found = await self.get_many(question_ids)
        for question_id in question_ids:
            if question_id not in found:
                logger.warning(f"Question {question_id} referenced but missing from the store")
                raise QuestionNotFoundError(question_id)
        return found


def is_selectable(question: Question) -> bool:
    """Only ACTIVE questions may be placed into new assessments."""
    return question.status == QuestionStatus.ACTIVE
