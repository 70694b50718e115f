"""
Assessment Repository Module

Repository interface for AssessmentDefinition entities.
"""

import abc
from typing import Dict, Iterable, List, Optional

from backend.common.error_handling import AssessmentNotFoundError
from .model import AssessmentDefinition


class AssessmentRepository(abc.ABC):
    """
    Abstract base class for assessment repositories.

    The attempt engine only reads through this interface; ``save`` and
    ``delete`` exist for the authoring side and for seeding.
    """

    @abc.abstractmethod
    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentDefinition]:
        """
        Get an assessment by its ID.

        Returns:
            The AssessmentDefinition if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def get_many(self, assessment_ids: Iterable[str]) -> Dict[str, AssessmentDefinition]:
        """Get several assessments, keyed by ID. Missing IDs are skipped."""
        pass

    @abc.abstractmethod
    async def save(self, assessment: AssessmentDefinition) -> AssessmentDefinition:
        pass

    @abc.abstractmethod
    async def delete(self, assessment_id: str) -> bool:
        pass

    @abc.abstractmethod
    async def find_by_subject(self, subject: str) -> List[AssessmentDefinition]:
        """
        Find assessments by subject.

        Args:
            subject: Subject to filter on

        Returns:
            Matching assessments in any status
        """
        pass

    async def require(self, assessment_id: str) -> AssessmentDefinition:
        """
        Get an assessment or fail.

        Raises:
            AssessmentNotFoundError: If no assessment has this ID
        """
        assessment = await self.get_by_id(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment
