"""
User Repository Module

Repository interface for users and their academic records.
"""

import abc
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from backend.common.error_handling import UserNotFoundError
from .model import UserAcademicRecord


class UserRepository(abc.ABC):
    """
    Abstract base class for user repositories.

    ``apply_contribution`` is the only write the attempt engine performs on a
    user. Implementations must make the ledger check and the totals update a
    single atomic step.
    """

    @abc.abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[UserAcademicRecord]:
        pass

    @abc.abstractmethod
    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserAcademicRecord]:
        pass

    @abc.abstractmethod
    async def save(self, user: UserAcademicRecord) -> UserAcademicRecord:
        pass

    @abc.abstractmethod
    async def find_students_of(self, teacher_id: str) -> List[UserAcademicRecord]:
        """
        Find the students a teacher created.

        Args:
            teacher_id: ID of the teacher

        Returns:
            Users with role STUDENT whose ``created_by`` is ``teacher_id``
        """
        pass

    @abc.abstractmethod
    async def apply_contribution(
        self,
        user_id: str,
        attempt_id: str,
        score: int,
        when: datetime
    ) -> bool:
        """
        Fold a completed attempt into the user's academic totals exactly once.

        Args:
            user_id: Owner of the attempt
            attempt_id: Idempotency key
            score: Attempt score
            when: Completion time

        Returns:
            True if the contribution was applied now, False if it was already present

        Raises:
            UserNotFoundError: If the user does not exist
        """
        pass

    @abc.abstractmethod
    async def applied_attempt_ids(self, user_id: str) -> List[str]:
        """IDs of the attempts already counted in the user's totals."""
        pass

    async def require(self, user_id: str) -> UserAcademicRecord:
        user = await self.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user
