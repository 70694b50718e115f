"""
Attempt Repository Module

Repository interface for Attempt aggregates. Writes are version-checked so
concurrent read-modify-write cycles on one attempt cannot silently overwrite
each other.
"""

import abc
from dataclasses import dataclass
from typing import List, Optional

from backend.common.error_handling import AttemptNotFoundError
from .models import Attempt, AttemptStatus


@dataclass
class InsertResult:
    """Outcome of ``add_if_no_active``: the stored attempt and whether it is new."""
    attempt: Attempt
    created: bool


class AttemptRepository(abc.ABC):
    """
    Abstract base class for attempt repositories.

    Implementations guarantee:
    - at most one IN_PROGRESS attempt per (user, assessment), enforced by
      ``add_if_no_active``;
    - ``update`` only succeeds if the stored version equals
      ``expected_version``, and bumps the version by one.
    """

    @abc.abstractmethod
    async def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        pass

    @abc.abstractmethod
    async def add_if_no_active(self, attempt: Attempt) -> InsertResult:
        """
        Insert a new IN_PROGRESS attempt unless one already exists.

        Args:
            attempt: The attempt to insert

        Returns:
            InsertResult holding either the inserted attempt (created=True) or
            the attempt that was already in progress (created=False)
        """
        pass

    @abc.abstractmethod
    async def update(self, attempt: Attempt, expected_version: int) -> Attempt:
        """
        Persist changes to an existing attempt.

        Args:
            attempt: The modified attempt
            expected_version: Version the caller read before modifying

        Returns:
            The stored attempt with its new version

        Raises:
            ConcurrencyConflictError: If the stored version differs
            AttemptNotFoundError: If the attempt does not exist
        """
        pass

    @abc.abstractmethod
    async def find_active(self, user_id: str, assessment_id: str) -> Optional[Attempt]:
        """The IN_PROGRESS attempt for (user, assessment), if any."""
        pass

    @abc.abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        assessment_id: Optional[str] = None,
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        """
        List a user's attempts.

        Args:
            user_id: Owner
            assessment_id: Optional assessment filter
            status: Optional status filter

        Returns:
            Attempts ordered by start time, oldest first
        """
        pass

    @abc.abstractmethod
    async def list_for_assessments(
        self,
        assessment_ids: List[str],
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        pass

    @abc.abstractmethod
    async def list_by_status(self, status: AttemptStatus) -> List[Attempt]:
        pass

    async def require(self, attempt_id: str) -> Attempt:
        attempt = await self.get_by_id(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(
                f"Attempt with ID {attempt_id} not found",
                details={"attempt_id": attempt_id}
            )
        return attempt
