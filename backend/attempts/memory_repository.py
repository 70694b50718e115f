"""
Memory Attempt Repository Module

In-memory AttemptRepository for development and testing. Attempts are stored
as serialized documents so callers never share mutable state with the store,
the same way a database round trip behaves.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from backend.common.error_handling import AttemptNotFoundError, ConcurrencyConflictError
from .models import Attempt, AttemptStatus
from .repository import AttemptRepository, InsertResult

logger = logging.getLogger(__name__)


class MemoryAttemptRepository(AttemptRepository):
    """Dict-backed store with an asyncio lock around check-then-insert."""

    def __init__(self, initial_data: Optional[List[Attempt]] = None):
        self._attempts: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

        if initial_data:
            for attempt in initial_data:
                self._attempts[attempt.id] = attempt.to_dict()

    def _load(self, document: dict) -> Attempt:
        return Attempt.from_dict(document)

    def _all(self) -> List[Attempt]:
        attempts = [self._load(doc) for doc in self._attempts.values()]
        return sorted(attempts, key=lambda a: a.metadata.started_at)

    async def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        document = self._attempts.get(attempt_id)
        return self._load(document) if document is not None else None

    async def add_if_no_active(self, attempt: Attempt) -> InsertResult:
        async with self._lock:
            existing = await self.find_active(attempt.user_id, attempt.assessment_id)
            if existing is not None:
                logger.info(
                    f"Attempt {existing.id} already in progress for user {attempt.user_id} "
                    f"on assessment {attempt.assessment_id}"
                )
                return InsertResult(existing, created=False)

            attempt.version = 1
            self._attempts[attempt.id] = attempt.to_dict()
            return InsertResult(self._load(self._attempts[attempt.id]), created=True)

    async def update(self, attempt: Attempt, expected_version: int) -> Attempt:
        async with self._lock:
            stored = self._attempts.get(attempt.id)
            if stored is None:
                raise AttemptNotFoundError(
                    f"Attempt with ID {attempt.id} not found",
                    details={"attempt_id": attempt.id}
                )
            if stored["version"] != expected_version:
                raise ConcurrencyConflictError(attempt.id, expected_version, stored["version"])

            attempt.version = expected_version + 1
            self._attempts[attempt.id] = attempt.to_dict()
            return self._load(self._attempts[attempt.id])

    async def find_active(self, user_id: str, assessment_id: str) -> Optional[Attempt]:
        for document in self._attempts.values():
            if (document["user_id"] == user_id
                    and document["assessment_id"] == assessment_id
                    and document["status"] == AttemptStatus.IN_PROGRESS.value):
                return self._load(document)
        return None

    async def list_for_user(
        self,
        user_id: str,
        assessment_id: Optional[str] = None,
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        return [
            a for a in self._all()
            if a.user_id == user_id
            and (assessment_id is None or a.assessment_id == assessment_id)
            and (status is None or a.status == status)
        ]

    async def list_for_assessments(
        self,
        assessment_ids: List[str],
        status: Optional[AttemptStatus] = None
    ) -> List[Attempt]:
        wanted = set(assessment_ids)
        return [
            a for a in self._all()
            if a.assessment_id in wanted and (status is None or a.status == status)
        ]

    async def list_by_status(self, status: AttemptStatus) -> List[Attempt]:
        return [a for a in self._all() if a.status == status]

    def clear(self) -> None:
        self._attempts.clear()
