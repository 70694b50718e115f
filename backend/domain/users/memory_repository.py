"""
In-memory UserRepository for development and testing.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from backend.common.error_handling import UserNotFoundError
from .model import UserAcademicRecord
from .repository import UserRepository


class MemoryUserRepository(UserRepository):
    """
    Stores users in a dict keyed by ID.

    ``apply_contribution`` contains no await points, so on a single event
    loop the ledger check and the update cannot interleave.
    """

    def __init__(self, initial_data: Optional[List[UserAcademicRecord]] = None):
        self._users: Dict[str, UserAcademicRecord] = {}

        if initial_data:
            for user in initial_data:
                self._users[user.id] = user

    async def get_by_id(self, user_id: str) -> Optional[UserAcademicRecord]:
        return self._users.get(user_id)

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserAcademicRecord]:
        return {uid: self._users[uid] for uid in user_ids if uid in self._users}

    async def save(self, user: UserAcademicRecord) -> UserAcademicRecord:
        self._users[user.id] = user
        return user

    async def find_students_of(self, teacher_id: str) -> List[UserAcademicRecord]:
        return [
            u for u in self._users.values()
            if u.is_student and u.created_by == teacher_id
        ]

    async def apply_contribution(
        self,
        user_id: str,
        attempt_id: str,
        score: int,
        when: datetime
    ) -> bool:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user.academic.apply(attempt_id, score, when)

    async def applied_attempt_ids(self, user_id: str) -> List[str]:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return list(user.academic.applied_attempt_ids)

    def get_all(self) -> List[UserAcademicRecord]:
        return list(self._users.values())
