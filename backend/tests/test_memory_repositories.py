"""
Tests for the in-memory question store.
"""

import pytest

from backend.common.error_handling import QuestionNotFoundError
from backend.domain.questions.memory_repository import MemoryQuestionRepository
from backend.domain.questions.model import QuestionStatus, QuestionType
from backend.tests.factories import make_question


@pytest.fixture
def repository(question_bank):
    return MemoryQuestionRepository(question_bank)


class TestMemoryQuestionRepository:

    @pytest.mark.asyncio
    async def test_find_by_topic_skips_inactive(self, repository):
        retired = make_question("q-old", QuestionType.SHORT_ANSWER, topic="Geometry", correct_answer="pi r^2")
        retired.status = QuestionStatus.INACTIVE
        await repository.save(retired)

        geometry = await repository.find_by_topic("Geometry")
        algebra = await repository.find_by_topic("Algebra", limit=2)

        assert [q.id for q in geometry] == ["q-essay"]
        assert [q.id for q in algebra] == ["q-mc", "q-tf"]

    @pytest.mark.asyncio
    async def test_require_many(self, repository):
        found = await repository.require_many(["q-mc", "q-tf"])

        assert sorted(found) == ["q-mc", "q-tf"]
        with pytest.raises(QuestionNotFoundError):
            await repository.require_many(["q-mc", "missing"])
