"""
In-memory AssessmentRepository for development and testing.
"""

from typing import Dict, Iterable, List, Optional

from .model import AssessmentDefinition
from .repository import AssessmentRepository


class MemoryAssessmentRepository(AssessmentRepository):
    """Stores assessments in a dict keyed by ID."""

    def __init__(self, initial_data: Optional[List[AssessmentDefinition]] = None):
        self._assessments: Dict[str, AssessmentDefinition] = {}

        if initial_data:
            for assessment in initial_data:
                self._assessments[assessment.id] = assessment

    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentDefinition]:
        return self._assessments.get(assessment_id)

    async def get_many(self, assessment_ids: Iterable[str]) -> Dict[str, AssessmentDefinition]:
        return {
            assessment_id: self._assessments[assessment_id]
            for assessment_id in assessment_ids
            if assessment_id in self._assessments
        }

    async def save(self, assessment: AssessmentDefinition) -> AssessmentDefinition:
        self._assessments[assessment.id] = assessment
        return assessment

    async def delete(self, assessment_id: str) -> bool:
        return self._assessments.pop(assessment_id, None) is not None

    async def find_by_subject(self, subject: str) -> List[AssessmentDefinition]:
        return [a for a in self._assessments.values() if a.subject == subject]

    def get_all(self) -> List[AssessmentDefinition]:
        return list(self._assessments.values())
