"""
Assessment domain module for ExamForge.

Assessment definitions and their repositories.
"""

from .model import (
    AssessmentDefinition,
    AssessmentDifficulty,
    AssessmentQuestion,
    AssessmentSettings,
    AssessmentStatus,
)
from .repository import AssessmentRepository
from .memory_repository import MemoryAssessmentRepository

__all__ = [
    'AssessmentDefinition',
    'AssessmentDifficulty',
    'AssessmentQuestion',
    'AssessmentSettings',
    'AssessmentStatus',
    'AssessmentRepository',
    'MemoryAssessmentRepository',
]
