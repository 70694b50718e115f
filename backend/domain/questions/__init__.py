"""
Question domain module for ExamForge.

This module contains the domain model and repositories for the question bank
that assessments draw from.
"""

from .model import AnswerOption, Difficulty, Question, QuestionStatus, QuestionType
from .repository import QuestionRepository
from .memory_repository import MemoryQuestionRepository

__all__ = [
    'AnswerOption',
    'Difficulty',
    'Question',
    'QuestionStatus',
    'QuestionType',
    'QuestionRepository',
    'MemoryQuestionRepository',
]
