"""
Attempts module: the attempt state machine, grading, scoring and analytics.
"""

from .models import Attempt, AttemptAnalytics, AttemptQuestion, AttemptStatus
from .service import AttemptService, CompletionResult, StartResult, SubmissionResult

__all__ = [
    'Attempt',
    'AttemptAnalytics',
    'AttemptQuestion',
    'AttemptStatus',
    'AttemptService',
    'CompletionResult',
    'StartResult',
    'SubmissionResult',
]
