"""
User domain module for ExamForge.
"""

from .model import AcademicRecord, UserAcademicRecord, UserRole, UserStatus
from .repository import UserRepository
from .memory_repository import MemoryUserRepository

__all__ = [
    'AcademicRecord',
    'UserAcademicRecord',
    'UserRole',
    'UserStatus',
    'UserRepository',
    'MemoryUserRepository',
]
