"""
Database Module

SQLAlchemy tables, engine management and repository implementations for the
ExamForge backend.
"""

from backend.database.base import Base, DocumentModel, metadata

__all__ = ['Base', 'DocumentModel', 'metadata']
