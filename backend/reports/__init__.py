"""
Reports module: read-only performance reports over completed attempts.
"""

from .service import ReportService

__all__ = ["ReportService"]
