"""
Common Components for ExamForge

Shared infrastructure used by every module of the backend:
1. Logging - Centralized logging configuration
2. Error Handling - Error taxonomy, retry and API error envelopes
3. Serialization - Domain object to JSON conversion
4. Utilities - Rounding and averaging helpers
"""

# Initialize logging
from backend.common.logger import app_logger

__all__ = ['app_logger']
