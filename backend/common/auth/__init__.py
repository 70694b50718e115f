"""
Authentication helpers.

Identity is established upstream; this package only exposes the FastAPI
dependency that reads it.
"""

from backend.common.auth.dependencies import get_current_user_id

__all__ = ['get_current_user_id']
