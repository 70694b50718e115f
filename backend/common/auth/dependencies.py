"""
Authentication dependencies for the ExamForge backend.

Token issuance and validation happen in the upstream gateway, which forwards
the authenticated user's ID in the ``X-User-Id`` header.
"""

import logging
from fastapi import Header, HTTPException, status
from typing import Optional

logger = logging.getLogger(__name__)


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Get the current user ID from the gateway header.

    Args:
        x_user_id: ``X-User-Id`` header value

    Returns:
        User ID string

    Raises:
        HTTPException: If the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        logger.debug("Request without X-User-Id header rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return x_user_id.strip()
