#!/usr/bin/env python3
"""
Completion reconciliation job.

Finds COMPLETED attempts whose score never reached the owner's academic
record and applies each of them exactly once. Safe to run repeatedly, e.g.
from cron.

Usage:
    python -m backend.scripts.reconcile
"""

import sys
import asyncio

from backend.common.logger import app_logger
from backend.common.serialization import to_json
from backend.config import settings
from backend.container import build_sql_container
from backend.database.init_db import close_database, get_session_factory, initialize_database

logger = app_logger.getChild("scripts.reconcile")


async def async_main() -> int:
    """Run one reconciliation pass; the exit code is 1 if any repair failed."""
    try:
        await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT
        )
        container = build_sql_container(get_session_factory(), settings)
        report = await container.reconciliation.reconcile()
        print(to_json(report.to_dict(), pretty=True))
        return 1 if report.failed else 0
    finally:
        await close_database()

if __name__ == "__main__":
    sys.exit(asyncio.run(async_main()))
