#!/usr/bin/env python3
"""
Database initialization script.

Creates the ExamForge tables on the configured DATABASE_URL. Production
databases should be migrated with alembic instead.

Usage:
    python -m backend.scripts.init_db
"""

import sys
import asyncio

from backend.common.logger import app_logger
from backend.config import settings
from backend.database.init_db import close_database, initialize_database

logger = app_logger.getChild("scripts.init_db")


async def async_main():
    """Initialize the database."""
    try:
        await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            create_schema=True
        )
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        sys.exit(1)
    finally:
        await close_database()

if __name__ == "__main__":
    asyncio.run(async_main())
