#!/usr/bin/env python3
"""
Database Migration Script for Betting Insights API
==================================================

This script creates the users and user_preferences tables.
Run this script after setting up your PostgreSQL database.

Usage:
    python migrate.py

Requirements:
    - PostgreSQL database running
    - DATABASE_URL (or DATABASE_HOST/NAME/USER/PASSWORD) environment variables set
    - Project installed (pip install -e .)
"""

import asyncio
import sys

from app.config import settings
from app.core.database import Database
from app.core.logging import configure_logging, get_logger

# Configure logging
configure_logging(log_level="INFO", log_file="migration.log", enable_file=settings.LOG_TO_FILE)
logger = get_logger(__name__)


async def main() -> int:
    """Main migration function."""
    db = Database.from_settings(settings)
    try:
        logger.info("Starting database migration...")
        await db.init()
        logger.info("Database migration completed successfully")
        return 0
    except Exception as e:
        logger.error(f"Migration failed: {e}")
        return 1
    finally:
        await db.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
