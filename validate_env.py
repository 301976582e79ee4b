#!/usr/bin/env python3
"""
Environment Validation Script for Betting Insights API
======================================================

Checks the configuration for missing database parameters and insecure
JWT secrets, then tests the database connection.

Usage:
    python validate_env.py

Exit status is 0 when the configuration is usable, 1 otherwise.
"""

import asyncio
import sys

from app.config import Settings, settings, validate_environment
from app.core.database import Database
from app.core.logging import configure_logging, get_logger

configure_logging(log_level="INFO", enable_file=False)
logger = get_logger(__name__)


async def check(config: Settings) -> bool:
    logger.info("Validating environment configuration...")
    errors, warnings = validate_environment(config)

    if warnings:
        logger.warning("Configuration warnings:")
        for warning in warnings:
            logger.warning(f"  - {warning}")

    if errors:
        logger.error("Configuration errors:")
        for error in errors:
            logger.error(f"  - {error}")
        return False

    logger.info("Environment configuration is valid")
    logger.info("Testing database connection...")

    db = Database.from_settings(config)
    try:
        if not await db.health_check():
            logger.error("Database connection test failed")
            return False
    finally:
        await db.dispose()

    logger.info("All environment validations passed")
    return True


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(check(settings)) else 1)
