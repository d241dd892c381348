#!/usr/bin/env python3
"""
Database migration script for deployments.

Applies pending Alembic migrations to the hosted database before the API
starts serving. Exit code is non-zero when the upgrade fails.
"""

import logging
import os
import subprocess
import sys

from serene.logging_config import setup_logging

logger = logging.getLogger("serene.migrate")


def run_migrations() -> int:
    """Run all pending database migrations"""
    target = "hosted Postgres" if os.getenv("DATABASE_URL") else "SQLite (development)"
    logger.info("Running database migrations against %s", target)

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as e:
        logger.error("Migration failed:\n%s\n%s", e.stdout, e.stderr)
        return 1
    except OSError as e:
        logger.error("Could not run alembic: %s", e)
        return 1

    if result.stdout:
        logger.info(result.stdout.strip())
    logger.info("Migrations completed successfully")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(run_migrations())
