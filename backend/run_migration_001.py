#!/usr/bin/env python3
"""
Create the Courtside schema (teams, players, tournaments, playoff_series, fixtures,
fixture_roster, scoreboard, match_history). Existing tables are left alone.
From repo root: python3 backend/run_migration_001.py
Requires CS_DATABASE_URL (or DATABASE_URL) in the environment, or .env in backend/.
"""
import asyncio
import sys

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def main() -> None:
    setup_logging("migrate")
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.connect()
    try:
        await db.create_schema()
        print("Migration 001 applied: Courtside schema created (or already existed).")
    except Exception as e:
        logger.error("migration_failed", error=str(e), exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
