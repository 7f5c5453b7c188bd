#!/usr/bin/env python3
"""
Initialize a record store.
Run on startup, before any repository call, so repositories only ever see
current-shape records.
"""

import asyncio
import logging
from typing import Optional

from teamforge.database.migrations import run_migrations
from teamforge.database.store import RecordStore, SqlRecordStore, open_sql_store

logger = logging.getLogger(__name__)


async def initialize_store(store: RecordStore) -> RecordStore:
    """Run pending migrations against ``store`` and return it."""
    logger.info("Initializing record store...")
    pending = await run_migrations(store)
    if pending:
        logger.info(f"Migrations still pending: {', '.join(pending)}")
    logger.info("Record store initialized")
    return store


async def open_store(database_url: Optional[str] = None) -> SqlRecordStore:
    """Open the persistent store from configuration and migrate it."""
    store = await open_sql_store(database_url)
    await initialize_store(store)
    return store


async def _main():
    store = await open_store()
    await store.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main())
