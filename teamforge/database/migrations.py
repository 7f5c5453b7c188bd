"""
One-time data migrations for the record store.

Each migration is gated by a persisted flag ``<name>_migrated``. A
migration returns True when it is complete (the flag is then set) and
False when there was nothing it could do yet (it stays eligible). A
migration that raises is logged and retried on the next initialization.
Every transformed collection is written back with a single ``set``.

This is the only module that knows legacy record shapes.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from teamforge.database.store import RecordStore, read_collection
from teamforge.utils.datetime_utils import utcnow
from teamforge.utils.constants import (
    DEMO_NOTE_CONTENTS,
    EVENTS,
    LEGACY_TEAM_STATS,
    LINEUPS,
    MESSAGE_READ_STATUS,
    NOTES,
    TEAM_GAME_STATS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    name: str
    apply: Callable[[RecordStore], Awaitable[bool]]

    @property
    def flag(self) -> str:
        return f"{self.name}_migrated"


async def migrate_team_stats(store: RecordStore) -> bool:
    """Copy legacy ``team_stats`` into ``team_game_stats`` when the destination is empty."""
    old_team_stats = await read_collection(store, LEGACY_TEAM_STATS)
    new_team_stats = await read_collection(store, TEAM_GAME_STATS)

    if new_team_stats:
        return True
    if not old_team_stats:
        return False

    logger.info(f"Migrating {len(old_team_stats)} team stat rows from team_stats to team_game_stats")
    await store.set(TEAM_GAME_STATS, old_team_stats)
    return True


async def migrate_game_confirmation_status(store: RecordStore) -> bool:
    """Backfill confirmation fields onto events created before the confirmation workflow."""
    events = await read_collection(store, EVENTS)
    migrated = 0
    updated_events = []
    for event in events:
        if "is_confirmed" not in event or "pending_confirmation" not in event:
            # Legacy games are assumed to have been agreed already
            event = {
                **event,
                "is_confirmed": True,
                "pending_confirmation": False,
                "confirmed_by": None,
                "confirmed_at": event.get("created_at"),
            }
            migrated += 1
        updated_events.append(event)

    if migrated:
        logger.info(f"Migrating {migrated} existing events to have confirmation status")
        await store.set(EVENTS, updated_events)
    return True


async def migrate_note_shape(store: RecordStore) -> bool:
    """Rewrite legacy direct messages ({fromUserId, toUserId, timestamp}) as canonical notes."""
    notes = await read_collection(store, NOTES)
    migrated = 0
    updated_notes = []
    for note in notes:
        if "fromUserId" in note or "toUserId" in note:
            timestamp = note.get("timestamp") or note.get("created_at") or utcnow().isoformat()
            note = {
                "id": note["id"],
                "author_id": note.get("fromUserId"),
                "recipient_id": note.get("toUserId"),
                "team_id": note.get("teamId", note.get("team_id")),
                "title": None,
                "content": note.get("content", ""),
                "note_type": "message",
                "priority": "medium",
                "is_private": True,
                "created_at": timestamp,
                "updated_at": timestamp,
            }
            migrated += 1
        updated_notes.append(note)

    if migrated:
        logger.info(f"Converted {migrated} legacy messages to notes")
        await store.set(NOTES, updated_notes)
    return True


async def migrate_read_status_shape(store: RecordStore) -> bool:
    """Rewrite legacy read receipts ({messageId, userId, readAt})."""
    statuses = await read_collection(store, MESSAGE_READ_STATUS)
    migrated = 0
    updated = []
    for status in statuses:
        if "messageId" in status or "userId" in status:
            status = {
                "id": status["id"],
                "message_id": status.get("messageId"),
                "user_id": status.get("userId"),
                "read_at": status.get("readAt"),
            }
            migrated += 1
        updated.append(status)

    if migrated:
        logger.info(f"Converted {migrated} legacy read receipts")
        await store.set(MESSAGE_READ_STATUS, updated)
    return True


async def remove_demo_notes(store: RecordStore) -> bool:
    """Drop the demonstration notes seeded by early builds."""
    notes = await read_collection(store, NOTES)
    real_notes = [n for n in notes if n.get("content") not in DEMO_NOTE_CONTENTS]
    if len(real_notes) < len(notes):
        logger.info(f"Cleared {len(notes) - len(real_notes)} demo notes")
        await store.set(NOTES, real_notes)
    return True


async def migrate_lineup_shape(store: RecordStore) -> bool:
    """Rename the legacy ``selectedPlayers`` lineup key to ``selected_players``."""
    lineups = await read_collection(store, LINEUPS)
    migrated = 0
    updated = []
    for lineup in lineups:
        if "selectedPlayers" in lineup:
            lineup = dict(lineup)
            legacy = lineup.pop("selectedPlayers") or []
            lineup["selected_players"] = lineup.get("selected_players") or legacy
            migrated += 1
        updated.append(lineup)

    if migrated:
        logger.info(f"Converted {migrated} legacy lineups")
        await store.set(LINEUPS, updated)
    return True


# Fixed execution order
MIGRATIONS: List[Migration] = [
    Migration("team_stats", migrate_team_stats),
    Migration("game_confirmation", migrate_game_confirmation_status),
    Migration("note_shape", migrate_note_shape),
    Migration("read_status_shape", migrate_read_status_shape),
    Migration("lineup_shape", migrate_lineup_shape),
    Migration("demo_notes", remove_demo_notes),
]


async def run_migration(store: RecordStore, migration: Migration) -> bool:
    """
    Run one migration unless its flag is already set.

    Returns:
        True if the migration is complete (now or previously)
    """
    if await store.get_flag(migration.flag):
        return True
    try:
        completed = await migration.apply(store)
    except Exception:
        logger.exception(f"Migration {migration.name} failed; it will retry on next startup")
        return False
    if completed:
        await store.set_flag(migration.flag)
        logger.info(f"Migration {migration.name} completed")
    return completed


async def run_migrations(store: RecordStore, migrations: Optional[List[Migration]] = None) -> List[str]:
    """
    Run every migration in order.

    Returns:
        Names of migrations that are still incomplete
    """
    pending = []
    for migration in migrations if migrations is not None else MIGRATIONS:
        if not await run_migration(store, migration):
            pending.append(migration.name)
    return pending


async def reset_migration_flag(store: RecordStore, name: str) -> None:
    """Development utility: make a migration run again on next initialization."""
    await store.clear_flag(f"{name}_migrated")
    logger.info(f"Migration flag reset for {name} - migration will run on next initialization")
