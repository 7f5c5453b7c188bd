"""
Tests for the one-time store migrations.
"""

import pytest

from teamforge.database.init_store import initialize_store
from teamforge.database.migrations import (
    MIGRATIONS,
    Migration,
    reset_migration_flag,
    run_migration,
    run_migrations,
)
from teamforge.services import lineup_service
from teamforge.utils.constants import (
    DEMO_NOTE_CONTENTS,
    EVENTS,
    LEGACY_TEAM_STATS,
    LINEUPS,
    MESSAGE_READ_STATUS,
    NOTES,
    TEAM_GAME_STATS,
)


LEGACY_ROW = {"id": "ts-1", "game_id": "g1", "team_id": "t1", "points": 80}


# ──────────────────────────────────────────────────────────────
# team_stats -> team_game_stats
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_team_stats_copied_when_destination_empty(raw_store):
    await raw_store.set(LEGACY_TEAM_STATS, [LEGACY_ROW])

    await initialize_store(raw_store)

    assert await raw_store.get(TEAM_GAME_STATS) == [LEGACY_ROW]
    assert await raw_store.get(LEGACY_TEAM_STATS) == [LEGACY_ROW]
    assert await raw_store.get_flag("team_stats_migrated") is True


@pytest.mark.asyncio
async def test_team_stats_leaves_non_empty_destination_alone(raw_store):
    existing = {"id": "tgs-1", "game_id": "g2", "team_id": "t1", "points": 90}
    await raw_store.set(LEGACY_TEAM_STATS, [LEGACY_ROW])
    await raw_store.set(TEAM_GAME_STATS, [existing])

    await initialize_store(raw_store)

    assert await raw_store.get(TEAM_GAME_STATS) == [existing]
    assert await raw_store.get_flag("team_stats_migrated") is True


@pytest.mark.asyncio
async def test_team_stats_stays_eligible_when_nothing_to_copy(raw_store):
    """With both collections empty the flag is not set, so legacy rows seeded later still move."""
    pending = await run_migrations(raw_store)

    assert "team_stats" in pending
    assert await raw_store.get_flag("team_stats_migrated") is False

    await raw_store.set(LEGACY_TEAM_STATS, [LEGACY_ROW])
    assert await run_migrations(raw_store) == []
    assert await raw_store.get(TEAM_GAME_STATS) == [LEGACY_ROW]


# ──────────────────────────────────────────────────────────────
# Game confirmation backfill
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_confirmation_fields_backfilled(raw_store):
    legacy = {
        "id": "e1",
        "team_id": "t1",
        "title": "Old game",
        "event_date": "2024-11-01T19:00:00+00:00",
        "event_type": "game",
        "created_at": "2024-10-01T10:00:00+00:00",
        "updated_at": "2024-10-01T10:00:00+00:00",
    }
    await raw_store.set(EVENTS, [legacy])

    await initialize_store(raw_store)

    (event,) = await raw_store.get(EVENTS)
    assert event["is_confirmed"] is True
    assert event["pending_confirmation"] is False
    assert event["confirmed_by"] is None
    assert event["confirmed_at"] == legacy["created_at"]


@pytest.mark.asyncio
async def test_confirmation_backfill_keeps_current_events(raw_store):
    current = {
        "id": "e2",
        "team_id": "t1",
        "title": "Pending game",
        "is_confirmed": False,
        "pending_confirmation": True,
    }
    await raw_store.set(EVENTS, [current])

    await initialize_store(raw_store)

    assert await raw_store.get(EVENTS) == [current]


@pytest.mark.asyncio
async def test_rerunning_migrations_changes_nothing(raw_store):
    await raw_store.set(EVENTS, [{"id": "e1", "team_id": "t1", "title": "Old game"}])
    await raw_store.set(LEGACY_TEAM_STATS, [LEGACY_ROW])

    await initialize_store(raw_store)
    events_after_first = await raw_store.get(EVENTS)
    stats_after_first = await raw_store.get(TEAM_GAME_STATS)

    # Clearing the flags forces the migrations to run against already-migrated data
    for migration in MIGRATIONS:
        await reset_migration_flag(raw_store, migration.name)
    await initialize_store(raw_store)

    assert await raw_store.get(EVENTS) == events_after_first
    assert await raw_store.get(TEAM_GAME_STATS) == stats_after_first


# ──────────────────────────────────────────────────────────────
# Notes and read receipts
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_legacy_messages_become_notes(raw_store):
    await raw_store.set(
        NOTES,
        [
            {
                "id": "m1",
                "fromUserId": "u1",
                "toUserId": "u2",
                "content": "See you at practice",
                "timestamp": "2024-09-01T12:00:00+00:00",
            }
        ],
    )

    await initialize_store(raw_store)

    (note,) = await raw_store.get(NOTES)
    assert note["author_id"] == "u1"
    assert note["recipient_id"] == "u2"
    assert note["note_type"] == "message"
    assert note["is_private"] is True
    assert note["created_at"] == "2024-09-01T12:00:00+00:00"
    assert "fromUserId" not in note


@pytest.mark.asyncio
async def test_legacy_read_receipts_renamed(raw_store):
    await raw_store.set(
        MESSAGE_READ_STATUS,
        [{"id": "r1", "messageId": "m1", "userId": "u2", "readAt": "2024-09-02T08:00:00+00:00"}],
    )

    await initialize_store(raw_store)

    assert await raw_store.get(MESSAGE_READ_STATUS) == [
        {"id": "r1", "message_id": "m1", "user_id": "u2", "read_at": "2024-09-02T08:00:00+00:00"}
    ]


@pytest.mark.asyncio
async def test_demo_notes_removed(raw_store):
    real = {"id": "n2", "content": "Bring the spare ball pump"}
    await raw_store.set(NOTES, [{"id": "n1", "content": DEMO_NOTE_CONTENTS[0]}, real])

    await initialize_store(raw_store)

    assert await raw_store.get(NOTES) == [real]


@pytest.mark.asyncio
async def test_legacy_lineup_players_survive(raw_store):
    """Test that players stored under selectedPlayers are kept and remain editable."""
    await raw_store.set(
        LINEUPS,
        [
            {
                "id": "l1",
                "team_id": "t1",
                "name": "Starters",
                "positions": {},
                "selectedPlayers": ["p1", "p2"],
                "created_by": "u1",
                "created_at": "2024-09-01T12:00:00+00:00",
                "updated_at": "2024-09-01T12:00:00+00:00",
                "is_active": True,
            }
        ],
    )

    await initialize_store(raw_store)

    (stored,) = await raw_store.get(LINEUPS)
    assert "selectedPlayers" not in stored
    assert stored["selected_players"] == ["p1", "p2"]

    lineup = await lineup_service.add_player_to_lineup(raw_store, "l1", "p3")
    assert lineup.selected_players == ["p1", "p2", "p3"]
    assert (await lineup_service.get_lineup(raw_store, "l1")).selected_players == ["p1", "p2", "p3"]


# ──────────────────────────────────────────────────────────────
# Runner
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_failing_migration_is_retried(raw_store):
    """A migration that raises leaves its flag unset and runs again next time."""
    attempts = []

    async def flaky(store):
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("store unavailable")
        return True

    migration = Migration("flaky", flaky)

    assert await run_migration(raw_store, migration) is False
    assert await raw_store.get_flag("flaky_migrated") is False

    assert await run_migration(raw_store, migration) is True
    assert await raw_store.get_flag("flaky_migrated") is True

    assert await run_migration(raw_store, migration) is True
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_failure_does_not_block_later_migrations(raw_store):
    async def broken(store):
        raise RuntimeError("boom")

    async def works(store):
        return True

    pending = await run_migrations(raw_store, [Migration("broken", broken), Migration("works", works)])

    assert pending == ["broken"]
    assert await raw_store.get_flag("works_migrated") is True


@pytest.mark.asyncio
async def test_reset_migration_flag(raw_store):
    await raw_store.set(NOTES, [{"id": "n1", "content": DEMO_NOTE_CONTENTS[1]}])
    await initialize_store(raw_store)
    assert await raw_store.get_flag("demo_notes_migrated") is True

    await reset_migration_flag(raw_store, "demo_notes")

    assert await raw_store.get_flag("demo_notes_migrated") is False
