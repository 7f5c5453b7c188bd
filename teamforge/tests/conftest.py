"""
Shared pytest configuration for TeamForge tests.

Repository tests run against a fresh in-memory store per test; store
tests also run against SQLite in memory so the SQL path is exercised
without touching a real database file.
"""

import pytest_asyncio

from teamforge.database.init_store import initialize_store
from teamforge.database.store import MemoryRecordStore, open_sql_store
from teamforge.database.models import EventType, UserRole
from teamforge.services import event_service, team_service, user_service


@pytest_asyncio.fixture
async def store():
    """Fresh, migrated in-memory store."""
    return await initialize_store(MemoryRecordStore(id_prefix="test"))


@pytest_asyncio.fixture
async def raw_store():
    """In-memory store with no migrations run, for seeding legacy records."""
    return MemoryRecordStore(id_prefix="raw")


@pytest_asyncio.fixture
async def sql_store():
    """SqlRecordStore on an in-memory SQLite database."""
    sql_store = await open_sql_store("sqlite+aiosqlite:///:memory:")
    yield sql_store
    await sql_store.close()


@pytest_asyncio.fixture
async def make_user(store):
    """Factory: register a user with a throwaway password and return it."""

    async def _make_user(username, first_name="Test", last_name="Player", role=UserRole.PLAYER):
        return await user_service.register_user(
            store,
            username=username,
            email=f"{username}@example.com",
            password="secret123",
            first_name=first_name,
            last_name=last_name,
            role=role,
        )

    return _make_user


@pytest_asyncio.fixture
async def teams(store):
    """Two teams in the same league."""
    home = await team_service.create_team(store, "Hawks")
    away = await team_service.create_team(store, "Bulls")
    return {"home": home, "away": away}


@pytest_asyncio.fixture
async def confirmed_game(store, teams):
    """A game between the two teams that the away team has confirmed."""
    game = await event_service.create_event(
        store,
        team_id=teams["home"].id,
        title="Hawks vs Bulls",
        event_date="2025-01-10T19:00:00Z",
        event_type=EventType.GAME,
        opponent_team_id=teams["away"].id,
    )
    return await event_service.confirm_game(store, game.id, "coach-away")
