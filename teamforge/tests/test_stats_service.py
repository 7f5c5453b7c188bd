"""
Unit tests for stats service.

Tests the confirmation gate on stat writes, row replacement, the season
caches and drift detection between caches and rows.
"""

import pytest

from teamforge.database.models import EventType
from teamforge.models.schemas import GameStatInput, PlayerAverages, TeamSeasonAverages
from teamforge.services import event_service, stats_service
from teamforge.services.exceptions import NotFoundError, StateConflictError, ValidationError
from teamforge.utils.constants import TEAM_GAME_STATS
from teamforge.utils.datetime_utils import utcnow


def _box_score(home_id, away_id):
    """Helper: home scores 30, away scores 25."""
    return [
        GameStatInput(player_id="p1", team_id=home_id, points=20, rebounds=5, fg_made=8, fg_attempted=15),
        GameStatInput(player_id="p2", team_id=home_id, points=10, assists=6),
        GameStatInput(player_id="p3", team_id=away_id, points=25, steals=2),
    ]


# ──────────────────────────────────────────────────────────────
# Confirmation gate
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_pending_game_rejects_stats(store, teams):
    """Test that stats cannot be saved until the opponent confirms the game."""
    game = await event_service.create_event(
        store,
        team_id=teams["home"].id,
        title="Hawks vs Bulls",
        event_date="2025-02-01",
        event_type=EventType.GAME,
        opponent_team_id=teams["away"].id,
    )

    with pytest.raises(StateConflictError, match="awaiting confirmation"):
        await stats_service.save_game_stats(store, game.id, [GameStatInput(player_id="p1", points=2)])
    assert await stats_service.get_game_stats(store, game.id) == []


@pytest.mark.asyncio
async def test_declined_game_rejects_stats(store, teams):
    game = await event_service.create_event(
        store,
        team_id=teams["home"].id,
        title="Hawks vs Bulls",
        event_date="2025-02-01",
        event_type=EventType.GAME,
        opponent_team_id=teams["away"].id,
    )
    await event_service.decline_game(store, game.id, "coach-away")

    with pytest.raises(StateConflictError, match="was declined"):
        await stats_service.save_game_stats(store, game.id, [])


@pytest.mark.asyncio
async def test_unknown_game_rejects_stats(store):
    with pytest.raises(NotFoundError):
        await stats_service.save_game_stats(store, "missing", [])


@pytest.mark.asyncio
async def test_game_without_opponent_accepts_stats(store, teams):
    scrimmage = await event_service.create_event(
        store, team_id=teams["home"].id, title="Scrimmage", event_date="2025-02-01", event_type=EventType.GAME
    )
    rows = await stats_service.save_game_stats(store, scrimmage.id, [GameStatInput(player_id="p1", points=4)])
    assert len(rows) == 1


# ──────────────────────────────────────────────────────────────
# Rows
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_saving_again_replaces_rows(store, teams, confirmed_game):
    """Test that a second save leaves exactly the second set of rows."""
    home, away = teams["home"].id, teams["away"].id
    await stats_service.save_game_stats(store, confirmed_game.id, _box_score(home, away))

    await stats_service.save_game_stats(
        store,
        confirmed_game.id,
        [GameStatInput(player_id="p1", team_id=home, points=12), GameStatInput(player_id="p4", team_id=home)],
    )

    rows = await stats_service.get_game_stats(store, confirmed_game.id)
    assert sorted(row.player_id for row in rows) == ["p1", "p4"]
    assert await stats_service.get_player_game_stats(store, "p3") == []


@pytest.mark.asyncio
async def test_duplicate_player_rows_rejected(store, teams, confirmed_game):
    """Test that one game cannot hold two rows for the same player."""
    home = teams["home"].id
    await stats_service.save_game_stats(store, confirmed_game.id, _box_score(home, teams["away"].id))

    with pytest.raises(ValidationError, match="p1"):
        await stats_service.record_game(
            store,
            confirmed_game.id,
            [
                GameStatInput(player_id="p1", team_id=home, points=10),
                GameStatInput(player_id="p1", team_id=home, points=20),
            ],
        )

    rows = await stats_service.get_player_game_stats(store, "p1")
    assert [row.points for row in rows] == [20]
    assert await stats_service.get_player_season_stats_cache(store, "p1") is None


@pytest.mark.asyncio
async def test_player_game_stats_filtered_by_team(store, teams, confirmed_game):
    await stats_service.save_game_stats(
        store, confirmed_game.id, _box_score(teams["home"].id, teams["away"].id)
    )
    assert len(await stats_service.get_player_game_stats(store, "p1", team_id=teams["home"].id)) == 1
    assert await stats_service.get_player_game_stats(store, "p1", team_id=teams["away"].id) == []


# ──────────────────────────────────────────────────────────────
# Recording games and season caches
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_record_game_updates_derived_collections(store, teams, confirmed_game):
    """Test that recording a game fills team totals, caches and the win/loss record."""
    home, away = teams["home"].id, teams["away"].id

    await stats_service.record_game(store, confirmed_game.id, _box_score(home, away))

    team_totals = {row.team_id: row for row in await stats_service.get_team_game_stats(store, home)}
    assert team_totals[home].points == 30
    assert team_totals[home].players_with_stats == 2

    home_cache = await stats_service.get_team_season_stats(store, home)
    away_cache = await stats_service.get_team_season_stats(store, away)
    assert (home_cache.games_played, home_cache.total_points, home_cache.wins, home_cache.losses) == (1, 30, 1, 0)
    assert (away_cache.wins, away_cache.losses) == (0, 1)

    player_cache = await stats_service.get_player_season_stats_cache(store, "p1")
    assert (player_cache.games_played, player_cache.total_points) == (1, 20)

    assert await stats_service.find_team_stats_drift(store, home) == []


@pytest.mark.asyncio
async def test_tie_counts_for_neither_team(store, teams, confirmed_game):
    home, away = teams["home"].id, teams["away"].id
    await stats_service.record_game(
        store,
        confirmed_game.id,
        [
            GameStatInput(player_id="p1", team_id=home, points=50),
            GameStatInput(player_id="p3", team_id=away, points=50),
        ],
    )

    for team_id in (home, away):
        cache = await stats_service.get_team_season_stats(store, team_id)
        assert (cache.wins, cache.losses) == (0, 0)


@pytest.mark.asyncio
async def test_recording_twice_drifts_cache_from_rows(store, teams, confirmed_game):
    """Test that re-recording a game double counts the cache and that drift is reported."""
    home, away = teams["home"].id, teams["away"].id
    await stats_service.record_game(store, confirmed_game.id, _box_score(home, away))
    await stats_service.record_game(store, confirmed_game.id, _box_score(home, away))

    assert len(await stats_service.get_game_stats(store, confirmed_game.id)) == 3
    assert len(await store.get(TEAM_GAME_STATS)) == 2

    drift = {d.field: d for d in await stats_service.find_team_stats_drift(store, home)}
    assert (drift["games_played"].cached, drift["games_played"].recomputed) == (2, 1)
    assert (drift["total_points"].cached, drift["total_points"].recomputed) == (60, 30)

    assert (await stats_service.team_season_averages(store, home)).games_played == 2
    assert (await stats_service.team_averages_from_rows(store, home)).games_played == 1


@pytest.mark.asyncio
async def test_update_team_season_stats_creates_row(store, teams):
    cache = await stats_service.update_team_season_stats(store, teams["home"].id, {"wins": 3})
    assert (cache.wins, cache.games_played) == (3, 0)

    cache = await stats_service.update_team_season_stats(store, teams["home"].id, {"losses": 1})
    assert (cache.wins, cache.losses) == (3, 1)


# ──────────────────────────────────────────────────────────────
# Aggregates
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_zero_games_gives_zero_averages(store, teams):
    """Test that players and teams with no games average zero everywhere."""
    assert await stats_service.player_averages(store, "nobody") == PlayerAverages()
    assert await stats_service.team_season_averages(store, teams["home"].id) == TeamSeasonAverages()


@pytest.mark.asyncio
async def test_player_averages_and_season_totals(store, teams, confirmed_game):
    await stats_service.record_game(
        store, confirmed_game.id, _box_score(teams["home"].id, teams["away"].id)
    )

    averages = await stats_service.player_averages(store, "p1")
    assert (averages.games_played, averages.ppg, averages.rpg) == (1, 20.0, 5.0)
    assert averages.fg_percent == 53.3

    totals = await stats_service.player_season_totals(store, "p1")
    assert totals.season == utcnow().year
    assert (totals.games_played, totals.total_points) == (1, 20)


@pytest.mark.asyncio
async def test_team_season_averages_from_cache(store, teams, confirmed_game):
    await stats_service.record_game(
        store, confirmed_game.id, _box_score(teams["home"].id, teams["away"].id)
    )

    averages = await stats_service.team_season_averages(store, teams["home"].id)

    assert averages.ppg == 30.0
    assert averages.wins == 1
    assert averages.win_percent == 100.0
