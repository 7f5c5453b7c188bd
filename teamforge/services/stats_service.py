"""
Stats service for game stat rows, per-game team totals and season caches.

Game stat rows are the source of truth. ``team_season_stats`` and
``season_stats`` are cumulative caches incremented each time a game is
recorded; recording the same game twice counts it twice in the caches
while the rows are replaced. ``find_team_stats_drift`` reports where the
team cache and the rows disagree.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging

from teamforge.database.models import ConfirmationState
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import (
    GameStat,
    GameStatInput,
    PlayerAverages,
    PlayerSeasonStats,
    PlayerSeasonTotals,
    StatDrift,
    StatLine,
    TeamGameStats,
    TeamSeasonAverages,
    TeamSeasonStats,
)
from teamforge.services import calculation_service, event_service
from teamforge.services.exceptions import NotFoundError, StateConflictError, ValidationError
from teamforge.utils.constants import GAME_STATS, SEASON_STATS, TEAM_GAME_STATS, TEAM_SEASON_STATS
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# Game stat rows
# ============================================================================


async def ensure_stats_allowed(store: RecordStore, game_id: str) -> None:
    """
    Raise unless the game accepts stat writes.

    Raises:
        NotFoundError: If the game does not exist
        StateConflictError: If the game is pending confirmation or was declined
    """
    state = await event_service.get_confirmation_state(store, game_id)
    if state is None:
        raise NotFoundError(f"Game {game_id} not found")
    if state in (ConfirmationState.CONFIRMED, ConfirmationState.NO_CONFIRMATION_NEEDED):
        return
    if state == ConfirmationState.PENDING_CONFIRMATION:
        raise StateConflictError(f"Game {game_id} is awaiting confirmation")
    if state == ConfirmationState.DECLINED:
        raise StateConflictError(f"Game {game_id} was declined")
    raise StateConflictError(f"Game {game_id} is in unknown confirmation state {state!r}")


async def save_game_stats(
    store: RecordStore, game_id: str, player_stats: Sequence[GameStatInput]
) -> List[GameStat]:
    """
    Replace every stat row for a game.

    Existing rows for the game are dropped and the new rows inserted in
    one write, so the game ends up with exactly ``player_stats``.

    Args:
        store: Record store
        game_id: Event ID of the game
        player_stats: One entry per player

    Returns:
        The stored rows for the game

    Raises:
        NotFoundError: If the game does not exist
        StateConflictError: If the game is not confirmed
        ValidationError: If a player appears more than once
    """
    await ensure_stats_allowed(store, game_id)

    inputs = [GameStatInput.model_validate(stats) for stats in player_stats]
    player_ids = [stats.player_id for stats in inputs]
    duplicates = sorted({p for p in player_ids if player_ids.count(p) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate stat rows for players: {', '.join(duplicates)}")

    rows = await load_records(store, GAME_STATS, GameStat)
    remaining = [row for row in rows if row.game_id != game_id]

    now = utcnow()
    new_rows = [
        GameStat(
            id=store.new_id(),
            game_id=game_id,
            created_at=now,
            updated_at=now,
            **stats.model_dump(),
        )
        for stats in inputs
    ]
    await save_records(store, GAME_STATS, remaining + new_rows)
    logger.info(
        f"Saved {len(new_rows)} stat rows for game {game_id} "
        f"(replaced {len(rows) - len(remaining)})"
    )
    return new_rows


async def get_game_stats(store: RecordStore, game_id: str) -> List[GameStat]:
    rows = await load_records(store, GAME_STATS, GameStat)
    return [row for row in rows if row.game_id == game_id]


async def get_player_game_stats(
    store: RecordStore, player_id: str, team_id: Optional[str] = None
) -> List[GameStat]:
    """A player's rows across games, optionally only those played for ``team_id``."""
    rows = await load_records(store, GAME_STATS, GameStat)
    return [
        row for row in rows
        if row.player_id == player_id and (team_id is None or row.team_id == team_id)
    ]


# ============================================================================
# Team game totals
# ============================================================================


async def save_team_game_stats(
    store: RecordStore,
    game_id: str,
    team_id: str,
    totals: StatLine,
    players_with_stats: int = 0,
) -> TeamGameStats:
    """Upsert one team's totals for one game."""
    rows = await load_records(store, TEAM_GAME_STATS, TeamGameStats)
    remaining = [r for r in rows if not (r.game_id == game_id and r.team_id == team_id)]
    record = TeamGameStats(
        id=store.new_id(),
        game_id=game_id,
        team_id=team_id,
        players_with_stats=players_with_stats,
        created_at=utcnow(),
        **totals.model_dump(),
    )
    remaining.append(record)
    await save_records(store, TEAM_GAME_STATS, remaining)
    return record


async def get_team_game_stats(store: RecordStore, team_id: str) -> List[TeamGameStats]:
    rows = await load_records(store, TEAM_GAME_STATS, TeamGameStats)
    return [row for row in rows if row.team_id == team_id]


# ============================================================================
# Season caches
# ============================================================================


async def get_team_season_stats(store: RecordStore, team_id: str) -> Optional[TeamSeasonStats]:
    rows = await load_records(store, TEAM_SEASON_STATS, TeamSeasonStats)
    return next((row for row in rows if row.team_id == team_id), None)


async def update_team_season_stats(
    store: RecordStore, team_id: str, updates: Dict[str, Any]
) -> TeamSeasonStats:
    """
    Merge ``updates`` into the team's season cache, creating a zeroed row first if needed.
    """
    rows = await load_records(store, TEAM_SEASON_STATS, TeamSeasonStats)
    now = utcnow()
    for index, row in enumerate(rows):
        if row.team_id == team_id:
            rows[index] = merge_record(
                row, {**updates, "updated_at": now}, protected=("id", "team_id", "created_at")
            )
            await save_records(store, TEAM_SEASON_STATS, rows)
            return rows[index]

    row = merge_record(
        TeamSeasonStats(id=store.new_id(), team_id=team_id, created_at=now, updated_at=now),
        updates,
        protected=("id", "team_id", "created_at", "updated_at"),
    )
    rows.append(row)
    await save_records(store, TEAM_SEASON_STATS, rows)
    return row


async def get_player_season_stats_cache(store: RecordStore, player_id: str) -> Optional[PlayerSeasonStats]:
    rows = await load_records(store, SEASON_STATS, PlayerSeasonStats)
    return next((row for row in rows if row.player_id == player_id), None)


async def update_player_season_stats(
    store: RecordStore, player_id: str, game_line: StatLine
) -> PlayerSeasonStats:
    """Add one game to the player's cumulative season cache."""
    rows = await load_records(store, SEASON_STATS, PlayerSeasonStats)
    now = utcnow()
    index = next((i for i, row in enumerate(rows) if row.player_id == player_id), None)
    if index is None:
        rows.append(PlayerSeasonStats(id=store.new_id(), player_id=player_id, created_at=now, updated_at=now))
        index = len(rows) - 1

    current = rows[index]
    totals = calculation_service.add_game_to_totals(current.model_dump(), game_line)
    rows[index] = merge_record(current, {**totals, "updated_at": now}, protected=("id", "player_id", "created_at"))
    await save_records(store, SEASON_STATS, rows)
    return rows[index]


# ============================================================================
# Recording a whole game
# ============================================================================


async def record_game(
    store: RecordStore, game_id: str, player_stats: Sequence[GameStatInput]
) -> List[GameStat]:
    """
    Save a game's stat rows and roll them into the derived collections.

    Rows are replaced as in save_game_stats. Each team's totals for the game
    are upserted, each team's and player's season cache gets one more game,
    and when exactly two teams played the higher score is counted as a win
    (a tie counts for neither side).

    Returns:
        The stored rows for the game
    """
    rows = await save_game_stats(store, game_id, player_stats)

    by_team: Dict[str, List[GameStat]] = {}
    for row in rows:
        if row.team_id:
            by_team.setdefault(row.team_id, []).append(row)

    team_totals: Dict[str, StatLine] = {}
    for team_id, team_rows in by_team.items():
        team_totals[team_id] = calculation_service.sum_stat_lines(team_rows)
        await save_team_game_stats(
            store,
            game_id,
            team_id,
            team_totals[team_id],
            players_with_stats=calculation_service.count_players_with_stats(team_rows),
        )

    results: Dict[str, str] = {}
    if len(team_totals) == 2:
        (team_a, line_a), (team_b, line_b) = team_totals.items()
        if line_a.points > line_b.points:
            results = {team_a: "wins", team_b: "losses"}
        elif line_b.points > line_a.points:
            results = {team_a: "losses", team_b: "wins"}

    for team_id, line in team_totals.items():
        cache = await get_team_season_stats(store, team_id)
        current = cache.model_dump() if cache else {}
        updates = calculation_service.add_game_to_totals(current, line)
        if team_id in results:
            outcome = results[team_id]
            updates[outcome] = current.get(outcome, 0) + 1
        await update_team_season_stats(store, team_id, updates)

    for row in rows:
        await update_player_season_stats(store, row.player_id, row)

    logger.info(f"Recorded game {game_id}: {len(rows)} players, {len(team_totals)} teams")
    return rows


# ============================================================================
# Aggregates
# ============================================================================


async def player_averages(store: RecordStore, player_id: str) -> PlayerAverages:
    """Per-game averages recomputed from the player's rows; all zero with no games."""
    rows = await get_player_game_stats(store, player_id)
    return calculation_service.calculate_player_averages(rows)


async def team_season_averages(store: RecordStore, team_id: str) -> TeamSeasonAverages:
    """Team averages from the season cache; all zero with no games."""
    cache = await get_team_season_stats(store, team_id)
    return calculation_service.calculate_team_season_averages(cache)


async def team_averages_from_rows(store: RecordStore, team_id: str) -> TeamSeasonAverages:
    """Team averages recomputed from game rows. Wins and losses still come from the cache."""
    rows = await load_records(store, GAME_STATS, GameStat)
    cache = await get_team_season_stats(store, team_id)
    return calculation_service.calculate_team_averages_from_rows(
        [row for row in rows if row.team_id == team_id],
        wins=cache.wins if cache else 0,
        losses=cache.losses if cache else 0,
    )


async def player_season_totals(store: RecordStore, player_id: str) -> PlayerSeasonTotals:
    """Season totals recomputed from the player's rows for the current year."""
    rows = await get_player_game_stats(store, player_id)
    return calculation_service.calculate_player_season_totals(player_id, rows, season=utcnow().year)


async def find_team_stats_drift(store: RecordStore, team_id: str) -> List[StatDrift]:
    """
    Compare the team season cache with totals recomputed from game rows.

    Returns:
        One entry per field that disagrees; empty when the cache is consistent
    """
    rows = await load_records(store, GAME_STATS, GameStat)
    recomputed = calculation_service.team_totals_from_rows([row for row in rows if row.team_id == team_id])
    drift = calculation_service.compare_totals(await get_team_season_stats(store, team_id), recomputed)
    if drift:
        logger.warning(f"Team {team_id} season cache drifted on {[d.field for d in drift]}")
    return drift
