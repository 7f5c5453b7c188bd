"""
Lineup service: saved lineups and stat-based lineup suggestions.

A lineup holds at most MAX_LINEUP_SIZE selected players, in order.
"""

from typing import Any, Dict, List, Optional
import logging

from teamforge.database.models import LineupStrategy
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import Lineup, LineupSuggestion, PlayerRating
from teamforge.services import calculation_service, stats_service, team_service
from teamforge.services.exceptions import NotFoundError, ValidationError
from teamforge.utils.constants import LINEUPS, MAX_LINEUP_SIZE
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

SUGGESTION_DESCRIPTIONS = {
    LineupStrategy.BALANCED: "Selected players with the best overall ratings, balancing scoring, defense, and playmaking.",
    LineupStrategy.OFFENSIVE: "Selected top scorers and playmakers for maximum offensive output.",
    LineupStrategy.DEFENSIVE: "Selected players with the best defensive stats (steals, blocks, rebounds).",
}


def _check_size(selected_players: List[str]) -> None:
    if len(selected_players) > MAX_LINEUP_SIZE:
        raise ValidationError(f"A lineup can have at most {MAX_LINEUP_SIZE} players")


async def create_lineup(
    store: RecordStore,
    team_id: str,
    name: str,
    selected_players: Optional[List[str]] = None,
    positions: Optional[Dict[str, str]] = None,
    created_by: Optional[str] = None,
) -> Lineup:
    """
    Save a new lineup for a team.

    Raises:
        ValidationError: If the name is blank or more than MAX_LINEUP_SIZE players are selected
    """
    if not name or not name.strip():
        raise ValidationError("Lineup name is required")
    selected_players = list(selected_players or [])
    _check_size(selected_players)

    lineups = await load_records(store, LINEUPS, Lineup)
    now = utcnow()
    lineup = Lineup(
        id=store.new_id(),
        team_id=team_id,
        name=name.strip(),
        positions=positions or {},
        selected_players=selected_players,
        created_by=created_by,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    lineups.append(lineup)
    await save_records(store, LINEUPS, lineups)
    logger.info("Created lineup %s for team %s", lineup.id, team_id)
    return lineup


async def update_lineup(store: RecordStore, lineup_id: str, updates: Dict[str, Any]) -> Lineup:
    """
    Raises:
        NotFoundError: If the lineup does not exist
        ValidationError: If the update selects more than MAX_LINEUP_SIZE players
    """
    if "selected_players" in updates:
        _check_size(list(updates["selected_players"] or []))

    lineups = await load_records(store, LINEUPS, Lineup)
    for index, lineup in enumerate(lineups):
        if lineup.id == lineup_id:
            lineups[index] = merge_record(
                lineup, {**updates, "updated_at": utcnow()}, protected=("id", "team_id", "created_at")
            )
            await save_records(store, LINEUPS, lineups)
            return lineups[index]
    raise NotFoundError(f"Lineup {lineup_id} not found")


async def get_lineup(store: RecordStore, lineup_id: str) -> Optional[Lineup]:
    lineups = await load_records(store, LINEUPS, Lineup)
    return next((l for l in lineups if l.id == lineup_id), None)


async def list_team_lineups(store: RecordStore, team_id: str) -> List[Lineup]:
    lineups = await load_records(store, LINEUPS, Lineup)
    return [l for l in lineups if l.team_id == team_id and l.is_active]


async def add_player_to_lineup(store: RecordStore, lineup_id: str, player_id: str) -> Lineup:
    """
    Append a player to a lineup. Adding a player already in it changes nothing.

    Raises:
        NotFoundError: If the lineup does not exist
        ValidationError: If the lineup is already full
    """
    lineup = await get_lineup(store, lineup_id)
    if lineup is None:
        raise NotFoundError(f"Lineup {lineup_id} not found")
    if player_id in lineup.selected_players:
        return lineup
    if len(lineup.selected_players) >= MAX_LINEUP_SIZE:
        raise ValidationError(f"Lineup {lineup_id} already has {MAX_LINEUP_SIZE} players")
    return await update_lineup(
        store, lineup_id, {"selected_players": [*lineup.selected_players, player_id]}
    )


async def remove_player_from_lineup(store: RecordStore, lineup_id: str, player_id: str) -> Lineup:
    """Remove a player from the selection and from any position they fill."""
    lineup = await get_lineup(store, lineup_id)
    if lineup is None:
        raise NotFoundError(f"Lineup {lineup_id} not found")
    return await update_lineup(
        store,
        lineup_id,
        {
            "selected_players": [p for p in lineup.selected_players if p != player_id],
            "positions": {pos: p for pos, p in lineup.positions.items() if p != player_id},
        },
    )


async def delete_lineup(store: RecordStore, lineup_id: str) -> bool:
    lineups = await load_records(store, LINEUPS, Lineup)
    remaining = [l for l in lineups if l.id != lineup_id]
    if len(remaining) == len(lineups):
        return False
    await save_records(store, LINEUPS, remaining)
    return True


# ============================================================================
# Suggestions
# ============================================================================


async def rate_team_players(store: RecordStore, team_id: str) -> List[PlayerRating]:
    """Rate every rostered player from their per-game averages."""
    ratings = []
    for player in await team_service.list_team_players(store, team_id):
        averages = await stats_service.player_averages(store, player.id)
        ratings.append(calculation_service.rate_player(player.id, player.name, averages))
    return ratings


async def suggest_lineup(
    store: RecordStore, team_id: str, strategy: LineupStrategy = LineupStrategy.BALANCED
) -> LineupSuggestion:
    """
    Suggest up to five players for a team using the given strategy.

    Only players with at least one recorded game are considered.

    Raises:
        ValidationError: If no rostered player has recorded stats
    """
    strategy = LineupStrategy(strategy)
    ratings = [r for r in await rate_team_players(store, team_id) if r.averages.games_played > 0]
    if not ratings:
        raise ValidationError("No player statistics available for suggestions")

    if strategy == LineupStrategy.BALANCED:
        picked = calculation_service.select_balanced_lineup(ratings)
    elif strategy == LineupStrategy.OFFENSIVE:
        picked = calculation_service.select_offensive_lineup(ratings)
    elif strategy == LineupStrategy.DEFENSIVE:
        picked = calculation_service.select_defensive_lineup(ratings)
    else:
        raise ValidationError(f"Unknown lineup strategy {strategy!r}")

    return LineupSuggestion(
        strategy=strategy,
        player_ids=[p.player_id for p in picked],
        description=SUGGESTION_DESCRIPTIONS[strategy],
    )
