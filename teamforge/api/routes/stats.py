"""Game stats, aggregate and lineup route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from teamforge.api.routes import client_error, get_store
from teamforge.database.models import LineupStrategy
from teamforge.database.store import RecordStore
from teamforge.models.schemas import (
    AddLineupPlayerRequest,
    CreateLineupRequest,
    SaveGameStatsRequest,
    UpdateLineupRequest,
)
from teamforge.services import lineup_service, stats_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Game stats
# ---------------------------------------------------------------------------


@router.post("/api/games/{game_id}/stats")
async def record_game(game_id: str, payload: SaveGameStatsRequest, store: RecordStore = Depends(get_store)):
    """
    Save a confirmed game's player stats and roll them into team and season totals.
    """
    try:
        return await stats_service.record_game(store, game_id, payload.stats)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error recording game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="Error recording game stats")


@router.get("/api/games/{game_id}/stats")
async def get_game_stats(game_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await stats_service.get_game_stats(store, game_id)
    except Exception as e:
        logger.error(f"Error getting stats for game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting game stats")


@router.get("/api/players/{player_id}/averages")
async def get_player_averages(player_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await stats_service.player_averages(store, player_id)
    except Exception as e:
        logger.error(f"Error getting averages for player {player_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting player averages")


@router.get("/api/players/{player_id}/season-totals")
async def get_player_season_totals(player_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await stats_service.player_season_totals(store, player_id)
    except Exception as e:
        logger.error(f"Error getting season totals for player {player_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting season totals")


@router.get("/api/teams/{team_id}/averages")
async def get_team_season_averages(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await stats_service.team_season_averages(store, team_id)
    except Exception as e:
        logger.error(f"Error getting averages for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting team averages")


@router.get("/api/teams/{team_id}/stats-drift")
async def get_team_stats_drift(team_id: str, store: RecordStore = Depends(get_store)):
    """Fields where the team's season totals disagree with its game rows."""
    try:
        return await stats_service.find_team_stats_drift(store, team_id)
    except Exception as e:
        logger.error(f"Error checking stats drift for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error checking stats drift")


# ---------------------------------------------------------------------------
# Lineups
# ---------------------------------------------------------------------------


@router.post("/api/teams/{team_id}/lineups", status_code=201)
async def create_lineup(team_id: str, payload: CreateLineupRequest, store: RecordStore = Depends(get_store)):
    try:
        return await lineup_service.create_lineup(store, team_id, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error creating lineup for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error creating lineup")


@router.get("/api/teams/{team_id}/lineups")
async def list_team_lineups(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await lineup_service.list_team_lineups(store, team_id)
    except Exception as e:
        logger.error(f"Error listing lineups for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing lineups")


@router.get("/api/teams/{team_id}/lineup-suggestion")
async def suggest_lineup(
    team_id: str,
    strategy: LineupStrategy = Query(LineupStrategy.BALANCED),
    store: RecordStore = Depends(get_store),
):
    try:
        return await lineup_service.suggest_lineup(store, team_id, strategy)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error suggesting lineup for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error suggesting lineup")


@router.get("/api/lineups/{lineup_id}")
async def get_lineup(lineup_id: str, store: RecordStore = Depends(get_store)):
    try:
        lineup = await lineup_service.get_lineup(store, lineup_id)
        if lineup is None:
            raise HTTPException(status_code=404, detail=f"Lineup {lineup_id} not found")
        return lineup
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting lineup {lineup_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting lineup")


@router.put("/api/lineups/{lineup_id}")
async def update_lineup(lineup_id: str, payload: UpdateLineupRequest, store: RecordStore = Depends(get_store)):
    try:
        return await lineup_service.update_lineup(store, lineup_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error updating lineup {lineup_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating lineup")


@router.post("/api/lineups/{lineup_id}/players")
async def add_player_to_lineup(
    lineup_id: str, payload: AddLineupPlayerRequest, store: RecordStore = Depends(get_store)
):
    try:
        return await lineup_service.add_player_to_lineup(store, lineup_id, payload.player_id)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error adding player to lineup {lineup_id}: {e}")
        raise HTTPException(status_code=500, detail="Error adding player to lineup")


@router.delete("/api/lineups/{lineup_id}/players/{player_id}")
async def remove_player_from_lineup(lineup_id: str, player_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await lineup_service.remove_player_from_lineup(store, lineup_id, player_id)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error removing player from lineup {lineup_id}: {e}")
        raise HTTPException(status_code=500, detail="Error removing player from lineup")


@router.delete("/api/lineups/{lineup_id}")
async def delete_lineup(lineup_id: str, store: RecordStore = Depends(get_store)):
    try:
        if not await lineup_service.delete_lineup(store, lineup_id):
            raise HTTPException(status_code=404, detail=f"Lineup {lineup_id} not found")
        return {"status": "ok", "message": "Lineup deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting lineup {lineup_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting lineup")
