"""Event, game confirmation and availability route handlers."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from teamforge.api.routes import client_error, get_store
from teamforge.database.store import RecordStore
from teamforge.models.schemas import (
    AvailabilityRequest,
    ConfirmGameRequest,
    CreateEventRequest,
    UpdateEventRequest,
)
from teamforge.services import availability_service, event_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.post("/api/events", status_code=201)
async def create_event(payload: CreateEventRequest, store: RecordStore = Depends(get_store)):
    """Create an event; games against another team start out pending confirmation."""
    try:
        return await event_service.create_event(store, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error creating event: {e}")
        raise HTTPException(status_code=500, detail="Error creating event")


@router.get("/api/events")
async def list_events(
    team_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    store: RecordStore = Depends(get_store),
):
    try:
        return await event_service.list_events(store, team_id, start, end)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error listing events: {e}")
        raise HTTPException(status_code=500, detail="Error listing events")


@router.get("/api/teams/{team_id}/events")
async def list_team_events(
    team_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    store: RecordStore = Depends(get_store),
):
    """Events the team hosts or plays in as the opponent."""
    try:
        return await event_service.list_team_events(store, team_id, start, end)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error listing events for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing team events")


@router.get("/api/events/{event_id}")
async def get_event(event_id: str, store: RecordStore = Depends(get_store)):
    try:
        event = await event_service.get_event(store, event_id)
        if event is None:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return event
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting event")


@router.put("/api/events/{event_id}")
async def update_event(event_id: str, payload: UpdateEventRequest, store: RecordStore = Depends(get_store)):
    try:
        return await event_service.update_event(store, event_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating event")


@router.delete("/api/events/{event_id}")
async def delete_event(event_id: str, store: RecordStore = Depends(get_store)):
    try:
        if not await event_service.delete_event(store, event_id):
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return {"status": "ok", "message": "Event deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting event")


# ---------------------------------------------------------------------------
# Game confirmation
# ---------------------------------------------------------------------------


@router.get("/api/events/{event_id}/confirmation")
async def get_confirmation_state(event_id: str, store: RecordStore = Depends(get_store)):
    try:
        state = await event_service.get_confirmation_state(store, event_id)
        if state is None:
            raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
        return {"event_id": event_id, "state": state.value}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting confirmation state for {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting confirmation state")


@router.post("/api/events/{event_id}/confirm")
async def confirm_game(event_id: str, payload: ConfirmGameRequest, store: RecordStore = Depends(get_store)):
    try:
        return await event_service.confirm_game(
            store, event_id, payload.user_id, acting_team_id=payload.acting_team_id
        )
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error confirming game {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error confirming game")


@router.post("/api/events/{event_id}/decline")
async def decline_game(event_id: str, payload: ConfirmGameRequest, store: RecordStore = Depends(get_store)):
    """Decline a game; the event is removed from the calendar."""
    try:
        confirmation = await event_service.decline_game(
            store, event_id, payload.user_id, acting_team_id=payload.acting_team_id
        )
        return {"status": "ok", "message": "Game declined", "confirmation": confirmation}
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error declining game {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error declining game")


@router.get("/api/teams/{team_id}/pending-confirmations")
async def list_pending_confirmations_for_team(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await event_service.list_pending_confirmations_for_team(store, team_id)
    except Exception as e:
        logger.error(f"Error listing pending confirmations for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing pending confirmations")


@router.get("/api/users/{user_id}/pending-confirmations")
async def list_user_pending_confirmations(user_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await event_service.list_user_pending_confirmations(store, user_id)
    except Exception as e:
        logger.error(f"Error listing pending confirmations for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing pending confirmations")


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


@router.put("/api/events/{event_id}/availability")
async def set_player_availability(
    event_id: str, payload: AvailabilityRequest, store: RecordStore = Depends(get_store)
):
    """Record a player's response, replacing any earlier one."""
    try:
        return await availability_service.set_player_availability(
            store, event_id, payload.user_id, payload.status, payload.notes
        )
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error setting availability for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error setting availability")


@router.get("/api/events/{event_id}/availability")
async def get_event_availability(event_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await availability_service.get_event_availability(store, event_id)
    except Exception as e:
        logger.error(f"Error getting availability for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting availability")


@router.get("/api/events/{event_id}/availability/summary")
async def summarize_event_availability(event_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await availability_service.summarize_event_availability(store, event_id)
    except Exception as e:
        logger.error(f"Error summarizing availability for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error summarizing availability")


@router.get("/api/users/{user_id}/availability")
async def get_player_availability(
    user_id: str,
    event_id: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    try:
        return await availability_service.get_player_availability(store, user_id, event_id)
    except Exception as e:
        logger.error(f"Error getting availability for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting availability")
