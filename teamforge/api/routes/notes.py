"""Note and team message route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from teamforge.api.routes import client_error, get_store
from teamforge.database.models import NoteType
from teamforge.database.store import RecordStore
from teamforge.models.schemas import (
    CreateMessageRequest,
    CreateNoteRequest,
    MarkReadRequest,
    UpdateNoteRequest,
)
from teamforge.services import note_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/notes", status_code=201)
async def create_note(payload: CreateNoteRequest, store: RecordStore = Depends(get_store)):
    try:
        return await note_service.create_note(store, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error creating note: {e}")
        raise HTTPException(status_code=500, detail="Error creating note")


@router.get("/api/users/{user_id}/notes")
async def list_notes_for_user(
    user_id: str,
    note_type: Optional[NoteType] = Query(None),
    store: RecordStore = Depends(get_store),
):
    """Notes written by or addressed to the user, newest first."""
    try:
        return await note_service.list_notes_for_user(store, user_id, note_type)
    except Exception as e:
        logger.error(f"Error listing notes for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing notes")


@router.put("/api/notes/{note_id}")
async def update_note(note_id: str, payload: UpdateNoteRequest, store: RecordStore = Depends(get_store)):
    try:
        return await note_service.update_note(store, note_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error updating note {note_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating note")


@router.delete("/api/notes/{note_id}")
async def delete_note(note_id: str, store: RecordStore = Depends(get_store)):
    try:
        if not await note_service.delete_note(store, note_id):
            raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
        return {"status": "ok", "message": "Note deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting note {note_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting note")


@router.post("/api/teams/{team_id}/messages", status_code=201)
async def create_message(team_id: str, payload: CreateMessageRequest, store: RecordStore = Depends(get_store)):
    try:
        return await note_service.create_message(store, team_id, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error posting message to team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error posting message")


@router.get("/api/teams/{team_id}/messages")
async def list_team_messages(
    team_id: str,
    player_id: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    try:
        return await note_service.list_team_messages(store, team_id, player_id)
    except Exception as e:
        logger.error(f"Error listing messages for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing messages")


@router.get("/api/conversations")
async def list_conversation(
    user_a: str = Query(...),
    user_b: str = Query(...),
    store: RecordStore = Depends(get_store),
):
    try:
        return await note_service.list_conversation(store, user_a, user_b)
    except Exception as e:
        logger.error(f"Error listing conversation: {e}")
        raise HTTPException(status_code=500, detail="Error listing conversation")


@router.post("/api/messages/read")
async def mark_messages_read(payload: MarkReadRequest, store: RecordStore = Depends(get_store)):
    try:
        marked = await note_service.mark_messages_read(store, payload.user_id, payload.from_user_id)
        return {"status": "ok", "marked": marked}
    except Exception as e:
        logger.error(f"Error marking messages read: {e}")
        raise HTTPException(status_code=500, detail="Error marking messages read")


@router.get("/api/messages/unread")
async def count_unread_messages(
    user_id: str = Query(...),
    from_user_id: str = Query(...),
    store: RecordStore = Depends(get_store),
):
    try:
        unread = await note_service.count_unread_messages(store, user_id, from_user_id)
        return {"user_id": user_id, "from_user_id": from_user_id, "unread": unread}
    except Exception as e:
        logger.error(f"Error counting unread messages: {e}")
        raise HTTPException(status_code=500, detail="Error counting unread messages")
