"""Team, membership, registration key and invitation route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from teamforge.api.routes import client_error, get_store
from teamforge.database.store import RecordStore
from teamforge.models.schemas import (
    AddMemberRequest,
    CreateInvitationRequest,
    CreateTeamRequest,
    GenerateKeyRequest,
    RedeemKeyRequest,
    RegisterUserRequest,
    UseInvitationRequest,
)
from teamforge.services import registration_service, team_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _public_user(user) -> dict:
    return user.model_dump(mode="json", exclude={"password_hash"})


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post("/api/users", status_code=201)
async def register_user(payload: RegisterUserRequest, store: RecordStore = Depends(get_store)):
    """Register a user account."""
    try:
        user = await user_service.register_user(store, **payload.model_dump())
        return _public_user(user)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error registering user: {e}")
        raise HTTPException(status_code=500, detail="Error registering user")


@router.get("/api/users/{user_id}/teams")
async def list_user_teams(user_id: str, store: RecordStore = Depends(get_store)):
    """Teams the user actively belongs to."""
    try:
        return await team_service.list_user_teams(store, user_id)
    except Exception as e:
        logger.error(f"Error listing teams for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing user teams")


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


@router.post("/api/teams", status_code=201)
async def create_team(payload: CreateTeamRequest, store: RecordStore = Depends(get_store)):
    try:
        return await team_service.create_team(store, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error creating team: {e}")
        raise HTTPException(status_code=500, detail="Error creating team")


@router.get("/api/teams")
async def list_teams(
    league: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    """All teams, or the active teams of one league."""
    try:
        if league:
            return await team_service.list_teams_by_league(store, league)
        return await team_service.list_teams(store)
    except Exception as e:
        logger.error(f"Error listing teams: {e}")
        raise HTTPException(status_code=500, detail="Error listing teams")


@router.get("/api/leagues")
async def list_leagues(store: RecordStore = Depends(get_store)):
    try:
        return await team_service.list_leagues(store)
    except Exception as e:
        logger.error(f"Error listing leagues: {e}")
        raise HTTPException(status_code=500, detail="Error listing leagues")


@router.get("/api/teams/{team_id}")
async def get_team(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        team = await team_service.get_team(store, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail=f"Team {team_id} not found")
        return team
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error getting team")


@router.get("/api/teams/{team_id}/opponents")
async def list_team_opponents(team_id: str, store: RecordStore = Depends(get_store)):
    """Other active teams in the same league."""
    try:
        return await team_service.list_team_opponents(store, team_id)
    except Exception as e:
        logger.error(f"Error listing opponents for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing opponents")


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/api/teams/{team_id}/members")
async def list_team_members(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        members = await team_service.list_team_members(store, team_id)
        return [
            {"user": _public_user(m.user), "membership": m.membership.to_record()}
            for m in members
        ]
    except Exception as e:
        logger.error(f"Error listing members for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing team members")


@router.post("/api/teams/{team_id}/members", status_code=201)
async def add_team_member(
    team_id: str, payload: AddMemberRequest, store: RecordStore = Depends(get_store)
):
    try:
        return await team_service.add_team_member(store, team_id, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error adding member to team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error adding team member")


@router.delete("/api/teams/{team_id}/members/{user_id}")
async def archive_team_member(team_id: str, user_id: str, store: RecordStore = Depends(get_store)):
    """Archive a membership; the user can re-join later."""
    try:
        return await team_service.archive_team_member(store, team_id, user_id)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error archiving member {user_id} of team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error archiving team member")


@router.get("/api/teams/{team_id}/players")
async def list_team_players(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await team_service.list_team_players(store, team_id)
    except Exception as e:
        logger.error(f"Error listing players for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing team players")


# ---------------------------------------------------------------------------
# Registration keys
# ---------------------------------------------------------------------------


@router.post("/api/teams/{team_id}/registration-keys", status_code=201)
async def generate_registration_key(
    team_id: str, payload: GenerateKeyRequest, store: RecordStore = Depends(get_store)
):
    try:
        return await registration_service.generate_registration_key(
            store, team_id, **payload.model_dump()
        )
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error generating registration key for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error generating registration key")


@router.get("/api/teams/{team_id}/registration-keys")
async def list_team_registration_keys(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await registration_service.list_team_registration_keys(store, team_id)
    except Exception as e:
        logger.error(f"Error listing registration keys for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing registration keys")


@router.get("/api/registration-keys/{key}")
async def validate_registration_key(key: str, store: RecordStore = Depends(get_store)):
    """Check a key without using it."""
    try:
        return await registration_service.validate_registration_key(store, key)
    except Exception as e:
        logger.error(f"Error validating registration key: {e}")
        raise HTTPException(status_code=500, detail="Error validating registration key")


@router.post("/api/registration-keys/redeem", status_code=201)
async def redeem_registration_key(payload: RedeemKeyRequest, store: RecordStore = Depends(get_store)):
    try:
        return await registration_service.redeem_registration_key(store, payload.key, payload.user_id)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error redeeming registration key: {e}")
        raise HTTPException(status_code=500, detail="Error redeeming registration key")


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@router.post("/api/teams/{team_id}/invitations", status_code=201)
async def create_invitation(
    team_id: str, payload: CreateInvitationRequest, store: RecordStore = Depends(get_store)
):
    try:
        return await registration_service.create_invitation(store, team_id, **payload.model_dump())
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error creating invitation for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error creating invitation")


@router.get("/api/teams/{team_id}/invitations")
async def list_team_invitations(team_id: str, store: RecordStore = Depends(get_store)):
    try:
        return await registration_service.list_team_invitations(store, team_id)
    except Exception as e:
        logger.error(f"Error listing invitations for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing invitations")


@router.get("/api/invitations/{code}")
async def validate_invitation(code: str, store: RecordStore = Depends(get_store)):
    try:
        return await registration_service.validate_invitation(store, code)
    except Exception as e:
        logger.error(f"Error validating invitation: {e}")
        raise HTTPException(status_code=500, detail="Error validating invitation")


@router.post("/api/invitations/{code}/use", status_code=201)
async def use_invitation(code: str, payload: UseInvitationRequest, store: RecordStore = Depends(get_store)):
    try:
        return await registration_service.use_invitation(store, code, payload.user_id)
    except ValueError as e:
        raise client_error(e)
    except Exception as e:
        logger.error(f"Error using invitation: {e}")
        raise HTTPException(status_code=500, detail="Error using invitation")
