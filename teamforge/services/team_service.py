"""
Team service for teams, memberships and rosters.

Memberships are never deleted: leaving a team archives the membership
(``is_active=False``) so history is kept and the user may re-join later.
"""

from typing import Any, Dict, List, Optional
import logging

from teamforge.database.models import UserRole
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import (
    PlayerProfile,
    Team,
    TeamMember,
    TeamMembership,
    TeamPlayer,
    User,
    UserTeam,
)
from teamforge.services.exceptions import (
    DuplicateMembershipError,
    NotFoundError,
    ValidationError,
)
from teamforge.utils.constants import (
    DEFAULT_LEAGUE,
    DEFAULT_SEASON,
    DEFAULT_TEAM_COLOR,
    PLAYER_PROFILES,
    TEAM_MEMBERSHIPS,
    TEAMS,
    USERS,
)
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# Teams
# ============================================================================


async def create_team(
    store: RecordStore,
    name: str,
    league: Optional[str] = None,
    home_venue: Optional[str] = None,
    training_venue: Optional[str] = None,
    season: Optional[str] = None,
    color: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Team:
    """
    Create a team.

    Args:
        store: Record store
        name: Team name (required)
        league: League name, defaults to the standard league
        created_by: User ID of the creator

    Returns:
        The created Team

    Raises:
        ValidationError: If the name is blank
    """
    if not name or not name.strip():
        raise ValidationError("Team name is required")

    teams = await load_records(store, TEAMS, Team)
    now = utcnow()
    team = Team(
        id=store.new_id(),
        name=name.strip(),
        league=league or DEFAULT_LEAGUE,
        home_venue=home_venue,
        training_venue=training_venue,
        season=season or DEFAULT_SEASON,
        color=color or DEFAULT_TEAM_COLOR,
        created_by=created_by,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    teams.append(team)
    await save_records(store, TEAMS, teams)
    logger.info("Created team %s (%s)", team.id, team.name)
    return team


async def get_team(store: RecordStore, team_id: str) -> Optional[Team]:
    teams = await load_records(store, TEAMS, Team)
    return next((t for t in teams if t.id == team_id), None)


async def list_teams(store: RecordStore) -> List[Team]:
    return await load_records(store, TEAMS, Team)


async def update_team(store: RecordStore, team_id: str, updates: Dict[str, Any]) -> Team:
    """
    Raises:
        NotFoundError: If the team does not exist
    """
    teams = await load_records(store, TEAMS, Team)
    for index, team in enumerate(teams):
        if team.id == team_id:
            teams[index] = merge_record(team, {**updates, "updated_at": utcnow()})
            await save_records(store, TEAMS, teams)
            return teams[index]
    raise NotFoundError(f"Team {team_id} not found")


async def list_teams_by_league(
    store: RecordStore, league: str, exclude_team_id: Optional[str] = None
) -> List[Team]:
    """Active teams in a league, optionally excluding one team."""
    teams = await load_records(store, TEAMS, Team)
    return [
        t for t in teams
        if t.league == league and t.is_active and t.id != exclude_team_id
    ]


async def list_leagues(store: RecordStore) -> List[str]:
    """Distinct non-empty league names, sorted."""
    teams = await load_records(store, TEAMS, Team)
    return sorted({t.league for t in teams if t.league})


async def list_team_opponents(store: RecordStore, team_id: str) -> List[Team]:
    """Other active teams in the same league as ``team_id``."""
    team = await get_team(store, team_id)
    if team is None:
        return []
    return await list_teams_by_league(store, team.league, exclude_team_id=team_id)


# ============================================================================
# Memberships
# ============================================================================


def _find_active_membership(
    memberships: List[TeamMembership], team_id: str, user_id: str
) -> Optional[TeamMembership]:
    return next(
        (
            m for m in memberships
            if m.team_id == team_id and m.user_id == user_id and m.is_active
        ),
        None,
    )


async def get_active_membership(
    store: RecordStore, team_id: str, user_id: str
) -> Optional[TeamMembership]:
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    return _find_active_membership(memberships, team_id, user_id)


async def add_team_member(
    store: RecordStore,
    team_id: str,
    user_id: str,
    role: UserRole = UserRole.PLAYER,
    jersey_number: Optional[int] = None,
    position: Optional[str] = None,
) -> TeamMembership:
    """
    Add a user to a team.

    Archived memberships do not block re-joining; a new membership row is
    created alongside the archived one.

    Raises:
        DuplicateMembershipError: If the user already has an active membership on the team
    """
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    if _find_active_membership(memberships, team_id, user_id) is not None:
        raise DuplicateMembershipError(f"User {user_id} is already a member of team {team_id}")

    membership = TeamMembership(
        id=store.new_id(),
        team_id=team_id,
        user_id=user_id,
        role=role,
        jersey_number=jersey_number,
        position=position,
        is_active=True,
        joined_at=utcnow(),
    )
    memberships.append(membership)
    await save_records(store, TEAM_MEMBERSHIPS, memberships)
    logger.info("Added user %s to team %s as %s", user_id, team_id, membership.role.value)
    return membership


async def archive_team_member(store: RecordStore, team_id: str, user_id: str) -> TeamMembership:
    """
    Archive the user's active membership on a team.

    Raises:
        NotFoundError: If there is no active membership
    """
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    for index, membership in enumerate(memberships):
        if membership.team_id == team_id and membership.user_id == user_id and membership.is_active:
            now = utcnow()
            memberships[index] = merge_record(
                membership, {"is_active": False, "archived_at": now, "updated_at": now}
            )
            await save_records(store, TEAM_MEMBERSHIPS, memberships)
            logger.info("Archived membership of user %s on team %s", user_id, team_id)
            return memberships[index]
    raise NotFoundError(f"User {user_id} has no active membership on team {team_id}")


async def list_user_teams(store: RecordStore, user_id: str) -> List[UserTeam]:
    """Teams the user actively belongs to, with the membership that links them."""
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    teams = {t.id: t for t in await load_records(store, TEAMS, Team)}
    return [
        UserTeam(team=teams[m.team_id], membership=m)
        for m in memberships
        if m.user_id == user_id and m.is_active and m.team_id in teams
    ]


async def list_team_members(store: RecordStore, team_id: str) -> List[TeamMember]:
    """Active members of a team joined with their user records."""
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    users = {u.id: u for u in await load_records(store, USERS, User)}
    return [
        TeamMember(user=users[m.user_id], membership=m)
        for m in memberships
        if m.team_id == team_id and m.is_active and m.user_id in users
    ]


async def get_user_team_role(store: RecordStore, user_id: str, team_id: str) -> Optional[UserRole]:
    membership = await get_active_membership(store, team_id, user_id)
    return membership.role if membership else None


async def change_member_role(
    store: RecordStore, team_id: str, user_id: str, role: UserRole
) -> TeamMembership:
    """
    Raises:
        NotFoundError: If there is no active membership
    """
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    for index, membership in enumerate(memberships):
        if membership.team_id == team_id and membership.user_id == user_id and membership.is_active:
            memberships[index] = merge_record(membership, {"role": role, "updated_at": utcnow()})
            await save_records(store, TEAM_MEMBERSHIPS, memberships)
            return memberships[index]
    raise NotFoundError(f"User {user_id} has no active membership on team {team_id}")


async def list_team_players(store: RecordStore, team_id: str) -> List[TeamPlayer]:
    """
    Roster of active player-role members, merged with their profile attributes.

    A player's jersey number on the membership takes precedence over the one
    on their profile.
    """
    memberships = await load_records(store, TEAM_MEMBERSHIPS, TeamMembership)
    users = {u.id: u for u in await load_records(store, USERS, User)}
    profiles = {p.user_id: p for p in await load_records(store, PLAYER_PROFILES, PlayerProfile)}

    players = []
    for membership in memberships:
        if membership.team_id != team_id or not membership.is_active:
            continue
        if membership.role != UserRole.PLAYER:
            continue
        user = users.get(membership.user_id)
        if user is None:
            continue
        profile = profiles.get(user.id)
        players.append(
            TeamPlayer(
                id=user.id,
                username=user.username,
                name=f"{user.first_name} {user.last_name}".strip(),
                jersey_number=(
                    membership.jersey_number
                    if membership.jersey_number is not None
                    else (profile.jersey_number if profile else None)
                ),
                position=membership.position or (profile.preferred_position if profile else None),
                joined_at=membership.joined_at,
                height_cm=profile.height_cm if profile else None,
                weight_kg=profile.weight_kg if profile else None,
                wingspan_cm=profile.wingspan_cm if profile else None,
                vertical_cm=profile.vertical_cm if profile else None,
                age=profile.age if profile else None,
                membership=membership,
            )
        )
    return players
