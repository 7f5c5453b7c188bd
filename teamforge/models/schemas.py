"""
Pydantic models for stored records, derived views and API request validation.

Every collection has exactly one canonical record model. Repositories
validate raw store records into these models on read and dump them back
with ``to_record()`` on write.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from teamforge.database.models import (
    AvailabilityStatus,
    ConfirmationStatus,
    EventType,
    LineupStrategy,
    NotePriority,
    NoteType,
    UserRole,
)
from teamforge.utils.constants import DEFAULT_LEAGUE, DEFAULT_SEASON, DEFAULT_TEAM_COLOR
from teamforge.utils.datetime_utils import parse_datetime


UtcDatetime = Annotated[datetime, AfterValidator(parse_datetime)]


class StoreRecord(BaseModel):
    """Base for every persisted record."""

    model_config = ConfigDict(extra="ignore")

    id: str

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# ============================================================================
# Records
# ============================================================================


class User(StoreRecord):
    username: str
    email: str
    phone: Optional[str] = None
    password_hash: str
    role: UserRole = UserRole.PLAYER
    first_name: str = ""
    last_name: str = ""
    avatar: Optional[str] = None
    is_active: bool = True
    last_login: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class PlayerProfile(StoreRecord):
    user_id: str
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    wingspan_cm: Optional[float] = None
    vertical_cm: Optional[float] = None
    age: Optional[int] = None
    jersey_number: Optional[int] = None
    hometown: Optional[str] = None
    experience_years: int = 0
    preferred_position: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class Team(StoreRecord):
    name: str
    league: str = DEFAULT_LEAGUE
    home_venue: Optional[str] = None
    training_venue: Optional[str] = None
    season: str = DEFAULT_SEASON
    color: str = DEFAULT_TEAM_COLOR
    created_by: Optional[str] = None
    is_active: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TeamMembership(StoreRecord):
    team_id: str
    user_id: str
    role: UserRole = UserRole.PLAYER
    jersey_number: Optional[int] = None
    position: Optional[str] = None
    is_active: bool = True
    joined_at: UtcDatetime
    archived_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class Event(StoreRecord):
    team_id: str
    opponent_team_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    event_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    event_type: EventType = EventType.PRACTICE
    location: Optional[str] = None
    created_by: Optional[str] = None
    is_confirmed: bool = True
    pending_confirmation: bool = False
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class GameDetails(BaseModel):
    """Snapshot of the game taken when the confirmation was requested."""

    title: str
    date: Optional[UtcDatetime] = None
    location: Optional[str] = None


class GameConfirmation(StoreRecord):
    game_id: str
    requesting_team_id: str
    target_team_id: str
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    game_details: GameDetails
    created_at: UtcDatetime
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[UtcDatetime] = None
    declined_by: Optional[str] = None
    declined_at: Optional[UtcDatetime] = None


class Availability(StoreRecord):
    event_id: str
    user_id: str
    status: AvailabilityStatus
    notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class StatLine(BaseModel):
    """Raw counting stats for one player in one game."""

    points: int = 0
    rebounds: int = 0
    assists: int = 0
    steals: int = 0
    blocks: int = 0
    turnovers: int = 0
    fouls: int = 0
    minutes: float = 0
    fg_made: int = 0
    fg_attempted: int = 0
    three_made: int = 0
    three_attempted: int = 0
    ft_made: int = 0
    ft_attempted: int = 0

    def has_activity(self) -> bool:
        """True when any stat was recorded (a stat line of all zeros means the player sat)."""
        return any(getattr(self, name) for name in StatLine.model_fields)


class GameStat(StoreRecord, StatLine):
    game_id: str
    player_id: str
    team_id: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TeamGameStats(StoreRecord, StatLine):
    """One team's totals for one game."""

    game_id: str
    team_id: str
    players_with_stats: int = 0
    created_at: UtcDatetime


class SeasonTotals(BaseModel):
    """Cumulative totals; shared by the season caches and derived totals."""

    games_played: int = 0
    total_points: int = 0
    total_rebounds: int = 0
    total_assists: int = 0
    total_steals: int = 0
    total_blocks: int = 0
    total_turnovers: int = 0
    total_fouls: int = 0
    total_minutes: float = 0
    total_fg_made: int = 0
    total_fg_attempted: int = 0
    total_three_made: int = 0
    total_three_attempted: int = 0
    total_ft_made: int = 0
    total_ft_attempted: int = 0


class TeamSeasonStats(StoreRecord, SeasonTotals):
    team_id: str
    wins: int = 0
    losses: int = 0
    created_at: UtcDatetime
    updated_at: UtcDatetime


class PlayerSeasonStats(StoreRecord, SeasonTotals):
    player_id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class Lineup(StoreRecord):
    team_id: str
    name: str
    positions: Dict[str, str] = Field(default_factory=dict)
    selected_players: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    is_active: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime


class RegistrationKey(StoreRecord):
    key: str
    team_id: str
    role: UserRole = UserRole.PLAYER
    created_by: Optional[str] = None
    created_at: UtcDatetime
    expires_at: UtcDatetime
    is_active: bool = True
    uses_remaining: int = 1


class Invitation(StoreRecord):
    code: str
    team_id: str
    role: UserRole = UserRole.PLAYER
    created_by: Optional[str] = None
    expires_at: UtcDatetime
    used: bool = False
    used_by: Optional[str] = None
    used_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class Note(StoreRecord):
    author_id: Optional[str] = None
    recipient_id: Optional[str] = None
    team_id: Optional[str] = None
    title: Optional[str] = None
    content: str
    note_type: NoteType = NoteType.GENERAL
    priority: NotePriority = NotePriority.MEDIUM
    is_private: bool = False
    created_at: UtcDatetime
    updated_at: UtcDatetime


class MessageReadStatus(StoreRecord):
    message_id: str
    user_id: str
    read_at: Optional[UtcDatetime] = None


# ============================================================================
# Derived views
# ============================================================================


class UserSummary(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None
    role: UserRole


class TeamMember(BaseModel):
    """A user joined with their active membership on a team."""

    user: User
    membership: TeamMembership


class UserTeam(BaseModel):
    """A team joined with the user's active membership on it."""

    team: Team
    membership: TeamMembership


class TeamPlayer(BaseModel):
    """Roster entry: player-role member merged with their profile attributes."""

    id: str
    username: str
    name: str
    jersey_number: Optional[int] = None
    position: Optional[str] = None
    joined_at: Optional[UtcDatetime] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    wingspan_cm: Optional[float] = None
    vertical_cm: Optional[float] = None
    age: Optional[int] = None
    membership: TeamMembership


class EventAvailability(BaseModel):
    availability: Availability
    user: Optional[UserSummary] = None


class AvailabilitySummary(BaseModel):
    available: int = 0
    maybe: int = 0
    unavailable: int = 0


class KeyValidation(BaseModel):
    """Result of checking a registration key without using it."""

    valid: bool
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    role: Optional[UserRole] = None
    key_id: Optional[str] = None
    message: Optional[str] = None


class InvitationValidation(BaseModel):
    valid: bool
    invitation: Optional[Invitation] = None
    message: Optional[str] = None


class PlayerAverages(BaseModel):
    """Per-game averages; every field is zero when no games were recorded."""

    games_played: int = 0
    ppg: float = 0
    apg: float = 0
    rpg: float = 0
    spg: float = 0
    bpg: float = 0
    tpg: float = 0
    mpg: float = 0
    fpg: float = 0
    fg_percent: float = 0
    ft_percent: float = 0
    three_percent: float = 0


class TeamSeasonAverages(PlayerAverages):
    wins: int = 0
    losses: int = 0
    win_percent: float = 0


class PlayerSeasonTotals(SeasonTotals):
    player_id: str
    season: int


class PlayerRating(BaseModel):
    """A player's averages with the ratings used for lineup suggestions."""

    player_id: str
    name: str
    averages: PlayerAverages
    efficiency: int
    overall_rating: float
    offensive_rating: float
    defensive_rating: float


class LineupSuggestion(BaseModel):
    strategy: LineupStrategy
    player_ids: List[str]
    description: str


class StatDrift(BaseModel):
    """One field where the team season cache disagrees with the raw game stats."""

    field: str
    cached: float
    recomputed: float


# ============================================================================
# API requests
# ============================================================================


class RegisterUserRequest(BaseModel):
    username: str
    email: str
    password: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.PLAYER
    phone: Optional[str] = None


class CreateTeamRequest(BaseModel):
    name: str
    league: Optional[str] = None
    home_venue: Optional[str] = None
    training_venue: Optional[str] = None
    season: Optional[str] = None
    color: Optional[str] = None
    created_by: Optional[str] = None


class AddMemberRequest(BaseModel):
    user_id: str
    role: UserRole = UserRole.PLAYER
    jersey_number: Optional[int] = None
    position: Optional[str] = None


class GenerateKeyRequest(BaseModel):
    role: UserRole = UserRole.PLAYER
    expires_in_days: Optional[int] = Field(default=None, ge=1)
    uses: int = Field(default=1, ge=1)
    created_by: Optional[str] = None


class RedeemKeyRequest(BaseModel):
    key: str
    user_id: str


class CreateInvitationRequest(BaseModel):
    role: UserRole = UserRole.PLAYER
    code: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None


class UseInvitationRequest(BaseModel):
    user_id: str


class CreateEventRequest(BaseModel):
    team_id: Optional[str] = None
    title: Optional[str] = None
    event_date: Optional[datetime] = None
    event_type: EventType = EventType.PRACTICE
    opponent_team_id: Optional[str] = None
    description: Optional[str] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    created_by: Optional[str] = None


class UpdateEventRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None


class ConfirmGameRequest(BaseModel):
    user_id: str
    acting_team_id: Optional[str] = None


class AvailabilityRequest(BaseModel):
    user_id: str
    status: AvailabilityStatus
    notes: Optional[str] = None


class GameStatInput(StatLine):
    player_id: str
    team_id: Optional[str] = None


class SaveGameStatsRequest(BaseModel):
    stats: List[GameStatInput]


class CreateLineupRequest(BaseModel):
    name: str
    positions: Dict[str, str] = Field(default_factory=dict)
    selected_players: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None


class AddLineupPlayerRequest(BaseModel):
    player_id: str


class CreateNoteRequest(BaseModel):
    author_id: str
    content: str
    recipient_id: Optional[str] = None
    team_id: Optional[str] = None
    title: Optional[str] = None
    note_type: NoteType = NoteType.GENERAL
    priority: NotePriority = NotePriority.MEDIUM
    is_private: bool = False


class CreateMessageRequest(BaseModel):
    author_id: str
    content: str
    recipient_id: Optional[str] = None
    is_private: bool = False


class MarkReadRequest(BaseModel):
    user_id: str
    from_user_id: str


class UpdateNoteRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    note_type: Optional[NoteType] = None
    priority: Optional[NotePriority] = None
    is_private: Optional[bool] = None


class UpdateLineupRequest(BaseModel):
    name: Optional[str] = None
    positions: Optional[Dict[str, str]] = None
    selected_players: Optional[List[str]] = None
    is_active: Optional[bool] = None
