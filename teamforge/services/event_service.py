"""
Event service: calendar events and the game confirmation workflow.

A game against another team starts out pending until the opponent team
confirms or declines it. Confirming marks the event confirmed; declining
deletes the event outright so declined games leave nothing on the
calendar, and the GameConfirmation record remains as the log of who acted.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from teamforge.database.models import ConfirmationState, ConfirmationStatus, EventType
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import Availability, Event, GameConfirmation, GameDetails
from teamforge.services import team_service
from teamforge.services.exceptions import NotFoundError, StateConflictError, ValidationError
from teamforge.utils.constants import AVAILABILITY, EVENTS, GAME_CONFIRMATIONS
from teamforge.utils.datetime_utils import parse_datetime, utcnow

logger = logging.getLogger(__name__)

# Fields only the confirmation workflow may change
CONFIRMATION_FIELDS = ("is_confirmed", "pending_confirmation", "confirmed_by", "confirmed_at")

DateLike = Union[str, datetime, None]


def _parse_date(value: DateLike, field: str) -> Optional[datetime]:
    try:
        return parse_datetime(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field}: {value!r}") from e


def requires_confirmation(event_type: EventType, opponent_team_id: Optional[str]) -> bool:
    """Games against another team need the opponent's confirmation."""
    return event_type == EventType.GAME and bool(opponent_team_id)


# ============================================================================
# Events
# ============================================================================


async def create_event(
    store: RecordStore,
    team_id: Optional[str] = None,
    title: Optional[str] = None,
    event_date: DateLike = None,
    event_type: EventType = EventType.PRACTICE,
    opponent_team_id: Optional[str] = None,
    description: Optional[str] = None,
    end_date: DateLike = None,
    location: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Event:
    """
    Create an event, plus a pending GameConfirmation for games against another team.

    The events collection is written first and the confirmation second. If
    the second write fails the event is left without a confirmation record;
    this is logged and the error propagates.

    Raises:
        ValidationError: If title, team_id or event_date is missing or invalid
    """
    if not title or not title.strip():
        raise ValidationError("Event title is required")
    if not team_id:
        raise ValidationError("Event team_id is required")
    parsed_date = _parse_date(event_date, "event_date")
    if parsed_date is None:
        raise ValidationError("Event date is required")
    event_type = EventType(event_type)

    pending = requires_confirmation(event_type, opponent_team_id)
    now = utcnow()
    event = Event(
        id=store.new_id(),
        team_id=team_id,
        opponent_team_id=opponent_team_id or None,
        title=title.strip(),
        description=description,
        event_date=parsed_date,
        end_date=_parse_date(end_date, "end_date"),
        event_type=event_type,
        location=location,
        created_by=created_by,
        is_confirmed=not pending,
        pending_confirmation=pending,
        confirmed_by=None,
        confirmed_at=None,
        created_at=now,
        updated_at=now,
    )

    events = await load_records(store, EVENTS, Event)
    events.append(event)
    await save_records(store, EVENTS, events)

    if pending:
        confirmation = GameConfirmation(
            id=store.new_id(),
            game_id=event.id,
            requesting_team_id=event.team_id,
            target_team_id=event.opponent_team_id,
            status=ConfirmationStatus.PENDING,
            game_details=GameDetails(title=event.title, date=event.event_date, location=event.location),
            created_at=now,
        )
        try:
            confirmations = await load_records(store, GAME_CONFIRMATIONS, GameConfirmation)
            confirmations.append(confirmation)
            await save_records(store, GAME_CONFIRMATIONS, confirmations)
        except Exception:
            logger.exception(f"Event {event.id} was saved without its game confirmation")
            raise
        logger.info(f"Game {event.id} awaiting confirmation from team {event.opponent_team_id}")

    return event


async def get_event(store: RecordStore, event_id: str) -> Optional[Event]:
    events = await load_records(store, EVENTS, Event)
    return next((e for e in events if e.id == event_id), None)


def _filter_by_date(events: List[Event], start: DateLike, end: DateLike) -> List[Event]:
    start_date = _parse_date(start, "start")
    end_date = _parse_date(end, "end")
    if start_date:
        events = [e for e in events if e.event_date >= start_date]
    if end_date:
        events = [e for e in events if e.event_date <= end_date]
    return sorted(events, key=lambda e: e.event_date)


async def list_events(
    store: RecordStore,
    team_id: Optional[str] = None,
    start: DateLike = None,
    end: DateLike = None,
) -> List[Event]:
    """
    Events, optionally for one owning team and within a date range, sorted by date.
    """
    events = await load_records(store, EVENTS, Event)
    if team_id:
        events = [e for e in events if e.team_id == team_id]
    return _filter_by_date(events, start, end)


async def list_team_events(
    store: RecordStore, team_id: str, start: DateLike = None, end: DateLike = None
) -> List[Event]:
    """Events where the team is the owner or the opponent, sorted by date."""
    events = await load_records(store, EVENTS, Event)
    events = [e for e in events if e.team_id == team_id or e.opponent_team_id == team_id]
    return _filter_by_date(events, start, end)


async def update_event(store: RecordStore, event_id: str, updates: Dict[str, Any]) -> Event:
    """
    Update editable event fields. Confirmation fields are ignored here.

    Raises:
        NotFoundError: If the event does not exist
    """
    events = await load_records(store, EVENTS, Event)
    for index, event in enumerate(events):
        if event.id == event_id:
            events[index] = merge_record(
                event,
                {**updates, "updated_at": utcnow()},
                protected=("id", "created_at", "team_id", *CONFIRMATION_FIELDS),
            )
            await save_records(store, EVENTS, events)
            return events[index]
    raise NotFoundError(f"Event {event_id} not found")


async def delete_event(store: RecordStore, event_id: str) -> bool:
    """
    Delete an event and its availability responses.

    Returns:
        True if the event existed
    """
    events = await load_records(store, EVENTS, Event)
    remaining = [e for e in events if e.id != event_id]
    if len(remaining) == len(events):
        return False
    await save_records(store, EVENTS, remaining)

    availability = await load_records(store, AVAILABILITY, Availability)
    await save_records(store, AVAILABILITY, [a for a in availability if a.event_id != event_id])
    logger.info(f"Deleted event {event_id}")
    return True


# ============================================================================
# Game confirmation workflow
# ============================================================================


def _latest_confirmation(
    confirmations: List[GameConfirmation], game_id: str
) -> Tuple[Optional[int], Optional[GameConfirmation]]:
    for index in range(len(confirmations) - 1, -1, -1):
        if confirmations[index].game_id == game_id:
            return index, confirmations[index]
    return None, None


def resolve_confirmation_state(
    event: Optional[Event], confirmation: Optional[GameConfirmation]
) -> Optional[ConfirmationState]:
    """
    Work out where a game sits in the confirmation workflow.

    Returns None when there is no event and no declined confirmation for it.
    """
    if event is None:
        if confirmation is not None and confirmation.status == ConfirmationStatus.DECLINED:
            return ConfirmationState.DECLINED
        return None
    if event.pending_confirmation or not event.is_confirmed:
        return ConfirmationState.PENDING_CONFIRMATION
    if confirmation is not None:
        return ConfirmationState.CONFIRMED
    return ConfirmationState.NO_CONFIRMATION_NEEDED


async def get_confirmation_state(store: RecordStore, event_id: str) -> Optional[ConfirmationState]:
    event = await get_event(store, event_id)
    confirmations = await load_records(store, GAME_CONFIRMATIONS, GameConfirmation)
    _, confirmation = _latest_confirmation(confirmations, event_id)
    return resolve_confirmation_state(event, confirmation)


def _ensure_pending(game_id: str, state: Optional[ConfirmationState]) -> None:
    """Raise unless the game is waiting for confirmation."""
    if state is None:
        raise NotFoundError(f"Game {game_id} not found")
    if state == ConfirmationState.PENDING_CONFIRMATION:
        return
    if state == ConfirmationState.CONFIRMED:
        raise StateConflictError(f"Game {game_id} is already confirmed")
    if state == ConfirmationState.DECLINED:
        raise StateConflictError(f"Game {game_id} was declined")
    if state == ConfirmationState.NO_CONFIRMATION_NEEDED:
        raise StateConflictError(f"Game {game_id} does not need confirmation")
    raise StateConflictError(f"Game {game_id} is in unknown confirmation state {state!r}")


def _ensure_target_team(
    game_id: str,
    event: Event,
    confirmation: Optional[GameConfirmation],
    acting_team_id: Optional[str],
) -> None:
    if acting_team_id is None:
        return
    target = confirmation.target_team_id if confirmation else event.opponent_team_id
    if acting_team_id != target:
        raise StateConflictError(f"Only the opponent team can respond to game {game_id}")


async def confirm_game(
    store: RecordStore, game_id: str, user_id: str, acting_team_id: Optional[str] = None
) -> Event:
    """
    Confirm a pending game.

    Args:
        store: Record store
        game_id: Event ID of the game
        user_id: User confirming on behalf of the opponent team
        acting_team_id: When given, must be the team the game is waiting on

    Returns:
        The confirmed Event

    Raises:
        NotFoundError: If the game does not exist
        StateConflictError: If the game is not pending or the acting team is not the opponent
    """
    events = await load_records(store, EVENTS, Event)
    confirmations = await load_records(store, GAME_CONFIRMATIONS, GameConfirmation)
    event_index = next((i for i, e in enumerate(events) if e.id == game_id), None)
    event = events[event_index] if event_index is not None else None
    confirmation_index, confirmation = _latest_confirmation(confirmations, game_id)

    _ensure_pending(game_id, resolve_confirmation_state(event, confirmation))
    _ensure_target_team(game_id, event, confirmation, acting_team_id)

    now = utcnow()
    events[event_index] = event.model_copy(
        update={
            "is_confirmed": True,
            "pending_confirmation": False,
            "confirmed_by": user_id,
            "confirmed_at": now,
            "updated_at": now,
        }
    )
    await save_records(store, EVENTS, events)

    if confirmation is not None:
        confirmations[confirmation_index] = confirmation.model_copy(
            update={
                "status": ConfirmationStatus.CONFIRMED,
                "confirmed_by": user_id,
                "confirmed_at": now,
            }
        )
        await save_records(store, GAME_CONFIRMATIONS, confirmations)

    logger.info(f"Game {game_id} confirmed by user {user_id}")
    return events[event_index]


async def decline_game(
    store: RecordStore, game_id: str, user_id: str, acting_team_id: Optional[str] = None
) -> Optional[GameConfirmation]:
    """
    Decline a pending game. The event is deleted and the confirmation is marked declined.

    The event is removed before the confirmation is written. If the second
    write fails the game resolves as unknown rather than pending.

    Returns:
        The declined GameConfirmation, or None when the game had no confirmation record

    Raises:
        NotFoundError: If the game does not exist
        StateConflictError: If the game is not pending or the acting team is not the opponent
    """
    events = await load_records(store, EVENTS, Event)
    confirmations = await load_records(store, GAME_CONFIRMATIONS, GameConfirmation)
    event = next((e for e in events if e.id == game_id), None)
    confirmation_index, confirmation = _latest_confirmation(confirmations, game_id)

    _ensure_pending(game_id, resolve_confirmation_state(event, confirmation))
    _ensure_target_team(game_id, event, confirmation, acting_team_id)

    await save_records(store, EVENTS, [e for e in events if e.id != game_id])

    if confirmation is not None:
        confirmation = confirmation.model_copy(
            update={
                "status": ConfirmationStatus.DECLINED,
                "declined_by": user_id,
                "declined_at": utcnow(),
            }
        )
        confirmations[confirmation_index] = confirmation
        await save_records(store, GAME_CONFIRMATIONS, confirmations)
    logger.info(f"Game {game_id} declined by user {user_id}; event removed")
    return confirmation


async def list_pending_confirmations_for_team(
    store: RecordStore, team_id: str
) -> List[GameConfirmation]:
    """Confirmations waiting on ``team_id`` to respond."""
    confirmations = await load_records(store, GAME_CONFIRMATIONS, GameConfirmation)
    return [
        c for c in confirmations
        if c.target_team_id == team_id and c.status == ConfirmationStatus.PENDING
    ]


async def list_user_pending_confirmations(store: RecordStore, user_id: str) -> List[GameConfirmation]:
    """Pending confirmations across every team the user actively belongs to."""
    pending = []
    for user_team in await team_service.list_user_teams(store, user_id):
        pending.extend(await list_pending_confirmations_for_team(store, user_team.team.id))
    return pending
