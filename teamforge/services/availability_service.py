"""
Availability service: players' responses to events.

There is at most one response per (event, user); a new response replaces
the previous one and no history is kept.
"""

from collections import Counter
from typing import List, Optional
import logging

from teamforge.database.models import AvailabilityStatus
from teamforge.database.store import RecordStore, load_records, save_records
from teamforge.models.schemas import (
    Availability,
    AvailabilitySummary,
    Event,
    EventAvailability,
    User,
    UserSummary,
)
from teamforge.services.exceptions import NotFoundError
from teamforge.utils.constants import AVAILABILITY, EVENTS, USERS
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def set_player_availability(
    store: RecordStore,
    event_id: str,
    user_id: str,
    status: AvailabilityStatus,
    notes: Optional[str] = None,
) -> Availability:
    """
    Record a player's availability for an event, replacing any earlier response.

    Raises:
        NotFoundError: If the event does not exist
    """
    events = await load_records(store, EVENTS, Event)
    if not any(e.id == event_id for e in events):
        raise NotFoundError(f"Event {event_id} not found")

    availability = await load_records(store, AVAILABILITY, Availability)
    remaining = [a for a in availability if not (a.event_id == event_id and a.user_id == user_id)]

    now = utcnow()
    record = Availability(
        id=store.new_id(),
        event_id=event_id,
        user_id=user_id,
        status=AvailabilityStatus(status),
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    remaining.append(record)
    await save_records(store, AVAILABILITY, remaining)
    return record


async def get_event_availability(store: RecordStore, event_id: str) -> List[EventAvailability]:
    """Responses for an event, each joined with a summary of the responding user."""
    availability = await load_records(store, AVAILABILITY, Availability)
    users = {u.id: u for u in await load_records(store, USERS, User)}

    results = []
    for record in availability:
        if record.event_id != event_id:
            continue
        user = users.get(record.user_id)
        summary = None
        if user is not None:
            summary = UserSummary(
                id=user.id,
                name=f"{user.first_name} {user.last_name}",
                avatar=user.avatar,
                role=user.role,
            )
        results.append(EventAvailability(availability=record, user=summary))
    return results


async def get_player_availability(
    store: RecordStore, user_id: str, event_id: Optional[str] = None
) -> List[Availability]:
    availability = await load_records(store, AVAILABILITY, Availability)
    return [
        a for a in availability
        if a.user_id == user_id and (event_id is None or a.event_id == event_id)
    ]


async def summarize_event_availability(store: RecordStore, event_id: str) -> AvailabilitySummary:
    """Count responses per status for an event."""
    availability = await load_records(store, AVAILABILITY, Availability)
    counts = Counter(a.status for a in availability if a.event_id == event_id)
    return AvailabilitySummary(
        available=counts[AvailabilityStatus.AVAILABLE],
        maybe=counts[AvailabilityStatus.MAYBE],
        unavailable=counts[AvailabilityStatus.UNAVAILABLE],
    )
