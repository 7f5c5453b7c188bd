"""
Note service for coaching notes, team messages and read receipts.

Messages are notes with ``note_type=message``. A message counts as unread
for its recipient until a MessageReadStatus exists for (message, recipient).
"""

from typing import Any, Dict, List, Optional
import logging

from teamforge.database.models import NotePriority, NoteType
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import MessageReadStatus, Note
from teamforge.services.exceptions import NotFoundError, ValidationError
from teamforge.utils.constants import MESSAGE_READ_STATUS, NOTES
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def create_note(
    store: RecordStore,
    author_id: str,
    content: str,
    recipient_id: Optional[str] = None,
    team_id: Optional[str] = None,
    title: Optional[str] = None,
    note_type: NoteType = NoteType.GENERAL,
    priority: NotePriority = NotePriority.MEDIUM,
    is_private: bool = False,
) -> Note:
    """
    Create a note.

    Raises:
        ValidationError: If the content is blank
    """
    if not content or not content.strip():
        raise ValidationError("Note content is required")

    notes = await load_records(store, NOTES, Note)
    now = utcnow()
    note = Note(
        id=store.new_id(),
        author_id=author_id,
        recipient_id=recipient_id,
        team_id=team_id,
        title=title,
        content=content,
        note_type=note_type,
        priority=priority,
        is_private=is_private,
        created_at=now,
        updated_at=now,
    )
    notes.append(note)
    await save_records(store, NOTES, notes)
    return note


async def update_note(store: RecordStore, note_id: str, updates: Dict[str, Any]) -> Note:
    """
    Raises:
        NotFoundError: If the note does not exist
    """
    notes = await load_records(store, NOTES, Note)
    for index, note in enumerate(notes):
        if note.id == note_id:
            notes[index] = merge_record(
                note, {**updates, "updated_at": utcnow()}, protected=("id", "author_id", "created_at")
            )
            await save_records(store, NOTES, notes)
            return notes[index]
    raise NotFoundError(f"Note {note_id} not found")


async def delete_note(store: RecordStore, note_id: str) -> bool:
    notes = await load_records(store, NOTES, Note)
    remaining = [n for n in notes if n.id != note_id]
    if len(remaining) == len(notes):
        return False
    await save_records(store, NOTES, remaining)
    return True


async def list_notes_for_user(
    store: RecordStore, user_id: str, note_type: Optional[NoteType] = None
) -> List[Note]:
    """Notes written by or addressed to the user, newest first."""
    notes = await load_records(store, NOTES, Note)
    user_notes = [n for n in notes if n.recipient_id == user_id or n.author_id == user_id]
    if note_type:
        user_notes = [n for n in user_notes if n.note_type == note_type]
    return sorted(user_notes, key=lambda n: n.created_at, reverse=True)


# ============================================================================
# Messages
# ============================================================================


async def create_message(
    store: RecordStore,
    team_id: str,
    author_id: str,
    content: str,
    recipient_id: Optional[str] = None,
    is_private: bool = False,
) -> Note:
    """Post a team message, optionally addressed to one member."""
    return await create_note(
        store,
        author_id=author_id,
        content=content,
        recipient_id=recipient_id,
        team_id=team_id,
        note_type=NoteType.MESSAGE,
        priority=NotePriority.MEDIUM,
        is_private=is_private,
    )


async def list_team_messages(
    store: RecordStore, team_id: str, player_id: Optional[str] = None
) -> List[Note]:
    """
    Messages posted to a team, oldest first.

    Args:
        store: Record store
        team_id: Team the messages belong to
        player_id: When given, only messages written by or addressed to this player

    Returns:
        Messages sorted by creation time
    """
    notes = await load_records(store, NOTES, Note)
    messages = [n for n in notes if n.team_id == team_id and n.note_type == NoteType.MESSAGE]
    if player_id:
        messages = [m for m in messages if m.recipient_id == player_id or m.author_id == player_id]
    return sorted(messages, key=lambda m: m.created_at)


def _is_between(note: Note, from_user_id: str, to_user_id: str) -> bool:
    return (
        note.note_type == NoteType.MESSAGE
        and note.author_id == from_user_id
        and note.recipient_id == to_user_id
    )


async def list_conversation(store: RecordStore, user_a: str, user_b: str) -> List[Note]:
    """Direct messages between two users in either direction, oldest first."""
    notes = await load_records(store, NOTES, Note)
    conversation = [n for n in notes if _is_between(n, user_a, user_b) or _is_between(n, user_b, user_a)]
    return sorted(conversation, key=lambda m: m.created_at)


async def mark_messages_read(store: RecordStore, user_id: str, from_user_id: str) -> int:
    """
    Mark every message from ``from_user_id`` to ``user_id`` as read.

    Returns:
        Number of messages newly marked
    """
    notes = await load_records(store, NOTES, Note)
    statuses = await load_records(store, MESSAGE_READ_STATUS, MessageReadStatus)
    already_read = {s.message_id for s in statuses if s.user_id == user_id}

    now = utcnow()
    marked = 0
    for note in notes:
        if _is_between(note, from_user_id, user_id) and note.id not in already_read:
            statuses.append(
                MessageReadStatus(id=store.new_id(), message_id=note.id, user_id=user_id, read_at=now)
            )
            marked += 1

    if marked:
        await save_records(store, MESSAGE_READ_STATUS, statuses)
        logger.info(f"Marked {marked} messages from {from_user_id} as read for {user_id}")
    return marked


async def count_unread_messages(store: RecordStore, user_id: str, from_user_id: str) -> int:
    notes = await load_records(store, NOTES, Note)
    statuses = await load_records(store, MESSAGE_READ_STATUS, MessageReadStatus)
    read_ids = {s.message_id for s in statuses if s.user_id == user_id}
    return sum(
        1 for n in notes if _is_between(n, from_user_id, user_id) and n.id not in read_ids
    )
