"""
SQLAlchemy ORM models and shared enums for the TeamForge record store.
"""

import enum
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from teamforge.database.db import Base


class UserRole(str, enum.Enum):
    """Account and team-membership role enum."""

    PLAYER = "player"
    COACH = "coach"
    MANAGER = "manager"
    ASSISTANT_COACH = "assistant_coach"
    PARENT = "parent"


class EventType(str, enum.Enum):
    """Calendar event type enum."""

    PRACTICE = "practice"
    GAME = "game"
    MEETING = "meeting"
    OTHER = "other"


class ConfirmationStatus(str, enum.Enum):
    """Game confirmation record status enum."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class ConfirmationState(str, enum.Enum):
    """Lifecycle state of a game event."""

    NO_CONFIRMATION_NEEDED = "no_confirmation_needed"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class AvailabilityStatus(str, enum.Enum):
    """Player availability enum."""

    AVAILABLE = "available"
    MAYBE = "maybe"
    UNAVAILABLE = "unavailable"


class NoteType(str, enum.Enum):
    """Note type enum."""

    GENERAL = "general"
    PERSONAL = "personal"
    COACH = "coach"
    TRAINING = "training"
    GAME = "game"
    MEDICAL = "medical"
    MESSAGE = "message"


class NotePriority(str, enum.Enum):
    """Note priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LineupStrategy(str, enum.Enum):
    """Lineup suggestion strategy enum."""

    BALANCED = "balanced"
    OFFENSIVE = "offensive"
    DEFENSIVE = "defensive"


class RecordCollection(Base):
    """One named collection of records, stored and replaced as a unit."""

    __tablename__ = "record_collections"

    name = Column(String, primary_key=True)  # Collection name (e.g., "events", "game_stats")
    records = Column(JSON, nullable=False, default=list)  # Flat ordered list of record objects
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class StoreFlag(Base):
    """Persisted boolean flags (e.g., "game_confirmation_migrated")."""

    __tablename__ = "store_flags"

    key = Column(String, primary_key=True)
    value = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
