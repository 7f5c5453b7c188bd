"""
User service layer for accounts and player profiles.
"""

from typing import Any, Dict, Optional
import logging

import bcrypt

from teamforge.database.models import UserRole
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import PlayerProfile, User
from teamforge.services.exceptions import NotFoundError, ValidationError
from teamforge.utils.constants import PLAYER_PROFILES, USERS
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = [
    "height_cm",
    "weight_kg",
    "wingspan_cm",
    "vertical_cm",
    "age",
    "jersey_number",
    "hometown",
    "experience_years",
    "preferred_position",
    "emergency_contact_name",
    "emergency_contact_phone",
    "medical_notes",
]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Not a bcrypt hash
        return False


def generate_initials(first_name: str, last_name: str) -> str:
    """
    Generate avatar initials from a user's names.
    Returns first letter of first name + first letter of last name.
    If only one name is given, returns its first two letters.
    """
    name_parts = [part for part in (first_name.strip(), last_name.strip()) if part]
    if not name_parts:
        return ""
    if len(name_parts) == 1:
        return name_parts[0][0:2].upper()
    return (name_parts[0][0] + name_parts[-1][0]).upper()


async def register_user(
    store: RecordStore,
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.PLAYER,
    phone: Optional[str] = None,
    avatar: Optional[str] = None,
    profile_data: Optional[Dict[str, Any]] = None,
) -> User:
    """
    Register a new user account.

    Players get an empty player profile straight away so roster views can
    join against it.

    Raises:
        ValidationError: If a required field is missing or the username/email is taken
    """
    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required")

    users = await load_records(store, USERS, User)
    if any(u.username == username or u.email == email for u in users):
        raise ValidationError("User already exists")

    now = utcnow()
    user = User(
        id=store.new_id(),
        username=username,
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
        avatar=avatar or generate_initials(first_name, last_name),
        created_at=now,
        updated_at=now,
        is_active=True,
    )
    users.append(user)
    await save_records(store, USERS, users)
    logger.info("Registered user %s (%s)", user.id, user.role.value)

    if user.role == UserRole.PLAYER:
        await create_player_profile(store, user.id, profile_data or {})

    return user


async def authenticate(store: RecordStore, login: str, password: str) -> Optional[User]:
    """
    Check credentials by username or email.

    Returns:
        The user with last_login updated, or None for bad credentials or a disabled account
    """
    users = await load_records(store, USERS, User)
    user = next((u for u in users if u.username == login or u.email == login), None)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return await update_user(store, user.id, {"last_login": utcnow()})


async def get_user(store: RecordStore, user_id: str) -> Optional[User]:
    users = await load_records(store, USERS, User)
    return next((u for u in users if u.id == user_id), None)


async def get_user_by_username(store: RecordStore, username: str) -> Optional[User]:
    """Case-insensitive username lookup."""
    users = await load_records(store, USERS, User)
    lowered = username.lower()
    return next((u for u in users if u.username.lower() == lowered), None)


async def update_user(store: RecordStore, user_id: str, updates: Dict[str, Any]) -> User:
    """
    Update user fields.

    Raises:
        NotFoundError: If the user does not exist
    """
    users = await load_records(store, USERS, User)
    for index, user in enumerate(users):
        if user.id == user_id:
            users[index] = merge_record(user, {**updates, "updated_at": utcnow()})
            await save_records(store, USERS, users)
            return users[index]
    raise NotFoundError(f"User {user_id} not found")


async def deactivate_user(store: RecordStore, user_id: str) -> User:
    """Soft-disable an account; users are never deleted."""
    user = await update_user(store, user_id, {"is_active": False})
    logger.info("Deactivated user %s", user_id)
    return user


async def get_player_profile(store: RecordStore, user_id: str) -> Optional[PlayerProfile]:
    profiles = await load_records(store, PLAYER_PROFILES, PlayerProfile)
    return next((p for p in profiles if p.user_id == user_id), None)


async def create_player_profile(
    store: RecordStore, user_id: str, profile_data: Dict[str, Any]
) -> PlayerProfile:
    """
    Create the user's player profile, or update it if one already exists.
    """
    profiles = await load_records(store, PLAYER_PROFILES, PlayerProfile)
    if any(p.user_id == user_id for p in profiles):
        return await update_player_profile(store, user_id, profile_data)

    now = utcnow()
    values = {field: profile_data.get(field) for field in PROFILE_FIELDS if profile_data.get(field) is not None}
    profile = PlayerProfile(id=store.new_id(), user_id=user_id, created_at=now, updated_at=now, **values)
    profiles.append(profile)
    await save_records(store, PLAYER_PROFILES, profiles)
    return profile


async def update_player_profile(
    store: RecordStore, user_id: str, profile_data: Dict[str, Any]
) -> PlayerProfile:
    """
    Raises:
        NotFoundError: If the user has no profile yet
    """
    profiles = await load_records(store, PLAYER_PROFILES, PlayerProfile)
    for index, profile in enumerate(profiles):
        if profile.user_id == user_id:
            profiles[index] = merge_record(
                profile,
                {**profile_data, "updated_at": utcnow()},
                protected=("id", "user_id", "created_at"),
            )
            await save_records(store, PLAYER_PROFILES, profiles)
            return profiles[index]
    raise NotFoundError(f"Player profile for user {user_id} not found")
