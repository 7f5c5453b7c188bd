"""
Unit tests for user service.

Tests registration, credential checks, profile creation and initials.
"""

import pytest

from teamforge.database.models import UserRole
from teamforge.services import user_service
from teamforge.services.exceptions import NotFoundError, ValidationError


@pytest.mark.asyncio
async def test_register_player_creates_profile(store, make_user):
    """Test that registering a player also creates an empty player profile."""
    user = await make_user("jdoe", "John", "Doe")

    assert user.username == "jdoe"
    assert user.avatar == "JD"
    assert user.password_hash != "secret123"
    profile = await user_service.get_player_profile(store, user.id)
    assert profile is not None
    assert profile.experience_years == 0


@pytest.mark.asyncio
async def test_register_coach_has_no_profile(store, make_user):
    """Test that non-player roles do not get a player profile."""
    coach = await make_user("coach", "Carla", "Coach", role=UserRole.COACH)
    assert await user_service.get_player_profile(store, coach.id) is None


@pytest.mark.asyncio
async def test_register_duplicate_username(store, make_user):
    """Test that a taken username is rejected."""
    await make_user("jdoe")
    with pytest.raises(ValidationError, match="User already exists"):
        await make_user("jdoe")


@pytest.mark.asyncio
async def test_register_requires_fields(store):
    with pytest.raises(ValidationError, match="required"):
        await user_service.register_user(store, "", "a@example.com", "pw", "A", "B")


@pytest.mark.asyncio
async def test_authenticate(store, make_user):
    """Test login by username or email, and rejection of bad passwords."""
    user = await make_user("jdoe")

    by_username = await user_service.authenticate(store, "jdoe", "secret123")
    assert by_username.id == user.id
    assert by_username.last_login is not None

    assert (await user_service.authenticate(store, "jdoe@example.com", "secret123")).id == user.id
    assert await user_service.authenticate(store, "jdoe", "wrong") is None
    assert await user_service.authenticate(store, "nobody", "secret123") is None


@pytest.mark.asyncio
async def test_deactivated_user_cannot_log_in(store, make_user):
    user = await make_user("jdoe")
    await user_service.deactivate_user(store, user.id)

    assert await user_service.authenticate(store, "jdoe", "secret123") is None
    assert (await user_service.get_user(store, user.id)).is_active is False


@pytest.mark.asyncio
async def test_get_user_by_username_is_case_insensitive(store, make_user):
    user = await make_user("JDoe")
    assert (await user_service.get_user_by_username(store, "jdoe")).id == user.id


@pytest.mark.asyncio
async def test_update_missing_user(store):
    with pytest.raises(NotFoundError):
        await user_service.update_user(store, "missing", {"first_name": "X"})


@pytest.mark.asyncio
async def test_update_player_profile(store, make_user):
    """Test that profile updates merge and cannot reassign the profile owner."""
    user = await make_user("jdoe")

    profile = await user_service.update_player_profile(
        store, user.id, {"height_cm": 190, "preferred_position": "PG", "user_id": "other"}
    )

    assert profile.height_cm == 190
    assert profile.preferred_position == "PG"
    assert profile.user_id == user.id


@pytest.mark.asyncio
async def test_create_profile_twice_updates(store, make_user):
    user = await make_user("jdoe")
    await user_service.create_player_profile(store, user.id, {"age": 17})

    profile = await user_service.get_player_profile(store, user.id)
    assert profile.age == 17


def test_verify_password_rejects_non_bcrypt_hash():
    assert user_service.verify_password("secret", "not-a-hash") is False


def test_generate_initials():
    assert user_service.generate_initials("John", "Doe") == "JD"
    assert user_service.generate_initials("Madonna", "") == "MA"
    assert user_service.generate_initials("", "") == ""
