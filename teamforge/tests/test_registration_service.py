"""
Unit tests for registration keys and invitations.
"""

from datetime import timedelta

import pytest

from teamforge.database.models import UserRole
from teamforge.services import registration_service, team_service
from teamforge.services.exceptions import (
    DuplicateMembershipError,
    InvalidOrExpiredKeyError,
    ValidationError,
)
from teamforge.utils.constants import REGISTRATION_KEY_ALPHABET, REGISTRATION_KEYS
from teamforge.utils.datetime_utils import utcnow


async def _expire_key(store, key_id):
    """Helper: move a stored key's expiry into the past."""
    keys = await store.get(REGISTRATION_KEYS)
    for key in keys:
        if key["id"] == key_id:
            key["expires_at"] = (utcnow() - timedelta(minutes=1)).isoformat()
    await store.set(REGISTRATION_KEYS, keys)


def test_generated_codes_use_alphabet():
    code = registration_service.generate_code()
    assert len(code) == 8
    assert set(code) <= set(REGISTRATION_KEY_ALPHABET)


# ──────────────────────────────────────────────────────────────
# Registration keys
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_generate_key_defaults(store, teams):
    """Test that a key is active with one use and a 30 day expiry."""
    key = await registration_service.generate_registration_key(store, teams["home"].id)

    assert key.is_active is True
    assert key.uses_remaining == 1
    assert key.role == UserRole.PLAYER
    assert timedelta(days=29) < key.expires_at - key.created_at <= timedelta(days=30)


@pytest.mark.asyncio
async def test_generate_key_rejects_zero_uses(store, teams):
    with pytest.raises(ValidationError):
        await registration_service.generate_registration_key(store, teams["home"].id, uses=0)


@pytest.mark.asyncio
async def test_single_use_key_redeems_once(store, teams, make_user):
    """Test that a one-use key admits the first user and then stops working."""
    first = await make_user("first")
    second = await make_user("second")
    key = await registration_service.generate_registration_key(store, teams["home"].id)

    membership = await registration_service.redeem_registration_key(store, key.key, first.id)
    assert membership.team_id == teams["home"].id
    assert membership.role == UserRole.PLAYER
    assert len(await team_service.list_team_members(store, teams["home"].id)) == 1

    with pytest.raises(InvalidOrExpiredKeyError, match="no longer active"):
        await registration_service.redeem_registration_key(store, key.key, second.id)

    (stored,) = await registration_service.list_team_registration_keys(store, teams["home"].id)
    assert stored.uses_remaining == 0
    assert stored.is_active is False


@pytest.mark.asyncio
async def test_multi_use_key_counts_down(store, teams, make_user):
    key = await registration_service.generate_registration_key(
        store, teams["home"].id, role=UserRole.COACH, uses=3
    )
    user = await make_user("assistant")

    membership = await registration_service.redeem_registration_key(store, key.key.lower(), user.id)

    assert membership.role == UserRole.COACH
    (stored,) = await registration_service.list_team_registration_keys(store, teams["home"].id)
    assert stored.uses_remaining == 2
    assert stored.is_active is True


@pytest.mark.asyncio
async def test_expired_key_rejected(store, teams, make_user):
    """Test that an expired key is invalid even with uses remaining."""
    user = await make_user("late")
    key = await registration_service.generate_registration_key(store, teams["home"].id, uses=5)
    await _expire_key(store, key.id)

    validation = await registration_service.validate_registration_key(store, key.key)
    assert validation.valid is False
    assert validation.message == "Registration key has expired"

    with pytest.raises(InvalidOrExpiredKeyError, match="expired"):
        await registration_service.redeem_registration_key(store, key.key, user.id)


@pytest.mark.asyncio
async def test_validation_does_not_consume(store, teams):
    """Test that validating a key any number of times leaves it untouched."""
    key = await registration_service.generate_registration_key(store, teams["home"].id)
    before = await store.get(REGISTRATION_KEYS)

    for _ in range(3):
        validation = await registration_service.validate_registration_key(store, key.key)
        assert validation.valid is True
        assert validation.team_name == "Hawks"

    assert await store.get(REGISTRATION_KEYS) == before


@pytest.mark.asyncio
async def test_unknown_key(store):
    validation = await registration_service.validate_registration_key(store, "NOPE1234")
    assert validation.valid is False
    assert validation.message == "Registration key not found"


@pytest.mark.asyncio
async def test_existing_member_does_not_consume_use(store, teams, make_user):
    """Test that redeeming as an existing member fails before the use is spent."""
    user = await make_user("jdoe")
    await team_service.add_team_member(store, teams["home"].id, user.id)
    key = await registration_service.generate_registration_key(store, teams["home"].id)

    with pytest.raises(DuplicateMembershipError):
        await registration_service.redeem_registration_key(store, key.key, user.id)

    assert (await registration_service.validate_registration_key(store, key.key)).valid is True


# ──────────────────────────────────────────────────────────────
# Invitations
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_invitation_used_once(store, teams, make_user):
    """Test that an invitation adds the user and cannot be reused."""
    first = await make_user("first")
    second = await make_user("second")
    invitation = await registration_service.create_invitation(store, teams["away"].id, code="welcome1")
    assert invitation.code == "WELCOME1"

    membership = await registration_service.use_invitation(store, "welcome1", first.id)
    assert membership.team_id == teams["away"].id

    stored = await registration_service.get_invitation(store, "WELCOME1")
    assert stored.used is True
    assert stored.used_by == first.id

    with pytest.raises(InvalidOrExpiredKeyError, match="already been used"):
        await registration_service.use_invitation(store, "WELCOME1", second.id)


@pytest.mark.asyncio
async def test_expired_invitation(store, teams):
    invitation = await registration_service.create_invitation(
        store, teams["away"].id, expires_at=utcnow() - timedelta(days=1)
    )

    validation = await registration_service.validate_invitation(store, invitation.code)

    assert validation.valid is False
    assert validation.message == "Invitation has expired"


@pytest.mark.asyncio
async def test_duplicate_invitation_code(store, teams):
    await registration_service.create_invitation(store, teams["away"].id, code="TEAMCODE")
    with pytest.raises(ValidationError, match="already in use"):
        await registration_service.create_invitation(store, teams["home"].id, code="teamcode")
