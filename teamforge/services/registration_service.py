"""
Registration keys and invitations: time-limited codes that grant a role
on a team when redeemed.

A key is usable only while it is active, has uses remaining and has not
expired. Redemption re-validates the key before consuming a use, but two
processes redeeming the last use at the same moment can both succeed
because the store has no locking.
"""

from datetime import datetime, timedelta
from typing import List, Optional
import logging
import secrets

from teamforge.database.models import UserRole
from teamforge.database.store import RecordStore, load_records, merge_record, save_records
from teamforge.models.schemas import (
    Invitation,
    InvitationValidation,
    KeyValidation,
    RegistrationKey,
    Team,
    TeamMembership,
)
from teamforge.services import team_service
from teamforge.services.exceptions import (
    DuplicateMembershipError,
    InvalidOrExpiredKeyError,
    ValidationError,
)
from teamforge.utils.constants import (
    INVITATION_CODE_LENGTH,
    INVITATIONS,
    REGISTRATION_KEY_ALPHABET,
    REGISTRATION_KEY_EXPIRY_DAYS,
    REGISTRATION_KEY_LENGTH,
    REGISTRATION_KEYS,
    TEAMS,
)
from teamforge.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def generate_code(length: int = REGISTRATION_KEY_LENGTH) -> str:
    """Random code from the uppercase alphanumeric alphabet."""
    return "".join(secrets.choice(REGISTRATION_KEY_ALPHABET) for _ in range(length))


def _normalize(code: str) -> str:
    return (code or "").strip().upper()


# ============================================================================
# Registration keys
# ============================================================================


async def generate_registration_key(
    store: RecordStore,
    team_id: str,
    role: UserRole = UserRole.PLAYER,
    expires_in_days: Optional[int] = None,
    uses: int = 1,
    created_by: Optional[str] = None,
) -> RegistrationKey:
    """
    Create a new registration key for a team.

    Args:
        store: Record store
        team_id: Team the key grants membership on
        role: Role granted on redemption
        expires_in_days: Validity window, REGISTRATION_KEY_EXPIRY_DAYS by default
        uses: Number of redemptions allowed
        created_by: User ID of the issuer

    Returns:
        The stored RegistrationKey

    Raises:
        ValidationError: If uses or expires_in_days is not positive
    """
    if uses < 1:
        raise ValidationError("A registration key needs at least one use")
    days = REGISTRATION_KEY_EXPIRY_DAYS if expires_in_days is None else expires_in_days
    if days < 1:
        raise ValidationError("Expiry must be at least one day")

    keys = await load_records(store, REGISTRATION_KEYS, RegistrationKey)
    existing_codes = {k.key for k in keys}
    code = generate_code()
    while code in existing_codes:
        code = generate_code()

    now = utcnow()
    key = RegistrationKey(
        id=store.new_id(),
        key=code,
        team_id=team_id,
        role=role,
        created_by=created_by,
        created_at=now,
        expires_at=now + timedelta(days=days),
        is_active=True,
        uses_remaining=uses,
    )
    keys.append(key)
    await save_records(store, REGISTRATION_KEYS, keys)
    logger.info("Generated registration key %s for team %s (%d uses)", key.id, team_id, uses)
    return key


def _check_key(key: Optional[RegistrationKey], now: datetime) -> Optional[str]:
    """Return why the key cannot be used, or None if it can."""
    if key is None:
        return "Registration key not found"
    if not key.is_active:
        return "Registration key is no longer active"
    if key.uses_remaining <= 0:
        return "Registration key has no uses remaining"
    if now >= key.expires_at:
        return "Registration key has expired"
    return None


async def validate_registration_key(store: RecordStore, code: str) -> KeyValidation:
    """
    Check whether a registration key can be redeemed. Never modifies the store.
    """
    code = _normalize(code)
    keys = await load_records(store, REGISTRATION_KEYS, RegistrationKey)
    key = next((k for k in keys if k.key == code), None)
    problem = _check_key(key, utcnow())
    if problem:
        return KeyValidation(valid=False, message=problem)

    teams = await load_records(store, TEAMS, Team)
    team = next((t for t in teams if t.id == key.team_id), None)
    return KeyValidation(
        valid=True,
        team_id=key.team_id,
        team_name=team.name if team else None,
        role=key.role,
        key_id=key.id,
    )


async def redeem_registration_key(store: RecordStore, code: str, user_id: str) -> TeamMembership:
    """
    Redeem a registration key for a user.

    The key is validated again, then a duplicate membership is rejected
    before any use is consumed. The use is decremented (deactivating the
    key at zero) and the membership is created.

    Raises:
        InvalidOrExpiredKeyError: If the key is unknown, inactive, used up or expired
        DuplicateMembershipError: If the user is already an active member of the team
    """
    code = _normalize(code)
    keys = await load_records(store, REGISTRATION_KEYS, RegistrationKey)
    index = next((i for i, k in enumerate(keys) if k.key == code), None)
    key = keys[index] if index is not None else None
    problem = _check_key(key, utcnow())
    if problem:
        raise InvalidOrExpiredKeyError(problem)

    if await team_service.get_active_membership(store, key.team_id, user_id) is not None:
        raise DuplicateMembershipError(f"User {user_id} is already a member of team {key.team_id}")

    remaining = key.uses_remaining - 1
    keys[index] = merge_record(key, {"uses_remaining": remaining, "is_active": remaining > 0})
    await save_records(store, REGISTRATION_KEYS, keys)

    membership = await team_service.add_team_member(store, key.team_id, user_id, role=key.role)
    logger.info("User %s redeemed registration key %s (%d uses left)", user_id, key.id, remaining)
    return membership


async def list_team_registration_keys(store: RecordStore, team_id: str) -> List[RegistrationKey]:
    """Keys issued for a team, newest first."""
    keys = await load_records(store, REGISTRATION_KEYS, RegistrationKey)
    team_keys = [k for k in keys if k.team_id == team_id]
    return sorted(team_keys, key=lambda k: k.created_at, reverse=True)


# ============================================================================
# Invitations
# ============================================================================


async def create_invitation(
    store: RecordStore,
    team_id: str,
    role: UserRole = UserRole.PLAYER,
    code: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    created_by: Optional[str] = None,
) -> Invitation:
    """
    Create a single-use invitation. The code is generated when not given and
    the invitation expires after REGISTRATION_KEY_EXPIRY_DAYS by default.
    """
    invitations = await load_records(store, INVITATIONS, Invitation)
    code = _normalize(code) if code else generate_code(INVITATION_CODE_LENGTH)
    if any(inv.code == code for inv in invitations):
        raise ValidationError(f"Invitation code {code} is already in use")

    now = utcnow()
    invitation = Invitation(
        id=store.new_id(),
        code=code,
        team_id=team_id,
        role=role,
        created_by=created_by,
        expires_at=expires_at or now + timedelta(days=REGISTRATION_KEY_EXPIRY_DAYS),
        used=False,
        created_at=now,
        updated_at=now,
    )
    invitations.append(invitation)
    await save_records(store, INVITATIONS, invitations)
    logger.info("Created invitation %s for team %s", invitation.id, team_id)
    return invitation


async def get_invitation(store: RecordStore, code: str) -> Optional[Invitation]:
    code = _normalize(code)
    invitations = await load_records(store, INVITATIONS, Invitation)
    return next((inv for inv in invitations if inv.code == code), None)


def _check_invitation(invitation: Optional[Invitation], now: datetime) -> Optional[str]:
    if invitation is None:
        return "Invitation not found"
    if invitation.used:
        return "Invitation has already been used"
    if now >= invitation.expires_at:
        return "Invitation has expired"
    return None


async def validate_invitation(store: RecordStore, code: str) -> InvitationValidation:
    invitation = await get_invitation(store, code)
    problem = _check_invitation(invitation, utcnow())
    if problem:
        return InvitationValidation(valid=False, message=problem)
    return InvitationValidation(valid=True, invitation=invitation)


async def use_invitation(store: RecordStore, code: str, user_id: str) -> TeamMembership:
    """
    Mark an invitation used by ``user_id`` and add them to the team.

    Raises:
        InvalidOrExpiredKeyError: If the invitation is unknown, used or expired
        DuplicateMembershipError: If the user is already an active member of the team
    """
    code = _normalize(code)
    invitations = await load_records(store, INVITATIONS, Invitation)
    index = next((i for i, inv in enumerate(invitations) if inv.code == code), None)
    invitation = invitations[index] if index is not None else None
    problem = _check_invitation(invitation, utcnow())
    if problem:
        raise InvalidOrExpiredKeyError(problem)

    if await team_service.get_active_membership(store, invitation.team_id, user_id) is not None:
        raise DuplicateMembershipError(
            f"User {user_id} is already a member of team {invitation.team_id}"
        )

    now = utcnow()
    invitations[index] = merge_record(
        invitation, {"used": True, "used_by": user_id, "used_at": now, "updated_at": now}
    )
    await save_records(store, INVITATIONS, invitations)
    return await team_service.add_team_member(store, invitation.team_id, user_id, role=invitation.role)


async def list_team_invitations(store: RecordStore, team_id: str) -> List[Invitation]:
    invitations = await load_records(store, INVITATIONS, Invitation)
    return [inv for inv in invitations if inv.team_id == team_id]
