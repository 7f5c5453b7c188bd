"""
Error taxonomy for the repositories.

All errors subclass ValueError so route handlers can treat any of them as
a client error, and narrow to a specific subclass where the status code
differs.
"""


class TeamForgeError(ValueError):
    """Base class for repository errors."""


class NotFoundError(TeamForgeError):
    """Raised when an update or delete targets an id that does not exist."""


class DuplicateMembershipError(TeamForgeError):
    """Raised when a user already has an active membership on the team."""


class InvalidOrExpiredKeyError(TeamForgeError):
    """Raised when a registration key or invitation cannot be redeemed."""


class StateConflictError(TeamForgeError):
    """Raised when an operation is not valid in the record's current state."""


class ValidationError(TeamForgeError):
    """Raised when a required field is missing or a value breaks an invariant."""
