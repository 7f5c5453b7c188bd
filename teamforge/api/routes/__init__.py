"""
API routes - combined router from all domain modules.

Shared infrastructure (store dependency, error mapping) lives here; every
sub-router imports what it needs from this package.
"""

from fastapi import APIRouter, HTTPException, Request

from teamforge.database.store import RecordStore
from teamforge.services.exceptions import (
    DuplicateMembershipError,
    NotFoundError,
    StateConflictError,
)

# ---------------------------------------------------------------------------
# Shared dependencies
# ---------------------------------------------------------------------------


def get_store(request: Request) -> RecordStore:
    """Store handle opened at startup."""
    return request.app.state.store


def client_error(e: ValueError) -> HTTPException:
    """Map a repository error onto an HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (DuplicateMembershipError, StateConflictError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from teamforge.api.routes.teams import router as teams_router  # noqa: E402
from teamforge.api.routes.events import router as events_router  # noqa: E402
from teamforge.api.routes.stats import router as stats_router  # noqa: E402
from teamforge.api.routes.notes import router as notes_router  # noqa: E402

router = APIRouter()
router.include_router(teams_router)
router.include_router(events_router)
router.include_router(stats_router)
router.include_router(notes_router)
