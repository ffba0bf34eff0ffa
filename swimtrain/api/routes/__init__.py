"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error translation) lives here; every
sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from swimtrain.services.errors import ServiceError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Service error translation
# ---------------------------------------------------------------------------
def to_http_exception(e: ServiceError) -> HTTPException:
    """Map a service error to the HTTP response carrying its client-safe message."""
    return HTTPException(status_code=e.status_code, detail=e.message)


def internal_error(operation: str, e: Exception, **ids) -> HTTPException:
    """Log an unexpected failure with its context and return a generic 500."""
    context = ", ".join(f"{k}={v}" for k, v in ids.items())
    logger.error(f"Error in {operation} ({context}): {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from swimtrain.api.routes.auth import router as auth_router  # noqa: E402
from swimtrain.api.routes.sessions import router as sessions_router  # noqa: E402
from swimtrain.api.routes.teams import router as teams_router  # noqa: E402
from swimtrain.api.routes.users import router as users_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(sessions_router)
router.include_router(teams_router)
router.include_router(users_router)
