# app/middleware/activity_logger.py
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.utils.activity_helpers import log_user_activity
from app.core.db import get_db

logger = logging.getLogger(__name__)


class ActivityLoggerMiddleware(BaseHTTPMiddleware):
    """
    Access log for every request. Services record their own successful
    changes, so only refused mutations (4xx/5xx) by a signed-in user are
    added to the activity table here.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        user_id = getattr(request.state, "user_id", None)
        username = getattr(request.state, "username", None)
        org_id = getattr(request.state, "org_id", None)

        logger.info(
            "%s %s -> %s (%.1f ms) user=%s",
            request.method, request.url.path, response.status_code, elapsed_ms, username or "-",
        )

        if user_id and request.method in ["POST", "PUT", "DELETE"] and response.status_code >= 400:
            message = f"Refused {request.method} on {request.url.path} ({response.status_code})"
            # honour test/app overrides of the session dependency
            session_factory = request.app.dependency_overrides.get(get_db, get_db)
            try:
                async for db in session_factory():
                    await log_user_activity(
                        db, user_id=user_id, username=username, org_id=org_id, message=message, commit=True,
                    )
            except Exception:
                logger.exception("Failed to log activity for user %s", user_id)

        return response
