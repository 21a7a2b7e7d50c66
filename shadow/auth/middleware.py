"""Authentication middleware for FastAPI."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Everything under these prefixes needs a signed-in user
PROTECTED_PREFIXES = ("/api/v1/profile/", "/api/v1/auth/reset-password")
PROTECTED_PATHS = {"/api/v1/profile"}

# Under these prefixes only reads are public
WRITE_PROTECTED_PREFIXES = ("/api/v1/posts", "/api/v1/profiles")


def requires_auth(method: str, path: str) -> bool:
    if method == "OPTIONS":
        return False
    if path in PROTECTED_PATHS or path.startswith(PROTECTED_PREFIXES):
        return True
    if method not in ("GET", "HEAD") and path.startswith(WRITE_PROTECTED_PREFIXES):
        return True
    return False


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Initialize state from the session store
        store = getattr(request.app.state, "session_store", None)
        request.state.user = store.user if store is not None else None

        if request.state.user is None and requires_auth(request.method, request.url.path):
            logger.debug("Rejected unauthenticated %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=401,
                content={"detail": {"error": {"code": "UNAUTHORIZED", "message": "You need to be logged in."}}},
            )

        return await call_next(request)
