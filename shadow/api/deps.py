"""Request helpers shared by the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from shadow.auth.session_store import SessionStore
from shadow.models.common import ErrorDetail, ErrorResponse
from shadow.models.user import User


def api_error(status_code: int, code: str, message: str, **extra) -> HTTPException:
    """Error envelope; ``extra`` keys sit beside ``error`` for the client to act on."""
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return HTTPException(status_code=status_code, detail={**body.model_dump(exclude={"error": {"details"}}), **extra})


def get_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def current_user(request: Request) -> User | None:
    return getattr(request.state, "user", None)


def require_user(request: Request) -> User:
    user = current_user(request)
    if not user:
        raise api_error(401, "UNAUTHORIZED", "Authentication required")
    return user
