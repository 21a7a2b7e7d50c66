"""Email/password account flows backed by the hosted auth service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from shadow.api.deps import api_error, get_store
from shadow.config import settings
from shadow.db.backend import AuthError, Backend, BackendError
from shadow.db.database import get_backend
from shadow.db.queries import users as user_queries
from shadow.models.user import AuthUser
from shadow.utils.validators import is_valid_email, validate_password_reset, validate_signup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password. Please check your credentials and try again."
EMAIL_NOT_CONFIRMED_MESSAGE = (
    "Please confirm your email address before signing in. Check your inbox for the confirmation email."
)
ALREADY_REGISTERED_MESSAGE = "This email address is already registered. Please sign in instead."


def _state_payload(request: Request) -> dict:
    state = get_store(request).snapshot()
    return {
        "user": state.user.model_dump() if state.user else None,
        "loading": state.loading,
    }


async def _ensure_profile(backend: Backend, user: AuthUser, username: str | None) -> bool:
    """Create the users row for an account unless one already exists. Returns True if created."""
    try:
        if await user_queries.get_user(backend, user.id, "id"):
            return False
        await user_queries.create_user(backend, user.id, user.email or "", username=username)
    except BackendError as e:
        logger.error("Error creating user profile for %s: %s", user.id, e.message)
        return False
    logger.info("Created user profile for %s", user.id)
    return True


@router.post("/signup")
async def signup(request: Request):
    body = await request.json()
    email = (body.get("email") or "").strip()
    password = body.get("password") or ""
    username = (body.get("username") or "").strip() or None

    errors = validate_signup(email, password, username)
    if errors:
        raise api_error(400, "VALIDATION_ERROR", errors[0])

    backend = await get_backend()
    try:
        result = await backend.sign_up(
            email, password, username=username, redirect_to=f"{settings.frontend_url}/auth/callback"
        )
    except BackendError as e:
        logger.error("Signup error: %s", e.message)
        if "already been registered" in e.message:
            raise api_error(400, "ALREADY_REGISTERED", ALREADY_REGISTERED_MESSAGE)
        raise api_error(400, "SIGNUP_FAILED", e.message or "An error occurred during signup. Please try again.")

    if result.user is None:
        return {"ok": False, "requires_confirmation": False, "user": None}

    # No identities: the address is already registered and still unconfirmed
    if not result.user.identities:
        return {"ok": True, "requires_confirmation": True, "user": None}

    try:
        session = await backend.sign_in_with_password(email, password)
    except BackendError as e:
        logger.info("Immediate sign-in after signup failed for %s: %s", email, e.message)
        session = None
    if session is None:
        return {"ok": True, "requires_confirmation": True, "user": None}

    await _ensure_profile(backend, result.user, username)
    store = get_store(request)
    await store.wait_idle()
    await store.refresh()
    return {"ok": True, "requires_confirmation": False, **_state_payload(request)}


@router.post("/signin")
async def signin(request: Request):
    body = await request.json()
    email = (body.get("email") or "").strip()
    password = body.get("password") or ""
    if not email or not password:
        raise api_error(400, "VALIDATION_ERROR", "Email and password are required")

    backend = await get_backend()
    logger.info("Attempting to sign in with email: %s", email)
    try:
        session = await backend.sign_in_with_password(email, password)
    except AuthError as e:
        logger.error("Sign in error: %s", e.message)
        if "Invalid login credentials" in e.message:
            raise api_error(401, "INVALID_CREDENTIALS", INVALID_CREDENTIALS_MESSAGE)
        if "Email not confirmed" in e.message:
            raise api_error(403, "EMAIL_NOT_CONFIRMED", EMAIL_NOT_CONFIRMED_MESSAGE, needs_confirmation=True)
        raise api_error(401, "SIGNIN_FAILED", e.message)
    except BackendError as e:
        logger.error("Unexpected sign in error: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "An unexpected error occurred. Please try again.")

    if session is None:
        raise api_error(401, "SIGNIN_FAILED", "Sign in failed. Please try again.")

    # Accounts confirmed by email link have no profile row until their first sign-in
    created = await _ensure_profile(backend, session.user, session.user.user_metadata.get("username"))
    store = get_store(request)
    await store.wait_idle()
    if created:
        await store.refresh()
    return _state_payload(request)


@router.post("/resend-confirmation")
async def resend_confirmation(request: Request):
    body = await request.json()
    email = (body.get("email") or "").strip()
    if not email:
        raise api_error(400, "VALIDATION_ERROR", "Please enter your email address first.")

    backend = await get_backend()
    try:
        await backend.resend_signup_confirmation(email)
    except BackendError as e:
        logger.error("Error resending confirmation email: %s", e.message)
        raise api_error(400, "RESEND_FAILED", e.message or "Failed to resend confirmation email. Please try again.")
    return {"ok": True, "message": "Confirmation email resent! Please check your inbox."}


@router.post("/forgot-password")
async def forgot_password(request: Request):
    body = await request.json()
    email = (body.get("email") or "").strip()
    if not is_valid_email(email):
        raise api_error(400, "VALIDATION_ERROR", "A valid email address is required")

    backend = await get_backend()
    try:
        await backend.reset_password_for_email(email, redirect_to=f"{settings.frontend_url}/auth/reset-password")
    except BackendError as e:
        logger.error("Error sending password reset: %s", e.message)
        raise api_error(400, "RESET_FAILED", e.message or "An unexpected error occurred.")
    return {"ok": True, "message": "Password reset instructions have been sent to your email."}


@router.post("/reset-password")
async def reset_password(request: Request):
    body = await request.json()
    errors = validate_password_reset(body.get("password") or "", body.get("confirm_password") or "")
    if errors:
        raise api_error(400, "VALIDATION_ERROR", errors[0])

    backend = await get_backend()
    try:
        await backend.update_user({"password": body["password"]})
    except BackendError as e:
        logger.error("Error resetting password: %s", e.message)
        raise api_error(400, "RESET_FAILED", e.message or "An unexpected error occurred.")
    return {
        "ok": True,
        "message": "Password has been reset successfully. You can now sign in with your new password.",
    }


@router.post("/signout")
async def signout(request: Request):
    try:
        await get_store(request).sign_out()
    except BackendError as e:
        logger.error("Error signing out: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Sign out failed. Please try again.")
    return {"ok": True}


@router.get("/me")
async def get_current_user(request: Request):
    """Get the currently signed-in user and whether the session is still loading."""
    return _state_payload(request)
