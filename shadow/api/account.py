"""The signed-in user's own profile: read, rename, change avatar."""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, Request, UploadFile

from shadow.api.deps import api_error, get_store, require_user
from shadow.config import settings
from shadow.db.backend import BackendError
from shadow.db.database import get_backend
from shadow.services import profile_service
from shadow.utils.validators import ALLOWED_IMAGE_EXTENSIONS, validate_upload, validate_username

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profile", tags=["profile"])


@router.get("")
async def get_own_profile(request: Request):
    """Fresh profile data for the current user; also refreshes the session store."""
    user = require_user(request)
    store = get_store(request)
    refreshed = await store.refresh() or user
    backend = await get_backend()
    page = await profile_service.load_profile_page(backend, refreshed.id)
    posts = [p.model_dump() for p in page.posts] if page else []
    return {
        "user": refreshed.model_dump(),
        "posts": posts,
        "followers": page.followers if page else 0,
        "following": page.following if page else 0,
    }


@router.put("/username")
async def update_username(request: Request):
    user = require_user(request)
    body = await request.json()
    new_username = (body.get("username") or "").strip()

    errors = validate_username(new_username)
    if errors:
        raise api_error(400, "VALIDATION_ERROR", errors[0])
    if new_username == user.username:
        return {"user": user.model_dump(), "message": None}

    backend = await get_backend()
    try:
        updated = await profile_service.update_username(backend, get_store(request), user, new_username)
    except BackendError as e:
        logger.error("Error updating username: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Error updating username. Please try again.")
    return {"user": updated.model_dump() if updated else None, "message": "Username updated successfully!"}


@router.post("/avatar")
async def upload_avatar(request: Request, file: UploadFile = File(...)):
    user = require_user(request)
    data = await file.read()
    errors = validate_upload(file.filename, len(data), settings.max_upload_bytes, allowed=ALLOWED_IMAGE_EXTENSIONS)
    if errors:
        raise api_error(400, "VALIDATION_ERROR", errors[0])

    backend = await get_backend()
    try:
        updated = await profile_service.update_avatar(
            backend, get_store(request), user, file.filename, data, content_type=file.content_type
        )
    except BackendError as e:
        logger.error("Error uploading avatar: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Error uploading avatar. Please try again.")
    return {"user": updated.model_dump() if updated else None, "message": "Avatar updated successfully!"}
