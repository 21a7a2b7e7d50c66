"""Public profile pages, followers and follow/unfollow."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from shadow.api.deps import api_error, current_user, require_user
from shadow.db.backend import BackendError
from shadow.db.database import get_backend
from shadow.services import profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/{user_id}")
async def get_profile(user_id: str, request: Request):
    viewer = current_user(request)
    backend = await get_backend()
    page = await profile_service.load_profile_page(backend, user_id, viewer_id=viewer.id if viewer else None)
    if page is None:
        raise api_error(404, "NOT_FOUND", "Profile not found.")
    return {**page.model_dump(), "is_own_profile": bool(viewer and viewer.id == user_id)}


@router.get("/{user_id}/followers")
async def get_followers(user_id: str):
    backend = await get_backend()
    try:
        items = await profile_service.list_followers(backend, user_id)
    except BackendError as e:
        logger.error("Error fetching followers for %s: %s", user_id, e.message)
        items = []
    return {"items": items}


@router.post("/{user_id}/follow")
async def follow(user_id: str, request: Request):
    user = require_user(request)
    backend = await get_backend()
    try:
        await profile_service.follow_user(backend, user.id, user_id)
    except profile_service.SelfFollowError:
        raise api_error(400, "VALIDATION_ERROR", "You cannot follow yourself")
    except BackendError as e:
        logger.error("Error following user %s: %s", user_id, e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to follow user")
    return {"user_id": user_id, "following": True}


@router.delete("/{user_id}/follow")
async def unfollow(user_id: str, request: Request):
    user = require_user(request)
    backend = await get_backend()
    try:
        await profile_service.unfollow_user(backend, user.id, user_id)
    except BackendError as e:
        logger.error("Error unfollowing user %s: %s", user_id, e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to unfollow user")
    return {"user_id": user_id, "following": False}
