"""Post routes: create, delete, likes and comments."""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, Form, Request, UploadFile

from shadow.api.deps import api_error, current_user, require_user
from shadow.config import settings
from shadow.db.backend import BackendError
from shadow.db.database import get_backend
from shadow.db.queries import comments as comment_queries
from shadow.db.queries import likes as like_queries
from shadow.services import post_service
from shadow.services.feed_service import get_post_stats
from shadow.utils.fallback import with_fallback
from shadow.utils.validators import MAX_TITLE_LENGTH, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


@router.post("")
async def create_post(
    request: Request,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    caption: str | None = Form(None),
):
    user = require_user(request)
    data = await file.read()

    errors = validate_upload(file.filename, len(data), settings.max_upload_bytes)
    if title and len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    if errors:
        raise api_error(400, "VALIDATION_ERROR", errors[0])

    backend = await get_backend()
    try:
        post = await post_service.create_post(
            backend, user.id, file.filename, data,
            content_type=file.content_type, title=title, caption=caption,
        )
    except BackendError as e:
        logger.error("Error creating post: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to create post. Please try again.")
    return post


@router.delete("/{post_id}")
async def delete_post(post_id: str, request: Request):
    user = require_user(request)
    backend = await get_backend()
    try:
        await post_service.delete_post(backend, user.id, post_id)
    except post_service.PostNotFoundError:
        raise api_error(404, "NOT_FOUND", f"Post not found: {post_id}")
    except post_service.NotPostOwnerError:
        raise api_error(403, "FORBIDDEN", "You can only delete your own posts")
    except BackendError as e:
        logger.error("Error deleting post %s: %s", post_id, e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to delete post. Please try again.")
    return {"ok": True}


@router.get("/{post_id}/stats")
async def post_stats(post_id: str, request: Request):
    user = current_user(request)
    backend = await get_backend()
    stats = await get_post_stats(backend, post_id, viewer_id=user.id if user else None)
    return stats.model_dump()


@router.post("/{post_id}/like")
async def like(post_id: str, request: Request):
    user = require_user(request)
    backend = await get_backend()
    try:
        await post_service.like_post(backend, post_id, user.id)
    except BackendError as e:
        logger.error("Error handling like: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to like post")
    likes = await with_fallback(like_queries.count_likes(backend, post_id), 0, f"likes for {post_id}")
    return {"post_id": post_id, "liked": True, "likes": likes}


@router.delete("/{post_id}/like")
async def unlike(post_id: str, request: Request):
    user = require_user(request)
    backend = await get_backend()
    try:
        await post_service.unlike_post(backend, post_id, user.id)
    except BackendError as e:
        logger.error("Error handling unlike: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to unlike post")
    likes = await with_fallback(like_queries.count_likes(backend, post_id), 0, f"likes for {post_id}")
    return {"post_id": post_id, "liked": False, "likes": likes}


@router.get("/{post_id}/comments")
async def list_comments(post_id: str):
    backend = await get_backend()
    try:
        items = await comment_queries.list_comments(backend, post_id)
    except BackendError as e:
        logger.error("Error fetching comments: %s", e.message)
        items = []
    return {"items": items}


@router.post("/{post_id}/comments")
async def add_comment(post_id: str, request: Request):
    user = require_user(request)
    body = await request.json()
    content = (body.get("content") or "").strip()
    if not content:
        raise api_error(400, "VALIDATION_ERROR", "content is required")

    backend = await get_backend()
    try:
        comment = await post_service.add_comment(backend, post_id, user.id, content)
    except post_service.PostNotFoundError:
        raise api_error(404, "NOT_FOUND", f"Post not found: {post_id}")
    except BackendError as e:
        logger.error("Error adding comment: %s", e.message)
        raise api_error(502, "BACKEND_ERROR", "Failed to add comment")
    return comment
