"""Post creation, deletion, likes and comments."""

from __future__ import annotations

import logging

from shadow.config import settings
from shadow.db.backend import Backend
from shadow.db.queries import comments as comment_queries
from shadow.db.queries import likes as like_queries
from shadow.db.queries import posts as post_queries
from shadow.services import media_service

logger = logging.getLogger(__name__)


class PostError(Exception):
    """Base post error."""


class PostNotFoundError(PostError):
    """Raised when the post does not exist."""


class NotPostOwnerError(PostError):
    """Raised when a user tries to change someone else's post."""


async def create_post(
    backend: Backend,
    user_id: str,
    filename: str,
    data: bytes,
    content_type: str | None = None,
    title: str | None = None,
    caption: str | None = None,
) -> dict | None:
    """Upload the media to the post bucket, then insert the post row."""
    path = media_service.post_media_path(user_id, filename)
    media_url = await media_service.upload_public(
        backend, settings.post_media_bucket, path, data, content_type=content_type
    )
    post = await post_queries.create_post(backend, user_id, media_url, title=title, caption=caption)
    logger.info("Post created by %s: %s", user_id, path)
    return post


async def delete_post(backend: Backend, user_id: str, post_id: str) -> None:
    """Delete a post owned by ``user_id`` along with its likes and comments.

    Raises:
        PostNotFoundError: If the post does not exist.
        NotPostOwnerError: If the post belongs to someone else.
    """
    post = await post_queries.get_post(backend, post_id)
    if not post:
        raise PostNotFoundError(post_id)
    if post.get("user_id") != user_id:
        raise NotPostOwnerError(post_id)

    await like_queries.delete_likes_for_post(backend, post_id)
    await comment_queries.delete_comments_for_post(backend, post_id)
    await post_queries.delete_post(backend, post_id, user_id)

    if post.get("media_url"):
        await media_service.remove_post_media(backend, post["media_url"])
    logger.info("Post %s deleted by %s", post_id, user_id)


async def like_post(backend: Backend, post_id: str, user_id: str) -> None:
    await like_queries.add_like(backend, post_id, user_id)


async def unlike_post(backend: Backend, post_id: str, user_id: str) -> None:
    await like_queries.remove_like(backend, post_id, user_id)


async def add_comment(backend: Backend, post_id: str, user_id: str, content: str) -> dict | None:
    post = await post_queries.get_post(backend, post_id)
    if not post:
        raise PostNotFoundError(post_id)
    return await comment_queries.add_comment(backend, post_id, user_id, content)
