"""Profile pages, follows and own-profile edits."""

from __future__ import annotations

import asyncio
import logging

from shadow.auth.session_store import SessionStore
from shadow.config import settings
from shadow.db.backend import Backend
from shadow.db.queries import follows as follow_queries
from shadow.db.queries import posts as post_queries
from shadow.db.queries import users as user_queries
from shadow.models.post import Post, ProfilePage
from shadow.models.user import User
from shadow.services import media_service
from shadow.utils.fallback import with_fallback

logger = logging.getLogger(__name__)


class SelfFollowError(Exception):
    """Raised when a user tries to follow themselves."""


async def load_profile_page(backend: Backend, user_id: str, viewer_id: str | None = None) -> ProfilePage | None:
    """Profile + posts + follow counts. Returns None when the profile can't be loaded."""
    profile = await with_fallback(user_queries.get_user(backend, user_id), None, f"profile {user_id}")
    if not profile:
        return None

    following_check = (
        follow_queries.is_following(backend, viewer_id, user_id)
        if viewer_id and viewer_id != user_id
        else _false()
    )
    posts, followers, following, is_following = await asyncio.gather(
        with_fallback(post_queries.list_posts_for_user(backend, user_id), [], f"posts for {user_id}"),
        with_fallback(follow_queries.count_followers(backend, user_id), 0, f"followers of {user_id}"),
        with_fallback(follow_queries.count_following(backend, user_id), 0, f"following of {user_id}"),
        with_fallback(following_check, False, f"follow state for {user_id}"),
    )
    return ProfilePage(
        profile=profile,
        posts=[Post.model_validate({**p, "user_id": user_id}) for p in posts],
        followers=followers,
        following=following,
        is_following=is_following,
    )


async def _false() -> bool:
    return False


async def list_followers(backend: Backend, user_id: str) -> list[dict]:
    rows = await follow_queries.list_followers(backend, user_id)
    followers = []
    for row in rows:
        user = row.get("users")
        if isinstance(user, list):
            user = user[0] if user else None
        followers.append(user or {"id": row.get("follower_id")})
    return followers


async def follow_user(backend: Backend, follower_id: str, following_id: str) -> None:
    if follower_id == following_id:
        raise SelfFollowError(follower_id)
    await follow_queries.follow(backend, follower_id, following_id)
    logger.info("%s followed %s", follower_id, following_id)


async def unfollow_user(backend: Backend, follower_id: str, following_id: str) -> None:
    await follow_queries.unfollow(backend, follower_id, following_id)


async def update_username(backend: Backend, store: SessionStore, user: User, username: str) -> User | None:
    """Write the username to the profile row and auth metadata, then to the store."""
    await user_queries.update_user(backend, user.id, username=username)
    await backend.update_user({"data": {"username": username}})
    logger.info("Username updated for %s", user.id)
    return store.apply_profile_changes(username=username)


async def update_avatar(
    backend: Backend,
    store: SessionStore,
    user: User,
    filename: str,
    data: bytes,
    content_type: str | None = None,
) -> User | None:
    """Upload a new avatar (upsert), record its public URL, then update the store."""
    path = media_service.avatar_path(user.id, filename)
    public_url = await media_service.upload_public(
        backend, settings.avatars_bucket, path, data, content_type=content_type, upsert=True
    )
    await user_queries.update_user(backend, user.id, avatar_url=public_url)
    await backend.update_user({"data": {"avatar_url": public_url}})
    logger.info("Avatar updated for %s: %s", user.id, path)
    return store.apply_profile_changes(avatar_url=public_url)
