"""Feed assembly: posts, their authors and per-post counts."""

from __future__ import annotations

import asyncio

from shadow.db.backend import Backend
from shadow.db.queries import comments as comment_queries
from shadow.db.queries import likes as like_queries
from shadow.db.queries import posts as post_queries
from shadow.db.queries import users as user_queries
from shadow.models.post import Author, Post, PostStats
from shadow.utils.fallback import with_fallback


def _embedded_author(row: dict) -> dict | None:
    # PostgREST returns an object for the join; older schemas produced a list
    users = row.get("users")
    if isinstance(users, list):
        return users[0] if users else None
    return users or None


async def _resolve_author(backend: Backend, row: dict) -> Author | None:
    author = _embedded_author(row)
    if author is None and row.get("user_id"):
        author = await with_fallback(
            user_queries.get_author(backend, row["user_id"]), None, f"author {row['user_id']}"
        )
    return Author.model_validate(author) if author else None


async def list_feed_posts(backend: Backend) -> list[Post]:
    """Posts newest-first with authors attached. Raises BackendError if the feed query fails."""
    rows = await post_queries.list_feed(backend)
    authors = await asyncio.gather(*(_resolve_author(backend, row) for row in rows))
    return [
        Post.model_validate({**{k: v for k, v in row.items() if k != "users"}, "author": author})
        for row, author in zip(rows, authors)
    ]


async def get_post_stats(backend: Backend, post_id: str, viewer_id: str | None = None) -> PostStats:
    """Like/comment counts and the viewer's like flag; failed reads fall back to 0/False."""
    likes, comments, liked = await asyncio.gather(
        with_fallback(like_queries.count_likes(backend, post_id), 0, f"likes for {post_id}"),
        with_fallback(comment_queries.count_comments(backend, post_id), 0, f"comments for {post_id}"),
        _liked_by(backend, post_id, viewer_id),
    )
    return PostStats(likes=likes, comments=comments, liked=liked)


async def _liked_by(backend: Backend, post_id: str, viewer_id: str | None) -> bool:
    if not viewer_id:
        return False
    return await with_fallback(like_queries.has_liked(backend, post_id, viewer_id), False, f"like state for {post_id}")


async def load_feed(backend: Backend, viewer_id: str | None = None) -> list[dict]:
    posts = await list_feed_posts(backend)
    stats = await asyncio.gather(*(get_post_stats(backend, p.id, viewer_id) for p in posts))
    return [{**post.model_dump(), "stats": s.model_dump()} for post, s in zip(posts, stats)]
