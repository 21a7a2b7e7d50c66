from __future__ import annotations

from shadow.db.backend import Backend


async def count_comments(backend: Backend, post_id: str) -> int:
    result = await backend.select("comments", "*", filters={"post_id": post_id}, count=True)
    return result.count or 0


async def list_comments(backend: Backend, post_id: str) -> list[dict]:
    result = await backend.select(
        "comments",
        "id, post_id, user_id, content, created_at, users (id, username, avatar_url)",
        filters={"post_id": post_id},
        order="created_at",
    )
    return result.data or []


async def add_comment(backend: Backend, post_id: str, user_id: str, content: str) -> dict | None:
    rows = await backend.insert("comments", {"post_id": post_id, "user_id": user_id, "content": content})
    return rows[0] if rows else None


async def delete_comments_for_post(backend: Backend, post_id: str) -> None:
    await backend.delete("comments", {"post_id": post_id})
