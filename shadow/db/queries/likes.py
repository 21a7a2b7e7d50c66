from __future__ import annotations

from shadow.db.backend import Backend


async def count_likes(backend: Backend, post_id: str) -> int:
    result = await backend.select("likes", "*", filters={"post_id": post_id}, count=True)
    return result.count or 0


async def has_liked(backend: Backend, post_id: str, user_id: str) -> bool:
    result = await backend.select(
        "likes", "id", filters={"post_id": post_id, "user_id": user_id}, maybe_single=True
    )
    return bool(result.data)


async def add_like(backend: Backend, post_id: str, user_id: str) -> None:
    await backend.insert("likes", {"post_id": post_id, "user_id": user_id})


async def remove_like(backend: Backend, post_id: str, user_id: str) -> None:
    await backend.delete("likes", {"post_id": post_id, "user_id": user_id})


async def delete_likes_for_post(backend: Backend, post_id: str) -> None:
    await backend.delete("likes", {"post_id": post_id})
