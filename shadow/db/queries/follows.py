from __future__ import annotations

from shadow.db.backend import Backend

FOLLOWER_COLUMNS = "follower_id, users!follows_follower_id_fkey (id, username, avatar_url)"


async def count_followers(backend: Backend, user_id: str) -> int:
    result = await backend.select("follows", "*", filters={"following_id": user_id}, count=True)
    return result.count or 0


async def count_following(backend: Backend, user_id: str) -> int:
    result = await backend.select("follows", "*", filters={"follower_id": user_id}, count=True)
    return result.count or 0


async def is_following(backend: Backend, follower_id: str, following_id: str) -> bool:
    result = await backend.select(
        "follows",
        "follower_id",
        filters={"follower_id": follower_id, "following_id": following_id},
        maybe_single=True,
    )
    return bool(result.data)


async def follow(backend: Backend, follower_id: str, following_id: str) -> None:
    await backend.insert("follows", {"follower_id": follower_id, "following_id": following_id})


async def unfollow(backend: Backend, follower_id: str, following_id: str) -> None:
    await backend.delete("follows", {"follower_id": follower_id, "following_id": following_id})


async def list_followers(backend: Backend, user_id: str) -> list[dict]:
    result = await backend.select("follows", FOLLOWER_COLUMNS, filters={"following_id": user_id})
    return result.data or []
