from __future__ import annotations

from shadow.db.backend import Backend

FEED_COLUMNS = (
    "id, title, caption, media_url, user_id, created_at, "
    "users!posts_user_id_fkey (id, username, email, avatar_url)"
)
GRID_COLUMNS = "id, media_url, title, created_at"


async def list_feed(backend: Backend) -> list[dict]:
    result = await backend.select("posts", FEED_COLUMNS, order="created_at", descending=True)
    return result.data or []


async def list_posts_for_user(backend: Backend, user_id: str) -> list[dict]:
    result = await backend.select(
        "posts", GRID_COLUMNS, filters={"user_id": user_id}, order="created_at", descending=True
    )
    return result.data or []


async def get_post(backend: Backend, post_id: str) -> dict | None:
    result = await backend.select("posts", "*", filters={"id": post_id}, maybe_single=True)
    return result.data


async def create_post(
    backend: Backend,
    user_id: str,
    media_url: str,
    title: str | None = None,
    caption: str | None = None,
) -> dict | None:
    row = {"user_id": user_id, "media_url": media_url, "title": title}
    if caption is not None:
        row["caption"] = caption
    rows = await backend.insert("posts", row)
    return rows[0] if rows else None


async def delete_post(backend: Backend, post_id: str, user_id: str) -> bool:
    rows = await backend.delete("posts", {"id": post_id, "user_id": user_id})
    return len(rows) > 0


async def sample_posts(backend: Backend, limit: int = 1) -> list[dict]:
    result = await backend.select("posts", "id", limit=limit)
    return result.data or []
