from __future__ import annotations

import logging

from shadow.db.backend import Backend, BackendError

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, email, created_at, username, avatar_url"
MINIMAL_COLUMNS = "id, email, created_at"
AUTHOR_COLUMNS = "id, username, email, avatar_url"


async def get_user(backend: Backend, user_id: str, columns: str = PROFILE_COLUMNS) -> dict | None:
    result = await backend.select("users", columns, filters={"id": user_id}, maybe_single=True)
    return result.data


async def fetch_profile(backend: Backend, user_id: str) -> dict | None:
    """Fetch a profile row, retrying with the minimal column set on error.

    Returns None when both queries fail; errors are logged, not raised.
    """
    try:
        return await get_user(backend, user_id)
    except BackendError as e:
        logger.error(
            "Error fetching user data for %s: %s (code=%s details=%s hint=%s)",
            user_id, e.message, e.code, e.details, e.hint,
        )

    try:
        data = await get_user(backend, user_id, MINIMAL_COLUMNS)
    except BackendError as e:
        logger.error("Minimal user query also failed for %s: %s (code=%s)", user_id, e.message, e.code)
        return None
    logger.info("Minimal user query succeeded for %s", user_id)
    return data


async def get_author(backend: Backend, user_id: str) -> dict | None:
    return await get_user(backend, user_id, AUTHOR_COLUMNS)


async def create_user(backend: Backend, user_id: str, email: str, username: str | None = None) -> None:
    row = {"id": user_id, "email": email}
    if username:
        row["username"] = username
    await backend.insert("users", row)


async def update_user(backend: Backend, user_id: str, **fields) -> dict | None:
    rows = await backend.update("users", fields, {"id": user_id})
    return rows[0] if rows else None


async def sample_users(backend: Backend, columns: str = "*", limit: int = 1) -> list[dict]:
    result = await backend.select("users", columns, limit=limit)
    return result.data or []
