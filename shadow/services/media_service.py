"""Object-storage helpers for post media and avatars."""

from __future__ import annotations

import logging
import time

from shadow.config import settings
from shadow.db.backend import Backend, BackendError
from shadow.utils.validators import file_extension

logger = logging.getLogger(__name__)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def post_media_path(user_id: str, filename: str) -> str:
    return f"{user_id}/{_timestamp_ms()}.{file_extension(filename)}"


def avatar_path(user_id: str, filename: str) -> str:
    return f"{user_id}/avatar_{_timestamp_ms()}.{file_extension(filename)}"


async def upload_public(
    backend: Backend,
    bucket: str,
    path: str,
    data: bytes,
    content_type: str | None = None,
    upsert: bool = False,
) -> str:
    """Upload an object and return its public URL."""
    await backend.upload(bucket, path, data, content_type=content_type, upsert=upsert)
    public_url = await backend.get_public_url(bucket, path)
    logger.info("Uploaded %s/%s", bucket, path)
    return public_url


def path_from_public_url(public_url: str, bucket: str) -> str | None:
    """Recover the object path from a public URL issued for ``bucket``."""
    marker = f"/storage/v1/object/public/{bucket}/"
    if marker not in public_url:
        return None
    return public_url.split(marker, 1)[1].split("?", 1)[0] or None


async def remove_post_media(backend: Backend, media_url: str) -> None:
    """Best-effort removal of a post's media object. Failures are logged only."""
    path = path_from_public_url(media_url, settings.post_media_bucket)
    if not path:
        return
    try:
        await backend.remove(settings.post_media_bucket, [path])
    except BackendError as e:
        logger.error("Error deleting media %s: %s", path, e.message)
