"""Home feed: every post newest-first with author and counts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from shadow.api.deps import current_user
from shadow.db.backend import BackendError
from shadow.db.database import get_backend
from shadow.services.feed_service import load_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/feed", tags=["feed"])


@router.get("")
async def get_feed(request: Request):
    user = current_user(request)
    backend = await get_backend()
    try:
        items = await load_feed(backend, viewer_id=user.id if user else None)
    except BackendError as e:
        logger.error("Error loading posts: %s", e.message)
        return {"items": [], "error": e.message or "Failed to load posts"}
    return {"items": items}
