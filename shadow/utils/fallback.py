"""Degrade failed backend reads to a neutral value."""

from __future__ import annotations

import logging
from typing import Awaitable, TypeVar

from shadow.db.backend import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_fallback(awaitable: Awaitable[T], default: T, what: str) -> T:
    """Await a backend read; on BackendError log it and return ``default``."""
    try:
        return await awaitable
    except BackendError as e:
        logger.error("Error fetching %s: %s (code=%s)", what, e.message, e.code)
        return default
