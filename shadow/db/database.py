import logging

from shadow.config import settings
from shadow.db.backend import Backend, create_backend

logger = logging.getLogger(__name__)

_backend: Backend | None = None


async def get_backend() -> Backend:
    global _backend
    if _backend is None:
        raise RuntimeError("Backend not initialized. Call init_backend() first.")
    return _backend


async def init_backend() -> Backend:
    global _backend
    _backend = await create_backend(settings)
    logger.info("Backend initialized (mode=%s)", settings.backend_mode)
    return _backend


async def close_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.close()
        _backend = None
        logger.info("Backend connection closed")
