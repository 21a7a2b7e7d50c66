"""Shadow FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shadow.config import settings
from shadow.db.database import init_backend, close_backend
from shadow.auth.middleware import AuthMiddleware
from shadow.auth.session_store import SessionStore

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Shadow server...")
    backend = await init_backend()

    store = SessionStore(backend)
    app.state.session_store = store
    await store.start()

    logger.info("Shadow server ready (backend_mode=%s)", settings.backend_mode)
    yield

    await store.close()
    await close_backend()
    logger.info("Shadow server stopped")


app = FastAPI(
    title="Shadow",
    description="Photo-sharing client for a hosted Supabase backend",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AuthMiddleware)

# Import and register routers
from shadow.auth.routes import router as auth_router
from shadow.api.feed import router as feed_router
from shadow.api.posts import router as posts_router
from shadow.api.profiles import router as profiles_router
from shadow.api.account import router as account_router
from shadow.api.diagnostics import router as diagnostics_router

app.include_router(auth_router)
app.include_router(feed_router)
app.include_router(posts_router)
app.include_router(profiles_router)
app.include_router(account_router)
app.include_router(diagnostics_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "shadow", "version": "0.1.0"}


@app.get("/")
async def root():
    return {"service": "shadow", "docs": "/docs"}
