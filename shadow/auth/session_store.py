"""Process-wide view of the signed-in user, kept in step with the backend session.

Two sources feed the store: the session lookup performed once by ``start()``
and the backend's auth-state subscription (sign-in, sign-out, token refresh).
Each event takes a number from a monotonic counter when it is issued, and a
profile fetch is only applied if its number is still the latest one. A
sign-out therefore wins over any fetch that was still in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from shadow.db.backend import Backend, BackendError
from shadow.db.queries import users as user_queries
from shadow.models.user import AuthSession, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    user: User | None
    loading: bool


Listener = Callable[[SessionState], None]


class SessionStore:
    """Observable ``{user, loading}`` container shared by all views."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend
        self._user: User | None = None
        self._loading = True
        self._session: AuthSession | None = None
        self._seq = 0
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._started = False

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def snapshot(self) -> SessionState:
        return SessionState(user=self._user, loading=self._loading)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Lifecycle ──

    async def start(self) -> None:
        """Subscribe to auth changes and resolve the current session once."""
        if self._started:
            return
        self._started = True

        seq = self._issue()
        self._unsubscribe = self._backend.on_auth_state_change(self._on_auth_state_change)

        try:
            session = await self._backend.get_session()
        except BackendError as e:
            logger.error("Session lookup failed: %s (code=%s)", e.message, e.code)
            session = None
        logger.info("Session check result: %s", "user logged in" if session else "no user logged in")
        if seq == self._seq:
            self._session = session

        await self._resolve(seq, session)

        # The initial lookup always ends the loading phase, even when a newer
        # event has already replaced its user value.
        if self._loading:
            self._loading = False
            self._notify()

    async def wait_idle(self) -> None:
        """Wait until no profile fetch triggered by an auth event is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ── Intents ──

    async def refresh(self) -> User | None:
        """Re-read the profile row for the current session."""
        if self._session is None:
            return None
        await self._resolve(self._issue(), self._session)
        return self._user

    def apply_profile_changes(self, **fields) -> User | None:
        """Merge fields the backend has already accepted into the current user.

        Ignored while a sign-in for a different user is still being resolved.
        """
        if self._user is None:
            return None
        if self._session is None or self._session.user.id != self._user.id:
            logger.debug("Ignoring profile changes for %s; session belongs to someone else", self._user.id)
            return None
        self._issue()
        self._user = self._user.model_copy(update=fields)
        self._notify()
        return self._user

    async def sign_out(self) -> None:
        """Clear the local user even when the backend call fails; the error still propagates."""
        try:
            await self._backend.sign_out()
        finally:
            self._issue()
            self._session = None
            self._set(None, loading=False)

    # ── Internals ──

    def _issue(self) -> int:
        self._seq += 1
        return self._seq

    def _on_auth_state_change(self, event: str, session: AuthSession | None) -> None:
        seq = self._issue()
        logger.info("Auth state changed: %s (%s)", event, "user logged in" if session else "user logged out")
        if session is None:
            self._session = None
            self._set(None, loading=False)
            return

        self._session = session
        task = asyncio.get_running_loop().create_task(self._resolve(seq, session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, seq: int, session: AuthSession | None) -> None:
        if session is None:
            if seq == self._seq:
                self._session = None
                self._set(None, loading=False)
            return

        user = await self._load_user(session)
        if seq != self._seq:
            logger.debug("Discarding stale profile for %s (event %d, latest %d)", session.user.id, seq, self._seq)
            return
        self._session = session
        self._set(user, loading=False)

    async def _load_user(self, session: AuthSession) -> User:
        fallback_email = session.user.email or ""
        try:
            data = await user_queries.fetch_profile(self._backend, session.user.id)
            if data:
                return User.model_validate({**data, "email": data.get("email") or fallback_email})
        except Exception:
            logger.exception("Exception fetching user data for %s", session.user.id)
        return User(id=session.user.id, email=fallback_email)

    def _set(self, user: User | None, loading: bool) -> None:
        self._user = user
        self._loading = loading
        self._notify()

    def _notify(self) -> None:
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")
