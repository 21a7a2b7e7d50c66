"""Shared test fixtures for Shadow."""

from __future__ import annotations

import asyncio
import itertools
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shadow.auth.session_store import SessionStore
from shadow.db.backend import AuthError, BackendError, QueryResult
from shadow.models.user import AuthSession, AuthUser, SignUpResult

# Stable IDs for seed data
ALICE_ID = "user-alice-001"
BOB_ID = "user-bob-002"
ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "wonderland"
POST_BY_BOB = "post-bob-001"
POST_BY_ALICE = "post-alice-001"
PUBLIC_URL_BASE = "https://fake.supabase.co/storage/v1/object/public"


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """Dict-backed stand-in for the hosted backend.

    Tables are lists of row dicts filtered by equality. Auth keeps accounts
    by email and fires change events the way the live client does.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {
            "users": [], "posts": [], "follows": [], "likes": [], "comments": [],
        }
        self.objects: dict[tuple[str, str], bytes] = {}
        self.buckets = [
            {"id": "post-media", "name": "post-media", "public": True},
            {"id": "avatars", "name": "avatars", "public": True},
        ]
        self.accounts: dict[str, dict] = {}
        self.session: AuthSession | None = None
        self.listeners: list = []
        self.auto_confirm = True
        self.failures: list[tuple[str, str, str | None, BackendError]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.session_gate: asyncio.Event | None = None
        self.calls: list[tuple] = []
        self._clock = itertools.count(1)

    # ── test controls ──

    def fail_when(self, op: str, table: str, columns: str | None = None, error: BackendError | None = None) -> None:
        self.failures.append((op, table, columns, error or BackendError("boom", code="XX000")))

    def gate(self, user_id: str) -> asyncio.Event:
        """Hold profile fetches for ``user_id`` until the returned event is set."""
        event = asyncio.Event()
        self.gates[user_id] = event
        return event

    def emit(self, event: str, session: AuthSession | None) -> None:
        for listener in list(self.listeners):
            listener(event, session)

    def add_account(self, user_id: str, email: str, password: str, confirmed: bool = True) -> None:
        self.accounts[email] = {"id": user_id, "password": password, "confirmed": confirmed, "metadata": {}}

    def _check(self, op: str, table: str, columns: str | None = None) -> None:
        for f_op, f_table, f_columns, error in self.failures:
            if f_op == op and f_table == table and (f_columns is None or f_columns == columns):
                raise error

    def _match(self, table: str, filters: dict | None) -> list[dict]:
        rows = self.tables.setdefault(table, [])
        return [r for r in rows if all(r.get(k) == v for k, v in (filters or {}).items())]

    def _embed(self, table: str, columns: str, row: dict) -> dict:
        row = dict(row)
        if table != "users" and "users" in columns:
            key = "follower_id" if table == "follows" else "user_id"
            author = next((u for u in self.tables["users"] if u["id"] == row.get(key)), None)
            row["users"] = dict(author) if author else None
        return row

    # ── auth ──

    async def get_session(self) -> AuthSession | None:
        self._check("get_session", "auth")
        if self.session_gate is not None:
            await self.session_gate.wait()
        return self.session

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self.listeners:
                self.listeners.remove(callback)

        return _unsubscribe

    async def sign_up(self, email, password, username=None, redirect_to=None) -> SignUpResult:
        self._check("sign_up", "auth")
        self.calls.append(("sign_up", email, username, redirect_to))
        if email in self.accounts:
            account = self.accounts[email]
            return SignUpResult(user=AuthUser(id=account["id"], email=email, identities=[]))
        user_id = str(uuid.uuid4())
        self.add_account(user_id, email, password, confirmed=self.auto_confirm)
        self.accounts[email]["metadata"] = {"username": username} if username else {}
        return SignUpResult(user=AuthUser(id=user_id, email=email, identities=[{"provider": "email"}]))

    async def sign_in_with_password(self, email, password) -> AuthSession | None:
        self._check("sign_in", "auth")
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthError("Invalid login credentials", code="invalid_credentials")
        if not account["confirmed"]:
            raise AuthError("Email not confirmed", code="email_not_confirmed")
        self.session = make_session(account["id"], email, account["metadata"])
        self.emit("SIGNED_IN", self.session)
        return self.session

    async def sign_out(self) -> None:
        self._check("sign_out", "auth")
        self.session = None
        self.emit("SIGNED_OUT", None)

    async def reset_password_for_email(self, email, redirect_to=None) -> None:
        self._check("reset_password", "auth")
        self.calls.append(("reset_password_for_email", email, redirect_to))

    async def update_user(self, attributes: dict) -> AuthUser | None:
        self._check("update_user", "auth")
        if self.session is None:
            raise AuthError("Auth session missing!")
        self.calls.append(("update_user", attributes))
        return self.session.user

    async def resend_signup_confirmation(self, email) -> None:
        self._check("resend", "auth")
        self.calls.append(("resend", email))

    # ── tables ──

    async def select(self, table, columns="*", filters=None, order=None, descending=False,
                     limit=None, single=False, maybe_single=False, count=False) -> QueryResult:
        self._check("select", table, columns)
        if table == "users" and filters and filters.get("id") in self.gates:
            await self.gates[filters["id"]].wait()

        rows = [self._embed(table, columns, r) for r in self._match(table, filters)]
        if order:
            rows.sort(key=lambda r: r.get(order) or "", reverse=descending)
        if limit is not None:
            rows = rows[:limit]

        if single:
            if len(rows) != 1:
                raise BackendError("JSON object requested, multiple (or no) rows returned", code="PGRST116")
            return QueryResult(data=rows[0], count=1)
        if maybe_single:
            return QueryResult(data=rows[0] if rows else None, count=len(rows))
        return QueryResult(data=rows, count=len(rows) if count else None)

    async def insert(self, table, rows) -> list[dict]:
        self._check("insert", table)
        inserted = []
        for row in rows if isinstance(rows, list) else [rows]:
            row = {"id": str(uuid.uuid4()), "created_at": f"2026-01-01T00:00:{next(self._clock):02d}Z", **row}
            self.tables.setdefault(table, []).append(row)
            inserted.append(dict(row))
        return inserted

    async def update(self, table, values, filters) -> list[dict]:
        self._check("update", table)
        matched = self._match(table, filters)
        for row in matched:
            row.update(values)
        return [dict(r) for r in matched]

    async def delete(self, table, filters) -> list[dict]:
        self._check("delete", table)
        matched = self._match(table, filters)
        self.tables[table] = [r for r in self.tables[table] if r not in matched]
        return [dict(r) for r in matched]

    # ── storage ──

    async def upload(self, bucket, path, data, content_type=None, upsert=False) -> str:
        self._check("upload", bucket)
        if (bucket, path) in self.objects and not upsert:
            raise BackendError("The resource already exists", code="409")
        self.objects[(bucket, path)] = data
        return path

    async def get_public_url(self, bucket, path) -> str:
        return f"{PUBLIC_URL_BASE}/{bucket}/{path}"

    async def create_signed_url(self, bucket, path, expires_in) -> str:
        self._check("create_signed_url", bucket)
        return f"https://fake.supabase.co/storage/v1/object/sign/{bucket}/{path}?token=t&expires_in={expires_in}"

    async def remove(self, bucket, paths) -> None:
        self._check("remove", bucket)
        for path in paths:
            self.objects.pop((bucket, path), None)

    async def list_buckets(self) -> list[dict]:
        self._check("list_buckets", "storage")
        return [dict(b) for b in self.buckets]

    async def get_bucket(self, name) -> dict | None:
        return next((dict(b) for b in self.buckets if b["name"] == name), None)

    async def close(self) -> None:
        return None


def make_session(user_id: str, email: str | None, metadata: dict | None = None) -> AuthSession:
    return AuthSession(
        access_token=f"token-{user_id}",
        refresh_token="refresh",
        expires_at=9999999999,
        user=AuthUser(id=user_id, email=email, user_metadata=metadata or {}),
    )


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Backend / store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend() -> FakeBackend:
    """Fake backend with two users, a post each, one follow, a like and a comment."""
    fake = FakeBackend()
    fake.tables["users"] = [
        {"id": ALICE_ID, "email": ALICE_EMAIL, "username": "alice", "avatar_url": None,
         "created_at": "2025-12-01T00:00:00Z"},
        {"id": BOB_ID, "email": "bob@example.com", "username": "bob",
         "avatar_url": f"{PUBLIC_URL_BASE}/avatars/{BOB_ID}/avatar_1.png", "created_at": "2025-12-02T00:00:00Z"},
    ]
    fake.tables["posts"] = [
        {"id": POST_BY_BOB, "user_id": BOB_ID, "title": "Sunset", "caption": None,
         "media_url": f"{PUBLIC_URL_BASE}/post-media/{BOB_ID}/1.jpg", "created_at": "2025-12-10T00:00:00Z"},
        {"id": POST_BY_ALICE, "user_id": ALICE_ID, "title": "Tea party", "caption": "Late again",
         "media_url": f"{PUBLIC_URL_BASE}/post-media/{ALICE_ID}/2.jpg", "created_at": "2025-12-11T00:00:00Z"},
    ]
    fake.tables["follows"] = [
        {"follower_id": ALICE_ID, "following_id": BOB_ID, "created_at": "2025-12-05T00:00:00Z"},
    ]
    fake.tables["likes"] = [{"id": "like-001", "post_id": POST_BY_BOB, "user_id": ALICE_ID}]
    fake.tables["comments"] = [
        {"id": "comment-001", "post_id": POST_BY_BOB, "user_id": ALICE_ID, "content": "Lovely",
         "created_at": "2025-12-10T01:00:00Z"},
    ]
    fake.objects[("post-media", f"{BOB_ID}/1.jpg")] = b"jpeg"
    fake.objects[("post-media", f"{ALICE_ID}/2.jpg")] = b"jpeg"
    fake.add_account(ALICE_ID, ALICE_EMAIL, ALICE_PASSWORD)
    return fake


@pytest_asyncio.fixture
async def store(backend):
    """Started session store with nobody signed in."""
    session_store = SessionStore(backend)
    await session_store.start()
    yield session_store
    await session_store.close()


# ---------------------------------------------------------------------------
# App / client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(backend, store):
    """FastAPI app with the fake backend and store injected."""
    from shadow.db import database as db_module
    original_backend = db_module._backend
    db_module._backend = backend

    from shadow.main import app as fastapi_app
    fastapi_app.state.session_store = store

    yield fastapi_app

    db_module._backend = original_backend


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def alice_client(app, backend, store):
    """Client whose session store is signed in as Alice."""
    await backend.sign_in_with_password(ALICE_EMAIL, ALICE_PASSWORD)
    await store.wait_idle()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
