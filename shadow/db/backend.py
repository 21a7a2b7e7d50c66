"""Backend-as-a-service client: live Supabase or a no-op stand-in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

import httpx
from supabase import AsyncClient, AuthError as SupabaseAuthError, PostgrestAPIError, StorageException, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from shadow.config import Settings
from shadow.models.user import AuthSession, AuthUser, SignUpResult

logger = logging.getLogger(__name__)

AuthListener = Callable[[str, "AuthSession | None"], None]


class BackendError(Exception):
    """A backend request failed (network, validation or permission)."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: Any = None,
        hint: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict:
        return {"code": self.code, "details": self.details, "hint": self.hint}


class AuthError(BackendError):
    """Authentication request rejected by the backend."""


class BackendConfigError(BackendError):
    """Backend URL or key missing from the environment."""


@dataclass
class QueryResult:
    data: Any
    count: int | None = None


@runtime_checkable
class Backend(Protocol):
    """Operations this app needs from the backend-as-a-service."""

    # ── Auth ──

    async def get_session(self) -> AuthSession | None: ...

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register for sign-in/sign-out/refresh events. Returns an unsubscribe callable."""
        ...

    async def sign_up(
        self, email: str, password: str, username: str | None = None, redirect_to: str | None = None
    ) -> SignUpResult: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None: ...

    async def sign_out(self) -> None: ...

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None: ...

    async def update_user(self, attributes: dict) -> AuthUser | None: ...

    async def resend_signup_confirmation(self, email: str) -> None: ...

    # ── Tables ──

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        single: bool = False,
        maybe_single: bool = False,
        count: bool = False,
    ) -> QueryResult: ...

    async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]: ...

    async def update(self, table: str, values: dict, filters: dict) -> list[dict]: ...

    async def delete(self, table: str, filters: dict) -> list[dict]: ...

    # ── Storage ──

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str: ...

    async def get_public_url(self, bucket: str, path: str) -> str: ...

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str: ...

    async def remove(self, bucket: str, paths: list[str]) -> None: ...

    async def list_buckets(self) -> list[dict]: ...

    async def get_bucket(self, name: str) -> dict | None: ...

    async def close(self) -> None: ...


class SupabaseBackend:
    """Live deployment backed by the async Supabase client."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    @classmethod
    async def create(cls, url: str, key: str, persist_session: bool = True) -> SupabaseBackend:
        if not url or not key:
            raise BackendConfigError("Missing Supabase environment variables")
        options = AsyncClientOptions(
            auto_refresh_token=persist_session,
            persist_session=persist_session,
        )
        client = await acreate_client(url, key, options=options)
        return cls(client)

    # ── Auth ──

    async def get_session(self) -> AuthSession | None:
        try:
            session = await self._client.auth.get_session()
        except SupabaseAuthError as e:
            raise AuthError(e.message, code=getattr(e, "code", None)) from e
        return _to_session(session)

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        def _listener(event, session) -> None:
            callback(str(event), _to_session(session))

        subscription = self._client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe

    async def sign_up(
        self, email: str, password: str, username: str | None = None, redirect_to: str | None = None
    ) -> SignUpResult:
        options: dict = {"data": {"username": username} if username else {}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        resp = await self._auth_call(
            self._client.auth.sign_up({"email": email, "password": password, "options": options})
        )
        return SignUpResult(user=_to_auth_user(resp.user), session=_to_session(resp.session))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        resp = await self._auth_call(
            self._client.auth.sign_in_with_password({"email": email, "password": password})
        )
        return _to_session(resp.session)

    async def sign_out(self) -> None:
        await self._auth_call(self._client.auth.sign_out())

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        await self._auth_call(self._client.auth.reset_password_for_email(email, options))

    async def update_user(self, attributes: dict) -> AuthUser | None:
        resp = await self._auth_call(self._client.auth.update_user(attributes))
        return _to_auth_user(resp.user)

    async def resend_signup_confirmation(self, email: str) -> None:
        await self._auth_call(self._client.auth.resend({"type": "signup", "email": email}))

    async def _auth_call(self, awaitable):
        try:
            return await awaitable
        except SupabaseAuthError as e:
            raise AuthError(e.message, code=getattr(e, "code", None)) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Auth request failed: {e}") from e

    # ── Tables ──

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        single: bool = False,
        maybe_single: bool = False,
        count: bool = False,
    ) -> QueryResult:
        query = self._client.table(table).select(columns, count="exact" if count else None)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order:
            query = query.order(order, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        if single:
            query = query.single()
        elif maybe_single:
            query = query.maybe_single()

        try:
            resp = await self._execute(query)
        except BackendError as e:
            # older postgrest releases signal an empty maybe_single() with a 204 error
            if maybe_single and e.code == "204":
                return QueryResult(data=None, count=0)
            raise
        # maybe_single() yields no response at all when nothing matched
        if resp is None:
            return QueryResult(data=None, count=0)
        return QueryResult(data=resp.data, count=resp.count)

    async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        resp = await self._execute(self._client.table(table).insert(rows))
        return resp.data or []

    async def update(self, table: str, values: dict, filters: dict) -> list[dict]:
        query = self._client.table(table).update(values)
        for column, value in filters.items():
            query = query.eq(column, value)
        resp = await self._execute(query)
        return resp.data or []

    async def delete(self, table: str, filters: dict) -> list[dict]:
        query = self._client.table(table).delete()
        for column, value in filters.items():
            query = query.eq(column, value)
        resp = await self._execute(query)
        return resp.data or []

    async def _execute(self, query):
        try:
            return await query.execute()
        except PostgrestAPIError as e:
            raise BackendError(e.message or str(e), code=e.code, details=e.details, hint=e.hint) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Backend request failed: {e}") from e

    # ── Storage ──

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str:
        file_options = {"upsert": "true" if upsert else "false"}
        if content_type:
            file_options["content-type"] = content_type
        await self._storage_call(self._client.storage.from_(bucket).upload(path, data, file_options))
        return path

    async def get_public_url(self, bucket: str, path: str) -> str:
        return await self._storage_call(self._client.storage.from_(bucket).get_public_url(path))

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        data = await self._storage_call(
            self._client.storage.from_(bucket).create_signed_url(path, expires_in)
        )
        return data.get("signedURL") or data.get("signedUrl") or ""

    async def remove(self, bucket: str, paths: list[str]) -> None:
        await self._storage_call(self._client.storage.from_(bucket).remove(paths))

    async def list_buckets(self) -> list[dict]:
        buckets = await self._storage_call(self._client.storage.list_buckets())
        return [_bucket_to_dict(b) for b in buckets]

    async def get_bucket(self, name: str) -> dict | None:
        try:
            bucket = await self._storage_call(self._client.storage.get_bucket(name))
        except BackendError:
            logger.debug("Bucket lookup failed for %s", name, exc_info=True)
            return None
        return _bucket_to_dict(bucket)

    async def _storage_call(self, awaitable):
        try:
            return await awaitable
        except StorageException as e:
            payload = e.args[0] if e.args and isinstance(e.args[0], dict) else {}
            message = payload.get("message") or str(e)
            raise BackendError(message, code=payload.get("statusCode") or payload.get("error"), details=payload) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Storage request failed: {e}") from e

    async def close(self) -> None:
        await self._client.postgrest.aclose()


class NullBackend:
    """Non-interactive contexts: no session, empty results, nothing stored."""

    async def get_session(self) -> AuthSession | None:
        return None

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        return lambda: None

    async def sign_up(
        self, email: str, password: str, username: str | None = None, redirect_to: str | None = None
    ) -> SignUpResult:
        return SignUpResult()

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        return None

    async def sign_out(self) -> None:
        return None

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        return None

    async def update_user(self, attributes: dict) -> AuthUser | None:
        return None

    async def resend_signup_confirmation(self, email: str) -> None:
        return None

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        single: bool = False,
        maybe_single: bool = False,
        count: bool = False,
    ) -> QueryResult:
        if single or maybe_single:
            return QueryResult(data=None, count=0)
        return QueryResult(data=[], count=0)

    async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        return []

    async def update(self, table: str, values: dict, filters: dict) -> list[dict]:
        return []

    async def delete(self, table: str, filters: dict) -> list[dict]:
        return []

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str:
        return ""

    async def get_public_url(self, bucket: str, path: str) -> str:
        return ""

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        return ""

    async def remove(self, bucket: str, paths: list[str]) -> None:
        return None

    async def list_buckets(self) -> list[dict]:
        return []

    async def get_bucket(self, name: str) -> dict | None:
        return None

    async def close(self) -> None:
        return None


def _to_auth_user(user) -> AuthUser | None:
    if user is None:
        return None
    identities = getattr(user, "identities", None)
    return AuthUser(
        id=str(user.id),
        email=user.email,
        user_metadata=user.user_metadata or {},
        identities=[i.model_dump(mode="json") for i in identities] if identities is not None else None,
    )


def _to_session(session) -> AuthSession | None:
    if session is None or session.user is None:
        return None
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        user=_to_auth_user(session.user),
    )


def _bucket_to_dict(bucket) -> dict:
    fields = ("id", "name", "owner", "public", "created_at", "updated_at", "file_size_limit", "allowed_mime_types")
    result = {}
    for field in fields:
        value = getattr(bucket, field, None)
        result[field] = value.isoformat() if hasattr(value, "isoformat") else value
    return result


async def create_backend(settings: Settings) -> Backend:
    """Factory: returns the backend for the configured execution context."""
    if settings.backend_mode == "null":
        logger.info("Using no-op backend (backend_mode=null)")
        return NullBackend()
    return await SupabaseBackend.create(settings.supabase_url, settings.supabase_anon_key)


async def create_service_backend(settings: Settings) -> Backend:
    """Privileged client for server-only code. Never holds a user session."""
    return await SupabaseBackend.create(
        settings.supabase_url, settings.supabase_service_role_key, persist_session=False
    )
