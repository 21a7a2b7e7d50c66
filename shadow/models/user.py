from __future__ import annotations

from pydantic import BaseModel


class User(BaseModel):
    """Profile record from the ``users`` table.

    Columns beyond the known ones are kept, since the table may carry more
    fields than this client knows about.
    """

    id: str
    email: str = ""
    username: str | None = None
    avatar_url: str | None = None
    created_at: str | None = None

    model_config = {"extra": "allow"}


class AuthUser(BaseModel):
    id: str
    email: str | None = None
    user_metadata: dict = {}
    identities: list | None = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    user: AuthUser


class SignUpResult(BaseModel):
    user: AuthUser | None = None
    session: AuthSession | None = None
