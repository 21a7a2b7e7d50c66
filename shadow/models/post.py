from __future__ import annotations

from pydantic import BaseModel


class Author(BaseModel):
    id: str
    username: str | None = None
    email: str | None = None
    avatar_url: str | None = None


class Post(BaseModel):
    id: str
    user_id: str
    media_url: str | None = None
    title: str | None = None
    caption: str | None = None
    created_at: str | None = None
    author: Author | None = None


class PostStats(BaseModel):
    likes: int = 0
    comments: int = 0
    liked: bool = False


class ProfilePage(BaseModel):
    profile: dict
    posts: list[Post]
    followers: int = 0
    following: int = 0
    is_following: bool = False
