"""Validation utilities for account and upload input."""

from __future__ import annotations

import re

MIN_PASSWORD_LENGTH = 6
MAX_USERNAME_LENGTH = 30
MAX_TITLE_LENGTH = 2200

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
ALLOWED_MEDIA_EXTENSIONS = ALLOWED_IMAGE_EXTENSIONS | {"mp4", "mov", "webm"}


def is_valid_email(value: str) -> bool:
    return bool(re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", value or ""))


def is_valid_username(value: str) -> bool:
    return bool(re.match(rf"^[A-Za-z0-9_.]{{1,{MAX_USERNAME_LENGTH}}}$", value))


def file_extension(filename: str) -> str:
    """Lowercased text after the last dot, or "" when there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def validate_signup(email: str, password: str, username: str | None = None) -> list[str]:
    """Validate sign-up input. Returns list of error messages (empty = valid)."""
    errors = []
    if not is_valid_email(email):
        errors.append("A valid email address is required")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if username:
        errors.extend(validate_username(username))
    return errors


def validate_username(username: str) -> list[str]:
    if not username or not username.strip():
        return ["Username is required"]
    if not is_valid_username(username.strip()):
        return [f"Username may only contain letters, digits, '.' and '_' (max {MAX_USERNAME_LENGTH})"]
    return []


def validate_password_reset(password: str, confirm_password: str) -> list[str]:
    if password != confirm_password:
        return ["Passwords do not match"]
    if len(password) < MIN_PASSWORD_LENGTH:
        return [f"Password must be at least {MIN_PASSWORD_LENGTH} characters"]
    return []


def validate_upload(
    filename: str | None,
    size: int,
    max_bytes: int,
    allowed: set[str] = ALLOWED_MEDIA_EXTENSIONS,
) -> list[str]:
    errors = []
    if not filename:
        return ["A file is required"]
    ext = file_extension(filename)
    if ext not in allowed:
        errors.append(f"File type must be one of: {', '.join(sorted(allowed))}")
    if size == 0:
        errors.append("File is empty")
    elif size > max_bytes:
        errors.append(f"File exceeds the {max_bytes // (1024 * 1024)} MB limit")
    return errors
