"""Checks against information_schema for partially-migrated databases."""

from __future__ import annotations

from shadow.db.backend import Backend

REQUIRED_USER_COLUMNS = [
    {"name": "id", "type": "uuid"},
    {"name": "username", "type": "text"},
    {"name": "email", "type": "text"},
    {"name": "avatar_url", "type": "text"},
    {"name": "created_at", "type": "timestamp with time zone"},
]

USERS_MIGRATION_SQL = """
-- Add missing columns to users table
ALTER TABLE users ADD COLUMN IF NOT EXISTS username TEXT;
ALTER TABLE users ADD COLUMN IF NOT EXISTS avatar_url TEXT;

-- Add comments for documentation
COMMENT ON COLUMN users.username IS 'User display name';
COMMENT ON COLUMN users.avatar_url IS 'URL to user profile image';
"""


async def table_exists(backend: Backend, table: str, schema: str = "public") -> bool:
    result = await backend.select(
        "information_schema.tables",
        "table_name",
        filters={"table_name": table, "table_schema": schema},
    )
    return bool(result.data)


async def list_columns(backend: Backend, table: str, schema: str = "public") -> list[dict]:
    result = await backend.select(
        "information_schema.columns",
        "column_name, data_type, is_nullable",
        filters={"table_name": table, "table_schema": schema},
        order="ordinal_position",
    )
    return result.data or []


def missing_columns(columns: list[dict], required: list[dict] = REQUIRED_USER_COLUMNS) -> list[dict]:
    present = {c.get("column_name") for c in columns}
    return [r for r in required if r["name"] not in present]
