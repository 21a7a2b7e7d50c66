"""Diagnostic routes probing the backend: schema, inserts, storage.

Every route answers ``{"success": ...}``; backend failures map to HTTP 500.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from shadow.config import settings
from shadow.db.backend import BackendError, create_service_backend
from shadow.db.database import get_backend
from shadow.db.queries import posts as post_queries
from shadow.db.queries import schema as schema_queries
from shadow.db.queries import users as user_queries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/debug", tags=["diagnostics"])

TEST_USER_ID = "12345678-1234-1234-1234-123456789012"
TEST_FILE_CONTENT = b"This is a test file for storage verification"


@asynccontextmanager
async def _service_backend():
    """Service-role client built from the environment for the duration of one request."""
    backend = await create_service_backend(settings)
    try:
        yield backend
    finally:
        await backend.close()


def _failure(e: BackendError, status_code: int = 500, **extra) -> JSONResponse:
    logger.error("Diagnostic failed: %s (code=%s details=%s hint=%s)", e.message, e.code, e.details, e.hint)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": e.message, "details": e.to_dict(), **extra},
    )


@router.get("/test-supabase")
async def test_supabase():
    """Anonymous client: session status plus one row from users and posts."""
    backend = await get_backend()
    try:
        session = await backend.get_session()
        users_sample = await user_queries.sample_users(backend, "id")
        posts_sample = await post_queries.sample_posts(backend)
    except BackendError as e:
        return _failure(e)
    return {
        "success": True,
        "message": "All tests passed",
        "session": "authenticated" if session else "not authenticated",
        "usersSample": users_sample,
        "postsSample": posts_sample,
    }


@router.get("/test-service-role")
async def test_service_role():
    try:
        async with _service_backend() as backend:
            sample = await user_queries.sample_users(backend, "id, username, email")
    except BackendError as e:
        return _failure(e)
    return {"success": True, "message": "Service role test passed", "usersSample": sample}


@router.post("/test-insert")
async def test_insert():
    """Insert a throwaway users row, read it back to list columns, then delete it."""
    try:
        async with _service_backend() as backend:
            inserted = await backend.insert("users", {"id": TEST_USER_ID})

            queried = None
            try:
                queried = await user_queries.get_user(backend, TEST_USER_ID, "*")
            except BackendError as e:
                logger.error("Error querying inserted user: %s", e.message)

            await backend.delete("users", {"id": TEST_USER_ID})
    except BackendError as e:
        return _failure(e)
    return {
        "success": True,
        "message": "Test completed",
        "insertedData": inserted,
        "queriedData": queried,
        "columns": list(queried.keys()) if queried else None,
    }


@router.get("/test-storage")
async def test_storage():
    """Upload, resolve and remove a test file in the post media bucket."""
    bucket = settings.post_media_bucket
    try:
        async with _service_backend() as backend:
            buckets = await backend.list_buckets()
            if not any(b.get("name") == bucket for b in buckets):
                return JSONResponse(
                    status_code=404,
                    content={"success": False, "error": f"Bucket '{bucket}' not found", "buckets": buckets},
                )

            file_name = f"test_{int(time.time() * 1000)}.txt"
            upload_path = await backend.upload(bucket, file_name, TEST_FILE_CONTENT, content_type="text/plain")
            public_url = await backend.get_public_url(bucket, file_name)

            try:
                await backend.remove(bucket, [file_name])
            except BackendError as e:
                logger.error("Error deleting test file: %s", e.message)
    except BackendError as e:
        return _failure(e)
    return {
        "success": True,
        "message": "Storage test passed",
        "buckets": buckets,
        "uploadData": {"path": upload_path},
        "publicUrl": public_url,
    }


@router.get("/test-storage-config")
async def test_storage_config():
    try:
        async with _service_backend() as backend:
            buckets = await backend.list_buckets()
            names = {b.get("name"): b for b in buckets}
            result = {}
            for key, name in (("postMediaBucket", settings.post_media_bucket), ("avatarsBucket", settings.avatars_bucket)):
                if name in names:
                    result[key] = {**names[name], "details": await backend.get_bucket(name)}
                else:
                    result[key] = None
    except BackendError as e:
        return _failure(e)
    return {"success": True, "buckets": buckets, **result}


@router.get("/test-signed-url")
async def test_signed_url(bucket: str | None = None, file: str = "test.txt"):
    bucket = bucket or settings.post_media_bucket
    logger.info("Testing signed URL for %s/%s", bucket, file)
    try:
        async with _service_backend() as backend:
            await backend.upload(
                bucket, file, b"This is a test file for signed URL verification",
                content_type="text/plain", upsert=True,
            )
            signed_url = await backend.create_signed_url(bucket, file, settings.signed_url_ttl_seconds)
            public_url = await backend.get_public_url(bucket, file)

            try:
                await backend.remove(bucket, [file])
            except BackendError as e:
                logger.error("Error deleting test file: %s", e.message)
    except BackendError as e:
        return _failure(e)
    return {"success": True, "signedUrl": signed_url, "publicUrl": public_url}


@router.get("/test-columns")
async def test_columns():
    """List the users columns, then query exactly those columns."""
    backend = await get_backend()
    try:
        columns = await schema_queries.list_columns(backend, "users")
    except BackendError as e:
        return _failure(e)

    if not columns:
        return {"success": True, "message": "No columns found in users table", "columns": []}

    column_names = ", ".join(c["column_name"] for c in columns)
    try:
        sample = await user_queries.sample_users(backend, column_names)
    except BackendError as e:
        return _failure(e, columns=columns, queryColumns=column_names)
    return {"success": True, "columns": columns, "sampleData": sample}


@router.get("/test-structure")
async def test_structure():
    """Infer the users columns from a sample row, falling back to an id-only query."""
    backend = await get_backend()
    try:
        sample = await user_queries.sample_users(backend, "*")
    except BackendError as e:
        logger.error("Error querying users table: %s", e.message)
        try:
            id_sample = await user_queries.sample_users(backend, "id")
        except BackendError as id_error:
            return _failure(e, idQueryError={"message": id_error.message, "code": id_error.code})
        return {"success": True, "message": "Successfully queried just id", "sampleData": id_sample, "columns": ["id"]}

    if sample:
        return {
            "success": True,
            "message": "Successfully queried users table",
            "sampleData": sample,
            "columns": list(sample[0].keys()),
        }
    return {"success": True, "message": "Users table exists but is empty", "columns": []}


@router.post("/migrate-users")
async def migrate_users():
    """Check the users table against the columns this app reads."""
    try:
        async with _service_backend() as backend:
            if not await schema_queries.table_exists(backend, "users"):
                return {
                    "success": False,
                    "message": "Users table does not exist. Please create it using Supabase dashboard.",
                }
            columns = await schema_queries.list_columns(backend, "users")
    except BackendError as e:
        return _failure(e)

    missing = schema_queries.missing_columns(columns)
    if missing:
        return {
            "success": False,
            "message": "Missing columns detected. Please update your database schema.",
            "missingColumns": missing,
            "currentColumns": columns,
        }
    return {"success": True, "message": "Users table schema is correct", "columns": columns}


@router.post("/migrate-schema")
async def migrate_schema():
    """SQL for adding the profile columns; it has to be run in the Supabase SQL editor."""
    return {
        "success": True,
        "message": "Run the following SQL in your Supabase SQL editor:",
        "sql": schema_queries.USERS_MIGRATION_SQL,
    }
