"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from okrflow.config import get_settings
from okrflow.db import DbClient
from okrflow.queue import ExportQueue, InMemoryExportQueue, RedisExportQueue
from okrflow.ratelimit import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from okrflow.storage import InMemoryStorageClient, S3StorageClient, StorageClient

IN_MEMORY_DATABASE_URL = "sqlite+pysqlite:///:memory:"

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: ExportQueue | None = None
_rate_limiter: RateLimiter | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client. Without DATABASE_URL (or with in-memory
    backends enabled) this is a process-local SQLite database.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = DbClient(IN_MEMORY_DATABASE_URL)
    else:
        _db_client = DbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_queue_client() -> ExportQueue:
    """
    Return a singleton queue client for dispatching export jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisExportQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryExportQueue()
    return _queue_client


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter:
        return _rate_limiter

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _rate_limiter = RedisRateLimiter(url=settings.redis_url)
    else:
        _rate_limiter = InMemoryRateLimiter()
    return _rate_limiter
