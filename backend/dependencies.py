"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException

from backend.cache import Cache, InMemoryCache, RedisCache
from backend.config import get_settings
from backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from backend.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from backend.storage import CosStorageClient, InMemoryStorageClient, StorageClient
from models import api_config
from models.gateway import HttpGateway, InMemoryGateway, LlmGateway
from models.gemini import GeminiGateway
from models.limiter import AdaptiveLimiter, InMemoryQuotaStore, QuotaStore, RedisQuotaStore
from models.services import AiServices
from models.tracing import Tracer

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_cache: Cache | None = None
_quota_store: QuotaStore | None = None
_ai_services: AiServices | None = None
_fallback_gateway: InMemoryGateway | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so records persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_cache() -> Cache:
    global _cache
    if _cache:
        return _cache

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _cache = RedisCache(settings.redis_url, default_ttl_seconds=settings.cache_ttl_seconds)
    else:
        _cache = InMemoryCache(
            max_entries=settings.cache_max_entries,
            default_ttl_seconds=settings.cache_ttl_seconds,
        )
    return _cache


def get_quota_store() -> QuotaStore:
    global _quota_store
    if _quota_store:
        return _quota_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _quota_store = RedisQuotaStore(settings.redis_url)
    else:
        _quota_store = InMemoryQuotaStore()
    return _quota_store


def get_fallback_gateway() -> InMemoryGateway:
    """Scripted gateway used for every provider that has no credentials."""
    global _fallback_gateway
    if _fallback_gateway is None:
        _fallback_gateway = InMemoryGateway()
    return _fallback_gateway


def _gateway_for(url: Optional[str], api_key: Optional[str], name: str) -> LlmGateway:
    settings = get_settings()
    if settings.use_in_memory_backends:
        return get_fallback_gateway()
    if url and api_key:
        return HttpGateway(url, api_key, timeout=settings.gateway_timeout_seconds, name=name)
    if settings.gemini_api_key:
        return GeminiGateway(settings.gemini_api_key)
    return get_fallback_gateway()


def get_ai_services() -> AiServices:
    """
    One limiter per provider. Providers without credentials fall back to
    Gemini, then to the in-memory gateway.
    """
    global _ai_services
    if _ai_services:
        return _ai_services

    settings = get_settings()
    store = get_quota_store()
    _ai_services = AiServices(
        speed=AdaptiveLimiter(
            api_config.SPEED_PROVIDER,
            _gateway_for(settings.groq_url, settings.groq_api_key, api_config.SPEED_PROVIDER),
            store,
        ),
        reasoning=AdaptiveLimiter(
            api_config.REASONING_PROVIDER,
            _gateway_for(
                settings.deepseek_url, settings.deepseek_api_key, api_config.REASONING_PROVIDER
            ),
            store,
        ),
        general=AdaptiveLimiter(
            api_config.GENERAL_PROVIDER,
            _gateway_for(
                settings.ai_gateway_url, settings.ai_gateway_api_key, api_config.GENERAL_PROVIDER
            ),
            store,
        ),
        tracer=Tracer(
            api_key=None if settings.use_in_memory_backends else settings.langsmith_api_key,
            project_name=settings.langsmith_project,
            endpoint=settings.langsmith_endpoint,
        ),
    )
    return _ai_services


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """The identity proxy in front of the service sets X-User-Id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


def require_admin(user_id: str = Depends(get_current_user_id)) -> str:
    if user_id not in get_settings().admin_ids:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_id
