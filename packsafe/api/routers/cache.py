"""Cache router — inspect and flush the in-memory cache (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from packsafe.api.deps import get_cache, require_admin
from packsafe.api.schemas.cache import CacheMessage, CacheStatsResponse
from packsafe.core.cache import InMemoryCache
from packsafe.models.user import User
from packsafe.services import NotFoundError

router = APIRouter()


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(
    _admin: User = Depends(require_admin),
    cache: InMemoryCache = Depends(get_cache),
) -> CacheStatsResponse:
    return CacheStatsResponse.model_validate(cache.stats())


@router.post("/flush", response_model=CacheMessage)
async def flush_cache(
    _admin: User = Depends(require_admin),
    cache: InMemoryCache = Depends(get_cache),
) -> CacheMessage:
    cache.flush_all()
    return CacheMessage(message="cache flushed")


@router.delete("/{key}", response_model=CacheMessage)
async def delete_cache_key(
    key: str,
    _admin: User = Depends(require_admin),
    cache: InMemoryCache = Depends(get_cache),
) -> CacheMessage:
    if not cache.delete(key):
        raise NotFoundError(f"cache key not found: {key}")
    return CacheMessage(message=f"cache key deleted: {key}")
