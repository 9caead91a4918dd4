"""Cache admin schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CacheStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_items: int
    total_size: int
    hit_count: int
    miss_count: int
    eviction_count: int
    hit_rate: float
    formatted_size: str
    max_items: int
    max_memory_mb: float


class CacheMessage(BaseModel):
    message: str
