"""npm package search schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class PackageInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    version: str
    description: str
    keywords: list[str]
    author: dict[str, Any] | None
    repository: dict[str, Any] | None
    homepage: str | None
    license: str
    weekly_downloads: int
    monthly_downloads: int
    last_publish: str | None


class PackageSearchResponse(BaseModel):
    packages: list[PackageInfo]
    total: int
    has_more: bool
