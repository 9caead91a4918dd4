"""NpmSearchService — registry search with download counts, memoized in the cache."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx
import structlog

from packsafe.core.cache import InMemoryCache
from packsafe.engines.dependency_analyzer.registry_client import NpmRegistryClient

log = structlog.get_logger("packsafe.engine")

SEARCH_TTL = 300.0  # seconds
_NO_DESCRIPTION = "No description available"


@dataclass
class NpmPackage:
    name: str
    version: str
    description: str = _NO_DESCRIPTION
    keywords: list[str] = field(default_factory=list)
    author: dict[str, Any] | None = None
    repository: dict[str, Any] | None = None
    homepage: str | None = None
    license: str = "Unknown"
    weekly_downloads: int = 0
    monthly_downloads: int = 0
    last_publish: str | None = None


@dataclass
class SearchResult:
    packages: list[NpmPackage]
    total: int
    has_more: bool

    @classmethod
    def empty(cls) -> SearchResult:
        return cls(packages=[], total=0, has_more=False)


def _as_author(value: Any) -> dict[str, Any] | None:
    if isinstance(value, str):
        return {"name": value}
    return value if isinstance(value, dict) else None


def _as_repository(value: Any) -> dict[str, Any] | None:
    if isinstance(value, str):
        return {"type": "git", "url": value}
    return value if isinstance(value, dict) else None


def _as_license(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("type")
    return value if isinstance(value, str) and value else "Unknown"


class NpmSearchService:
    """Search npm and describe packages; search pages are cached for five minutes."""

    def __init__(
        self,
        registry: NpmRegistryClient,
        cache: InMemoryCache,
        *,
        ttl_seconds: float = SEARCH_TTL,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._ttl = ttl_seconds

    async def search(self, query: str, *, size: int = 20, offset: int = 0) -> SearchResult:
        """Search the registry. An empty query returns an empty result without a request.

        Raises ``httpx.HTTPError`` if the registry search itself fails.
        """
        query = query.strip()
        if not query:
            return SearchResult.empty()

        key = "npm-search:" + json.dumps([query, size, offset])
        cached = self._cache.get(key)
        if cached is not None:
            return self._from_cache(cached)

        log.info("search.query", query=query, size=size, offset=offset)
        raw = await self._registry.search(query, size=size, offset=offset)
        objects = raw.get("objects") or []
        packages = await asyncio.gather(
            *(self._package_from_search(obj.get("package") or {}) for obj in objects)
        )
        total = int(raw.get("total", len(packages)))
        result = SearchResult(
            packages=list(packages),
            total=total,
            has_more=total > offset + len(packages),
        )
        self._cache.set(key, asdict(result), ttl_seconds=self._ttl)
        return result

    async def get_details(self, name: str) -> NpmPackage | None:
        """Latest-version metadata for *name*, or None if the package is unknown."""
        try:
            doc = await self._registry.get_package(name)
        except httpx.HTTPError as exc:
            log.warning("search.details_failed", package=name, error=str(exc))
            return None
        if doc is None:
            return None

        latest = (doc.get("dist-tags") or {}).get("latest")
        version_data = (doc.get("versions") or {}).get(latest) or {}
        weekly, monthly = await self._downloads(name)
        return NpmPackage(
            name=doc.get("name", name),
            version=latest or "",
            description=version_data.get("description") or _NO_DESCRIPTION,
            keywords=list(version_data.get("keywords") or []),
            author=_as_author(version_data.get("author")),
            repository=_as_repository(version_data.get("repository")),
            homepage=version_data.get("homepage"),
            license=_as_license(version_data.get("license")),
            weekly_downloads=weekly,
            monthly_downloads=monthly,
            last_publish=(doc.get("time") or {}).get(latest),
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _downloads(self, name: str) -> tuple[int, int]:
        weekly, monthly = await asyncio.gather(
            self._registry.get_downloads(name, "last-week"),
            self._registry.get_downloads(name, "last-month"),
        )
        return weekly, monthly

    async def _package_from_search(self, pkg: dict[str, Any]) -> NpmPackage:
        name = pkg.get("name", "")
        weekly, monthly = await self._downloads(name)
        return NpmPackage(
            name=name,
            version=pkg.get("version", ""),
            description=pkg.get("description") or _NO_DESCRIPTION,
            keywords=list(pkg.get("keywords") or []),
            author=_as_author(pkg.get("author")),
            repository=_as_repository((pkg.get("links") or {}).get("repository")),
            homepage=(pkg.get("links") or {}).get("homepage"),
            license=_as_license(pkg.get("license")),
            weekly_downloads=weekly,
            monthly_downloads=monthly,
            last_publish=pkg.get("date"),
        )

    @staticmethod
    def _from_cache(cached: dict[str, Any]) -> SearchResult:
        return SearchResult(
            packages=[NpmPackage(**p) for p in cached["packages"]],
            total=cached["total"],
            has_more=cached["has_more"],
        )
