"""Async npm registry client — latest versions, package metadata, search, downloads."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

log = structlog.get_logger("packsafe.engine")

REGISTRY_URL = "https://registry.npmjs.org"
DOWNLOADS_URL = "https://api.npmjs.org"


def _package_path(name: str) -> str:
    # Scoped packages keep the leading "@" and escape the slash.
    return quote(name, safe="@")


class NpmRegistryClient:
    """Thin async wrapper around the public npm registry.

    Lookup methods used by the analyzer degrade to None on any failure;
    the search helpers raise ``httpx.HTTPError`` so callers can surface it.
    """

    def __init__(
        self,
        *,
        registry_url: str = REGISTRY_URL,
        downloads_url: str = DOWNLOADS_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=registry_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._downloads = httpx.AsyncClient(
            base_url=downloads_url, timeout=timeout, transport=transport
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()
        await self._downloads.aclose()

    async def __aenter__(self) -> NpmRegistryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── analyzer lookups ───────────────────────────────────────────────────

    async def get_latest_version(self, name: str) -> str | None:
        """Return ``dist-tags.latest`` for *name*, or None on any failure."""
        try:
            resp = await self._client.get(f"/{_package_path(name)}")
            resp.raise_for_status()
            latest = resp.json().get("dist-tags", {}).get("latest")
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("registry.lookup_failed", package=name, error=str(exc))
            return None
        return latest if isinstance(latest, str) else None

    # ── search / details ───────────────────────────────────────────────────

    async def search(self, text: str, *, size: int = 20, offset: int = 0) -> dict[str, Any]:
        """Raw ``/-/v1/search`` response weighted toward popular packages."""
        resp = await self._client.get(
            "/-/v1/search",
            params={
                "text": text,
                "size": size,
                "from": offset,
                "quality": 0.65,
                "popularity": 0.98,
                "maintenance": 0.5,
            },
        )
        resp.raise_for_status()
        return resp.json()

    async def get_package(self, name: str) -> dict[str, Any] | None:
        """Full registry document for *name*, or None if it does not exist."""
        resp = await self._client.get(f"/{_package_path(name)}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def get_downloads(self, name: str, period: str = "last-week") -> int:
        """Download count for *period* (``last-week`` / ``last-month``); 0 on failure."""
        try:
            resp = await self._downloads.get(f"/downloads/point/{period}/{name}")
            resp.raise_for_status()
            return int(resp.json().get("downloads", 0))
        except (httpx.HTTPError, ValueError) as exc:
            log.debug("registry.downloads_failed", package=name, period=period, error=str(exc))
            return 0
