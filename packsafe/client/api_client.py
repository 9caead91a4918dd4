"""PackSafeClient — async HTTP client for the PackSafe backend."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from packsafe.client import BackendError, ConfigurationError
from packsafe.client.config import ClientConfig
from packsafe.client.report import ScanReport

log = structlog.get_logger("packsafe.client")


class PackSafeClient:
    """Authenticates every request with the ``X-API-Key`` header."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.api_key:
            raise ConfigurationError(
                "API key not configured; set PACKSAFE_API_KEY or pass --api-key"
            )
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            headers={"X-API-Key": config.api_key, "Accept": "application/json"},
            timeout=config.timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> PackSafeClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def scan_package_json(
        self, package_json: dict[str, Any], *, project_name: str, file_path: str
    ) -> ScanReport:
        payload = await self._request(
            "POST",
            "/api/scan/package-json",
            json={
                "packageJson": package_json,
                "projectName": project_name,
                "filePath": file_path,
            },
        )
        return ScanReport.from_response(payload)

    async def project_status(self, name: str) -> dict[str, int]:
        return await self._request("GET", f"/api/projects/{name}/status")

    async def search_packages(self, query: str, *, size: int = 20) -> dict[str, Any]:
        return await self._request("GET", "/api/packages/search", params={"q": query, "size": size})

    # ── internal ───────────────────────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("backend.unreachable", url=url, error=str(exc))
            raise BackendError(f"cannot reach PackSafe server: {exc}") from exc

        if resp.is_success:
            return resp.json()

        try:
            detail = resp.json().get("detail") or resp.reason_phrase
        except (ValueError, AttributeError):
            detail = resp.text or resp.reason_phrase
        log.warning("backend.error", url=url, status=resp.status_code, detail=detail)
        raise BackendError(str(detail), status_code=resp.status_code)
