"""Async GitHub global-advisory client with typed rate-limit outcome."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from packsafe.engines.dependency_analyzer.models import Vulnerability
from packsafe.engines.dependency_analyzer.versions import VersionRange

log = structlog.get_logger("packsafe.engine")

GITHUB_API_URL = "https://api.github.com"

_DEFAULT_DESCRIPTION = "Security vulnerability detected"


class AdvisoryStatus(enum.Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


@dataclass(frozen=True)
class AffectedRange:
    """One vulnerable range of one package inside an advisory."""

    package: str
    range: VersionRange


@dataclass(frozen=True)
class Advisory:
    id: str
    severity: str
    description: str
    references: list[str] = field(default_factory=list)
    affected: list[AffectedRange] = field(default_factory=list)

    def affects(self, package: str, version: str) -> bool:
        return any(a.package == package and a.range.contains(version) for a in self.affected)

    def to_vulnerability(self) -> Vulnerability:
        return Vulnerability(
            id=self.id,
            severity=self.severity,
            description=self.description,
            references=list(self.references),
        )


@dataclass(frozen=True)
class AdvisoryLookup:
    """Outcome of one advisory query. ``advisories`` is empty unless status is OK."""

    status: AdvisoryStatus
    advisories: list[Advisory] = field(default_factory=list)

    @property
    def rate_limited(self) -> bool:
        return self.status is AdvisoryStatus.RATE_LIMITED


def _parse_advisory(raw: dict[str, Any]) -> Advisory:
    affected: list[AffectedRange] = []
    for vuln in raw.get("vulnerabilities") or []:
        package = (vuln.get("package") or {}).get("name")
        if not package:
            continue
        range_text = vuln.get("vulnerable_version_range")
        try:
            if range_text:
                version_range = VersionRange.parse(range_text)
            else:
                version_range = VersionRange.below(vuln.get("first_patched_version"))
        except ValueError:
            log.debug("advisory.unsupported_range", package=package, range=range_text)
            continue
        affected.append(AffectedRange(package=package, range=version_range))

    references = [r for r in raw.get("references") or [] if isinstance(r, str)]
    if raw.get("html_url") and raw["html_url"] not in references:
        references.insert(0, raw["html_url"])

    return Advisory(
        id=raw.get("cve_id") or raw.get("ghsa_id") or "UNKNOWN",
        severity=raw.get("severity") or "medium",
        description=raw.get("summary") or _DEFAULT_DESCRIPTION,
        references=references,
        affected=affected,
    )


class GitHubAdvisoryClient:
    """Query ``GET /advisories`` for npm packages.

    No retries: a failure is reported as ``AdvisoryStatus.ERROR`` and an
    exhausted quota as ``AdvisoryStatus.RATE_LIMITED``, leaving the
    decision to the caller.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = GITHUB_API_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubAdvisoryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def lookup(self, package: str) -> AdvisoryLookup:
        """Return every reviewed npm advisory that names *package*."""
        try:
            resp = await self._client.get(
                "/advisories",
                params={"ecosystem": "npm", "affects": package, "per_page": 100},
            )
        except httpx.HTTPError as exc:
            log.warning("advisory.request_failed", package=package, error=str(exc))
            return AdvisoryLookup(AdvisoryStatus.ERROR)

        if resp.status_code in (403, 429) and self._is_rate_limited(resp):
            log.warning("advisory.rate_limited", package=package, status=resp.status_code)
            return AdvisoryLookup(AdvisoryStatus.RATE_LIMITED)

        if resp.status_code != 200:
            log.warning("advisory.bad_status", package=package, status=resp.status_code)
            return AdvisoryLookup(AdvisoryStatus.ERROR)

        try:
            payload = resp.json()
        except ValueError:
            log.warning("advisory.bad_payload", package=package)
            return AdvisoryLookup(AdvisoryStatus.ERROR)
        if not isinstance(payload, list):
            return AdvisoryLookup(AdvisoryStatus.ERROR)

        return AdvisoryLookup(
            AdvisoryStatus.OK,
            [_parse_advisory(item) for item in payload if isinstance(item, dict)],
        )

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403/429 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                if int(remaining) == 0:
                    return True
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for secondary rate limits
        if "Retry-After" in response.headers:
            return True
        try:
            message = str(response.json().get("message", ""))
        except (ValueError, AttributeError):
            message = response.text
        return "rate limit" in message.lower()
