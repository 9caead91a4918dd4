"""KeepAlivePinger — periodic self-ping of ``/health`` for idle-sleeping hosts."""

from __future__ import annotations

import os
import random
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import httpx
import structlog

log = structlog.get_logger("packsafe.keepalive")

MONTHLY_LIMIT = 800
ACTIVE_HOURS = range(6, 23)  # UTC; 23:00-06:00 is skipped entirely
WEEKEND_SKIP_CHANCE = 0.7
DEFAULT_INTERVAL = 14 * 60.0  # seconds


@dataclass
class KeepAliveStats:
    total_pings: int = 0
    successful_pings: int = 0
    failed_pings: int = 0
    last_ping_time: datetime | None = None
    monthly_ping_count: int = 0
    last_reset_month: int = 0


class KeepAlivePinger:
    """Ping ``<external_url>/health`` within a monthly budget.

    Disabled (``enabled`` is False) unless an external URL is configured.
    Pings are skipped outside active hours, once the monthly limit is hit,
    and with a fixed probability on weekends.
    """

    def __init__(
        self,
        external_url: str | None,
        *,
        monthly_limit: int = MONTHLY_LIMIT,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.external_url = external_url.rstrip("/") if external_url else None
        self.monthly_limit = monthly_limit
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._transport = transport
        self.stats = KeepAliveStats(last_reset_month=self._clock().month)

    @classmethod
    def from_env(cls) -> KeepAlivePinger:
        return cls(os.environ.get("PACKSAFE_EXTERNAL_URL"))

    @property
    def enabled(self) -> bool:
        return self.external_url is not None

    def should_ping(self) -> bool:
        now = self._clock()
        if now.month != self.stats.last_reset_month:
            self.stats.monthly_ping_count = 0
            self.stats.last_reset_month = now.month
            log.info("keepalive.monthly_reset")

        if self.stats.monthly_ping_count >= self.monthly_limit:
            log.warning("keepalive.monthly_limit_reached", limit=self.monthly_limit)
            return False
        if now.hour not in ACTIVE_HOURS:
            return False
        if now.weekday() >= 5 and self._rng.random() < WEEKEND_SKIP_CHANCE:
            log.debug("keepalive.weekend_skip")
            return False
        return True

    async def run_once(self) -> int:
        """Ping if due. Returns 1 if a ping was attempted, else 0."""
        if not self.enabled or not self.should_ping():
            return 0

        url = f"{self.external_url}/health"
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                resp = await client.get(url, headers={"User-Agent": "PackSafe-KeepAlive/1.0"})
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            self.stats.failed_pings += 1
            log.warning("keepalive.ping_failed", url=url, error=str(exc))
        else:
            self.stats.successful_pings += 1
            self.stats.last_ping_time = self._clock()
            log.info("keepalive.ping_ok", status=resp.status_code)

        # failed attempts count against the budget too
        self.stats.monthly_ping_count += 1
        self.stats.total_pings += 1
        return 1

    def snapshot(self) -> dict:
        """JSON-ready stats for the health endpoint."""
        data = asdict(self.stats)
        if self.stats.last_ping_time is not None:
            data["last_ping_time"] = self.stats.last_ping_time.isoformat()
        data["enabled"] = self.enabled
        return data
