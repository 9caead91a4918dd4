"""Scheduler — periodic maintenance jobs run for the lifetime of the API process."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from packsafe.core.keepalive import DEFAULT_INTERVAL, KeepAlivePinger

logger = structlog.get_logger(__name__)

Job = Callable[[], Awaitable[int]]


class MaintenanceLoop:
    """Run *job* every *interval* seconds.

    A job returns how much work it did; failures are logged and counted and
    never stop the loop.
    """

    def __init__(self, name: str, job: Job, interval: float) -> None:
        self.name = name
        self.job = job
        self.interval = interval
        self.runs = 0
        self.failures = 0
        self.last_run: datetime | None = None

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    async def run_once(self) -> None:
        try:
            done = await self.job()
        except Exception:
            self.failures += 1
            logger.exception("maintenance.failed", loop=self.name)
        else:
            if done:
                logger.info("maintenance.ran", loop=self.name, done=done)
        finally:
            self.runs += 1
            self.last_run = datetime.now(timezone.utc)

    def snapshot(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "interval": self.interval,
            "runs": self.runs,
            "failures": self.failures,
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }


class Scheduler:
    """Owns one asyncio task per :class:`MaintenanceLoop`."""

    def __init__(self, loops: list[MaintenanceLoop]) -> None:
        self.loops = loops
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def loop_names(self) -> list[str]:
        return [loop.name for loop in self.loops]

    async def start(self) -> None:
        self._tasks = [
            asyncio.create_task(loop.run_forever(), name=f"maintenance-{loop.name}")
            for loop in self.loops
        ]
        logger.info("scheduler.started", loops=self.loop_names)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")

    def snapshot(self) -> list[dict[str, Any]]:
        return [loop.snapshot() for loop in self.loops]


def create_scheduler(pinger: KeepAlivePinger) -> Scheduler:
    """Build the scheduler; the keep-alive loop exists only when the pinger is enabled.

    Cache expiry is not scheduled here: :class:`InMemoryCache` owns its
    cleanup task through ``start()`` / ``stop()``.
    """
    loops: list[MaintenanceLoop] = []
    if pinger.enabled:
        interval = float(os.environ.get("PACKSAFE_KEEPALIVE_INTERVAL", DEFAULT_INTERVAL))
        loops.append(MaintenanceLoop("keep_alive", pinger.run_once, interval))
    return Scheduler(loops)
