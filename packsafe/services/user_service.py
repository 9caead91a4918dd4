"""UserService — per-user scan statistics."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.core.database import utcnow
from packsafe.dao.scan_result_dao import ScanResultDAO

ACTIVE_WINDOW = timedelta(days=30)
RECENT_PROJECTS_LIMIT = 5


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class UserService:
    def __init__(self, scan_result_dao: ScanResultDAO) -> None:
        self._scan_dao = scan_result_dao

    async def get_stats(
        self, session: AsyncSession, user_id: uuid.UUID, *, now: datetime | None = None
    ) -> dict:
        """Aggregate the user's scan history.

        ``projects_scanned`` counts distinct project names, ``total_dependencies``
        sums every scan's total, ``active_projects`` counts projects scanned
        within the last 30 days and ``recent_projects`` lists up to five
        projects by latest scan with that scan's dependency count.
        """
        now = now or utcnow()
        rows = await self._scan_dao.list_summaries(session, user_id)

        latest: dict[str, tuple[datetime, int]] = {}
        total_dependencies = 0
        for name, scan_date, summary in rows:
            total = int((summary or {}).get("total", 0))
            total_dependencies += total
            scan_date = _aware(scan_date)
            if name not in latest or scan_date > latest[name][0]:
                latest[name] = (scan_date, total)

        cutoff = now - ACTIVE_WINDOW
        ranked = sorted(latest.items(), key=lambda item: item[1][0], reverse=True)
        return {
            "projects_scanned": len(latest),
            "total_dependencies": total_dependencies,
            "scan_count": len(rows),
            "active_projects": sum(1 for scan_date, _ in latest.values() if scan_date >= cutoff),
            "recent_projects": [
                {"name": name, "last_scan": scan_date, "dependency_count": count}
                for name, (scan_date, count) in ranked[:RECENT_PROJECTS_LIMIT]
            ],
        }
