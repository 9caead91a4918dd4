"""Tests for UserService.get_stats."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from packsafe.dao.scan_result_dao import ScanResultDAO
from packsafe.dao.user_dao import UserDAO
from packsafe.services.user_service import UserService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _service(rows) -> UserService:
    dao = ScanResultDAO()
    dao.list_summaries = AsyncMock(return_value=rows)
    return UserService(dao)


class TestGetStats:
    async def test_aggregates(self):
        rows = [
            ("web", NOW - timedelta(days=1), {"total": 12}),
            ("api", NOW - timedelta(days=3), {"total": 5}),
            ("web", NOW - timedelta(days=10), {"total": 10}),
            ("legacy", NOW - timedelta(days=90), {"total": 40}),
        ]
        stats = await _service(rows).get_stats(AsyncMock(), None, now=NOW)

        assert stats["projects_scanned"] == 3
        assert stats["total_dependencies"] == 67
        assert stats["scan_count"] == 4
        assert stats["active_projects"] == 2
        assert [p["name"] for p in stats["recent_projects"]] == ["web", "api", "legacy"]
        assert stats["recent_projects"][0]["dependency_count"] == 12

    async def test_recent_limited_to_five(self):
        rows = [(f"p{i}", NOW - timedelta(hours=i), {"total": 1}) for i in range(8)]
        stats = await _service(rows).get_stats(AsyncMock(), None, now=NOW)
        assert len(stats["recent_projects"]) == 5
        assert stats["recent_projects"][0]["name"] == "p0"

    async def test_naive_dates_treated_as_utc(self):
        naive = (NOW - timedelta(days=1)).replace(tzinfo=None)
        stats = await _service([("web", naive, {"total": 2})]).get_stats(
            AsyncMock(), None, now=NOW
        )
        assert stats["active_projects"] == 1

    async def test_no_scans(self):
        stats = await _service([]).get_stats(AsyncMock(), None, now=NOW)
        assert stats == {
            "projects_scanned": 0,
            "total_dependencies": 0,
            "scan_count": 0,
            "active_projects": 0,
            "recent_projects": [],
        }

    async def test_against_database(self, session):
        user = await UserDAO().create(
            session, email="stats@example.com", name="S", password_hash="x"
        )
        dao = ScanResultDAO()
        for name, total in (("web", 3), ("web", 4), ("api", 2)):
            await dao.create(
                session,
                user_id=user.id,
                project_name=name,
                file_path="package.json",
                package_json={},
                summary={"total": total, "outdated": 0, "vulnerable": 0},
                dependencies={"outdated": {}, "vulnerable": {}},
            )

        stats = await UserService(dao).get_stats(session, user.id)

        assert stats["scan_count"] == 3
        assert stats["projects_scanned"] == 2
        assert stats["total_dependencies"] == 9
        assert stats["active_projects"] == 2
