"""Tests for ScanService and the DAOs it writes through (SQLite by default)."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from packsafe.dao.project_dao import ProjectDAO
from packsafe.dao.scan_result_dao import ScanResultDAO
from packsafe.dao.user_dao import UserDAO
from packsafe.engines.dependency_analyzer import AnalysisResult, ResolvedDependency
from packsafe.services import NotFoundError, ValidationError
from packsafe.services.scan_service import DEFAULT_FILE_PATH, DEFAULT_PROJECT_NAME, ScanService


class StubAnalyzer:
    """Marks every dependency whose name is in ``outdated`` as outdated."""

    def __init__(self, outdated: set[str] | None = None, *, rate_limited: bool = False) -> None:
        self.outdated = outdated or set()
        self.rate_limited = rate_limited
        self.calls: list[dict[str, str]] = []

    async def analyze(self, dependencies):
        self.calls.append(dict(dependencies))
        deps = []
        for name, declared in dependencies.items():
            dep = ResolvedDependency(name=name, declared_range=declared, cleaned_version="1.0.0")
            if name in self.outdated:
                dep.latest_version = "2.0.0"
                dep.is_outdated = True
                dep.update_severity = "high"
            deps.append(dep)
        return AnalysisResult(dependencies=deps, rate_limited=self.rate_limited)


async def _user(session, email: str = "scan@example.com"):
    return await UserDAO().create(session, email=email, name="Scanner", password_hash="x")


def _service(analyzer: StubAnalyzer) -> ScanService:
    return ScanService(ScanResultDAO(), ProjectDAO(), analyzer)


MANIFEST = {
    "name": "web",
    "dependencies": {"react": "^17.0.2", "axios": "^1.3.0"},
    "devDependencies": {"jest": "^29.0.0"},
}


# ── scan_package_json ─────────────────────────────────────────────────────


class TestScanPackageJson:
    async def test_persists_scan_and_rollup(self, session):
        user = await _user(session)
        svc = _service(StubAnalyzer({"react"}))

        outcome = await svc.scan_package_json(
            session, user.id, MANIFEST, project_name="web", file_path="web/package.json"
        )

        assert outcome.scan.summary == {"total": 3, "outdated": 1, "vulnerable": 0}
        assert outcome.scan.dependencies["outdated"]["react"]["latest"] == "2.0.0"
        assert outcome.scan.package_json == MANIFEST
        assert outcome.project.name == "web"
        assert outcome.project.package_count == 3
        assert outcome.project.outdated_count == 1
        assert outcome.project.last_scanned is not None
        assert outcome.rate_limited is False

    async def test_merges_dev_dependencies(self, session):
        user = await _user(session)
        analyzer = StubAnalyzer()
        await _service(analyzer).scan_package_json(session, user.id, MANIFEST)
        assert analyzer.calls == [{"react": "^17.0.2", "axios": "^1.3.0", "jest": "^29.0.0"}]

    async def test_two_scans_two_records_latest_rollup(self, session):
        user = await _user(session)
        first = await _service(StubAnalyzer({"react", "axios"})).scan_package_json(
            session, user.id, MANIFEST, project_name="web"
        )
        second = await _service(StubAnalyzer()).scan_package_json(
            session, user.id, MANIFEST, project_name="web"
        )

        assert first.scan.id != second.scan.id
        assert await ScanResultDAO().count_by_user(session, user.id) == 2
        projects = await ProjectDAO().list_by_user(session, user.id)
        assert len(projects) == 1
        assert projects[0].id == first.project.id
        assert projects[0].outdated_count == 0

    async def test_defaults(self, session):
        user = await _user(session)
        outcome = await _service(StubAnalyzer()).scan_package_json(
            session, user.id, {"dependencies": {}}, project_name="  "
        )
        assert outcome.scan.project_name == DEFAULT_PROJECT_NAME
        assert outcome.scan.file_path == DEFAULT_FILE_PATH
        assert outcome.scan.summary == {"total": 0, "outdated": 0, "vulnerable": 0}

    async def test_rate_limited_flag_stored(self, session):
        user = await _user(session)
        outcome = await _service(StubAnalyzer(rate_limited=True)).scan_package_json(
            session, user.id, MANIFEST
        )
        assert outcome.rate_limited is True
        assert outcome.scan.rate_limited is True

    async def test_malformed_manifest(self, session):
        user = await _user(session)
        with pytest.raises(ValidationError):
            await _service(StubAnalyzer()).scan_package_json(
                session, user.id, {"dependencies": "react"}
            )

    async def test_analysis_finishes_before_first_write(self):
        events: list[str] = []

        class RecordingAnalyzer(StubAnalyzer):
            async def analyze(self, dependencies):
                events.append("analyze")
                return await super().analyze(dependencies)

        def create(*args, **kwargs):
            events.append("create")
            return SimpleNamespace(id=uuid.uuid4())

        def upsert_rollup(*args, **kwargs):
            events.append("rollup")

        scan_dao = AsyncMock()
        scan_dao.create.side_effect = create
        project_dao = AsyncMock()
        project_dao.upsert_rollup.side_effect = upsert_rollup
        session = AsyncMock()

        svc = ScanService(scan_dao, project_dao, RecordingAnalyzer())
        await svc.scan_package_json(session, uuid.uuid4(), MANIFEST)

        assert events == ["analyze", "create", "rollup"]
        assert session.mock_calls == []


# ── history / get / delete ────────────────────────────────────────────────


class TestHistory:
    async def test_history_paginates_newest_first(self, session):
        user = await _user(session)
        svc = _service(StubAnalyzer())
        ids = []
        for i in range(3):
            outcome = await svc.scan_package_json(session, user.id, MANIFEST, project_name=f"p{i}")
            ids.append(outcome.scan.id)

        page1 = await svc.history(session, user.id, page_size=2)
        assert page1["total"] == 3
        assert page1["has_more"] is True
        assert [s.id for s in page1["data"]] == [ids[2], ids[1]]

        page2 = await svc.history(session, user.id, cursor=page1["next_cursor"], page_size=2)
        assert [s.id for s in page2["data"]] == [ids[0]]
        assert page2["has_more"] is False

    async def test_history_project_filter(self, session):
        user = await _user(session)
        svc = _service(StubAnalyzer())
        await svc.scan_package_json(session, user.id, MANIFEST, project_name="a")
        await svc.scan_package_json(session, user.id, MANIFEST, project_name="b")

        result = await svc.history(session, user.id, project_name="a")
        assert result["total"] == 1
        assert result["data"][0].project_name == "a"

    async def test_get_other_users_scan(self, session):
        alice = await _user(session, "alice@example.com")
        bob = await _user(session, "bob@example.com")
        svc = _service(StubAnalyzer())
        outcome = await svc.scan_package_json(session, alice.id, MANIFEST)

        assert (await svc.get(session, alice.id, outcome.scan.id)).id == outcome.scan.id
        with pytest.raises(NotFoundError):
            await svc.get(session, bob.id, outcome.scan.id)

    async def test_delete(self, session):
        user = await _user(session)
        svc = _service(StubAnalyzer())
        outcome = await svc.scan_package_json(session, user.id, MANIFEST)

        await svc.delete(session, user.id, outcome.scan.id)

        with pytest.raises(NotFoundError):
            await svc.get(session, user.id, outcome.scan.id)

    async def test_delete_missing(self, session):
        user = await _user(session)
        with pytest.raises(NotFoundError, match="scan result not found"):
            await _service(StubAnalyzer()).delete(session, user.id, uuid.uuid4())
