"""Tests for the workspace client — discovery, offline scan, reports, orchestration, CLI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from packsafe.client import BackendError, ConfigurationError, PackageManagerError, ScanCancelled
from packsafe.client.api_client import PackSafeClient
from packsafe.client.cli import main
from packsafe.client.config import ClientConfig
from packsafe.client.local_scanner import OFFLINE_MESSAGE, scan_locally
from packsafe.client.orchestrator import ScanMode, ScanOrchestrator
from packsafe.client.package_manager import (
    PackageManager,
    detect_package_manager,
    install_command,
    run_command,
    uninstall_command,
    update_command,
)
from packsafe.client.report import (
    OkRow,
    OutdatedRow,
    ScanReport,
    VulnerableRow,
    build_rows,
    notification_for,
    render_row,
)
from packsafe.client.workspace import find_manifests, load_manifest, project_name_for

MANIFEST = {
    "name": "web",
    "dependencies": {"axios": "^1.3.0", "express": "~4.17.1", "left-pad": "1.3.0"},
    "devDependencies": {"typescript": "4.5.5"},
}


def _write(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "shop"
    _write(ws / "package.json", MANIFEST)
    _write(ws / "packages" / "ui" / "package.json", {"dependencies": {"react": "17.0.2"}})
    _write(ws / "node_modules" / "axios" / "package.json", {"name": "axios"})
    _write(ws / "dist" / "package.json", {"name": "built"})
    return ws


# ── workspace ─────────────────────────────────────────────────────────────


class TestWorkspace:
    def test_find_skips_excluded_dirs(self, workspace):
        found = find_manifests(workspace)
        assert found == sorted(
            [workspace / "package.json", workspace / "packages" / "ui" / "package.json"]
        )

    def test_no_workspace(self):
        with pytest.raises(ConfigurationError, match="No workspace folder is open"):
            find_manifests(None)

    def test_no_manifest(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No package.json files found"):
            find_manifests(tmp_path)

    def test_project_names(self, workspace):
        assert project_name_for(workspace, workspace / "package.json") == "shop"
        nested = workspace / "packages" / "ui" / "package.json"
        assert project_name_for(workspace, nested) == "shop/packages/ui"

    def test_load_manifest_bad_json(self, tmp_path):
        bad = tmp_path / "package.json"
        bad.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_manifest(bad)


# ── local scanner ─────────────────────────────────────────────────────────


class TestLocalScanner:
    def test_known_outdated(self):
        report = scan_locally(MANIFEST, project_name="web", file_path="package.json")

        assert report.total == 4
        assert report.offline is True
        assert report.vulnerable == {}
        assert report.message == OFFLINE_MESSAGE
        assert report.outdated == {
            "axios": {"current": "1.3.0", "latest": "1.6.7", "severity": "medium"},
            "express": {"current": "4.17.1", "latest": "4.18.2", "severity": "medium"},
            "typescript": {"current": "4.5.5", "latest": "5.3.3", "severity": "low"},
        }

    def test_exact_match_only(self):
        report = scan_locally(
            {"dependencies": {"axios": "^1.3.1"}}, project_name="x", file_path="package.json"
        )
        assert report.outdated == {}


# ── report ────────────────────────────────────────────────────────────────


class TestReport:
    def test_from_response(self):
        report = ScanReport.from_response(
            {
                "success": True,
                "scan_id": "abc",
                "summary": {"total": 3, "outdated": 1, "vulnerable": 0},
                "details": {
                    "project_name": "web",
                    "file_path": "package.json",
                    "dependencies": {
                        "outdated": {"a": {"current": "1.0.0", "latest": "2.0.0", "severity": "high"}},
                        "vulnerable": {},
                    },
                },
                "warnings": {"rate_limited": True},
            }
        )
        assert report.total == 3
        assert report.outdated_count == 1
        assert report.rate_limited is True
        assert report.scan_id == "abc"

    def test_build_rows(self):
        report = ScanReport(
            project_name="web",
            file_path="package.json",
            total=4,
            outdated={"axios": {"current": "1.3.0", "latest": "1.6.7", "severity": "medium"}},
            vulnerable={
                "express": {
                    "current": "4.17.1",
                    "vulnerability": {"id": "CVE-1", "severity": "high", "description": "bad"},
                }
            },
        )

        rows = {row.name: row for row in build_rows(MANIFEST, report)}

        assert isinstance(rows["axios"], OutdatedRow)
        assert isinstance(rows["express"], VulnerableRow)
        assert isinstance(rows["left-pad"], OkRow)
        assert rows["typescript"].dev is True
        assert "CVE-1" in render_row(rows["express"])
        assert "1.6.7" in render_row(rows["axios"])

    def test_render_unknown_row(self):
        with pytest.raises(TypeError):
            render_row(object())

    @pytest.mark.parametrize(
        "outdated, vulnerable, level",
        [(0, 1, "error"), (3, 0, "warning"), (2, 0, "info")],
    )
    def test_notification_level(self, outdated, vulnerable, level):
        report = ScanReport(
            project_name="web",
            file_path="package.json",
            total=5,
            outdated={f"o{i}": {} for i in range(outdated)},
            vulnerable={f"v{i}": {} for i in range(vulnerable)},
        )
        assert notification_for(report)[0] == level


# ── package manager ───────────────────────────────────────────────────────


class TestPackageManager:
    def test_detect(self, tmp_path):
        assert detect_package_manager(tmp_path) is PackageManager.NPM
        (tmp_path / "pnpm-lock.yaml").touch()
        assert detect_package_manager(tmp_path) is PackageManager.PNPM
        (tmp_path / "yarn.lock").touch()
        assert detect_package_manager(tmp_path) is PackageManager.YARN

    def test_install_commands(self):
        assert install_command(PackageManager.NPM, "lodash") == ["npm", "install", "lodash"]
        assert install_command(PackageManager.NPM, "jest", dev=True) == [
            "npm", "install", "jest", "--save-dev",
        ]
        assert install_command(PackageManager.YARN, "react", version="18.2.0", dev=True) == [
            "yarn", "add", "react@18.2.0", "--dev",
        ]
        assert install_command(PackageManager.PNPM, "vite") == ["pnpm", "add", "vite"]

    def test_uninstall_commands(self):
        assert uninstall_command(PackageManager.NPM, "lodash") == ["npm", "uninstall", "lodash"]
        assert uninstall_command(PackageManager.YARN, "lodash") == ["yarn", "remove", "lodash"]
        assert uninstall_command(PackageManager.PNPM, "lodash") == ["pnpm", "remove", "lodash"]

    def test_update_commands(self):
        assert update_command(PackageManager.NPM, "lodash") == ["npm", "update", "lodash"]
        assert update_command(PackageManager.YARN, "lodash") == ["yarn", "upgrade", "lodash"]
        assert update_command(PackageManager.PNPM, "lodash", version="4.17.21") == [
            "pnpm", "add", "lodash@4.17.21",
        ]

    async def test_run_command_failure(self, tmp_path):
        with pytest.raises(PackageManagerError, match="exit 3"):
            await run_command(["sh", "-c", "echo oops >&2; exit 3"], tmp_path)

    async def test_run_command_stderr_is_not_failure(self, tmp_path):
        out = await run_command(["sh", "-c", "echo done; echo 'npm WARN deprecated' >&2"], tmp_path)
        assert out.strip() == "done"

    async def test_run_command_missing_binary(self, tmp_path):
        with pytest.raises(PackageManagerError, match="not installed"):
            await run_command(["definitely-not-a-package-manager"], tmp_path)


# ── api client ────────────────────────────────────────────────────────────


SCAN_RESPONSE = {
    "success": True,
    "scan_id": "5f0c6c1e-0000-4000-8000-000000000000",
    "summary": {"total": 4, "outdated": 0, "vulnerable": 0},
    "details": {
        "project_name": "shop",
        "file_path": "package.json",
        "scan_date": "2026-01-15T12:00:00Z",
        "dependencies": {"outdated": {}, "vulnerable": {}},
    },
}


class TestApiClient:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="API key not configured"):
            PackSafeClient(ClientConfig(api_key=None))

    async def test_scan_request(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=SCAN_RESPONSE)

        config = ClientConfig(server_url="http://packsafe.test", api_key="ps_key")
        async with PackSafeClient(config, transport=httpx.MockTransport(handler)) as client:
            report = await client.scan_package_json(
                MANIFEST, project_name="shop", file_path="package.json"
            )

        assert report.total == 4
        assert seen[0].url.path == "/api/scan/package-json"
        assert seen[0].headers["X-API-Key"] == "ps_key"
        assert json.loads(seen[0].content) == {
            "packageJson": MANIFEST,
            "projectName": "shop",
            "filePath": "package.json",
        }

    async def test_backend_error(self):
        def handler(request):
            return httpx.Response(401, json={"detail": "invalid api key"})

        config = ClientConfig(api_key="ps_key")
        async with PackSafeClient(config, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(BackendError, match="invalid api key") as exc_info:
                await client.project_status("shop")

        assert exc_info.value.status_code == 401
        assert exc_info.value.rate_limited is False

    def test_rate_limited_error(self):
        assert BackendError("too many", status_code=429).rate_limited is True
        assert BackendError("GitHub rate limit hit", status_code=502).rate_limited is True


# ── orchestrator ──────────────────────────────────────────────────────────


class FakeClient:
    def __init__(self, reports: dict[str, ScanReport] | None = None, error: Exception | None = None):
        self.reports = reports or {}
        self.error = error
        self.calls: list[str] = []
        self.closed = False

    async def scan_package_json(self, package_json, *, project_name, file_path):
        self.calls.append(project_name)
        if self.error is not None:
            raise self.error
        return self.reports.get(
            project_name,
            ScanReport(project_name=project_name, file_path=file_path, total=len(package_json)),
        )

    async def close(self):
        self.closed = True


def _orchestrator(workspace, client=None, **kwargs) -> ScanOrchestrator:
    return ScanOrchestrator(
        workspace,
        config=ClientConfig(api_key="ps_key"),
        client_factory=lambda config: client,
        **kwargs,
    )


class TestOrchestrator:
    async def test_scan_all_online(self, workspace):
        client = FakeClient()
        results = await _orchestrator(workspace, client).scan()

        assert client.calls == ["shop", "shop/packages/ui"]
        assert [r.report.file_path for r in results] == ["package.json", "packages/ui/package.json"]
        assert client.closed is True

    async def test_select_one(self, workspace):
        client = FakeClient()
        nested = workspace / "packages" / "ui" / "package.json"

        results = await _orchestrator(workspace, client).scan(select=lambda found: nested)

        assert client.calls == ["shop/packages/ui"]
        assert len(results) == 1

    async def test_select_none_scans_all(self, workspace):
        client = FakeClient()
        await _orchestrator(workspace, client).scan(select=lambda found: None)
        assert len(client.calls) == 2

    async def test_offline_never_builds_client(self, workspace):
        def factory(config):
            raise AssertionError("no client in offline mode")

        orchestrator = ScanOrchestrator(
            workspace, config=ClientConfig(), mode=ScanMode.OFFLINE, client_factory=factory
        )
        results = await orchestrator.scan()

        assert all(r.report.offline for r in results)
        assert results[0].report.outdated_count == 3

    async def test_no_workspace(self):
        orchestrator = ScanOrchestrator(None, config=ClientConfig(api_key="ps_key"))
        with pytest.raises(ConfigurationError, match="No workspace folder is open"):
            await orchestrator.scan()

    async def test_online_without_api_key(self, workspace):
        orchestrator = ScanOrchestrator(workspace, config=ClientConfig(api_key=None))
        with pytest.raises(ConfigurationError, match="API key not configured"):
            await orchestrator.scan()

    async def test_cancel_between_files(self, workspace):
        cancel = asyncio.Event()

        class CancellingClient(FakeClient):
            async def scan_package_json(self, package_json, **kwargs):
                report = await super().scan_package_json(package_json, **kwargs)
                cancel.set()
                return report

        client = CancellingClient()
        with pytest.raises(ScanCancelled):
            await _orchestrator(workspace, client).scan(cancel=cancel)

        assert client.calls == ["shop"]
        assert client.closed is True

    async def test_rate_limited_result_reported(self, workspace):
        limited = ScanReport(project_name="shop", file_path="package.json", total=4, rate_limited=True)
        client = FakeClient({"shop": limited})

        results = await _orchestrator(workspace, client).scan()

        assert results[0].report is limited
        assert results[0].report.offline is False

    async def test_rate_limited_result_rerun_offline(self, workspace):
        limited = ScanReport(project_name="shop", file_path="package.json", total=4, rate_limited=True)
        client = FakeClient({"shop": limited})

        results = await _orchestrator(workspace, client, offline_fallback=True).scan()

        report = results[0].report
        assert report.offline is True
        assert report.rate_limited is True
        assert "axios" in report.outdated

    async def test_backend_429_with_fallback(self, workspace):
        client = FakeClient(error=BackendError("rate limit exceeded", status_code=429))
        results = await _orchestrator(workspace, client, offline_fallback=True).scan()
        assert all(r.report.offline for r in results)

    async def test_backend_error_propagates(self, workspace):
        client = FakeClient(error=BackendError("boom", status_code=500))
        with pytest.raises(BackendError):
            await _orchestrator(workspace, client, offline_fallback=True).scan()


# ── CLI ───────────────────────────────────────────────────────────────────


class TestCli:
    def test_offline_scan_json(self, workspace):
        result = CliRunner().invoke(main, ["scan", str(workspace), "--offline", "--json"])

        assert result.exit_code == 0, result.output
        reports = json.loads(result.output)
        assert [r["project_name"] for r in reports] == ["shop", "shop/packages/ui"]
        assert reports[1]["dependencies"]["outdated"]["react"]["latest"] == "18.2.0"

    def test_offline_scan_text(self, workspace):
        result = CliRunner().invoke(main, ["scan", str(workspace), "--offline", "--all"])

        assert result.exit_code == 0, result.output
        assert "shop [package.json] (offline)" in result.output
        assert "axios@1.3.0" in result.output
        assert "3 outdated package(s) found in shop" in result.output

    def test_missing_api_key(self, workspace, monkeypatch):
        monkeypatch.delenv("PACKSAFE_API_KEY", raising=False)
        result = CliRunner().invoke(main, ["scan", str(workspace), "--all"])

        assert result.exit_code == 1
        assert "API key not configured" in result.output

    def test_no_manifests(self, tmp_path):
        result = CliRunner().invoke(main, ["scan", str(tmp_path), "--offline"])
        assert result.exit_code == 1
        assert "No package.json files found" in result.output

    def test_status(self, workspace, monkeypatch):
        seen: list[str] = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"outdated": 2, "vulnerable": 1})

        monkeypatch.setattr(
            "packsafe.client.cli.PackSafeClient",
            lambda config: PackSafeClient(config, transport=httpx.MockTransport(handler)),
        )
        result = CliRunner().invoke(main, ["status", str(workspace), "--api-key", "ps_key"])

        assert result.exit_code == 0, result.output
        assert seen == ["/api/projects/shop/status", "/api/projects/shop/packages/ui/status"]
        assert "shop/packages/ui" in result.output
        assert "outdated=2  vulnerable=1" in result.output

    def test_status_missing_api_key(self, workspace, monkeypatch):
        monkeypatch.delenv("PACKSAFE_API_KEY", raising=False)
        result = CliRunner().invoke(main, ["status", str(workspace)])

        assert result.exit_code == 1
        assert "API key not configured" in result.output
