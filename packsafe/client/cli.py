"""CLI entry point: packsafe.

Subcommands:
    packsafe scan [WORKSPACE]           # Scan package.json manifests
    packsafe install NAME [--dev]       # Install a package, then rescan
    packsafe uninstall NAME             # Remove a package, then rescan
    packsafe update NAME [--version V]  # Update a package, then rescan
    packsafe search QUERY               # Search npm through the backend
    packsafe status [WORKSPACE]         # Stored outdated / vulnerable counts per project
"""

from __future__ import annotations

import asyncio
import json
import os
import signal
import sys
from pathlib import Path

import click

from packsafe.client import ClientError
from packsafe.client.api_client import PackSafeClient
from packsafe.client.config import ClientConfig
from packsafe.client.orchestrator import ManifestScan, ScanMode, ScanOrchestrator
from packsafe.client.package_manager import (
    detect_package_manager,
    install_command,
    run_command,
    uninstall_command,
    update_command,
)
from packsafe.client.report import build_rows, notification_for, render_row
from packsafe.client.workspace import find_manifests, project_name_for
from packsafe.core.logging import setup_logging

_NOTIFY_COLOURS = {"error": "red", "warning": "yellow", "info": "green"}

_server_option = click.option("--server-url", default=None, help="PackSafe server URL")
_api_key_option = click.option("--api-key", default=None, help="PackSafe API key")
_offline_option = click.option(
    "--offline", is_flag=True, help="Scan with the local table only (no network)"
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """PackSafe: dependency health for npm projects."""
    os.environ.setdefault("PACKSAFE_LOG_LEVEL", "WARNING")
    setup_logging(verbose)


@main.command("scan")
@click.argument("workspace", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--all", "scan_all", is_flag=True, help="Scan every manifest without prompting")
@_offline_option
@click.option(
    "--fallback-offline",
    is_flag=True,
    help="Re-run a rate-limited online scan with the local table",
)
@click.option("--json", "as_json", is_flag=True, help="Print reports as JSON")
@_server_option
@_api_key_option
def scan(
    workspace: Path,
    scan_all: bool,
    offline: bool,
    fallback_offline: bool,
    as_json: bool,
    server_url: str | None,
    api_key: str | None,
) -> None:
    """Scan the package.json manifests under WORKSPACE."""
    orchestrator = ScanOrchestrator(
        workspace,
        config=ClientConfig.from_env(server_url=server_url, api_key=api_key),
        mode=ScanMode.OFFLINE if offline else ScanMode.ONLINE,
        offline_fallback=fallback_offline,
    )
    select = None if scan_all or as_json else _prompt_manifest
    results = _run_scan(orchestrator, select=select)
    _print_results(results, as_json=as_json)


@main.command("install")
@click.argument("name")
@click.option("--dev", is_flag=True, help="Add as a devDependency")
@click.option("--version", "version", default=None, help="Exact version or range")
@click.option("--path", "project_dir", default=".", type=click.Path(file_okay=False, path_type=Path))
@_offline_option
@_server_option
@_api_key_option
def install(
    name: str,
    dev: bool,
    version: str | None,
    project_dir: Path,
    offline: bool,
    server_url: str | None,
    api_key: str | None,
) -> None:
    """Install NAME with the project's package manager, then rescan."""
    manager = detect_package_manager(project_dir)
    _run_package_command(install_command(manager, name, version=version, dev=dev), project_dir)
    click.echo(f"Installed {name}{'@' + version if version else ''} with {manager.value}")
    _rescan(project_dir, offline=offline, server_url=server_url, api_key=api_key)


@main.command("uninstall")
@click.argument("name")
@click.option("--path", "project_dir", default=".", type=click.Path(file_okay=False, path_type=Path))
@_offline_option
@_server_option
@_api_key_option
def uninstall(
    name: str,
    project_dir: Path,
    offline: bool,
    server_url: str | None,
    api_key: str | None,
) -> None:
    """Remove NAME with the project's package manager, then rescan."""
    manager = detect_package_manager(project_dir)
    _run_package_command(uninstall_command(manager, name), project_dir)
    click.echo(f"Removed {name} with {manager.value}")
    _rescan(project_dir, offline=offline, server_url=server_url, api_key=api_key)


@main.command("update")
@click.argument("name")
@click.option("--version", "version", default=None, help="Target version (default: latest in range)")
@click.option("--path", "project_dir", default=".", type=click.Path(file_okay=False, path_type=Path))
@_offline_option
@_server_option
@_api_key_option
def update(
    name: str,
    version: str | None,
    project_dir: Path,
    offline: bool,
    server_url: str | None,
    api_key: str | None,
) -> None:
    """Update NAME with the project's package manager, then rescan."""
    manager = detect_package_manager(project_dir)
    _run_package_command(update_command(manager, name, version=version), project_dir)
    click.echo(f"Updated {name} with {manager.value}")
    _rescan(project_dir, offline=offline, server_url=server_url, api_key=api_key)


@main.command("search")
@click.argument("query")
@click.option("--size", default=10, show_default=True, help="Number of results")
@_server_option
@_api_key_option
def search(query: str, size: int, server_url: str | None, api_key: str | None) -> None:
    """Search the npm registry through the PackSafe server."""

    async def _search() -> dict:
        async with PackSafeClient(ClientConfig.from_env(server_url=server_url, api_key=api_key)) as client:
            return await client.search_packages(query, size=size)

    try:
        result = asyncio.run(_search())
    except ClientError as exc:
        _fail(str(exc))

    packages = result.get("packages") or []
    if not packages:
        click.echo(f"No packages found for '{query}'.")
        return
    for pkg in packages:
        click.echo(
            f"  {pkg['name']:30s}  {pkg.get('version', '?'):10s}  "
            f"{pkg.get('weekly_downloads', 0):>10,}/wk  {pkg.get('description') or ''}"
        )
    click.echo(f"\n{result.get('total', len(packages))} result(s)")


@main.command("status")
@click.argument("workspace", default=".", type=click.Path(file_okay=False, path_type=Path))
@_server_option
@_api_key_option
def status(workspace: Path, server_url: str | None, api_key: str | None) -> None:
    """Show the latest stored counts for every project in WORKSPACE."""

    async def _status() -> list[tuple[str, dict[str, int]]]:
        names = [project_name_for(workspace, m) for m in find_manifests(workspace)]
        async with PackSafeClient(ClientConfig.from_env(server_url=server_url, api_key=api_key)) as client:
            return [(name, await client.project_status(name)) for name in names]

    try:
        rows = asyncio.run(_status())
    except ClientError as exc:
        _fail(str(exc))

    for name, counts in rows:
        click.echo(
            f"  {name:40s}  outdated={counts.get('outdated', 0)}  "
            f"vulnerable={counts.get('vulnerable', 0)}"
        )


# ── helpers ──


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _prompt_manifest(manifests: list[Path]) -> Path | None:
    click.echo("Multiple package.json files found:")
    click.echo("  [0] all")
    for i, manifest in enumerate(manifests, 1):
        click.echo(f"  [{i}] {manifest}")
    choice = click.prompt(
        "Select a file to scan", type=click.IntRange(0, len(manifests)), default=0
    )
    return None if choice == 0 else manifests[choice - 1]


def _run_scan(orchestrator: ScanOrchestrator, **kwargs) -> list[ManifestScan]:
    async def _scan() -> list[ManifestScan]:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel.set)
        except (NotImplementedError, RuntimeError):
            pass  # unsupported on Windows
        try:
            return await orchestrator.scan(cancel=cancel, **kwargs)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

    try:
        return asyncio.run(_scan())
    except ClientError as exc:
        _fail(str(exc))
    return []


def _print_results(results: list[ManifestScan], *, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([r.report.to_dict() for r in results], indent=2))
        return

    for result in results:
        report = result.report
        mode = " (offline)" if report.offline else ""
        click.echo(f"\n{report.project_name} [{report.file_path}]{mode}")
        for row in build_rows(result.package_json, report):
            click.echo(render_row(row))
        click.echo(
            f"  total={report.total}  outdated={report.outdated_count}  "
            f"vulnerable={report.vulnerable_count}"
        )
        if report.rate_limited:
            click.secho(
                "  GitHub advisory rate limit reached; vulnerability data may be incomplete.",
                fg="yellow",
            )
        if report.message:
            click.echo(f"  {report.message}")
        level, message = notification_for(report)
        click.secho(f"  {message}", fg=_NOTIFY_COLOURS[level])


def _run_package_command(cmd: list[str], project_dir: Path) -> None:
    try:
        asyncio.run(run_command(cmd, project_dir))
    except ClientError as exc:
        _fail(str(exc))


def _rescan(project_dir: Path, *, offline: bool, server_url: str | None, api_key: str | None) -> None:
    orchestrator = ScanOrchestrator(
        project_dir,
        config=ClientConfig.from_env(server_url=server_url, api_key=api_key),
        mode=ScanMode.OFFLINE if offline else ScanMode.ONLINE,
    )
    _print_results(_run_scan(orchestrator), as_json=False)


if __name__ == "__main__":
    main()
