"""npm / yarn / pnpm command helpers for a manifest directory."""

from __future__ import annotations

import asyncio
import enum
from pathlib import Path

import structlog

from packsafe.client import PackageManagerError

log = structlog.get_logger("packsafe.client")


class PackageManager(str, enum.Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


_LOCKFILES = (
    ("yarn.lock", PackageManager.YARN),
    ("pnpm-lock.yaml", PackageManager.PNPM),
)


def detect_package_manager(project_dir: Path) -> PackageManager:
    """yarn if ``yarn.lock`` exists, pnpm if ``pnpm-lock.yaml`` exists, else npm."""
    for lockfile, manager in _LOCKFILES:
        if (project_dir / lockfile).exists():
            return manager
    return PackageManager.NPM


def _spec(name: str, version: str | None) -> str:
    return f"{name}@{version}" if version else name


def install_command(
    manager: PackageManager, name: str, *, version: str | None = None, dev: bool = False
) -> list[str]:
    spec = _spec(name, version)
    if manager is PackageManager.NPM:
        return ["npm", "install", spec] + (["--save-dev"] if dev else [])
    if manager is PackageManager.YARN:
        return ["yarn", "add", spec] + (["--dev"] if dev else [])
    return ["pnpm", "add", spec] + (["--save-dev"] if dev else [])


def uninstall_command(manager: PackageManager, name: str) -> list[str]:
    if manager is PackageManager.NPM:
        return ["npm", "uninstall", name]
    return [manager.value, "remove", name]


def update_command(manager: PackageManager, name: str, *, version: str | None = None) -> list[str]:
    """Without *version* update within the declared range; with it pin to that release."""
    if version:
        return install_command(manager, name, version=version)
    if manager is PackageManager.YARN:
        return ["yarn", "upgrade", name]
    return [manager.value, "update", name]


async def run_command(cmd: list[str], cwd: Path) -> str:
    """Run *cmd* in *cwd* and return its stdout.

    Raises :class:`PackageManagerError` on a non-zero exit. Output on stderr
    alone (npm prints deprecation warnings there) is not an error.
    """
    log.info("package_manager.run", cmd=" ".join(cmd), cwd=str(cwd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise PackageManagerError(f"{cmd[0]} is not installed or not on PATH") from exc

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise PackageManagerError(
            f"{' '.join(cmd)} failed (exit {proc.returncode}): {stderr.decode().strip()}"
        )
    if stderr.strip():
        log.debug("package_manager.stderr", output=stderr.decode().strip())
    return stdout.decode()
