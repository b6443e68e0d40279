# src/preflight/installer.py - v1
"""Install missing binaries through the host's package manager.

Detects apt-get, apk, dnf or yum (brew is used when nothing else is
available). pnpm is installed through corepack, falling back to npm.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Sequence

from omniforge.core.process import ProcessResult, run_process, which

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ProcessResult]]

# Detection order matters: the first manager found on PATH wins.
MANAGERS: list[str] = ["apt-get", "apk", "dnf", "yum", "brew"]

# OS package providing each binary, per manager family.
PACKAGE_NAMES: dict[str, dict[str, str]] = {
    "git": {"default": "git"},
    "node": {"default": "nodejs", "brew": "node"},
    "docker": {"apt-get": "docker.io", "default": "docker"},
    "psql": {
        "apt-get": "postgresql-client",
        "apk": "postgresql-client",
        "brew": "libpq",
        "default": "postgresql",
    },
    "openssl": {"default": "openssl"},
    "curl": {"default": "curl"},
}


class PackageInstaller(ABC):
    """Something able to try installing a binary."""

    @abstractmethod
    async def install(self, binary: str) -> bool:
        """Try to install *binary*. Returns True if the attempt succeeded."""


def detect_package_manager() -> str | None:
    """First supported package manager found on PATH, or None."""
    for manager in MANAGERS:
        if which(manager):
            return manager
    return None


def install_command(manager: str, packages: Sequence[str]) -> list[list[str]]:
    """Commands installing *packages* with *manager* (privileged when not root)."""
    pkgs = list(packages)
    sudo = [] if _is_root() or manager in ("apk", "brew") else ["sudo"]
    if manager == "apt-get":
        return [
            [*sudo, "apt-get", "update", "-y"],
            [*sudo, "apt-get", "install", "-y", *pkgs],
        ]
    if manager == "apk":
        return [["apk", "add", "--no-cache", *pkgs]]
    if manager in ("dnf", "yum"):
        return [[*sudo, manager, "install", "-y", *pkgs]]
    if manager == "brew":
        return [["brew", "install", *pkgs]]
    raise ValueError(f"Unsupported package manager: {manager}")


def _is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


class SystemPackageInstaller(PackageInstaller):
    """Install binaries via the detected OS package manager.

    Args:
        pnpm_version: Version passed to corepack / npm for pnpm installs.
        dry_run: Log commands without running them.
        runner: Injected process runner (defaults to core.process.run_process).
    """

    def __init__(
        self,
        pnpm_version: str = "9",
        dry_run: bool = False,
        runner: Runner | None = None,
        manager: str | None = None,
    ) -> None:
        self._pnpm_version = pnpm_version
        self._dry_run = dry_run
        self._run = runner or run_process
        self._manager = manager

    @property
    def manager(self) -> str | None:
        if self._manager is None:
            self._manager = detect_package_manager()
        return self._manager

    async def install(self, binary: str) -> bool:
        if binary == "pnpm":
            return await self._install_pnpm()

        manager = self.manager
        if manager is None:
            logger.warning("Cannot install %s: no supported package manager detected", binary)
            return False

        names = PACKAGE_NAMES.get(binary, {})
        package = names.get(manager, names.get("default", binary))
        logger.info("Installing %s via %s (package %s)", binary, manager, package)
        for argv in install_command(manager, [package]):
            result = await self._run(argv, dry_run=self._dry_run)
            if not result.ok:
                logger.warning("Install of %s failed (exit %d)", binary, result.returncode)
                return False
        return True

    async def _install_pnpm(self) -> bool:
        package = f"pnpm@{self._pnpm_version}"
        if which("corepack"):
            enabled = await self._run(["corepack", "enable"], dry_run=self._dry_run)
            if enabled.ok:
                prepared = await self._run(
                    ["corepack", "prepare", package, "--activate"], dry_run=self._dry_run
                )
                if prepared.ok:
                    return True
            logger.info("corepack could not activate %s; trying npm", package)
        if which("npm") or self._dry_run:
            result = await self._run(["npm", "install", "-g", package], dry_run=self._dry_run)
            return result.ok
        logger.warning("Cannot install pnpm: neither corepack nor npm is available")
        return False
