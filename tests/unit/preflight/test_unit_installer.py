# tests/unit/preflight/test_unit_installer.py - v1
"""Tests for preflight/installer.py."""

from __future__ import annotations

import pytest

from omniforge.core.process import ProcessResult
from omniforge.preflight import installer as installer_mod
from omniforge.preflight.installer import SystemPackageInstaller, install_command


class FakeRunner:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.calls: list[list[str]] = []
        self._failing = failing or set()

    async def __call__(self, argv, **kwargs) -> ProcessResult:
        self.calls.append(list(argv))
        code = 1 if argv[0] in self._failing else 0
        return ProcessResult(argv=list(argv), returncode=code)


class TestInstallCommand:
    def test_apt_uses_sudo_when_not_root(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "_is_root", lambda: False)
        commands = install_command("apt-get", ["git"])
        assert commands[0] == ["sudo", "apt-get", "update", "-y"]
        assert commands[1] == ["sudo", "apt-get", "install", "-y", "git"]

    def test_root_needs_no_sudo(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "_is_root", lambda: True)
        assert install_command("dnf", ["git"]) == [["dnf", "install", "-y", "git"]]

    def test_apk(self):
        assert install_command("apk", ["curl"]) == [["apk", "add", "--no-cache", "curl"]]

    def test_unsupported(self):
        with pytest.raises(ValueError):
            install_command("pacman", ["git"])


class TestSystemPackageInstaller:
    @pytest.mark.asyncio
    async def test_maps_package_name(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "_is_root", lambda: True)
        runner = FakeRunner()
        inst = SystemPackageInstaller(runner=runner, manager="apt-get")
        assert await inst.install("psql") is True
        assert runner.calls[-1] == ["apt-get", "install", "-y", "postgresql-client"]

    @pytest.mark.asyncio
    async def test_failure_reported(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "_is_root", lambda: True)
        inst = SystemPackageInstaller(runner=FakeRunner({"apk"}), manager="apk")
        assert await inst.install("git") is False

    @pytest.mark.asyncio
    async def test_no_manager(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "which", lambda name: None)
        inst = SystemPackageInstaller(runner=FakeRunner())
        assert await inst.install("git") is False

    @pytest.mark.asyncio
    async def test_pnpm_via_corepack(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "which", lambda name: f"/usr/bin/{name}")
        runner = FakeRunner()
        inst = SystemPackageInstaller(pnpm_version="9", runner=runner)
        assert await inst.install("pnpm") is True
        assert runner.calls == [
            ["corepack", "enable"],
            ["corepack", "prepare", "pnpm@9", "--activate"],
        ]

    @pytest.mark.asyncio
    async def test_pnpm_falls_back_to_npm(self, monkeypatch):
        monkeypatch.setattr(installer_mod, "which", lambda name: f"/usr/bin/{name}")
        runner = FakeRunner({"corepack"})
        inst = SystemPackageInstaller(pnpm_version="9", runner=runner)
        assert await inst.install("pnpm") is True
        assert runner.calls[-1] == ["npm", "install", "-g", "pnpm@9"]
