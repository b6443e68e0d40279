# tests/unit/preflight/test_unit_checker.py - v1
"""Tests for preflight/checker.py: per-binary decision table."""

from __future__ import annotations

import pytest

from omniforge.config.phases import PhaseDefinition
from omniforge.core.process import ProcessResult
from omniforge.preflight.checker import (
    DependencyPreflight,
    PreflightError,
    Requirement,
    parse_major,
    requirements_from_config,
)
from omniforge.preflight.installer import PackageInstaller

VERSIONS = {"node": "v20.18.1", "pnpm": "9.15.0"}


class FakeHost:
    """Binary lookup plus version runner over an in-memory set of binaries."""

    def __init__(self, present: set[str], versions: dict[str, str] | None = None) -> None:
        self.present = set(present)
        self.versions = dict(VERSIONS, **(versions or {}))
        self.git_status = ""
        self.commands: list[list[str]] = []

    def locate(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.present else None

    async def run(self, argv, **kwargs) -> ProcessResult:
        self.commands.append(list(argv))
        if list(argv[:2]) == ["git", "status"]:
            return ProcessResult(argv=list(argv), returncode=0, stdout=self.git_status)
        return ProcessResult(argv=list(argv), returncode=0, stdout=self.versions.get(argv[0], ""))


class FakeInstaller(PackageInstaller):
    def __init__(self, host: FakeHost, succeed: bool = True) -> None:
        self.host = host
        self.succeed = succeed
        self.installed: list[str] = []

    async def install(self, binary: str) -> bool:
        self.installed.append(binary)
        if self.succeed:
            self.host.present.add(binary)
        return self.succeed


ALL = {"git", "node", "pnpm", "docker", "psql"}


def _preflight(config, host, installer=None, **kwargs):
    return DependencyPreflight(
        config,
        installer=installer or FakeInstaller(host),
        locate=host.locate,
        runner=host.run,
        **kwargs,
    )


def _status(report, name):
    return next(r.status for r in report.results if r.name == name)


class TestParseMajor:
    @pytest.mark.parametrize(
        "raw,expected", [("v20.18.1", 20), ("9.15.0", 9), ("20", 20), ("none", None)]
    )
    def test_parse(self, raw, expected):
        assert parse_major(raw) == expected


class TestRequirementsFromConfig:
    def test_docker_disabled_inside_container(self, make_config):
        reqs = {r.binary: r for r in requirements_from_config(make_config(inside_omni_docker=True))}
        assert reqs["docker"].enabled is False

    def test_psql_optional_without_database(self, make_config):
        reqs = {r.binary: r for r in requirements_from_config(make_config(enable_database=False))}
        assert reqs["psql"].required is False


class TestBinaryDecisions:
    @pytest.mark.asyncio
    async def test_all_present(self, make_config):
        report = await _preflight(make_config(), FakeHost(ALL)).run()
        assert report.ok
        assert all(_status(report, b) == "ok" for b in ALL)

    @pytest.mark.asyncio
    async def test_docker_missing_without_auto_install_is_fatal(self, make_config):
        config = make_config(enable_docker=True, auto_install_docker=False)
        host = FakeHost(ALL - {"docker"})
        installer = FakeInstaller(host)
        report = await _preflight(config, host, installer).run()
        assert _status(report, "docker") == "fatal"
        assert installer.installed == []
        with pytest.raises(PreflightError, match="docker"):
            report.ensure_ok()

    @pytest.mark.asyncio
    async def test_docker_disabled_is_skipped(self, make_config):
        report = await _preflight(make_config(enable_docker=False), FakeHost(ALL - {"docker"})).run()
        assert _status(report, "docker") == "skipped"
        assert report.ok

    @pytest.mark.asyncio
    async def test_auto_install_remediates(self, make_config):
        host = FakeHost(ALL - {"pnpm"})
        installer = FakeInstaller(host)
        report = await _preflight(make_config(auto_install_pnpm=True), host, installer).run()
        assert installer.installed == ["pnpm"]
        assert _status(report, "pnpm") == "remediated"

    @pytest.mark.asyncio
    async def test_failed_install_is_fatal(self, make_config):
        host = FakeHost(ALL - {"node"})
        report = await _preflight(
            make_config(auto_install_node=True), host, FakeInstaller(host, succeed=False)
        ).run()
        assert _status(report, "node") == "fatal"
        assert "automatic install failed" in report.fatals[0].message

    @pytest.mark.asyncio
    async def test_remediation_disabled(self, make_config):
        host = FakeHost(ALL - {"pnpm"})
        installer = FakeInstaller(host)
        report = await _preflight(make_config(preflight_remediate=False), host, installer).run()
        assert installer.installed == []
        assert _status(report, "pnpm") == "fatal"

    @pytest.mark.asyncio
    async def test_skip_missing_downgrades(self, make_config):
        config = make_config(preflight_skip_missing=True, auto_install_git=False)
        report = await _preflight(config, FakeHost(ALL - {"git"})).run()
        assert _status(report, "git") == "warning"
        assert report.ok

    @pytest.mark.asyncio
    async def test_optional_binary_warns(self, make_config):
        config = make_config(enable_database=False, auto_install_psql=False)
        report = await _preflight(config, FakeHost(ALL - {"psql"})).run()
        assert _status(report, "psql") == "warning"

    @pytest.mark.asyncio
    async def test_old_version_is_fatal(self, make_config):
        config = make_config(auto_install_node=False)
        host = FakeHost(ALL, versions={"node": "v18.20.0"})
        report = await _preflight(config, host).run()
        assert _status(report, "node") == "fatal"
        assert "older than required 20" in report.fatals[0].message

    @pytest.mark.asyncio
    async def test_dry_run_never_installs_or_blocks(self, make_config):
        host = FakeHost(set())
        installer = FakeInstaller(host)
        report = await _preflight(make_config(dry_run=True), host, installer).run()
        assert installer.installed == []
        assert report.ok
        assert "ignored in dry-run" in _status_message(report, "git")

    @pytest.mark.asyncio
    async def test_explicit_requirements(self, make_config):
        host = FakeHost(set())
        report = await _preflight(
            make_config(),
            host,
            requirements=[Requirement("openssl", required=False)],
        ).run()
        assert [r.name for r in report.results][0] == "openssl"
        assert report.ok


class TestHostChecks:
    @pytest.mark.asyncio
    async def test_listed_scripts_missing_warns(self, make_config, scripts_dir):
        (scripts_dir / "core").mkdir()
        (scripts_dir / "core" / "present.sh").write_text("exit 0\n")
        phase = PhaseDefinition(number=0, name="Foundation", scripts=["core/present.sh", "core/absent.sh"])
        report = await _preflight(make_config(), FakeHost(ALL), phases=[phase]).run()
        assert _status(report, "phase_0_scripts") == "warning"
        assert report.ok

    @pytest.mark.asyncio
    async def test_missing_project_root_warns(self, make_settings, tmp_path):
        from omniforge.config.run_config import build_run_config

        config = build_run_config(make_settings(project_root=tmp_path / "new-app"))
        report = await _preflight(config, FakeHost(ALL)).run()
        assert _status(report, "project_root") == "warning"

    @pytest.mark.asyncio
    async def test_cache_prepared(self, make_config):
        config = make_config()
        await _preflight(config, FakeHost(ALL)).run()
        assert (config.cache_dir / "npm").is_dir()


def _status_message(report, name):
    return next(r.message for r in report.results if r.name == name)


class TestGitSafety:
    @pytest.fixture
    def repo(self, tmp_path):
        (tmp_path / ".git").mkdir()
        return tmp_path

    @staticmethod
    def _git_results(report):
        return [r for r in report.results if r.name == "git_clean"]

    @pytest.mark.asyncio
    async def test_dirty_tree_is_fatal(self, make_config, repo):
        host = FakeHost(ALL)
        host.git_status = " M package.json\n?? notes.txt\n"
        report = await _preflight(make_config(), host).run()
        [result] = self._git_results(report)
        assert result.status == "fatal"
        assert "2 uncommitted change(s)" in result.message
        assert ["git", "status", "--porcelain"] in host.commands

    @pytest.mark.asyncio
    async def test_clean_tree_ok(self, make_config, repo):
        report = await _preflight(make_config(), FakeHost(ALL)).run()
        assert [r.status for r in self._git_results(report)] == ["ok"]

    @pytest.mark.asyncio
    async def test_dirty_tree_only_warns_in_dry_run(self, make_config, repo):
        host = FakeHost(ALL)
        host.git_status = " M package.json\n"
        report = await _preflight(make_config(dry_run=True), host).run()
        assert [r.status for r in self._git_results(report)] == ["warning"]
        assert report.ok

    @pytest.mark.asyncio
    async def test_allow_dirty_skips_check(self, make_config, repo):
        host = FakeHost(ALL)
        host.git_status = " M package.json\n"
        report = await _preflight(make_config(allow_dirty=True), host).run()
        assert [r.status for r in self._git_results(report)] == ["skipped"]
        assert ["git", "status", "--porcelain"] not in host.commands

    @pytest.mark.asyncio
    async def test_git_safety_off_or_not_a_repo(self, make_config, tmp_path):
        host = FakeHost(ALL)
        host.git_status = " M package.json\n"
        report = await _preflight(make_config(), host).run()
        assert self._git_results(report) == []
        (tmp_path / ".git").mkdir()
        report = await _preflight(make_config(git_safety=False), host).run()
        assert self._git_results(report) == []
