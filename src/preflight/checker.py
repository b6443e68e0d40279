# src/preflight/checker.py - v1
"""Dependency preflight: verify host prerequisites before any phase runs.

Per-binary decision, gated by configuration flags:

    present                                  -> ok
    feature disabled                         -> skipped
    missing, auto-install allowed, installed -> remediated
    missing, required, skip_missing off      -> fatal
    missing, required, skip_missing on       -> warning
    missing, optional                        -> warning

Dry-run never installs anything and reports would-be fatals as warnings.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Literal

from omniforge.config.phases import PhaseDefinition
from omniforge.core.process import ProcessResult, run_process, which
from omniforge.preflight.installer import PackageInstaller, SystemPackageInstaller
from omniforge.state.download_cache import DownloadCache

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig

logger = logging.getLogger(__name__)

CheckStatus = Literal["ok", "remediated", "skipped", "warning", "fatal"]

_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class PreflightError(Exception):
    """Raised when the preflight report holds fatal findings."""

    def __init__(self, report: PreflightReport) -> None:
        self.report = report
        super().__init__(
            "Preflight failed: " + "; ".join(r.message for r in report.fatals)
        )


@dataclass(frozen=True)
class Requirement:
    """One binary the host must provide."""

    binary: str
    required: bool = True
    auto_install: bool = False
    enabled: bool = True
    min_major: int | None = None
    hint: str = ""


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    message: str


@dataclass
class PreflightReport:
    results: list[CheckResult] = field(default_factory=list)

    def add(self, name: str, status: CheckStatus, message: str) -> None:
        self.results.append(CheckResult(name=name, status=status, message=message))
        level = {
            "fatal": logging.ERROR,
            "warning": logging.WARNING,
        }.get(status, logging.INFO)
        logger.log(level, "Preflight %s: %s", status.upper(), message)

    @property
    def fatals(self) -> list[CheckResult]:
        return [r for r in self.results if r.status == "fatal"]

    @property
    def warnings(self) -> list[CheckResult]:
        return [r for r in self.results if r.status == "warning"]

    @property
    def ok(self) -> bool:
        return not self.fatals

    def ensure_ok(self) -> None:
        if not self.ok:
            raise PreflightError(self)


def parse_major(version_output: str) -> int | None:
    """Major version from output such as ``v20.18.1`` or ``9.15.0``."""
    match = _VERSION_RE.search(version_output)
    return int(match.group(1)) if match else None


def requirements_from_config(config: RunConfig) -> list[Requirement]:
    """Binaries needed for this run, derived from feature toggles."""
    s = config.settings
    docker_enabled = config.features.get("enable_docker", True) and not s.inside_omni_docker
    database = config.features.get("enable_database", True)
    return [
        Requirement("git", auto_install=s.auto_install_git, hint="https://git-scm.com"),
        Requirement(
            "node",
            auto_install=s.auto_install_node,
            min_major=parse_major(s.node_version),
            hint="https://nodejs.org",
        ),
        Requirement(
            "pnpm",
            auto_install=s.auto_install_pnpm,
            min_major=parse_major(s.pnpm_version),
            hint="https://pnpm.io",
        ),
        Requirement(
            "docker",
            auto_install=s.auto_install_docker,
            enabled=docker_enabled,
            hint="https://docs.docker.com/get-docker/",
        ),
        Requirement(
            "psql",
            required=database,
            auto_install=s.auto_install_psql,
            hint="https://postgresql.org",
        ),
    ]


class DependencyPreflight:
    """Run all host checks for a RunConfig.

    Args:
        config: Frozen run configuration.
        installer: Remediation backend (defaults to SystemPackageInstaller).
        locate: Binary lookup, ``shutil.which``-compatible.
        runner: Process runner used for version probes and git status.
        phases: Phase definitions whose listed scripts are checked for existence.
        requirements: Override the binaries derived from config.
    """

    def __init__(
        self,
        config: RunConfig,
        installer: PackageInstaller | None = None,
        locate: Callable[[str], str | None] | None = None,
        runner: Callable[..., Awaitable[ProcessResult]] | None = None,
        phases: list[PhaseDefinition] | None = None,
        requirements: list[Requirement] | None = None,
    ) -> None:
        self._config = config
        self._installer = installer or SystemPackageInstaller(
            pnpm_version=config.settings.pnpm_version, dry_run=config.dry_run
        )
        self._locate = locate or which
        self._run = runner or run_process
        self._phases = phases or []
        self._requirements = (
            requirements if requirements is not None else requirements_from_config(config)
        )

    async def run(self) -> PreflightReport:
        """Run every check and return the report (never raises for findings)."""
        report = PreflightReport()
        for req in self._requirements:
            await self._check_binary(req, report)
        self._check_project_root(report)
        await self._check_git_clean(report)
        self._check_disk_space(report)
        self._check_listed_scripts(report)
        self._prepare_cache(report)

        logger.info(
            "Preflight finished: %d fatal, %d warning(s)",
            len(report.fatals),
            len(report.warnings),
        )
        return report

    # --- Binaries ---

    async def _check_binary(self, req: Requirement, report: PreflightReport) -> None:
        if not req.enabled:
            report.add(req.binary, "skipped", f"{req.binary} not needed (feature disabled)")
            return

        problem = await self._probe(req)
        if problem is None:
            report.add(req.binary, "ok", f"{req.binary} found")
            return

        settings = self._config.settings
        if req.auto_install and settings.preflight_remediate and not self._config.dry_run:
            logger.info("Attempting to install %s (%s)", req.binary, problem)
            installed = await self._installer.install(req.binary)
            if installed and await self._probe(req) is None:
                report.add(req.binary, "remediated", f"{req.binary} installed")
                return
            problem += "; automatic install failed"

        message = f"{req.binary} {problem} (install: {req.hint})" if req.hint else f"{req.binary} {problem}"
        if not req.required:
            report.add(req.binary, "warning", message + " [optional]")
        elif settings.preflight_skip_missing:
            report.add(req.binary, "warning", message + " [PREFLIGHT_SKIP_MISSING]")
        else:
            self._fatal(report, req.binary, message)

    async def _probe(self, req: Requirement) -> str | None:
        """None when usable, otherwise a short description of the problem."""
        if not self._locate(req.binary):
            return "is missing"
        if req.min_major is None:
            return None
        result = await self._run([req.binary, "--version"])
        major = parse_major(result.stdout or result.stderr) if result.ok else None
        if major is None:
            logger.warning("Could not determine %s version; assuming compatible", req.binary)
            return None
        if major < req.min_major:
            return f"version {major} is older than required {req.min_major}"
        return None

    def _fatal(self, report: PreflightReport, name: str, message: str) -> None:
        # Dry-run reports everything but never blocks.
        if self._config.dry_run:
            report.add(name, "warning", message + " (ignored in dry-run)")
        else:
            report.add(name, "fatal", message)

    # --- Host ---

    def _check_project_root(self, report: PreflightReport) -> None:
        root = self._config.project_root
        if not root.exists():
            report.add("project_root", "warning", f"{root} does not exist yet; it will be created")
            return
        if not os.access(root, os.W_OK):
            self._fatal(report, "project_root", f"{root} is not writable")
        else:
            report.add("project_root", "ok", f"{root} is writable")

    async def _check_git_clean(self, report: PreflightReport) -> None:
        settings = self._config.settings
        root = self._config.project_root
        if not settings.git_safety or not (root / ".git").is_dir():
            return
        if settings.allow_dirty:
            report.add("git_clean", "skipped", "git clean check skipped (ALLOW_DIRTY=true)")
            return
        if not self._locate("git"):
            return
        result = await self._run(["git", "status", "--porcelain"], cwd=root)
        if not result.ok:
            report.add("git_clean", "warning", f"git status failed in {root}: {result.stderr.strip()}")
        elif result.stdout.strip():
            changed = len(result.stdout.strip().splitlines())
            self._fatal(
                report,
                "git_clean",
                f"{root} has {changed} uncommitted change(s); commit or stash them, "
                "or set ALLOW_DIRTY=true",
            )
        else:
            report.add("git_clean", "ok", "git working tree is clean")

    def _check_disk_space(self, report: PreflightReport) -> None:
        target = _existing_parent(self._config.project_root)
        free_mb = shutil.disk_usage(target).free // (1024 * 1024)
        minimum = self._config.settings.min_free_disk_mb
        if free_mb < minimum:
            report.add("disk", "warning", f"only {free_mb}MB free under {target} (< {minimum}MB)")
        else:
            report.add("disk", "ok", f"{free_mb}MB free")

    def _check_listed_scripts(self, report: PreflightReport) -> None:
        scripts_dir = self._config.scripts_dir
        for phase in self._phases:
            if not phase.enabled:
                continue
            if self._config.phase is not None and phase.number != self._config.phase:
                continue
            missing = [s for s in phase.scripts if not (scripts_dir / s).is_file()]
            if missing:
                report.add(
                    f"phase_{phase.number}_scripts",
                    "warning",
                    f"phase {phase.number} lists {len(missing)} script(s) not found "
                    f"under {scripts_dir}",
                )

    def _prepare_cache(self, report: PreflightReport) -> None:
        settings = self._config.settings
        if not settings.preflight_download_packages:
            return
        cache = DownloadCache(self._config.cache_dir, settings.omniforge_cache_max_age)
        try:
            cache.init(dry_run=self._config.dry_run)
            if not self._config.dry_run:
                cache.purge_stale()
        except OSError as exc:
            report.add("cache", "warning", f"download cache unavailable: {exc}")


def _existing_parent(path: Path) -> Path:
    while not path.exists() and path.parent != path:
        path = path.parent
    return path
