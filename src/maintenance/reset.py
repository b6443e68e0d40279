# src/maintenance/reset.py - v1
"""Reset and clean the generated deployment.

``reset`` backs up key files to ``_backup/deployment-<timestamp>/`` and then
removes everything the phases generated. The OmniForge system itself, docs,
``.git`` and previous backups are never touched.

``clean`` removes progressively more:

    1 quick    state file and script index
    2 full     + deployment artifacts (no backup)
    3 deep     + logs and the download cache
    4 nuclear  + ``docker compose down -v``
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from omniforge.state.download_cache import DownloadCache

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig
    from omniforge.stack.compose import ComposeStack

logger = logging.getLogger(__name__)

BACKUP_DIR = "_backup"

# Generated files at the project root.
DEPLOYMENT_FILES: list[str] = [
    "docker-compose.yml",
    "drizzle.config.ts",
    "next.config.ts",
    "package.json",
    "playwright.config.ts",
    "tsconfig.json",
    "vitest.config.ts",
    ".env.example",
    "tsconfig.tsbuildinfo",
    "next-env.d.ts",
    "pnpm-lock.yaml",
]

DEPLOYMENT_DIRS: list[str] = [
    "src",
    "e2e",
    "public",
    ".next",
    "node_modules",
    "test-results",
    "playwright-report",
]

BACKUP_FILES: list[str] = [
    "package.json",
    "tsconfig.json",
    "logs/deployment-manifest.log",
]

PROTECTED: frozenset[str] = frozenset(
    {"_build", ".claude", "docs", ".git", BACKUP_DIR, "tech_stack"}
)

CLEAN_LEVELS: dict[int, str] = {1: "quick", 2: "full", 3: "deep", 4: "nuclear"}


class MaintenanceError(Exception):
    """Raised for invalid reset / clean requests."""


@dataclass
class CleanupReport:
    removed: list[Path] = field(default_factory=list)
    backup_dir: Path | None = None
    dry_run: bool = False


def _remove(path: Path, report: CleanupReport) -> None:
    if not path.exists() and not path.is_symlink():
        return
    if report.dry_run:
        logger.info("[dry-run] Would remove %s", path)
    elif path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        logger.info("Removed %s/", path)
    else:
        path.unlink()
        logger.info("Removed %s", path)
    report.removed.append(path)


def _check_target(root: Path, name: str) -> Path:
    if Path(name).parts[0] in PROTECTED:
        raise MaintenanceError(f"Refusing to remove protected path {name}")
    return root / name


def _deployment_targets(config: RunConfig) -> list[Path]:
    root = config.project_root
    targets = [_check_target(root, n) for n in DEPLOYMENT_FILES + DEPLOYMENT_DIRS]
    return targets + [config.state_file, config.index_file]


def backup_deployment(config: RunConfig, now: datetime | None = None) -> Path | None:
    """Copy key deployment files into a timestamped backup directory.

    Returns:
        The backup directory, or None when there was nothing to back up.
    """
    root = config.project_root
    sources = [root / n for n in BACKUP_FILES] + [config.state_file]
    existing = [p for p in sources if p.is_file()]
    if not existing:
        return None
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    backup_dir = root / BACKUP_DIR / f"deployment-{stamp}"
    if config.dry_run:
        logger.info("[dry-run] Would back up %d file(s) to %s", len(existing), backup_dir)
        return backup_dir
    for src in existing:
        try:
            rel = src.relative_to(root)
        except ValueError:
            rel = Path(src.name)
        dest = backup_dir / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
    logger.info("Backed up %d file(s) to %s", len(existing), backup_dir)
    return backup_dir


def reset_deployment(config: RunConfig, now: datetime | None = None) -> CleanupReport:
    """Back up, then delete every generated deployment artifact.

    Confirmation is the caller's responsibility.
    """
    report = CleanupReport(dry_run=config.dry_run)
    report.backup_dir = backup_deployment(config, now=now)
    for target in _deployment_targets(config):
        _remove(target, report)
    logs_dir = config.project_root / "logs"
    _remove(logs_dir, report)
    logger.info("Reset complete: %d path(s) removed", len(report.removed))
    return report


async def clean(
    config: RunConfig,
    level: int,
    stack: ComposeStack | None = None,
) -> CleanupReport:
    """Remove artifacts up to *level* (1-4). See module docstring."""
    if level not in CLEAN_LEVELS:
        raise MaintenanceError(f"Clean level must be 1-4, got {level}")
    logger.info("Clean level %d (%s) in %s", level, CLEAN_LEVELS[level], config.project_root)

    report = CleanupReport(dry_run=config.dry_run)

    if level >= 4 and stack is not None:
        from omniforge.stack.compose import StackError

        try:
            await stack.down(volumes=True)
        except StackError as exc:
            logger.warning("Skipping compose teardown: %s", exc)

    _remove(config.state_file, report)
    _remove(config.index_file, report)

    if level >= 2:
        for target in _deployment_targets(config):
            _remove(target, report)

    if level >= 3:
        log_dir = config.log_file.parent
        if log_dir != config.project_root and config.project_root in log_dir.parents:
            _remove(log_dir, report)
        else:
            _remove(config.log_file, report)
        cache = DownloadCache(config.cache_dir)
        if cache.root.exists():
            cache.purge(dry_run=config.dry_run)
            report.removed.append(cache.root)

    return report
