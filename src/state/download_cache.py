# src/state/download_cache.py - v1
"""Package download cache shared across runs.

Layout under the cache root: ``npm/``, ``pnpm/`` and ``logs/``. Scripts reuse
it through the npm_config_cache and PNPM_STORE_DIR variables.

PackagePrefetcher fills the cache in the background while the first phase
runs, so later installs mostly hit the local store.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from omniforge.core.process import ProcessResult, run_process, which

logger = logging.getLogger(__name__)

SUBDIRS = ("npm", "pnpm", "logs")


class DownloadCache:
    """Manage the download cache directory.

    Args:
        root: Cache root directory.
        max_age_seconds: Files older than this are removed by purge_stale().
    """

    def __init__(self, root: Path, max_age_seconds: int = 604800) -> None:
        self._root = root.expanduser()
        self._max_age = max_age_seconds

    @property
    def root(self) -> Path:
        return self._root

    def init(self, dry_run: bool = False) -> None:
        """Create the cache root and its subdirectories."""
        if dry_run:
            logger.info("[dry-run] Would create download cache at %s", self._root)
            return
        for sub in SUBDIRS:
            (self._root / sub).mkdir(parents=True, exist_ok=True)
        logger.debug("Download cache ready at %s", self._root)

    def path_for(self, manager: str) -> Path:
        if manager not in SUBDIRS:
            raise ValueError(f"Unknown cache area: {manager!r}")
        return self._root / manager

    def env(self) -> dict[str, str]:
        """Environment variables pointing package managers at the cache."""
        return {
            "OMNIFORGE_CACHE_DIR": str(self._root),
            "npm_config_cache": str(self.path_for("npm")),
            "PNPM_STORE_DIR": str(self.path_for("pnpm")),
        }

    def size_bytes(self) -> int:
        if not self._root.exists():
            return 0
        return sum(p.stat().st_size for p in self._root.rglob("*") if p.is_file())

    def purge_stale(self, now: float | None = None) -> int:
        """Delete cached files older than max_age_seconds. Returns count removed."""
        if not self._root.exists():
            return 0
        cutoff = (now if now is not None else time.time()) - self._max_age
        removed = 0
        for path in self._root.rglob("*"):
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        if removed:
            logger.info("Removed %d stale cache file(s) from %s", removed, self._root)
        return removed

    def purge(self, dry_run: bool = False) -> None:
        """Delete the entire cache."""
        if dry_run:
            logger.info("[dry-run] Would remove download cache %s", self._root)
            return
        if self._root.exists():
            shutil.rmtree(self._root)
            logger.info("Removed download cache %s", self._root)


@dataclass
class PrefetchResult:
    manager: str | None = None
    cached: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class PackagePrefetcher:
    """Download packages into the cache on a background task.

    pnpm (``pnpm store add``) is preferred; npm (``npm cache add``) is the
    fallback. A package that fails to download is logged and skipped, since
    the install step will fetch it again anyway.

    Args:
        cache: Target download cache.
        locate: Binary lookup, ``shutil.which``-compatible.
        runner: Process runner (defaults to run_process).
    """

    def __init__(
        self,
        cache: DownloadCache,
        locate: Callable[[str], str | None] | None = None,
        runner: Callable[..., Awaitable[ProcessResult]] | None = None,
    ) -> None:
        self._cache = cache
        self._locate = locate or which
        self._run = runner or run_process
        self._task: asyncio.Task[PrefetchResult] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, packages: Iterable[str]) -> bool:
        """Start downloading *packages*. Requires a running event loop.

        Returns:
            False when there is nothing to fetch or a download is already running.
        """
        wanted = list(dict.fromkeys(p for p in packages if p))
        if not wanted or self.running:
            return False
        logger.info("Prefetching %d package(s) into %s", len(wanted), self._cache.root)
        self._task = asyncio.get_running_loop().create_task(self._fetch(wanted))
        return True

    async def wait(self, timeout: float | None = None) -> PrefetchResult | None:
        """Wait for the background download.

        A download still running after *timeout* seconds is cancelled. Both a
        timeout and an unexpected error are logged and yield None.
        """
        if self._task is None:
            return None
        try:
            return await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Package prefetch still running after %ss; cancelled", timeout)
            return None
        except Exception as exc:
            logger.warning("Package prefetch failed: %s", exc)
            return None
        finally:
            self._task = None

    async def _fetch(self, packages: list[str]) -> PrefetchResult:
        if self._locate("pnpm"):
            manager, command = "pnpm", ["pnpm", "store", "add"]
        elif self._locate("npm"):
            manager, command = "npm", ["npm", "cache", "add"]
        else:
            logger.warning("Neither pnpm nor npm found; package prefetch skipped")
            return PrefetchResult()

        result = PrefetchResult(manager=manager)
        log_file = self._cache.path_for("logs") / f"download_{time.strftime('%Y%m%d_%H%M%S')}.log"
        env = self._cache.env()
        for package in packages:
            proc = await self._run([*command, package], env=env, output_file=log_file)
            if proc.ok:
                result.cached.append(package)
            else:
                logger.warning("Failed to cache %s (exit code %d)", package, proc.returncode)
                result.failed.append(package)

        logger.info(
            "Prefetch complete: %d/%d package(s) cached with %s",
            len(result.cached),
            len(packages),
            manager,
        )
        return result
