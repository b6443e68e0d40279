# src/stack/compose.py - v1
"""Thin wrapper around ``docker compose`` for the generated application stack.

The compose file is resolved against the project root. The plugin form
(``docker compose``) is preferred; the standalone ``docker-compose`` binary is
used when the plugin is unavailable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

from omniforge.core.process import ProcessResult, run_process, which

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig

logger = logging.getLogger(__name__)


class StackError(Exception):
    """Raised when the compose stack cannot be driven."""


class ComposeStack:
    """Drive ``docker compose`` for one project.

    Args:
        config: Run configuration (project root, compose file, dry-run).
        runner: Injected process runner.
        locate: Binary lookup.
    """

    def __init__(
        self,
        config: RunConfig,
        runner: Callable[..., Awaitable[ProcessResult]] | None = None,
        locate: Callable[[str], str | None] | None = None,
    ) -> None:
        self._config = config
        self._run = runner or run_process
        self._locate = locate or which
        self._base: list[str] | None = None

    @property
    def compose_file(self) -> Path:
        path = self._config.settings.docker_compose_file.expanduser()
        return path if path.is_absolute() else self._config.project_root / path

    async def _command(self) -> list[str]:
        if self._base is not None:
            return self._base
        compose_file = self.compose_file
        if not compose_file.is_file():
            raise StackError(f"Compose file not found: {compose_file}")

        if self._locate("docker"):
            probe = await self._run(["docker", "compose", "version"])
            if probe.ok:
                self._base = ["docker", "compose", "-f", str(compose_file)]
                return self._base
        if self._locate("docker-compose"):
            self._base = ["docker-compose", "-f", str(compose_file)]
            return self._base
        raise StackError("Neither 'docker compose' nor 'docker-compose' is available")

    async def _compose(self, *args: str) -> ProcessResult:
        argv = [*(await self._command()), *args]
        result = await self._run(
            argv, cwd=self._config.project_root, dry_run=self._config.dry_run
        )
        if not result.ok:
            raise StackError(
                f"{' '.join(args)} failed (exit {result.returncode}): {result.stderr.strip()}"
            )
        return result

    async def up(self, detach: bool = True) -> ProcessResult:
        return await self._compose("up", *(["-d"] if detach else []))

    async def down(self, volumes: bool = False) -> ProcessResult:
        return await self._compose("down", *(["-v"] if volumes else []))

    async def ps(self) -> ProcessResult:
        return await self._compose("ps")

