# src/maintenance/build.py - v1
"""Verify the generated application: install, lint, typecheck, build."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from omniforge.core.process import ProcessResult, run_process

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig

logger = logging.getLogger(__name__)

BUILD_STEPS: list[tuple[str, list[str]]] = [
    ("install", ["pnpm", "install"]),
    ("lint", ["pnpm", "lint"]),
    ("typecheck", ["pnpm", "typecheck"]),
    ("build", ["pnpm", "build"]),
]


class BuildError(Exception):
    def __init__(self, step: str, result: ProcessResult) -> None:
        self.step = step
        self.result = result
        super().__init__(f"Build step '{step}' failed with exit code {result.returncode}")


async def build_project(
    config: RunConfig,
    runner: Callable[..., Awaitable[ProcessResult]] | None = None,
) -> list[ProcessResult]:
    """Run every build step in the project root, stopping at the first failure.

    Raises:
        BuildError: On the first failing step.
    """
    run = runner or run_process
    results: list[ProcessResult] = []
    for step, argv in BUILD_STEPS:
        logger.info("Build step: %s", step)
        result = await run(argv, cwd=config.project_root, dry_run=config.dry_run)
        results.append(result)
        if not result.ok:
            raise BuildError(step, result)
    logger.info("Build verified in %s", config.project_root)
    return results
