# src/pipeline/executor.py - v1
"""Script executors: how a single installer script is actually launched."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from dotenv import dotenv_values

from omniforge.core.models import ScriptDescriptor
from omniforge.core.process import ProcessResult, run_process
from omniforge.state.download_cache import DownloadCache

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig


class ScriptExecutor(Protocol):
    """Runs one script and reports its exit status."""

    async def execute(
        self, script: ScriptDescriptor, timeout: float | None = None
    ) -> ProcessResult: ...


def base_environment(config: RunConfig) -> dict[str, str]:
    """Variables every script sees: the project .env, then orchestrator values."""
    env: dict[str, str] = {
        k: v for k, v in dotenv_values(config.project_root / ".env").items() if v is not None
    }
    env.update({
        "PROJECT_ROOT": str(config.project_root),
        "SCRIPTS_DIR": str(config.scripts_dir),
        "BOOTSTRAP_STATE_FILE": str(config.state_file),
        "LOG_FILE": str(script_log_file(config)),
        "DRY_RUN": "true" if config.dry_run else "false",
        "DOCKER_EXEC_MODE": config.settings.docker_exec_mode,
        "NODE_VERSION": config.settings.node_version,
        "PNPM_VERSION": config.settings.pnpm_version,
    })
    for flag, enabled in config.features.items():
        env[flag.upper()] = "true" if enabled else "false"
    if config.profile:
        env["STACK_PROFILE"] = config.profile
    env.update(DownloadCache(config.cache_dir).env())
    return env


def script_environment(config: RunConfig, script: ScriptDescriptor) -> dict[str, str]:
    """base_environment() plus the identity of the script being run."""
    env = base_environment(config)
    env["OMNI_SCRIPT_ID"] = script.id
    env["OMNI_PHASE"] = str(script.phase)
    return env


def script_log_file(config: RunConfig) -> Path:
    """Script output lives next to the run log, in its own file."""
    return config.log_file.with_name("scripts.log")


class SubprocessExecutor:
    """Run scripts with ``bash <path>`` inside the project root."""

    def __init__(self, config: RunConfig, shell: str = "bash") -> None:
        self._config = config
        self._shell = shell

    async def execute(
        self, script: ScriptDescriptor, timeout: float | None = None
    ) -> ProcessResult:
        path = script.resolve(self._config.scripts_dir)
        self._config.project_root.mkdir(parents=True, exist_ok=True)
        return await run_process(
            [self._shell, str(path)],
            cwd=self._config.project_root,
            env=script_environment(self._config, script),
            timeout=timeout,
            output_file=script_log_file(self._config),
        )
