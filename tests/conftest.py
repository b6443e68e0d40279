# tests/conftest.py - v1
"""Shared test fixtures for unit and integration tests.

Provides settings/run-config factories rooted in tmp_path, a script writer
that emits metadata blocks, and a recording executor that never spawns
processes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from omniforge.config.run_config import RunConfig, build_run_config
from omniforge.config.settings import Settings
from omniforge.core.models import ScriptDescriptor
from omniforge.core.process import ProcessResult


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables from leaking into Settings."""
    for name in (
        "PROJECT_ROOT",
        "SCRIPTS_DIR",
        "STATE_FILE",
        "INDEX_FILE",
        "EXECUTION_MODE",
        "BOOTSTRAP_RESUME_MODE",
        "STACK_PROFILE",
        "ENABLE_DOCKER",
        "DOCKER_EXEC_MODE",
        "INSIDE_OMNI_DOCKER",
        "NON_INTERACTIVE",
        "LOG_FILE",
        "APP_NAME",
        "GIT_SAFETY",
        "ALLOW_DIRTY",
        "PREFLIGHT_DOWNLOAD_PACKAGES",
        "DOWNLOAD_WAIT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by setup_logging() so they never outlive a test."""
    yield
    root = logging.getLogger("omniforge")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings rooted in tmp_path, ignoring any .env file."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "project_root": tmp_path,
            "omniforge_cache_dir": tmp_path / "cache",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def make_config(make_settings: Callable[..., Settings]) -> Callable[..., RunConfig]:
    """RunConfig factory: settings overrides plus CLI flags (dry_run, force...)."""

    cli_flags = {"dry_run", "force", "phase", "continue_on_error", "assume_yes", "verbosity"}

    def _make(**kwargs: object) -> RunConfig:
        flags = {k: kwargs.pop(k) for k in list(kwargs) if k in cli_flags}
        return build_run_config(make_settings(**kwargs), **flags)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "tech_stack"
    path.mkdir()
    return path


@pytest.fixture
def write_script(scripts_dir: Path) -> Callable[..., Path]:
    """Write an installer script with a metadata block under scripts_dir."""

    def _write(
        rel: str,
        phase: int,
        tags: tuple[str, ...] = (),
        required: tuple[str, ...] = (),
        body: str = "exit 0",
        script_id: str | None = None,
    ) -> Path:
        lines = ["#!/usr/bin/env bash", "#!meta", f"# id: {script_id or rel}", f"# phase: {phase}"]
        lines.append("# profile_tags:")
        lines += [f"#   - {t}" for t in tags]
        lines.append("# required_vars:")
        lines += [f"#   - {v}" for v in required]
        lines += ["#!endmeta", "", body, ""]
        path = scripts_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    return _write


class RecordingExecutor:
    """ScriptExecutor double: records invocations, returns scripted exit codes."""

    def __init__(self, exit_codes: dict[str, int] | None = None) -> None:
        self.exit_codes = exit_codes or {}
        self.invocations: list[str] = []
        self.timeouts: list[float | None] = []

    async def execute(
        self, script: ScriptDescriptor, timeout: float | None = None
    ) -> ProcessResult:
        self.invocations.append(script.id)
        self.timeouts.append(timeout)
        return ProcessResult(
            argv=["bash", script.path],
            returncode=self.exit_codes.get(script.id, 0),
            duration_ms=5,
        )


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def executor_factory() -> Callable[..., RecordingExecutor]:
    return RecordingExecutor


def descriptor(script_id: str, phase: int, **kwargs: object) -> ScriptDescriptor:
    return ScriptDescriptor(path=kwargs.pop("path", script_id), id=script_id, phase=phase, **kwargs)  # type: ignore[arg-type]


@pytest.fixture
def make_descriptor() -> Callable[..., ScriptDescriptor]:
    return descriptor


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the CLI from tmp_path with a private cache and no version floor."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OMNIFORGE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("NODE_VERSION", "0")
    monkeypatch.setenv("PNPM_VERSION", "0")
    return tmp_path


@pytest.fixture
def host_binaries(monkeypatch: pytest.MonkeyPatch) -> set[str]:
    """Pretend these binaries are on PATH for preflight and phase checks.

    Tests add or remove names from the returned set.
    """
    present = {"git", "node", "pnpm", "docker", "psql", "openssl", "curl"}

    def _which(name: str) -> str | None:
        return f"/usr/bin/{name}" if name in present else None

    monkeypatch.setattr("omniforge.preflight.checker.which", _which)
    monkeypatch.setattr("omniforge.pipeline.runner.which", _which)
    monkeypatch.setattr("omniforge.state.download_cache.which", _which)
    return present
