# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests.

These tests drive the real CLI against real bash scripts in a temporary
project. Host binaries are faked (see ``host_binaries`` in the root
conftest) so that no package manager or Docker daemon is needed.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable

import pytest


def pytest_collection_modifyitems(config, items):
    if shutil.which("bash") is not None:
        return
    skip = pytest.mark.skip(reason="bash not available")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def project(cli_env: Path, host_binaries: set[str]) -> Path:
    """Temporary project root with an empty tech_stack/ and a clean host."""
    (cli_env / "tech_stack").mkdir()
    return cli_env


@pytest.fixture
def add_script(project: Path) -> Callable[..., Path]:
    """Write tech_stack/<rel> with a metadata block and a bash body."""

    def _add(
        rel: str,
        phase: int,
        body: str = "",
        required: tuple[str, ...] = (),
        tags: tuple[str, ...] = (),
    ) -> Path:
        lines = [
            "#!/usr/bin/env bash",
            "#!meta",
            f"# id: {rel}",
            f"# phase: {phase}",
            "# profile_tags:",
            *[f"#   - {t}" for t in tags],
            "# required_vars:",
            *[f"#   - {v}" for v in required],
            "#!endmeta",
            "set -euo pipefail",
            f'echo "{rel}" >> "$PROJECT_ROOT/ran.txt"',
            body,
            "",
        ]
        path = project / "tech_stack" / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    return _add


@pytest.fixture
def ran(project: Path) -> Callable[[], list[str]]:
    """Script ids in the order they actually executed."""

    def _ran() -> list[str]:
        path = project / "ran.txt"
        return path.read_text().split() if path.exists() else []

    return _ran
