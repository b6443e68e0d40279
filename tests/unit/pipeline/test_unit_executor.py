# tests/unit/pipeline/test_unit_executor.py - v1
"""Tests for pipeline/executor.py: script environment and launch."""

from __future__ import annotations

import shutil

import pytest

from omniforge.core.models import ScriptDescriptor
from omniforge.pipeline.executor import (
    SubprocessExecutor,
    base_environment,
    script_environment,
    script_log_file,
)


class TestEnvironment:
    def test_orchestrator_values(self, make_config):
        config = make_config(dry_run=True, enable_redis=True)
        env = base_environment(config)
        assert env["PROJECT_ROOT"] == str(config.project_root)
        assert env["DRY_RUN"] == "true"
        assert env["ENABLE_REDIS"] == "true"
        assert env["npm_config_cache"].endswith("npm")

    def test_project_env_file_loaded_but_overridden(self, make_config, tmp_path):
        (tmp_path / ".env").write_text('APP_NAME="demo"\nPROJECT_ROOT=/elsewhere\n')
        config = make_config()
        env = base_environment(config)
        assert env["APP_NAME"] == "demo"
        assert env["PROJECT_ROOT"] == str(config.project_root)

    def test_script_identity(self, make_config):
        script = ScriptDescriptor(path="db/setup.sh", id="db-setup", phase=1)
        env = script_environment(make_config(), script)
        assert env["OMNI_SCRIPT_ID"] == "db-setup"
        assert env["OMNI_PHASE"] == "1"

    def test_log_file_next_to_run_log(self, make_config):
        config = make_config()
        assert script_log_file(config).parent == config.log_file.parent
        assert script_log_file(config).name == "scripts.log"


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")
class TestSubprocessExecutor:
    @pytest.mark.asyncio
    async def test_runs_in_project_root(self, make_config, write_script):
        write_script("a.sh", 0, body='echo "$OMNI_SCRIPT_ID in $(pwd)"; exit 4')
        config = make_config()
        script = ScriptDescriptor(path="a.sh", id="a.sh", phase=0)
        result = await SubprocessExecutor(config).execute(script, timeout=30)
        assert result.returncode == 4
        assert result.stdout.strip() == f"a.sh in {config.project_root}"
        assert "a.sh in" in script_log_file(config).read_text()
