# tests/unit/maintenance/test_unit_reset.py - v1
"""Tests for maintenance/reset.py: reset and leveled clean."""

from __future__ import annotations

from datetime import datetime

import pytest

from omniforge.maintenance.reset import (
    MaintenanceError,
    backup_deployment,
    clean,
    reset_deployment,
)
from omniforge.stack.compose import StackError

NOW = datetime(2025, 3, 1, 9, 30, 0)


@pytest.fixture
def deployment(make_config, tmp_path):
    """A project root holding generated files plus OmniForge's own files."""
    config = make_config()
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / "tsconfig.json").write_text("{}")
    (tmp_path / "src" / "app").mkdir(parents=True)
    (tmp_path / "src" / "app" / "page.tsx").write_text("export default 1")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "logs").mkdir()
    (tmp_path / "logs" / "omniforge.log").write_text("log")
    (tmp_path / "tech_stack").mkdir()
    (tmp_path / "tech_stack" / "a.sh").write_text("exit 0")
    (tmp_path / "docs").mkdir()
    config.state_file.write_text("a.sh=success:2025-01-01T00:00:00+00:00\n")
    config.index_file.write_text("a.sh|a.sh|0||||\n")
    (tmp_path / "cache" / "npm").mkdir(parents=True)
    return config


class TestReset:
    def test_backup_then_remove(self, deployment, tmp_path):
        report = reset_deployment(deployment, now=NOW)
        backup = tmp_path / "_backup" / "deployment-20250301-093000"
        assert report.backup_dir == backup
        assert (backup / "package.json").exists()
        assert (backup / ".bootstrap_state").exists()
        for gone in ("package.json", "src", "node_modules", "logs"):
            assert not (tmp_path / gone).exists()
        assert not deployment.state_file.exists()
        assert (tmp_path / "tech_stack" / "a.sh").exists()
        assert (tmp_path / "docs").exists()

    def test_dry_run_touches_nothing(self, make_config, deployment, tmp_path):
        config = make_config(dry_run=True)
        report = reset_deployment(config, now=NOW)
        assert report.removed
        assert (tmp_path / "package.json").exists()
        assert not (tmp_path / "_backup").exists()

    def test_nothing_to_back_up(self, make_config):
        assert backup_deployment(make_config(), now=NOW) is None


class FakeStack:
    def __init__(self, fail: bool = False) -> None:
        self.downs: list[bool] = []
        self._fail = fail

    async def down(self, volumes: bool = False):
        self.downs.append(volumes)
        if self._fail:
            raise StackError("no compose file")


class TestClean:
    @pytest.mark.asyncio
    async def test_level_1_state_and_index_only(self, deployment, tmp_path):
        await clean(deployment, 1)
        assert not deployment.state_file.exists()
        assert not deployment.index_file.exists()
        assert (tmp_path / "package.json").exists()

    @pytest.mark.asyncio
    async def test_level_2_removes_deployment_without_backup(self, deployment, tmp_path):
        await clean(deployment, 2)
        assert not (tmp_path / "src").exists()
        assert not (tmp_path / "_backup").exists()
        assert (tmp_path / "logs").exists()

    @pytest.mark.asyncio
    async def test_level_3_removes_logs_and_cache(self, deployment, tmp_path):
        await clean(deployment, 3)
        assert not (tmp_path / "logs").exists()
        assert not (tmp_path / "cache").exists()
        assert (tmp_path / "tech_stack").exists()

    @pytest.mark.asyncio
    async def test_level_3_log_file_at_root_keeps_root(self, make_config, tmp_path):
        config = make_config(log_file=tmp_path / "omni.log")
        (tmp_path / "omni.log").write_text("x")
        await clean(config, 3)
        assert tmp_path.exists()
        assert not (tmp_path / "omni.log").exists()

    @pytest.mark.asyncio
    async def test_level_4_tears_down_stack(self, deployment):
        stack = FakeStack()
        await clean(deployment, 4, stack=stack)
        assert stack.downs == [True]

    @pytest.mark.asyncio
    async def test_level_4_tolerates_missing_stack(self, deployment):
        report = await clean(deployment, 4, stack=FakeStack(fail=True))
        assert deployment.state_file in report.removed

    @pytest.mark.asyncio
    async def test_invalid_level(self, deployment):
        with pytest.raises(MaintenanceError):
            await clean(deployment, 5)
