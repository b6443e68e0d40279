# src/state/state_factory.py - v1
"""Factory for state store instantiation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from omniforge.state.base_state_store import BaseStateStore

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig


def create_state_store(config: RunConfig | None = None) -> BaseStateStore:
    """Instantiate the state store for a run.

    Args:
        config: Run configuration. None gives an in-memory store.

    Returns:
        FileStateStore on the configured state file, or MemoryStateStore.
    """
    if config is None:
        from omniforge.state.memory_store import MemoryStateStore
        return MemoryStateStore()

    from omniforge.state.file_store import FileStateStore
    return FileStateStore(config.state_file)
