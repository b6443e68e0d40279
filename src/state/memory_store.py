# src/state/memory_store.py - v1
"""In-process state store, used for planning and tests."""

from __future__ import annotations

from datetime import datetime, timezone

from omniforge.core.models import CompletionRecord
from omniforge.state.base_state_store import BaseStateStore


class MemoryStateStore(BaseStateStore):
    def __init__(self, completed: list[str] | None = None) -> None:
        self._records: dict[str, CompletionRecord] = {}
        for script_id in completed or []:
            self.mark_completed(script_id)

    def is_completed(self, script_id: str) -> bool:
        return script_id in self._records

    def mark_completed(self, script_id: str) -> CompletionRecord:
        if script_id not in self._records:
            self._records[script_id] = CompletionRecord(
                script_id=script_id, completed_at=datetime.now(timezone.utc)
            )
        return self._records[script_id]

    def clear(self, script_id: str) -> bool:
        return self._records.pop(script_id, None) is not None

    def clear_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count

    def records(self) -> list[CompletionRecord]:
        return list(self._records.values())
