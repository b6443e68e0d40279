# src/state/base_state_store.py - v1
"""Abstract completion-state store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from omniforge.core.models import CompletionRecord


class BaseStateStore(ABC):
    """Durable record of which scripts have completed successfully."""

    @abstractmethod
    def is_completed(self, script_id: str) -> bool:
        """True if a completion record exists for *script_id*."""

    @abstractmethod
    def mark_completed(self, script_id: str) -> CompletionRecord:
        """Record success. Marking an already-completed script is a no-op."""

    @abstractmethod
    def clear(self, script_id: str) -> bool:
        """Remove one record. Returns False if there was none."""

    @abstractmethod
    def clear_all(self) -> int:
        """Remove every record. Returns how many were removed."""

    @abstractmethod
    def records(self) -> list[CompletionRecord]:
        """All records in insertion order."""

    def count(self) -> int:
        return len(self.records())
