# src/state/file_store.py - v1
"""Flat-file state store.

One line per completed script, compatible with existing bootstrap state files:

    foundation/init-nextjs.sh=success:2025-01-01T12:00:00+00:00

Every write replaces the file atomically. A missing file is an empty store.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from omniforge.core.models import CompletionRecord
from omniforge.state.base_state_store import BaseStateStore

logger = logging.getLogger(__name__)

SUCCESS_PREFIX = "success:"


class FileStateStore(BaseStateStore):
    """State store backed by a ``key=success:<timestamp>`` text file."""

    def __init__(self, state_file: Path) -> None:
        self._path = state_file

    @property
    def path(self) -> Path:
        return self._path

    def is_completed(self, script_id: str) -> bool:
        return script_id in self._load()

    def mark_completed(self, script_id: str) -> CompletionRecord:
        if "\n" in script_id or "=" in script_id:
            raise ValueError(f"Invalid script id for state file: {script_id!r}")
        records = self._load()
        existing = records.get(script_id)
        if existing is not None:
            return existing
        record = CompletionRecord(
            script_id=script_id, completed_at=datetime.now(timezone.utc)
        )
        records[script_id] = record
        self._save(records)
        logger.debug("Marked %s completed", script_id)
        return record

    def clear(self, script_id: str) -> bool:
        records = self._load()
        if records.pop(script_id, None) is None:
            return False
        self._save(records)
        logger.info("Cleared completion state for %s", script_id)
        return True

    def clear_all(self) -> int:
        count = len(self._load())
        self._path.unlink(missing_ok=True)
        logger.info("Cleared all completion state (%d records)", count)
        return count

    def records(self) -> list[CompletionRecord]:
        return list(self._load().values())

    # --- File I/O ---

    def _load(self) -> dict[str, CompletionRecord]:
        if not self._path.exists():
            return {}
        records: dict[str, CompletionRecord] = {}
        for lineno, line in enumerate(
            self._path.read_text(encoding="utf-8").splitlines(), start=1
        ):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep or not value.startswith(SUCCESS_PREFIX):
                logger.warning(
                    "Ignoring unreadable state line %d in %s", lineno, self._path
                )
                continue
            records[key] = CompletionRecord(
                script_id=key, completed_at=_parse_timestamp(value[len(SUCCESS_PREFIX):])
            )
        return records

    def _save(self, records: dict[str, CompletionRecord]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                for record in records.values():
                    fh.write(
                        f"{record.script_id}={SUCCESS_PREFIX}"
                        f"{record.completed_at.isoformat()}\n"
                    )
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _parse_timestamp(raw: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        # Older state files may carry a non-ISO stamp; keep the record anyway.
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
