# src/registry/indexer.py - v1
"""Script indexer: discover installer scripts and maintain the index file.

Workflow:
    1. Walk the scripts root for ``*.sh`` files (sorted, recursive)
    2. Parse each file's metadata block into a ScriptDescriptor
    3. Write the index atomically
    4. Answer required-variable queries from the loaded index

Indexing can run in the background while the CLI prints its banner; wait()
then falls back to whatever index is on disk if the build failed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Mapping

from omniforge.core.models import ScriptDescriptor
from omniforge.registry.index_file import read_index, write_index
from omniforge.registry.metadata import MetadataError, parse_script

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUE = "CHANGE_ME"
AUTO_ADDED_MARKER = "# AUTO-ADDED: Required by tech_stack scripts"

# Helper directories that hold sourced libraries rather than installers.
IGNORED_DIRS = frozenset({"_lib", "lib"})


class MissingVariablesError(Exception):
    """Raised when required configuration variables are not set."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Missing required configuration variables: " + ", ".join(missing)
        )


class ScriptIndexer:
    """Build, persist and query the script index.

    Args:
        index_file: Location of the pipe-delimited index.
        max_age_seconds: An index younger than this is reused by ensure_index().
    """

    def __init__(self, index_file: Path, max_age_seconds: int = 3600) -> None:
        self._index_file = index_file
        self._max_age = max_age_seconds
        self._entries: list[ScriptDescriptor] | None = None
        self._task: asyncio.Task[list[ScriptDescriptor]] | None = None
        self.warnings: list[str] = []

    @property
    def index_file(self) -> Path:
        return self._index_file

    # --- Discovery ---

    def scan(self, scripts_root: Path) -> list[ScriptDescriptor]:
        """Parse every script under *scripts_root*.

        Files without a metadata block are skipped with a warning; a parse
        failure on one file is logged and the scan continues.

        Returns:
            Descriptors in sorted path order.

        Raises:
            ValueError: If *scripts_root* is not a directory.
        """
        if not scripts_root.is_dir():
            raise ValueError(f"Scripts root is not a directory: {scripts_root}")

        descriptors: list[ScriptDescriptor] = []
        seen_ids: dict[str, str] = {}
        for path in sorted(scripts_root.rglob("*.sh")):
            rel = path.relative_to(scripts_root)
            if not path.is_file() or IGNORED_DIRS.intersection(rel.parts[:-1]):
                continue
            try:
                descriptor = parse_script(path, scripts_root)
            except (MetadataError, OSError) as exc:
                self._warn(f"Failed to parse metadata in {rel.as_posix()}: {exc}")
                continue
            if descriptor is None:
                self._warn(f"No metadata block in {rel.as_posix()}; skipped")
                continue
            if descriptor.id in seen_ids:
                self._warn(
                    f"Duplicate script id {descriptor.id!r} in {rel.as_posix()} "
                    f"(already defined by {seen_ids[descriptor.id]}); skipped"
                )
                continue
            seen_ids[descriptor.id] = descriptor.path
            descriptors.append(descriptor)

        undeclared = sum(1 for d in descriptors if not d.required_vars)
        if descriptors and undeclared * 2 > len(descriptors):
            self._warn(
                f"{undeclared}/{len(descriptors)} scripts declare no required_vars"
            )

        logger.info("Indexed %d scripts from %s", len(descriptors), scripts_root)
        return descriptors

    def build(self, scripts_root: Path) -> list[ScriptDescriptor]:
        """Scan and write the index atomically."""
        descriptors = self.scan(scripts_root)
        write_index(self._index_file, descriptors)
        self._entries = descriptors
        return descriptors

    def load(self) -> list[ScriptDescriptor]:
        """Load the on-disk index (missing or bad file gives an empty or partial list)."""
        self._entries = read_index(self._index_file)
        return self._entries

    def is_fresh(self, now: float | None = None) -> bool:
        """True when the index exists and is younger than max_age_seconds."""
        try:
            mtime = self._index_file.stat().st_mtime
        except OSError:
            return False
        return ((now if now is not None else time.time()) - mtime) < self._max_age

    def ensure_index(self, scripts_root: Path, rebuild: bool = False) -> list[ScriptDescriptor]:
        """Reuse a fresh index, otherwise rebuild it."""
        if not rebuild and self.is_fresh():
            logger.debug("Reusing fresh index %s", self._index_file)
            return self.load()
        return self.build(scripts_root)

    # --- Background build ---

    def start_background(self, scripts_root: Path, rebuild: bool = False) -> None:
        """Start ensure_index() on a worker thread. Requires a running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(
            asyncio.to_thread(self.ensure_index, scripts_root, rebuild)
        )

    async def wait(self) -> list[ScriptDescriptor]:
        """Wait for the background build and return the index.

        A failed build is logged; the on-disk index (possibly empty) is used instead.
        """
        if self._task is None:
            return self.entries
        try:
            self._entries = await self._task
        except Exception as exc:
            logger.warning("Background indexing failed (%s); falling back to existing index", exc)
            self.load()
        finally:
            self._task = None
        return self.entries

    @property
    def entries(self) -> list[ScriptDescriptor]:
        if self._entries is None:
            self.load()
        return list(self._entries or [])

    # --- Queries ---

    def get(self, script_id: str) -> ScriptDescriptor | None:
        for d in self.entries:
            if d.id == script_id or d.path == script_id:
                return d
        return None

    def required_vars(self, phase: int | None = None) -> list[str]:
        """Sorted unique variables required by all scripts (or those of one phase)."""
        names: set[str] = set()
        for d in self.entries:
            if phase is None or d.phase == phase:
                names.update(d.required_vars)
        return sorted(names)

    def missing_vars(
        self, environ: Mapping[str, str] | None = None, phase: int | None = None
    ) -> list[str]:
        """Required variables that are unset or empty in *environ*."""
        env = os.environ if environ is None else environ
        return [v for v in self.required_vars(phase) if not env.get(v)]

    def validate_requirements(
        self, environ: Mapping[str, str] | None = None, phase: int | None = None
    ) -> None:
        """Raise MissingVariablesError when any required variable is unset."""
        missing = self.missing_vars(environ, phase)
        if missing:
            raise MissingVariablesError(missing)

    def inject_missing_vars(
        self,
        config_file: Path,
        environ: Mapping[str, str] | None = None,
        phase: int | None = None,
    ) -> list[str]:
        """Append ``VAR="CHANGE_ME"`` placeholders for unset variables.

        Variables already assigned in *config_file* are left alone.

        Returns:
            Names that were added.
        """
        existing = _assigned_names(config_file)
        to_add = [v for v in self.missing_vars(environ, phase) if v not in existing]
        if not to_add:
            return []
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with config_file.open("a", encoding="utf-8") as fh:
            fh.write(f"\n{AUTO_ADDED_MARKER}\n")
            for name in to_add:
                fh.write(f'{name}="{PLACEHOLDER_VALUE}"\n')
        logger.warning(
            "Added %d placeholder variable(s) to %s: %s",
            len(to_add),
            config_file,
            ", ".join(to_add),
        )
        return to_add

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)


def _assigned_names(config_file: Path) -> set[str]:
    if not config_file.exists():
        return set()
    names: set[str] = set()
    for line in config_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name = line.split("=", 1)[0].strip()
        if name.startswith("export "):
            name = name[len("export "):].strip()
        names.add(name)
    return names
