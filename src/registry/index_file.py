# src/registry/index_file.py - v1
"""Pipe-delimited index file codec.

One line per script, exactly seven fields:

    script_path|id|phase|profile_tags|required_vars|dependencies|top_flags

List fields are comma-joined. Lines starting with ``#`` are comments.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from omniforge.core.models import ScriptDescriptor

logger = logging.getLogger(__name__)

FIELD_SEP = "|"
LIST_SEP = ","
FIELD_COUNT = 7
HEADER = "# omniforge script index: " + FIELD_SEP.join(
    ["script_path", "id", "phase", "profile_tags", "required_vars", "dependencies", "top_flags"]
)


class IndexFormatError(ValueError):
    """Raised when an index line does not hold exactly seven valid fields."""


def _join(values: list[str] | tuple[str, ...]) -> str:
    for v in values:
        if FIELD_SEP in v or LIST_SEP in v or "\n" in v:
            raise IndexFormatError(f"value {v!r} contains a reserved separator")
    return LIST_SEP.join(values)


def _split(value: str) -> list[str]:
    return [v for v in (p.strip() for p in value.split(LIST_SEP)) if v]


def encode_entry(descriptor: ScriptDescriptor) -> str:
    """Serialize a descriptor to one index line (no trailing newline)."""
    for scalar in (descriptor.path, descriptor.id):
        if FIELD_SEP in scalar or "\n" in scalar:
            raise IndexFormatError(f"value {scalar!r} contains a reserved separator")
    return FIELD_SEP.join(
        [
            descriptor.path,
            descriptor.id,
            str(descriptor.phase),
            _join(sorted(descriptor.profile_tags)),
            _join(descriptor.required_vars),
            _join(descriptor.dependencies),
            _join(descriptor.top_flags),
        ]
    )


def decode_entry(line: str) -> ScriptDescriptor:
    """Parse one index line.

    Raises:
        IndexFormatError: Wrong field count, empty path or non-integer phase.
    """
    fields = line.rstrip("\n").split(FIELD_SEP)
    if len(fields) != FIELD_COUNT:
        raise IndexFormatError(
            f"expected {FIELD_COUNT} fields, got {len(fields)}"
        )
    path, script_id, phase, tags, required, deps, flags = fields
    if not path.strip():
        raise IndexFormatError("empty script path")
    try:
        phase_num = int(phase)
    except ValueError as exc:
        raise IndexFormatError(f"phase is not an integer: {phase!r}") from exc
    if phase_num < 0:
        raise IndexFormatError(f"phase must be >= 0, got {phase_num}")
    return ScriptDescriptor(
        path=path.strip(),
        id=script_id.strip() or path.strip(),
        phase=phase_num,
        profile_tags=frozenset(_split(tags)),
        required_vars=tuple(_split(required)),
        dependencies=tuple(_split(deps)),
        top_flags=tuple(_split(flags)),
    )


def write_index(path: Path, descriptors: list[ScriptDescriptor]) -> None:
    """Write the whole index atomically: temp file in the same directory, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [HEADER] + [encode_entry(d) for d in descriptors]
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write("\n".join(lines) + "\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_index(path: Path) -> list[ScriptDescriptor]:
    """Load an index file tolerantly.

    A missing or unreadable file yields an empty list; malformed lines are
    skipped. Both cases are logged as warnings.
    """
    if not path.exists():
        logger.warning("Script index not found at %s; continuing with an empty index", path)
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Script index %s unreadable (%s); continuing with an empty index", path, exc)
        return []

    entries: list[ScriptDescriptor] = []
    bad = 0
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip() or line.startswith("#"):
            continue
        try:
            entries.append(decode_entry(line))
        except (IndexFormatError, ValueError) as exc:
            bad += 1
            logger.warning("Skipping malformed index line %d in %s: %s", lineno, path, exc)
    if bad:
        logger.warning("Script index %s partially loaded: %d entries, %d skipped", path, len(entries), bad)
    return entries
