# src/registry/metadata.py - v1
"""Parse the ``#!meta`` header block of an installer script.

The block is a run of comment lines between ``#!meta`` and ``#!endmeta``.
Stripping the leading ``# `` from each line leaves a YAML document:

    #!meta
    # id: quality/eslint-prettier.sh
    # phase: 4
    # profile_tags:
    #   - quality
    # required_vars:
    #   - PROJECT_ROOT
    # dependencies:
    #   packages: [eslint, prettier]
    #   dev_packages: []
    #!endmeta
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from omniforge.core.models import ScriptDescriptor
from omniforge.registry.index_file import IndexFormatError, encode_entry

META_START = "#!meta"
META_END = "#!endmeta"

# Only the head of a script is searched for the block.
MAX_HEADER_LINES = 80


class MetadataError(ValueError):
    """Raised when a metadata block exists but cannot be turned into a descriptor."""


def extract_block(text: str) -> str | None:
    """Return the YAML body of the first metadata block, or None if absent.

    Raises:
        MetadataError: If the block is opened but never closed.
    """
    lines = text.splitlines()[:MAX_HEADER_LINES]
    body: list[str] | None = None
    for line in lines:
        stripped = line.strip()
        if body is None:
            if stripped == META_START:
                body = []
            continue
        if stripped == META_END:
            return "\n".join(body)
        if not stripped.startswith("#"):
            raise MetadataError("metadata block interrupted by a non-comment line")
        content = stripped[1:]
        body.append(content[1:] if content.startswith(" ") else content)
    if body is not None:
        raise MetadataError(f"metadata block missing {META_END}")
    return None


def parse_metadata(text: str) -> dict[str, Any] | None:
    """Parse the metadata block of *text* into a mapping.

    Returns:
        Parsed mapping, or None when the script has no block.

    Raises:
        MetadataError: If the block is malformed.
    """
    body = extract_block(text)
    if body is None:
        return None
    try:
        data = yaml.safe_load(body) or {}
    except yaml.YAMLError as exc:
        raise MetadataError(f"invalid YAML in metadata block: {exc}") from exc
    if not isinstance(data, dict):
        raise MetadataError("metadata block must be a mapping")
    return data


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    raise MetadataError(f"expected a list, got {type(value).__name__}")


def _dependencies(value: Any) -> list[str]:
    # Either a flat list or a mapping such as {packages: [...], dev_packages: [...]}.
    if isinstance(value, dict):
        deps: list[str] = []
        for key in sorted(value):
            deps.extend(_as_list(value[key]))
        return deps
    return _as_list(value)


def descriptor_from_metadata(data: dict[str, Any], rel_path: str) -> ScriptDescriptor:
    """Build a ScriptDescriptor from a parsed metadata mapping.

    ``required_vars`` falls back to ``uses_from_omni_settings`` when absent.

    Raises:
        MetadataError: If ``phase`` is missing or not a non-negative integer,
            a field has the wrong type, or a value cannot be stored in the index.
    """
    phase = data.get("phase")
    if isinstance(phase, bool) or phase is None:
        raise MetadataError("metadata is missing 'phase'")
    try:
        phase_num = int(phase)
    except (TypeError, ValueError) as exc:
        raise MetadataError(f"phase must be an integer, got {phase!r}") from exc
    if phase_num < 0:
        raise MetadataError(f"phase must be >= 0, got {phase_num}")

    required = data.get("required_vars")
    if required is None:
        required = data.get("uses_from_omni_settings")

    # Keep declaration order, drop duplicates.
    required_vars = list(dict.fromkeys(_as_list(required)))

    try:
        descriptor = ScriptDescriptor(
            path=rel_path,
            id=str(data.get("id") or rel_path),
            phase=phase_num,
            profile_tags=frozenset(_as_list(data.get("profile_tags"))),
            required_vars=tuple(required_vars),
            dependencies=tuple(_dependencies(data.get("dependencies"))),
            top_flags=tuple(_as_list(data.get("top_flags"))),
            name=data.get("name"),
            phase_name=data.get("phase_name"),
        )
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise MetadataError(f"invalid metadata field(s): {fields}") from exc

    try:
        encode_entry(descriptor)
    except IndexFormatError as exc:
        raise MetadataError(str(exc)) from exc
    return descriptor


def parse_script(path: Path, root: Path) -> ScriptDescriptor | None:
    """Read *path* and build its descriptor.

    Returns:
        Descriptor, or None when the file has no metadata block.

    Raises:
        MetadataError: If the block is malformed.
        OSError: If the file cannot be read.
    """
    text = path.read_text(encoding="utf-8", errors="replace")
    data = parse_metadata(text)
    if data is None:
        return None
    return descriptor_from_metadata(data, path.relative_to(root).as_posix())
