# src/config/run_config.py - v1
"""Immutable per-invocation configuration.

Merges, lowest precedence first: built-in defaults, the selected stack
profile, values set in the environment or .env, then CLI flags. Built once
by build_run_config() and read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from omniforge.config.phases import feature_for_tag
from omniforge.config.profiles import resolve_profile
from omniforge.config.settings import Settings


@dataclass(frozen=True)
class RunConfig:
    """Read-only view of everything a run needs to know."""

    settings: Settings
    project_root: Path
    scripts_dir: Path
    state_file: Path
    index_file: Path
    log_file: Path
    cache_dir: Path
    features: Mapping[str, bool] = field(default_factory=dict)
    dry_run: bool = False
    force: bool = False
    phase: int | None = None
    continue_on_error: bool = False
    assume_yes: bool = False
    verbosity: int = 0
    profile: str | None = None

    def feature_enabled(self, tag: str) -> bool:
        """Whether a script carrying profile tag *tag* may run."""
        flag = feature_for_tag(tag)
        if flag is None:
            return True
        return self.features.get(flag, True)

    def script_enabled(self, tags: frozenset[str] | set[str]) -> bool:
        return all(self.feature_enabled(t) for t in tags)

    def disabled_tag(self, tags: frozenset[str] | set[str]) -> str | None:
        """First tag (sorted) that disables a script, if any."""
        for tag in sorted(tags):
            if not self.feature_enabled(tag):
                return tag
        return None


def _resolve(root: Path, path: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else root / path


def build_run_config(
    settings: Settings,
    *,
    dry_run: bool = False,
    force: bool = False,
    phase: int | None = None,
    continue_on_error: bool | None = None,
    assume_yes: bool = False,
    verbosity: int = 0,
) -> RunConfig:
    """Freeze settings plus CLI flags into a RunConfig.

    Args:
        settings: Loaded Settings (environment and .env already applied).
        dry_run: Log actions without executing or recording anything.
        force: Ignore completion records.
        phase: Restrict the run to a single phase number.
        continue_on_error: Override EXECUTION_MODE when not None.
        assume_yes: Answer yes to every confirmation.
        verbosity: -1 quiet, 0 normal, 1 verbose.

    Returns:
        Frozen RunConfig.

    Raises:
        ConfigurationError: If the selected profile is unknown.
    """
    features = settings.feature_flags()
    profile_name: str | None = None
    if settings.stack_profile:
        profile = resolve_profile(settings.stack_profile)
        profile_name = profile.name
        explicit = settings.model_fields_set
        for flag, value in profile.overrides.items():
            if flag not in explicit:
                features[flag] = value

    root = settings.project_root.expanduser().resolve()

    return RunConfig(
        settings=settings,
        project_root=root,
        scripts_dir=_resolve(root, settings.scripts_dir),
        state_file=_resolve(root, settings.state_file),
        index_file=_resolve(root, settings.index_file),
        log_file=_resolve(root, settings.log_file),
        cache_dir=settings.omniforge_cache_dir.expanduser(),
        features=MappingProxyType(features),
        dry_run=dry_run,
        force=force or settings.bootstrap_resume_mode == "force",
        phase=phase,
        continue_on_error=(
            settings.continue_on_error if continue_on_error is None else continue_on_error
        ),
        assume_yes=assume_yes or settings.non_interactive,
        verbosity=verbosity,
        profile=profile_name,
    )
