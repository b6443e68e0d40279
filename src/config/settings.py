# src/config/settings.py - v1
"""Typed configuration loaded from the environment and .env via pydantic-settings.

Single source of truth for every deployment-specific toggle. Profile
overrides are applied by config.run_config, between these defaults and the
values explicitly set in the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Orchestrator settings loaded from the environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Paths ===
    project_root: Path = Path(".")
    scripts_dir: Path = Path("tech_stack")
    state_file: Path = Path(".bootstrap_state")
    index_file: Path = Path(".omniforge_index")
    index_max_age_seconds: int = 3600

    # === Execution ===
    execution_mode: Literal["fail-fast", "continue"] = "fail-fast"
    bootstrap_resume_mode: Literal["skip", "force"] = "skip"
    non_interactive: bool = False
    stack_profile: str = ""

    # === Feature toggles ===
    enable_nextjs: bool = True
    enable_database: bool = True
    enable_authjs: bool = True
    enable_ai_sdk: bool = True
    enable_pg_boss: bool = False
    enable_shadcn: bool = True
    enable_zustand: bool = True
    enable_pdf_exports: bool = False
    enable_test_infra: bool = True
    enable_code_quality: bool = True
    enable_docker: bool = True
    enable_redis: bool = False

    # === Preflight ===
    preflight_remediate: bool = True
    preflight_skip_missing: bool = False
    preflight_download_packages: bool = True
    download_wait_timeout: int = 300
    auto_install_git: bool = False
    auto_install_node: bool = True
    auto_install_pnpm: bool = True
    auto_install_docker: bool = True
    auto_install_psql: bool = True
    node_version: str = "20"
    pnpm_version: str = "9"
    min_free_disk_mb: int = 1024
    git_safety: bool = True
    allow_dirty: bool = False

    # === Docker ===
    docker_exec_mode: Literal["host", "container"] = "host"
    docker_compose_file: Path = Path("docker-compose.yml")
    app_service_name: str = "app"
    inside_omni_docker: bool = False

    # === Download cache ===
    omniforge_cache_dir: Path = Path("~/.omniforge/cache")
    omniforge_cache_max_age: int = 604800

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path = Path("logs/omniforge.log")
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("index_max_age_seconds", "omniforge_cache_max_age", "download_wait_timeout")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("age thresholds must be >= 0")
        return v

    @field_validator("stack_profile")
    @classmethod
    def normalize_profile(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        from omniforge.config.profiles import PROFILES

        errors: list[str] = []

        if self.stack_profile and self.stack_profile not in PROFILES:
            errors.append(
                f"STACK_PROFILE {self.stack_profile!r} is unknown "
                f"(available: {', '.join(sorted(PROFILES))})"
            )

        if (
            not self.enable_docker
            and self.docker_exec_mode == "container"
            and not self.inside_omni_docker
        ):
            errors.append(
                "DOCKER_EXEC_MODE=container requires ENABLE_DOCKER=true"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def continue_on_error(self) -> bool:
        return self.execution_mode == "continue"

    def feature_flags(self) -> dict[str, bool]:
        """All ENABLE_* toggles keyed by field name."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name.startswith("enable_")
        }


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI wiring).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
