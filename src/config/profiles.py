# src/config/profiles.py - v1
"""Stack profiles: named bundles of feature-toggle overrides.

A profile sits between the built-in defaults and explicitly set environment
variables. Each entry lists every ENABLE_* toggle it controls.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StackProfile:
    """One selectable application profile."""

    name: str
    tagline: str
    description: str
    overrides: dict[str, bool] = field(default_factory=dict)
    recommended: bool = False


def _flags(
    *,
    ai_sdk: bool,
    pg_boss: bool,
    shadcn: bool,
    zustand: bool,
    pdf_exports: bool,
) -> dict[str, bool]:
    return {
        "enable_nextjs": True,
        "enable_database": True,
        "enable_authjs": True,
        "enable_ai_sdk": ai_sdk,
        "enable_pg_boss": pg_boss,
        "enable_shadcn": shadcn,
        "enable_zustand": zustand,
        "enable_pdf_exports": pdf_exports,
        "enable_test_infra": True,
        "enable_code_quality": True,
    }


PROFILES: dict[str, StackProfile] = {
    "AI_AUTOMATION": StackProfile(
        name="AI_AUTOMATION",
        tagline="Intelligent Process Automation",
        description="Document processing portal with RAG and background AI workflows",
        overrides=_flags(
            ai_sdk=True, pg_boss=True, shadcn=True, zustand=False, pdf_exports=False
        ),
    ),
    "FPA_DASHBOARD": StackProfile(
        name="FPA_DASHBOARD",
        tagline="High-Integrity Financial Reporting",
        description="Secure FP&A dashboard with RBAC, charting and PDF/Excel reporting",
        overrides=_flags(
            ai_sdk=False, pg_boss=False, shadcn=True, zustand=True, pdf_exports=True
        ),
    ),
    "COLLAB_EDITOR": StackProfile(
        name="COLLAB_EDITOR",
        tagline="Real-Time Document Control",
        description="Real-time apps with complex client state and async saving",
        overrides=_flags(
            ai_sdk=False, pg_boss=True, shadcn=True, zustand=True, pdf_exports=False
        ),
    ),
    "ERP_GATEWAY": StackProfile(
        name="ERP_GATEWAY",
        tagline="Secure Data Synchronization Layer",
        description="API-only profile for high-volume data sync with an ERP",
        overrides=_flags(
            ai_sdk=False, pg_boss=True, shadcn=False, zustand=False, pdf_exports=False
        ),
    ),
    "ASSET_MANAGER": StackProfile(
        name="ASSET_MANAGER",
        tagline="Excel Replacement / Core CRUD",
        description="Core CRUD template replacing spreadsheets",
        overrides=_flags(
            ai_sdk=False, pg_boss=True, shadcn=True, zustand=True, pdf_exports=True
        ),
        recommended=True,
    ),
    "TECH_STACK": StackProfile(
        name="TECH_STACK",
        tagline="Full Tech Stack Coverage",
        description="Every component enabled, useful for --dry-run smoke checks",
        overrides=_flags(
            ai_sdk=True, pg_boss=True, shadcn=True, zustand=True, pdf_exports=True
        ),
    ),
}


def resolve_profile(name: str) -> StackProfile:
    """Look up a profile by (case-insensitive) name.

    Raises:
        ConfigurationError: If no profile has that name.
    """
    from omniforge.config.settings import ConfigurationError

    profile = PROFILES.get(name.strip().upper())
    if profile is None:
        raise ConfigurationError(
            f"Unknown profile {name!r} (available: {', '.join(sorted(PROFILES))})"
        )
    return profile
