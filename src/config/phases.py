# src/config/phases.py - v1
"""Declarative phase configuration.

Phases run in ascending numeric order. Each script list below is an ordering
hint: the index is the source of truth for which scripts exist, the list only
decides where a known script sits within its phase.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PhaseDependency(BaseModel):
    """External binary a phase needs, with an install hint (URL or 'builtin')."""

    binary: str
    hint: str = ""

    @classmethod
    def parse(cls, text: str) -> PhaseDependency:
        """Parse ``binary:hint`` where the hint may itself contain colons."""
        binary, _, hint = text.partition(":")
        return cls(binary=binary.strip(), hint=hint.strip())


class PhaseDefinition(BaseModel):
    """Static description of one phase."""

    number: int = Field(ge=0)
    name: str
    description: str = ""
    enabled: bool = True
    timeout_seconds: int = 600
    prereq_mode: Literal["strict", "warn"] = "warn"
    docker_required: bool = False
    dependencies: list[PhaseDependency] = Field(default_factory=list)
    scripts: list[str] = Field(default_factory=list)


def _deps(*specs: str) -> list[PhaseDependency]:
    return [PhaseDependency.parse(s) for s in specs]


DEFAULT_PHASES: list[PhaseDefinition] = [
    PhaseDefinition(
        number=0,
        name="Project Foundation",
        description="Initialize Next.js, TypeScript, project structure",
        timeout_seconds=300,
        prereq_mode="strict",
        docker_required=True,
        dependencies=_deps(
            "git:https://git-scm.com",
            "node:https://nodejs.org",
            "pnpm:https://pnpm.io",
        ),
        scripts=[
            "_combined_scripts/install-package-package-json.sh",
            "_combined_scripts/install-package-next.sh",
            "_combined_scripts/install-package-typescript.sh",
            "foundation/init-nextjs.sh",
            "foundation/init-typescript.sh",
            "foundation/init-package-engines.sh",
            "foundation/init-directory-structure.sh",
        ],
    ),
    PhaseDefinition(
        number=1,
        name="Infrastructure & Database",
        description="Docker, PostgreSQL, Drizzle, environment setup",
        timeout_seconds=1200,
        prereq_mode="strict",
        docker_required=True,
        dependencies=_deps("docker:https://docker.com", "psql:https://postgresql.org"),
        scripts=[
            "_combined_scripts/install-system-prereqs.sh",
            "_combined_scripts/install-package-drizzle.sh",
            "docker/dockerfile-multistage.sh",
            "docker/docker-compose-pg.sh",
            "docker/docker-pnpm-cache.sh",
            "db/drizzle-setup.sh",
            "db/drizzle-schema-base.sh",
            "db/drizzle-migrations.sh",
            "db/db-client-index.sh",
            "env/env-validation.sh",
            "env/zod-schemas-base.sh",
            "env/rate-limiter.sh",
            "env/server-action-template.sh",
        ],
    ),
    PhaseDefinition(
        number=2,
        name="Core Features",
        description="Authentication, AI, state management, background jobs, logging",
        timeout_seconds=900,
        prereq_mode="warn",
        docker_required=True,
        dependencies=_deps("openssl:builtin"),
        scripts=[
            "_combined_scripts/install-package-ai.sh",
            "_combined_scripts/install-package-zustand.sh",
            "_combined_scripts/install-package-pgboss.sh",
            "_combined_scripts/install-package-pino.sh",
            "_combined_scripts/install-package-auth.sh",
            "auth/authjs-setup.sh",
            "auth/auth-routes.sh",
            "ai/vercel-ai-setup.sh",
            "ai/prompts-structure.sh",
            "ai/chat-feature-scaffold.sh",
            "state/zustand-setup.sh",
            "state/session-state-lib.sh",
            "jobs/pgboss-setup.sh",
            "jobs/job-worker-template.sh",
            "observability/pino-logger.sh",
            "observability/pino-pretty-dev.sh",
        ],
    ),
    PhaseDefinition(
        number=3,
        name="User Interface",
        description="shadcn/ui components, printing, component organization",
        timeout_seconds=600,
        docker_required=True,
        scripts=[
            "_combined_scripts/install-package-tailwind.sh",
            "_combined_scripts/install-package-react-to-print.sh",
            "ui/shadcn-init.sh",
            "ui/react-to-print.sh",
            "ui/components-structure.sh",
        ],
    ),
    PhaseDefinition(
        number=4,
        name="Extensions & Quality",
        description="Intelligence, exports, testing, code quality",
        timeout_seconds=1800,
        docker_required=True,
        scripts=[
            "_combined_scripts/install-package-export.sh",
            "_combined_scripts/install-package-testing.sh",
            "_combined_scripts/install-package-quality.sh",
            "intelligence/melissa-prompts.sh",
            "intelligence/roi-engine.sh",
            "intelligence/confidence-engine.sh",
            "intelligence/hitl-review-queue.sh",
            "export/export-system.sh",
            "export/pdf-export.sh",
            "export/excel-export.sh",
            "export/markdown-export.sh",
            "export/json-export.sh",
            "monitoring/health-endpoints.sh",
            "monitoring/settings-ui.sh",
            "monitoring/feature-flags.sh",
            "testing/vitest-setup.sh",
            "testing/playwright-setup.sh",
            "testing/test-directory.sh",
            "quality/eslint-prettier.sh",
            "quality/husky-lintstaged.sh",
            "quality/ts-strict-mode.sh",
            "quality/verify-build.sh",
        ],
    ),
    PhaseDefinition(
        number=5,
        name="User-Defined",
        description="Your own scripts, run after the core phases",
        enabled=False,
    ),
]

# Script profile tags gated by a feature toggle. A script is skipped when any
# of its tags maps to a disabled toggle. Tags spelled as ENABLE_* map directly.
FEATURE_TAGS: dict[str, str] = {
    "docker": "enable_docker",
    "db": "enable_database",
    "auth": "enable_authjs",
    "ai": "enable_ai_sdk",
    "jobs": "enable_pg_boss",
    "state": "enable_zustand",
    "export": "enable_pdf_exports",
    "testing": "enable_test_infra",
    "quality": "enable_code_quality",
}


# Phase dependencies that only matter while their feature toggle is on.
DEPENDENCY_FEATURES: dict[str, str] = {
    "docker": "enable_docker",
    "psql": "enable_database",
}


def feature_for_dependency(binary: str) -> str | None:
    """Settings field gating *binary*, or None when it is always needed."""
    return DEPENDENCY_FEATURES.get(binary)


def feature_for_tag(tag: str) -> str | None:
    """Settings field gating *tag*, or None when the tag is ungated."""
    if tag.upper().startswith("ENABLE_"):
        return tag.lower()
    return FEATURE_TAGS.get(tag)


def phase_map(definitions: list[PhaseDefinition] | None = None) -> dict[int, PhaseDefinition]:
    """Index phase definitions by number."""
    return {d.number: d for d in (definitions or DEFAULT_PHASES)}
