# src/pipeline/runner.py - v1
"""Phase runner: execute planned scripts with resume, dry-run and error policy.

Walks the ExecutionPlan phase by phase in ascending order and, within a
phase, script by script in list order. For each script:
  - completion record present and not forced -> skip
  - profile tag gated off by a feature toggle -> skip
  - dry-run -> log the action only, no execution, no record
  - otherwise execute; success writes a completion record

A failure stops the run under fail-fast and is recorded under continue.
Script failures never raise out of run(); they become failed outcomes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable

from omniforge.config.phases import PhaseDefinition, PhaseDependency, feature_for_dependency
from omniforge.core.models import PhaseOutcome, ScriptDescriptor, ScriptOutcome
from omniforge.core.process import which
from omniforge.logging.context import set_phase_context, set_script_context
from omniforge.pipeline.plan import ExecutionPlan

if TYPE_CHECKING:
    from omniforge.config.run_config import RunConfig
    from omniforge.pipeline.executor import ScriptExecutor
    from omniforge.state.base_state_store import BaseStateStore

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of a full orchestrator run."""

    success: bool = True
    dry_run: bool = False
    phases: list[PhaseOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    stopped_early: bool = False

    def _ids(self, status: str) -> list[str]:
        return [s.script_id for p in self.phases for s in p.scripts if s.status == status]

    @property
    def completed_scripts(self) -> list[str]:
        return self._ids("completed")

    @property
    def failed_scripts(self) -> list[str]:
        return self._ids("failed")

    @property
    def skipped_scripts(self) -> list[str]:
        return self._ids("skipped")

    @property
    def script_outcomes(self) -> list[ScriptOutcome]:
        return [s for p in self.phases for s in p.scripts]


class PhaseRunner:
    """Execute an ExecutionPlan against a state store.

    Args:
        config: Frozen run configuration (dry_run, force, error policy).
        store: Completion state store; the only place records are read or written.
        executor: Launches a single script.
        locate: Binary lookup used for phase dependency checks.
        before_phase: Awaited with the phase number before each phase starts.
    """

    def __init__(
        self,
        config: RunConfig,
        store: BaseStateStore,
        executor: ScriptExecutor,
        locate: Callable[[str], str | None] | None = None,
        before_phase: Callable[[int], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._executor = executor
        self._locate = locate or which
        self._before_phase = before_phase

    async def run(self, plan: ExecutionPlan) -> RunResult:
        """Execute every phase of *plan* in order.

        Returns:
            RunResult with per-phase outcomes.
        """
        start_ns = time.monotonic_ns()
        result = RunResult(dry_run=self._config.dry_run)
        phases = sorted(plan.phases, key=lambda p: p.number)

        try:
            for planned in phases:
                set_phase_context(planned.number)
                if self._before_phase is not None:
                    await self._before_phase(planned.number)
                outcome = await self._run_phase(planned.definition, planned.scripts, result)
                result.phases.append(outcome)
                if outcome.status == "failed":
                    result.success = False
                    if not self._config.continue_on_error:
                        logger.error(
                            "Fail-fast: stopping after phase %d (%s)",
                            planned.number,
                            planned.name,
                        )
                        result.stopped_early = True
                        break
        finally:
            set_phase_context(None)

        result.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        logger.info(
            "Run complete: %d completed, %d failed, %d skipped, %dms",
            len(result.completed_scripts),
            len(result.failed_scripts),
            len(result.skipped_scripts),
            result.duration_ms,
        )
        return result

    async def _run_phase(
        self,
        definition: PhaseDefinition,
        scripts: list[ScriptDescriptor],
        result: RunResult,
    ) -> PhaseOutcome:
        outcome = PhaseOutcome(number=definition.number, name=definition.name)

        if not definition.enabled:
            logger.info("Phase %d (%s) is disabled, skipping", definition.number, definition.name)
            outcome.status = "skipped"
            outcome.reason = "disabled"
            return outcome

        problem = self._check_phase_prereqs(definition)
        if problem:
            logger.error("Phase %d (%s): %s", definition.number, definition.name, problem)
            outcome.status = "failed"
            outcome.reason = problem
            result.errors.append(f"phase {definition.number}: {problem}")
            return outcome

        if not scripts:
            logger.warning("No scripts indexed for phase %d (%s)", definition.number, definition.name)
            return outcome

        logger.info(
            "Phase %d: %s (%d scripts)", definition.number, definition.name, len(scripts)
        )
        for script in scripts:
            set_script_context(script.id)
            try:
                script_outcome = await self._run_script(script, definition)
            finally:
                set_script_context(None)
            outcome.scripts.append(script_outcome)
            if script_outcome.status == "failed":
                outcome.status = "failed"
                result.errors.append(f"{script.id}: {script_outcome.reason}")
                if not self._config.continue_on_error:
                    outcome.reason = f"stopped at {script.id}"
                    break

        if outcome.status == "failed" and not outcome.reason:
            outcome.reason = f"{outcome.failed} script(s) failed"
        return outcome

    async def _run_script(
        self, script: ScriptDescriptor, definition: PhaseDefinition
    ) -> ScriptOutcome:
        outcome = ScriptOutcome(script_id=script.id, phase=script.phase)

        if not self._config.force and self._store.is_completed(script.id):
            logger.info("SKIP %s (already completed)", script.id)
            return _finish(outcome, "skipped", "already completed")

        disabled = self._config.disabled_tag(script.profile_tags)
        if disabled is not None:
            logger.info("SKIP %s (feature disabled: %s)", script.id, disabled)
            return _finish(outcome, "skipped", f"feature disabled: {disabled}")

        path = script.resolve(self._config.scripts_dir)
        if not path.is_file():
            logger.error("FAIL %s (script not found at %s)", script.id, path)
            return _finish(outcome, "failed", "script not found")

        if self._config.dry_run:
            logger.info("[dry-run] Would run %s", script.id)
            return _finish(outcome, "skipped", "dry-run")

        outcome.status = "running"
        logger.info("RUN  %s", script.id)
        try:
            proc = await self._executor.execute(script, timeout=definition.timeout_seconds)
        except Exception as exc:
            logger.error("FAIL %s (%s)", script.id, exc, exc_info=True)
            return _finish(outcome, "failed", f"could not start: {exc}")

        outcome.exit_code = proc.returncode
        outcome.duration_ms = proc.duration_ms
        if proc.timed_out:
            logger.error("FAIL %s (timed out after %ss)", script.id, definition.timeout_seconds)
            return _finish(outcome, "failed", f"timed out after {definition.timeout_seconds}s")
        if proc.returncode != 0:
            logger.error("FAIL %s (exit code %d)", script.id, proc.returncode)
            return _finish(outcome, "failed", f"exit code {proc.returncode}")

        self._store.mark_completed(script.id)
        logger.info("OK   %s (%dms)", script.id, proc.duration_ms)
        return _finish(outcome, "completed")

    def _check_phase_prereqs(self, definition: PhaseDefinition) -> str | None:
        """Dependency and Docker gate for a phase. Returns a failure reason or None."""
        settings = self._config.settings
        problems: list[str] = []

        # Dependencies are covered by the host preflight when running in the container.
        if not settings.inside_omni_docker:
            missing = [
                d.binary
                for d in self._active_dependencies(definition)
                if not self._locate(d.binary)
            ]
            if missing:
                message = "missing dependencies: " + ", ".join(missing)
                if definition.prereq_mode == "strict":
                    problems.append(message)
                else:
                    logger.warning("Phase %d %s", definition.number, message)

        if definition.docker_required and self._config.features.get("enable_docker", True):
            if settings.docker_exec_mode == "container" and not settings.inside_omni_docker:
                problems.append("requires Docker container mode")
            elif settings.docker_exec_mode == "host" and not self._locate("docker"):
                problems.append("requires Docker; ensure Docker is available")

        if not problems:
            return None
        reason = "; ".join(problems)
        if self._config.dry_run:
            logger.warning("Phase %d %s (continuing in dry-run)", definition.number, reason)
            return None
        return reason

    def _active_dependencies(self, definition: PhaseDefinition) -> list[PhaseDependency]:
        """Phase dependencies whose feature toggle (if any) is on."""
        active: list[PhaseDependency] = []
        for dep in definition.dependencies:
            feature = feature_for_dependency(dep.binary)
            if feature is None or self._config.features.get(feature, True):
                active.append(dep)
        return active


def _finish(outcome: ScriptOutcome, status: str, reason: str = "") -> ScriptOutcome:
    outcome.status = status  # type: ignore[assignment]
    outcome.reason = reason
    return outcome
