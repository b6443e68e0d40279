# src/pipeline/plan.py - v1
"""Execution plan: indexed scripts grouped into ordered phases.

Phases are sorted by number regardless of input order. Within a phase,
scripts named in the phase definition come first, in definition order;
remaining indexed scripts follow in index order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from omniforge.config.phases import PhaseDefinition, phase_map
from omniforge.core.models import ScriptDescriptor

logger = logging.getLogger(__name__)


class PlanError(Exception):
    """Raised when a plan cannot be built (e.g. unknown phase selector)."""


@dataclass
class PlannedPhase:
    definition: PhaseDefinition
    scripts: list[ScriptDescriptor] = field(default_factory=list)

    @property
    def number(self) -> int:
        return self.definition.number

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass
class ExecutionPlan:
    """Ordered phases ready for the runner."""

    phases: list[PlannedPhase] = field(default_factory=list)

    @property
    def total_scripts(self) -> int:
        return sum(len(p.scripts) for p in self.phases)

    @property
    def flat_order(self) -> list[str]:
        """Script ids in execution order."""
        return [s.id for p in self.phases for s in p.scripts]


def _order_within_phase(
    scripts: list[ScriptDescriptor], listed: list[str]
) -> list[ScriptDescriptor]:
    if not listed:
        return scripts
    position = {path: i for i, path in enumerate(listed)}
    known = [s for s in scripts if s.path in position or s.id in position]
    known.sort(key=lambda s: position.get(s.path, position.get(s.id, 0)))
    rest = [s for s in scripts if s not in known]
    return known + rest


def build_plan(
    descriptors: list[ScriptDescriptor],
    definitions: list[PhaseDefinition] | None = None,
    phase: int | None = None,
) -> ExecutionPlan:
    """Group descriptors by phase into an ExecutionPlan.

    Args:
        descriptors: Indexed scripts, in index order.
        definitions: Phase definitions (defaults to the built-in phases).
        phase: Restrict the plan to this phase number.

    Returns:
        ExecutionPlan with phases in ascending numeric order. Phases that have
        scripts but no definition get a generic one.

    Raises:
        PlanError: If *phase* matches neither a definition nor any script.
    """
    defs = phase_map(definitions)
    grouped: dict[int, list[ScriptDescriptor]] = defaultdict(list)
    for d in descriptors:
        grouped[d.phase].append(d)

    numbers = sorted(set(defs) | set(grouped))
    if phase is not None:
        if phase not in numbers:
            raise PlanError(
                f"Unknown phase {phase} (known: {', '.join(map(str, numbers)) or 'none'})"
            )
        numbers = [phase]

    plan = ExecutionPlan()
    for number in numbers:
        definition = defs.get(number)
        if definition is None:
            sample = grouped[number][0]
            definition = PhaseDefinition(
                number=number, name=sample.phase_name or f"Phase {number}"
            )
        scripts = _order_within_phase(grouped.get(number, []), definition.scripts)
        plan.phases.append(PlannedPhase(definition=definition, scripts=scripts))

    logger.debug(
        "Plan: %d phase(s), %d script(s)", len(plan.phases), plan.total_scripts
    )
    return plan
