# src/pipeline/summary.py - v1
"""End-of-run recap printed to stdout."""

from __future__ import annotations

from pathlib import Path

from omniforge.pipeline.runner import RunResult

RULE = "=" * 64


def _duration(ms: int) -> str:
    seconds = ms // 1000
    if seconds < 60:
        return f"{ms / 1000:.1f}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds:02d}s"


def render_summary(
    result: RunResult,
    log_file: Path | None = None,
    continue_on_error: bool = False,
) -> str:
    """Human-readable recap: totals, per-phase table, failures, recovery hints."""
    mode = "dry-run" if result.dry_run else ("continue" if continue_on_error else "fail-fast")
    outcomes = result.script_outcomes
    lines = [
        RULE,
        "  OmniForge run summary" + ("  [DRY RUN]" if result.dry_run else ""),
        RULE,
        f"  Status:    {'SUCCESS' if result.success else 'FAILED'}",
        f"  Mode:      {mode}",
        f"  Duration:  {_duration(result.duration_ms)}",
        f"  Phases:    {len(result.phases)}",
        f"  Scripts:   {len(outcomes)} "
        f"({len(result.completed_scripts)} ok, {len(result.failed_scripts)} failed, "
        f"{len(result.skipped_scripts)} skipped)",
        "",
        f"  {'Phase':<34}{'OK':>6}{'FAIL':>6}{'SKIP':>6}  Status",
    ]
    for phase in result.phases:
        label = f"{phase.number}. {phase.name}"[:33]
        status = phase.status if not phase.reason else f"{phase.status} ({phase.reason})"
        lines.append(
            f"  {label:<34}{phase.ok:>6}{phase.failed:>6}{phase.skipped:>6}  {status}"
        )

    failed = [s for s in outcomes if s.status == "failed"]
    if failed or result.errors:
        lines += ["", "  Failures:"]
        for s in failed:
            lines.append(f"    - {s.script_id}: {s.reason}")
        for err in result.errors:
            if not any(err.startswith(f"{s.script_id}:") for s in failed):
                lines.append(f"    - {err}")
        lines += [
            "",
            "  Recovery:",
            "    omni run                 resume; completed scripts are skipped",
            "    omni run --force         rerun everything",
            "    omni status --clear ID   forget one script, then rerun",
        ]
    if result.stopped_early:
        lines += ["", "  Run stopped early (fail-fast). Use --continue to keep going."]
    if log_file is not None:
        lines += ["", f"  Log file:  {log_file}"]
    lines.append(RULE)
    return "\n".join(lines)
