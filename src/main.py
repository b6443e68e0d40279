# src/main.py - v1
"""CLI entry point.

Usage:
    omni run [--dry-run] [--force] [--phase N] [--continue]
    omni phase <N> [options]
    omni status [--clear [ID ...]]
    omni list
    omni index
    omni build
    omni reset [--yes]
    omni clean [--level 1-4]
    omni stack {up,down,ps}
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from omniforge.config.run_config import RunConfig, build_run_config
from omniforge.config.settings import ConfigurationError, load_settings
from omniforge.logging.context import set_run_context
from omniforge.logging.logger import setup_logging
from omniforge.version import __version__

if TYPE_CHECKING:
    from omniforge.pipeline.plan import ExecutionPlan
    from omniforge.state.base_state_store import BaseStateStore
    from omniforge.state.download_cache import PackagePrefetcher

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(_console_level(args, "INFO"))

    try:
        args.config = _load_config(args)
    except (ConfigurationError, ValidationError) as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    _setup_logging(_console_level(args, args.config.settings.log_level), args.config)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-n", "--dry-run", action="store_true",
        help="Show what would run without executing or recording anything",
    )
    common.add_argument(
        "-f", "--force", action="store_true",
        help="Ignore completion records and rerun every script",
    )
    common.add_argument(
        "-p", "--phase", type=int, default=None,
        help="Only run this phase number",
    )
    common.add_argument(
        "--continue", dest="continue_on_error", action="store_const", const=True,
        default=None, help="Keep going after a failed script",
    )
    common.add_argument(
        "-y", "--yes", action="store_true",
        help="Answer yes to confirmations (and add placeholders for missing variables)",
    )
    common.add_argument(
        "--path", type=Path, default=None,
        help="Project root (overrides PROJECT_ROOT)",
    )
    verbosity = common.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging",
    )
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors",
    )

    parser = argparse.ArgumentParser(
        prog="omni",
        description=f"OmniForge v{__version__}: phased application bootstrapper",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_run = subparsers.add_parser(
        "run", parents=[common], help="Run all phases (resumes by default)",
    )
    p_run.add_argument(
        "--reindex", action="store_true", help="Rebuild the script index even if fresh",
    )
    p_run.set_defaults(func=_cmd_run)

    p_phase = subparsers.add_parser(
        "phase", parents=[common], help="Run a single phase",
    )
    p_phase.add_argument("phase_number", type=int, help="Phase number")
    p_phase.add_argument(
        "--reindex", action="store_true", help="Rebuild the script index even if fresh",
    )
    p_phase.set_defaults(func=_cmd_run)

    p_status = subparsers.add_parser(
        "status", parents=[common], help="Show or clear completion state",
    )
    p_status.add_argument(
        "--clear", nargs="*", metavar="ID", default=None,
        help="Clear the given script ids (all when none given)",
    )
    p_status.set_defaults(func=_cmd_status)

    p_list = subparsers.add_parser(
        "list", parents=[common], help="List indexed scripts by phase",
    )
    p_list.set_defaults(func=_cmd_list)

    p_index = subparsers.add_parser(
        "index", parents=[common], help="Rebuild the script index and check variables",
    )
    p_index.set_defaults(func=_cmd_index)

    p_build = subparsers.add_parser(
        "build", parents=[common], help="Install, lint, typecheck and build the app",
    )
    p_build.set_defaults(func=_cmd_build)

    p_reset = subparsers.add_parser(
        "reset", parents=[common], help="Back up and delete the generated deployment",
    )
    p_reset.set_defaults(func=_cmd_reset)

    p_clean = subparsers.add_parser(
        "clean", parents=[common], help="Remove generated artifacts",
    )
    p_clean.add_argument(
        "--level", type=int, choices=[1, 2, 3, 4], default=1,
        help="1 quick, 2 full, 3 deep, 4 nuclear (default: 1)",
    )
    p_clean.set_defaults(func=_cmd_clean)

    p_stack = subparsers.add_parser(
        "stack", parents=[common], help="Drive the docker compose stack",
    )
    p_stack.add_argument("action", choices=["up", "down", "ps"])
    p_stack.set_defaults(func=_cmd_stack)

    return parser


def _load_config(args: argparse.Namespace) -> RunConfig:
    overrides: dict[str, object] = {}
    if args.path is not None:
        # Settings otherwise read .env from the working directory.
        overrides["project_root"] = args.path
        overrides["_env_file"] = args.path.expanduser() / ".env"
    settings = load_settings(**overrides)
    phase = getattr(args, "phase_number", None)
    if phase is None:
        phase = args.phase
    return build_run_config(
        settings,
        dry_run=args.dry_run,
        force=args.force,
        phase=phase,
        continue_on_error=args.continue_on_error,
        assume_yes=args.yes,
        verbosity=1 if args.verbose else (-1 if args.quiet else 0),
    )


async def _cmd_run(args: argparse.Namespace) -> int:
    """Preflight, index, plan, execute and print the recap."""
    from omniforge.config.phases import DEFAULT_PHASES
    from omniforge.pipeline.executor import SubprocessExecutor, base_environment
    from omniforge.pipeline.plan import build_plan
    from omniforge.pipeline.runner import PhaseRunner
    from omniforge.pipeline.summary import render_summary
    from omniforge.preflight.checker import DependencyPreflight
    from omniforge.registry.indexer import ScriptIndexer
    from omniforge.state.state_factory import create_state_store

    config: RunConfig = args.config
    run_id = uuid.uuid4().hex[:12]
    set_run_context(run_id)

    indexer = ScriptIndexer(config.index_file, config.settings.index_max_age_seconds)
    indexer.start_background(config.scripts_dir, rebuild=args.reindex)
    _print_banner(config)

    report = await DependencyPreflight(config, phases=DEFAULT_PHASES).run()
    if not report.ok:
        await indexer.wait()
        for finding in report.fatals:
            logger.error("Preflight: %s", finding.message)
        logger.error("Preflight failed; no phase was run")
        return 1

    descriptors = await indexer.wait()
    if not descriptors:
        logger.warning("No scripts indexed from %s", config.scripts_dir)

    environ = {**os.environ, **base_environment(config)}
    missing = indexer.missing_vars(environ, phase=config.phase)
    if missing:
        if config.dry_run:
            logger.warning("Missing required variables (dry-run): %s", ", ".join(missing))
        elif config.assume_yes:
            indexer.inject_missing_vars(config.project_root / ".env", environ, config.phase)
        else:
            logger.error(
                "Missing required variables: %s. Set them in %s or rerun with --yes "
                "to add CHANGE_ME placeholders.",
                ", ".join(missing),
                config.project_root / ".env",
            )
            return 1

    plan = build_plan(descriptors, DEFAULT_PHASES, phase=config.phase)
    store = create_state_store(config)
    prefetcher = _start_prefetch(config, plan, store)
    wait_timeout = config.settings.download_wait_timeout

    async def before_phase(number: int) -> None:
        # Phase 0 runs while packages download; later phases install from the cache.
        if prefetcher is not None and number > 0:
            await prefetcher.wait(wait_timeout)

    runner = PhaseRunner(config, store, SubprocessExecutor(config), before_phase=before_phase)
    result = await runner.run(plan)
    if prefetcher is not None:
        await prefetcher.wait(wait_timeout)

    print(render_summary(result, config.log_file, config.continue_on_error))
    return 0 if result.success else 1


def _start_prefetch(
    config: RunConfig, plan: ExecutionPlan, store: BaseStateStore
) -> PackagePrefetcher | None:
    """Start downloading the dependencies of every script still to run."""
    from omniforge.state.download_cache import DownloadCache, PackagePrefetcher

    if not config.settings.preflight_download_packages:
        return None
    packages = [
        dep
        for phase in plan.phases
        if phase.definition.enabled
        for script in phase.scripts
        if config.script_enabled(script.profile_tags)
        and (config.force or not store.is_completed(script.id))
        for dep in script.dependencies
    ]
    if config.dry_run:
        if packages:
            logger.info("[dry-run] Would prefetch %d package(s)", len(set(packages)))
        return None
    prefetcher = PackagePrefetcher(
        DownloadCache(config.cache_dir, config.settings.omniforge_cache_max_age)
    )
    return prefetcher if prefetcher.start(packages) else None


async def _cmd_status(args: argparse.Namespace) -> int:
    """Show completion records, or clear some or all of them."""
    from omniforge.state.state_factory import create_state_store

    config: RunConfig = args.config
    store = create_state_store(config)

    if args.clear is not None:
        if config.dry_run:
            targets = args.clear or [r.script_id for r in store.records()]
            print(f"[dry-run] Would clear: {', '.join(targets) or 'nothing'}")
            return 0
        if not args.clear:
            count = store.clear_all()
            print(f"Cleared {count} completion record(s)")
            return 0
        unknown = [sid for sid in args.clear if not store.clear(sid)]
        for sid in args.clear:
            if sid not in unknown:
                print(f"Cleared {sid}")
        if unknown:
            logger.warning("No completion record for: %s", ", ".join(unknown))
        return 0

    records = store.records()
    print(f"\nCompletion state ({config.state_file}):")
    if not records:
        print("  (no scripts completed yet)")
    for record in records:
        print(f"  {record.completed_at:%Y-%m-%d %H:%M:%S}  {record.script_id}")
    print(f"\n  Total: {len(records)}")
    return 0


async def _cmd_list(args: argparse.Namespace) -> int:
    """List indexed scripts grouped by phase, with completion markers."""
    from omniforge.config.phases import DEFAULT_PHASES
    from omniforge.pipeline.plan import build_plan
    from omniforge.registry.indexer import ScriptIndexer
    from omniforge.state.state_factory import create_state_store

    config: RunConfig = args.config
    indexer = ScriptIndexer(config.index_file, config.settings.index_max_age_seconds)
    try:
        descriptors = indexer.ensure_index(config.scripts_dir)
    except ValueError as exc:
        logger.warning("%s; using existing index", exc)
        descriptors = indexer.load()

    store = create_state_store(config)
    plan = build_plan(descriptors, DEFAULT_PHASES, phase=config.phase)
    for phase in plan.phases:
        state = "" if phase.definition.enabled else "  [disabled]"
        print(f"\nPhase {phase.number}: {phase.name}{state}")
        if not phase.scripts:
            print("  (no scripts)")
        for script in phase.scripts:
            mark = "x" if store.is_completed(script.id) else " "
            gate = "" if config.script_enabled(script.profile_tags) else "  (feature off)"
            print(f"  [{mark}] {script.id}{gate}")
    print(f"\n{plan.total_scripts} script(s) in {len(plan.phases)} phase(s)")
    return 0


async def _cmd_index(args: argparse.Namespace) -> int:
    """Rebuild the index and report required variables."""
    from omniforge.pipeline.executor import base_environment
    from omniforge.registry.indexer import ScriptIndexer

    config: RunConfig = args.config
    indexer = ScriptIndexer(config.index_file, config.settings.index_max_age_seconds)
    descriptors = indexer.build(config.scripts_dir)

    environ = {**os.environ, **base_environment(config)}
    required = indexer.required_vars(config.phase)
    missing = set(indexer.missing_vars(environ, config.phase))
    print(f"\nIndexed {len(descriptors)} script(s) into {config.index_file}")
    print(f"Required variables ({len(required)}):")
    for name in required:
        print(f"  {'MISSING ' if name in missing else 'ok      '}{name}")
    if indexer.warnings:
        print(f"\n{len(indexer.warnings)} warning(s); see the log for details")
    return 1 if missing else 0


async def _cmd_build(args: argparse.Namespace) -> int:
    from omniforge.maintenance.build import build_project

    await build_project(args.config)
    print("\nBuild verified: install, lint, typecheck and build passed")
    return 0


async def _cmd_reset(args: argparse.Namespace) -> int:
    """Back up and remove the generated deployment after confirmation."""
    from omniforge.maintenance.reset import reset_deployment

    config: RunConfig = args.config
    if not config.dry_run and not config.assume_yes:
        if not _confirm(f"Delete the generated deployment in {config.project_root}?"):
            print("Reset cancelled")
            return 1

    report = reset_deployment(config)
    if report.backup_dir is not None:
        print(f"Backup: {report.backup_dir}")
    verb = "Would remove" if report.dry_run else "Removed"
    print(f"{verb} {len(report.removed)} path(s)")
    return 0


async def _cmd_clean(args: argparse.Namespace) -> int:
    from omniforge.maintenance.reset import CLEAN_LEVELS, clean
    from omniforge.stack.compose import ComposeStack

    config: RunConfig = args.config
    if args.level >= 2 and not config.dry_run and not config.assume_yes:
        if not _confirm(f"Run a {CLEAN_LEVELS[args.level]} clean of {config.project_root}?"):
            print("Clean cancelled")
            return 1

    stack = ComposeStack(config) if args.level >= 4 else None
    report = await clean(config, args.level, stack=stack)
    verb = "Would remove" if report.dry_run else "Removed"
    print(f"{verb} {len(report.removed)} path(s)")
    for path in report.removed:
        print(f"  {path}")
    return 0


async def _cmd_stack(args: argparse.Namespace) -> int:
    from omniforge.stack.compose import ComposeStack

    stack = ComposeStack(args.config)
    result = await getattr(stack, args.action)()
    if result.stdout:
        print(result.stdout.rstrip())
    return 0


def _confirm(question: str) -> bool:
    if not sys.stdin.isatty():
        logger.error("%s Refusing without a terminal; pass --yes", question)
        return False
    answer = input(f"{question} Type 'yes' to continue: ")
    return answer.strip().lower() == "yes"


def _print_banner(config: RunConfig) -> None:
    mode = "DRY RUN" if config.dry_run else ("force" if config.force else "resume")
    print(f"OmniForge v{__version__}")
    print(f"  Project:  {config.project_root}")
    print(f"  Profile:  {config.profile or '(defaults)'}")
    print(f"  Mode:     {mode}, {'continue' if config.continue_on_error else 'fail-fast'}")
    if config.phase is not None:
        print(f"  Phase:    {config.phase}")
    print()


def _console_level(args: argparse.Namespace, default: str) -> str:
    if args.verbose:
        return "DEBUG"
    if args.quiet:
        return "WARNING"
    return default


def _setup_logging(level: str, config: RunConfig | None = None) -> None:
    """Configure logging for CLI usage (file logging once config is known)."""
    if config is None:
        setup_logging(level=level, log_format="text")
        return
    log_file = None if config.dry_run else str(config.log_file)
    setup_logging(
        level=level,
        log_format=config.settings.log_format,
        log_file=log_file,
        rotation=config.settings.log_rotation,
        retention=config.settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
