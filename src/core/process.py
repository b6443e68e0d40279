# src/core/process.py - v1
"""Async external-process helper with consistent command logging.

Every command is logged shell-quoted before it runs. Dry-run logs the
command and returns a successful result without spawning anything.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def which(binary: str) -> str | None:
    """Absolute path of *binary* on PATH, or None."""
    return shutil.which(binary)


async def run_process(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    output_file: Path | None = None,
    dry_run: bool = False,
) -> ProcessResult:
    """Run a command and capture its output.

    Args:
        argv: Command and arguments (no shell).
        cwd: Working directory.
        env: Extra environment variables layered over os.environ.
        timeout: Seconds before the process is killed (None = no limit).
        output_file: When set, stdout and stderr are also appended here.
        dry_run: Log only; return a zero exit code.

    Returns:
        ProcessResult. A missing executable yields returncode 127.
    """
    argv_list = [str(a) for a in argv]
    logger.info("CMD %s", format_argv(argv_list))

    if dry_run:
        return ProcessResult(argv=argv_list, returncode=0)

    start_ns = time.monotonic_ns()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv_list,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(os.environ, **(env or {})),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        logger.error("Executable not found: %s", exc)
        return ProcessResult(argv=argv_list, returncode=127, stderr=str(exc))

    timed_out = False
    try:
        out_b, err_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        timed_out = True
        proc.kill()
        out_b, err_b = await proc.communicate()
        logger.error("Timed out after %ss: %s", timeout, format_argv(argv_list))
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
        raise

    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
    stdout = out_b.decode("utf-8", errors="replace")
    stderr = err_b.decode("utf-8", errors="replace")

    if stdout:
        logger.debug("STDOUT %s", stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if output_file is not None:
        _append_output(output_file, argv_list, stdout, stderr)

    return ProcessResult(
        argv=argv_list,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration_ms,
        timed_out=timed_out,
    )


def _append_output(path: Path, argv: list[str], stdout: str, stderr: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"$ {format_argv(argv)}\n")
        if stdout:
            fh.write(stdout if stdout.endswith("\n") else stdout + "\n")
        if stderr:
            fh.write(stderr if stderr.endswith("\n") else stderr + "\n")
