"""Run external tools while relaying their output to the log.

Each invocation starts one reader thread per pipe (stdout, stderr); both
are joined before the result is returned, so no output is lost and no
thread outlives the process.
"""

from __future__ import annotations

import contextlib
import logging
import os
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

# Lines kept per stream for error reporting
TAIL_LINES = 20


class ToolError(Exception):
    """Raised when an external tool cannot be started."""


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout_tail: list[str] = field(default_factory=list)
    stderr_tail: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def summary(self) -> str:
        """Last lines of stderr (or stdout when stderr is empty)."""
        lines = self.stderr_tail or self.stdout_tail
        return "\n".join(lines[-5:])


def _relay(
    stream: IO[str],
    label: str,
    tail: list[str],
    log: logging.Logger,
) -> None:
    for raw in iter(stream.readline, ""):
        line = raw.rstrip("\n")
        log.info("[%s] %s", label, line)
        tail.append(line)
        if len(tail) > TAIL_LINES:
            del tail[0]
    stream.close()


def run_streaming(
    args: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    label: str = "",
    timeout: float | None = None,
    stdin_data: str | None = None,
    log: logging.Logger | None = None,
) -> CommandResult:
    """Run *args*, logging each output line as ``[label stream] line``.

    Blocks until the process exits. With *timeout*, the process is killed
    once it runs longer and the result is marked ``timed_out``.

    Raises:
        ToolError: If the executable cannot be found or started.
    """
    log = log or logger
    argv = [str(a) for a in args]
    label = label or Path(argv[0]).name
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    start = time.monotonic()
    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
    except OSError as e:
        raise ToolError(f"Failed to start {argv[0]}: {e}") from e

    stdout_tail: list[str] = []
    stderr_tail: list[str] = []
    readers = [
        threading.Thread(
            target=_relay,
            args=(proc.stdout, f"{label} stdout", stdout_tail, log),
            daemon=True,
        ),
        threading.Thread(
            target=_relay,
            args=(proc.stderr, f"{label} stderr", stderr_tail, log),
            daemon=True,
        ),
    ]
    for reader in readers:
        reader.start()

    if stdin_data is not None and proc.stdin is not None:
        with contextlib.suppress(BrokenPipeError):
            proc.stdin.write(stdin_data)
        with contextlib.suppress(BrokenPipeError):
            proc.stdin.close()

    timed_out = False
    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        log.error("%s timed out after %ss, killing it", label, timeout)
        proc.kill()
        returncode = proc.wait()
        timed_out = True

    for reader in readers:
        reader.join()

    return CommandResult(
        args=argv,
        returncode=returncode,
        stdout_tail=stdout_tail,
        stderr_tail=stderr_tail,
        duration_ms=(time.monotonic() - start) * 1000,
        timed_out=timed_out,
    )
