# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import os
import shutil
import signal

# Bandit: subprocess usage is intentional. Tool commands (git, gh) go through an
# argument-list wrapper; validation steps are user-configured shell commands.
import subprocess  # nosec B404
import threading
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol

from .constants import TIMEOUT_EXIT_CODE
from .models import CommandExecutionResult

if TYPE_CHECKING:
    from subprocess import CompletedProcess as _CompletedProcess  # nosec B404

OUTPUT_ENCODING: Final[str] = "utf-8"
OUTPUT_ERRORS: Final[str] = "replace"
_CANCEL_POLL_INTERVAL: Final[float] = 0.1


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status while ``check`` is true."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str | None,
        stderr: str | None,
    ) -> None:
        super().__init__(
            f"Command '{command[0]}' exited with status {returncode}. stderr: {stderr or '<none>'}",
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class SpawnFunction(Protocol):
    """Callable that runs one shell command and captures its outcome."""

    def __call__(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandExecutionResult: ...


def timeout_message(timeout: float | None) -> str:
    """Return the message appended to stderr when a command times out."""

    return f"Command timed out after {timeout:.1f}s" if timeout is not None else "Command timed out"


def _ensure_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode(OUTPUT_ENCODING, errors=OUTPUT_ERRORS)


def _normalize_args(args: Sequence[str]) -> list[str]:
    if not args:
        msg = "subprocess command requires at least one argument"
        raise ValueError(msg)

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        msg = f"Executable '{head}' was not found on PATH"
        raise FileNotFoundError(msg)
    return [resolved, *rest]


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    input_text: str | None = None,
    timeout: float | None = None,
) -> _CompletedProcess[str]:
    """Execute *args* after normalising the executable path, capturing text output."""
    normalized = _normalize_args(args)

    try:
        # Bandit: argument lists are passed directly without shell expansion.
        completed: _CompletedProcess[str] = subprocess.run(  # nosec B603
            normalized,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=True,
            encoding=OUTPUT_ENCODING,
            errors=OUTPUT_ERRORS,
            input=input_text,
            timeout=timeout,
            stdin=subprocess.DEVNULL if input_text is None else None,
        )
    except subprocess.TimeoutExpired as exc:
        stderr = _ensure_text(exc.stderr)
        message = timeout_message(timeout)
        completed = subprocess.CompletedProcess(
            args=list(normalized),
            returncode=TIMEOUT_EXIT_CODE,
            stdout=_ensure_text(exc.stdout),
            stderr=f"{stderr}\n{message}" if stderr else message,
        )

    if check and completed.returncode != 0:
        raise SubprocessExecutionError(normalized, completed.returncode, completed.stdout, completed.stderr)

    return completed


def _kill_group(process: subprocess.Popen[str]) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        return


def _next_wait(deadline: float | None, cancel: threading.Event | None) -> float | None:
    wait = _CANCEL_POLL_INTERVAL if cancel is not None else None
    if deadline is None:
        return wait
    remaining = max(deadline - time.monotonic(), 0.0)
    return remaining if wait is None else min(wait, remaining)


def spawn(
    command: str,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> CommandExecutionResult:
    """Run ``command`` through the shell and capture its outcome.

    The command runs in its own session so a timeout or cancellation
    terminates the whole process group. Timeouts are reported through the
    result rather than raised: the exit code becomes 124, ``timed_out`` is
    set and stderr gains a ``Command timed out after Xs`` line. Output that
    is not valid UTF-8 is decoded with replacement characters.

    Args:
        command: Shell command line.
        cwd: Working directory; defaults to the current directory.
        env: Extra environment variables layered over ``os.environ``.
        timeout: Seconds before the process group is killed.
        cancel: Event that, once set, kills the process group early and
            marks the result ``cancelled``.

    Returns:
        CommandExecutionResult: Exit code, captured streams and wall time.
    """

    merged_env = {**os.environ, **env} if env else None
    started = time.monotonic()
    deadline = started + timeout if timeout is not None else None
    # Bandit: validation steps are shell command lines from the project configuration.
    process = subprocess.Popen(  # nosec B602
        command,
        shell=True,
        cwd=str(cwd) if cwd is not None else None,
        env=merged_env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        encoding=OUTPUT_ENCODING,
        errors=OUTPUT_ERRORS,
        start_new_session=True,
    )
    timed_out = cancelled = False
    while True:
        try:
            stdout, stderr = process.communicate(timeout=_next_wait(deadline, cancel))
            break
        except subprocess.TimeoutExpired:
            timed_out = deadline is not None and time.monotonic() >= deadline
            cancelled = not timed_out and cancel is not None and cancel.is_set()
            if timed_out or cancelled:
                _kill_group(process)
                stdout, stderr = process.communicate()
                break
    exit_code = process.returncode
    if timed_out:
        message = timeout_message(timeout)
        stderr = f"{stderr}\n{message}" if stderr else message
        exit_code = TIMEOUT_EXIT_CODE
    return CommandExecutionResult(
        command=command,
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=int((time.monotonic() - started) * 1000),
        timed_out=timed_out,
        cancelled=cancelled,
    )


__all__ = [
    "SpawnFunction",
    "SubprocessExecutionError",
    "run_command",
    "spawn",
    "timeout_message",
]
