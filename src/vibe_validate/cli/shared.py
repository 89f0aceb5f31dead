# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (logging, errors, global state)."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import typer

from ..errors import ConfigError, StoreIntegrityError
from ..logging import fail as core_fail
from ..logging import info as core_info
from ..logging import ok as core_ok
from ..logging import warn as core_warn
from ..process import SubprocessExecutionError

PACKAGE_LOGGER: Final[str] = "vibe_validate"
USAGE_EXIT_CODE: Final[int] = 2
MISSING_EXECUTABLE_EXIT_CODE: Final[int] = 127

LOGGER = logging.getLogger(f"{PACKAGE_LOGGER}.cli")


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI emoji settings.

    Messages go to stderr; :meth:`echo` is the only method writing to stdout.
    """

    use_emoji: bool

    def fail(self, message: str) -> None:
        """Log a failure message honouring emoji preferences."""

        core_fail(message, use_emoji=self.use_emoji)

    def warn(self, message: str) -> None:
        """Log a warning message honouring emoji preferences."""

        core_warn(message, use_emoji=self.use_emoji)

    def ok(self, message: str) -> None:
        """Log a success message honouring emoji preferences."""

        core_ok(message, use_emoji=self.use_emoji)

    def info(self, message: str) -> None:
        """Log an informational message honouring emoji preferences."""

        core_info(message, use_emoji=self.use_emoji)

    def echo(self, message: str, *, nl: bool = True) -> None:
        """Write ``message`` to stdout using Typer's echo helper.

        Args:
            message: Text written to standard output.
            nl: Whether a trailing newline is appended.
        """

        typer.echo(message, nl=nl)

    def echo_err(self, message: str) -> None:
        """Write ``message`` verbatim to stderr."""

        typer.echo(message, err=True)

    def debug(self, message: str, *args: object) -> None:
        """Record a diagnostic message, shown on stderr when ``--debug`` is given."""

        LOGGER.debug(message, *args)


def enable_debug_logging() -> None:
    """Stream package diagnostics to stderr at DEBUG level."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    if getattr(logger, "_vibe_validate_debug_configured", False):
        return
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    setattr(logger, "_vibe_validate_debug_configured", True)


@dataclass(slots=True)
class CLIState:
    """Options given before the sub-command, shared by every command."""

    root: Path
    emoji: bool = True

    def logger(self) -> CLILogger:
        """Return a logger honouring the global presentation options."""

        return CLILogger(use_emoji=self.emoji)


def cli_state(ctx: typer.Context) -> CLIState:
    """Return the :class:`CLIState` stored by the application callback."""

    state = ctx.obj
    if isinstance(state, CLIState):
        return state
    return CLIState(root=Path.cwd())


@contextmanager
def cli_errors(logger: CLILogger) -> Iterator[None]:
    """Convert package and CLI errors raised in the block into ``typer.Exit``.

    Configuration and history-integrity problems exit with status 2, a
    missing helper executable with 127; failed helper processes (git, gh)
    and :class:`CLIError` use their own status.

    Raises:
        typer.Exit: When the block raised one of the handled errors.
    """

    try:
        yield
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except (ConfigError, StoreIntegrityError) as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=USAGE_EXIT_CODE) from exc
    except SubprocessExecutionError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.returncode or 1) from exc
    except FileNotFoundError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=MISSING_EXECUTABLE_EXIT_CODE) from exc


__all__ = [
    "CLIError",
    "CLILogger",
    "CLIState",
    "USAGE_EXIT_CODE",
    "cli_errors",
    "cli_state",
    "enable_debug_logging",
]
