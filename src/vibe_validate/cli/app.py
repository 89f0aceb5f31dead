# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring commands and shared services."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .commands import register_commands
from .shared import CLIState, enable_debug_logging

app = typer.Typer(
    name="vibe-validate",
    help="Run validation pipelines with structured error extraction and tree-hash caching.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)


@app.callback()
def configure(
    ctx: typer.Context,
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Project root; defaults to the current directory.", show_default=False),
    ] = None,
    emoji: Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji output.")] = True,
    debug: Annotated[bool, typer.Option("--debug", help="Print diagnostic logging to stderr.")] = False,
) -> None:
    """Store options shared by every sub-command."""

    if debug:
        enable_debug_logging()
    ctx.obj = CLIState(root=(root or Path.cwd()).resolve(), emoji=emoji)


register_commands(app)


def main() -> None:
    """Run the ``vibe-validate`` command-line interface."""

    app()


__all__ = ["app", "main"]
