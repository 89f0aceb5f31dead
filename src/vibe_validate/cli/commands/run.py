# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``vibe-validate run``: execute one command and print its result document."""

from __future__ import annotations

from typing import Annotated

import typer

from ...output import render_document
from ...runner import run_with_cache
from ..context import load_project
from ..shared import cli_errors, cli_state


def run(
    ctx: typer.Context,
    command: Annotated[str, typer.Argument(help="Shell command to execute.")],
    force: Annotated[bool, typer.Option("--force", help="Ignore the run cache for this tree.")] = False,
) -> None:
    """Run COMMAND, extract its errors and print a structured result document.

    The process exits with the wrapped command's exit code. Text printed by
    the command before a nested result document goes to stderr.
    """

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        project = load_project(state.root)
        outcome = run_with_cache(
            command,
            cwd=project.root,
            tree=project.git,
            run_cache=project.run_cache(),
            force=force,
            registry=project.registry(),
        )
    logger.debug("command=%r cached=%s key=%s", command, outcome.from_cache, outcome.cache_key)
    if outcome.preamble:
        logger.echo_err(outcome.preamble)
    logger.echo(render_document(outcome.result), nl=False)
    raise typer.Exit(code=outcome.result.exit_code)


def register(app: typer.Typer) -> None:
    """Attach the ``run`` command to ``app``."""

    app.command("run")(run)


__all__ = ["register", "run"]
