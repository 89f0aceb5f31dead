# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``vibe-validate cleanup``: remove cached command results."""

from __future__ import annotations

from typing import Annotated

import typer

from ...output import render_document
from ..context import load_project
from ..shared import USAGE_EXIT_CODE, CLIError, cli_errors, cli_state


def cleanup(
    ctx: typer.Context,
    run_cache: Annotated[bool, typer.Option("--run-cache", help="Remove every run-cache entry.")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report what would be removed.")] = False,
) -> None:
    """Remove cached ``run`` results."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        if not run_cache:
            raise CLIError("Nothing selected; pass --run-cache", exit_code=USAGE_EXIT_CODE)
        project = load_project(state.root)
        project.require_git()
        cache = project.run_cache()
        if cache is None:
            raise CLIError("History is disabled in the configuration", exit_code=USAGE_EXIT_CODE)
        result = cache.prune_all_run_cache(dry_run=dry_run)
    verb = "Would remove" if dry_run else "Removed"
    logger.ok(f"{verb} {result.runs_pruned} cached run(s)")
    logger.echo(render_document(result), nl=False)


def register(app: typer.Typer) -> None:
    """Attach the ``cleanup`` command to ``app``."""

    app.command("cleanup")(cleanup)


__all__ = ["cleanup", "register"]
