# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``vibe-validate history``: inspect and prune recorded validation runs."""

from __future__ import annotations

from typing import Annotated, Final

import typer

from ...output import render_document
from ..context import load_project
from ..shared import CLIError, cli_errors, cli_state

DEFAULT_PRUNE_DAYS: Final[int] = 90
_HASH_PREFIX: Final[int] = 12

history_app = typer.Typer(name="history", help="Inspect and prune validation history.", no_args_is_help=True)


@history_app.command("list")
def list_history(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum number of trees to list.")] = 20,
) -> None:
    """List validated trees, most recent first."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        notes = load_project(state.root).history_store().list_notes()
    if not notes:
        logger.info("No validation history recorded")
        return
    for note in notes[:limit]:
        latest = note.latest_run()
        if latest is None:
            continue
        status = "passed" if latest.result.passed else "failed"
        logger.echo(
            f"{note.tree_hash[:_HASH_PREFIX]}  {latest.timestamp:%Y-%m-%d %H:%M:%S}  "
            f"{latest.branch}  {status}  runs={len(note.runs)}",
        )


@history_app.command("show")
def show_history(
    ctx: typer.Context,
    tree_hash: Annotated[str, typer.Argument(help="Tree hash whose note should be printed.")],
) -> None:
    """Print the history note recorded for TREE_HASH."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        note = load_project(state.root).history_store().read_note(tree_hash)
        if note is None:
            raise CLIError(f"No history recorded for tree {tree_hash}")
    logger.echo(render_document(note), nl=False)


@history_app.command("prune")
def prune_history(
    ctx: typer.Context,
    older_than: Annotated[
        int,
        typer.Option("--older-than", min=0, help="Remove runs older than this many days."),
    ] = DEFAULT_PRUNE_DAYS,
    prune_all: Annotated[bool, typer.Option("--all", help="Remove every history note.")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report what would be removed.")] = False,
) -> None:
    """Remove old validation runs from history."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        store = load_project(state.root).history_store()
        result = (
            store.prune_all_history(dry_run=dry_run)
            if prune_all
            else store.prune_history_by_age(older_than, dry_run=dry_run)
        )
    verb = "Would remove" if dry_run else "Removed"
    logger.ok(f"{verb} {result.runs_pruned} run(s) and {result.notes_pruned} note(s)")
    logger.echo(render_document(result), nl=False)


@history_app.command("health")
def history_health(ctx: typer.Context) -> None:
    """Report whether the history store has grown large or stale."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        result = load_project(state.root).history_store().check_history_health()
    if result.should_warn:
        logger.warn(result.warning_message)
    else:
        logger.ok(f"History is healthy ({result.total_notes} note(s))")
    logger.echo(render_document(result), nl=False)


def register(app: typer.Typer) -> None:
    """Attach the ``history`` command group to ``app``."""

    app.add_typer(history_app, name="history")


__all__ = ["history_app", "register"]
