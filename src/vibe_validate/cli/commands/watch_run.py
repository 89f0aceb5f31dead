# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``vibe-validate watch-run``: report a remote CI run with extracted failures."""

from __future__ import annotations

from typing import Annotated

import typer

from ...output import render_document
from ...remote import GitHubRunFetcher, collect_remote_check
from ...remote.github import FAILED_CONCLUSIONS
from ..context import load_project
from ..shared import cli_errors, cli_state


def watch_run(
    ctx: typer.Context,
    run_id: Annotated[str, typer.Argument(help="GitHub Actions run identifier.")],
    check_name: Annotated[str | None, typer.Option("--check-name", help="Name reported for the check.")] = None,
    repo: Annotated[str | None, typer.Option("--repo", help="OWNER/REPO passed to gh.")] = None,
) -> None:
    """Fetch RUN_ID's status and, when it failed, its extracted errors."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        project = load_project(state.root)
        fetcher = GitHubRunFetcher(repo=repo, cwd=project.root)
        check = collect_remote_check(
            run_id,
            fetch_details=fetcher.fetch_run_details,
            fetch_logs=fetcher.fetch_run_logs,
            name=check_name,
            registry=project.registry(),
            policy=project.retry_policy(),
        )
    failed = check.conclusion in FAILED_CONCLUSIONS
    if failed and check.extraction is None:
        logger.warn(f"Logs for run {run_id} were not available; extraction omitted")
    logger.echo(render_document(check), nl=False)
    if failed:
        raise typer.Exit(code=1)


def register(app: typer.Typer) -> None:
    """Attach the ``watch-run`` command to ``app``."""

    app.command("watch-run")(watch_run)


__all__ = ["register", "watch_run"]
