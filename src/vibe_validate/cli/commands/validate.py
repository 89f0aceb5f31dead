# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``vibe-validate validate``: run every configured phase for the working tree."""

from __future__ import annotations

from typing import Annotated

import typer

from ...history import HistoryStore
from ...models import StepResult, ValidationResult
from ...output import render_document
from ...runner import StepCallback, ValidationOutcome, ValidationRunner
from ..context import ProjectContext, load_project
from ..shared import CLILogger, cli_errors, cli_state


def _step_reporter(logger: CLILogger) -> StepCallback:
    def report(step: StepResult) -> None:
        label = f"{step.name} ({step.duration_secs:.1f}s)"
        if step.passed:
            logger.ok(label)
        elif step.timed_out:
            logger.fail(f"{label} timed out")
        else:
            logger.fail(f"{label} exited with {step.exit_code}")

    return report


def _check_only(project: ProjectContext, history: HistoryStore | None, logger: CLILogger) -> int:
    tree_hash = project.require_git().get_tree_hash()
    cached = history.find_cached_validation(tree_hash) if history is not None else None
    if cached is not None and cached.passed:
        logger.ok(f"Validation already passed for tree {tree_hash[:12]}")
        return 0
    if cached is not None:
        logger.fail(f"Last validation of tree {tree_hash[:12]} failed: {cached.summary}")
    else:
        logger.warn(f"Tree {tree_hash[:12]} has not been validated yet")
    return 1


def _report(outcome: ValidationOutcome, logger: CLILogger) -> None:
    result: ValidationResult = outcome.result
    if outcome.from_cache:
        logger.info(f"Using cached result for tree {result.tree_hash[:12]} from {result.timestamp:%Y-%m-%d %H:%M:%S}")
    if outcome.record is not None and not outcome.record.recorded:
        logger.warn("Working tree changed during validation; result not saved to history")
    if result.passed:
        logger.ok(result.summary)
    else:
        logger.fail(result.summary)
        extraction = next(
            (step.extraction for phase in result.phases for step in phase.steps if step.name == result.failed_step),
            None,
        )
        if extraction is not None and extraction.error_summary:
            logger.echo_err(extraction.error_summary)


def validate(
    ctx: typer.Context,
    force: Annotated[bool, typer.Option("--force", help="Run even if this tree already has a result.")] = False,
    check: Annotated[bool, typer.Option("--check", help="Only report whether this tree already passed.")] = False,
    yaml_output: Annotated[bool, typer.Option("--yaml", help="Print the result document on stdout.")] = False,
) -> None:
    """Run the configured validation phases with tree-hash caching."""

    state = cli_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        project = load_project(state.root)
        if check:
            history = project.history_store() if project.config.history.enabled else None
            raise typer.Exit(code=_check_only(project, history, logger))
        phases = project.config.require_phases()
        history = project.history_store() if project.config.history.enabled else None
        runner = ValidationRunner(
            phases,
            tree=project.require_git(),
            history=history,
            metadata=project.require_git(),
            fail_fast=project.config.validation.fail_fast,
            registry=project.registry(),
            root=project.root,
            on_step=_step_reporter(logger),
        )
        outcome = runner.validate(force=force)
        _report(outcome, logger)
        if yaml_output:
            logger.echo(render_document(outcome.result), nl=False)
        if history is not None:
            health = history.check_history_health()
            if health.should_warn:
                logger.warn(health.warning_message)
    if not outcome.result.passed:
        raise typer.Exit(code=1)


def register(app: typer.Typer) -> None:
    """Attach the ``validate`` command to ``app``."""

    app.command("validate")(validate)


__all__ = ["register", "validate"]
