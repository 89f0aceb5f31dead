# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command registry."""

from __future__ import annotations

import typer

from . import cleanup, history, run, validate, watch_run

__all__ = ["register_commands"]


def register_commands(app: typer.Typer) -> None:
    """Register every built-in command on ``app``.

    Args:
        app: Typer application receiving command registrations.
    """

    run.register(app)
    validate.register(app)
    history.register(app)
    cleanup.register(app)
    watch_run.register(app)
