# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias
from datetime import UTC, datetime, timedelta

import pytest

from vibe_validate.history import HistoryStore, InMemoryNotesStore
from vibe_validate.models import PhaseResult, StepResult, ValidationResult, ValidationRun

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

RunFactory: TypeAlias = Callable[..., ValidationRun]


@pytest.fixture
def now() -> datetime:
    """Return the reference time used by history fixtures."""
    return FIXED_NOW


@pytest.fixture
def notes() -> InMemoryNotesStore:
    """Return an empty in-memory notes store."""
    return InMemoryNotesStore()


@pytest.fixture
def history(notes: InMemoryNotesStore, now: datetime) -> HistoryStore:
    """Return a history store over ``notes`` whose clock is frozen at ``now``."""
    return HistoryStore(notes, clock=lambda: now)


@pytest.fixture
def make_run(now: datetime) -> RunFactory:
    """Return a factory building validation runs ``days_ago`` days before ``now``."""

    def factory(tree_hash: str = "tree-a", *, days_ago: float = 0, passed: bool = True) -> ValidationRun:
        timestamp = now - timedelta(days=days_ago)
        step = StepResult(name="tests", command="pytest", exit_code=0 if passed else 1, passed=passed)
        result = ValidationResult(
            passed=passed,
            timestamp=timestamp,
            tree_hash=tree_hash,
            summary="Validation passed" if passed else "tests failed",
            phases=(PhaseResult(name="checks", passed=passed, steps=(step,)),),
            failed_step=None if passed else "tests",
        )
        return ValidationRun(branch="main", timestamp=timestamp, result=result)

    return factory
