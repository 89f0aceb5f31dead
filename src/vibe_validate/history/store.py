# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Read, record, prune and inspect validation history keyed by tree hash."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..constants import DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_WARN_AFTER_COUNT, DEFAULT_WARN_AFTER_DAYS
from ..models import (
    HealthCheckResult,
    HistoryNote,
    PruneResult,
    RecordResult,
    ValidationResult,
    ValidationRun,
    utc_now,
)
from .health import check_history_health
from .interfaces import NotesStore
from .pruning import prune_all_history, prune_history_by_age

LOGGER = logging.getLogger(__name__)


def truncate_output(output: str, max_bytes: int) -> str:
    """Return ``output`` cut to ``max_bytes`` characters with a trailing marker."""

    if len(output) <= max_bytes:
        return output
    return f"{output[:max_bytes]}\n\n[... truncated {len(output) - max_bytes} bytes]"


def truncate_validation_output(result: ValidationResult, max_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> ValidationResult:
    """Return a copy of ``result`` with step and failed-step output truncated.

    Args:
        result: Result as returned to the live caller.
        max_bytes: Maximum characters kept per output field.

    Returns:
        ValidationResult: Copy suitable for persisting in a note.
    """

    phases = tuple(
        phase.model_copy(
            update={
                "steps": tuple(
                    step.model_copy(update={"output": truncate_output(step.output, max_bytes)})
                    if step.output
                    else step
                    for step in phase.steps
                ),
            },
        )
        for phase in result.phases
    )
    update: dict[str, object] = {"phases": phases}
    if result.failed_step_output:
        update["failed_step_output"] = truncate_output(result.failed_step_output, max_bytes)
    return result.model_copy(update=update)


@dataclass(slots=True)
class HistoryStore:
    """Validation history operations over a :class:`NotesStore`.

    Every operation is a self-contained round trip to the backing store;
    nothing is cached between calls.
    """

    notes: NotesStore
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    warn_after_days: int = DEFAULT_WARN_AFTER_DAYS
    warn_after_count: int = DEFAULT_WARN_AFTER_COUNT
    clock: Callable[[], datetime] = field(default=utc_now)

    def read_note(self, tree_hash: str) -> HistoryNote | None:
        """Return the raw note for ``tree_hash``."""

        return self.notes.read_note(tree_hash)

    def list_notes(self) -> list[HistoryNote]:
        """Return every note, most recently run first."""

        notes = [note for key in self.notes.list_note_keys() if (note := self.notes.read_note(key)) is not None]
        with_runs = [note for note in notes if note.runs]
        with_runs.sort(key=lambda note: max(run.timestamp for run in note.runs), reverse=True)
        return with_runs

    def find_cached_validation(self, tree_hash: str) -> ValidationResult | None:
        """Return the result of the most recent run recorded for ``tree_hash``.

        Args:
            tree_hash: Content hash of the working tree.

        Returns:
            ValidationResult | None: Latest result, or ``None`` on a miss.

        Raises:
            StoreIntegrityError: If the stored note cannot be decoded.
        """

        note = self.notes.read_note(tree_hash)
        latest = note.latest_run() if note is not None else None
        return latest.result if latest is not None else None

    def has_history_for_tree(self, tree_hash: str) -> bool:
        """Return ``True`` when at least one run is recorded for ``tree_hash``."""

        note = self.notes.read_note(tree_hash)
        return note is not None and bool(note.runs)

    def record_validation_history(self, tree_hash: str, run: ValidationRun) -> RecordResult:
        """Append ``run`` to the note for ``tree_hash``.

        Step output stored in the note is truncated to ``max_output_bytes``;
        prior runs are never rewritten.

        Args:
            tree_hash: Content hash the run validated.
            run: Run to append.

        Returns:
            RecordResult: Confirmation that the run was recorded.
        """

        stored = run.model_copy(update={"result": truncate_validation_output(run.result, self.max_output_bytes)})
        self.notes.append_note(tree_hash, stored)
        LOGGER.debug("Recorded validation run for tree %s", tree_hash)
        return RecordResult(recorded=True, tree_hash=tree_hash)

    def prune_history_by_age(self, older_than_days: float, *, dry_run: bool = False) -> PruneResult:
        """Remove runs older than ``older_than_days``; see :func:`prune_history_by_age`."""

        return prune_history_by_age(self.notes, older_than_days, dry_run=dry_run, now=self.clock())

    def prune_all_history(self, *, dry_run: bool = False) -> PruneResult:
        """Remove every note; see :func:`prune_all_history`."""

        return prune_all_history(self.notes, dry_run=dry_run)

    def check_history_health(self) -> HealthCheckResult:
        """Return the advisory health report for the store."""

        return check_history_health(
            self.notes,
            warn_after_days=self.warn_after_days,
            warn_after_count=self.warn_after_count,
            now=self.clock(),
        )


__all__ = ["HistoryStore", "truncate_output", "truncate_validation_output"]
