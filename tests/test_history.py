# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for recording, querying, pruning and inspecting validation history."""

from __future__ import annotations

from datetime import datetime

import pytest

from vibe_validate.errors import StoreIntegrityError
from vibe_validate.history import HistoryStore, InMemoryNotesStore, truncate_output
from vibe_validate.models import PhaseResult, StepResult, ValidationResult, ValidationRun


def _seed(history: HistoryStore, make_run, runs: dict[str, list[float]]) -> None:
    for tree_hash, ages in runs.items():
        for age in ages:
            history.record_validation_history(tree_hash, make_run(tree_hash, days_ago=age))


def test_find_cached_validation_returns_latest_run(history: HistoryStore, make_run) -> None:
    history.record_validation_history("tree-a", make_run("tree-a", days_ago=2, passed=False))
    history.record_validation_history("tree-a", make_run("tree-a", days_ago=1, passed=True))

    cached = history.find_cached_validation("tree-a")

    assert cached is not None
    assert cached.passed
    assert history.find_cached_validation("tree-b") is None
    assert history.has_history_for_tree("tree-a")
    assert not history.has_history_for_tree("tree-b")


def test_record_appends_without_rewriting_prior_runs(history: HistoryStore, make_run) -> None:
    first = make_run("tree-a", days_ago=3)
    history.record_validation_history("tree-a", first)
    history.record_validation_history("tree-a", make_run("tree-a", days_ago=1, passed=False))

    note = history.read_note("tree-a")

    assert note is not None
    assert len(note.runs) == 2
    assert note.runs[0].to_document() == first.to_document()


def test_record_truncates_stored_output_only(history: HistoryStore, now: datetime) -> None:
    output = "x" * 50
    step = StepResult(name="lint", command="eslint .", exit_code=1, passed=False, output=output)
    result = ValidationResult(
        passed=False,
        timestamp=now,
        tree_hash="tree-a",
        phases=(PhaseResult(name="checks", passed=False, steps=(step,)),),
        failed_step="lint",
        failed_step_output=output,
    )
    run = ValidationRun(branch="main", timestamp=now, result=result)
    store = HistoryStore(history.notes, max_output_bytes=10, clock=lambda: now)

    store.record_validation_history("tree-a", run)

    stored = store.find_cached_validation("tree-a")
    assert stored is not None
    assert stored.phases[0].steps[0].output == truncate_output(output, 10)
    assert stored.failed_step_output is not None
    assert stored.failed_step_output.startswith("x" * 10 + "\n\n[... truncated 40 bytes]")
    assert result.failed_step_output == output


def test_list_notes_orders_by_latest_run(history: HistoryStore, make_run) -> None:
    _seed(history, make_run, {"old": [10], "new": [1], "middle": [5]})

    assert [note.tree_hash for note in history.list_notes()] == ["new", "middle", "old"]


def test_prune_by_age_removes_only_old_runs(history: HistoryStore, make_run) -> None:
    _seed(history, make_run, {"stale": [120, 100], "mixed": [95, 10], "fresh": [1]})

    result = history.prune_history_by_age(90)

    assert result.notes_pruned == 1
    assert result.runs_pruned == 3
    assert result.notes_remaining == 2
    assert result.pruned_tree_hashes == ("stale",)
    mixed = history.read_note("mixed")
    assert mixed is not None
    assert len(mixed.runs) == 1
    assert history.read_note("stale") is None

    again = history.prune_history_by_age(90)
    assert again.notes_pruned == 0
    assert again.runs_pruned == 0
    assert again.notes_remaining == 2


def test_prune_dry_run_does_not_mutate(history: HistoryStore, notes: InMemoryNotesStore, make_run) -> None:
    _seed(history, make_run, {"stale": [120], "fresh": [1]})
    before = dict(notes.notes)

    result = history.prune_history_by_age(90, dry_run=True)

    assert result.notes_pruned == 1
    assert result.runs_pruned == 1
    assert notes.notes == before


def test_prune_all_history(history: HistoryStore, notes: InMemoryNotesStore, make_run) -> None:
    _seed(history, make_run, {"a": [1, 2], "b": [3]})

    preview = history.prune_all_history(dry_run=True)
    assert preview.runs_pruned == 3
    assert len(notes.notes) == 2

    result = history.prune_all_history()

    assert result.notes_pruned == 2
    assert result.runs_pruned == 3
    assert result.notes_remaining == 0
    assert notes.notes == {}


def test_health_reports_healthy_store(history: HistoryStore, make_run) -> None:
    _seed(history, make_run, {"a": [1]})

    health = history.check_history_health()

    assert health.total_notes == 1
    assert health.old_notes_count == 0
    assert not health.should_warn
    assert health.warning_message == ""


def test_health_warns_about_old_notes(history: HistoryStore, make_run) -> None:
    _seed(history, make_run, {"a": [45], "b": [1]})

    health = history.check_history_health()

    assert health.should_warn
    assert health.old_notes_count == 1
    assert "older than 30 days" in health.warning_message
    assert "vibe-validate history prune --older-than 30" in health.warning_message


def test_health_warns_about_large_store(notes: InMemoryNotesStore, now: datetime, make_run) -> None:
    store = HistoryStore(notes, warn_after_count=2, clock=lambda: now)
    _seed(store, make_run, {"a": [1], "b": [1], "c": [1]})

    health = store.check_history_health()

    assert health.should_warn
    assert health.old_notes_count == 0
    assert health.warning_message.startswith("Validation history has grown large (3 tree hashes)")


def test_corrupt_note_raises_integrity_error(history: HistoryStore, notes: InMemoryNotesStore) -> None:
    notes.notes["broken"] = "runs: [unterminated"

    with pytest.raises(StoreIntegrityError):
        history.find_cached_validation("broken")


def test_note_with_wrong_shape_raises_integrity_error(history: HistoryStore, notes: InMemoryNotesStore) -> None:
    notes.notes["broken"] = "- not\n- a mapping\n"

    with pytest.raises(StoreIntegrityError):
        history.read_note("broken")


def test_null_runs_are_treated_as_empty(history: HistoryStore, notes: InMemoryNotesStore) -> None:
    notes.notes["empty"] = "treeHash: empty\nruns: null\n"

    assert history.find_cached_validation("empty") is None
    assert not history.has_history_for_tree("empty")
    assert history.list_notes() == []
