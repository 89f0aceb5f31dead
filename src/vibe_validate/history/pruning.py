# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Remove validation history by age or entirely."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..models import PruneResult, utc_now
from .interfaces import NotesStore, RunCacheBackend

LOGGER = logging.getLogger(__name__)


def prune_history_by_age(
    store: NotesStore,
    older_than_days: float,
    *,
    dry_run: bool = False,
    now: datetime | None = None,
) -> PruneResult:
    """Remove runs older than ``older_than_days`` and notes left without runs.

    A note that keeps some of its runs is rewritten with only the surviving
    runs. In dry-run mode the same counts are computed without mutating the
    store.

    Args:
        store: Notes store to prune.
        older_than_days: Age threshold in days.
        dry_run: Compute the result without deleting anything.
        now: Reference time; defaults to the current UTC time.

    Returns:
        PruneResult: Removed notes and runs plus the number of notes remaining.

    Raises:
        StoreIntegrityError: If a stored note cannot be decoded.
    """

    cutoff = (now or utc_now()) - timedelta(days=older_than_days)
    notes_pruned = 0
    runs_pruned = 0
    notes_remaining = 0
    pruned: list[str] = []
    for tree_hash in store.list_note_keys():
        note = store.read_note(tree_hash)
        if note is None:
            continue
        kept = tuple(run for run in note.runs if run.timestamp >= cutoff)
        removed = len(note.runs) - len(kept)
        runs_pruned += removed
        if not kept:
            notes_pruned += 1
            pruned.append(tree_hash)
            if not dry_run:
                store.delete_note(tree_hash)
            continue
        notes_remaining += 1
        if removed and not dry_run:
            store.delete_note(tree_hash)
            for run in kept:
                store.append_note(tree_hash, run)
    LOGGER.debug(
        "Pruned %d note(s) and %d run(s) older than %s days (dry_run=%s)",
        notes_pruned,
        runs_pruned,
        older_than_days,
        dry_run,
    )
    return PruneResult(
        notes_pruned=notes_pruned,
        runs_pruned=runs_pruned,
        notes_remaining=notes_remaining,
        pruned_tree_hashes=tuple(pruned),
    )


def prune_all_history(store: NotesStore, *, dry_run: bool = False) -> PruneResult:
    """Remove every note in ``store``.

    Raises:
        StoreIntegrityError: If a stored note cannot be decoded.
    """

    notes_pruned = 0
    runs_pruned = 0
    pruned: list[str] = []
    for tree_hash in store.list_note_keys():
        note = store.read_note(tree_hash)
        if note is None:
            continue
        notes_pruned += 1
        runs_pruned += len(note.runs)
        pruned.append(tree_hash)
        if not dry_run:
            store.delete_note(tree_hash)
    return PruneResult(
        notes_pruned=notes_pruned,
        runs_pruned=runs_pruned,
        notes_remaining=0,
        pruned_tree_hashes=tuple(pruned),
    )


def prune_all_run_cache(backend: RunCacheBackend, *, dry_run: bool = False) -> PruneResult:
    """Remove every run-cache entry; each entry counts as one pruned run."""

    entries = backend.list_entries()
    if not dry_run:
        for tree_hash, cache_key in entries:
            backend.delete_entry(tree_hash, cache_key)
    tree_hashes = tuple(dict.fromkeys(tree_hash for tree_hash, _ in entries))
    return PruneResult(
        notes_pruned=len(tree_hashes),
        runs_pruned=len(entries),
        notes_remaining=0,
        pruned_tree_hashes=tree_hashes,
    )


__all__ = ["prune_all_history", "prune_all_run_cache", "prune_history_by_age"]
