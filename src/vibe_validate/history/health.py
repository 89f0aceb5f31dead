# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Advisory health report for the validation history store."""

from __future__ import annotations

from datetime import datetime, timedelta

from ..constants import DEFAULT_WARN_AFTER_COUNT, DEFAULT_WARN_AFTER_DAYS
from ..models import HealthCheckResult, utc_now
from .interfaces import NotesStore


def prune_hint(days: int) -> str:
    """Return the command suggested for pruning notes older than ``days``."""

    return f"vibe-validate history prune --older-than {days}"


def health_message(total_notes: int, old_notes: int, *, warn_after_days: int, warn_count: bool) -> str:
    """Return the warning text for the conditions that triggered it."""

    if warn_count and old_notes:
        return (
            f"Validation history has grown large ({total_notes} tree hashes)\n"
            f"   Found {old_notes} notes older than {warn_after_days} days\n"
            f"   Consider pruning: {prune_hint(warn_after_days)}"
        )
    if warn_count:
        return (
            f"Validation history has grown large ({total_notes} tree hashes)\n"
            f"   Consider pruning: {prune_hint(warn_after_days)}"
        )
    if old_notes:
        return (
            f"Found validation history older than {warn_after_days} days\n"
            f"   {old_notes} tree hashes can be pruned\n"
            f"   Run: {prune_hint(warn_after_days)}"
        )
    return ""


def check_history_health(
    store: NotesStore,
    *,
    warn_after_days: int = DEFAULT_WARN_AFTER_DAYS,
    warn_after_count: int = DEFAULT_WARN_AFTER_COUNT,
    now: datetime | None = None,
) -> HealthCheckResult:
    """Count notes and notes whose oldest run is past the staleness threshold.

    Args:
        store: Notes store to inspect.
        warn_after_days: Age after which a note counts as old.
        warn_after_count: Note count above which the store counts as large.
        now: Reference time; defaults to the current UTC time.

    Returns:
        HealthCheckResult: Counts plus an advisory message when warranted.

    Raises:
        StoreIntegrityError: If a stored note cannot be decoded.
    """

    cutoff = (now or utc_now()) - timedelta(days=warn_after_days)
    keys = store.list_note_keys()
    old_notes = 0
    for tree_hash in keys:
        note = store.read_note(tree_hash)
        oldest = note.oldest_run() if note is not None else None
        if oldest is not None and oldest.timestamp < cutoff:
            old_notes += 1
    warn_count = len(keys) > warn_after_count
    return HealthCheckResult(
        total_notes=len(keys),
        old_notes_count=old_notes,
        should_warn=warn_count or old_notes > 0,
        warning_message=health_message(
            len(keys),
            old_notes,
            warn_after_days=warn_after_days,
            warn_count=warn_count,
        ),
    )


__all__ = ["check_history_health", "health_message", "prune_hint"]
