# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Validation history and run cache persisted per tree hash."""

from __future__ import annotations

from .health import check_history_health
from .interfaces import NotesStore, RunCacheBackend
from .memory import InMemoryNotesStore, InMemoryRunCacheBackend
from .pruning import prune_all_history, prune_all_run_cache, prune_history_by_age
from .run_cache import RunCache, encode_run_cache_key
from .store import HistoryStore, truncate_output, truncate_validation_output

__all__ = [
    "HistoryStore",
    "InMemoryNotesStore",
    "InMemoryRunCacheBackend",
    "NotesStore",
    "RunCache",
    "RunCacheBackend",
    "check_history_health",
    "encode_run_cache_key",
    "prune_all_history",
    "prune_all_run_cache",
    "prune_history_by_age",
    "truncate_output",
    "truncate_validation_output",
]
