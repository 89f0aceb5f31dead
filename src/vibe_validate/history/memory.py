# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""In-process store backends holding encoded note text in dictionaries."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import HistoryNote, RunCacheEntry, ValidationRun
from .codec import decode_history_note, decode_run_cache_entry, encode_model


@dataclass(slots=True)
class InMemoryNotesStore:
    """Notes store keeping YAML text per tree hash.

    Content is encoded exactly as the git-backed store writes it, so the
    same decoding and integrity checks apply.
    """

    notes: dict[str, str] = field(default_factory=dict)

    def read_note(self, tree_hash: str) -> HistoryNote | None:
        text = self.notes.get(tree_hash)
        if text is None:
            return None
        return decode_history_note(tree_hash, text)

    def append_note(self, tree_hash: str, run: ValidationRun) -> None:
        existing = self.read_note(tree_hash)
        runs = (*existing.runs, run) if existing is not None else (run,)
        self.notes[tree_hash] = encode_model(HistoryNote(tree_hash=tree_hash, runs=runs))

    def list_note_keys(self) -> list[str]:
        return list(self.notes)

    def delete_note(self, tree_hash: str) -> None:
        self.notes.pop(tree_hash, None)


@dataclass(slots=True)
class InMemoryRunCacheBackend:
    """Run-cache backend keeping YAML text per ``(tree_hash, cache_key)``."""

    entries: dict[tuple[str, str], str] = field(default_factory=dict)

    def read_entry(self, tree_hash: str, cache_key: str) -> RunCacheEntry | None:
        text = self.entries.get((tree_hash, cache_key))
        if text is None:
            return None
        return decode_run_cache_entry(cache_key, text)

    def write_entry(self, tree_hash: str, cache_key: str, entry: RunCacheEntry) -> None:
        self.entries[(tree_hash, cache_key)] = encode_model(entry)

    def list_entries(self) -> list[tuple[str, str]]:
        return list(self.entries)

    def delete_entry(self, tree_hash: str, cache_key: str) -> None:
        self.entries.pop((tree_hash, cache_key), None)


__all__ = ["InMemoryNotesStore", "InMemoryRunCacheBackend"]
