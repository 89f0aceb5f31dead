# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Interfaces describing the persistent stores behind validation history."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from ..models import HistoryNote, RunCacheEntry, ValidationRun


@runtime_checkable
class NotesStore(Protocol):
    """Append-only storage of :class:`HistoryNote` records keyed by tree hash."""

    @abstractmethod
    def read_note(self, tree_hash: str) -> HistoryNote | None:
        """Return the note stored for ``tree_hash``.

        Args:
            tree_hash: Content hash identifying the note.

        Returns:
            HistoryNote | None: Stored note, or ``None`` when absent.

        Raises:
            StoreIntegrityError: If the stored content cannot be decoded.
        """

        raise NotImplementedError

    @abstractmethod
    def append_note(self, tree_hash: str, run: ValidationRun) -> None:
        """Append ``run`` to the note for ``tree_hash``, creating it when absent."""

        raise NotImplementedError

    @abstractmethod
    def list_note_keys(self) -> list[str]:
        """Return the tree hashes that currently have a note."""

        raise NotImplementedError

    @abstractmethod
    def delete_note(self, tree_hash: str) -> None:
        """Remove the note stored for ``tree_hash``."""

        raise NotImplementedError


@runtime_checkable
class RunCacheBackend(Protocol):
    """Storage of :class:`RunCacheEntry` records keyed by tree hash and cache key."""

    @abstractmethod
    def read_entry(self, tree_hash: str, cache_key: str) -> RunCacheEntry | None:
        """Return the entry cached for ``(tree_hash, cache_key)``, if any."""

        raise NotImplementedError

    @abstractmethod
    def write_entry(self, tree_hash: str, cache_key: str, entry: RunCacheEntry) -> None:
        """Store ``entry`` under ``(tree_hash, cache_key)``, replacing any previous entry."""

        raise NotImplementedError

    @abstractmethod
    def list_entries(self) -> list[tuple[str, str]]:
        """Return every stored ``(tree_hash, cache_key)`` pair."""

        raise NotImplementedError

    @abstractmethod
    def delete_entry(self, tree_hash: str, cache_key: str) -> None:
        """Remove the entry stored under ``(tree_hash, cache_key)``."""

        raise NotImplementedError


__all__ = ["NotesStore", "RunCacheBackend"]
