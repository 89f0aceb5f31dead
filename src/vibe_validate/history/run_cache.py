# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cache of single-command ``run`` results keyed by tree hash and command."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Final

from ..models import PruneResult, RunCacheEntry
from .interfaces import RunCacheBackend
from .pruning import prune_all_run_cache

LOGGER = logging.getLogger(__name__)

SHELL_METACHARACTERS: Final[frozenset[str]] = frozenset("\"'`\\|><&;$")
CACHE_KEY_LENGTH: Final[int] = 16
_WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")


def encode_run_cache_key(command: str, workdir: str = "") -> str:
    """Return the cache key for ``command`` run in ``workdir``.

    Both values are trimmed. Whitespace runs inside the command are collapsed
    unless it contains shell metacharacters, where spacing may be significant.

    Args:
        command: Shell command line.
        workdir: Working directory relative to the repository root.

    Returns:
        str: First 16 hex digits of ``sha256("<command>__<workdir>")``, or an
        empty string for an empty command.
    """

    trimmed = command.strip()
    if not trimmed:
        return ""
    if not any(char in SHELL_METACHARACTERS for char in trimmed):
        trimmed = _WHITESPACE.sub(" ", trimmed)
    digest = hashlib.sha256(f"{trimmed}__{workdir.strip()}".encode()).hexdigest()
    return digest[:CACHE_KEY_LENGTH]


@dataclass(slots=True)
class RunCache:
    """Run-cache operations over a :class:`RunCacheBackend`."""

    backend: RunCacheBackend

    def find_entry(self, tree_hash: str, command: str, workdir: str = "") -> RunCacheEntry | None:
        """Return the cached successful result for ``command`` at ``tree_hash``.

        Entries recording a non-zero exit code are ignored so failures are
        always re-run.

        Raises:
            StoreIntegrityError: If the stored entry cannot be decoded.
        """

        key = encode_run_cache_key(command, workdir)
        if not key:
            return None
        entry = self.backend.read_entry(tree_hash, key)
        if entry is None or entry.exit_code != 0:
            return None
        LOGGER.debug("Run cache hit for %r at tree %s", command, tree_hash)
        return entry

    def store_entry(self, entry: RunCacheEntry) -> str | None:
        """Record ``entry`` and return its cache key, or ``None`` when uncacheable."""

        key = encode_run_cache_key(entry.command, entry.workdir)
        if not key:
            return None
        self.backend.write_entry(entry.tree_hash, key, entry)
        return key

    def prune_all_run_cache(self, *, dry_run: bool = False) -> PruneResult:
        """Remove every cached entry; see :func:`prune_all_run_cache`."""

        return prune_all_run_cache(self.backend, dry_run=dry_run)


__all__ = ["CACHE_KEY_LENGTH", "RunCache", "SHELL_METACHARACTERS", "encode_run_cache_key"]
