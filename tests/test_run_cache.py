# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for run-cache key encoding and entry lookup."""

from __future__ import annotations

import hashlib
from datetime import datetime

import pytest

from vibe_validate.history import InMemoryRunCacheBackend, RunCache, encode_run_cache_key
from vibe_validate.models import ExtractionMetadata, ExtractionResult, RunCacheEntry


def _entry(command: str, *, tree_hash: str = "tree-a", exit_code: int = 0, now: datetime) -> RunCacheEntry:
    return RunCacheEntry(
        tree_hash=tree_hash,
        command=command,
        timestamp=now,
        exit_code=exit_code,
        duration=1.5,
        extraction=ExtractionResult(
            summary="No test failures detected",
            metadata=ExtractionMetadata(framework="vitest", confidence=1.0, total_count=0),
        ),
    )


def test_key_is_sixteen_hex_digits_of_sha256() -> None:
    expected = hashlib.sha256(b"npm test__packages/app").hexdigest()[:16]

    assert encode_run_cache_key("npm test", "packages/app") == expected


def test_key_collapses_whitespace_and_trims() -> None:
    assert encode_run_cache_key("  npm   run\ttest  ") == encode_run_cache_key("npm run test")


def test_key_preserves_spacing_when_shell_metacharacters_present() -> None:
    assert encode_run_cache_key("echo 'a  b'") != encode_run_cache_key("echo 'a b'")


def test_key_distinguishes_workdir() -> None:
    assert encode_run_cache_key("npm test", "a") != encode_run_cache_key("npm test", "b")


@pytest.mark.parametrize("command", ["", "   ", "\n\t"])
def test_empty_command_has_no_key(command: str) -> None:
    assert encode_run_cache_key(command) == ""


def test_find_entry_returns_successful_entries_only(now: datetime) -> None:
    cache = RunCache(InMemoryRunCacheBackend())
    cache.store_entry(_entry("npm test", now=now))
    cache.store_entry(_entry("npm run lint", exit_code=1, now=now))

    hit = cache.find_entry("tree-a", "npm   test")

    assert hit is not None
    assert hit.command == "npm test"
    assert cache.find_entry("tree-a", "npm run lint") is None
    assert cache.find_entry("tree-b", "npm test") is None
    assert cache.find_entry("tree-a", "") is None


def test_store_entry_skips_empty_command(now: datetime) -> None:
    backend = InMemoryRunCacheBackend()

    assert RunCache(backend).store_entry(_entry("  ", now=now)) is None
    assert backend.entries == {}


def test_prune_all_run_cache(now: datetime) -> None:
    backend = InMemoryRunCacheBackend()
    cache = RunCache(backend)
    cache.store_entry(_entry("npm test", now=now))
    cache.store_entry(_entry("npm run lint", now=now))
    cache.store_entry(_entry("npm test", tree_hash="tree-b", now=now))

    preview = cache.prune_all_run_cache(dry_run=True)
    assert preview.runs_pruned == 3
    assert len(backend.entries) == 3

    result = cache.prune_all_run_cache()

    assert result.runs_pruned == 3
    assert result.notes_pruned == 2
    assert result.pruned_tree_hashes == ("tree-a", "tree-b")
    assert backend.entries == {}
