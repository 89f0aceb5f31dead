# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Encode and decode persisted notes as YAML text."""

from __future__ import annotations

from collections.abc import Mapping

import yaml
from pydantic import ValidationError

from ..errors import StoreIntegrityError
from ..models import DocumentModel, HistoryNote, RunCacheEntry
from ..output import dump_yaml


def encode_model(model: DocumentModel) -> str:
    """Return the YAML text stored for ``model``."""

    return dump_yaml(model.to_document())


def _load_mapping(key: str, text: str) -> Mapping[str, object]:
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise StoreIntegrityError(key, f"invalid YAML ({exc.__class__.__name__})") from exc
    if not isinstance(loaded, Mapping):
        raise StoreIntegrityError(key, "note content is not a mapping")
    return loaded


def decode_history_note(tree_hash: str, text: str) -> HistoryNote:
    """Decode the note stored for ``tree_hash``.

    Args:
        tree_hash: Key the note was read from; used when the content omits it.
        text: Raw note content.

    Returns:
        HistoryNote: Decoded note.

    Raises:
        StoreIntegrityError: If ``text`` is not YAML or does not describe a note.
    """

    data = dict(_load_mapping(tree_hash, text))
    data.setdefault("treeHash", tree_hash)
    try:
        return HistoryNote.model_validate(data)
    except ValidationError as exc:
        raise StoreIntegrityError(tree_hash, f"{exc.error_count()} validation error(s)") from exc


def decode_run_cache_entry(key: str, text: str) -> RunCacheEntry:
    """Decode a run-cache entry stored under ``key``.

    Raises:
        StoreIntegrityError: If ``text`` is not YAML or does not describe an entry.
    """

    data = _load_mapping(key, text)
    try:
        return RunCacheEntry.model_validate(data)
    except ValidationError as exc:
        raise StoreIntegrityError(key, f"{exc.error_count()} validation error(s)") from exc


__all__ = ["decode_history_note", "decode_run_cache_entry", "encode_model"]
