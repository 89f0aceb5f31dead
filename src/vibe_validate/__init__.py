# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Validation pipeline runner with structured error extraction and tree-hash caching."""

from __future__ import annotations

from .extractors import ExtractorRegistry, detect_and_extract
from .history import HistoryStore, RunCache
from .models import (
    CommandExecutionResult,
    ExtractedError,
    ExtractionResult,
    ValidationResult,
    ValidationRun,
)
from .nested import merge_nested_result
from .remote import collect_remote_check, fetch_logs_with_retry
from .runner import ValidationRunner, run_with_cache

__version__ = "0.1.0"

__all__ = [
    "CommandExecutionResult",
    "ExtractedError",
    "ExtractionResult",
    "ExtractorRegistry",
    "HistoryStore",
    "RunCache",
    "ValidationResult",
    "ValidationRun",
    "ValidationRunner",
    "__version__",
    "collect_remote_check",
    "detect_and_extract",
    "fetch_logs_with_retry",
    "merge_nested_result",
    "run_with_cache",
]
