# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Default limits and identifiers shared across the package."""

from __future__ import annotations

from typing import Final

MAX_ERRORS_IN_ARRAY: Final[int] = 10
MIN_EXTRACTOR_CONFIDENCE: Final[float] = 0.6
GENERIC_SUMMARY_LINES: Final[int] = 20

DOCUMENT_MARKER: Final[str] = "---"
NESTED_RECURSION_LIMIT: Final[int] = 10
RAW_OUTPUT_LIMIT: Final[int] = 1000
RAW_OUTPUT_TRUNCATION_SUFFIX: Final[str] = "... (truncated)"

REMOTE_FETCH_ATTEMPTS: Final[int] = 3
REMOTE_FETCH_BASE_DELAY: Final[float] = 2.0

DEFAULT_NOTES_REF: Final[str] = "vibe-validate/validate"
DEFAULT_RUN_CACHE_REF: Final[str] = "vibe-validate/run"
DEFAULT_MAX_OUTPUT_BYTES: Final[int] = 10_000
DEFAULT_WARN_AFTER_DAYS: Final[int] = 30
DEFAULT_WARN_AFTER_COUNT: Final[int] = 1000

DEFAULT_PHASE_TIMEOUT: Final[float] = 300.0
TIMEOUT_EXIT_CODE: Final[int] = 124

__all__ = [
    "DEFAULT_MAX_OUTPUT_BYTES",
    "DEFAULT_NOTES_REF",
    "DEFAULT_PHASE_TIMEOUT",
    "DEFAULT_RUN_CACHE_REF",
    "DEFAULT_WARN_AFTER_COUNT",
    "DEFAULT_WARN_AFTER_DAYS",
    "DOCUMENT_MARKER",
    "GENERIC_SUMMARY_LINES",
    "MAX_ERRORS_IN_ARRAY",
    "MIN_EXTRACTOR_CONFIDENCE",
    "NESTED_RECURSION_LIMIT",
    "RAW_OUTPUT_LIMIT",
    "RAW_OUTPUT_TRUNCATION_SUFFIX",
    "REMOTE_FETCH_ATTEMPTS",
    "REMOTE_FETCH_BASE_DELAY",
    "TIMEOUT_EXIT_CODE",
]
