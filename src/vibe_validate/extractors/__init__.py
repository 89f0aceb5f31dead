# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Framework-aware extraction of errors from captured tool output."""

from __future__ import annotations

from .base import Extractor, ParsedOutput, build_result, strip_ansi
from .generic import GENERIC_EXTRACTOR, NO_STRUCTURED_ERRORS
from .registry import BUILTIN_EXTRACTORS, DEFAULT_REGISTRY, ExtractorRegistry, detect_and_extract

__all__ = [
    "BUILTIN_EXTRACTORS",
    "DEFAULT_REGISTRY",
    "Extractor",
    "ExtractorRegistry",
    "GENERIC_EXTRACTOR",
    "NO_STRUCTURED_ERRORS",
    "ParsedOutput",
    "build_result",
    "detect_and_extract",
    "strip_ansi",
]
