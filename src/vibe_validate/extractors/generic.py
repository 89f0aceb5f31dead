# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fallback extractor for output that no framework extractor recognises."""

from __future__ import annotations

import re
from typing import Final

from ..constants import GENERIC_SUMMARY_LINES
from ..models import ExtractedError
from .base import Extractor, ParsedOutput, plural

GENERIC_CONFIDENCE: Final[float] = 0.5
NO_STRUCTURED_ERRORS: Final[str] = "No structured errors detected."

_ERROR_KEYWORDS: Final[tuple[str, ...]] = (
    "failed",
    "fail",
    "error",
    "exception",
    "traceback",
    "panic:",
    "fatal:",
    "at ",
    "-->",
    "undefined:",
)
_SUMMARY_KEYWORDS: Final[tuple[str, ...]] = (" failed", " passed", " error", " success", " example")
_NOISE: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^>"),
    re.compile(r"npm ERR!"),
    re.compile(r"^npm WARN"),
    re.compile(r"^warning:", re.IGNORECASE),
    re.compile(r"node_modules"),
    re.compile(r"^Download", re.IGNORECASE),
    re.compile(r"^Resolving packages", re.IGNORECASE),
    re.compile(r"^Already up[- ]to[- ]date", re.IGNORECASE),
)
_FILE_REF: Final[re.Pattern[str]] = re.compile(
    r"(?P<file>[\w./\\-]+\.(?:py|go|rs|rb|java|cpp|c|h|js|ts|tsx|jsx)):(?P<line>\d+)(?::(?P<col>\d+))?",
)
_ERROR_MARKER: Final[re.Pattern[str]] = re.compile(
    r"(?:^|[\s\[(])(?:[A-Z]\w*)?[Ee]rror(?:\[\w+\])?:\s*(?P<message>.+)$",
)
_GUIDANCE: Final[str] = "Review the output above and fix the errors"


def detect_generic(_output: str, _command: str) -> float:
    """Return the fixed fallback confidence."""

    return GENERIC_CONFIDENCE


def _is_noise(line: str) -> bool:
    return any(pattern.search(line) for pattern in _NOISE)


def _is_relevant(line: str) -> bool:
    lowered = line.lower()
    return (
        any(keyword in lowered for keyword in _ERROR_KEYWORDS)
        or bool(_FILE_REF.search(line))
        or any(keyword in lowered for keyword in _SUMMARY_KEYWORDS)
    )


def _error_from_line(line: str) -> ExtractedError | None:
    marker = _ERROR_MARKER.search(line)
    if marker is None:
        return None
    reference = _FILE_REF.search(line)
    return ExtractedError(
        file=reference.group("file") if reference else None,
        line=int(reference.group("line")) if reference else None,
        column=int(reference.group("col")) if reference and reference.group("col") else None,
        message=line.strip(),
    )


def parse_generic(output: str) -> ParsedOutput:
    """Collect ``Error:``-style lines and the most relevant output lines.

    Args:
        output: ANSI-free output of an unrecognised tool.

    Returns:
        ParsedOutput: Best-effort errors (possibly none) with an error summary
        made of the first relevant lines of output.
    """

    candidates = [line for line in output.splitlines() if line.strip() and not _is_noise(line)]
    relevant = [line for line in candidates if _is_relevant(line)]
    errors = [error for error in map(_error_from_line, relevant) if error is not None]
    excerpt = "\n".join((relevant or candidates)[:GENERIC_SUMMARY_LINES])
    return ParsedOutput(
        errors=errors,
        summary=f"{plural(len(errors), 'error')} detected" if errors else NO_STRUCTURED_ERRORS,
        guidance=_GUIDANCE if relevant else "",
        error_summary=excerpt,
    )


GENERIC_EXTRACTOR: Final[Extractor] = Extractor(name="generic", detect=detect_generic, parse=parse_generic)

__all__ = ["GENERIC_CONFIDENCE", "GENERIC_EXTRACTOR", "NO_STRUCTURED_ERRORS", "detect_generic", "parse_generic"]
