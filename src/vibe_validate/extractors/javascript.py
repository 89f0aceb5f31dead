# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractors for the TypeScript compiler and ESLint text reporters."""

from __future__ import annotations

import re
from typing import Final

from ..models import ExtractedError
from .base import Extractor, ParsedOutput, plural

_TSC_DETECT: Final[re.Pattern[str]] = re.compile(r"error TS\d+:")
_TSC_PAREN_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<col>\d+)\):\s*"
    r"(?P<severity>error|warning)\s+(?P<code>TS\d+):\s+(?P<message>.+)$",
)
_TSC_PRETTY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?P<col>\d+)"
    r"\s+-\s*(?P<severity>error|warning)\s+(?P<code>TS\d+):\s+(?P<message>.+)$",
)
_TSC_GUIDANCE: Final[dict[str, str]] = {
    "TS2322": "Type mismatch - check variable/parameter types",
    "TS2304": "Cannot find name - check imports and type definitions",
    "TS2345": "Argument type mismatch - check function signatures",
}
_TSC_DEFAULT_GUIDANCE: Final[str] = "Fix TypeScript type errors in listed files"
_TSC_CONFIDENCE: Final[float] = 0.95

_ESLINT_PROBLEMS: Final[re.Pattern[str]] = re.compile(r"✖ \d+ problems?")
_ESLINT_LOCATION: Final[re.Pattern[str]] = re.compile(r"\d+:\d+:?\s+(?:error|warning)\s+")
_ESLINT_INLINE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?P<col>\d+):\s+(?P<severity>error|warning)\s+(?P<message>.+?)\s+(?P<rule>\S+)$",
)
_ESLINT_STYLISH_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s+(?P<line>\d+):(?P<col>\d+)\s+(?P<severity>error|warning)\s+(?P<message>.+?)\s+(?P<rule>\S+)\s*$",
)
_ESLINT_GUIDANCE: Final[dict[str, str]] = {
    "@typescript-eslint/no-unused-vars": "Remove or prefix unused variables with underscore",
    "no-console": "Replace console.log with logger",
}
_ESLINT_DEFAULT_GUIDANCE: Final[str] = "Fix ESLint errors - run with --fix to auto-fix some issues"
_ESLINT_CONFIDENCE: Final[float] = 0.9
_WARNING: Final[str] = "warning"


def _format_tsc_line(error: ExtractedError) -> str:
    return f"{error.file}:{error.line}:{error.column} - {error.rule_id}: {error.message}"


def _format_eslint_line(error: ExtractedError) -> str:
    return f"{error.file}:{error.line}:{error.column} - {error.message} [{error.rule_id}]"


def detect_typescript(output: str, _command: str) -> float:
    """Return a confidence score for TypeScript compiler output."""

    return _TSC_CONFIDENCE if _TSC_DETECT.search(output) else 0.0


def parse_typescript(output: str) -> ParsedOutput:
    """Parse ``tsc`` diagnostics in both plain and ``--pretty`` layouts.

    Args:
        output: ANSI-free compiler output.

    Returns:
        ParsedOutput: Errors with file, line, column and ``TSxxxx`` rule ids.
    """

    errors: list[ExtractedError] = []
    warnings = 0
    for line in output.splitlines():
        match = _TSC_PAREN_PATTERN.match(line) or _TSC_PRETTY_PATTERN.match(line)
        if match is None:
            continue
        if match.group("severity") == _WARNING:
            warnings += 1
        errors.append(
            ExtractedError(
                file=match.group("file").strip(),
                line=int(match.group("line")),
                column=int(match.group("col")),
                message=match.group("message").strip(),
                rule_id=match.group("code"),
            ),
        )
    error_count = len(errors) - warnings
    codes = {error.rule_id for error in errors}
    hints = [hint for code, hint in _TSC_GUIDANCE.items() if code in codes]
    return ParsedOutput(
        errors=errors,
        summary=f"{plural(error_count, 'type error')}, {plural(warnings, 'warning')}",
        guidance=". ".join(hints) or _TSC_DEFAULT_GUIDANCE,
        line_formatter=_format_tsc_line,
    )


def detect_eslint(output: str, _command: str) -> float:
    """Return a confidence score for ESLint stylish or unix reporter output."""

    if _ESLINT_PROBLEMS.search(output) or _ESLINT_LOCATION.search(output):
        return _ESLINT_CONFIDENCE
    return 0.0


def parse_eslint(output: str) -> ParsedOutput:
    """Parse ESLint output produced by the ``stylish`` or ``unix`` formatters.

    Args:
        output: ANSI-free ESLint output.

    Returns:
        ParsedOutput: Errors carrying the violated rule as ``rule_id``.
    """

    errors: list[ExtractedError] = []
    warnings = 0
    current_file = ""
    for line in output.splitlines():
        inline = _ESLINT_INLINE_PATTERN.match(line)
        stylish = None if inline else _ESLINT_STYLISH_PATTERN.match(line)
        match = inline or (stylish if current_file else None)
        if match is not None:
            rule = match.group("rule").strip("[]")
            if match.group("severity") == _WARNING:
                warnings += 1
            errors.append(
                ExtractedError(
                    file=match.group("file").strip() if inline else current_file,
                    line=int(match.group("line")),
                    column=int(match.group("col")),
                    message=f"{match.group('message').strip()} ({rule})",
                    rule_id=rule,
                ),
            )
            continue
        if line and ":" not in line and not line[0].isspace() and ("/" in line or "\\" in line):
            current_file = line.strip()
    error_count = len(errors) - warnings
    rules = {error.rule_id for error in errors}
    hints = [hint for rule, hint in _ESLINT_GUIDANCE.items() if rule in rules]
    return ParsedOutput(
        errors=errors,
        summary=f"{plural(error_count, 'ESLint error')}, {plural(warnings, 'warning')}",
        guidance=". ".join(hints) or _ESLINT_DEFAULT_GUIDANCE,
        line_formatter=_format_eslint_line,
    )


TYPESCRIPT_EXTRACTOR: Final[Extractor] = Extractor(
    name="typescript",
    detect=detect_typescript,
    parse=parse_typescript,
)
ESLINT_EXTRACTOR: Final[Extractor] = Extractor(
    name="eslint",
    detect=detect_eslint,
    parse=parse_eslint,
)

__all__ = [
    "ESLINT_EXTRACTOR",
    "TYPESCRIPT_EXTRACTOR",
    "detect_eslint",
    "detect_typescript",
    "parse_eslint",
    "parse_typescript",
]
