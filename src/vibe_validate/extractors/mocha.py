# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractors for Mocha's spec reporter and Jasmine's default reporter."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Final

from .base import Extractor, FailedTest, ParsedOutput, extract_error_type, summarize_test_failures

_MOCHA_COUNTS: Final[re.Pattern[str]] = re.compile(r"\d+ (?:passing|failing)")
_MOCHA_NUMBERED: Final[re.Pattern[str]] = re.compile(r"^\s+\d+\)\s+", re.MULTILINE)
_MOCHA_FAILURE: Final[re.Pattern[str]] = re.compile(r"^ {2}(?P<index>\d+)\)\s+(?P<title>.*)$")
_MOCHA_NEXT_FAILURE: Final[re.Pattern[str]] = re.compile(r"^\s+\d+\)\s+")
_MOCHA_TITLE_PART: Final[re.Pattern[str]] = re.compile(r"^\s{5,}\S")
_MOCHA_ERROR_START: Final[re.Pattern[str]] = re.compile(r"^\s+(?:Error|AssertionError|TypeError)")
_MOCHA_ERROR: Final[re.Pattern[str]] = re.compile(r"^\s+(?P<type>[A-Za-z]*Error)(?:\s\[\w+\])?\s*:\s*(?P<message>.+)")
_MOCHA_LOCATION: Final[re.Pattern[str]] = re.compile(
    r"at Context\.<anonymous> \((?:file://)?(?P<file>[^:)]+):(?P<line>\d+)(?::\d+)?\)"
)
_MOCHA_TIMEOUT_FILE: Final[re.Pattern[str]] = re.compile(r"\(([^)]+\.(?:js|ts|mjs|cjs))\)")
_MOCHA_FAILING: Final[re.Pattern[str]] = re.compile(r"(?P<count>\d+) failing")
_MOCHA_BLOCK_LIMIT: Final[int] = 40
_MOCHA_CONFIDENCE: Final[float] = 0.8

_JASMINE_HEADER: Final[str] = "Failures:"
_JASMINE_FAILURE: Final[re.Pattern[str]] = re.compile(r"^(?P<index>\d+)\)\s+(?P<title>.+)$")
_JASMINE_USER_CONTEXT: Final[re.Pattern[str]] = re.compile(
    r"UserContext\.<anonymous> \((?P<file>[^:)]+):(?P<line>\d+)(?::\d+)?\)"
)
_JASMINE_ANY_FRAME: Final[re.Pattern[str]] = re.compile(r"\((?P<file>[^:)]+):(?P<line>\d+)(?::\d+)?\)")
_JASMINE_SPECS: Final[re.Pattern[str]] = re.compile(r"\d+ specs?, (?P<count>\d+) failures?")
_JASMINE_BLOCK_LIMIT: Final[int] = 40
_JASMINE_CONFIDENCE: Final[float] = 0.85


def detect_mocha(output: str, _command: str) -> float:
    """Return a confidence score for Mocha spec reporter output."""

    if _MOCHA_COUNTS.search(output) and _MOCHA_NUMBERED.search(output):
        return _MOCHA_CONFIDENCE
    return 0.0


def _mocha_title(lines: Sequence[str], start: int, first: str) -> tuple[str, int]:
    """Collect a multi-line Mocha failure title beginning with ``first``."""

    parts = [first.rstrip(":")] if first else []
    index = start
    if first.endswith(":"):
        return " > ".join(parts), index
    while index < len(lines):
        line = lines[index]
        if not line.strip() or _MOCHA_ERROR_START.match(line):
            break
        if _MOCHA_TITLE_PART.match(line):
            parts.append(line.strip().rstrip(":"))
        index += 1
    return " > ".join(parts), index


def parse_mocha(output: str) -> ParsedOutput:
    """Parse the numbered failure blocks printed after Mocha's summary.

    Args:
        output: ANSI-free Mocha output.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    lines = output.splitlines()
    failures: list[FailedTest] = []
    index = 0
    while index < len(lines):
        header = _MOCHA_FAILURE.match(lines[index])
        if header is None:
            index += 1
            continue
        title, cursor = _mocha_title(lines, index + 1, header.group("title").strip())
        message: str | None = None
        error_type: str | None = None
        file: str | None = None
        line_number: int | None = None
        limit = index + _MOCHA_BLOCK_LIMIT
        while cursor < len(lines) and cursor < limit and not _MOCHA_NEXT_FAILURE.match(lines[cursor]):
            current = lines[cursor]
            error = None if message else _MOCHA_ERROR.match(current)
            if error:
                error_type = error.group("type")
                message = error.group("message").strip()
            location = None if file else _MOCHA_LOCATION.search(current)
            if location:
                file = location.group("file")
                line_number = int(location.group("line"))
            if file is None and message and "Timeout" in message:
                timeout_file = _MOCHA_TIMEOUT_FILE.search(message)
                if timeout_file:
                    file = timeout_file.group(1)
            cursor += 1
        failures.append(
            FailedTest(
                message=message or "Test failed",
                file=file,
                line=line_number,
                test_name=title or None,
                error_type=error_type,
            ),
        )
        index = cursor
    reported = _MOCHA_FAILING.search(output)
    return summarize_test_failures(failures, total=int(reported.group("count")) if reported else None)


def detect_jasmine(output: str, _command: str) -> float:
    """Return a confidence score for Jasmine output."""

    if _JASMINE_HEADER in output and re.search(r"^\d+\)\s+", output, re.MULTILINE):
        return _JASMINE_CONFIDENCE
    return 0.0


def _jasmine_message(lines: Sequence[str], start: int) -> tuple[str, int]:
    collected: list[str] = []
    index = start
    while index < len(lines) and lines[index].strip() not in {"Stack:", ""}:
        collected.append(lines[index].strip())
        index += 1
    return " ".join(collected).strip(), index


def _jasmine_location(lines: Sequence[str], start: int, limit: int) -> tuple[str | None, int | None, int]:
    index = start
    while index < len(lines) and index < limit:
        line = lines[index]
        if _JASMINE_FAILURE.match(line):
            break
        match = _JASMINE_USER_CONTEXT.search(line)
        if match is None and " (" in line and ".js:" in line:
            match = _JASMINE_ANY_FRAME.search(line)
        if match:
            return match.group("file"), int(match.group("line")), index + 1
        index += 1
    return None, None, index


def parse_jasmine(output: str) -> ParsedOutput:
    """Parse Jasmine ``Failures:`` blocks with ``Message:`` and ``Stack:`` sections.

    Args:
        output: ANSI-free Jasmine output.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    lines = output.splitlines()
    failures: list[FailedTest] = []
    index = 0
    while index < len(lines):
        header = _JASMINE_FAILURE.match(lines[index])
        if header is None:
            index += 1
            continue
        message: str | None = None
        file: str | None = None
        line_number: int | None = None
        cursor = index + 1
        limit = index + _JASMINE_BLOCK_LIMIT
        while cursor < len(lines) and cursor < limit and not _JASMINE_FAILURE.match(lines[cursor]):
            marker = lines[cursor].strip()
            if marker == "Message:":
                message, cursor = _jasmine_message(lines, cursor + 1)
                continue
            if marker == "Stack:":
                file, line_number, cursor = _jasmine_location(lines, cursor + 1, limit)
                continue
            cursor += 1
        failures.append(
            FailedTest(
                message=message or "Test failed",
                file=file,
                line=line_number,
                test_name=header.group("title").strip(),
                error_type=extract_error_type(message or ""),
            ),
        )
        index = cursor
    reported = _JASMINE_SPECS.search(output)
    return summarize_test_failures(failures, total=int(reported.group("count")) if reported else None)


MOCHA_EXTRACTOR: Final[Extractor] = Extractor(name="mocha", detect=detect_mocha, parse=parse_mocha)
JASMINE_EXTRACTOR: Final[Extractor] = Extractor(name="jasmine", detect=detect_jasmine, parse=parse_jasmine)

__all__ = [
    "JASMINE_EXTRACTOR",
    "MOCHA_EXTRACTOR",
    "detect_jasmine",
    "detect_mocha",
    "parse_jasmine",
    "parse_mocha",
]
