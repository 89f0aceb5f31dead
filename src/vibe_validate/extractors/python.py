# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor for pytest's terminal reporter."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final

from .base import Extractor, FailedTest, ParsedOutput, extract_error_type, summarize_test_failures

_PLATFORM: Final[re.Pattern[str]] = re.compile(r"platform\s+\S+\s+--\s+Python\s+[\d.]+,\s+pytest-[\d.]+")
_TEST_PATHS: Final[re.Pattern[str]] = re.compile(r"(?:FAILED|ERROR)\s+\S+\.py")
_SHORT_SUMMARY: Final[str] = "short test summary"
_PASSED: Final[re.Pattern[str]] = re.compile(r"\d+\s+passed")
_FAILED_OR_ERROR: Final[re.Pattern[str]] = re.compile(r"\d+\s+(?:failed|error)")
_FAILURES_HEADER: Final[str] = "= FAILURES ="
_ERRORS_HEADER: Final[str] = "= ERRORS ="

_SECTION_HEADER: Final[re.Pattern[str]] = re.compile(r"^={3,}\s")
_BLOCK_HEADER: Final[re.Pattern[str]] = re.compile(r"^_{3,}\s+(?P<name>.+?)\s+_{3,}$")
_COLLECTING_HEADER: Final[re.Pattern[str]] = re.compile(r"^_{3,}\s+ERROR\s+collecting\s+(?P<file>.+?)\s+_{3,}$")
_E_LINE: Final[re.Pattern[str]] = re.compile(r"^E\s{3}(?P<text>.+)$")
_LOCATION: Final[re.Pattern[str]] = re.compile(r"^(?P<file>\S[^:]*\.py):(?P<line>\d+):\s*(?P<type>\w+)")
_TRACE: Final[re.Pattern[str]] = re.compile(r"^(?P<file>\S[^:]*\.py):(?P<line>\d+):\s*in\s+")
_SUMMARY_FAILED: Final[re.Pattern[str]] = re.compile(
    r"^FAILED\s+(?P<file>\S+\.py)(?:::(?P<test>\S+))?\s+-\s+(?P<message>.+)$",
)
_SUMMARY_ERROR: Final[re.Pattern[str]] = re.compile(r"^ERROR\s+(?P<file>\S+\.py)\s+-\s+(?P<message>.+)$")

_PLATFORM_CONFIDENCE: Final[float] = 0.95
_SHORT_SUMMARY_CONFIDENCE: Final[float] = 0.9
_SUMMARY_LINE_CONFIDENCE: Final[float] = 0.85


def detect_pytest(output: str, _command: str) -> float:
    """Return a confidence score for pytest output.

    The ``platform ... -- Python X, pytest-Y`` banner is the strongest signal;
    the short test summary and the final tally line are weaker ones that must
    be accompanied by ``FAILED``/``ERROR`` lines naming ``.py`` files.
    """

    if _PLATFORM.search(output):
        return _PLATFORM_CONFIDENCE
    if not _TEST_PATHS.search(output):
        return 0.0
    if _SHORT_SUMMARY in output:
        return _SHORT_SUMMARY_CONFIDENCE
    has_tally = _PASSED.search(output) and (
        _FAILED_OR_ERROR.search(output) or _FAILURES_HEADER in output or _ERRORS_HEADER in output
    )
    return _SUMMARY_LINE_CONFIDENCE if has_tally else 0.0


@dataclass(slots=True)
class _BlockScan:
    """Details collected from one ``___ name ___`` block."""

    e_lines: list[str] = field(default_factory=list)
    file: str | None = None
    line: int | None = None
    error_type: str | None = None
    next_index: int = 0


def _is_boundary(line: str, section: str) -> bool:
    return bool(_BLOCK_HEADER.match(line)) or (bool(_SECTION_HEADER.match(line)) and section not in line)


def _scan_block(lines: Sequence[str], start: int, section: str, *, keep_last_trace: bool) -> _BlockScan:
    """Collect ``E`` lines and the source location of one failure block.

    Args:
        lines: Lines of the section being scanned.
        start: Index of the first line after the block header.
        section: Name of the enclosing section; its own header is not a boundary.
        keep_last_trace: Use ``file.py:N: in ...`` traceback lines as locations,
            keeping the last one seen (closest to the raising frame).

    Returns:
        _BlockScan: Collected details and the index of the next boundary.
    """

    scan = _BlockScan()
    index = start
    while index < len(lines) and not _is_boundary(lines[index], section):
        line = lines[index]
        e_line = _E_LINE.match(line)
        if e_line:
            scan.e_lines.append(e_line.group("text").strip())
        if keep_last_trace:
            trace = _TRACE.match(line)
            if trace:
                scan.file = trace.group("file")
                scan.line = int(trace.group("line"))
        else:
            location = _LOCATION.match(line)
            if location:
                scan.file = location.group("file")
                scan.line = int(location.group("line"))
                scan.error_type = scan.error_type or location.group("type")
        index += 1
    scan.next_index = index
    return scan


def _section_lines(output: str, header: str) -> list[str]:
    start = output.find(header)
    return [] if start == -1 else output[start:].splitlines()


def _failures_section(output: str) -> list[FailedTest]:
    lines = _section_lines(output, _FAILURES_HEADER)
    failures: list[FailedTest] = []
    index = 1
    while index < len(lines):
        line = lines[index]
        if index > 1 and _SECTION_HEADER.match(line) and "FAILURES" not in line:
            break
        header = _BLOCK_HEADER.match(line)
        if header is None:
            index += 1
            continue
        scan = _scan_block(lines, index + 1, "FAILURES", keep_last_trace=False)
        message = " ".join(scan.e_lines).strip() or "Test failed"
        failures.append(
            FailedTest(
                message=message,
                file=scan.file,
                line=scan.line,
                test_name=header.group("name"),
                error_type=scan.error_type or extract_error_type(message),
            ),
        )
        index = scan.next_index
    return failures


def _errors_section(output: str) -> list[FailedTest]:
    lines = _section_lines(output, _ERRORS_HEADER)
    errors: list[FailedTest] = []
    index = 1
    while index < len(lines):
        line = lines[index]
        if index > 1 and _SECTION_HEADER.match(line) and "ERRORS" not in line:
            break
        header = _COLLECTING_HEADER.match(line)
        if header is None:
            index += 1
            continue
        scan = _scan_block(lines, index + 1, "ERRORS", keep_last_trace=True)
        message = scan.e_lines[-1] if scan.e_lines else "Collection error"
        errors.append(
            FailedTest(
                message=message,
                file=scan.file or header.group("file"),
                line=scan.line,
                test_name=f"ERROR collecting {header.group('file')}",
                error_type=extract_error_type(message),
            ),
        )
        index = scan.next_index
    return errors


def _short_summary(output: str) -> list[FailedTest]:
    failures: list[FailedTest] = []
    for line in output.splitlines():
        failed = _SUMMARY_FAILED.match(line)
        if failed:
            message = failed.group("message").strip()
            failures.append(
                FailedTest(
                    message=message,
                    file=failed.group("file"),
                    test_name=failed.group("test") or failed.group("file"),
                    error_type=extract_error_type(message),
                ),
            )
            continue
        errored = _SUMMARY_ERROR.match(line)
        if errored:
            message = errored.group("message").strip()
            failures.append(
                FailedTest(
                    message=message,
                    file=errored.group("file"),
                    test_name=f"ERROR collecting {errored.group('file')}",
                    error_type=extract_error_type(message),
                ),
            )
    return failures


def parse_pytest(output: str) -> ParsedOutput:
    """Parse pytest failures, preferring detailed sections over the short summary.

    Args:
        output: ANSI-free pytest output.

    Returns:
        ParsedOutput: Failures and collection errors summarised as ``"N tests failed"``.
    """

    failures = _failures_section(output) + _errors_section(output)
    if not failures:
        failures = _short_summary(output)
    return summarize_test_failures(failures)


PYTEST_EXTRACTOR: Final[Extractor] = Extractor(name="pytest", detect=detect_pytest, parse=parse_pytest)

__all__ = ["PYTEST_EXTRACTOR", "detect_pytest", "parse_pytest"]
