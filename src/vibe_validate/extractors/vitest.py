# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor for Vitest's default and verbose reporters."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from ..models import ExtractedError
from .base import Extractor, ParsedOutput, plural

_RUN_BANNER: Final[re.Pattern[str]] = re.compile(r"^\s*RUN\s+v\d+\.\d+\.\d+", re.MULTILINE)
_DETECT_MARKERS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"FAIL\s+\S+\.test\.(?:ts|js)"),
    re.compile(r"❯\s+\S+\.test\.(?:ts|js)"),
    re.compile(r"×\s+[^❯\n]+"),
    re.compile(r"⎯+\s*Unhandled"),
)
_FAILURE_WITH_FILE: Final[re.Pattern[str]] = re.compile(
    r"(?:FAIL|❌|×)\s+(?P<file>[^\s]+\.test\.[jt]sx?)\s*>\s*(?P<name>.+)"
)
_FAILURE_NAME_ONLY: Final[re.Pattern[str]] = re.compile(r"×\s+(?P<name>.+?)(?:\s+\d+\s*ms)?$")
_FILE_HEADER: Final[re.Pattern[str]] = re.compile(r"❯\s+(?P<file>[^\s]+\.test\.[jt]sx?)\s+\(")
_DETAIL_START: Final[re.Pattern[str]] = re.compile(r"⎯+\s*Failed Tests|^\s*FAIL\s+")
_ERROR_LINE: Final[re.Pattern[str]] = re.compile(r"((?:AssertionError|[A-Za-z]*Error):\s*.+)")
_ARROW_LINE: Final[re.Pattern[str]] = re.compile(r"→\s+(.+)")
_SNAPSHOT_LINE: Final[re.Pattern[str]] = re.compile(r"Snapshot\s+`[^`]+`\s+mismatched")
_LOCATION: Final[re.Pattern[str]] = re.compile(r"❯\s*(?P<file>\S+\.test\.[jt]sx?):(?P<line>\d+):(?P<col>\d+)")
_STACK_LOCATION: Final[re.Pattern[str]] = re.compile(
    r"at\s+.+\((?P<file>[^\s]+\.test\.[jt]sx?):(?P<line>\d+):(?P<col>\d+)\)"
)
_SOURCE_LINE: Final[re.Pattern[str]] = re.compile(r"^\s*(?P<num>\d+)\|\s*(?P<code>.+)")
_TESTS_SUMMARY: Final[re.Pattern[str]] = re.compile(r"^\s*Tests\s+(?P<failed>\d+)\s+failed", re.MULTILINE)
_REJECTION_SPLIT: Final[re.Pattern[str]] = re.compile(r"⎯+\s*Unhandled Rejection\s*⎯+")
_REJECTION_ERROR: Final[re.Pattern[str]] = re.compile(
    r"^\s*((?:Type|Reference|Range|Syntax)?Error:[^\n]+(?:\n\s*[^\n❯⎯]+)?)"
)
_REJECTION_LOCATION: Final[re.Pattern[str]] = re.compile(r"❯\s+\S+\s+(?P<file>[\w:/.@-]+):(?P<line>\d+):(?P<col>\d+)")
_COVERAGE_ERROR: Final[re.Pattern[str]] = re.compile(
    r"ERROR:\s+Coverage for (?P<metric>\w+) \((?P<actual>[\d.]+)%\) does not meet (?:global )?threshold "
    r"\((?P<expected>[\d.]+)%\)"
)
_WORKER_TIMEOUT: Final[re.Pattern[str]] = re.compile(
    r"⎯+\s*Unhandled Errors?\s*⎯+\s*\n\s*Error:\s*\[vitest-worker\]:\s*(?P<message>Timeout[^\n]+)"
)
_STOP_PREFIXES: Final[tuple[str, ...]] = ("❯", "FAIL", "✓", "❌", "×", "⎯", "at ")
_MAX_CONTINUATION_LINES: Final[int] = 5
_CONFIG_FILE: Final[str] = "vitest.config.ts"
_BANNER_CONFIDENCE: Final[float] = 1.0
_MULTI_MARKER_CONFIDENCE: Final[float] = 0.9
_SINGLE_MARKER_CONFIDENCE: Final[float] = 0.7


def detect_vitest(output: str, _command: str) -> float:
    """Return a confidence score for Vitest output.

    The ``RUN vX.Y.Z`` banner is conclusive; otherwise the score depends on
    how many Vitest failure markers appear.
    """

    if _RUN_BANNER.search(output):
        return _BANNER_CONFIDENCE
    hits = sum(1 for marker in _DETECT_MARKERS if marker.search(output))
    if hits >= 2:
        return _MULTI_MARKER_CONFIDENCE
    if hits == 1:
        return _SINGLE_MARKER_CONFIDENCE
    return 0.0


@dataclass(slots=True)
class _Failure:
    file: str
    name: str
    message: str = ""
    line: int | None = None
    column: int | None = None
    source: str = ""

    def to_error(self) -> ExtractedError:
        return ExtractedError(
            file=self.file,
            line=self.line,
            column=self.column,
            message=self.message or "Test failed",
            context=self.name,
        )


def _is_stop_line(line: str) -> bool:
    return line.startswith(_STOP_PREFIXES) or bool(re.match(r"^\d+\|", line))


def _error_message(line: str) -> str:
    match = _ERROR_LINE.search(line) or _ARROW_LINE.search(line)
    return match.group(1).strip() if match else line.strip()


def _read_error_message(lines: Sequence[str], start: int) -> tuple[str, int]:
    """Return the error message starting at ``start`` and the last index consumed.

    Snapshot diffs keep their line layout; other messages are joined with
    spaces and capped at a few continuation lines.
    """

    snapshot = bool(_SNAPSHOT_LINE.search(lines[start]))
    message = _error_message(lines[start])
    consumed = 0
    index = start + 1
    while index < len(lines):
        stripped = lines[index].strip()
        if _is_stop_line(stripped):
            break
        if not snapshot:
            if not stripped:
                break
            if consumed >= _MAX_CONTINUATION_LINES:
                message = f"{message} ...(truncated)"
                break
            message = f"{message} {stripped}"
            consumed += 1
        else:
            message = f"{message}\n{lines[index]}"
        index += 1
    return message, index - 1


def _runtime_failures(output: str) -> list[_Failure]:
    """Return failures for unhandled rejections, coverage gates and worker timeouts."""

    failures: list[_Failure] = []
    for section in _REJECTION_SPLIT.split(output)[1:]:
        error = _REJECTION_ERROR.match(section)
        if error is None:
            continue
        failure = _Failure(
            file="unknown",
            name="Runtime Error",
            message=re.sub(r"\n\s+", " ", error.group(1).strip()),
        )
        chosen: re.Match[str] | None = None
        for location in _REJECTION_LOCATION.finditer(section):
            if not location.group("file").startswith("node:internal"):
                chosen = location
                break
            chosen = chosen or location
        if chosen is not None:
            failure.file = chosen.group("file")
            failure.line = int(chosen.group("line"))
            failure.column = int(chosen.group("col"))
        failures.append(failure)

    coverage = _COVERAGE_ERROR.search(output)
    if coverage:
        failures.append(
            _Failure(
                file=_CONFIG_FILE,
                name="Coverage Threshold",
                message=(
                    f"Coverage for {coverage.group('metric')} ({coverage.group('actual')}%) "
                    f"does not meet threshold ({coverage.group('expected')}%)"
                ),
            ),
        )

    timeout = _WORKER_TIMEOUT.search(output)
    if timeout:
        failures.append(
            _Failure(
                file=_CONFIG_FILE,
                name="Vitest Worker Timeout",
                message=(
                    f"{timeout.group('message').strip()}. This is usually caused by system resource constraints "
                    "or competing processes. Try: 1) Kill background processes, 2) Reduce --pool-workers, "
                    "3) Increase --test-timeout"
                ),
            ),
        )
    return failures


def _test_failures(lines: Sequence[str]) -> list[_Failure]:
    failures: list[_Failure] = []
    current: _Failure | None = None
    current_file = ""
    in_detail = False
    index = -1
    while index < len(lines) - 1:
        index += 1
        line = lines[index]
        if not in_detail and _DETAIL_START.search(line):
            in_detail = True

        header = _FILE_HEADER.search(line)
        if header:
            current_file = header.group("file")
            continue

        with_file = _FAILURE_WITH_FILE.search(line)
        name_only = None if with_file else _FAILURE_NAME_ONLY.search(line)
        if with_file or (name_only and current_file and in_detail):
            if current is not None:
                failures.append(current)
            if with_file:
                current = _Failure(file=with_file.group("file"), name=with_file.group("name").strip())
            elif name_only is not None:
                current = _Failure(file=current_file, name=name_only.group("name").strip())
            continue

        if current is None:
            continue
        if not current.message:
            if _ERROR_LINE.search(line) or _ARROW_LINE.search(line) or _SNAPSHOT_LINE.search(line):
                current.message, index = _read_error_message(lines, index)
            continue
        if current.line is None:
            location = _LOCATION.search(line) or _STACK_LOCATION.search(line)
            if location:
                current.line = int(location.group("line"))
                current.column = int(location.group("col"))
                continue
        source = _SOURCE_LINE.match(line)
        if source:
            current.source = f"{source.group('num')}| {source.group('code').strip()}"
    if current is not None:
        failures.append(current)
    return failures


def _guidance(count: int, *, timed_out: bool) -> str:
    prefix = f"{plural(count, 'test')} failed. "
    if timed_out:
        return (
            f"{prefix}Test(s) timed out. Increase the timeout with testTimeout, optimise the test, or mock slow "
            "operations. Run: npm test -- <test-file> to verify the fix."
        )
    if count == 1:
        return (
            f"{prefix}Fix the assertion in the test file at the location shown. "
            "Run: npm test -- <test-file> to verify the fix."
        )
    return f"{prefix}Fix each failing test individually. Run: npm test -- <test-file> to test each file."


def parse_vitest(output: str) -> ParsedOutput:
    """Parse Vitest output into test failures.

    Args:
        output: ANSI-free Vitest output.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    failures = _runtime_failures(output) + _test_failures(output.splitlines())
    reported = _TESTS_SUMMARY.search(output)
    total = max(len(failures), int(reported.group("failed")) if reported else 0)
    if not total:
        return ParsedOutput(summary="No test failures detected")
    timed_out = any("Test timed out" in failure.message for failure in failures)
    return ParsedOutput(
        errors=[failure.to_error() for failure in failures],
        total=total,
        summary=f"{plural(total, 'test')} failed",
        guidance=_guidance(total, timed_out=timed_out),
    )


VITEST_EXTRACTOR: Final[Extractor] = Extractor(name="vitest", detect=detect_vitest, parse=parse_vitest)

__all__ = ["VITEST_EXTRACTOR", "detect_vitest", "parse_vitest"]
