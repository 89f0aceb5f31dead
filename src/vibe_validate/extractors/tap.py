# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractors for TAP producers (node:test, tape, tap) and AVA."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from .base import (
    COMMON_GUIDANCE_PATTERNS,
    Extractor,
    FailedTest,
    GuidancePattern,
    ParsedOutput,
    extract_error_type,
    guidance_from_patterns,
    summarize_test_failures,
)

_TAP_VERSION: Final[re.Pattern[str]] = re.compile(r"^TAP version \d+")
_TAP_NOT_OK: Final[re.Pattern[str]] = re.compile(r"^not ok\s+\d+\s*-?\s*(?P<title>.+)$")
_TAP_AT: Final[re.Pattern[str]] = re.compile(r"^\s+at:\s+(?P<location>.+)$")
_TAP_LOCATION: Final[re.Pattern[str]] = re.compile(r"^(?P<file>.+):(?P<line>\d+):\d+$")
_TAP_YAML_MESSAGE: Final[re.Pattern[str]] = re.compile(r"^\s+(?:message|error):\s+['\"]?(?P<message>.+?)['\"]?$")
_TAP_FAIL_COUNT: Final[re.Pattern[str]] = re.compile(r"^#\s+fail\s+(?P<count>\d+)", re.MULTILINE)
_TAP_GUIDANCE: Final[tuple[GuidancePattern, ...]] = (
    GuidancePattern(
        key="assertion",
        message_matchers=("expected", "should"),
        guidance="Review the assertion logic and expected vs actual values",
    ),
    GuidancePattern(
        key="timeout",
        message_matchers=("timeout", "timed out"),
        guidance="Increase timeout limit or optimize async operations",
    ),
    GuidancePattern(
        key="file-not-found",
        message_matchers=("enoent", "no such file"),
        guidance="Verify file path exists and permissions are correct",
    ),
    GuidancePattern(
        key="type-error",
        message_matchers=("cannot read properties", "typeerror"),
        guidance="Check for null/undefined values before accessing properties",
    ),
)
_TAP_SCORES: Final[tuple[tuple[str, float], ...]] = (
    ("version", 0.3),
    ("not_ok", 0.2),
    ("yaml", 0.15),
    ("comment", 0.1),
)

_AVA_FAIL: Final[re.Pattern[str]] = re.compile(r"✘\s+\[fail\]:\s+(?P<title>.+)")
_AVA_FILE_LINE: Final[re.Pattern[str]] = re.compile(r"^(?P<file>[^:\s]+\.(?:js|ts|mjs|cjs)):(?P<line>\d+)$")
_AVA_FILE_URL: Final[re.Pattern[str]] = re.compile(r"›\s+file://(?P<file>[^:]+):(?P<line>\d+)(?::\d+)?")
_AVA_MESSAGE: Final[re.Pattern[str]] = re.compile(r"^message:\s+['\"`](?P<message>.+?)['\"`],?$")
_AVA_ERROR_MARKERS: Final[frozenset[str]] = frozenset(
    {"Error thrown in test:", "Rejected promise returned by test. Reason:"},
)
_AVA_TIMEOUT: Final[str] = "Test timeout exceeded"
_AVA_DIFFERENCE: Final[str] = "Difference (- actual, + expected):"
_AVA_FAILED_COUNT: Final[re.Pattern[str]] = re.compile(r"^\s*(?P<count>\d+) tests? failed", re.MULTILINE)
_AVA_SEPARATOR: Final[str] = "─"
_AVA_BLOCK_LIMIT: Final[int] = 60
_AVA_TIMEOUT_GUIDANCE: Final[GuidancePattern] = GuidancePattern(
    key="ava-timeout",
    message_matchers=(_AVA_TIMEOUT,),
    guidance="Tests are timing out - use t.timeout() to increase limit or optimize async operations",
)


def detect_tap(output: str, _command: str) -> float:
    """Return a score built from the TAP markers present in ``output``."""

    found: set[str] = set()
    for line in output.splitlines():
        stripped = line.strip()
        if _TAP_VERSION.match(stripped):
            found.add("version")
        elif stripped.startswith("not ok "):
            found.add("not_ok")
        elif stripped == "---":
            found.add("yaml")
        elif stripped.startswith("# "):
            found.add("comment")
    return min(1.0, sum(score for key, score in _TAP_SCORES if key in found))


def _tap_location(raw: str) -> tuple[str | None, int | None]:
    inner = re.search(r"\(([^)]+)\)", raw)
    path = (inner.group(1) if inner else raw).strip()
    path = path.removeprefix("file://")
    match = _TAP_LOCATION.match(path)
    if match is None:
        return None, None
    return match.group("file"), int(match.group("line"))


def parse_tap(output: str) -> ParsedOutput:
    """Parse ``not ok`` lines and their YAML diagnostic blocks.

    Args:
        output: ANSI-free TAP stream.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    lines = output.splitlines()
    failures: list[FailedTest] = []
    current_comment: str | None = None
    index = 0
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()
        if stripped.startswith("#"):
            current_comment = stripped.lstrip("#").strip() or None
            index += 1
            continue
        match = _TAP_NOT_OK.match(stripped)
        if match is None:
            index += 1
            continue
        title = match.group("title").strip()
        message = title
        file: str | None = None
        line_number: int | None = None
        if index + 1 < len(lines) and lines[index + 1].strip() == "---":
            index += 2
            while index < len(lines) and not lines[index].strip().startswith("..."):
                location = _TAP_AT.match(lines[index])
                if location:
                    file, line_number = _tap_location(location.group("location"))
                detail = _TAP_YAML_MESSAGE.match(lines[index])
                if detail and message == title:
                    message = f"{title}: {detail.group('message')}"
                index += 1
        failures.append(
            FailedTest(
                message=message,
                file=file,
                line=line_number,
                test_name=current_comment or title,
                error_type=extract_error_type(message),
            ),
        )
        index += 1
    reported = _TAP_FAIL_COUNT.search(output)
    parsed = summarize_test_failures(failures, total=int(reported.group("count")) if reported else None)
    parsed.guidance = guidance_from_patterns(
        [FailedTest(message=failure.message.lower()) for failure in failures],
        _TAP_GUIDANCE,
    )
    return parsed


def detect_ava(output: str, _command: str) -> float:
    """Return a score built from the AVA reporter markers present in ``output``."""

    score = 0.0
    seen: set[str] = set()
    for line in output.splitlines():
        stripped = line.strip()
        if "fail" not in seen and _AVA_FAIL.search(stripped):
            score += 0.3
            seen.add("fail")
        if "header" not in seen and _is_ava_header(stripped):
            score += 0.2
            seen.add("header")
        if "url" not in seen and _AVA_FILE_URL.search(stripped):
            score += 0.2
            seen.add("url")
        if "error" not in seen and stripped in _AVA_ERROR_MARKERS:
            score += 0.15
            seen.add("error")
        if _AVA_TIMEOUT in stripped:
            score += 0.1
        if _AVA_FILE_LINE.match(stripped):
            score += 0.05
    return min(1.0, score)


def _is_ava_header(stripped: str) -> bool:
    """Return ``True`` for ``suite › test`` headers that open a failure block."""

    return (
        "›" in stripped
        and "[fail]:" not in stripped
        and not stripped.startswith("›")
        and "file://" not in stripped
        and not re.match(r"^\d+:", stripped)
        and not stripped.startswith("Error")
        and "{" not in stripped
        and "}" not in stripped
        and len(stripped) > 10
    )


@dataclass(slots=True)
class _AvaBlock:
    name: str | None
    file: str | None = None
    line: int | None = None
    message: str | None = None

    def to_failure(self) -> FailedTest:
        message = self.message or self.name or "Test failed"
        return FailedTest(
            message=message,
            file=self.file,
            line=self.line,
            test_name=self.name,
            error_type=extract_error_type(message),
        )


def _read_ava_block(lines: Sequence[str], start: int, block: _AvaBlock) -> None:
    expect_error = False
    for offset, line in enumerate(lines[start : start + _AVA_BLOCK_LIMIT]):
        stripped = line.strip()
        if stripped == _AVA_SEPARATOR or (offset > 3 and _is_ava_header(stripped)):
            return
        if block.file is None:
            location = _AVA_FILE_LINE.match(stripped) or _AVA_FILE_URL.search(stripped)
            if location:
                block.file = location.group("file")
                block.line = int(location.group("line"))
                continue
        if block.message is not None:
            continue
        if stripped in _AVA_ERROR_MARKERS:
            expect_error = True
        elif _AVA_TIMEOUT in stripped:
            block.message = stripped
        elif stripped == _AVA_DIFFERENCE:
            block.message = "Values are not the same"
        elif message := _AVA_MESSAGE.match(stripped):
            block.message = message.group("message")
        elif expect_error and stripped and not stripped.endswith("{"):
            block.message = stripped


def parse_ava(output: str) -> ParsedOutput:
    """Parse AVA's verbose failure blocks, falling back to ``✘ [fail]:`` lines.

    Args:
        output: ANSI-free AVA output.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    lines = output.splitlines()
    blocks: list[_AvaBlock] = []
    for index, line in enumerate(lines):
        stripped = line.strip()
        if _is_ava_header(stripped):
            block = _AvaBlock(name=stripped)
            _read_ava_block(lines, index + 1, block)
            blocks.append(block)
    if not blocks:
        for index, line in enumerate(lines):
            match = _AVA_FAIL.search(line)
            if match:
                block = _AvaBlock(name=match.group("title").strip())
                _read_ava_block(lines, index + 1, block)
                blocks.append(block)
    failures = [block.to_failure() for block in blocks]
    reported = _AVA_FAILED_COUNT.search(output)
    parsed = summarize_test_failures(failures, total=int(reported.group("count")) if reported else None)
    parsed.guidance = guidance_from_patterns(failures, (*COMMON_GUIDANCE_PATTERNS, _AVA_TIMEOUT_GUIDANCE))
    return parsed


TAP_EXTRACTOR: Final[Extractor] = Extractor(name="tap", detect=detect_tap, parse=parse_tap)
AVA_EXTRACTOR: Final[Extractor] = Extractor(name="ava", detect=detect_ava, parse=parse_ava)

__all__ = [
    "AVA_EXTRACTOR",
    "TAP_EXTRACTOR",
    "detect_ava",
    "detect_tap",
    "parse_ava",
    "parse_tap",
]
