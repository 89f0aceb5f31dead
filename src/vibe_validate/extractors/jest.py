# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor for Jest's default reporter."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final

from .base import Extractor, FailedTest, ParsedOutput, extract_error_type, summarize_test_failures

_FAIL_FILE: Final[re.Pattern[str]] = re.compile(r"^\s*FAIL\s+(?:[\w-]+\s+)?(?P<file>[\w./-]+\.test\.\w+)")
_INLINE_FAILURE: Final[re.Pattern[str]] = re.compile(r"^(?P<indent>\s+)✕\s+(?P<name>.+?)(?:\s+\(\d+\s*ms\))?$")
_SUITE_LINE: Final[re.Pattern[str]] = re.compile(r"^(?P<indent>\s+)(?P<name>[^\s✓✕○●].*)$")
_DETAIL_HEADER: Final[re.Pattern[str]] = re.compile(r"^\s*●\s+(?P<name>.+)$")
_STACK_LOCATION: Final[re.Pattern[str]] = re.compile(
    r"at\s+(?:.+?\()?(?P<file>[^()\s]+?):(?P<line>\d+):(?P<col>\d+)\)?",
)
_CODE_FRAME: Final[re.Pattern[str]] = re.compile(r"^\s*>?\s*\d+\s*\|")
_STACK_FRAME: Final[re.Pattern[str]] = re.compile(r"^\s*at\s")
_TESTS_SUMMARY: Final[re.Pattern[str]] = re.compile(r"^Tests:\s+(?P<failed>\d+)\s+failed")
_DETECT_MARKERS: Final[tuple[str, ...]] = ("●", "Test Suites:")
_IGNORED_DETAILS: Final[tuple[str, ...]] = ("Console",)
_HIERARCHY_SEPARATOR: Final[str] = " › "
_INDENT_WIDTH: Final[int] = 2
_JEST_CONFIDENCE: Final[float] = 0.9
JEST_GUIDANCE: Final[str] = "Fix each failing test individually. Check test setup, mocks, and assertions."


def detect_jest(output: str, _command: str) -> float:
    """Return a confidence score for Jest output."""

    return _JEST_CONFIDENCE if any(marker in output for marker in _DETECT_MARKERS) else 0.0


@dataclass(slots=True)
class _DetailBlock:
    """Accumulate one ``●`` failure block."""

    name: str
    file: str
    message: str | None = None
    line: int | None = None
    column: int | None = None

    def to_failure(self) -> FailedTest:
        message = self.message or "Test failed"
        return FailedTest(
            message=message,
            file=self.file or None,
            line=self.line,
            column=self.column,
            test_name=self.name,
            error_type=extract_error_type(message),
        )


@dataclass(slots=True)
class _JestState:
    """Mutable parser state while walking Jest output line by line."""

    current_file: str = ""
    suites: list[str] = field(default_factory=list)
    inline: list[FailedTest] = field(default_factory=list)
    details: list[_DetailBlock] = field(default_factory=list)
    block: _DetailBlock | None = None
    reported_total: int | None = None

    def close_block(self) -> None:
        if self.block is not None:
            self.details.append(self.block)
            self.block = None


def _consume_tree_line(state: _JestState, line: str) -> bool:
    """Handle suite-tree lines printed under a ``FAIL`` header."""

    inline = _INLINE_FAILURE.match(line)
    if inline:
        depth = max(0, (len(inline.group("indent")) - _INDENT_WIDTH) // _INDENT_WIDTH)
        hierarchy = [*state.suites[:depth], inline.group("name").strip()]
        state.inline.append(
            FailedTest(
                file=state.current_file or None,
                test_name=_HIERARCHY_SEPARATOR.join(hierarchy),
            ),
        )
        return True
    suite = _SUITE_LINE.match(line)
    if suite and state.block is None and state.current_file:
        depth = max(0, (len(suite.group("indent")) - _INDENT_WIDTH) // _INDENT_WIDTH)
        del state.suites[depth:]
        state.suites.append(suite.group("name").strip())
        return True
    return False


def _consume_detail_line(block: _DetailBlock, line: str) -> None:
    """Collect the first message line and first stack location of a block."""

    location = _STACK_LOCATION.search(line)
    if location and block.line is None and "node_modules" not in location.group("file"):
        if not block.file:
            block.file = location.group("file")
        block.line = int(location.group("line"))
        block.column = int(location.group("col"))
        return
    stripped = line.strip()
    if block.message is None and stripped and not _STACK_FRAME.match(line) and not _CODE_FRAME.match(line):
        block.message = stripped


def parse_jest(output: str) -> ParsedOutput:
    """Parse Jest output into test failures.

    Detailed ``●`` blocks are preferred because they carry the assertion
    message and stack location; ``✕`` tree entries are used for failures that
    have no detailed block.

    Args:
        output: ANSI-free Jest output.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.
    """

    state = _JestState()
    for line in output.splitlines():
        fail = _FAIL_FILE.match(line)
        if fail:
            state.close_block()
            state.current_file = fail.group("file")
            state.suites.clear()
            continue
        summary = _TESTS_SUMMARY.match(line)
        if summary:
            state.close_block()
            state.reported_total = int(summary.group("failed"))
            continue
        header = _DETAIL_HEADER.match(line)
        if header:
            state.close_block()
            name = header.group("name").strip()
            if not name.startswith(_IGNORED_DETAILS):
                state.block = _DetailBlock(name=name, file=state.current_file)
            continue
        if state.block is not None:
            _consume_detail_line(state.block, line)
            continue
        _consume_tree_line(state, line)
    state.close_block()

    detailed = [block.to_failure() for block in state.details]
    described = {failure.test_name for failure in detailed}
    failures = detailed + [failure for failure in state.inline if failure.test_name not in described]
    parsed = summarize_test_failures(failures, total=state.reported_total)
    if failures and not parsed.guidance:
        parsed.guidance = JEST_GUIDANCE
    return parsed


JEST_EXTRACTOR: Final[Extractor] = Extractor(name="jest", detect=detect_jest, parse=parse_jest)

__all__ = ["JEST_EXTRACTOR", "JEST_GUIDANCE", "detect_jest", "parse_jest"]
