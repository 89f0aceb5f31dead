# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared building blocks for framework-specific output extractors."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Final

from ..constants import MAX_ERRORS_IN_ARRAY
from ..errors import ExtractionDegradedError
from ..models import ExtractedError, ExtractionMetadata, ExtractionResult

_PARSER_FAILURES: Final[tuple[type[Exception], ...]] = (
    AttributeError,
    IndexError,
    KeyError,
    TypeError,
    ValueError,
)
_ANSI_PATTERN: Final[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")
_ERROR_TYPE_PATTERN: Final[re.Pattern[str]] = re.compile(r"\b([A-Z][A-Za-z]*(?:Error|Exception))\b")

DetectCallable = Callable[[str, str], float]
ParseCallable = Callable[[str], "ParsedOutput"]
LineFormatter = Callable[[ExtractedError], str]


def strip_ansi(text: str) -> str:
    """Return ``text`` with terminal colour and hyperlink escapes removed.

    Args:
        text: Raw console output that may include ANSI sequences.

    Returns:
        str: Plain text suitable for pattern matching.
    """

    return _ANSI_PATTERN.sub("", text)


def plural(count: int, noun: str) -> str:
    """Return ``"<count> <noun>"`` with a trailing ``s`` when ``count != 1``."""

    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def extract_error_type(message: str) -> str | None:
    """Return the first ``FooError``/``FooException`` token found in ``message``."""

    match = _ERROR_TYPE_PATTERN.search(message)
    return match.group(1) if match else None


@dataclass(slots=True)
class ParsedOutput:
    """Unbounded parse result produced by a framework parser.

    Attributes:
        errors: Every error located in the output, in source order.
        total: True number of failures reported by the tool. When ``None`` the
            length of ``errors`` is used.
        summary: Human readable summary describing ``total``.
        guidance: Remediation hint; empty when nothing specific applies.
        error_summary: Optional pre-rendered error listing. When empty, a
            listing is rendered from the bounded error list.
        line_formatter: Optional renderer for one line of the listing.
    """

    errors: list[ExtractedError] = field(default_factory=list)
    total: int | None = None
    summary: str = ""
    guidance: str = ""
    error_summary: str = ""
    line_formatter: LineFormatter | None = None

    @property
    def count(self) -> int:
        """Return the true failure count."""

        return self.total if self.total is not None else len(self.errors)


def format_error_line(error: ExtractedError) -> str:
    """Render ``error`` as ``file:line: message (context)``."""

    location = error.file or "unknown"
    if error.line is not None:
        location = f"{location}:{error.line}"
    context = f" ({error.context})" if error.context else ""
    return f"{location}: {error.message}{context}"


def format_error_lines(errors: Iterable[ExtractedError], formatter: LineFormatter | None = None) -> str:
    """Render ``errors`` one per line.

    Args:
        errors: Errors to render.
        formatter: Line renderer; defaults to :func:`format_error_line`.

    Returns:
        str: Newline separated listing, or an empty string.
    """

    render = formatter or format_error_line
    return "\n".join(render(error) for error in errors)


def build_result(
    parsed: ParsedOutput,
    *,
    framework: str,
    confidence: float,
    max_errors: int = MAX_ERRORS_IN_ARRAY,
) -> ExtractionResult:
    """Bound ``parsed`` to ``max_errors`` entries and wrap it in a result model.

    The summary keeps the true total and gains a ``(showing N)`` suffix when
    the error list was truncated.

    Args:
        parsed: Parse result produced by a framework parser.
        framework: Name recorded in the result metadata.
        confidence: Detection confidence recorded in the result metadata.
        max_errors: Maximum number of errors kept in the result.

    Returns:
        ExtractionResult: Bounded extraction result.
    """

    bounded = parsed.errors[:max_errors]
    summary = parsed.summary or f"{plural(parsed.count, 'error')} found"
    if len(parsed.errors) > len(bounded):
        summary = f"{summary} (showing {len(bounded)})"
    return ExtractionResult(
        errors=tuple(bounded),
        summary=summary,
        guidance=parsed.guidance,
        error_summary=parsed.error_summary or format_error_lines(bounded, parsed.line_formatter),
        metadata=ExtractionMetadata(
            framework=framework,
            confidence=max(0.0, min(1.0, confidence)),
            total_count=parsed.count,
        ),
    )


@dataclass(frozen=True, slots=True)
class Extractor:
    """Pair a detection heuristic with a parser for one output format.

    Attributes:
        name: Framework name reported in extraction metadata.
        detect: Callable returning a confidence in ``[0, 1]`` for
            ``(output, command)``; ``0`` means the output is not recognised.
        parse: Callable turning ANSI-free output into :class:`ParsedOutput`.
    """

    name: str
    detect: DetectCallable
    parse: ParseCallable

    def matches(self, output: str, command: str = "") -> float:
        """Return the detection confidence for ``output``.

        Raises:
            ExtractionDegradedError: If the detection heuristic itself fails.
        """

        try:
            return self.detect(output, command)
        except _PARSER_FAILURES as exc:
            raise ExtractionDegradedError(f"{self.name} detection failed: {exc}") from exc

    def extract(
        self,
        output: str,
        *,
        confidence: float | None = None,
        max_errors: int = MAX_ERRORS_IN_ARRAY,
    ) -> ExtractionResult:
        """Parse ``output`` and return a bounded extraction result.

        Args:
            output: ANSI-free tool output.
            confidence: Confidence to record; recomputed when omitted.
            max_errors: Maximum number of errors kept in the result.

        Returns:
            ExtractionResult: Bounded extraction result.

        Raises:
            ExtractionDegradedError: If the parser cannot interpret ``output``.
        """

        score = self.matches(output) if confidence is None else confidence
        try:
            parsed = self.parse(output)
        except _PARSER_FAILURES as exc:
            raise ExtractionDegradedError(f"{self.name} extractor failed: {exc}") from exc
        return build_result(parsed, framework=self.name, confidence=score, max_errors=max_errors)


@dataclass(frozen=True, slots=True)
class FailedTest:
    """Intermediate description of one failed test."""

    message: str = "Test failed"
    file: str | None = None
    line: int | None = None
    column: int | None = None
    test_name: str | None = None
    error_type: str | None = None


@dataclass(frozen=True, slots=True)
class GuidancePattern:
    """Map failure message fragments or error types to a remediation hint."""

    key: str
    message_matchers: tuple[str, ...]
    guidance: str
    error_types: tuple[str, ...] = ()


COMMON_GUIDANCE_PATTERNS: Final[tuple[GuidancePattern, ...]] = (
    GuidancePattern(
        key="assertion",
        message_matchers=("Expected", "expected", "should"),
        error_types=("AssertionError",),
        guidance="Review test assertions and expected values",
    ),
    GuidancePattern(
        key="timeout",
        message_matchers=("Timeout", "timeout", "exceeded", "did not complete", "timed out"),
        guidance="Increase test timeout or optimize async operations",
    ),
    GuidancePattern(
        key="type",
        message_matchers=("Cannot read properties", "typeerror"),
        error_types=("TypeError",),
        guidance="Check for null/undefined values and type mismatches",
    ),
    GuidancePattern(
        key="file",
        message_matchers=("ENOENT", "no such file"),
        guidance="Verify file paths and ensure test fixtures exist",
    ),
    GuidancePattern(
        key="module",
        message_matchers=("Cannot find module", "Cannot find package", "ModuleNotFoundError"),
        guidance="Install missing dependencies or check import paths",
    ),
)


def guidance_from_patterns(
    failures: Iterable[FailedTest],
    patterns: Sequence[GuidancePattern] = COMMON_GUIDANCE_PATTERNS,
) -> str:
    """Return newline separated guidance for the kinds of failures observed.

    Args:
        failures: Failures whose messages and error types are inspected.
        patterns: Guidance table consulted in order.

    Returns:
        str: Unique guidance lines in first-match order, or an empty string.
    """

    hints: list[str] = []
    seen: set[str] = set()
    for failure in failures:
        for pattern in patterns:
            if pattern.key in seen:
                continue
            by_type = failure.error_type is not None and failure.error_type in pattern.error_types
            if by_type or any(matcher in failure.message for matcher in pattern.message_matchers):
                hints.append(pattern.guidance)
                seen.add(pattern.key)
    return "\n".join(hints)


def summarize_test_failures(failures: Sequence[FailedTest], *, total: int | None = None) -> ParsedOutput:
    """Convert test failures into a :class:`ParsedOutput`.

    Args:
        failures: Failures in source order.
        total: True failure count when the runner reports more than were parsed.

    Returns:
        ParsedOutput: Parsed output with ``"N test(s) failed"`` summary.
    """

    count = max(total or 0, len(failures))
    errors = [
        ExtractedError(
            file=failure.file or "unknown",
            line=failure.line,
            column=failure.column,
            message=failure.message,
            context=failure.test_name,
        )
        for failure in failures
    ]
    summary = f"{plural(count, 'test')} failed" if count else "No test failures detected"
    return ParsedOutput(
        errors=errors,
        total=count,
        summary=summary,
        guidance=guidance_from_patterns(failures),
    )


__all__ = [
    "COMMON_GUIDANCE_PATTERNS",
    "Extractor",
    "GuidancePattern",
    "ParsedOutput",
    "FailedTest",
    "build_result",
    "extract_error_type",
    "format_error_line",
    "format_error_lines",
    "guidance_from_patterns",
    "plural",
    "strip_ansi",
    "summarize_test_failures",
]
