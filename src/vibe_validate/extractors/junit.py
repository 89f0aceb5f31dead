# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor for JUnit XML test reports (Vitest, Jest, Surefire and friends)."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from defusedxml import ElementTree

from .base import (
    Extractor,
    FailedTest,
    GuidancePattern,
    ParsedOutput,
    extract_error_type,
    guidance_from_patterns,
    summarize_test_failures,
)

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

_XML_DECLARATION: Final[str] = "<?xml"
_SUITE_TAG: Final[str] = "<testsuite"
_FAILURE_TAG: Final[str] = "<failure"
_DOCUMENT_START: Final[re.Pattern[str]] = re.compile(r"<\?xml|<testsuites?\b")
_DOCUMENT_END: Final[re.Pattern[str]] = re.compile(r"</testsuites?>")
_ARROW_LOCATION: Final[re.Pattern[str]] = re.compile(r"❯\s+(?P<file>[\w/.@-]+):(?P<line>\d+)(?::(?P<col>\d+))?")
_FRAME_LOCATION: Final[re.Pattern[str]] = re.compile(r"\((?P<file>[^()\s:]+):(?P<line>\d+)(?::(?P<col>\d+))?\)")
_PROBLEM_TAGS: Final[tuple[str, ...]] = ("failure", "error")

_DECLARED_CONFIDENCE: Final[float] = 1.0
_FAILURE_CONFIDENCE: Final[float] = 0.9
_SUITE_CONFIDENCE: Final[float] = 0.85

_JUNIT_GUIDANCE: Final[tuple[GuidancePattern, ...]] = (
    GuidancePattern(
        key="assertion",
        message_matchers=("expected",),
        error_types=("AssertionError", "AssertionFailedError"),
        guidance="Review test assertions - expected values may not match actual results",
    ),
    GuidancePattern(
        key="type",
        message_matchers=("cannot read properties",),
        error_types=("TypeError", "NullPointerException"),
        guidance="Check for null/undefined values before property access",
    ),
    GuidancePattern(
        key="file",
        message_matchers=("enoent", "no such file"),
        guidance="Verify file paths and ensure required files exist",
    ),
    GuidancePattern(
        key="timeout",
        message_matchers=("timed out", "timeout"),
        guidance="Consider increasing test timeout or optimizing slow operations",
    ),
)
_DEFAULT_GUIDANCE: Final[str] = "Review failing tests and fix assertion errors"


def detect_junit(output: str, _command: str) -> float:
    """Return a confidence score for a JUnit XML report.

    An XML declaration followed by a ``<testsuite>`` element is unambiguous;
    a bare suite element scores slightly lower.
    """

    if _SUITE_TAG not in output:
        return 0.0
    if _XML_DECLARATION in output:
        return _DECLARED_CONFIDENCE
    return _FAILURE_CONFIDENCE if _FAILURE_TAG in output else _SUITE_CONFIDENCE


def _report_root(output: str) -> Element:
    """Return the root element of the XML report embedded in ``output``.

    Raises:
        ValueError: If no well-formed report is present.
    """

    start = _DOCUMENT_START.search(output)
    ends = list(_DOCUMENT_END.finditer(output, start.end())) if start else []
    if start is None or not ends:
        raise ValueError("no complete JUnit XML report found")
    try:
        return ElementTree.fromstring(output[start.start() : ends[-1].end()])
    except ElementTree.ParseError as exc:
        raise ValueError(f"malformed JUnit XML: {exc}") from exc


def _failure(case: Element, problem: Element) -> FailedTest:
    body = problem.text or ""
    first_line = next((line.strip() for line in body.splitlines() if line.strip()), "")
    message = problem.get("message") or first_line or "Test failed"
    location = _ARROW_LOCATION.search(body) or _FRAME_LOCATION.search(body)
    file = location.group("file") if location else case.get("file") or case.get("classname")
    column = location.group("col") if location else None
    declared = problem.get("type")
    return FailedTest(
        message=message.strip(),
        file=file,
        line=int(location.group("line")) if location else None,
        column=int(column) if column else None,
        test_name=case.get("name"),
        # java.lang.AssertionError -> AssertionError
        error_type=declared.rsplit(".", 1)[-1] if declared else extract_error_type(first_line),
    )


def parse_junit(output: str) -> ParsedOutput:
    """Parse ``<testcase>`` elements carrying a ``<failure>`` or ``<error>`` child.

    Args:
        output: ANSI-free output containing a JUnit XML report.

    Returns:
        ParsedOutput: Failures summarised as ``"N tests failed"``.

    Raises:
        ValueError: If the report is missing or not well-formed XML.
    """

    failures: list[FailedTest] = []
    for case in _report_root(output).iter("testcase"):
        problem = next((child for child in case if child.tag in _PROBLEM_TAGS), None)
        if problem is not None:
            failures.append(_failure(case, problem))
    parsed = summarize_test_failures(failures)
    if failures:
        parsed.guidance = guidance_from_patterns(
            [FailedTest(message=failure.message.lower(), error_type=failure.error_type) for failure in failures],
            _JUNIT_GUIDANCE,
        ) or _DEFAULT_GUIDANCE
    return parsed


JUNIT_EXTRACTOR: Final[Extractor] = Extractor(name="junit", detect=detect_junit, parse=parse_junit)

__all__ = ["JUNIT_EXTRACTOR", "detect_junit", "parse_junit"]
