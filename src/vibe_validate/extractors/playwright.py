# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor for Playwright's list and line reporters."""

from __future__ import annotations

import re
from typing import Final

from ..models import ExtractedError
from .base import Extractor, ParsedOutput, plural

_FAILURE_HEADER: Final[re.Pattern[str]] = re.compile(
    r"^\s+(?P<index>\d+)\)\s+(?P<file>.*\.spec\.ts):(?P<line>\d+):(?P<col>\d+)\s+›\s+(?P<name>.+?)\s*$",
)
_NEXT_FAILURE: Final[re.Pattern[str]] = re.compile(r"^\s+\d+\)\s+")
_ERROR_MESSAGE: Final[re.Pattern[str]] = re.compile(r"Error:\s*(?P<message>.+?)(?:\n\n|\n(?=\s+at\s))", re.DOTALL)
_STACK_LOCATION: Final[re.Pattern[str]] = re.compile(r"at\s+(?P<file>.*\.spec\.ts):(?P<line>\d+):(?P<col>\d+)")
_TESTS_PATH: Final[re.Pattern[str]] = re.compile(r"(tests?/.+\.spec\.ts)", re.IGNORECASE)
_DETECT_NUMBERED: Final[re.Pattern[str]] = re.compile(r"^\s+\d+\)\s+\S+\.spec\.ts:\d+:\d+\s+›", re.MULTILINE)
_DETECT_CROSS: Final[re.Pattern[str]] = re.compile(r"✘.*\.spec\.ts")
_PLAYWRIGHT_CONFIDENCE: Final[float] = 0.95
_ASSERTION_MARKERS: Final[tuple[str, ...]] = (
    "expect(",
    "toBe",
    "toContain",
    "toBeVisible",
    "toHaveValue",
    "toHaveCount",
)
_GUIDANCE_BY_TYPE: Final[dict[str, str]] = {
    "assertion-error": (
        "Check the assertion expectation and ensure the actual value matches. "
        "Review the test logic and the application state."
    ),
    "timeout": (
        "The operation exceeded the timeout limit. Consider increasing the timeout, checking for slow "
        "operations, or verifying the application is responding correctly."
    ),
    "element-not-found": (
        "The element was not found on the page. Verify the selector is correct, the element exists, "
        "and it is rendered when expected."
    ),
    "navigation-error": (
        "Failed to navigate to the page. Check the URL is correct, the server is running, and the page exists."
    ),
}
_DEFAULT_GUIDANCE: Final[str] = (
    "Review test failures and fix the underlying issues. Check assertions, selectors, and test logic."
)


def detect_playwright(output: str, _command: str) -> float:
    """Return a confidence score for Playwright output."""

    if ".spec.ts" not in output:
        return 0.0
    if _DETECT_NUMBERED.search(output) or _DETECT_CROSS.search(output):
        return _PLAYWRIGHT_CONFIDENCE
    return 0.0


def classify_failure(message: str, block: str) -> str:
    """Return the failure category for a Playwright error message.

    Args:
        message: First ``Error:`` message of the failure block.
        block: Complete failure block, used for locator context.

    Returns:
        str: One of ``element-not-found``, ``navigation-error``, ``timeout``,
        ``assertion-error`` or ``error``.
    """

    timed_out = "timeout" in message or "exceeded" in message
    if "waiting for locator" in block and timed_out:
        return "element-not-found"
    if "net::ERR" in message or "page.goto:" in message:
        return "navigation-error"
    if timed_out:
        return "timeout"
    if any(marker in message for marker in _ASSERTION_MARKERS):
        return "assertion-error"
    return "error"


def _relative_spec_path(path: str) -> str:
    if "/" not in path or path.startswith("tests"):
        return path
    match = _TESTS_PATH.search(path)
    return match.group(1) if match else path.rsplit("/", 1)[-1]


def parse_playwright(output: str) -> ParsedOutput:
    """Parse numbered Playwright failure blocks.

    Args:
        output: ANSI-free Playwright output.

    Returns:
        ParsedOutput: One error per failed test, located by the stack frame
        inside the spec file when one is printed.
    """

    lines = output.splitlines()
    errors: list[ExtractedError] = []
    categories: list[str] = []
    index = 0
    while index < len(lines):
        header = _FAILURE_HEADER.match(lines[index])
        index += 1
        if header is None:
            continue
        block_lines: list[str] = []
        while index < len(lines) and not _NEXT_FAILURE.match(lines[index]):
            block_lines.append(lines[index])
            index += 1
        block = "\n".join(block_lines)
        name = header.group("name")
        message_match = _ERROR_MESSAGE.search(block)
        message = message_match.group("message").strip() if message_match else name
        stack = _STACK_LOCATION.search(block)
        file = stack.group("file") if stack else header.group("file")
        categories.append(classify_failure(message, block))
        errors.append(
            ExtractedError(
                file=_relative_spec_path(file),
                line=int(stack.group("line")) if stack else None,
                column=int(stack.group("col")) if stack else None,
                message=f"{name}\n{message}",
                context=name,
            ),
        )
    if not errors:
        return ParsedOutput(summary="No test failures detected")
    hints = [_GUIDANCE_BY_TYPE[category] for category in dict.fromkeys(categories) if category in _GUIDANCE_BY_TYPE]
    return ParsedOutput(
        errors=errors,
        summary=f"{plural(len(errors), 'test')} failed",
        guidance="\n".join(hints) or _DEFAULT_GUIDANCE,
    )


PLAYWRIGHT_EXTRACTOR: Final[Extractor] = Extractor(
    name="playwright",
    detect=detect_playwright,
    parse=parse_playwright,
)

__all__ = ["PLAYWRIGHT_EXTRACTOR", "classify_failure", "detect_playwright", "parse_playwright"]
