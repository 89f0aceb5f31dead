# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractors for Maven builds: javac via the compiler plugin, Surefire/Failsafe and Checkstyle."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from ..models import ExtractedError
from .base import Extractor, ParsedOutput, extract_error_type, plural

_SOURCE_ROOT: Final[str] = "/src/"


@dataclass(frozen=True, slots=True)
class Marker:
    """Weighted pattern contributing to a detection score."""

    pattern: re.Pattern[str]
    weight: float


def _score(output: str, markers: Sequence[Marker]) -> float:
    """Sum the weights of ``markers`` found in ``output``, capped at 1.0."""

    return min(1.0, sum(marker.weight for marker in markers if marker.pattern.search(output)))


def relative_source_path(path: str) -> str:
    """Trim an absolute path to start at its ``src/`` directory, when it has one."""

    index = path.find(_SOURCE_ROOT)
    return path[index + 1 :] if index >= 0 else path


def _unique(errors: Iterable[ExtractedError]) -> list[ExtractedError]:
    seen: set[tuple[str | None, int | None, int | None, str]] = set()
    unique: list[ExtractedError] = []
    for error in errors:
        key = (error.file, error.line, error.column, error.message.splitlines()[0])
        if key not in seen:
            seen.add(key)
            unique.append(error)
    return unique


# Compiler plugin -----------------------------------------------------------

_COMPILER_ERROR: Final[re.Pattern[str]] = re.compile(
    r"^\[ERROR\]\s+(?P<file>[^:\[\s][^:\[]*?):\[(?P<line>\d+)(?:,(?P<col>\d+))?\]\s+(?P<message>.+)$",
)
_COMPILER_CONTEXT: Final[tuple[str, ...]] = ("symbol:", "location:")
_COMPILER_MARKERS: Final[tuple[Marker, ...]] = (
    Marker(re.compile(r"^\[ERROR\]\s+COMPILATION ERROR\s*:", re.MULTILINE), 0.3),
    Marker(re.compile(r"maven-compiler-plugin"), 0.3),
    Marker(re.compile(r"^\[INFO\]\s+\d+\s+errors?\s*$", re.MULTILINE), 0.2),
    Marker(re.compile(r"^\[ERROR\]\s+[^:\[\s][^:\[]*?:\[\d+(?:,\d+)?\]\s", re.MULTILINE), 0.2),
    Marker(
        re.compile(
            r"cannot find symbol|incompatible types|class, interface, or enum expected|illegal start of expression"
            r"|reached end of file while parsing|package \S+ does not exist|method \S+ cannot be applied",
        ),
        0.1,
    ),
)
_COMPILER_GUIDANCE: Final[str] = "Fix Java compilation errors. Run mvn compile to see all details."


def detect_maven_compiler(output: str, _command: str) -> float:
    """Return a score built from Maven compiler plugin markers."""

    return _score(output, _COMPILER_MARKERS)


def parse_maven_compiler(output: str) -> ParsedOutput:
    """Parse ``[ERROR] File.java:[line,col] message`` diagnostics.

    ``symbol:`` and ``location:`` lines following an error are folded into its
    message. Errors repeated by Maven's final summary are reported once.

    Args:
        output: ANSI-free Maven output.

    Returns:
        ParsedOutput: Errors grouped into a ``"N compilation errors in M files"`` summary.
    """

    lines = output.splitlines()
    errors: list[ExtractedError] = []
    for index, line in enumerate(lines):
        match = _COMPILER_ERROR.match(line)
        if match is None:
            continue
        context: list[str] = []
        for following in lines[index + 1 : index + 5]:
            stripped = following.strip()
            if stripped.startswith("["):
                break
            if stripped.startswith(_COMPILER_CONTEXT):
                context.append(stripped)
        column = match.group("col")
        errors.append(
            ExtractedError(
                file=relative_source_path(match.group("file").strip()),
                line=int(match.group("line")),
                column=int(column) if column else None,
                message="\n".join([match.group("message").strip(), *context]),
            ),
        )
    unique = _unique(errors)
    files = {error.file for error in unique}
    return ParsedOutput(
        errors=unique,
        summary=f"{plural(len(unique), 'compilation error')} in {plural(len(files), 'file')}",
        guidance=_COMPILER_GUIDANCE if unique else "",
    )


# Surefire / Failsafe -------------------------------------------------------

_SUREFIRE_TALLY: Final[re.Pattern[str]] = re.compile(
    r"^(?:\[(?:ERROR|WARNING|INFO)\]\s+)?Tests run:\s+\d+,\s+"
    r"Failures:\s+(?P<failures>\d+),\s+Errors:\s+(?P<errors>\d+)",
)
_SUREFIRE_HEADER: Final[re.Pattern[str]] = re.compile(
    r"^\[ERROR\]\s+(?P<cls>[\w.$]+)\.(?P<method>[\w$]+)(?:\(\))?\s+.*<<<\s+(?P<kind>FAILURE|ERROR)!",
)
_SUREFIRE_SHORT: Final[re.Pattern[str]] = re.compile(
    r"^\[ERROR\]\s+(?P<cls>[\w.$]+)\.(?P<method>[\w$]+):(?P<line>\d+)\s+(?P<message>.+)$",
)
_SUREFIRE_EXCEPTION: Final[re.Pattern[str]] = re.compile(
    r"^(?P<type>[\w.$]+(?:Error|Exception|AssertionFailedError|ComparisonFailure)):?\s*(?P<message>.*)$",
)
_SUREFIRE_FRAME: Final[re.Pattern[str]] = re.compile(
    r"^\s+at\s+(?P<method>[^(]+)\((?P<file>[^:()]+\.java):(?P<line>\d+)\)",
)
_SUREFIRE_MARKERS: Final[tuple[Marker, ...]] = (
    Marker(re.compile(r"maven-(?:surefire|failsafe)-plugin"), 0.4),
    Marker(re.compile(r"^\[ERROR\]\s+Tests run:\s+\d+,\s+Failures:\s+\d+,\s+Errors:\s+\d+", re.MULTILINE), 0.4),
    Marker(re.compile(r"<<< (?:FAILURE|ERROR)!"), 0.2),
    Marker(re.compile(r"\[ERROR\] (?:Failures|Errors):"), 0.15),
    Marker(re.compile(r"AssertionError|AssertionFailedError"), 0.1),
)
_SUREFIRE_GUIDANCE: Final[str] = "Fix test failures. Run mvn test to see full details."
_MESSAGE_LINE_LIMIT: Final[int] = 3


@dataclass(slots=True)
class _SurefireFailure:
    test_class: str
    method: str
    exception: str | None = None
    message: str = ""
    line: int | None = None

    def to_error(self) -> ExtractedError:
        message = self.message or "Test failed"
        if self.exception and self.exception not in message:
            message = f"{self.exception}: {message}" if self.message else self.exception
        return ExtractedError(
            file=f"{self.test_class.replace('.', '/')}.java",
            line=self.line,
            message=message,
            context=f"{self.test_class}.{self.method}",
        )


def detect_maven_surefire(output: str, _command: str) -> float:
    """Return a score built from Surefire/Failsafe report markers."""

    return _score(output, _SUREFIRE_MARKERS)


def _fill_failure(failure: _SurefireFailure, body: Sequence[str]) -> None:
    """Populate exception, message and test line from the lines after a failure header."""

    simple_class = failure.test_class.rsplit(".", 1)[-1]
    continuation: list[str] = []
    for line in body:
        if failure.exception is None:
            exception = _SUREFIRE_EXCEPTION.match(line.strip())
            if exception:
                failure.exception = extract_error_type(exception.group("type")) or exception.group("type")
                failure.message = exception.group("message").strip()
            continue
        frame = _SUREFIRE_FRAME.match(line)
        if frame is None:
            if not failure.message and line.strip() and len(continuation) < _MESSAGE_LINE_LIMIT:
                continuation.append(line.strip())
            continue
        if failure.line is None and frame.group("file") == f"{simple_class}.java":
            failure.line = int(frame.group("line"))
    if continuation:
        failure.message = " ".join(continuation)


def parse_maven_surefire(output: str) -> ParsedOutput:
    """Parse Surefire/Failsafe failure blocks.

    Detailed ``<<< FAILURE!`` blocks are preferred; when Maven only printed the
    condensed ``Class.method:line message`` list, that list is used instead.

    Args:
        output: ANSI-free Maven output.

    Returns:
        ParsedOutput: One error per failed test, counted from the final tally.
    """

    lines = output.splitlines()
    detailed: list[_SurefireFailure] = []
    condensed: list[_SurefireFailure] = []
    starts: list[int] = []
    tally: tuple[int, int] | None = None
    for index, line in enumerate(lines):
        if counts := _SUREFIRE_TALLY.match(line):
            tally = (int(counts.group("failures")), int(counts.group("errors")))
        if header := _SUREFIRE_HEADER.match(line):
            detailed.append(_SurefireFailure(test_class=header.group("cls"), method=header.group("method")))
            starts.append(index)
        elif short := _SUREFIRE_SHORT.match(line):
            message = short.group("message").strip()
            condensed.append(
                _SurefireFailure(
                    test_class=short.group("cls"),
                    method=short.group("method"),
                    exception=extract_error_type(message),
                    message=message,
                    line=int(short.group("line")),
                ),
            )
    for position, failure in enumerate(detailed):
        end = starts[position + 1] if position + 1 < len(starts) else len(lines)
        block: list[str] = []
        for line in lines[starts[position] + 1 : end]:
            if line.startswith("["):
                break
            block.append(line)
        _fill_failure(failure, block)
    failures = detailed or condensed
    failed, errored = tally if tally else (len(failures), 0)
    total = max(failed + errored, len(failures))
    return ParsedOutput(
        errors=[failure.to_error() for failure in failures],
        total=total,
        summary=f"{plural(total, 'test')} failed ({plural(failed, 'failure')}, {plural(errored, 'error')})",
        guidance=_SUREFIRE_GUIDANCE if total else "",
    )


# Checkstyle ----------------------------------------------------------------

_CHECKSTYLE_PLAIN: Final[re.Pattern[str]] = re.compile(
    r"^\[(?:WARN|ERROR)\]\s+(?P<file>\S[^:]*?):(?P<line>\d+)(?::(?P<col>\d+))?:\s+"
    r"(?P<message>.+?)\s+\[(?P<rule>\w+)\]$",
)
_CHECKSTYLE_MAVEN: Final[re.Pattern[str]] = re.compile(
    r"^\[(?:WARNING|ERROR)\]\s+(?P<file>\S+?):\[(?P<line>\d+)(?:,(?P<col>\d+))?\]\s+"
    r"\((?P<category>[^)]+)\)\s+(?P<rule>\w+):\s+(?P<message>.+)$",
)
_CHECKSTYLE_REPORTED: Final[re.Pattern[str]] = re.compile(r"You have (?P<count>\d+) Checkstyle violations?")
_CHECKSTYLE_MARKERS: Final[tuple[Marker, ...]] = (
    Marker(re.compile(r"maven-checkstyle-plugin"), 0.3),
    Marker(re.compile(r"Starting audit\.\.\."), 0.2),
    Marker(re.compile(r"Audit done\."), 0.2),
    Marker(_CHECKSTYLE_REPORTED, 0.3),
    Marker(re.compile(r"^\[(?:WARN|ERROR)\]\s+\S[^:]*:\d+(?::\d+)?:\s.+\[\w+\]$", re.MULTILINE), 0.2),
)
_CHECKSTYLE_GUIDANCE: Final[str] = "Fix Checkstyle violations. Run mvn checkstyle:check to see all details."


def detect_maven_checkstyle(output: str, _command: str) -> float:
    """Return a score built from Checkstyle audit markers."""

    return _score(output, _CHECKSTYLE_MARKERS)


def _format_checkstyle_line(error: ExtractedError) -> str:
    return f"{error.file}:{error.line}:{error.column} - {error.message} [{error.rule_id}]"


def parse_maven_checkstyle(output: str) -> ParsedOutput:
    """Parse Checkstyle violations in the audit and Maven plugin layouts.

    A violation reported in both layouts is counted once.

    Args:
        output: ANSI-free Maven output.

    Returns:
        ParsedOutput: Violations carrying the Checkstyle check as ``rule_id``.
    """

    errors: list[ExtractedError] = []
    seen: set[tuple[str, int, int | None]] = set()
    for line in output.splitlines():
        match = _CHECKSTYLE_PLAIN.match(line) or _CHECKSTYLE_MAVEN.match(line)
        if match is None:
            continue
        file = relative_source_path(match.group("file"))
        column = int(match.group("col")) if match.group("col") else None
        key = (file, int(match.group("line")), column)
        if key in seen:
            continue
        seen.add(key)
        errors.append(
            ExtractedError(
                file=file,
                line=key[1],
                column=column,
                message=match.group("message").strip(),
                rule_id=match.group("rule"),
            ),
        )
    reported = _CHECKSTYLE_REPORTED.search(output)
    total = max(int(reported.group("count")) if reported else 0, len(errors))
    files = {error.file for error in errors}
    return ParsedOutput(
        errors=errors,
        total=total,
        summary=f"{plural(total, 'Checkstyle violation')} in {plural(len(files), 'file')}",
        guidance=_CHECKSTYLE_GUIDANCE if total else "",
        line_formatter=_format_checkstyle_line,
    )


MAVEN_COMPILER_EXTRACTOR: Final[Extractor] = Extractor(
    name="maven-compiler",
    detect=detect_maven_compiler,
    parse=parse_maven_compiler,
)
MAVEN_SUREFIRE_EXTRACTOR: Final[Extractor] = Extractor(
    name="maven-surefire",
    detect=detect_maven_surefire,
    parse=parse_maven_surefire,
)
MAVEN_CHECKSTYLE_EXTRACTOR: Final[Extractor] = Extractor(
    name="maven-checkstyle",
    detect=detect_maven_checkstyle,
    parse=parse_maven_checkstyle,
)

__all__ = [
    "MAVEN_CHECKSTYLE_EXTRACTOR",
    "MAVEN_COMPILER_EXTRACTOR",
    "MAVEN_SUREFIRE_EXTRACTOR",
    "Marker",
    "detect_maven_checkstyle",
    "detect_maven_compiler",
    "detect_maven_surefire",
    "parse_maven_checkstyle",
    "parse_maven_compiler",
    "parse_maven_surefire",
    "relative_source_path",
]
