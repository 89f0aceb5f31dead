# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Merge the structured output of nested ``vibe-validate`` invocations.

A wrapped command may itself print a result document, possibly after a
package-manager banner. The merger separates that banner (the preamble) from
the document, unwraps nested documents to recover the innermost command and
keeps the outer process exit code, which is the ground truth.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

import yaml
from pydantic import ValidationError

from .constants import DOCUMENT_MARKER, NESTED_RECURSION_LIMIT, RAW_OUTPUT_LIMIT, RAW_OUTPUT_TRUNCATION_SUFFIX
from .errors import MalformedNestedDocumentError
from .extractors import DEFAULT_REGISTRY, ExtractorRegistry
from .models import CommandExecutionResult, ExtractionMetadata, ExtractionResult, RunResult

LOGGER = logging.getLogger(__name__)

_COMMAND_KEY: Final[str] = "command"
_SHAPE_KEYS: Final[tuple[str, ...]] = ("exitCode", "extraction")
_VALIDATION_KEYS: Final[tuple[str, ...]] = ("passed", "phases")
_VALIDATION_PASSED: Final[str] = "Validation passed"
_VALIDATION_FAILED: Final[str] = "Validation failed"

VALIDATION_FRAMEWORK: Final[str] = "vibe-validate"


@dataclass(frozen=True, slots=True)
class NestedMergeResult:
    """Outcome of merging one captured execution.

    Attributes:
        result: Result document destined for the structured output stream.
        preamble: Non-structured text printed before the document; callers
            route it to stderr.
        nested: ``True`` when stdout carried a result document.
        depth: Number of documents unwrapped.
    """

    result: RunResult
    preamble: str = ""
    nested: bool = False
    depth: int = 0


def split_document(stdout: str) -> tuple[str, str] | None:
    """Split ``stdout`` at the first line consisting solely of ``---``.

    The document runs until the next marker line or the end of the output;
    anything after a closing marker is discarded.

    Args:
        stdout: Captured standard output.

    Returns:
        tuple[str, str] | None: ``(preamble, document)`` with line endings
        normalised, or ``None`` when no marker line exists.
    """

    text = stdout.replace("\r\n", "\n")
    offset = 0
    start: int | None = None
    for line in text.splitlines(keepends=True):
        if line.rstrip("\n") == DOCUMENT_MARKER:
            if start is not None:
                return text[:start].strip(), text[start:offset]
            start = offset
        offset += len(line)
    if start is None:
        return None
    return text[:start].strip(), text[start:]


def is_validation_document(document: Mapping[str, Any]) -> bool:
    """Return ``True`` when ``document`` is a ``validate`` result rather than a ``run`` result."""

    return _COMMAND_KEY not in document and all(key in document for key in _VALIDATION_KEYS)


def parse_document(document: str) -> dict[str, Any]:
    """Parse ``document`` and check it has the shape of a result document.

    Two shapes are recognised: a ``run`` result (a ``command`` key and either
    ``exitCode`` or ``extraction``) and a ``validate`` result (``passed`` and
    ``phases``).

    Args:
        document: YAML text starting at the document marker.

    Returns:
        dict[str, Any]: Parsed mapping.

    Raises:
        MalformedNestedDocumentError: If the text is not YAML or matches
            neither shape.
    """

    try:
        loaded = yaml.safe_load(document)
    except yaml.YAMLError as exc:
        raise MalformedNestedDocumentError(f"Result document is not valid YAML: {exc}") from exc
    if not isinstance(loaded, Mapping):
        raise MalformedNestedDocumentError("Result document is not a mapping")
    if is_validation_document(loaded):
        if not isinstance(loaded["phases"], list):
            raise MalformedNestedDocumentError("Validation document phases must be a list")
        return dict(loaded)
    if _COMMAND_KEY not in loaded or not any(key in loaded for key in _SHAPE_KEYS):
        raise MalformedNestedDocumentError("Result document lacks command and exitCode/extraction")
    return dict(loaded)


def validation_extraction(document: Mapping[str, Any]) -> ExtractionResult:
    """Return the extraction describing a ``validate`` result document.

    The extraction of the first failed step wins. A failed document without
    one, or a passing document, gets a summary-only extraction.

    Raises:
        ValidationError: If a step extraction does not match the model.
    """

    for phase in document["phases"]:
        steps = phase.get("steps") if isinstance(phase, Mapping) else None
        for step in steps if isinstance(steps, list) else ():
            if not isinstance(step, Mapping) or step.get("passed") is not False:
                continue
            if isinstance(extraction := step.get("extraction"), Mapping):
                return ExtractionResult.model_validate(extraction)
    passed = document.get("passed") is True
    summary = document.get("summary")
    if not isinstance(summary, str) or not summary:
        summary = _VALIDATION_PASSED if passed else _VALIDATION_FAILED
    return ExtractionResult(
        summary=summary,
        metadata=ExtractionMetadata(framework=VALIDATION_FRAMEWORK, confidence=1.0, total_count=0),
    )


def document_extraction(document: Mapping[str, Any]) -> ExtractionResult | None:
    """Return the extraction carried by a parsed result document of either shape.

    Raises:
        ValidationError: If the embedded extraction does not match the model.
    """

    if is_validation_document(document):
        return validation_extraction(document)
    extraction = document.get("extraction")
    return ExtractionResult.model_validate(extraction) if isinstance(extraction, Mapping) else None


def _nested_document(value: object) -> dict[str, Any] | None:
    """Return the document carried by a ``command`` value, if it holds one."""

    if not isinstance(value, str):
        return None
    split = split_document(value)
    if split is None:
        return None
    try:
        inner = parse_document(split[1])
    except MalformedNestedDocumentError:
        return None
    return None if is_validation_document(inner) else inner


def unwrap_document(document: Mapping[str, Any], fallback_command: str) -> tuple[dict[str, Any], str, int]:
    """Follow ``command`` values that are themselves result documents.

    Args:
        document: Outermost parsed document.
        fallback_command: Command used when the innermost ``command`` is not
            a string.

    Returns:
        tuple[dict[str, Any], str, int]: Merged fields (inner fields win),
        the innermost command and the number of documents unwrapped.

    Raises:
        MalformedNestedDocumentError: If nesting exceeds the recursion limit.
    """

    merged = dict(document)
    current: Mapping[str, Any] = document
    depth = 1
    while (inner := _nested_document(current.get(_COMMAND_KEY))) is not None:
        depth += 1
        if depth > NESTED_RECURSION_LIMIT:
            raise MalformedNestedDocumentError(f"Result documents nested deeper than {NESTED_RECURSION_LIMIT}")
        merged.update(inner)
        current = inner
    command = current.get(_COMMAND_KEY)
    return merged, command if isinstance(command, str) else fallback_command, depth


def truncate_raw_output(output: str, limit: int = RAW_OUTPUT_LIMIT) -> str:
    """Return ``output`` cut to ``limit`` characters with a truncation suffix."""

    if len(output) <= limit:
        return output
    return f"{output[:limit]}{RAW_OUTPUT_TRUNCATION_SUFFIX}"


def _plain_result(execution: CommandExecutionResult, registry: ExtractorRegistry) -> RunResult:
    combined = f"{execution.stdout}{execution.stderr}"
    return RunResult(
        command=execution.command,
        exit_code=execution.exit_code,
        duration_ms=execution.duration_ms,
        extraction=registry.detect_and_extract(combined, execution.command),
        raw_output=truncate_raw_output(combined),
    )


def _validation_result(document: Mapping[str, Any], execution: CommandExecutionResult) -> RunResult:
    return RunResult.model_validate(
        {
            "command": execution.command,
            "exitCode": execution.exit_code,
            "durationMs": execution.duration_ms,
            "timestamp": document.get("timestamp"),
            "treeHash": document.get("treeHash"),
            "extraction": validation_extraction(document),
        },
    )


def merge_nested_result(
    execution: CommandExecutionResult,
    registry: ExtractorRegistry = DEFAULT_REGISTRY,
) -> NestedMergeResult:
    """Build the result document for ``execution``.

    When stdout holds a ``run`` result document its fields are passed
    through, the innermost command replaces ``command`` and the outer exit
    code and duration replace the inner ones. A ``validate`` result document
    contributes the extraction of its first failed step under the invoking
    command. Otherwise stdout and stderr are handed to the extractor
    registry under the invoking command.

    Args:
        execution: Captured outcome of the wrapped command.
        registry: Extractor registry used for plain output.

    Returns:
        NestedMergeResult: Result document plus the preamble to route to stderr.
    """

    split = split_document(execution.stdout)
    if split is None:
        return NestedMergeResult(result=_plain_result(execution, registry))
    preamble, document = split
    try:
        parsed = parse_document(document)
        if is_validation_document(parsed):
            result = _validation_result(parsed, execution)
            depth = 1
        else:
            fields, command, depth = unwrap_document(parsed, execution.command)
            fields.update(
                {
                    "command": command,
                    "exitCode": execution.exit_code,
                    "durationMs": execution.duration_ms,
                },
            )
            result = RunResult.model_validate(fields)
    except (MalformedNestedDocumentError, ValidationError) as exc:
        LOGGER.debug("Treating stdout of %r as plain output: %s", execution.command, exc)
        return NestedMergeResult(result=_plain_result(execution, registry))
    LOGGER.debug("Unwrapped %d nested result document(s) for %r", depth, execution.command)
    return NestedMergeResult(result=result, preamble=preamble, nested=True, depth=depth)


__all__ = [
    "NestedMergeResult",
    "VALIDATION_FRAMEWORK",
    "document_extraction",
    "is_validation_document",
    "merge_nested_result",
    "parse_document",
    "split_document",
    "truncate_raw_output",
    "unwrap_document",
    "validation_extraction",
]
