# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data models shared across extraction, validation and history layers.

Every model serialises with camelCase keys so the documents written to stdout
and to the notes store match what nested invocations and older runs emit.
Python attributes stay snake_case; both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class DocumentModel(BaseModel):
    """Base model for values that travel inside structured result documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_document(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping using the wire (camelCase) keys.

        Returns:
            dict[str, Any]: Serialised model without ``None`` valued fields.
        """

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ExtractedError(DocumentModel):
    """Single error located by an extractor."""

    file: str | None = None
    line: int | None = None
    column: int | None = None
    message: str
    rule_id: str | None = None
    context: str | None = None


class ExtractionMetadata(DocumentModel):
    """Describe which extractor produced a result and how sure it was."""

    framework: str
    confidence: float = Field(ge=0.0, le=1.0)
    total_count: int | None = None


class ExtractionResult(DocumentModel):
    """Bounded, structured report produced from raw tool output."""

    errors: tuple[ExtractedError, ...] = Field(default_factory=tuple)
    summary: str = Field(min_length=1)
    guidance: str = ""
    error_summary: str = ""
    metadata: ExtractionMetadata

    @property
    def framework(self) -> str:
        """Return the framework name recorded in the metadata."""

        return self.metadata.framework


class CommandExecutionResult(DocumentModel):
    """Captured outcome of one subprocess invocation."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    cancelled: bool = False


class RunResult(DocumentModel):
    """Result document printed by ``vibe-validate run``.

    Unknown fields coming from nested invocations are preserved verbatim.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    command: str
    exit_code: int
    duration_ms: int | None = None
    timestamp: UtcDatetime | None = None
    tree_hash: str | None = None
    extraction: ExtractionResult | None = None
    is_cached_result: bool | None = None
    raw_output: str | None = None


class StepResult(DocumentModel):
    """Outcome of one validation step."""

    name: str
    command: str
    exit_code: int
    duration_secs: float = 0.0
    passed: bool
    timed_out: bool = False
    skipped: bool = False
    extraction: ExtractionResult | None = None
    output: str | None = None


class PhaseResult(DocumentModel):
    """Outcome of one validation phase."""

    name: str
    duration_secs: float = 0.0
    passed: bool
    steps: tuple[StepResult, ...] = Field(default_factory=tuple)


class ValidationResult(DocumentModel):
    """Outcome of a complete multi-phase validation."""

    passed: bool
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    tree_hash: str
    duration: float = 0.0
    summary: str = ""
    phases: tuple[PhaseResult, ...] = Field(default_factory=tuple)
    failed_step: str | None = None
    failed_step_output: str | None = None


class ValidationRun(DocumentModel):
    """One execution record stored under a tree hash."""

    id: str | None = None
    branch: str
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    head_commit: str | None = None
    uncommitted_changes: bool | None = None
    result: ValidationResult


class HistoryNote(DocumentModel):
    """Append-only collection of runs recorded for a tree hash."""

    tree_hash: str
    runs: tuple[ValidationRun, ...] = Field(default_factory=tuple)

    @field_validator("runs", mode="before")
    @classmethod
    def _coerce_missing_runs(cls, value: object) -> object:
        """Treat an explicit ``null`` run list as empty."""

        return () if value is None else value

    def latest_run(self) -> ValidationRun | None:
        """Return the run with the greatest timestamp, if any."""

        if not self.runs:
            return None
        return max(self.runs, key=lambda run: run.timestamp)

    def oldest_run(self) -> ValidationRun | None:
        """Return the run with the smallest timestamp, if any."""

        if not self.runs:
            return None
        return min(self.runs, key=lambda run: run.timestamp)


class RunCacheEntry(DocumentModel):
    """Cached result of a single ``run`` command invocation."""

    tree_hash: str
    command: str
    workdir: str = ""
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    exit_code: int
    duration: float = 0.0
    extraction: ExtractionResult


class StabilityCheck(DocumentModel):
    """Compare tree hashes captured before and after a validation."""

    stable: bool
    tree_hash_before: str
    tree_hash_after: str

    @classmethod
    def compare(cls, before: str, after: str) -> StabilityCheck:
        """Return a check describing whether ``before`` equals ``after``."""

        return cls(stable=before == after, tree_hash_before=before, tree_hash_after=after)


class RecordResult(DocumentModel):
    """Report whether a validation run was persisted."""

    recorded: bool
    tree_hash: str
    reason: str | None = None


class PruneResult(DocumentModel):
    """Counts reported by pruning operations."""

    notes_pruned: int = 0
    runs_pruned: int = 0
    notes_remaining: int = 0
    pruned_tree_hashes: tuple[str, ...] = Field(default_factory=tuple)


class HealthCheckResult(DocumentModel):
    """Advisory report about the size and age of the history store."""

    total_notes: int
    old_notes_count: int
    should_warn: bool
    warning_message: str = ""


class RemoteCheck(DocumentModel):
    """Status of a remote CI check with optional extracted failure details."""

    name: str
    status: str
    conclusion: str | None = None
    run_id: int | str
    url: str | None = None
    extraction: ExtractionResult | None = None


__all__ = [
    "CommandExecutionResult",
    "DocumentModel",
    "ExtractedError",
    "ExtractionMetadata",
    "ExtractionResult",
    "HealthCheckResult",
    "HistoryNote",
    "UtcDatetime",
    "PhaseResult",
    "PruneResult",
    "RecordResult",
    "RemoteCheck",
    "RunCacheEntry",
    "RunResult",
    "StabilityCheck",
    "StepResult",
    "ValidationResult",
    "ValidationRun",
    "as_utc",
    "utc_now",
]
