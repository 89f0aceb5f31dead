# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Stability-checked execution of validation phases and single commands."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Protocol, TypeAlias, runtime_checkable

from .config import PhaseConfig, StepConfig
from .extractors import DEFAULT_REGISTRY, ExtractorRegistry
from .history import HistoryStore, RunCache
from .models import (
    PhaseResult,
    RecordResult,
    RunCacheEntry,
    RunResult,
    StabilityCheck,
    StepResult,
    ValidationResult,
    ValidationRun,
)
from .nested import merge_nested_result
from .process import SpawnFunction, spawn

LOGGER = logging.getLogger(__name__)

PASSED_SUMMARY: Final[str] = "Validation passed"
UNSTABLE_REASON: Final[str] = "unstable-worktree"
UNKNOWN_BRANCH: Final[str] = "unknown"

StepCallback: TypeAlias = Callable[[StepResult], None]


@runtime_checkable
class TreeHashProvider(Protocol):
    """Source of content hashes for the working tree."""

    def get_tree_hash(self) -> str:
        """Return the hash identifying the current working-tree content."""

        raise NotImplementedError


@runtime_checkable
class RepositoryMetadata(Protocol):
    """Branch and commit details recorded alongside validation runs."""

    def current_branch(self) -> str:
        """Return the checked-out branch name."""

        raise NotImplementedError

    def head_commit(self) -> str | None:
        """Return the HEAD commit hash, if any."""

        raise NotImplementedError

    def has_uncommitted_changes(self) -> bool:
        """Return ``True`` when the worktree differs from HEAD."""

        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of :meth:`ValidationRunner.validate`.

    Attributes:
        result: Validation result returned to the caller, never truncated.
        from_cache: ``True`` when the result was served from history.
        stability: Tree-hash comparison; ``None`` for cache hits.
        record: Persistence report; ``None`` when history is disabled or
            the result came from the cache.
    """

    result: ValidationResult
    from_cache: bool = False
    stability: StabilityCheck | None = None
    record: RecordResult | None = None


def _blocking_failure(step: StepResult, config: StepConfig) -> bool:
    return not step.passed and not step.skipped and not config.continue_on_error


def _skipped_step(config: StepConfig) -> StepResult:
    return StepResult(name=config.name, command=config.command, exit_code=0, passed=False, skipped=True)


@dataclass(slots=True)
class ValidationRunner:
    """Run configured phases against a working tree and persist stable results.

    Attributes:
        phases: Phases executed in order.
        tree: Provider of the tree hash captured before and after the run.
        history: Store used for the cache short-circuit and for recording
            runs; ``None`` disables both.
        metadata: Branch and commit details stored with each run.
        fail_fast: Skip later phases once a fail-fast phase failed.
        spawn: Process spawn primitive.
        registry: Extractor registry applied to failing step output.
        root: Working directory that relative step ``cwd`` values resolve against.
        on_step: Optional callback invoked with every completed step.
    """

    phases: Sequence[PhaseConfig]
    tree: TreeHashProvider
    history: HistoryStore | None = None
    metadata: RepositoryMetadata | None = None
    fail_fast: bool = True
    spawn: SpawnFunction = spawn
    registry: ExtractorRegistry = field(default_factory=lambda: DEFAULT_REGISTRY)
    root: Path = field(default_factory=Path.cwd)
    on_step: StepCallback | None = None

    def validate(self, *, force: bool = False) -> ValidationOutcome:
        """Validate the working tree.

        The tree hash is captured first. Unless ``force`` is set, a passing
        run already recorded for that hash is returned without executing any
        step; a recorded failure is always run again. Otherwise every phase
        runs, the tree hash is captured again, and the run is recorded only
        when both hashes match.

        Args:
            force: Ignore a cached pass for the current tree hash.

        Returns:
            ValidationOutcome: Result with stability and persistence details.

        Raises:
            StoreIntegrityError: If the history note for the tree is corrupt.
        """

        before = self.tree.get_tree_hash()
        if not force and self.history is not None:
            cached = self.history.find_cached_validation(before)
            if cached is not None and cached.passed:
                LOGGER.debug("Validation cache hit for tree %s", before)
                return ValidationOutcome(result=cached, from_cache=True)
            if cached is not None:
                LOGGER.debug("Last recorded run for tree %s failed; validating again", before)

        started = time.monotonic()
        phase_results = self._run_phases()
        after = self.tree.get_tree_hash()
        stability = StabilityCheck.compare(before, after)
        result = self._build_result(before, phase_results, time.monotonic() - started)
        return ValidationOutcome(result=result, stability=stability, record=self._record(result, stability))

    def _run_phases(self) -> list[PhaseResult]:
        results: list[PhaseResult] = []
        for phase in self.phases:
            phase_result = self.run_phase(phase)
            results.append(phase_result)
            if not phase_result.passed and (phase.fail_fast or self.fail_fast):
                LOGGER.debug("Phase %s failed; skipping remaining phases", phase.name)
                break
        return results

    def run_phase(self, phase: PhaseConfig) -> PhaseResult:
        """Run the steps of ``phase`` and return their results in declaration order."""

        started = time.monotonic()
        steps = self._run_parallel(phase) if phase.parallel else self._run_sequential(phase)
        passed = not any(_blocking_failure(step, config) for step, config in zip(steps, phase.steps, strict=True))
        return PhaseResult(
            name=phase.name,
            duration_secs=round(time.monotonic() - started, 3),
            passed=passed,
            steps=tuple(steps),
        )

    def _run_sequential(self, phase: PhaseConfig) -> list[StepResult]:
        results: list[StepResult] = []
        aborted = False
        for config in phase.steps:
            if aborted:
                results.append(_skipped_step(config))
                continue
            step = self.run_step(phase, config)
            results.append(step)
            if phase.fail_fast and _blocking_failure(step, config):
                aborted = True
        return results

    def _run_parallel(self, phase: PhaseConfig) -> list[StepResult]:
        # A fail-fast phase kills the process groups still running once one step fails.
        cancel = threading.Event() if phase.fail_fast else None
        slots: list[StepResult | None] = [None] * len(phase.steps)
        with ThreadPoolExecutor(max_workers=len(phase.steps)) as executor:
            future_map = {
                executor.submit(self.run_step, phase, config, cancel=cancel): index
                for index, config in enumerate(phase.steps)
            }
            for future in as_completed(future_map):
                index = future_map[future]
                step = future.result()
                slots[index] = step
                if cancel is not None and not cancel.is_set() and _blocking_failure(step, phase.steps[index]):
                    LOGGER.debug("Step %s failed; stopping the rest of phase %s", step.name, phase.name)
                    cancel.set()
        return [step for step in slots if step is not None]

    def run_step(
        self,
        phase: PhaseConfig,
        config: StepConfig,
        *,
        cancel: threading.Event | None = None,
    ) -> StepResult:
        """Execute one step and extract errors from its output when it fails.

        A step whose process was killed through ``cancel`` is reported as
        skipped and is not passed to ``on_step``.
        """

        cwd = self.root / config.cwd if config.cwd is not None else self.root
        execution = self.spawn(
            config.command,
            cwd=cwd,
            env=config.env or None,
            timeout=phase.step_timeout(config),
            cancel=cancel,
        )
        if execution.cancelled:
            LOGGER.debug("Step %s cancelled after %d ms", config.name, execution.duration_ms)
            return _skipped_step(config)
        passed = execution.exit_code == 0
        extraction = None if passed else merge_nested_result(execution, self.registry).result.extraction
        step = StepResult(
            name=config.name,
            command=config.command,
            exit_code=execution.exit_code,
            duration_secs=round(execution.duration_ms / 1000, 3),
            passed=passed,
            timed_out=execution.timed_out,
            extraction=extraction,
            output=f"{execution.stdout}{execution.stderr}",
        )
        LOGGER.debug("Step %s exited with %d", config.name, execution.exit_code)
        if self.on_step is not None:
            self.on_step(step)
        return step

    def _build_result(self, tree_hash: str, phases: list[PhaseResult], elapsed: float) -> ValidationResult:
        failed = self._first_failure(phases)
        return ValidationResult(
            passed=failed is None,
            tree_hash=tree_hash,
            duration=round(elapsed, 3),
            summary=PASSED_SUMMARY if failed is None else f"{failed.name} failed",
            phases=tuple(phases),
            failed_step=failed.name if failed is not None else None,
            failed_step_output=failed.output if failed is not None else None,
        )

    def _first_failure(self, phases: list[PhaseResult]) -> StepResult | None:
        for phase, phase_config in zip(phases, self.phases, strict=False):
            for step, config in zip(phase.steps, phase_config.steps, strict=True):
                if _blocking_failure(step, config):
                    return step
        return None

    def _record(self, result: ValidationResult, stability: StabilityCheck) -> RecordResult | None:
        if self.history is None:
            return None
        if not stability.stable:
            LOGGER.warning(
                "Working tree changed during validation (%s -> %s); result not recorded",
                stability.tree_hash_before,
                stability.tree_hash_after,
            )
            return RecordResult(recorded=False, tree_hash=stability.tree_hash_before, reason=UNSTABLE_REASON)
        return self.history.record_validation_history(stability.tree_hash_before, self._validation_run(result))

    def _validation_run(self, result: ValidationResult) -> ValidationRun:
        if self.metadata is None:
            return ValidationRun(branch=UNKNOWN_BRANCH, timestamp=result.timestamp, result=result)
        return ValidationRun(
            branch=self.metadata.current_branch(),
            timestamp=result.timestamp,
            head_commit=self.metadata.head_commit(),
            uncommitted_changes=self.metadata.has_uncommitted_changes(),
            result=result,
        )


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    """Result of :func:`run_with_cache`.

    Attributes:
        result: Result document for the command.
        preamble: Text printed before a nested result document.
        cache_key: Run-cache key the result was stored under, if any.
    """

    result: RunResult
    preamble: str = ""
    cache_key: str | None = None

    @property
    def from_cache(self) -> bool:
        """Return ``True`` when the result was served from the run cache."""

        return bool(self.result.is_cached_result)


def _cached_result(entry: RunCacheEntry) -> RunResult:
    return RunResult(
        command=entry.command,
        exit_code=entry.exit_code,
        duration_ms=int(entry.duration * 1000),
        timestamp=entry.timestamp,
        tree_hash=entry.tree_hash,
        extraction=entry.extraction,
        is_cached_result=True,
    )


def run_with_cache(
    command: str,
    *,
    cwd: Path,
    workdir: str = "",
    tree: TreeHashProvider | None = None,
    run_cache: RunCache | None = None,
    force: bool = False,
    spawn: SpawnFunction = spawn,
    registry: ExtractorRegistry = DEFAULT_REGISTRY,
) -> CommandOutcome:
    """Run one shell command, reusing a cached success for the current tree.

    Args:
        command: Shell command line.
        cwd: Directory the command runs in.
        workdir: Repository-relative working directory folded into the cache key.
        tree: Tree-hash provider; ``None`` disables caching.
        run_cache: Run cache; ``None`` disables caching.
        force: Skip the cache lookup but still record the new result.
        spawn: Process spawn primitive.
        registry: Extractor registry for plain output.

    Returns:
        CommandOutcome: Merged result document and nested preamble.

    Raises:
        StoreIntegrityError: If the cached entry for the command is corrupt.
    """

    caching = tree is not None and run_cache is not None
    before = tree.get_tree_hash() if caching and tree is not None else None
    if before is not None and run_cache is not None and not force:
        entry = run_cache.find_entry(before, command, workdir)
        if entry is not None:
            return CommandOutcome(result=_cached_result(entry))

    merged = merge_nested_result(spawn(command, cwd=cwd), registry)
    result = merged.result.model_copy(update={"tree_hash": before}) if before is not None else merged.result
    cache_key: str | None = None
    if before is not None and run_cache is not None and tree is not None and result.extraction is not None:
        after = tree.get_tree_hash()
        if after == before:
            cache_key = run_cache.store_entry(
                RunCacheEntry(
                    tree_hash=before,
                    command=command,
                    workdir=workdir,
                    exit_code=result.exit_code,
                    duration=(result.duration_ms or 0) / 1000,
                    extraction=result.extraction,
                ),
            )
        else:
            LOGGER.debug("Working tree changed while running %r; not caching", command)
    return CommandOutcome(result=result, preamble=merged.preamble, cache_key=cache_key)


__all__ = [
    "CommandOutcome",
    "PASSED_SUMMARY",
    "RepositoryMetadata",
    "StepCallback",
    "TreeHashProvider",
    "UNSTABLE_REASON",
    "ValidationOutcome",
    "ValidationRunner",
    "run_with_cache",
]
