# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for phase execution, the validation cache and single-command caching."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from vibe_validate.config import PhaseConfig, StepConfig
from vibe_validate.extractors import DEFAULT_REGISTRY
from vibe_validate.history import HistoryStore, InMemoryRunCacheBackend, RunCache
from vibe_validate.models import CommandExecutionResult, StepResult
from vibe_validate.output import render_document
from vibe_validate.process import timeout_message
from vibe_validate.runner import (
    PASSED_SUMMARY,
    UNSTABLE_REASON,
    ValidationRunner,
    run_with_cache,
)

TSC_FAILURE = "src/app.ts(4,2): error TS2304: Cannot find name 'foo'.\n"


@dataclass(slots=True)
class FakeSpawn:
    """Spawn replacement returning scripted outcomes per command.

    Commands listed in ``blocking`` wait for the cancel event and report a
    cancellation once it is set.
    """

    outcomes: Mapping[str, tuple[int, str]] = field(default_factory=dict)
    blocking: frozenset[str] = frozenset()
    calls: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    timeouts: dict[str, float | None] = field(default_factory=dict)
    cwds: dict[str, Path | None] = field(default_factory=dict)
    envs: dict[str, Mapping[str, str] | None] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def __call__(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandExecutionResult:
        with self.lock:
            self.calls.append(command)
            self.timeouts[command] = timeout
            self.cwds[command] = cwd
            self.envs[command] = env
        if command in self.blocking and cancel is not None and cancel.wait(timeout=5):
            with self.lock:
                self.cancelled.append(command)
            return CommandExecutionResult(command=command, exit_code=-9, duration_ms=100, cancelled=True)
        exit_code, stdout = self.outcomes.get(command, (0, "ok\n"))
        timed_out = exit_code == 124
        return CommandExecutionResult(
            command=command,
            exit_code=exit_code,
            stdout=stdout,
            stderr=timeout_message(timeout) if timed_out else "",
            duration_ms=250,
            timed_out=timed_out,
        )


class ScriptedTree:
    """Tree-hash provider returning queued hashes, repeating the last one."""

    def __init__(self, hashes: Iterable[str]) -> None:
        self.hashes = list(hashes)
        self.calls = 0

    def get_tree_hash(self) -> str:
        self.calls += 1
        if len(self.hashes) > 1:
            return self.hashes.pop(0)
        return self.hashes[0]


class StaticMetadata:
    def current_branch(self) -> str:
        return "feature/login"

    def head_commit(self) -> str | None:
        return "abc1234"

    def has_uncommitted_changes(self) -> bool:
        return True


def _phase(name: str, *commands: str, parallel: bool = False, fail_fast: bool = True, **kwargs) -> PhaseConfig:
    steps = tuple(StepConfig(name=command.split()[0], command=command) for command in commands)
    return PhaseConfig(name=name, parallel=parallel, fail_fast=fail_fast, steps=steps, **kwargs)


def _runner(phases, spawn: FakeSpawn, *, tree=None, history=None, **kwargs) -> ValidationRunner:
    return ValidationRunner(
        phases=phases,
        tree=tree or ScriptedTree(["tree-a"]),
        history=history,
        spawn=spawn,
        root=Path("/repo"),
        **kwargs,
    )


def test_all_steps_pass(history: HistoryStore) -> None:
    spawn = FakeSpawn()
    runner = _runner([_phase("checks", "lint", "typecheck")], spawn, history=history, metadata=StaticMetadata())

    outcome = runner.validate()

    assert outcome.result.passed
    assert outcome.result.summary == PASSED_SUMMARY
    assert outcome.result.failed_step is None
    assert outcome.record is not None and outcome.record.recorded
    assert outcome.stability is not None and outcome.stability.stable
    note = history.read_note("tree-a")
    assert note is not None
    assert note.runs[0].branch == "feature/login"
    assert note.runs[0].head_commit == "abc1234"
    assert note.runs[0].uncommitted_changes is True


def test_runner_defaults_to_shared_registry() -> None:
    first = _runner([_phase("checks", "lint")], FakeSpawn())
    second = _runner([_phase("checks", "lint")], FakeSpawn())

    assert first.registry is DEFAULT_REGISTRY
    assert second.registry is DEFAULT_REGISTRY


def test_cache_hit_runs_no_steps(history: HistoryStore) -> None:
    _runner([_phase("checks", "lint")], FakeSpawn(), history=history).validate()
    spawn = FakeSpawn()

    outcome = _runner([_phase("checks", "lint")], spawn, history=history).validate()

    assert outcome.from_cache
    assert outcome.result.passed
    assert spawn.calls == []


def test_force_bypasses_cache_and_records_again(history: HistoryStore) -> None:
    _runner([_phase("checks", "lint")], FakeSpawn(), history=history).validate()
    spawn = FakeSpawn()

    outcome = _runner([_phase("checks", "lint")], spawn, history=history).validate(force=True)

    assert not outcome.from_cache
    assert spawn.calls == ["lint"]
    note = history.read_note("tree-a")
    assert note is not None
    assert len(note.runs) == 2


def test_changed_tree_is_a_cache_miss(history: HistoryStore) -> None:
    _runner([_phase("checks", "lint")], FakeSpawn(), history=history).validate()
    spawn = FakeSpawn()

    outcome = _runner([_phase("checks", "lint")], spawn, tree=ScriptedTree(["tree-b"]), history=history).validate()

    assert not outcome.from_cache
    assert spawn.calls == ["lint"]


def test_recorded_failure_is_validated_again(history: HistoryStore) -> None:
    first = _runner([_phase("checks", "lint")], FakeSpawn(outcomes={"lint": (1, "Error: flaky\n")}), history=history)
    assert not first.validate().result.passed
    spawn = FakeSpawn()

    outcome = _runner([_phase("checks", "lint")], spawn, history=history).validate()

    assert not outcome.from_cache
    assert outcome.result.passed
    assert spawn.calls == ["lint"]
    note = history.read_note("tree-a")
    assert note is not None
    assert [run.result.passed for run in note.runs] == [False, True]

    cached = _runner([_phase("checks", "lint")], FakeSpawn(), history=history).validate()
    assert cached.from_cache
    assert cached.result.passed


def test_unstable_tree_is_not_recorded(history: HistoryStore) -> None:
    spawn = FakeSpawn()
    runner = _runner([_phase("checks", "lint")], spawn, tree=ScriptedTree(["tree-a", "tree-b"]), history=history)

    outcome = runner.validate()

    assert outcome.result.passed
    assert outcome.stability is not None and not outcome.stability.stable
    assert outcome.record is not None
    assert not outcome.record.recorded
    assert outcome.record.reason == UNSTABLE_REASON
    assert history.read_note("tree-a") is None
    assert history.read_note("tree-b") is None


def test_sequential_fail_fast_skips_remaining_steps_and_phases() -> None:
    spawn = FakeSpawn(outcomes={"tsc --noEmit": (2, TSC_FAILURE)})
    phases = [
        _phase("checks", "lint", "tsc --noEmit", "format"),
        _phase("tests", "vitest run"),
    ]

    outcome = _runner(phases, spawn).validate()

    result = outcome.result
    assert not result.passed
    assert spawn.calls == ["lint", "tsc --noEmit"]
    assert len(result.phases) == 1
    steps = result.phases[0].steps
    assert [step.name for step in steps] == ["lint", "tsc", "format"]
    assert steps[2].skipped
    assert not steps[2].passed
    assert result.failed_step == "tsc"
    assert result.summary == "tsc failed"
    assert result.failed_step_output == TSC_FAILURE
    assert steps[1].extraction is not None
    assert steps[1].extraction.framework == "typescript"


def test_non_fail_fast_phase_runs_every_step_but_stops_later_phases() -> None:
    spawn = FakeSpawn(outcomes={"lint": (1, "Error: lint failed\n")})
    phases = [
        _phase("checks", "lint", "format", fail_fast=False),
        _phase("tests", "vitest run"),
    ]

    outcome = _runner(phases, spawn).validate()

    assert spawn.calls == ["lint", "format"]
    assert len(outcome.result.phases) == 1


def test_global_fail_fast_disabled_runs_later_phases() -> None:
    spawn = FakeSpawn(outcomes={"lint": (1, "Error: lint failed\n")})
    phases = [
        _phase("checks", "lint", fail_fast=False),
        _phase("tests", "vitest run"),
    ]

    outcome = _runner(phases, spawn, fail_fast=False).validate()

    assert spawn.calls == ["lint", "vitest run"]
    assert not outcome.result.passed
    assert outcome.result.failed_step == "lint"


def test_continue_on_error_does_not_fail_the_phase() -> None:
    spawn = FakeSpawn(outcomes={"audit": (1, "Error: 3 vulnerabilities\n")})
    phase = PhaseConfig(
        name="checks",
        steps=(
            StepConfig(name="audit", command="audit", continue_on_error=True),
            StepConfig(name="lint", command="lint"),
        ),
    )

    outcome = _runner([phase], spawn).validate()

    assert outcome.result.passed
    assert spawn.calls == ["audit", "lint"]
    assert not outcome.result.phases[0].steps[0].passed


def test_parallel_results_keep_declaration_order() -> None:
    spawn = FakeSpawn(outcomes={"b-check": (1, "Error: b broke\n")})
    completed: list[StepResult] = []
    runner = _runner(
        [_phase("checks", "a-check", "b-check", "c-check", parallel=True)],
        spawn,
        on_step=completed.append,
    )

    outcome = runner.validate()

    assert [step.name for step in outcome.result.phases[0].steps] == ["a-check", "b-check", "c-check"]
    assert sorted(spawn.calls) == ["a-check", "b-check", "c-check"]
    assert len(completed) == 3
    assert outcome.result.failed_step == "b-check"


def test_parallel_fail_fast_cancels_running_steps() -> None:
    spawn = FakeSpawn(outcomes={"lint": (1, "Error: lint broke\n")}, blocking=frozenset({"e2e"}))
    completed: list[StepResult] = []
    runner = _runner(
        [_phase("checks", "e2e", "lint", parallel=True), _phase("tests", "vitest run")],
        spawn,
        on_step=completed.append,
    )

    outcome = runner.validate()

    e2e, lint = outcome.result.phases[0].steps
    assert spawn.cancelled == ["e2e"]
    assert e2e.skipped
    assert not e2e.passed
    assert not lint.passed
    assert outcome.result.failed_step == "lint"
    assert len(outcome.result.phases) == 1
    assert [step.name for step in completed] == ["lint"]


def test_parallel_phase_without_fail_fast_lets_steps_finish() -> None:
    spawn = FakeSpawn(outcomes={"lint": (1, "Error: lint broke\n")}, blocking=frozenset({"e2e"}))

    outcome = _runner([_phase("checks", "e2e", "lint", parallel=True, fail_fast=False)], spawn).validate()

    e2e = outcome.result.phases[0].steps[0]
    assert spawn.cancelled == []
    assert e2e.passed
    assert not e2e.skipped


def test_timeout_is_reported_on_the_step() -> None:
    spawn = FakeSpawn(outcomes={"e2e": (124, "")})
    phase = PhaseConfig(name="tests", timeout=30, steps=(StepConfig(name="e2e", command="e2e", timeout=5),))

    outcome = _runner([phase], spawn).validate()

    step = outcome.result.phases[0].steps[0]
    assert step.timed_out
    assert step.exit_code == 124
    assert spawn.timeouts["e2e"] == 5


def test_step_cwd_and_env_are_passed_to_spawn() -> None:
    spawn = FakeSpawn()
    phase = PhaseConfig(
        name="checks",
        steps=(StepConfig(name="lint", command="lint", cwd=Path("packages/web"), env={"CI": "1"}),),
    )

    _runner([phase], spawn).validate()

    assert spawn.cwds["lint"] == Path("/repo/packages/web")
    assert spawn.envs["lint"] == {"CI": "1"}
    assert spawn.timeouts["lint"] == 300


def test_run_with_cache_stores_and_reuses_success(tmp_path: Path) -> None:
    cache = RunCache(InMemoryRunCacheBackend())
    tree = ScriptedTree(["tree-a"])
    spawn = FakeSpawn(outcomes={"npm test": (0, "all good\n")})

    first = run_with_cache("npm test", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn)
    second = run_with_cache("npm   test", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn)

    assert not first.from_cache
    assert first.cache_key is not None
    assert first.result.tree_hash == "tree-a"
    assert second.from_cache
    assert second.result.is_cached_result
    assert spawn.calls == ["npm test"]


def test_run_with_cache_never_reuses_failures(tmp_path: Path) -> None:
    cache = RunCache(InMemoryRunCacheBackend())
    tree = ScriptedTree(["tree-a"])
    spawn = FakeSpawn(outcomes={"tsc": (2, TSC_FAILURE)})

    run_with_cache("tsc", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn)
    outcome = run_with_cache("tsc", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn)

    assert spawn.calls == ["tsc", "tsc"]
    assert outcome.result.exit_code == 2
    assert outcome.result.extraction is not None
    assert outcome.result.extraction.framework == "typescript"


def test_run_with_cache_skips_store_when_tree_changes(tmp_path: Path) -> None:
    backend = InMemoryRunCacheBackend()
    spawn = FakeSpawn()

    outcome = run_with_cache(
        "npm test",
        cwd=tmp_path,
        tree=ScriptedTree(["tree-a", "tree-b"]),
        run_cache=RunCache(backend),
        spawn=spawn,
    )

    assert outcome.cache_key is None
    assert backend.entries == {}


def test_run_with_cache_force_reruns(tmp_path: Path) -> None:
    cache = RunCache(InMemoryRunCacheBackend())
    tree = ScriptedTree(["tree-a"])
    spawn = FakeSpawn()

    run_with_cache("npm test", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn)
    outcome = run_with_cache("npm test", cwd=tmp_path, tree=tree, run_cache=cache, spawn=spawn, force=True)

    assert not outcome.from_cache
    assert spawn.calls == ["npm test", "npm test"]


def test_run_with_cache_merges_nested_documents(tmp_path: Path) -> None:
    inner = render_document({"command": "vitest run", "exitCode": 0, "customField": "kept"})
    spawn = FakeSpawn(outcomes={"npm run validate": (1, f"> app@1.0.0 validate\n{inner}")})

    outcome = run_with_cache("npm run validate", cwd=tmp_path, spawn=spawn)

    assert outcome.preamble == "> app@1.0.0 validate"
    assert outcome.result.command == "vitest run"
    assert outcome.result.exit_code == 1
    assert outcome.result.tree_hash is None
    assert outcome.result.to_document()["customField"] == "kept"


@pytest.mark.parametrize("parallel", [False, True])
def test_empty_output_failure_still_reports(parallel: bool) -> None:
    spawn = FakeSpawn(outcomes={"build": (1, "")})

    outcome = _runner([_phase("build", "build", parallel=parallel)], spawn).validate()

    step = outcome.result.phases[0].steps[0]
    assert not step.passed
    assert step.extraction is not None
    assert step.extraction.framework == "generic"
