# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for configuration discovery, parsing and environment expansion."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from vibe_validate.config import CONFIG_FILENAME, ProjectConfig, load_config, parse_config
from vibe_validate.errors import ConfigError

DEDICATED = dedent(
    """\
    [validation]
    fail_fast = false

    [[validation.phases]]
    name = "checks"
    parallel = true
    timeout = 120

    [[validation.phases.steps]]
    name = "typecheck"
    command = "tsc --noEmit"

    [[validation.phases.steps]]
    name = "lint"
    command = "eslint ${LINT_TARGET}"
    continue_on_error = true

    [history]
    warn_after_days = 14
    """,
)


def test_missing_configuration_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config == ProjectConfig()
    assert config.history.enabled
    assert config.extraction.max_errors == 10


def test_dedicated_file_is_loaded_and_expanded(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(DEDICATED, encoding="utf-8")

    config = load_config(tmp_path, env={"LINT_TARGET": "src"})

    phase = config.require_phases()[0]
    assert not config.validation.fail_fast
    assert phase.parallel
    assert phase.step_timeout(phase.steps[0]) == 120
    assert phase.steps[1].command == "eslint src"
    assert phase.steps[1].continue_on_error
    assert config.history.warn_after_days == 14


def test_unknown_variables_are_left_in_place(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(DEDICATED, encoding="utf-8")

    config = load_config(tmp_path, env={})

    assert config.require_phases()[0].steps[1].command == "eslint ${LINT_TARGET}"


def test_pyproject_tool_table_is_used(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        dedent(
            """\
            [project]
            name = "demo"

            [[tool.vibe-validate.validation.phases]]
            name = "tests"

            [[tool.vibe-validate.validation.phases.steps]]
            name = "pytest"
            command = "pytest -q"
            timeout = 30
            """,
        ),
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    phase = config.require_phases()[0]
    assert phase.name == "tests"
    assert phase.step_timeout(phase.steps[0]) == 30


def test_dedicated_file_wins_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[tool.vibe-validate.history]\nenabled = false\n', encoding="utf-8")
    (tmp_path / CONFIG_FILENAME).write_text("[history]\nenabled = true\n", encoding="utf-8")

    assert load_config(tmp_path).history.enabled


def test_pyproject_without_table_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n', encoding="utf-8")

    assert load_config(tmp_path) == ProjectConfig()


def test_invalid_toml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("[validation\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "data",
    [
        {"validation": {"phases": [{"name": "empty", "steps": []}]}},
        {"validation": {"phases": [{"name": "bad", "steps": [{"name": "x", "command": "x", "timeout": 0}]}]}},
        {"history": {"unknown": True}},
    ],
)
def test_schema_violations_raise_config_error(data: dict) -> None:
    with pytest.raises(ConfigError, match="Invalid configuration"):
        parse_config(data, env={})


def test_require_phases_rejects_empty_configuration() -> None:
    with pytest.raises(ConfigError, match="No validation phases configured"):
        ProjectConfig().require_phases()
