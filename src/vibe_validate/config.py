# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project configuration models and TOML loading."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import (
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_NOTES_REF,
    DEFAULT_PHASE_TIMEOUT,
    DEFAULT_RUN_CACHE_REF,
    DEFAULT_WARN_AFTER_COUNT,
    DEFAULT_WARN_AFTER_DAYS,
    MAX_ERRORS_IN_ARRAY,
    MIN_EXTRACTOR_CONFIDENCE,
    REMOTE_FETCH_ATTEMPTS,
    REMOTE_FETCH_BASE_DELAY,
)
from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME: Final[str] = "vibe-validate.toml"
PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "vibe-validate"

_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class StepConfig(_ConfigModel):
    """One shell command executed inside a phase."""

    name: str = Field(min_length=1)
    command: str = Field(min_length=1)
    timeout: float | None = Field(default=None, gt=0)
    continue_on_error: bool = False
    env: dict[str, str] = Field(default_factory=dict)
    cwd: Path | None = None


class PhaseConfig(_ConfigModel):
    """Ordered group of steps sharing a scheduling policy."""

    name: str = Field(min_length=1)
    parallel: bool = False
    fail_fast: bool = True
    timeout: float = Field(default=DEFAULT_PHASE_TIMEOUT, gt=0)
    steps: tuple[StepConfig, ...] = Field(min_length=1)

    def step_timeout(self, step: StepConfig) -> float:
        """Return the timeout applied to ``step``, falling back to the phase timeout."""

        return step.timeout if step.timeout is not None else self.timeout


class ValidationConfig(_ConfigModel):
    """Phases run by ``vibe-validate validate``."""

    phases: tuple[PhaseConfig, ...] = Field(default_factory=tuple)
    fail_fast: bool = True


class HistoryConfig(_ConfigModel):
    """Where validation history and run-cache entries are stored."""

    enabled: bool = True
    notes_ref: str = DEFAULT_NOTES_REF
    run_cache_ref: str = DEFAULT_RUN_CACHE_REF
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)
    warn_after_days: int = Field(default=DEFAULT_WARN_AFTER_DAYS, gt=0)
    warn_after_count: int = Field(default=DEFAULT_WARN_AFTER_COUNT, gt=0)


class ExtractionConfig(_ConfigModel):
    """Limits applied by the extractor registry."""

    max_errors: int = Field(default=MAX_ERRORS_IN_ARRAY, gt=0)
    min_confidence: float = Field(default=MIN_EXTRACTOR_CONFIDENCE, ge=0.0, le=1.0)


class RetryConfig(_ConfigModel):
    """Backoff schedule for remote log fetches."""

    attempts: int = Field(default=REMOTE_FETCH_ATTEMPTS, ge=1)
    base_delay: float = Field(default=REMOTE_FETCH_BASE_DELAY, ge=0.0)


class ProjectConfig(_ConfigModel):
    """Complete configuration of a project."""

    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    def require_phases(self) -> tuple[PhaseConfig, ...]:
        """Return the configured phases.

        Raises:
            ConfigError: If no validation phase is configured.
        """

        if not self.validation.phases:
            raise ConfigError(
                f"No validation phases configured; add [[validation.phases]] to {CONFIG_FILENAME} "
                f"or [[tool.{PYPROJECT_TOOL_KEY}.validation.phases]] to {PYPROJECT_FILENAME}",
            )
        return self.validation.phases


def _expand_env(data: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    return {key: _expand_env_value(value, env) for key, value in data.items()}


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _expand_env_string(value, env)
    if isinstance(value, Mapping):
        return _expand_env(value, env)
    if isinstance(value, list):
        return [_expand_env_value(item, env) for item in value]
    return value


def _expand_env_string(value: str, env: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return env.get(key, match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def find_config_source(project_root: Path) -> tuple[Path, dict[str, Any]] | None:
    """Return the configuration file under ``project_root`` and its raw table.

    ``vibe-validate.toml`` wins over the ``[tool.vibe-validate]`` table of
    ``pyproject.toml``.

    Args:
        project_root: Directory searched for configuration files.

    Returns:
        tuple[Path, dict[str, Any]] | None: Source path and table, or ``None``
        when the project carries no configuration.

    Raises:
        ConfigError: If a file exists but is not valid TOML.
    """

    dedicated = project_root / CONFIG_FILENAME
    if dedicated.is_file():
        return dedicated, _read_toml(dedicated)
    pyproject = project_root / PYPROJECT_FILENAME
    if pyproject.is_file():
        section = _read_toml(pyproject).get("tool", {}).get(PYPROJECT_TOOL_KEY)
        if section is None:
            return None
        if not isinstance(section, Mapping):
            raise ConfigError(f"[tool.{PYPROJECT_TOOL_KEY}] in {pyproject} must be a table")
        return pyproject, dict(section)
    return None


def parse_config(
    data: Mapping[str, Any],
    *,
    source: str = "<memory>",
    env: Mapping[str, str] | None = None,
) -> ProjectConfig:
    """Validate a raw configuration table.

    Args:
        data: Table as loaded from TOML.
        source: Description of where ``data`` came from, used in errors.
        env: Variables used for ``${VAR}`` expansion; defaults to ``os.environ``.

    Returns:
        ProjectConfig: Validated configuration.

    Raises:
        ConfigError: If the table does not match the configuration schema.
    """

    expanded = _expand_env(data, os.environ if env is None else env)
    try:
        return ProjectConfig.model_validate(expanded)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {source}: {exc}") from exc


def load_config(project_root: Path, *, env: Mapping[str, str] | None = None) -> ProjectConfig:
    """Load the configuration for ``project_root``, or defaults when none exists."""

    found = find_config_source(project_root)
    if found is None:
        LOGGER.debug("No configuration found under %s; using defaults", project_root)
        return ProjectConfig()
    path, data = found
    LOGGER.debug("Loading configuration from %s", path)
    return parse_config(data, source=str(path), env=env)


__all__ = [
    "CONFIG_FILENAME",
    "ExtractionConfig",
    "HistoryConfig",
    "PhaseConfig",
    "ProjectConfig",
    "RetryConfig",
    "StepConfig",
    "ValidationConfig",
    "find_config_source",
    "load_config",
    "parse_config",
]
