# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Project services assembled from configuration for CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import ProjectConfig, load_config
from ..extractors import ExtractorRegistry
from ..git import GitClient, GitHistoryNotes, GitRunCacheNotes, is_git_repository
from ..history import HistoryStore, RunCache
from ..remote import RetryPolicy
from .shared import USAGE_EXIT_CODE, CLIError


@dataclass(slots=True)
class ProjectContext:
    """Configuration plus the git collaborator for one project root."""

    root: Path
    config: ProjectConfig
    git: GitClient | None

    def require_git(self) -> GitClient:
        """Return the git client.

        Raises:
            CLIError: If the project root is not inside a git work tree.
        """

        if self.git is None:
            raise CLIError(f"{self.root} is not inside a git repository", exit_code=USAGE_EXIT_CODE)
        return self.git

    def history_store(self) -> HistoryStore:
        """Return the validation history store backed by ``git notes``."""

        settings = self.config.history
        return HistoryStore(
            GitHistoryNotes(self.require_git(), settings.notes_ref),
            max_output_bytes=settings.max_output_bytes,
            warn_after_days=settings.warn_after_days,
            warn_after_count=settings.warn_after_count,
        )

    def run_cache(self) -> RunCache | None:
        """Return the run cache, or ``None`` outside git or with history disabled."""

        if self.git is None or not self.config.history.enabled:
            return None
        return RunCache(GitRunCacheNotes(self.git, self.config.history.run_cache_ref))

    def registry(self) -> ExtractorRegistry:
        """Return an extractor registry honouring the configured limits."""

        settings = self.config.extraction
        return ExtractorRegistry(min_confidence=settings.min_confidence, max_errors=settings.max_errors)

    def retry_policy(self) -> RetryPolicy:
        """Return the remote log retry policy."""

        return RetryPolicy(attempts=self.config.retry.attempts, base_delay=self.config.retry.base_delay)


def load_project(root: Path) -> ProjectContext:
    """Load configuration for ``root`` and attach a git client when possible.

    Raises:
        ConfigError: If the configuration file is invalid.
    """

    resolved = root.resolve()
    git = GitClient(resolved) if is_git_repository(resolved) else None
    return ProjectContext(root=resolved, config=load_config(resolved), git=git)


__all__ = ["ProjectContext", "load_project"]
