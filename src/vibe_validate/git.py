# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Git collaborator: tree hashes, repository metadata and ``git notes`` stores."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from .constants import DEFAULT_NOTES_REF, DEFAULT_RUN_CACHE_REF
from .history.codec import decode_history_note, decode_run_cache_entry, encode_model
from .models import HistoryNote, RunCacheEntry, ValidationRun
from .process import run_command

if TYPE_CHECKING:
    from subprocess import CompletedProcess  # nosec B404

LOGGER = logging.getLogger(__name__)

GIT_EXECUTABLE: Final[str] = "git"
NOTES_REF_PREFIX: Final[str] = "refs/notes/"
UNKNOWN_BRANCH: Final[str] = "unknown"
_INDEX_ENV: Final[str] = "GIT_INDEX_FILE"


@dataclass(slots=True)
class GitClient:
    """Run git commands against the repository containing ``root``."""

    root: Path = field(default_factory=Path.cwd)

    def git(
        self,
        *args: str,
        check: bool = True,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CompletedProcess[str]:
        """Run ``git <args>`` in :attr:`root` and return the completed process.

        Raises:
            SubprocessExecutionError: If ``check`` is true and git fails.
        """

        return run_command(
            [GIT_EXECUTABLE, *args],
            cwd=self.root,
            env=env,
            check=check,
            input_text=input_text,
        )

    def get_tree_hash(self) -> str:
        """Return the tree hash of the working tree including untracked files.

        The real index is copied to a temporary file so staging everything
        for ``write-tree`` leaves the user's index untouched.

        Returns:
            str: Hash of the tree object git would commit for the current
            working tree, honouring ``.gitignore``.
        """

        git_dir = Path(self.git("rev-parse", "--absolute-git-dir").stdout.strip())
        with tempfile.TemporaryDirectory(prefix="vibe-validate-") as scratch:
            index = Path(scratch) / "index"
            if (git_dir / "index").exists():
                shutil.copyfile(git_dir / "index", index)
            env = {**os.environ, _INDEX_ENV: str(index)}
            self.git("add", "--all", env=env)
            tree_hash = self.git("write-tree", env=env).stdout.strip()
        LOGGER.debug("Computed tree hash %s for %s", tree_hash, self.root)
        return tree_hash

    def current_branch(self) -> str:
        """Return the checked-out branch name, or ``unknown``."""

        completed = self.git("rev-parse", "--abbrev-ref", "HEAD", check=False)
        branch = completed.stdout.strip()
        return branch if completed.returncode == 0 and branch else UNKNOWN_BRANCH

    def head_commit(self) -> str | None:
        """Return the HEAD commit hash, or ``None`` in a repository without commits."""

        completed = self.git("rev-parse", "HEAD", check=False)
        if completed.returncode != 0:
            return None
        return completed.stdout.strip() or None

    def has_uncommitted_changes(self) -> bool:
        """Return ``True`` when tracked or untracked files differ from HEAD."""

        return bool(self.git("status", "--porcelain").stdout.strip())

    def list_refs(self, prefix: str) -> list[str]:
        """Return reference names under ``prefix``."""

        completed = self.git("for-each-ref", "--format=%(refname)", prefix, check=False)
        return [line.strip() for line in completed.stdout.splitlines() if line.strip()]


@dataclass(slots=True)
class GitNotes:
    """Text primitives for one ``git notes`` reference."""

    client: GitClient
    ref: str

    def show(self, obj: str) -> str | None:
        """Return the note attached to ``obj``, or ``None`` when there is none."""

        completed = self.client.git("notes", "--ref", self.ref, "show", obj, check=False)
        return completed.stdout if completed.returncode == 0 else None

    def add(self, obj: str, text: str) -> None:
        """Attach ``text`` to ``obj``, replacing any existing note."""

        self.client.git("notes", "--ref", self.ref, "add", "-f", "-F", "-", obj, input_text=text)

    def remove(self, obj: str) -> None:
        """Remove the note attached to ``obj`` if present."""

        self.client.git("notes", "--ref", self.ref, "remove", "--ignore-missing", obj)

    def annotated_objects(self) -> list[str]:
        """Return the objects carrying a note under this reference."""

        completed = self.client.git("notes", "--ref", self.ref, "list", check=False)
        if completed.returncode != 0:
            return []
        return [parts[1] for line in completed.stdout.splitlines() if len(parts := line.split()) == 2]


@dataclass(slots=True)
class GitHistoryNotes:
    """:class:`~vibe_validate.history.interfaces.NotesStore` backed by ``git notes``.

    Each note is attached to the tree object it describes.
    """

    client: GitClient
    ref: str = DEFAULT_NOTES_REF

    @property
    def _notes(self) -> GitNotes:
        return GitNotes(self.client, self.ref)

    def read_note(self, tree_hash: str) -> HistoryNote | None:
        text = self._notes.show(tree_hash)
        return decode_history_note(tree_hash, text) if text is not None else None

    def append_note(self, tree_hash: str, run: ValidationRun) -> None:
        existing = self.read_note(tree_hash)
        runs = (*existing.runs, run) if existing is not None else (run,)
        self._notes.add(tree_hash, encode_model(HistoryNote(tree_hash=tree_hash, runs=runs)))

    def list_note_keys(self) -> list[str]:
        return self._notes.annotated_objects()

    def delete_note(self, tree_hash: str) -> None:
        self._notes.remove(tree_hash)


@dataclass(slots=True)
class GitRunCacheNotes:
    """Run-cache backend storing one ``git notes`` reference per cache key.

    Entries live under ``refs/notes/<ref>/<cache_key>`` attached to the tree
    object they were produced for.
    """

    client: GitClient
    ref: str = DEFAULT_RUN_CACHE_REF

    def _notes(self, cache_key: str) -> GitNotes:
        return GitNotes(self.client, f"{self.ref}/{cache_key}")

    def read_entry(self, tree_hash: str, cache_key: str) -> RunCacheEntry | None:
        text = self._notes(cache_key).show(tree_hash)
        return decode_run_cache_entry(cache_key, text) if text is not None else None

    def write_entry(self, tree_hash: str, cache_key: str, entry: RunCacheEntry) -> None:
        self._notes(cache_key).add(tree_hash, encode_model(entry))

    def list_entries(self) -> list[tuple[str, str]]:
        prefix = f"{NOTES_REF_PREFIX}{self.ref}/"
        entries: list[tuple[str, str]] = []
        for refname in self.client.list_refs(prefix):
            cache_key = refname.removeprefix(prefix)
            entries.extend((tree_hash, cache_key) for tree_hash in self._notes(cache_key).annotated_objects())
        return entries

    def delete_entry(self, tree_hash: str, cache_key: str) -> None:
        self._notes(cache_key).remove(tree_hash)


def is_git_repository(root: Path) -> bool:
    """Return ``True`` when ``root`` lies inside a git work tree."""

    if shutil.which(GIT_EXECUTABLE) is None:
        return False
    completed = GitClient(root).git("rev-parse", "--is-inside-work-tree", check=False)
    return completed.returncode == 0 and completed.stdout.strip() == "true"


__all__ = [
    "GitClient",
    "GitHistoryNotes",
    "GitNotes",
    "GitRunCacheNotes",
    "is_git_repository",
]
