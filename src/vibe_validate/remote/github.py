# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""GitHub Actions run access through the ``gh`` command-line client."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict

from ..errors import RemoteLogNotReadyError
from ..process import SubprocessExecutionError, run_command
from .retry import RunId

GH_EXECUTABLE: Final[str] = "gh"
RUN_DETAIL_FIELDS: Final[tuple[str, ...]] = ("name", "status", "conclusion", "workflowName", "url")
FAILED_CONCLUSIONS: Final[frozenset[str]] = frozenset({"failure", "timed_out", "cancelled"})
_NOT_READY_MARKERS: Final[tuple[str, ...]] = (
    "still in progress",
    "log not found",
    "logs will be available",
    "not available",
    "could not find any logs",
)


class RunDetails(BaseModel):
    """Status fields reported for a remote run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    run_id: RunId
    name: str = ""
    workflow_name: str = ""
    status: str = "unknown"
    conclusion: str | None = None
    url: str | None = None

    @property
    def failed(self) -> bool:
        """Return ``True`` for a completed run with a failing conclusion."""

        return self.status == "completed" and self.conclusion in FAILED_CONCLUSIONS


def is_not_ready_message(message: str) -> bool:
    """Return ``True`` when ``message`` says the logs are not materialised yet."""

    lowered = message.lower()
    return any(marker in lowered for marker in _NOT_READY_MARKERS)


@dataclass(slots=True)
class GitHubRunFetcher:
    """Fetch run details and logs with ``gh run view``.

    Attributes:
        repo: Optional ``OWNER/REPO`` passed as ``--repo``.
        cwd: Directory the ``gh`` commands run in.
    """

    repo: str | None = None
    cwd: Path | None = field(default=None)

    def _gh(self, run_id: RunId, *flags: str) -> str:
        repo_flag = ["--repo", self.repo] if self.repo else []
        completed = run_command([GH_EXECUTABLE, "run", "view", str(run_id), *repo_flag, *flags], cwd=self.cwd)
        return completed.stdout

    def fetch_run_logs(self, run_id: RunId) -> str:
        """Return the combined logs of ``run_id``.

        Raises:
            RemoteLogNotReadyError: If GitHub reports the logs are not available yet.
            SubprocessExecutionError: For any other ``gh`` failure.
        """

        try:
            return self._gh(run_id, "--log")
        except SubprocessExecutionError as exc:
            if is_not_ready_message(exc.stderr or ""):
                raise RemoteLogNotReadyError(run_id, (exc.stderr or "").strip()) from exc
            raise

    def fetch_run_details(self, run_id: RunId) -> RunDetails:
        """Return status information for ``run_id``.

        Raises:
            SubprocessExecutionError: If ``gh`` fails.
            ValueError: If ``gh`` prints something other than a JSON object.
        """

        payload = json.loads(self._gh(run_id, "--json", ",".join(RUN_DETAIL_FIELDS)))
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected run details for {run_id}: {payload!r}")
        return RunDetails(
            run_id=run_id,
            name=str(payload.get("name") or ""),
            workflow_name=str(payload.get("workflowName") or ""),
            status=str(payload.get("status") or "unknown").lower(),
            conclusion=str(payload["conclusion"]).lower() if payload.get("conclusion") else None,
            url=payload.get("url"),
        )


__all__ = ["FAILED_CONCLUSIONS", "GitHubRunFetcher", "RunDetails", "is_not_ready_message"]
