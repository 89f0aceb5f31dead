# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Remote CI run inspection with retried log fetching."""

from __future__ import annotations

from .checks import collect_remote_check, extract_from_logs
from .github import GitHubRunFetcher, RunDetails
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, fetch_logs_with_retry

__all__ = [
    "DEFAULT_RETRY_POLICY",
    "GitHubRunFetcher",
    "RetryPolicy",
    "RunDetails",
    "collect_remote_check",
    "extract_from_logs",
    "fetch_logs_with_retry",
]
