# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build :class:`RemoteCheck` reports for remote CI runs."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Final, TypeAlias

from pydantic import ValidationError

from ..errors import MalformedNestedDocumentError
from ..extractors import DEFAULT_REGISTRY, ExtractorRegistry
from ..models import ExtractionResult, RemoteCheck
from ..nested import document_extraction, parse_document, split_document
from .github import RunDetails
from .retry import DEFAULT_RETRY_POLICY, LogFetcher, RetryPolicy, RunId, Sleeper, fetch_logs_with_retry

LOGGER = logging.getLogger(__name__)

DetailsFetcher: TypeAlias = Callable[[RunId], RunDetails]

_LOG_TIMESTAMP: Final[re.Pattern[str]] = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z\s?")
_GH_LOG_COLUMNS: Final[int] = 3


def clean_ci_logs(logs: str) -> str:
    """Remove ``gh run view --log`` job/step columns and line timestamps.

    Args:
        logs: Raw log text as printed by ``gh``.

    Returns:
        str: Log text as the job's commands printed it.
    """

    cleaned: list[str] = []
    for line in logs.splitlines():
        columns = line.split("\t", _GH_LOG_COLUMNS - 1)
        content = columns[-1] if len(columns) == _GH_LOG_COLUMNS else line
        cleaned.append(_LOG_TIMESTAMP.sub("", content, count=1))
    return "\n".join(cleaned)


def embedded_extraction(logs: str) -> ExtractionResult | None:
    """Return the extraction of a result document printed inside ``logs``, if any.

    Both ``run`` and ``validate`` result documents are recognised; the
    document ends at the next marker line, as in nested output.
    """

    split = split_document(logs)
    if split is None:
        return None
    try:
        return document_extraction(parse_document(split[1]))
    except (MalformedNestedDocumentError, ValidationError) as exc:
        LOGGER.debug("Ignoring unusable result document in CI logs: %s", exc)
        return None


def extract_from_logs(logs: str, registry: ExtractorRegistry = DEFAULT_REGISTRY) -> ExtractionResult | None:
    """Return the extraction for fetched CI logs.

    A result document already present in the logs wins; otherwise the
    extractor registry runs over the cleaned log text. Empty logs yield
    ``None``.
    """

    cleaned = clean_ci_logs(logs)
    if not cleaned.strip():
        return None
    return embedded_extraction(cleaned) or registry.detect_and_extract(cleaned)


def collect_remote_check(
    run_id: RunId,
    *,
    fetch_details: DetailsFetcher,
    fetch_logs: LogFetcher,
    name: str | None = None,
    registry: ExtractorRegistry = DEFAULT_REGISTRY,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleeper = time.sleep,
) -> RemoteCheck:
    """Return the status of ``run_id`` with extracted failures when it failed.

    Logs are fetched only for failed completed runs, through
    :func:`fetch_logs_with_retry`. When the logs never become available the
    check is still reported, without an ``extraction`` field.

    Args:
        run_id: Identifier of the remote run.
        fetch_details: Callable returning the run status.
        fetch_logs: Callable returning the run logs; may raise
            :class:`RemoteLogNotReadyError`.
        name: Check name overriding the one reported by the remote system.
        registry: Extractor registry used for plain logs.
        policy: Retry policy for log fetching.
        sleep: Callable used to wait between attempts.

    Returns:
        RemoteCheck: Status report for the run.
    """

    details = fetch_details(run_id)
    extraction: ExtractionResult | None = None
    if details.failed:
        logs = fetch_logs_with_retry(fetch_logs, run_id, policy, sleep=sleep)
        if logs is None:
            LOGGER.info("Logs for run %s never became available; omitting extraction", run_id)
        else:
            extraction = extract_from_logs(logs, registry)
    return RemoteCheck(
        name=name or details.name or details.workflow_name or str(run_id),
        status=details.status,
        conclusion=details.conclusion,
        run_id=run_id,
        url=details.url,
        extraction=extraction,
    )


__all__ = ["DetailsFetcher", "clean_ci_logs", "collect_remote_check", "embedded_extraction", "extract_from_logs"]
