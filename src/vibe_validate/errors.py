# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy raised by validation, extraction and storage layers."""

from __future__ import annotations


class VibeValidateError(RuntimeError):
    """Base class for errors raised by the package."""


class ExtractionDegradedError(VibeValidateError):
    """Raised by an extractor that cannot make sense of its input.

    The registry catches this error and falls back to the generic extractor,
    so it never reaches callers of :func:`detect_and_extract`.
    """


class MalformedNestedDocumentError(VibeValidateError):
    """Raised when captured stdout looks like a result document but is not one."""


class RemoteLogNotReadyError(VibeValidateError):
    """Raised when a remote CI run reports completion before its logs exist."""

    def __init__(self, run_id: int | str, detail: str | None = None) -> None:
        """Initialise the error with the run identifier.

        Args:
            run_id: Identifier of the remote run whose logs were requested.
            detail: Optional message reported by the remote system.
        """

        message = f"Logs for run {run_id} are not available yet"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.run_id = run_id


class StoreIntegrityError(VibeValidateError):
    """Raised when persisted history content cannot be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        """Initialise the error with the offending note key.

        Args:
            key: Note key (tree hash or run-cache key) whose content is corrupt.
            reason: Short explanation of the decoding failure.
        """

        super().__init__(f"History note {key} is corrupt: {reason}")
        self.key = key
        self.reason = reason


class ConfigError(VibeValidateError):
    """Raised when a configuration file is missing required data or malformed."""


__all__ = [
    "ConfigError",
    "ExtractionDegradedError",
    "MalformedNestedDocumentError",
    "RemoteLogNotReadyError",
    "StoreIntegrityError",
    "VibeValidateError",
]
