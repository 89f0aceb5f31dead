# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extractor registry selecting the best extractor for captured output."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Final

from ..constants import MAX_ERRORS_IN_ARRAY, MIN_EXTRACTOR_CONFIDENCE
from ..errors import ExtractionDegradedError
from ..models import ExtractionResult
from .base import Extractor, ParsedOutput, build_result, strip_ansi
from .generic import GENERIC_EXTRACTOR
from .javascript import ESLINT_EXTRACTOR, TYPESCRIPT_EXTRACTOR
from .jest import JEST_EXTRACTOR
from .junit import JUNIT_EXTRACTOR
from .maven import MAVEN_CHECKSTYLE_EXTRACTOR, MAVEN_COMPILER_EXTRACTOR, MAVEN_SUREFIRE_EXTRACTOR
from .mocha import JASMINE_EXTRACTOR, MOCHA_EXTRACTOR
from .playwright import PLAYWRIGHT_EXTRACTOR
from .python import PYTEST_EXTRACTOR
from .tap import AVA_EXTRACTOR, TAP_EXTRACTOR
from .vitest import VITEST_EXTRACTOR

LOGGER = logging.getLogger(__name__)

DEGRADED_SUMMARY: Final[str] = "Output could not be analysed"
FALLBACK_FAILURE_CONFIDENCE: Final[float] = 0.0

BUILTIN_EXTRACTORS: Final[tuple[Extractor, ...]] = (
    TYPESCRIPT_EXTRACTOR,
    ESLINT_EXTRACTOR,
    PYTEST_EXTRACTOR,
    JUNIT_EXTRACTOR,
    VITEST_EXTRACTOR,
    MAVEN_SUREFIRE_EXTRACTOR,
    MAVEN_COMPILER_EXTRACTOR,
    MAVEN_CHECKSTYLE_EXTRACTOR,
    JASMINE_EXTRACTOR,
    JEST_EXTRACTOR,
    MOCHA_EXTRACTOR,
    PLAYWRIGHT_EXTRACTOR,
    TAP_EXTRACTOR,
    AVA_EXTRACTOR,
)


@dataclass(frozen=True, slots=True)
class Candidate:
    """Detection score for one registered extractor."""

    extractor: Extractor
    confidence: float
    position: int


class ExtractorRegistry(Mapping[str, Extractor]):
    """Ordered collection of extractors with a generic fallback.

    ``ExtractorRegistry`` behaves like a read-only mapping from extractor
    names to :class:`Extractor` instances. Registration order is the
    tie-breaker when two extractors report the same confidence.
    """

    def __init__(
        self,
        extractors: Iterable[Extractor] = BUILTIN_EXTRACTORS,
        *,
        fallback: Extractor = GENERIC_EXTRACTOR,
        min_confidence: float = MIN_EXTRACTOR_CONFIDENCE,
        max_errors: int = MAX_ERRORS_IN_ARRAY,
    ) -> None:
        """Initialise the registry.

        Args:
            extractors: Framework extractors in tie-break order.
            fallback: Extractor used when nothing scores above ``min_confidence``
                or when the selected extractor degrades.
            min_confidence: Minimum score an extractor needs to be selected.
            max_errors: Maximum number of errors kept in each result.
        """

        self._extractors: dict[str, Extractor] = {}
        for extractor in extractors:
            self.register(extractor)
        self.fallback = fallback
        self.min_confidence = min_confidence
        self.max_errors = max_errors

    def register(self, extractor: Extractor) -> None:
        """Append ``extractor`` to the registry.

        Raises:
            ValueError: If an extractor with the same name is already registered.
        """

        if extractor.name in self._extractors:
            raise ValueError(f"Extractor '{extractor.name}' already registered")
        self._extractors[extractor.name] = extractor

    def rank(self, output: str, command: str = "") -> list[Candidate]:
        """Return extractors scoring above zero, best first.

        An extractor whose detection fails is logged and left out.

        Args:
            output: ANSI-free output to score.
            command: Command that produced ``output``.

        Returns:
            list[Candidate]: Candidates ordered by descending confidence, then
            by registration order.
        """

        ranked: list[Candidate] = []
        for position, extractor in enumerate(self._extractors.values()):
            try:
                confidence = extractor.matches(output, command)
            except ExtractionDegradedError:
                LOGGER.warning("Extractor %s failed to score output; skipping it", extractor.name, exc_info=True)
                continue
            if confidence > 0:
                ranked.append(Candidate(extractor=extractor, confidence=confidence, position=position))
        ranked.sort(key=lambda candidate: (-candidate.confidence, candidate.position))
        return ranked

    def select(self, output: str, command: str = "") -> Candidate | None:
        """Return the best candidate meeting the minimum confidence, if any."""

        ranked = self.rank(output, command)
        if ranked and ranked[0].confidence >= self.min_confidence:
            return ranked[0]
        return None

    def detect_and_extract(self, raw_output: str, command: str = "") -> ExtractionResult:
        """Strip ANSI escapes, select an extractor and return its bounded result.

        Extraction never raises for unexpected input: a degraded extractor is
        logged and replaced by the fallback, and a degraded fallback yields a
        summary-only result.

        Args:
            raw_output: Combined stdout/stderr as captured.
            command: Command that produced the output; used as a detection hint.

        Returns:
            ExtractionResult: Bounded extraction result.
        """

        output = strip_ansi(raw_output)
        candidate = self.select(output, command)
        if candidate is not None:
            LOGGER.debug("Selected %s extractor (confidence %.2f)", candidate.extractor.name, candidate.confidence)
            try:
                return candidate.extractor.extract(
                    output,
                    confidence=candidate.confidence,
                    max_errors=self.max_errors,
                )
            except ExtractionDegradedError:
                LOGGER.warning(
                    "Extractor %s degraded; using %s",
                    candidate.extractor.name,
                    self.fallback.name,
                    exc_info=True,
                )
        try:
            return self.fallback.extract(output, max_errors=self.max_errors)
        except ExtractionDegradedError:
            LOGGER.warning("Fallback extractor %s degraded", self.fallback.name, exc_info=True)
        return build_result(
            ParsedOutput(summary=DEGRADED_SUMMARY),
            framework=self.fallback.name,
            confidence=FALLBACK_FAILURE_CONFIDENCE,
            max_errors=self.max_errors,
        )

    def __len__(self) -> int:
        return len(self._extractors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._extractors)

    def __getitem__(self, name: str) -> Extractor:
        return self._extractors[name]


DEFAULT_REGISTRY: Final[ExtractorRegistry] = ExtractorRegistry()


def detect_and_extract(raw_output: str, command: str = "") -> ExtractionResult:
    """Extract errors from ``raw_output`` using the default registry."""

    return DEFAULT_REGISTRY.detect_and_extract(raw_output, command)


__all__ = [
    "BUILTIN_EXTRACTORS",
    "Candidate",
    "DEFAULT_REGISTRY",
    "DEGRADED_SUMMARY",
    "ExtractorRegistry",
    "FALLBACK_FAILURE_CONFIDENCE",
    "detect_and_extract",
]
