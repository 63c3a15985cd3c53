"""Sequential translation of an ordered list of artifacts."""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import time
from typing import Callable, List, Sequence

from .providers import TranslationProvider
from .structures import (
    FailureReason,
    SessionState,
    TranslationFailure,
    TranslationResult,
)

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs one translation per artifact, in order, isolating failures.

    ``translate_all`` returns exactly one result per input at the same
    position and never raises for a single artifact's failure. Sessions run
    one after another because the translation surface fingerprints concurrent
    sessions coming from one identity.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        max_retries: int = 1,
        retry_backoff: Sequence[float] = (1, 4, 9),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.max_retries = max(0, max_retries)
        self.retry_backoff = list(retry_backoff) or [0]
        self._sleep = sleep

    def translate_all(
        self,
        artifact_paths: Sequence[pathlib.Path],
        source_language: str,
        target_language: str,
    ) -> List[TranslationResult]:
        total = len(artifact_paths)
        logger.info("Starting batch translation of %d files", total)

        results: List[TranslationResult] = []
        for index, path in enumerate(artifact_paths):
            logger.info("[%d/%d] Processing: %s", index + 1, total, path.name)
            result = self._translate_one(index, path, source_language, target_language)
            if result.succeeded:
                logger.info("[%d/%d] Success: %s", index + 1, total, path.name)
            else:
                logger.error(
                    "[%d/%d] Failed: %s - %s",
                    index + 1,
                    total,
                    path.name,
                    result.message,
                )
            results.append(result)

        successes = sum(1 for result in results if result.succeeded)
        logger.info("Batch translation complete: %d/%d successful", successes, total)
        return results

    def _translate_one(
        self,
        index: int,
        path: pathlib.Path,
        source_language: str,
        target_language: str,
    ) -> TranslationResult:
        attempt = 0
        while True:
            try:
                result = self.provider.translate(
                    path,
                    source_language=source_language,
                    target_language=target_language,
                    index=index,
                )
            except Exception as exc:  # a provider bug must not abort the batch
                logger.exception("Unexpected error translating %s", path.name)
                result = TranslationFailure(
                    index=index,
                    source_path=path,
                    state=SessionState.FAILED,
                    reason=FailureReason.UNEXPECTED,
                    message=f"{type(exc).__name__}: {exc}",
                )

            if result.index != index:
                result = dataclasses.replace(result, index=index)
            if result.succeeded:
                return result

            if result.bot_detected:
                logger.warning(
                    "Automated access suspected while translating %s; "
                    "recreating the browser engine before continuing.",
                    path.name,
                )
                self.provider.reset()

            if result.retryable and attempt < self.max_retries:
                attempt += 1
                wait_time = self.retry_backoff[min(attempt - 1, len(self.retry_backoff) - 1)]
                logger.warning(
                    "Could not translate %s (attempt %d of %d: %s). Retrying in %ss...",
                    path.name,
                    attempt,
                    self.max_retries + 1,
                    result.message,
                    wait_time,
                )
                self._sleep(wait_time)
                continue
            return result
