"""Error definitions for the Slipstream translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Sequence

from .structures import FailureReason, SessionState


class ErrorCategory(Enum):
    """Categorises runtime errors by where they surface in a job."""

    ARGUMENT = auto()
    CONFIG = auto()
    INPUT = auto()
    TRANSLATION = auto()
    STORAGE = auto()
    MERGE = auto()
    OTHER = auto()


class SlipstreamError(Exception):
    """Base exception for all custom errors."""

    category = ErrorCategory.OTHER


class InvalidDocumentError(SlipstreamError):
    """Raised when the source document cannot be read as a paginated PDF."""

    category = ErrorCategory.INPUT


class UnsupportedFileTypeError(SlipstreamError):
    """Raised when a given file extension is not supported."""

    category = ErrorCategory.INPUT


class OverwriteRefusedError(SlipstreamError):
    """Raised when attempting to overwrite an output without consent."""

    category = ErrorCategory.ARGUMENT


class TranslationProviderConfigurationError(SlipstreamError):
    """Raised when the translation provider is misconfigured."""

    category = ErrorCategory.CONFIG


class StorageError(SlipstreamError):
    """Raised when temporary or output artifacts cannot be written."""

    category = ErrorCategory.STORAGE


class MergeError(SlipstreamError):
    """Raised when a translated artifact cannot be merged."""

    category = ErrorCategory.MERGE


class SessionStepError(SlipstreamError):
    """Raised inside a translation session when a state transition fails."""

    category = ErrorCategory.TRANSLATION

    def __init__(
        self,
        state: SessionState,
        reason: FailureReason,
        message: str,
    ) -> None:
        super().__init__(message)
        self.state = state
        self.reason = reason
        self.message = message


@dataclass
class ChunkFailure:
    """Stores context for one chunk that could not be translated."""

    index: int
    start_page: int
    end_page: int
    reason: FailureReason
    message: str

    def describe(self) -> str:
        return (
            f"chunk {self.index + 1} (pages {self.start_page}-{self.end_page}): "
            f"{self.reason.value} - {self.message}"
        )


class BatchTranslationError(SlipstreamError):
    """Raised when one or more chunks failed and the job was aborted."""

    category = ErrorCategory.TRANSLATION

    def __init__(self, failures: Sequence[ChunkFailure], total_chunks: int) -> None:
        self.failures: List[ChunkFailure] = list(failures)
        self.total_chunks = total_chunks
        lines = [
            f"{len(self.failures)} of {total_chunks} chunk translations failed:"
        ]
        lines.extend(f"- {failure.describe()}" for failure in self.failures)
        if self.engine_reset_recommended:
            lines.append(
                "Automated access was detected. Restart the browser engine "
                "before retrying the failed page ranges."
            )
        super().__init__("\n".join(lines))

    @property
    def engine_reset_recommended(self) -> bool:
        return any(
            failure.reason is FailureReason.BOT_DETECTED
            for failure in self.failures
        )

    @property
    def failed_ranges(self) -> List[tuple[int, int]]:
        return [(failure.start_page, failure.end_page) for failure in self.failures]
