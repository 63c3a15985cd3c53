"""Core data structures for the Slipstream translator."""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class SessionState(Enum):
    """States of a single external translation session."""

    INIT = "init"
    NAVIGATED = "navigated"
    UPLOADED = "uploaded"
    TRIGGERED = "triggered"
    COMPLETED = "completed"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a chunk translation ended in the FAILED state."""

    NAVIGATION_FAILED = "navigation_failed"
    UPLOAD_FAILED = "upload_failed"
    TRIGGER_NOT_FOUND = "trigger_not_found"
    COMPLETION_TIMEOUT = "completion_timeout"
    BOT_DETECTED = "bot_detected"
    DOWNLOAD_FAILED = "download_failed"
    DOWNLOAD_SAVE_FAILED = "download_save_failed"
    UNEXPECTED = "unexpected"

    @property
    def retryable(self) -> bool:
        return self is FailureReason.NAVIGATION_FAILED


@dataclass(frozen=True)
class Chunk:
    """A contiguous, size-bounded page range of a source document.

    Page numbers are 1-based and inclusive.
    """

    buffer: bytes = field(repr=False)
    start_page: int
    end_page: int
    size: int = field(init=False)

    def __post_init__(self) -> None:
        if self.start_page < 1 or self.end_page < self.start_page:
            raise ValueError(
                f"Invalid page range {self.start_page}-{self.end_page}."
            )
        object.__setattr__(self, "size", len(self.buffer))

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1

    @property
    def page_range(self) -> str:
        if self.start_page == self.end_page:
            return f"page {self.start_page}"
        return f"pages {self.start_page}-{self.end_page}"


@dataclass(frozen=True)
class PersistedChunk:
    """A chunk written to the chunk store."""

    chunk: Chunk
    path: pathlib.Path
    index: int

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def start_page(self) -> int:
        return self.chunk.start_page

    @property
    def end_page(self) -> int:
        return self.chunk.end_page

    @property
    def size(self) -> int:
        return self.chunk.size


@dataclass(frozen=True)
class TranslationSuccess:
    """Successful translation of the artifact at position ``index``."""

    index: int
    source_path: pathlib.Path
    output_path: pathlib.Path

    succeeded = True


@dataclass(frozen=True)
class TranslationFailure:
    """Failed translation of the artifact at position ``index``."""

    index: int
    source_path: pathlib.Path
    state: SessionState
    reason: FailureReason
    message: str

    succeeded = False

    @property
    def bot_detected(self) -> bool:
        return self.reason is FailureReason.BOT_DETECTED

    @property
    def retryable(self) -> bool:
        return self.reason.retryable


TranslationResult = Union[TranslationSuccess, TranslationFailure]


@dataclass
class ChunkSummary:
    """Describes one planned chunk without its content."""

    index: int
    start_page: int
    end_page: int
    size: int

    @property
    def size_readable(self) -> str:
        return f"{self.size / 1024 / 1024:.2f} MB"

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "startPage": self.start_page,
            "endPage": self.end_page,
            "size": self.size,
            "sizeReadable": self.size_readable,
        }


@dataclass
class ChunkPlan:
    """Report returned by an analysis run; no translation is performed."""

    filename: str
    total_size: int
    total_pages: int
    max_chunk_bytes: int
    chunks: List[ChunkSummary] = field(default_factory=list)

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "totalSize": self.total_size,
            "totalPages": self.total_pages,
            "maxChunkBytes": self.max_chunk_bytes,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "totalChunks": self.total_chunks,
        }


@dataclass
class Job:
    """Transient state of one end-to-end translation request."""

    source_path: pathlib.Path
    source_language: str
    target_language: str
    job_prefix: str
    chunks: List[PersistedChunk] = field(default_factory=list)
    results: List[TranslationResult] = field(default_factory=list)
    output_path: Optional[pathlib.Path] = None

    def intermediate_paths(self) -> List[pathlib.Path]:
        """Every temporary artifact the job created, chunks first."""

        paths = [chunk.path for chunk in self.chunks]
        paths.extend(
            result.output_path
            for result in self.results
            if isinstance(result, TranslationSuccess)
        )
        return paths

    def failures(self) -> List[TranslationFailure]:
        return [
            result for result in self.results
            if isinstance(result, TranslationFailure)
        ]
