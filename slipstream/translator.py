"""High-level orchestration for document translation."""

from __future__ import annotations

import logging
import pathlib
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional

from .documents import PdfDocument, require_pdf
from .errors import (
    BatchTranslationError,
    ChunkFailure,
    InvalidDocumentError,
    OverwriteRefusedError,
    SlipstreamError,
    StorageError,
)
from .merger import DocumentMerger
from .orchestrator import BatchOrchestrator
from .providers import TranslationProvider
from .splitter import DEFAULT_MAX_CHUNK_BYTES, DocumentSplitter
from .storage import ChunkStore
from .structures import ChunkPlan, Job, PersistedChunk, TranslationFailure

logger = logging.getLogger(__name__)


@dataclass
class TranslationSummary:
    """Report returned after processing a document."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    total_pages: int
    total_chunks: int
    output_size: int
    provider_name: str
    source_language: str
    target_language: str
    elapsed_seconds: float


class TranslationRunner:
    """Coordinates splitting, translation, merging and cleanup."""

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        temp_dir: pathlib.Path,
        max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES,
        max_retries: int = 1,
        retry_backoff: tuple[float, ...] = (1, 4, 9),
    ) -> None:
        self.provider = provider
        self.splitter = DocumentSplitter(max_chunk_bytes)
        self.store = ChunkStore(temp_dir)
        self.orchestrator = BatchOrchestrator(
            provider,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
        )
        self.merger = DocumentMerger()

    def analyze(self, input_path: pathlib.Path) -> ChunkPlan:
        """Report how the document would be chunked, without translating."""

        buffer = _read_source(input_path)
        return self.analyze_bytes(buffer, filename=input_path.name)

    def analyze_bytes(self, buffer: bytes, *, filename: str) -> ChunkPlan:
        with PdfDocument.load(buffer) as document:
            return self.splitter.plan(document, filename=filename, total_size=len(buffer))

    def run(
        self,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        *,
        source_language: str,
        target_language: str,
    ) -> TranslationSummary:
        start_time = time.time()

        buffer = _read_source(input_path)
        logger.info("Received file: %s, size: %d bytes", input_path.name, len(buffer))

        with PdfDocument.load(buffer) as document:
            total_pages = document.page_count
            logger.info("Splitting PDF into chunks...")
            chunks = self.splitter.split(document)
        if not chunks:
            raise InvalidDocumentError("The document has no pages to translate.")
        logger.info("Split into %d chunks", len(chunks))

        job = Job(
            source_path=input_path,
            source_language=source_language,
            target_language=target_language,
            job_prefix=f"{input_path.stem}_{uuid.uuid4().hex[:8]}",
        )
        try:
            job.chunks = self.store.persist(chunks, job.job_prefix)
            logger.info("Saved %d temporary chunk files", len(job.chunks))

            job.results = self.orchestrator.translate_all(
                [chunk.path for chunk in job.chunks],
                source_language,
                target_language,
            )
            failures = job.failures()
            if failures:
                raise BatchTranslationError(
                    _describe_failures(job.chunks, failures),
                    total_chunks=len(job.chunks),
                )

            translated_paths = [result.output_path for result in job.results]
            logger.info("Merging translated PDFs...")
            with self.merger.merge(translated_paths) as merged:
                try:
                    output_size = merged.save(output_path)
                except StorageError:
                    output_path.unlink(missing_ok=True)
                    raise
            job.output_path = output_path
        finally:
            self.store.release(job.intermediate_paths())

        elapsed = time.time() - start_time
        logger.info("Translated document written to %s", output_path)
        return TranslationSummary(
            input_path=input_path,
            output_path=output_path,
            total_pages=total_pages,
            total_chunks=len(job.chunks),
            output_size=output_size,
            provider_name=self.provider.name,
            source_language=source_language,
            target_language=target_language,
            elapsed_seconds=elapsed,
        )

    def close(self) -> None:
        self.provider.close()


def _read_source(input_path: pathlib.Path) -> bytes:
    require_pdf(input_path)
    try:
        return input_path.read_bytes()
    except OSError as exc:
        raise InvalidDocumentError(f"Could not read {input_path}: {exc}") from exc


def _describe_failures(
    chunks: List[PersistedChunk],
    failures: List[TranslationFailure],
) -> List[ChunkFailure]:
    return [
        ChunkFailure(
            index=failure.index,
            start_page=chunks[failure.index].start_page,
            end_page=chunks[failure.index].end_page,
            reason=failure.reason,
            message=failure.message,
        )
        for failure in failures
    ]


def validate_paths(
    input_path: pathlib.Path,
    output_path: Optional[pathlib.Path],
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .pdf file."
        )
    if not input_path.is_file():
        raise SlipstreamError("Input path must be a file.")
    require_pdf(input_path)

    if output_path is None:
        return

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
