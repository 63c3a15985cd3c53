"""Size-aware page splitting."""

from __future__ import annotations

import logging
from typing import List

from .documents import PagedDocument
from .structures import Chunk, ChunkPlan, ChunkSummary

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_BYTES = 9 * 1024 * 1024


class DocumentSplitter:
    """Partitions a document into ordered chunks under a byte ceiling.

    A candidate chunk grows one page at a time and is re-serialized after each
    addition, because a document's size is not the sum of its pages' sizes
    (shared fonts and images are stored once). When a candidate with more than
    one page overflows, the pages before the overflowing one become a chunk
    and the overflowing page starts the next candidate. A single page that is
    already over the ceiling is emitted on its own rather than rejected.
    """

    def __init__(self, max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES) -> None:
        if max_chunk_bytes <= 0:
            raise ValueError("max_chunk_bytes must be positive.")
        self.max_chunk_bytes = max_chunk_bytes

    def split(self, document: PagedDocument) -> List[Chunk]:
        chunks: List[Chunk] = []
        total_pages = document.page_count
        start = 0
        # Serialized bytes of the previous candidate, pages start..index-1.
        fitting = b""

        for index in range(total_pages):
            candidate = self._materialize(document, start, index)
            if len(candidate) > self.max_chunk_bytes and index > start:
                chunks.append(self._emit(fitting, start, index - 1))
                start = index
                candidate = self._materialize(document, start, index)
            if len(candidate) > self.max_chunk_bytes and index == start:
                logger.warning(
                    "Page %d alone is %d bytes, over the %d byte ceiling; "
                    "keeping it as a single-page chunk.",
                    index + 1,
                    len(candidate),
                    self.max_chunk_bytes,
                )
            fitting = candidate

        if start < total_pages:
            chunks.append(self._emit(fitting, start, total_pages - 1))

        logger.debug(
            "Split %d pages into %d chunks (ceiling %d bytes).",
            total_pages,
            len(chunks),
            self.max_chunk_bytes,
        )
        return chunks

    def plan(self, document: PagedDocument, *, filename: str, total_size: int) -> ChunkPlan:
        """Describe how ``document`` would be split without keeping the bytes."""

        chunks = self.split(document)
        return ChunkPlan(
            filename=filename,
            total_size=total_size,
            total_pages=document.page_count,
            max_chunk_bytes=self.max_chunk_bytes,
            chunks=[
                ChunkSummary(
                    index=position,
                    start_page=chunk.start_page,
                    end_page=chunk.end_page,
                    size=chunk.size,
                )
                for position, chunk in enumerate(chunks, start=1)
            ],
        )

    @staticmethod
    def _materialize(document: PagedDocument, start: int, end: int) -> bytes:
        candidate = document.extract_pages(start, end)
        try:
            return candidate.serialize()
        finally:
            candidate.close()

    @staticmethod
    def _emit(buffer: bytes, start: int, end: int) -> Chunk:
        return Chunk(buffer=buffer, start_page=start + 1, end_page=end + 1)
