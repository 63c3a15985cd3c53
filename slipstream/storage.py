"""Temporary artifact storage for chunks and translated outputs."""

from __future__ import annotations

import logging
import pathlib
import re
from typing import Iterable, List, Sequence

from .errors import StorageError
from .structures import Chunk, PersistedChunk

logger = logging.getLogger(__name__)


def sanitise_prefix(prefix: str) -> str:
    """Generate a filesystem-friendly job prefix."""

    collapsed = re.sub(r"\s+", "-", prefix.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9_\-]+", "", ascii_only)
    return cleaned or "document"


class ChunkStore:
    """Writes chunks to a scoped directory and removes them again."""

    def __init__(self, directory: pathlib.Path) -> None:
        self.directory = directory

    def chunk_path(self, job_prefix: str, position: int) -> pathlib.Path:
        return self.directory / f"{sanitise_prefix(job_prefix)}_chunk_{position}.pdf"

    def persist(self, chunks: Sequence[Chunk], job_prefix: str) -> List[PersistedChunk]:
        """Write every chunk, in order, and return their handles."""

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Could not create the temporary directory {self.directory}: {exc}"
            ) from exc

        persisted: List[PersistedChunk] = []
        for index, chunk in enumerate(chunks):
            path = self.chunk_path(job_prefix, index + 1)
            try:
                path.write_bytes(chunk.buffer)
            except OSError as exc:
                self.release(item.path for item in persisted)
                raise StorageError(f"Could not write chunk {path}: {exc}") from exc
            persisted.append(PersistedChunk(chunk=chunk, path=path, index=index))
            logger.debug(
                "Stored chunk %d (%s, %d bytes) at %s",
                index + 1,
                chunk.page_range,
                chunk.size,
                path,
            )
        return persisted

    def release(self, paths: Iterable[pathlib.Path]) -> None:
        """Best-effort removal; failures are logged and never raised."""

        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                logger.debug("Artifact %s was already removed.", path)
            except OSError as exc:
                logger.error("Failed to delete %s: %s", path, exc)
