"""Reassembly of translated chunks into one document."""

from __future__ import annotations

import logging
import pathlib
from typing import Sequence

from .documents import PdfDocument
from .errors import InvalidDocumentError, MergeError

logger = logging.getLogger(__name__)


class DocumentMerger:
    """Concatenates the pages of each artifact, in the order given."""

    def merge(self, artifact_paths: Sequence[pathlib.Path]) -> PdfDocument:
        merged = PdfDocument.create()
        try:
            for position, path in enumerate(artifact_paths, start=1):
                logger.info(
                    "Merging file %d/%d: %s", position, len(artifact_paths), path
                )
                try:
                    source = PdfDocument.open(path)
                except InvalidDocumentError as exc:
                    raise MergeError(
                        f"Translated file {path.name} could not be loaded: {exc}"
                    ) from exc
                with source:
                    try:
                        source.merge_into(merged, source.page_indices())
                    except (RuntimeError, ValueError) as exc:
                        raise MergeError(
                            f"Pages of {path.name} could not be copied: {exc}"
                        ) from exc
        except BaseException:
            merged.close()
            raise
        logger.info("PDF merge complete: %d pages", merged.page_count)
        return merged
