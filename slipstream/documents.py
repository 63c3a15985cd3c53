"""Paginated document boundary backed by PyMuPDF."""

from __future__ import annotations

import pathlib
from typing import Iterable, Protocol

import fitz  # PyMuPDF

from .errors import InvalidDocumentError, StorageError, UnsupportedFileTypeError


class PagedDocument(Protocol):
    """What the splitter needs from a document."""

    @property
    def page_count(self) -> int: ...

    def extract_pages(self, start: int, end: int) -> "PagedDocument": ...

    def serialize(self) -> bytes: ...

    def close(self) -> None: ...


class PdfDocument:
    """Thin wrapper around a PyMuPDF document.

    Page indices are 0-based here; 1-based numbering only appears on chunks.
    """

    def __init__(self, document: fitz.Document) -> None:
        self._document = document

    @classmethod
    def load(cls, buffer: bytes) -> "PdfDocument":
        """Open a PDF from memory, raising InvalidDocumentError if unreadable."""

        if not buffer:
            raise InvalidDocumentError("The document is empty.")
        try:
            document = fitz.open(stream=buffer, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise InvalidDocumentError(
                f"The document could not be read as a PDF: {exc}"
            ) from exc
        if document.needs_pass:
            document.close()
            raise InvalidDocumentError(
                "The document is password protected and cannot be split."
            )
        return cls(document)

    @classmethod
    def open(cls, path: pathlib.Path) -> "PdfDocument":
        try:
            buffer = path.read_bytes()
        except OSError as exc:
            raise InvalidDocumentError(f"Could not read {path}: {exc}") from exc
        return cls.load(buffer)

    @classmethod
    def create(cls) -> "PdfDocument":
        return cls(fitz.open())

    @property
    def page_count(self) -> int:
        return self._document.page_count

    def extract_pages(self, start: int, end: int) -> "PdfDocument":
        """Copy pages ``start``..``end`` (inclusive) into a new document."""

        if start < 0 or end < start or end >= self.page_count:
            raise IndexError(
                f"Page range {start}-{end} is outside 0-{self.page_count - 1}."
            )
        extracted = fitz.open()
        extracted.insert_pdf(self._document, from_page=start, to_page=end)
        return PdfDocument(extracted)

    def merge_into(self, target: "PdfDocument", page_indices: Iterable[int]) -> None:
        """Append the given pages of this document, in order, to ``target``."""

        for index in page_indices:
            target._document.insert_pdf(self._document, from_page=index, to_page=index)

    def page_indices(self) -> range:
        return range(self.page_count)

    def serialize(self) -> bytes:
        return self._document.tobytes(garbage=3, deflate=True)

    def save(self, destination: pathlib.Path) -> int:
        """Write the document to ``destination`` and return its size in bytes."""

        data = self.serialize()
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not write {destination}: {exc}") from exc
        return len(data)

    def close(self) -> None:
        self._document.close()

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def require_pdf(path: pathlib.Path) -> None:
    """Reject anything that is not a .pdf file."""

    if path.suffix.lower() != ".pdf":
        raise UnsupportedFileTypeError(
            "This file type isn't supported. Please use a .pdf document."
        )
