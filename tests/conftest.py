from __future__ import annotations

import contextlib
import pathlib
import random
import re
from typing import Callable, List, Optional, Sequence

import fitz
import pytest
from playwright.sync_api import Error as PlaywrightError

MARKER_PATTERN = re.compile(r"PAGE-\d{4}")
CLOSED_MESSAGE = "Target page, context or browser has been closed"


def build_pdf(page_count: int, *, payload_bytes: int = 0, seed: int = 7) -> bytes:
    """Create a PDF whose pages carry a PAGE-nnnn marker and optional noise."""

    rng = random.Random(seed)
    document = fitz.open()
    for number in range(1, page_count + 1):
        page = document.new_page()
        page.insert_text((72, 60), f"PAGE-{number:04d}", fontsize=14)
        if payload_bytes:
            noise = rng.randbytes(payload_bytes).hex()
            for line, offset in enumerate(range(0, len(noise), 110)):
                page.insert_text((20, 90 + line * 5), noise[offset:offset + 110], fontsize=4)
    data = document.tobytes(garbage=3, deflate=True)
    document.close()
    return data


def page_markers(source: bytes | pathlib.Path) -> List[str]:
    """Return the PAGE-nnnn marker of every page, in order."""

    if isinstance(source, pathlib.Path):
        document = fitz.open(source)
    else:
        document = fitz.open(stream=source, filetype="pdf")
    markers = []
    with document:
        for page in document:
            match = MARKER_PATTERN.search(page.get_text())
            markers.append(match.group(0) if match else "")
    return markers


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return build_pdf


class WeightedDocument:
    """Stands in for a PDF whose serialized size is the sum of page weights."""

    def __init__(self, weights: Sequence[int]) -> None:
        self.weights = list(weights)
        self.closed = False

    @property
    def page_count(self) -> int:
        return len(self.weights)

    def extract_pages(self, start: int, end: int) -> "WeightedDocument":
        return WeightedDocument(self.weights[start:end + 1])

    def serialize(self) -> bytes:
        return b"x" * sum(self.weights)

    def close(self) -> None:
        self.closed = True


# --- Playwright stand-ins ---------------------------------------------------


class FakeLocator:
    def __init__(self, page: "FakePage", label: Optional[str] = None) -> None:
        self.page = page
        self.label = label

    @property
    def first(self) -> "FakeLocator":
        return self

    def set_input_files(self, path: str) -> None:
        self.page._check_open()
        self.page.uploaded = path

    def is_visible(self) -> bool:
        self.page._check_open()
        self.page.now += self.page.visibility_cost
        return self.page._label_visible(self.label)

    def click(self) -> None:
        self.page._check_open()
        self.page.clicked.append(self.label)
        if self.label == self.page.trigger_label:
            self.page.triggered = True
            if self.page.close_on_trigger:
                self.page.closed = True
        elif self.label == self.page.download_label and self.page._pending_download is not None:
            self.page._pending_download.value = FakeDownload(self.page.download_content)


class FakeDownload:
    suggested_filename = "translated.pdf"

    def __init__(self, content: bytes) -> None:
        self.content = content

    def save_as(self, path) -> None:
        pathlib.Path(path).write_bytes(self.content)


class _DownloadInfo:
    value: Optional[FakeDownload] = None


class FakePage:
    def __init__(
        self,
        *,
        trigger_label: Optional[str] = "Traducir",
        download_label: Optional[str] = "Descargar traducción",
        polls_until_done: int = 2,
        close_after_polls: Optional[int] = None,
        close_on_trigger: bool = False,
        download_content: bytes = b"%PDF-1.4 translated",
        goto_error: Optional[Exception] = None,
        visibility_cost: float = 0.0,
    ) -> None:
        self.trigger_label = trigger_label
        self.download_label = download_label
        self.polls_until_done = polls_until_done
        self.close_after_polls = close_after_polls
        self.close_on_trigger = close_on_trigger
        self.download_content = download_content
        self.goto_error = goto_error
        self.visibility_cost = visibility_cost

        self.now = 0.0
        self.closed = False
        self.triggered = False
        self.polls_after_trigger = 0
        self.visited: List[str] = []
        self.uploaded: Optional[str] = None
        self.clicked: List[Optional[str]] = []
        self.queried: List[tuple] = []
        self.screenshots: List[str] = []
        self.handlers: dict = {}
        self._pending_download: Optional[_DownloadInfo] = None

    def clock(self) -> float:
        return self.now

    def _check_open(self) -> None:
        if self.closed:
            raise PlaywrightError(CLOSED_MESSAGE)

    def _label_visible(self, label: Optional[str]) -> bool:
        if label is None:
            return False
        if not self.triggered:
            return label == self.trigger_label
        return label == self.download_label and self.polls_after_trigger >= self.polls_until_done

    def on(self, event: str, handler) -> None:
        self.handlers[event] = handler

    def goto(self, url: str, **kwargs) -> None:
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append(url)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self)

    def get_by_role(self, role: str, *, name: str, exact: bool = False) -> FakeLocator:
        self.queried.append((role, name, exact))
        return FakeLocator(self, name)

    def wait_for_timeout(self, timeout: float) -> None:
        self._check_open()
        self.now += timeout / 1000
        if self.triggered:
            self.polls_after_trigger += 1
            if (
                self.close_after_polls is not None
                and self.polls_after_trigger >= self.close_after_polls
            ):
                self.closed = True

    @contextlib.contextmanager
    def expect_download(self, timeout: float = 0):
        info = _DownloadInfo()
        self._pending_download = info
        yield info
        self._pending_download = None
        if info.value is None:
            raise PlaywrightError("Timeout waiting for download event")

    def is_closed(self) -> bool:
        return self.closed

    def screenshot(self, path: str, full_page: bool = False) -> None:
        pathlib.Path(path).write_bytes(b"png")
        self.screenshots.append(path)


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False

    def new_page(self) -> FakePage:
        return self.page

    def close(self) -> None:
        self.closed = True


class FakeSupervisor:
    """Hands out one prepared page per context request."""

    def __init__(self, *pages: FakePage) -> None:
        self.pages = list(pages)
        self.contexts: List[FakeContext] = []
        self.invalidations = 0

    def new_context(self) -> FakeContext:
        context = FakeContext(self.pages.pop(0))
        self.contexts.append(context)
        return context

    def invalidate(self) -> None:
        self.invalidations += 1

    def close(self) -> None:
        pass
