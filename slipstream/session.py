"""Drives one document through the browser-based translation surface."""

from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple
from urllib.parse import urlencode

from playwright.sync_api import BrowserContext, Download, Locator, Page
from playwright.sync_api import Error as PlaywrightError

from .engine import BrowserSupervisor
from .errors import SessionStepError
from .labels import download_labels, trigger_labels
from .structures import (
    FailureReason,
    SessionState,
    TranslationFailure,
    TranslationResult,
    TranslationSuccess,
)

logger = logging.getLogger(__name__)

DEFAULT_TRANSLATE_URL = "https://translate.google.com/"
FILE_INPUT_SELECTOR = 'input[type="file"][name="file"]'
TRANSLATED_PREFIX = "translated_"

_ORDER = (
    SessionState.INIT,
    SessionState.NAVIGATED,
    SessionState.UPLOADED,
    SessionState.TRIGGERED,
    SessionState.COMPLETED,
    SessionState.DOWNLOADED,
)

# Reason recorded when a Playwright call fails while leaving a given state.
_STEP_FAILURES = {
    SessionState.INIT: FailureReason.NAVIGATION_FAILED,
    SessionState.NAVIGATED: FailureReason.UPLOAD_FAILED,
    SessionState.UPLOADED: FailureReason.TRIGGER_NOT_FOUND,
    SessionState.TRIGGERED: FailureReason.COMPLETION_TIMEOUT,
    SessionState.COMPLETED: FailureReason.DOWNLOAD_FAILED,
}


@dataclass(frozen=True)
class SessionTimeouts:
    """Bounds, in seconds, for each awaited step of a session."""

    navigation: float = 60.0
    upload_settle: float = 3.0
    trigger: float = 12.0
    post_trigger_settle: float = 2.0
    completion: float = 300.0
    download: float = 60.0
    poll_interval: float = 1.0


def translated_path_for(artifact_path: pathlib.Path) -> pathlib.Path:
    """Where the translated copy of ``artifact_path`` is saved."""

    return artifact_path.with_name(f"{TRANSLATED_PREFIX}{artifact_path.name}")


def build_entry_url(base_url: str, source_language: str, target_language: str) -> str:
    query = urlencode(
        {"hl": target_language, "sl": source_language, "tl": target_language, "op": "docs"}
    )
    return f"{base_url}?{query}"


def is_target_closed(exc: BaseException) -> bool:
    return "has been closed" in str(exc)


class TranslationSession:
    """One isolated browser context carrying one artifact through translation.

    States advance strictly INIT -> NAVIGATED -> UPLOADED -> TRIGGERED ->
    COMPLETED -> DOWNLOADED; any failure ends in FAILED. The context is always
    closed before ``run`` returns.
    """

    def __init__(
        self,
        supervisor: BrowserSupervisor,
        artifact_path: pathlib.Path,
        *,
        source_language: str,
        target_language: str,
        index: int = 0,
        base_url: str = DEFAULT_TRANSLATE_URL,
        timeouts: Optional[SessionTimeouts] = None,
        debug: bool = False,
        screenshot_dir: Optional[pathlib.Path] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.supervisor = supervisor
        self.artifact_path = artifact_path
        self.source_language = source_language
        self.target_language = target_language
        self.index = index
        self.base_url = base_url
        self.timeouts = timeouts or SessionTimeouts()
        self.debug = debug
        self.screenshot_dir = screenshot_dir or pathlib.Path("debug-screenshots")
        self.clock = clock
        self.state = SessionState.INIT
        self._used = False

    def run(self) -> TranslationResult:
        if self._used:
            raise RuntimeError("A translation session can only run once.")
        self._used = True

        name = self.artifact_path.name
        logger.info(
            "Starting translation: %s (%s -> %s)",
            name,
            self.source_language,
            self.target_language,
        )
        context: Optional[BrowserContext] = None
        page: Optional[Page] = None
        try:
            if not self.artifact_path.is_file():
                raise SessionStepError(
                    self.state,
                    FailureReason.UPLOAD_FAILED,
                    f"Artifact {self.artifact_path} does not exist.",
                )
            context = self.supervisor.new_context()
            page = context.new_page()
            page.on(
                "download",
                lambda download: logger.info(
                    "Download event triggered: %s", download.suggested_filename
                ),
            )
            self._navigate(page)
            self._upload(page)
            self._trigger(page)
            control = self._await_completion(page)
            saved = self._download(page, control)
        except SessionStepError as exc:
            return self._fail(page, exc.state, exc.reason, exc.message)
        except PlaywrightError as exc:
            if is_target_closed(exc) or (page is not None and page.is_closed()):
                return self._fail(
                    page,
                    self.state,
                    FailureReason.BOT_DETECTED,
                    "The translation page was closed by the service, "
                    f"likely bot detection ({exc.message})",
                )
            reason = _STEP_FAILURES.get(self.state, FailureReason.UNEXPECTED)
            return self._fail(page, self.state, reason, exc.message)
        finally:
            if context is not None:
                try:
                    context.close()
                except PlaywrightError as exc:
                    logger.warning("Could not close context: %s", exc)

        logger.info("Translation completed successfully: %s", saved)
        return TranslationSuccess(
            index=self.index,
            source_path=self.artifact_path,
            output_path=saved,
        )

    # --- Transitions --------------------------------------------------------

    def _navigate(self, page: Page) -> None:
        url = build_entry_url(self.base_url, self.source_language, self.target_language)
        logger.info("Navigating to: %s", url)
        page.goto(url, wait_until="networkidle", timeout=self._ms(self.timeouts.navigation))
        self._advance(SessionState.NAVIGATED)
        self._snapshot(page, "01-initial-load")

    def _upload(self, page: Page) -> None:
        logger.info("Uploading file: %s", self.artifact_path)
        file_input = page.locator(FILE_INPUT_SELECTOR).first
        file_input.set_input_files(str(self.artifact_path))
        page.wait_for_timeout(self._ms(self.timeouts.upload_settle))
        self._advance(SessionState.UPLOADED)
        self._snapshot(page, "02-file-uploaded")

    def _trigger(self, page: Page) -> None:
        label, control = self._await_control(
            page,
            trigger_labels(self.target_language),
            timeout=self.timeouts.trigger,
            exact=True,
            missing=FailureReason.TRIGGER_NOT_FOUND,
            missing_message="Could not find translate button",
        )
        self._snapshot(page, "03-before-translate-click")
        logger.info("Clicking translate button %r", label)
        control.click()
        self._advance(SessionState.TRIGGERED)

        page.wait_for_timeout(self._ms(self.timeouts.post_trigger_settle))
        self._snapshot(page, "04-after-translate-click")
        if page.is_closed():
            raise SessionStepError(
                self.state,
                FailureReason.BOT_DETECTED,
                "The translation page closed right after starting, likely bot detection",
            )

    def _await_completion(self, page: Page) -> Locator:
        logger.info("Waiting for translation to complete...")
        label, control = self._await_control(
            page,
            download_labels(self.target_language),
            timeout=self.timeouts.completion,
            exact=False,
            missing=FailureReason.COMPLETION_TIMEOUT,
            missing_message=(
                "Could not find download button - translation may have failed "
                "or timed out"
            ),
        )
        logger.info("Found download button %r", label)
        self._advance(SessionState.COMPLETED)
        self._snapshot(page, "05-before-download")
        return control

    def _download(self, page: Page, control: Locator) -> pathlib.Path:
        with page.expect_download(timeout=self._ms(self.timeouts.download)) as download_info:
            control.click()
        download: Download = download_info.value
        logger.info("Download started! Suggested filename: %s", download.suggested_filename)

        save_path = translated_path_for(self.artifact_path)
        try:
            download.save_as(save_path)
            size = save_path.stat().st_size
        except (PlaywrightError, OSError) as exc:
            save_path.unlink(missing_ok=True)
            raise SessionStepError(
                self.state,
                FailureReason.DOWNLOAD_SAVE_FAILED,
                f"Failed to save download to {save_path}: {exc}",
            ) from exc
        if size == 0:
            save_path.unlink(missing_ok=True)
            raise SessionStepError(
                self.state,
                FailureReason.DOWNLOAD_SAVE_FAILED,
                f"Downloaded translation {save_path.name} is empty",
            )
        logger.info("File saved to %s (%d bytes)", save_path, size)
        self._advance(SessionState.DOWNLOADED)
        return save_path

    # --- Helpers ------------------------------------------------------------

    def _await_control(
        self,
        page: Page,
        labels: Sequence[str],
        *,
        timeout: float,
        exact: bool,
        missing: FailureReason,
        missing_message: str,
    ) -> Tuple[str, Locator]:
        """Poll for the first visible button among ``labels``, in order."""

        deadline = self.clock() + timeout
        while True:
            if page.is_closed():
                raise SessionStepError(
                    self.state,
                    FailureReason.BOT_DETECTED,
                    "The translation page was closed while waiting, likely bot detection",
                )
            for label in labels:
                control = page.get_by_role("button", name=label, exact=exact)
                if control.is_visible():
                    return label, control
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            page.wait_for_timeout(self._ms(min(self.timeouts.poll_interval, remaining)))

        self._snapshot(page, missing.value)
        raise SessionStepError(
            self.state,
            missing,
            f"{missing_message} (tried {', '.join(labels)} for {timeout:g}s)",
        )

    def _advance(self, new_state: SessionState) -> None:
        if _ORDER.index(new_state) != _ORDER.index(self.state) + 1:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {new_state.value}")
        logger.debug("%s: %s -> %s", self.artifact_path.name, self.state.value, new_state.value)
        self.state = new_state

    def _fail(
        self,
        page: Optional[Page],
        state: SessionState,
        reason: FailureReason,
        message: str,
    ) -> TranslationFailure:
        logger.error("Translation error at %s (%s): %s", state.value, reason.value, message)
        if page is not None and not page.is_closed():
            self._snapshot(page, "99-error")
        self.state = SessionState.FAILED
        return TranslationFailure(
            index=self.index,
            source_path=self.artifact_path,
            state=state,
            reason=reason,
            message=message,
        )

    def _snapshot(self, page: Page, step: str) -> None:
        """Save a full-page screenshot in debug mode only."""

        if not self.debug:
            return
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            path = self.screenshot_dir / f"{step}-{int(time.time() * 1000)}.png"
            page.screenshot(path=str(path), full_page=True)
            logger.info("Screenshot saved: %s", path)
        except (PlaywrightError, OSError) as exc:
            logger.error("Failed to save screenshot: %s", exc)

    @staticmethod
    def _ms(seconds: float) -> float:
        return seconds * 1000
