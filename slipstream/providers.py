"""Translation provider abstractions."""

from __future__ import annotations

import logging
import pathlib
import shutil
from abc import ABC, abstractmethod
from typing import Optional

from .engine import BrowserOptions, BrowserSupervisor
from .errors import TranslationProviderConfigurationError
from .session import (
    DEFAULT_TRANSLATE_URL,
    SessionTimeouts,
    TranslationSession,
    translated_path_for,
)
from .structures import (
    FailureReason,
    SessionState,
    TranslationFailure,
    TranslationResult,
    TranslationSuccess,
)

logger = logging.getLogger(__name__)


class TranslationProvider(ABC):
    """Abstract adapter translating one stored artifact at a time."""

    name = "abstract"

    @abstractmethod
    def translate(
        self,
        artifact_path: pathlib.Path,
        *,
        source_language: str,
        target_language: str,
        index: int = 0,
    ) -> TranslationResult:
        """Translate ``artifact_path`` and report the outcome for position ``index``."""

    def reset(self) -> None:
        """Discard shared state that a failure may have compromised."""

    def close(self) -> None:
        """Release long-lived resources."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that copies the artifact unchanged (useful for testing)."""

    name = "echo"

    def translate(
        self,
        artifact_path: pathlib.Path,
        *,
        source_language: str,
        target_language: str,
        index: int = 0,
    ) -> TranslationResult:
        destination = translated_path_for(artifact_path)
        try:
            shutil.copyfile(artifact_path, destination)
        except OSError as exc:
            return TranslationFailure(
                index=index,
                source_path=artifact_path,
                state=SessionState.INIT,
                reason=FailureReason.DOWNLOAD_SAVE_FAILED,
                message=str(exc),
            )
        return TranslationSuccess(
            index=index,
            source_path=artifact_path,
            output_path=destination,
        )


class BrowserTranslationProvider(TranslationProvider):
    """Drives the web document translator, one fresh session per artifact."""

    name = "browser"

    def __init__(
        self,
        *,
        supervisor: Optional[BrowserSupervisor] = None,
        browser_options: Optional[BrowserOptions] = None,
        base_url: str = DEFAULT_TRANSLATE_URL,
        timeouts: Optional[SessionTimeouts] = None,
        debug: bool = False,
        screenshot_dir: Optional[pathlib.Path] = None,
    ) -> None:
        self.supervisor = supervisor or BrowserSupervisor(browser_options)
        self.base_url = base_url
        self.timeouts = timeouts or SessionTimeouts()
        self.debug = debug
        self.screenshot_dir = screenshot_dir

    def translate(
        self,
        artifact_path: pathlib.Path,
        *,
        source_language: str,
        target_language: str,
        index: int = 0,
    ) -> TranslationResult:
        session = TranslationSession(
            self.supervisor,
            artifact_path,
            source_language=source_language,
            target_language=target_language,
            index=index,
            base_url=self.base_url,
            timeouts=self.timeouts,
            debug=self.debug,
            screenshot_dir=self.screenshot_dir,
        )
        return session.run()

    def reset(self) -> None:
        self.supervisor.invalidate()

    def close(self) -> None:
        self.supervisor.close()


def build_provider(
    name: str | None,
    *,
    browser_options: Optional[BrowserOptions] = None,
    base_url: str = DEFAULT_TRANSLATE_URL,
    timeouts: Optional[SessionTimeouts] = None,
    debug: bool = False,
    screenshot_dir: Optional[pathlib.Path] = None,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "browser").strip().lower()
    if normalized in {"browser", "google", "web", "default"}:
        return BrowserTranslationProvider(
            browser_options=browser_options,
            base_url=base_url,
            timeouts=timeouts,
            debug=debug,
            screenshot_dir=screenshot_dir,
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
