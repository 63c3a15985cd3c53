"""Browser engine handle shared by translation sessions."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from playwright.sync_api import Browser, BrowserContext, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--window-size=1920,1080",
    "--start-maximized",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--hide-scrollbars",
    "--mute-audio",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)

# Masks the properties sites commonly probe to spot automated browsers.
FINGERPRINT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', {
  get: () => [
    { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
    { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' },
    { name: 'Native Client', filename: 'internal-nacl-plugin', description: '' }
  ],
});
Object.defineProperty(navigator, 'languages', { get: () => __LANGUAGES__ });
if (!window.chrome) { window.chrome = {}; }
window.chrome.runtime = { connect: () => {}, sendMessage: () => {} };
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) => (
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters)
);
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
delete navigator.__proto__.webdriver;
"""


@dataclass(frozen=True)
class BrowserOptions:
    """Launch and context settings for the shared browser."""

    headless: bool = True
    slow_mo_ms: int = 0
    locale: str = "es-ES"
    timezone_id: str = "America/Mexico_City"
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080

    @property
    def accept_language(self) -> str:
        language = self.locale.split("-")[0]
        if language == "en":
            return f"{self.locale},en;q=0.9"
        return f"{self.locale},{language};q=0.9,en;q=0.8"

    @property
    def navigator_languages(self) -> list[str]:
        language = self.locale.split("-")[0]
        languages = [self.locale, language, "en-US", "en"]
        return list(dict.fromkeys(languages))


PlaywrightStarter = Callable[[], Playwright]


def _start_playwright() -> Playwright:
    return sync_playwright().start()


class BrowserSupervisor:
    """Owns the process-wide browser and tracks whether it is still usable.

    The browser is launched lazily by ``ensure_live`` and torn down by
    ``invalidate``; both are idempotent. Sessions never share a context: each
    one asks for its own via ``new_context``.
    """

    def __init__(
        self,
        options: Optional[BrowserOptions] = None,
        *,
        starter: PlaywrightStarter = _start_playwright,
    ) -> None:
        self.options = options or BrowserOptions()
        self._starter = starter
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = threading.RLock()
        self.launch_count = 0

    @property
    def is_live(self) -> bool:
        with self._lock:
            return self._browser is not None and self._browser.is_connected()

    def ensure_live(self) -> Browser:
        """Return a connected browser, launching one if needed."""

        with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._browser is not None or self._playwright is not None:
                logger.warning("Browser is no longer connected; relaunching.")
                self._teardown()

            mode = "headless" if self.options.headless else "VISIBLE"
            logger.info("Launching browser in %s mode", mode)
            self._playwright = self._starter()
            try:
                self._browser = self._playwright.chromium.launch(
                    headless=self.options.headless,
                    slow_mo=self.options.slow_mo_ms,
                    args=list(LAUNCH_ARGS),
                )
            except PlaywrightError:
                self._teardown()
                raise
            self.launch_count += 1
            logger.info("Browser launched successfully")
            return self._browser

    def new_context(self) -> BrowserContext:
        """Open a fresh isolated context that accepts downloads."""

        browser = self.ensure_live()
        options = self.options
        context = browser.new_context(
            accept_downloads=True,
            viewport={"width": options.viewport_width, "height": options.viewport_height},
            user_agent=options.user_agent,
            locale=options.locale,
            timezone_id=options.timezone_id,
            color_scheme="light",
            extra_http_headers={"Accept-Language": options.accept_language},
        )
        languages = "[" + ", ".join(f"'{code}'" for code in options.navigator_languages) + "]"
        context.add_init_script(script=FINGERPRINT_SCRIPT.replace("__LANGUAGES__", languages))
        return context

    def invalidate(self) -> None:
        """Close the browser so the next ``ensure_live`` starts a new one."""

        with self._lock:
            if self._browser is None and self._playwright is None:
                return
            logger.warning("Closing browser engine; it will be recreated on next use.")
            self._teardown()

    def close(self) -> None:
        with self._lock:
            if self._browser is None and self._playwright is None:
                return
            logger.info("Shutting down browser engine")
            self._teardown()

    def _teardown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                browser.close()
            except PlaywrightError as exc:
                logger.warning("Could not close browser: %s", exc)
        if playwright is not None:
            try:
                playwright.stop()
            except PlaywrightError as exc:
                logger.warning("Could not stop Playwright: %s", exc)

    def __enter__(self) -> "BrowserSupervisor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
