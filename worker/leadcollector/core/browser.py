"""Thin wrapper around Playwright's sync API.

One ``BrowserSession`` is opened per collection run and reused for every
navigation. Playwright timeouts and errors are converted into ``PageTimeout``
and ``PageError`` here so the rest of the pipeline never imports Playwright.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from leadcollector.core.config import Settings
from leadcollector.core.errors import PageError, PageTimeout, SetupError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage", "--lang=en-US,en"]


class BrowserPage:
    """One tab. Every method takes an explicit timeout and raises typed errors."""

    def __init__(self, page: Any, *, navigation_timeout_ms: int) -> None:
        self._page = page
        self.navigation_timeout_ms = navigation_timeout_ms

    @property
    def url(self) -> str:
        return self._page.url

    def goto(self, url: str, *, wait_until: str = "domcontentloaded", timeout_ms: Optional[int] = None) -> None:
        timeout = timeout_ms or self.navigation_timeout_ms
        try:
            self._page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Timed out after {timeout}ms loading {url}") from exc
        except PlaywrightError as exc:
            raise PageError(f"Navigation to {url} failed: {exc}") from exc

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        try:
            self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Timed out after {timeout_ms}ms waiting for {selector}") from exc
        except PlaywrightError as exc:
            raise PageError(f"Waiting for {selector} failed: {exc}") from exc

    def click(self, selector: str, *, timeout_ms: int) -> None:
        try:
            self._page.click(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Timed out after {timeout_ms}ms clicking {selector}") from exc
        except PlaywrightError as exc:
            raise PageError(f"Clicking {selector} failed: {exc}") from exc

    def fill(self, selector: str, value: str, *, timeout_ms: int) -> None:
        try:
            self._page.fill(selector, value, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Timed out after {timeout_ms}ms filling {selector}") from exc
        except PlaywrightError as exc:
            raise PageError(f"Filling {selector} failed: {exc}") from exc

    def press(self, selector: str, key: str, *, timeout_ms: int) -> None:
        try:
            self._page.press(selector, key, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Timed out after {timeout_ms}ms pressing {key}") from exc
        except PlaywrightError as exc:
            raise PageError(f"Pressing {key} on {selector} failed: {exc}") from exc

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        try:
            return self._page.evaluate(expression, arg)
        except PlaywrightError as exc:
            raise PageError(f"Script evaluation failed: {exc}") from exc

    def text_of(self, selector: str) -> Optional[str]:
        """Inner text of the first match, or None when nothing matches."""
        try:
            handle = self._page.query_selector(selector)
            return handle.inner_text() if handle else None
        except PlaywrightError as exc:
            raise PageError(f"Reading {selector} failed: {exc}") from exc

    def attribute_of(self, selector: str, name: str) -> Optional[str]:
        try:
            handle = self._page.query_selector(selector)
            return handle.get_attribute(name) if handle else None
        except PlaywrightError as exc:
            raise PageError(f"Reading {selector}[{name}] failed: {exc}") from exc

    def hrefs(self, selector: str) -> List[str]:
        """Resolved ``href`` of every element matching ``selector``, in DOM order."""
        try:
            return self._page.eval_on_selector_all(selector, "nodes => nodes.map(n => n.href)")
        except PlaywrightError as exc:
            raise PageError(f"Reading links for {selector} failed: {exc}") from exc

    def exists(self, selector: str) -> bool:
        try:
            return self._page.query_selector(selector) is not None
        except PlaywrightError as exc:
            raise PageError(f"Querying {selector} failed: {exc}") from exc

    def scroll_to_bottom(self, selector: str) -> None:
        self.evaluate(
            "selector => { const el = document.querySelector(selector); if (el) el.scrollTop = el.scrollHeight; }",
            selector,
        )

    def scroll_height(self, selector: str) -> int:
        value = self.evaluate(
            "selector => { const el = document.querySelector(selector); return el ? el.scrollHeight : 0; }",
            selector,
        )
        return int(value or 0)

    def body_text(self) -> str:
        try:
            return self._page.inner_text("body")
        except PlaywrightError as exc:
            raise PageError(f"Reading page text failed: {exc}") from exc

    def content(self) -> str:
        try:
            return self._page.content()
        except PlaywrightError as exc:
            raise PageError(f"Reading page HTML failed: {exc}") from exc

    def wait(self, milliseconds: int) -> None:
        self._page.wait_for_timeout(milliseconds)


class BrowserSession:
    """A Chromium instance plus one browser context, released by ``close()``."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._playwright = None
        self._browser = None
        self._context = None

    def start(self) -> "BrowserSession":
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self._settings.browser_headless,
                args=BROWSER_ARGS,
            )
            self._context = self._browser.new_context(
                user_agent=USER_AGENT,
                locale="en-US",
                extra_http_headers={"Accept-Language": "en"},
            )
        except Exception as exc:  # noqa: BLE001
            self.close()
            raise SetupError(f"Unable to start the browser: {exc}") from exc
        logger.info("Browser session started (headless=%s)", self._settings.browser_headless)
        return self

    def new_page(self) -> BrowserPage:
        if self._context is None:
            raise SetupError("Browser session is not started")
        try:
            page = self._context.new_page()
        except PlaywrightError as exc:
            raise SetupError(f"Unable to open a browser tab: {exc}") from exc
        page.set_default_navigation_timeout(self._settings.navigation_timeout_ms)
        return BrowserPage(page, navigation_timeout_ms=self._settings.navigation_timeout_ms)

    def close(self) -> None:
        if self._context is not None:
            try:
                self._context.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing browser context: %s", exc)
            self._context = None
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing browser: %s", exc)
            self._browser = None
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Ignoring error while stopping Playwright: %s", exc)
            self._playwright = None

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.close()


def open_browser_session(settings: Settings) -> BrowserSession:
    return BrowserSession(settings).start()
