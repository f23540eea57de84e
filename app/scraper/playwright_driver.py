# app/scraper/playwright_driver.py
from typing import Any, Optional

from playwright.sync_api import Error as PWError
from playwright.sync_api import TimeoutError as PWTimeout
from playwright.sync_api import sync_playwright

from . import config
from .errors import DriverUnavailable, NavigationTimeout, StructuralChange
from .utils import log_line

_CLOSED_MARKERS = ("Target closed", "has been closed", "Browser closed", "Connection closed")


def _is_closed_error(exc: BaseException) -> bool:
    text = str(exc)
    return any(marker in text for marker in _CLOSED_MARKERS)


class PlaywrightDriver:
    """Chromium page driven through Playwright's sync API.

    Playwright objects are bound to the thread that started them, so each
    instance must be opened and used from a single worker thread.
    """

    def __init__(self, headless: Optional[bool] = None) -> None:
        self._pw = None
        self._browser = None
        self._context = None
        self.page = None
        self._headless = config.HEADLESS if headless is None else headless

    def open(self) -> "PlaywrightDriver":
        try:
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(headless=self._headless)
            self._context = self._browser.new_context(
                user_agent=config.USER_AGENT,
                locale="en-US",
                viewport={"width": 1920, "height": 1080},
            )
            self.page = self._context.new_page()
        except PWError as exc:
            self.close()
            raise DriverUnavailable(f"Playwright launch failed: {exc}") from exc
        return self

    def _translate(self, exc: BaseException, what: str) -> Exception:
        if isinstance(exc, PWTimeout):
            return NavigationTimeout(f"{what}: {exc}")
        if _is_closed_error(exc):
            return DriverUnavailable(f"{what}: {exc}")
        return StructuralChange(f"{what}: {exc}")

    def navigate(self, url: str) -> None:
        try:
            self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=config.NAV_TIMEOUT_SECONDS * 1000,
            )
        except PWError as exc:
            raise self._translate(exc, f"goto {url}") from exc

    def wait_for(self, selector: str, timeout: float) -> bool:
        try:
            self.page.wait_for_selector(selector, state="attached", timeout=timeout * 1000)
            return True
        except PWTimeout:
            return False
        except PWError as exc:
            raise self._translate(exc, f"wait_for {selector}") from exc

    def select_option(self, control: str, value: str) -> None:
        try:
            self.page.select_option(control, value, timeout=config.CLICK_TIMEOUT_SECONDS * 1000)
        except PWError as exc:
            raise self._translate(exc, f"select {control}={value}") from exc

    def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return self.page.evaluate(script, arg)
        except PWError as exc:
            raise self._translate(exc, "evaluate") from exc

    def click(self, selector: str, index: int = 0) -> None:
        try:
            self.page.locator(selector).nth(index).click(
                timeout=config.CLICK_TIMEOUT_SECONDS * 1000
            )
        except PWError as exc:
            raise self._translate(exc, f"click {selector}[{index}]") from exc

    def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except PWError as exc:
                log_line(f"[DRIVER] Ignoring Playwright close error: {exc}")
        if self._pw is not None:
            try:
                self._pw.stop()
            except PWError as exc:
                log_line(f"[DRIVER] Ignoring Playwright stop error: {exc}")
        self._context = self._browser = self._pw = None
        self.page = None


def open_playwright_driver() -> PlaywrightDriver:
    return PlaywrightDriver().open()


__all__ = ["PlaywrightDriver", "open_playwright_driver"]
