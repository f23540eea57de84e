"""Minimal page-driver surface used by the crawl and extract phases.

Both browser backends (Playwright and Selenium) are wrapped to the same five
operations. All DOM reading goes through :func:`snapshot`, which parses the
current document with BeautifulSoup, so the walkers never hold live element
handles across a page update.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Optional, Protocol, TypeVar

from bs4 import BeautifulSoup

from . import config
from .errors import NavigationTimeout

OUTER_HTML_SCRIPT = "() => document.documentElement.outerHTML"

T = TypeVar("T")


class PageDriver(Protocol):
    def navigate(self, url: str) -> None:
        """Load ``url``; raise ``NavigationTimeout`` if it never settles."""

    def wait_for(self, selector: str, timeout: float) -> bool:
        """Return ``True`` once ``selector`` matches, ``False`` on timeout."""

    def select_option(self, control: str, value: str) -> None:
        ...

    def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a ``(arg) => ...`` function in the page and return its result."""

    def click(self, selector: str, index: int = 0) -> None:
        ...

    def close(self) -> None:
        ...


def snapshot(driver: PageDriver) -> BeautifulSoup:
    """Return a parsed copy of the current document."""

    html = driver.evaluate(OUTER_HTML_SCRIPT) or ""
    return BeautifulSoup(html, "html5lib")


def wait_until(
    predicate: Callable[[], Optional[T]],
    *,
    timeout: float,
    interval: Optional[float] = None,
    label: str = "condition",
) -> T:
    """Poll ``predicate`` until it returns a truthy value.

    Raises ``NavigationTimeout`` once ``timeout`` seconds have passed without
    the predicate holding.
    """

    step = config.POLL_INTERVAL_SECONDS if interval is None else interval
    deadline = time.monotonic() + max(0.0, timeout)
    while True:
        result = predicate()
        if result:
            return result
        if time.monotonic() >= deadline:
            raise NavigationTimeout(f"Timed out after {timeout:.1f}s waiting for {label}")
        time.sleep(step)


def settle(seconds: Optional[float] = None) -> None:
    """Give a dynamic update time to start before polling for it."""

    delay = config.SETTLE_SECONDS if seconds is None else seconds
    if delay > 0:
        time.sleep(delay)


__all__ = ["OUTER_HTML_SCRIPT", "PageDriver", "snapshot", "wait_until", "settle"]
