from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from . import config
from .driver import PageDriver
from .errors import DriverUnavailable, ScraperError
from .logging_utils import _scraper_event, _short_error_message
from .models import SelectionPath

DriverFactory = Callable[[], PageDriver]


@dataclass
class SessionState:
    """Which hierarchy selection the session's page currently shows.

    ``on_search_page`` is set once the catalog root has loaded, before any
    year is selected.
    """

    year: Optional[str] = None
    volume: Optional[str] = None
    part: Optional[str] = None
    on_search_page: bool = False

    def matches(self, path: SelectionPath) -> bool:
        return (self.year, self.volume, self.part) == (path.year, path.volume, path.part)

    def record(self, path: SelectionPath) -> None:
        self.year, self.volume, self.part = path.year, path.volume, path.part

    def reset(self) -> None:
        self.year = self.volume = self.part = None
        self.on_search_page = False


class DriverSession:
    """A driver plus its selection state, owned by exactly one thread.

    Touching ``driver`` from any other thread raises ``RuntimeError``; the
    browser backends are not safe to share.
    """

    def __init__(self, driver: PageDriver, *, name: str = "session") -> None:
        self._driver = driver
        self._owner = threading.get_ident()
        self.name = name
        self.state = SessionState()

    @property
    def driver(self) -> PageDriver:
        if threading.get_ident() != self._owner:
            raise RuntimeError(f"{self.name} is owned by another thread")
        return self._driver

    def close(self) -> None:
        try:
            self._driver.close()
        except Exception as exc:  # noqa: BLE001
            _scraper_event(
                "session",
                action="close_failed",
                session=self.name,
                error=_short_error_message(exc),
            )


class SessionPool:
    """Caps how many browser sessions exist at once.

    ``acquire`` builds the driver in the calling thread and closes it on
    exit, so a session never outlives or leaves its worker.
    """

    def __init__(self, factory: DriverFactory, size: Optional[int] = None) -> None:
        self._factory = factory
        self.size = max(1, size if size is not None else config.MAX_DRIVER_SESSIONS)
        self._slots = threading.BoundedSemaphore(self.size)
        self._lock = threading.Lock()
        self._counter = 0
        self._active = 0
        self._peak_active = 0

    @contextmanager
    def acquire(self, timeout: Optional[float] = None) -> Iterator[DriverSession]:
        wait = config.SESSION_ACQUIRE_TIMEOUT_SECONDS if timeout is None else timeout
        if not self._slots.acquire(timeout=wait):
            _scraper_event("session", action="acquire_timeout", pool_size=self.size, waited=wait)
            raise DriverUnavailable(f"No driver session free after {wait:.0f}s")

        try:
            with self._lock:
                self._counter += 1
                name = f"session-{self._counter}"
            try:
                driver = self._factory()
            except ScraperError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise DriverUnavailable(
                    f"Driver factory failed: {_short_error_message(exc)}"
                ) from exc

            session = DriverSession(driver, name=name)
            with self._lock:
                self._active += 1
                self._peak_active = max(self._peak_active, self._active)
            _scraper_event("session", action="opened", session=name, active=self._active)
            try:
                yield session
            finally:
                session.close()
                with self._lock:
                    self._active -= 1
                _scraper_event("session", action="closed", session=name)
        finally:
            self._slots.release()

    @property
    def peak_active(self) -> int:
        with self._lock:
            return self._peak_active


def driver_factory(backend: Optional[str] = None) -> DriverFactory:
    """Return a zero-argument callable that opens a driver for ``backend``."""

    name = (backend or config.DRIVER_BACKEND).strip().lower()
    if name == "playwright":
        from .playwright_driver import open_playwright_driver

        return open_playwright_driver
    if name == "selenium":
        from .selenium_client import open_selenium_driver

        return open_selenium_driver
    raise ValueError(f"Unknown driver backend: {backend!r}")


__all__ = ["SessionState", "DriverSession", "SessionPool", "driver_factory", "DriverFactory"]
