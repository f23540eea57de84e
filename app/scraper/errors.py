"""Exception taxonomy for the crawl-and-extract pipeline.

Each class carries a stable ``error_code`` from :class:`ErrorCode`. Where an
exception is absorbed:

- ``MissingField``: inside field resolution, replaced by the sentinel value.
- ``NavigationTimeout`` / ``StructuralChange``: at the item level; the item is
  marked failed and the partition run continues.
- ``PersistenceFailure``: aborts the current partition run.
- ``DriverUnavailable``: aborts the run; the orchestrator may restart it.
"""
from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode


class ScraperError(Exception):
    error_code: str = ErrorCode.INTERNAL
    retryable: bool = False

    def __init__(self, message: str, *, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class NavigationTimeout(ScraperError):
    """The driver never reached the expected state within its timeout."""

    error_code = ErrorCode.NAVIGATION_TIMEOUT
    retryable = True


class MissingField(ScraperError):
    error_code = ErrorCode.MISSING_FIELD

    def __init__(self, field_name: str, lookup: str) -> None:
        super().__init__(f"{field_name}: {lookup} not found")
        self.field_name = field_name
        self.lookup = lookup


class StructuralChange(ScraperError):
    """An expected container or control was never found at all."""

    error_code = ErrorCode.SITE_STRUCTURE


class PersistenceFailure(ScraperError):
    error_code = ErrorCode.PERSISTENCE


class DriverUnavailable(ScraperError):
    """No driver session could be obtained, or the browser went away."""

    error_code = ErrorCode.DRIVER_UNAVAILABLE


__all__ = [
    "ScraperError",
    "NavigationTimeout",
    "MissingField",
    "StructuralChange",
    "PersistenceFailure",
    "DriverUnavailable",
]
