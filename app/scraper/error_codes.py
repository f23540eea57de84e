from __future__ import annotations

"""Centralised error code taxonomy for pipeline failures.

These codes are persisted on each reference (``last_error_code``) and
included in structured logs so that we can explain why an item failed. The
taxonomy is intentionally small and should stay stable for reporting.
"""


class ErrorCode:
    NAVIGATION_TIMEOUT = "navigation_timeout"
    SITE_STRUCTURE = "site_structure_changed"
    MISSING_FIELD = "missing_field"
    PERSISTENCE = "persistence_failure"
    DRIVER_UNAVAILABLE = "driver_unavailable"
    INVALID_REFERENCE = "invalid_reference"
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_404 = "http_404_not_found"
    HTTP_5XX = "http_5xx"
    MALFORMED_PDF = "malformed_pdf"
    INTERNAL = "internal_error"


__all__ = ["ErrorCode"]
