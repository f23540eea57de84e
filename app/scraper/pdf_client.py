from __future__ import annotations

import os
import time
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from . import config
from .error_codes import ErrorCode
from .logging_utils import _scraper_event
from .retry_policy import compute_backoff_seconds, decide_retry
from .utils import log_line

MIN_PDF_BYTES = 1024


@dataclass
class PdfDownloadResult:
    ok: bool
    status_code: Optional[int]
    bytes_written: int
    path: Path


class DownloadError(Exception):
    def __init__(self, error_code: str, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


def _classify_http_status(status: Optional[int]) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 404:
        return ErrorCode.HTTP_404
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


def _validate_pdf_bytes(data: bytes) -> None:
    if not data.startswith(b"%PDF"):
        raise DownloadError(ErrorCode.MALFORMED_PDF, "Response is not a PDF")


def build_http_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(config.COMMON_HEADERS)
    return session


def download_pdf(
    url: str,
    dest_path: Path,
    *,
    session: Optional[requests.Session] = None,
    max_retries: Optional[int] = None,
    timeout: Optional[int] = None,
    token: Optional[str] = None,
) -> PdfDownloadResult:
    """Stream the PDF at ``url`` into ``dest_path`` with retries.

    The body is written to a ``.part`` file and moved into place only once it
    has been validated, so an interrupted download never leaves a partial PDF
    under the final name.
    """

    http = session or build_http_session()
    attempts = max(1, max_retries if max_retries is not None else config.DOWNLOAD_RETRIES)
    wait = timeout if timeout is not None else config.DOWNLOAD_TIMEOUT_S

    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    part_path = dest_path.with_name(dest_path.name + ".part")

    safe_url = _redact_url(url)
    label = token or safe_url
    last_error_message: Optional[str] = None
    last_status: Optional[int] = None
    error_code: Optional[str] = None

    for attempt in range(1, attempts + 1):
        status: Optional[int] = None
        try:
            with http.get(url, stream=True, timeout=wait) as resp:
                status = resp.status_code
                resp.raise_for_status()
                first_chunk = True
                with part_path.open("wb") as handle:
                    for chunk in resp.iter_content(chunk_size=8192):
                        if not chunk:
                            continue
                        if first_chunk:
                            _validate_pdf_bytes(chunk)
                            first_chunk = False
                        handle.write(chunk)

            if first_chunk:
                raise DownloadError(ErrorCode.MALFORMED_PDF, "Empty response body")
            file_size = part_path.stat().st_size
            if file_size < MIN_PDF_BYTES:
                raise DownloadError(ErrorCode.MALFORMED_PDF, "PDF appears truncated")

            os.replace(part_path, dest_path)
            _scraper_event(
                "pdf",
                phase="download",
                token=label,
                status="ok",
                http_status=status,
                bytes=file_size,
            )
            return PdfDownloadResult(True, status, file_size, dest_path)

        except DownloadError as exc:
            last_error_message = str(exc)
            status = status or exc.http_status
            error_code = exc.error_code
        except (requests.Timeout, requests.ConnectionError) as exc:
            last_error_message = str(exc)
            error_code = ErrorCode.NETWORK
        except requests.HTTPError as exc:
            last_error_message = str(exc)
            status = getattr(exc.response, "status_code", status)
            error_code = _classify_http_status(status)

        last_status = status
        should_retry = decide_retry(
            attempt_index=attempt,
            max_attempts=attempts,
            error_code=error_code,
            http_status=status,
        )
        part_path.unlink(missing_ok=True)
        backoff = compute_backoff_seconds(attempt)
        _scraper_event(
            "state",
            phase="download_retry",
            token=label,
            attempt=attempt,
            max_attempts=attempts,
            error_code=error_code,
            http_status=status,
            will_retry=should_retry,
            backoff_seconds=backoff if should_retry else None,
            error_message=last_error_message,
        )
        log_line(f"[PDF] Download attempt {attempt} for {safe_url} failed: {last_error_message}")

        if not should_retry:
            break
        time.sleep(backoff)

    raise DownloadError(
        error_code or ErrorCode.INTERNAL,
        last_error_message or "download failed",
        http_status=last_status,
    )


__all__ = [
    "PdfDownloadResult",
    "download_pdf",
    "build_http_session",
    "DownloadError",
    "MIN_PDF_BYTES",
]
