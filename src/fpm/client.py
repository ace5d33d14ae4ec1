from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO

import httpx

from .config import DEFAULT_TIMEOUT_S

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class FpmError(RuntimeError):
    pass


@dataclass(frozen=True)
class FpmHTTPError(FpmError):
    status_code: int
    url: str

    def __str__(self) -> str:  # pragma: no cover
        return f"HTTP {self.status_code} for {self.url}"


class FpmClient:
    """
    Thin HTTP transport for manifests and component archives.

    Every call is a plain GET with a fixed timeout. Transport failures are wrapped
    into FpmError and non-success statuses into FpmHTTPError.
    """

    def __init__(self, *, timeout_s: float = DEFAULT_TIMEOUT_S, default_headers: dict[str, str] | None = None) -> None:
        self.timeout_s = timeout_s
        self._http = httpx.Client(timeout=timeout_s, follow_redirects=True, headers=dict(default_headers or {}))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FpmClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_bytes(self, url: str) -> bytes:
        logger.debug("GET %s", url)
        try:
            resp = self._http.get(url)
        except httpx.HTTPError as e:
            raise FpmError(f"Request failed: {e}") from e
        if not resp.is_success:
            raise FpmHTTPError(resp.status_code, url)
        return resp.content

    def download_to(self, url: str, out: BinaryIO) -> int:
        """Stream the body of ``url`` into ``out`` and return the number of bytes written."""
        logger.debug("GET %s (streaming)", url)
        written = 0
        try:
            with self._http.stream("GET", url) as resp:
                status_code = resp.status_code
                ok = resp.is_success
                if ok:
                    for chunk in resp.iter_bytes(chunk_size=_CHUNK_SIZE):
                        out.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            raise FpmError(f"Download failed: {e}") from e
        # Raised outside the stream context: its generator __exit__ rewrites __traceback__.
        if not ok:
            raise FpmHTTPError(status_code, url)
        logger.debug("Downloaded %d bytes from %s", written, url)
        return written
