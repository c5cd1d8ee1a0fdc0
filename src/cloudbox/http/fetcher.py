"""HTTP client that streams remote blobs to local files."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_USER_AGENT = "cloudbox-worker/0.1"
CHUNK_SIZE = 64 * 1024


class FetchError(RuntimeError):
    """Remote resource could not be downloaded."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class HttpFetcher:
    """HTTP client wrapper with retry, timeout, and user-agent configuration."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._client = httpx.Client(
            timeout=self._timeout,
            headers={"User-Agent": user_agent},
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    def download(self, url: str, destination: Path) -> int:
        """Stream ``url`` into ``destination`` and return the byte count."""

        written = 0
        try:
            with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchError(
                        f"HTTP {response.status_code} fetching {url}",
                        url=url,
                        status_code=response.status_code,
                    )
                destination.parent.mkdir(parents=True, exist_ok=True)
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        handle.write(chunk)
                        written += len(chunk)
        except httpx.TimeoutException as error:
            logger.warning("Timeout fetching %s", url)
            raise FetchError(f"Timeout fetching {url}", url=url) from error
        except httpx.HTTPError as error:
            logger.warning("HTTP error fetching %s: %s", url, error)
            raise FetchError(f"HTTP error fetching {url}: {error}", url=url) from error
        except httpx.InvalidURL as error:
            logger.warning("Invalid URL %r: %s", url, error)
            raise FetchError(f"Invalid URL {url!r}: {error}", url=url) from error
        logger.info("Downloaded %s -> %s (%d bytes)", url, destination, written)
        return written

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
