"""HTTP client for downloading uploaded media.

Fetches raw bytes for images attached to a report so they can be sent inline
to a vision model. No analysis logic lives here.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests import Session
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)


class MediaFetchError(Exception):
    """Media could not be downloaded."""


class MediaClient:
    """Downloads media files over HTTP(S).

    Args:
        request_timeout: HTTP timeout in seconds.
        max_bytes: Largest body accepted; larger downloads are rejected.
        max_retries: Connection-level retries handled by the adapter.
    """

    def __init__(
        self,
        request_timeout: int = 15,
        max_bytes: int = 10 * 1024 * 1024,
        max_retries: int = 1,
    ) -> None:
        self.request_timeout = request_timeout
        self.max_bytes = max_bytes

        self._session = Session()
        adapter = HTTPAdapter(max_retries=max_retries)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def fetch_bytes(self, url: str) -> bytes:
        """Download ``url`` and return its body.

        Raises:
            MediaFetchError: On timeout, connection failure, non-200 status, or
                a body larger than max_bytes.
        """
        try:
            resp = self._session.get(url, timeout=self.request_timeout, stream=True)
        except requests.exceptions.Timeout as exc:
            raise MediaFetchError(f"timed out fetching {url}") from exc
        except requests.exceptions.RequestException as exc:
            raise MediaFetchError(f"failed to fetch {url}: {exc}") from exc

        try:
            if resp.status_code != 200:
                raise MediaFetchError(f"HTTP {resp.status_code} fetching {url}")

            chunks = []
            total = 0
            for chunk in resp.iter_content(chunk_size=65536):
                total += len(chunk)
                if total > self.max_bytes:
                    raise MediaFetchError(
                        f"{url} exceeds the {self.max_bytes}-byte media limit"
                    )
                chunks.append(chunk)
        except requests.exceptions.RequestException as exc:
            raise MediaFetchError(f"failed reading {url}: {exc}") from exc
        finally:
            resp.close()

        logger.debug("Fetched %d bytes from %s", total, url)
        return b"".join(chunks)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "MediaClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
