# src/orbita_market/services/download.py
"""HTTP transport for package archives."""

import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from orbita_market.errors import DownloadFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
STREAM_CHUNK_SIZE = 64 * 1024


class Downloader:
    """
    Streams a URL to a local file.

    Plain GET, no retries. Any non-2xx status and any transport error
    (connect, timeout, protocol) surfaces as DownloadFailed.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    def download(self, url: str, dest: Union[str, Path]) -> bool:
        """
        Fetch `url` into `dest`.

        Returns:
            False when `url` is empty (nothing to fetch), True otherwise
        """
        if not url:
            logger.debug("No download URL, skipping fetch")
            return False

        logger.info(f"Downloading {url}")
        try:
            with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadFailed(url, status_code=response.status_code)
                with open(dest, "wb") as out:
                    for chunk in response.iter_bytes(STREAM_CHUNK_SIZE):
                        out.write(chunk)
        except httpx.HTTPError as e:
            raise DownloadFailed(url, detail=str(e)) from e

        return True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
