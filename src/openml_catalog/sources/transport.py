"""HTTP transport used by the catalog client and as the artifact fetcher.

The rest of the package only relies on the ``Transport`` protocol:
``fetch(url) -> bytes``, raising ``NetworkError`` on any failure. Timeouts
are enforced here (httpx), not by the client or the cache.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

import httpx
from tqdm import tqdm

from openml_catalog import __version__
from openml_catalog.core.config import DEFAULT_TIMEOUT_SEC, DOWNLOAD_CHUNK_SIZE
from openml_catalog.core.errors import NetworkError


logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Capability consumed by the client: GET a URL and return the body."""

    def fetch(self, url: str) -> bytes:  # pragma: no cover - protocol
        ...


class HttpTransport:
    """``httpx``-backed transport streaming response bodies in chunks.

    Args:
        timeout_sec: Per-request timeout.
        show_progress: Show a tqdm progress bar while streaming.
        client: Optional preconfigured ``httpx.Client`` (tests pass one built
            on ``httpx.MockTransport``). The transport closes only clients it
            created itself.
    """

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        show_progress: bool = False,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers: Dict[str, str] = {
            "User-Agent": f"openml-catalog-tools/{__version__}",
            "Accept": "*/*",
        }
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout_sec, follow_redirects=True, headers=headers
        )
        self.show_progress = show_progress

    def fetch(self, url: str) -> bytes:
        """GET ``url`` and return the full body.

        Raises:
            NetworkError: On connection/timeout failures or non-2xx responses.
                For HTTP errors ``status_code`` and ``body`` are populated.
        """
        logger.debug("GET %s", url)
        try:
            with self._client.stream("GET", url) as r:
                if r.status_code >= 400:
                    body = r.read()
                    raise NetworkError(
                        f"HTTP {r.status_code} for {url}",
                        url=url,
                        status_code=r.status_code,
                        body=body,
                    )
                total = r.headers.get("Content-Length")
                chunks = []
                with tqdm(
                    total=int(total) if total and total.isdigit() else None,
                    unit="B",
                    unit_scale=True,
                    desc=url.rsplit("/", 1)[-1][:40],
                    disable=not self.show_progress,
                    leave=False,
                ) as bar:
                    for chunk in r.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            chunks.append(chunk)
                            bar.update(len(chunk))
        except httpx.HTTPError as e:
            logger.error("Request failed %s: %s", url, e)
            raise NetworkError(f"Request failed for {url}: {e}", url=url) from e
        data = b"".join(chunks)
        logger.debug("Received %d bytes from %s", len(data), url)
        return data

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


__all__ = ["Transport", "HttpTransport"]
