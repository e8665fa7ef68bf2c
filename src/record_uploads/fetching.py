"""HTTP fetching of remote files for import."""

from __future__ import annotations

import logging

import httpx

from record_uploads.errors import FetchError
from record_uploads.interfaces import FetchResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "record-uploads/0.1"


class HttpxFetcher:
    """HttpFetcher implementation backed by httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            client: Client to send requests with. A short-lived client is
                created per request when omitted.
            timeout_seconds: Timeout for requests sent with an internal client
            user_agent: User-Agent header sent with every request
        """
        self._client = client
        self._timeout = httpx.Timeout(timeout_seconds)
        self._headers = {"User-Agent": user_agent}

    async def get(self, url: str) -> FetchResponse:
        """
        Download ``url``, following redirects.

        Non-2xx responses are returned as-is; callers decide how to treat them.

        Raises:
            FetchError: If the request cannot be sent or the URL is invalid
        """
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, headers=self._headers, follow_redirects=True
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(
                        url, headers=self._headers, follow_redirects=True
                    )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Fetching {url} failed: {e}")
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e

        logger.debug(f"Fetched {url}: HTTP {response.status_code}")
        return FetchResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )
