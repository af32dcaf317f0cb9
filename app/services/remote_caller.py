"""
Single-attempt outbound HTTP calls with an overall deadline.
Used by the token cache and every action dispatcher. The shared caller keeps one
pooled httpx client for the life of the process.
"""

import asyncio

import httpx

from app.infrastructure.observability.logging import get_logger
from app.models.domain.proxy_domain import CallResult
from app.services.errors import TransportError, TransportTimeoutError

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds


class RemoteCaller:
    """
    Performs exactly one request per call and returns the raw status and body.

    Status codes are never interpreted here. When the deadline passes, the
    in-flight request is cancelled and TransportTimeoutError is raised.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client
        self._owns_client = client is None

    def _create_client(self) -> httpx.AsyncClient:
        """Create the pooled async HTTP client shared by every call."""
        timeout = httpx.Timeout(DEFAULT_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    async def close(self) -> None:
        """Close the pooled client if this caller created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def do(
        self,
        base_url: str,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> CallResult:
        """
        Issue ``method`` against ``base_url + path``.

        Args:
            base_url: Scheme and host, e.g. https://graph.microsoft.com
            method: HTTP verb
            path: Already-encoded path and query string
            headers: Request headers
            body: Raw request body
            timeout: Overall deadline in seconds

        Returns:
            CallResult: status, fully-read body and response headers

        Raises:
            TransportTimeoutError: the deadline expired
            TransportError: any other network failure
        """
        url = base_url.rstrip("/") + path

        try:
            return await asyncio.wait_for(
                self._send(method, url, headers or {}, body, timeout), timeout=timeout
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Remote call timed out", method=method, url=url, timeout_s=timeout)
            raise TransportTimeoutError(
                f"Request to {base_url} timed out after {timeout:g}s",
                details={"url": url},
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                "Remote call transport error",
                method=method,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(
                f"Request to {base_url} failed: {type(e).__name__}: {e}",
                details={"url": url},
            ) from e

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout: float,
    ) -> CallResult:
        response = await self._get_client().request(
            method, url, headers=headers, content=body, timeout=timeout
        )

        return CallResult(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )


# Shared instance for application use
remote_caller = RemoteCaller()
