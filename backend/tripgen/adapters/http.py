"""Shared async JSON-over-HTTP client for external services."""

import logging
from typing import Any

import httpx

from .exceptions import (
    AdapterError,
    AdapterResponseError,
    AdapterTimeoutError,
    AdapterUnavailableError,
)

logger = logging.getLogger(__name__)


class HttpJsonClient:
    """Thin wrapper over ``httpx.AsyncClient`` mapping failures to adapter errors."""

    def __init__(self, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds.
            client: Optional preconfigured client (tests pass a MockTransport).
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Async context manager entry."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client, creating if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            AdapterUnavailableError: If unable to connect.
            AdapterTimeoutError: If the request times out.
            AdapterResponseError: On non-2xx status or a non-JSON body.
        """
        try:
            client = self._get_client()
            response = await client.request(
                method, url, params=params, json=json, headers=headers
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise AdapterTimeoutError(f"Request to {url} timed out: {e}") from e
        except httpx.ConnectError as e:
            raise AdapterUnavailableError(f"Unable to connect to {url}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise AdapterResponseError(
                f"{url} returned error {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except ValueError as e:
            raise AdapterResponseError(f"{url} returned a non-JSON body: {e}") from e
        except httpx.HTTPError as e:
            raise AdapterError(f"Unexpected HTTP error from {url}: {e}") from e

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", url, **kwargs)

    async def post_json(self, url: str, **kwargs: Any) -> Any:
        return await self.request_json("POST", url, **kwargs)

    async def close(self):
        """Close the HTTP client if this wrapper created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
