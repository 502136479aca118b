"""HTTP network executor built on httpx."""

from __future__ import annotations

import logging
from typing import Any

from offline_sync.errors import NetworkError
from offline_sync.types import ExecutorResponse, HttpMethod

logger = logging.getLogger(__name__)

# Statuses meaning the server's copy changed since the client last saw it
CONFLICT_STATUSES = frozenset({409, 412})


class HttpxExecutor:
    """Network executor sending queued requests with ``httpx.AsyncClient``.

    A forced retry (client-wins conflict resolution) drops any ``If-Match``
    header and adds ``force_header`` so the server overwrites its copy.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        force_header: tuple[str, str] = ("X-Force-Write", "true"),
        client: Any = None,  # httpx.AsyncClient
    ) -> None:
        import httpx

        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )
        self._force_header = force_header

    async def __call__(
        self,
        method: HttpMethod,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        *,
        force: bool = False,
    ) -> ExecutorResponse:
        """Send one request and classify the response."""
        import httpx

        request_headers = dict(headers or {})
        if force:
            request_headers = {
                k: v for k, v in request_headers.items() if k.lower() != "if-match"
            }
            name, value = self._force_header
            request_headers[name] = value

        kwargs: dict[str, Any] = {"headers": request_headers}
        if isinstance(body, (bytes, str)):
            kwargs["content"] = body
        elif body is not None:
            kwargs["json"] = body

        try:
            response = await self._client.request(
                HttpMethod(method).value, url, **kwargs
            )
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"{HttpMethod(method).value} {url} failed: {exc}"
            ) from exc

        payload = _decode(response)
        if response.is_success:
            return ExecutorResponse(
                success=True, body=payload, status_code=response.status_code
            )
        return ExecutorResponse(
            success=False,
            body=payload,
            error=f"HTTP {response.status_code}",
            conflict=response.status_code in CONFLICT_STATUSES,
            status_code=response.status_code,
        )

    async def fetch(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """GET ``url`` and return the decoded body, for use as a cache fetcher."""
        response = await self(HttpMethod.GET, url, headers)
        if not response.success:
            raise NetworkError(
                response.error or "Request failed", status_code=response.status_code
            )
        return response.body

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _decode(response: Any) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        logger.debug("Non-JSON response body from %s", response.request.url)
        return response.text
