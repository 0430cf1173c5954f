"""Forwarding of gateway requests to an upstream service over httpx."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import httpx

# RFC 7230 section 6.1, plus headers httpx recomputes for the re-encoded body.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


class UpstreamError(Exception):
    """Base class for failures reaching the upstream service."""


class UpstreamUnavailable(UpstreamError):
    pass


class UpstreamTimeout(UpstreamError):
    pass


def end_to_end_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop hop-by-hop headers, keeping repeated end-to-end ones in order."""
    return [(name, value) for name, value in headers if name.lower() not in HOP_BY_HOP_HEADERS]


class UpstreamProxy:
    """Relay requests to one upstream base URL."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            follow_redirects=False,
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def forward(
        self,
        method: str,
        path: str,
        *,
        query: str = "",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] = (),
        body: bytes = b"",
    ) -> httpx.Response:
        """Send one request upstream and return the buffered response.

        Raises
        ------
        UpstreamTimeout
            When the upstream does not answer within the configured timeout.
        UpstreamUnavailable
            For any other transport failure (refused connection, DNS, reset).
        """
        items = headers.items() if isinstance(headers, Mapping) else headers
        url = "/" + path.lstrip("/")
        if query:
            url = f"{url}?{query}"
        try:
            return await self._client.request(
                method,
                url,
                headers=end_to_end_headers(items),
                content=body or None,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"upstream timed out for {method} {url}") from exc
        except httpx.RequestError as exc:
            raise UpstreamUnavailable(f"upstream request failed for {method} {url}") from exc
