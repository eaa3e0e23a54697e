"""HTTP utilities for fetching content with retry logic and connection pooling."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Final

import httpx

from papers.config import (
    PAPERS_FETCH_BACKOFF_S,
    PAPERS_FETCH_MAX_RETRIES,
    PAPERS_FETCH_TIMEOUT_S,
    PAPERS_USER_AGENT,
)
from papers.exceptions import ApiError, FetchError, NotFoundError

RETRY_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

_MAX_REDIRECTS: Final[int] = 5


def new_async_client(
    *,
    headers: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient with the project's timeout, user agent and redirect policy."""
    merged = {"User-Agent": PAPERS_USER_AGENT}
    merged.update(headers or {})
    return httpx.AsyncClient(
        timeout=httpx.Timeout(PAPERS_FETCH_TIMEOUT_S),
        headers=merged,
        follow_redirects=True,
        max_redirects=_MAX_REDIRECTS,
        transport=transport,
    )


def raise_for_api_status(response: httpx.Response) -> None:
    """Raise ApiError (or NotFoundError on 404) for a non-success response.

    The response body must already be read.
    """
    if response.is_success:
        return
    if response.status_code == 404:
        raise NotFoundError(response.status_code, response.text)
    raise ApiError(response.status_code, response.text)


async def fetch_with_retries(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    params: Mapping[str, str] | None = None,
    headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    """GET a URL, retrying transient failures with exponential backoff.

    Only idempotent requests should go through here. Status codes in
    RETRY_STATUS_CODES and transport errors are retried; other failures are
    raised immediately.

    Args:
        url: The URL to fetch.
        client: Optional httpx.AsyncClient for connection pooling. If not
            provided, a new client is created for this request.
        params: Query parameters.
        headers: Extra request headers.

    Returns:
        The successful response with its body read.

    Raises:
        NotFoundError: On HTTP 404.
        ApiError: On any other non-success status once retries are spent.
        FetchError: If the request keeps failing at the transport level.
    """

    async def do_fetch(http_client: httpx.AsyncClient) -> httpx.Response:
        last_exc: Exception | None = None
        last_response: httpx.Response | None = None

        for attempt in range(PAPERS_FETCH_MAX_RETRIES + 1):
            try:
                response = await http_client.get(url, params=params, headers=headers)
            except httpx.RequestError as exc:
                last_exc = exc
                last_response = None
            else:
                if response.status_code not in RETRY_STATUS_CODES:
                    raise_for_api_status(response)
                    return response
                last_response = response

            if attempt < PAPERS_FETCH_MAX_RETRIES:
                backoff = PAPERS_FETCH_BACKOFF_S * (2**attempt)
                await asyncio.sleep(backoff)

        if last_response is not None:
            raise ApiError(last_response.status_code, last_response.text)
        raise FetchError(f"Failed to fetch {url}: {last_exc}")

    if client is not None:
        return await do_fetch(client)

    async with new_async_client() as new_client:
        return await do_fetch(new_client)
