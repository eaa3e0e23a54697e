"""Thin async client for the OpenAlex works API."""

from __future__ import annotations

import logging
import os
import re
from typing import Final

import httpx

from papers.cache_utils import DiskCache, cache_key
from papers.config import PAPERS_CACHE_PATH, PAPERS_CACHE_TTL_SECONDS
from papers.exceptions import NotFoundError
from papers.http_utils import fetch_with_retries, new_async_client
from papers.schemas import Work, WorkList

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL: Final[str] = "https://api.openalex.org"
OPENALEX_URL_PREFIX: Final[str] = "https://openalex.org/"

_SHORT_WORK_ID = re.compile(r"^[Ww]\d+$")


class OpenAlexClient:
    """Async client for the OpenAlex REST API.

    Successful GET responses are stored in an optional DiskCache keyed by URL
    and query parameters (the API key is never part of the key).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        http: httpx.AsyncClient | None = None,
        cache: DiskCache | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self._http = http
        self._owns_http = http is None

    @classmethod
    def from_env(cls, *, use_cache: bool = True) -> OpenAlexClient:
        """Create a client reading ``OPENALEX_KEY`` and using the default response cache.

        Opening the cache prunes its directory, so async callers should run
        this in a worker thread.
        """
        cache = None
        if use_cache:
            try:
                cache = DiskCache(PAPERS_CACHE_PATH / "requests", PAPERS_CACHE_TTL_SECONDS)
            except OSError as exc:
                logger.warning("Response cache disabled: %s", exc)
        return cls(os.getenv("OPENALEX_KEY") or None, cache=cache)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = new_async_client()
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> OpenAlexClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_text(self, path: str, query: dict[str, str]) -> str:
        url = f"{self.base_url}{path}"
        key = cache_key(url, query.items())
        if self.cache is not None:
            cached = await self.cache.get_async(key)
            if cached is not None:
                logger.debug("Cache hit for %s", url)
                return cached

        params = dict(query)
        if self.api_key:
            params["api_key"] = self.api_key
        response = await fetch_with_retries(url, client=self._client(), params=params)
        text = response.text
        if self.cache is not None:
            await self.cache.set_async(key, text)
        return text

    async def get_work(self, work_id: str, *, select: str | None = None) -> Work:
        """Fetch one work by OpenAlex ID, ``doi:``, ``pmid:`` or ``pmcid:`` identifier.

        Raises:
            NotFoundError: If OpenAlex has no such work.
            ApiError: On any other non-success status.
            FetchError: On transport failure.
        """
        query = {"select": select} if select else {}
        text = await self._get_text(f"/works/{work_id}", query)
        return Work.model_validate_json(text)

    async def list_works(
        self,
        *,
        search: str | None = None,
        filter: str | None = None,
        sort: str | None = None,
        per_page: int | None = None,
        page: int | None = None,
    ) -> WorkList:
        """List works with optional search, filter, sort and paging."""
        query: dict[str, str] = {}
        if search:
            query["search"] = search
        if filter:
            query["filter"] = filter
        if sort:
            query["sort"] = sort
        if per_page is not None:
            query["per_page"] = str(per_page)
        if page is not None:
            query["page"] = str(page)
        text = await self._get_text("/works", query)
        return WorkList.model_validate_json(text)


def looks_like_identifier(value: str) -> bool:
    """Return True if ``value`` is a work identifier rather than a search query."""
    if value.startswith(OPENALEX_URL_PREFIX):
        return True
    if _SHORT_WORK_ID.match(value):
        return True
    if value.startswith(("https://doi.org/", "doi:")):
        return True
    if value.startswith("10.") and "/" in value:
        return True
    return value.startswith(("pmid:", "pmcid:"))


def bare_id_for_get(value: str) -> str:
    """Normalise an identifier to the form ``GET /works/{id}`` expects.

    - ``https://openalex.org/W123`` -> ``W123``
    - ``10.1234/foo`` -> ``doi:10.1234/foo``
    - anything else is returned unchanged
    """
    bare = value.removeprefix(OPENALEX_URL_PREFIX)
    if bare.startswith("10.") and "/" in bare:
        return f"doi:{bare}"
    return bare


async def resolve_work_id(client: OpenAlexClient, value: str) -> str:
    """Turn an identifier or free-text query into an ID for ``get_work``.

    Free text is resolved to the most cited matching work.

    Raises:
        NotFoundError: If a search query matches nothing.
    """
    value = value.strip()
    if looks_like_identifier(value):
        return bare_id_for_get(value)

    listing = await client.list_works(search=value, sort="cited_by_count:desc", per_page=1)
    if not listing.results:
        raise NotFoundError(404, f"No works matching {value!r}")
    resolved = listing.results[0].id
    logger.info("Resolved %r to %s", value, resolved)
    return bare_id_for_get(resolved)


async def work_get(client: OpenAlexClient, value: str) -> Work:
    """Resolve ``value`` and fetch the matching work."""
    return await client.get_work(await resolve_work_id(client, value))
