"""Read-only async client for the Zotero Web API v3."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

import httpx
from pydantic import TypeAdapter

from papers.exceptions import MissingApiKeyError
from papers.http_utils import fetch_with_retries, new_async_client
from papers.schemas import ZoteroItem

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL: Final[str] = "https://api.zotero.org"

_ITEM_LIST = TypeAdapter(list[ZoteroItem])


class ZoteroClient:
    """Async client for a user's Zotero library.

    Only the endpoints the text pipeline needs are implemented: top-level item
    search, child listing and attachment download.
    """

    def __init__(
        self,
        user_id: str,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.user_id = user_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http = http
        self._owns_http = http is None

    @classmethod
    def from_env(cls) -> ZoteroClient:
        """Create a client from ``ZOTERO_USER_ID`` and ``ZOTERO_API_KEY``.

        Raises:
            MissingApiKeyError: If either variable is unset or empty.
        """
        user_id = os.getenv("ZOTERO_USER_ID")
        api_key = os.getenv("ZOTERO_API_KEY")
        if not user_id:
            raise MissingApiKeyError("ZOTERO_USER_ID environment variable not set")
        if not api_key:
            raise MissingApiKeyError("ZOTERO_API_KEY environment variable not set")
        return cls(user_id, api_key)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = new_async_client()
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> ZoteroClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        url = f"{self.base_url}/users/{self.user_id}{path}"
        headers = {"Zotero-API-Version": "3", "Zotero-API-Key": self.api_key}
        return await fetch_with_retries(
            url, client=self._client(), params=params, headers=headers
        )

    async def search_items(
        self,
        query: str,
        *,
        qmode: str | None = None,
        limit: int | None = None,
    ) -> list[ZoteroItem]:
        """Search top-level items.

        ``qmode="titleCreatorYear"`` (the API default) is fast; ``"everything"``
        also searches full text of attached files.
        """
        params = {"q": query}
        if qmode:
            params["qmode"] = qmode
        if limit is not None:
            params["limit"] = str(limit)
        response = await self._get("/items/top", params)
        return _ITEM_LIST.validate_json(response.content)

    async def list_item_children(self, key: str) -> list[ZoteroItem]:
        """List attachments and notes under a parent item."""
        response = await self._get(f"/items/{key}/children")
        return _ITEM_LIST.validate_json(response.content)

    async def download_item_file(self, key: str) -> bytes:
        """Download an attachment's file content (follows the storage redirect)."""
        response = await self._get(f"/items/{key}/file")
        return response.content


def attachment_path(data_dir: Path, attachment: ZoteroItem) -> Path | None:
    """Return where Zotero stores an attachment locally, or None without a filename."""
    if not attachment.data.filename:
        return None
    return data_dir / "storage" / attachment.key / attachment.data.filename
