"""Tests for the Zotero Web API client."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from papers.exceptions import MissingApiKeyError
from papers.schemas import ZoteroItem
from papers.zotero import ZoteroClient, attachment_path


class TestZoteroClient:
    """Tests for ZoteroClient."""

    @pytest.mark.asyncio
    async def test_search_sends_auth_and_query(self, mock_http) -> None:
        """Searches hit /items/top with version and key headers."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=[{"key": "ABC", "version": 2, "data": {"itemType": "book", "DOI": "10.1/x"}}]
            )

        async with mock_http(handler) as http:
            client = ZoteroClient("42", "zkey", http=http)
            items = await client.search_items("deep learning", qmode="everything", limit=5)

        request = seen[0]
        assert request.url.path == "/users/42/items/top"
        assert request.url.params["q"] == "deep learning"
        assert request.url.params["qmode"] == "everything"
        assert request.url.params["limit"] == "5"
        assert request.headers["Zotero-API-Version"] == "3"
        assert request.headers["Zotero-API-Key"] == "zkey"
        assert items[0].key == "ABC"
        assert items[0].data.doi == "10.1/x"

    @pytest.mark.asyncio
    async def test_download_item_file(self, mock_http) -> None:
        """Attachment downloads return the raw bytes."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/users/42/items/ATT1/file"
            return httpx.Response(200, content=b"%PDF")

        async with mock_http(handler) as http:
            data = await ZoteroClient("42", "zkey", http=http).download_item_file("ATT1")

        assert data == b"%PDF"

    def test_from_env_requires_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Missing user id or key raises MissingApiKeyError."""
        monkeypatch.setenv("ZOTERO_USER_ID", "42")
        monkeypatch.delenv("ZOTERO_API_KEY", raising=False)
        with pytest.raises(MissingApiKeyError):
            ZoteroClient.from_env()


class TestAttachmentPath:
    """Tests for attachment_path."""

    def test_storage_layout(self, tmp_path: Path) -> None:
        """Files live at storage/<key>/<filename>."""
        item = ZoteroItem.model_validate(
            {"key": "ATT1", "data": {"itemType": "attachment", "filename": "p.pdf"}}
        )
        assert attachment_path(tmp_path, item) == tmp_path / "storage" / "ATT1" / "p.pdf"

    def test_no_filename(self, tmp_path: Path) -> None:
        """Attachments without a filename have no local path."""
        item = ZoteroItem.model_validate({"key": "ATT1", "data": {"itemType": "attachment"}})
        assert attachment_path(tmp_path, item) is None
