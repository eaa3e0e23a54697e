"""End-to-end tests for the work-text pipeline with mocked services."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from papers.config import TextConfig
from papers.datalab import DatalabClient
from papers.exceptions import NoPdfFoundError, PipelineTimeoutError
from papers.openalex import OpenAlexClient
from papers.schemas import (
    DataLabSource,
    DirectUrlSource,
    Work,
    ZoteroRemoteSource,
)
from papers.text import find_work_in_zotero, poll_zotero_for_work, work_text
from papers.zotero import ZoteroClient

DOI = "10.1234/test.5678"
ARXIV_PDF = "https://arxiv.org/pdf/2401.00001"


def work_json(**overrides) -> dict:
    data = {
        "id": "https://openalex.org/W100",
        "doi": f"https://doi.org/{DOI}",
        "title": "A Study of Things",
    }
    data.update(overrides)
    return data


ZOTERO_PARENT = {
    "key": "PARENT1",
    "version": 3,
    "data": {
        "key": "PARENT1",
        "itemType": "journalArticle",
        "DOI": DOI,
        "dateAdded": "2024-01-02T03:04:05Z",
        "tags": [{"tag": "to-read"}],
    },
}
ZOTERO_PDF = {
    "key": "ATT1",
    "version": 3,
    "data": {
        "key": "ATT1",
        "itemType": "attachment",
        "parentItem": "PARENT1",
        "contentType": "application/pdf",
        "linkMode": "imported_file",
        "filename": "paper.pdf",
    },
}


class Services:
    """One MockTransport handler standing in for OpenAlex, Zotero, DataLab and PDF hosts."""

    def __init__(self, work: dict, pdf: bytes, *, in_zotero: bool = False) -> None:
        self.work = work
        self.pdf = pdf
        self.in_zotero = in_zotero
        self.hosts: list[str] = []
        self.datalab_submissions = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        self.hosts.append(host)

        if host == "api.openalex.org":
            return httpx.Response(200, json=self.work)
        if host == "api.zotero.org":
            if path.endswith("/items/top"):
                return httpx.Response(200, json=[ZOTERO_PARENT] if self.in_zotero else [])
            if path.endswith("/PARENT1/children"):
                return httpx.Response(200, json=[ZOTERO_PDF])
            if path.endswith("/ATT1/file"):
                return httpx.Response(200, content=self.pdf)
        if host == "www.datalab.to":
            if request.method == "POST":
                self.datalab_submissions += 1
                return httpx.Response(200, json={"request_id": "req-1"})
            return httpx.Response(200, json={"status": "complete", "markdown": "# Markdown body"})
        if host == "arxiv.org":
            return httpx.Response(
                200, content=self.pdf, headers={"content-type": "application/pdf"}
            )
        return httpx.Response(404)


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture(autouse=True)
def no_backoff():
    with patch("papers.http_utils.PAPERS_FETCH_BACKOFF_S", 0.0):
        yield


@pytest.fixture
def config(tmp_path: Path) -> TextConfig:
    return TextConfig(
        zotero_data_dir=tmp_path / "zotero",
        extraction_cache_dir=tmp_path / "datalab",
    )


class TestWorkText:
    """Tests for work_text."""

    @pytest.mark.asyncio
    async def test_direct_url_local_extraction(self, mock_http, pdf_bytes, config) -> None:
        """An open-access PDF is downloaded and extracted locally."""
        services = Services(work_json(best_oa_location={"pdf_url": ARXIV_PDF}), pdf_bytes)

        async with mock_http(services) as http:
            openalex = OpenAlexClient(http=http)
            result = await work_text(openalex, "W100", config=config, http=http)

        assert "Hello PDF" in result.text
        assert result.source == DirectUrlSource(url=ARXIV_PDF)
        assert result.work_id == "https://openalex.org/W100"
        assert result.title == "A Study of Things"
        assert result.doi == f"https://doi.org/{DOI}"

    @pytest.mark.asyncio
    async def test_zotero_local_with_datalab(self, mock_http, pdf_bytes, config) -> None:
        """A local Zotero PDF converted by DataLab is cached under the Zotero parent key."""
        stored = config.zotero_data_dir / "storage" / "ATT1" / "paper.pdf"
        stored.parent.mkdir(parents=True)
        stored.write_bytes(pdf_bytes)
        services = Services(
            work_json(best_oa_location={"pdf_url": ARXIV_PDF}), pdf_bytes, in_zotero=True
        )

        async with mock_http(services) as http:
            openalex = OpenAlexClient(http=http)
            zotero = ZoteroClient("1", "zkey", http=http)
            datalab = DatalabClient("dkey", http=http, sleep=_no_sleep)
            result = await work_text(openalex, "W100", zotero, datalab, config=config, http=http)

        assert result.text == "# Markdown body"
        assert result.source == DataLabSource()
        assert "arxiv.org" not in services.hosts
        md = config.extraction_cache_dir / "PARENT1" / "PARENT1.md"
        assert md.read_text() == "# Markdown body"

    @pytest.mark.asyncio
    async def test_datalab_cache_hit_skips_api(self, mock_http, pdf_bytes, config) -> None:
        """A second run for the same work reuses the cached conversion."""
        services = Services(work_json(best_oa_location={"pdf_url": ARXIV_PDF}), pdf_bytes)

        async with mock_http(services) as http:
            openalex = OpenAlexClient(http=http)
            datalab = DatalabClient("dkey", http=http, sleep=_no_sleep)
            first = await work_text(openalex, "W100", None, datalab, config=config, http=http)
            second = await work_text(openalex, "W100", None, datalab, config=config, http=http)

        assert first == second
        assert services.datalab_submissions == 1
        assert (config.extraction_cache_dir / "W100" / "W100.md").exists()

    @pytest.mark.asyncio
    async def test_no_pdf_anywhere(self, mock_http, pdf_bytes, config) -> None:
        """With no usable source the pipeline raises NoPdfFoundError."""
        services = Services(
            work_json(best_oa_location={"pdf_url": "https://publisher.example/1.pdf"}),
            pdf_bytes,
        )

        async with mock_http(services) as http:
            openalex = OpenAlexClient(http=http)
            zotero = ZoteroClient("1", "zkey", http=http)
            with pytest.raises(NoPdfFoundError) as exc_info:
                await work_text(openalex, "W100", zotero, config=config, http=http)

        assert exc_info.value.title == "A Study of Things"
        assert "publisher.example" not in services.hosts

    @pytest.mark.asyncio
    async def test_repeat_calls_agree(self, mock_http, pdf_bytes, config) -> None:
        """Running the pipeline twice on unchanged inputs gives equal results."""
        services = Services(work_json(best_oa_location={"pdf_url": ARXIV_PDF}), pdf_bytes)

        async with mock_http(services) as http:
            openalex = OpenAlexClient(http=http)
            first = await work_text(openalex, "W100", config=config, http=http)
            second = await work_text(openalex, "W100", config=config, http=http)

        assert first == second

    @pytest.mark.asyncio
    async def test_timeout(self, mock_http, config) -> None:
        """A slow service past the deadline raises PipelineTimeoutError."""

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=work_json())

        config.timeout = 0.05
        async with mock_http(slow) as http:
            openalex = OpenAlexClient(http=http)
            with pytest.raises(PipelineTimeoutError):
                await work_text(openalex, "W100", config=config, http=http)


class TestZoteroLookup:
    """Tests for find_work_in_zotero and poll_zotero_for_work."""

    @pytest.mark.asyncio
    async def test_find_work_in_zotero(self, mock_http, pdf_bytes) -> None:
        """A library item with a matching DOI is summarised."""
        services = Services(work_json(), pdf_bytes, in_zotero=True)

        async with mock_http(services) as http:
            zotero = ZoteroClient("1", "zkey", http=http)
            info = await find_work_in_zotero(zotero, Work.model_validate(work_json()))

        assert info is not None
        assert info.key == "PARENT1"
        assert info.item_type == "journalArticle"
        assert info.tags == ["to-read"]
        assert info.has_pdf is True
        assert info.uri == "zotero://select/library/items/PARENT1"

    @pytest.mark.asyncio
    async def test_find_work_not_in_library(self, mock_http, pdf_bytes) -> None:
        """No matching item gives None."""
        services = Services(work_json(), pdf_bytes, in_zotero=False)

        async with mock_http(services) as http:
            zotero = ZoteroClient("1", "zkey", http=http)
            assert await find_work_in_zotero(zotero, Work.model_validate(work_json())) is None

    @pytest.mark.asyncio
    async def test_find_work_without_doi(self) -> None:
        """Works without a DOI are never looked up."""
        zotero = ZoteroClient("1", "zkey")
        assert await find_work_in_zotero(zotero, Work(id="W1", title="T")) is None

    @pytest.mark.asyncio
    async def test_poll_finds_work_once_saved(self, mock_http, pdf_bytes) -> None:
        """Polling returns the text after the item appears in the library."""
        services = Services(work_json(), pdf_bytes, in_zotero=False)
        waits: list[float] = []

        async def sleep(seconds: float) -> None:
            waits.append(seconds)
            if len(waits) == 2:
                services.in_zotero = True

        async with mock_http(services) as http:
            zotero = ZoteroClient("1", "zkey", http=http)
            result = await poll_zotero_for_work(
                zotero,
                "W100",
                "A Study of Things",
                f"https://doi.org/{DOI}",
                config=TextConfig(),
                sleep=sleep,
                initial_delay=5.0,
                interval=2.0,
                attempts=5,
            )

        assert "Hello PDF" in result.text
        assert result.source == ZoteroRemoteSource(item_key="ATT1")
        assert result.doi == DOI
        assert waits == [5.0, 2.0]

    @pytest.mark.asyncio
    async def test_poll_gives_up(self, mock_http, pdf_bytes) -> None:
        """Polling raises NoPdfFoundError right after the last attempt, without a final wait."""
        services = Services(work_json(), pdf_bytes, in_zotero=False)
        waits: list[float] = []

        async def sleep(seconds: float) -> None:
            waits.append(seconds)

        async with mock_http(services) as http:
            zotero = ZoteroClient("1", "zkey", http=http)
            with pytest.raises(NoPdfFoundError):
                await poll_zotero_for_work(
                    zotero,
                    "W100",
                    "A Study of Things",
                    DOI,
                    sleep=sleep,
                    initial_delay=5.0,
                    interval=2.0,
                    attempts=3,
                )

        assert waits == [5.0, 2.0, 2.0]
