"""Ordered search for a work's PDF across Zotero, open-access URLs and the content API.

Stages run strictly in priority order and the first one that yields a
non-empty document wins:

1. Local Zotero storage
2. Zotero Web API download
3. Whitelisted direct PDF URLs from OpenAlex locations
4. OpenAlex content API (needs an API key and ``has_content.pdf``)

Transport and API failures inside a stage only make that stage miss. A file
the Zotero index reports locally but that cannot be read raises
LocalFileError instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Final
from urllib.parse import urlsplit

import httpx

from papers.cache_utils import read_bytes_async
from papers.exceptions import ApiError, FetchError, LocalFileError, NoPdfFoundError
from papers.openalex import OPENALEX_URL_PREFIX
from papers.schemas import (
    DirectUrlSource,
    OpenAlexContentSource,
    PdfSource,
    Work,
    ZoteroItem,
    ZoteroLocalSource,
    ZoteroRemoteSource,
)
from papers.zotero import ZoteroClient, attachment_path

logger = logging.getLogger(__name__)

DIRECT_PDF_DOMAINS: Final[tuple[str, ...]] = (
    "arxiv.org",
    "europepmc.org",
    "biorxiv.org",
    "medrxiv.org",
    "ncbi.nlm.nih.gov",
    "peerj.com",
    "mdpi.com",
    "frontiersin.org",
    "plos.org",
)

OPENALEX_CONTENT_URL: Final[str] = "https://content.openalex.org/works"
DOI_URL_PREFIX: Final[str] = "https://doi.org/"


class StageStatus(Enum):
    FOUND = "found"
    CONTINUE = "continue"


@dataclass(frozen=True)
class StageResult:
    """Outcome of one resolution stage.

    Attributes:
        status: FOUND when ``data`` holds a PDF, CONTINUE to try the next stage.
        data: PDF bytes.
        source: Which stage produced ``data``.
        cache_id: Stable id for caching extraction output: the Zotero parent
            item key for Zotero sources, otherwise the short OpenAlex id.
    """

    status: StageStatus
    data: bytes = field(default=b"", repr=False)
    source: PdfSource | None = None
    cache_id: str | None = None

    @classmethod
    def found(cls, data: bytes, source: PdfSource, cache_id: str) -> StageResult:
        return cls(StageStatus.FOUND, data, source, cache_id)

    @classmethod
    def miss(cls) -> StageResult:
        return cls(StageStatus.CONTINUE)

    @property
    def is_found(self) -> bool:
        return self.status is StageStatus.FOUND


@dataclass(frozen=True)
class ZoteroCandidate:
    """A PDF attachment under a Zotero item whose DOI matches the work."""

    parent_key: str
    attachment: ZoteroItem


def bare_doi(doi: str) -> str:
    """Strip the ``https://doi.org/`` prefix from a DOI URL."""
    return doi.removeprefix(DOI_URL_PREFIX)


def short_openalex_id(full_id: str) -> str:
    """``https://openalex.org/W123`` -> ``W123``; short ids pass through."""
    return full_id.removeprefix(OPENALEX_URL_PREFIX)


def deduplicate(urls: list[str]) -> list[str]:
    """Drop exact duplicates, keeping first-seen order."""
    return list(dict.fromkeys(urls))


def collect_pdf_urls(work: Work) -> list[str]:
    """Gather ``pdf_url`` values from best OA, primary, then all locations."""
    locations = [work.best_oa_location, work.primary_location, *work.locations]
    return deduplicate([loc.pdf_url for loc in locations if loc and loc.pdf_url])


def is_whitelisted_url(url: str, domains: tuple[str, ...] = DIRECT_PDF_DOMAINS) -> bool:
    """True if the URL's host is one of ``domains`` or a subdomain of one."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


async def find_zotero_candidates(
    zotero: ZoteroClient,
    doi: str,
    title: str | None,
) -> list[ZoteroCandidate]:
    """Find stored PDF attachments of library items whose DOI matches ``doi``.

    The Zotero ``q`` parameter does not search the DOI field, so items are
    searched by title first and by DOI second (which can hit full text), then
    filtered on the item's own DOI. Search failures make a query yield nothing.
    """
    queries = [title, doi] if title else [doi]
    candidates: list[ZoteroCandidate] = []
    seen: set[str] = set()

    for query in queries:
        try:
            items = await zotero.search_items(query, qmode="everything")
        except (FetchError, ApiError) as exc:
            logger.warning("Zotero search for %r failed: %s", query, exc)
            continue

        for item in items:
            item_doi = item.data.doi
            if not item_doi or item_doi.lower() != doi.lower():
                continue
            try:
                children = await zotero.list_item_children(item.key)
            except (FetchError, ApiError) as exc:
                logger.warning("Listing children of Zotero item %s failed: %s", item.key, exc)
                continue
            for child in children:
                if child.is_local_pdf and child.key not in seen:
                    seen.add(child.key)
                    candidates.append(ZoteroCandidate(item.key, child))

    return candidates


async def try_zotero_local(
    candidates: list[ZoteroCandidate],
    data_dir: Path | None,
) -> StageResult:
    """Read the first candidate present in local Zotero storage.

    Raises:
        LocalFileError: If a file that exists on disk cannot be read.
    """
    if data_dir is None:
        return StageResult.miss()

    for candidate in candidates:
        path = attachment_path(data_dir, candidate.attachment)
        if path is None or not path.exists():
            continue
        try:
            data = await read_bytes_async(path)
        except OSError as exc:
            raise LocalFileError(f"Failed to read local file {path}: {exc}") from exc
        if data:
            return StageResult.found(
                data, ZoteroLocalSource(path=str(path)), candidate.parent_key
            )
    return StageResult.miss()


async def try_zotero_remote(
    zotero: ZoteroClient,
    candidates: list[ZoteroCandidate],
) -> StageResult:
    """Download the first candidate the Zotero Web API returns a non-empty file for."""
    for candidate in candidates:
        key = candidate.attachment.key
        try:
            data = await zotero.download_item_file(key)
        except (FetchError, ApiError) as exc:
            logger.debug("Zotero download of %s failed: %s", key, exc)
            continue
        if data:
            return StageResult.found(
                data, ZoteroRemoteSource(item_key=key), candidate.parent_key
            )
    return StageResult.miss()


async def _download_pdf(
    http: httpx.AsyncClient,
    url: str,
    params: dict[str, str] | None = None,
) -> bytes | None:
    """GET a URL and return its body only if it is a successful PDF response."""
    try:
        async with http.stream("GET", url, params=params) as response:
            if not response.is_success:
                logger.debug("Skipping %s: HTTP %s", url, response.status_code)
                return None
            content_type = response.headers.get("content-type", "")
            if "application/pdf" not in content_type.lower():
                logger.debug("Skipping %s: content-type %r", url, content_type)
                return None
            return await response.aread()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Download of %s failed: %s", url, exc)
        return None


async def try_direct_urls(
    http: httpx.AsyncClient,
    urls: list[str],
    cache_id: str,
) -> StageResult:
    """Try each whitelisted URL in order; only PDF content types are accepted."""
    for url in urls:
        if not is_whitelisted_url(url):
            logger.debug("Skipping non-whitelisted URL %s", url)
            continue
        data = await _download_pdf(http, url)
        if data:
            return StageResult.found(data, DirectUrlSource(url=url), cache_id)
    return StageResult.miss()


async def try_openalex_content(
    http: httpx.AsyncClient,
    work: Work,
    api_key: str | None,
) -> StageResult:
    """Download from the OpenAlex content API when the work has a PDF and a key is set."""
    has_pdf = bool(work.has_content and work.has_content.pdf)
    if not has_pdf or not api_key:
        return StageResult.miss()

    short_id = short_openalex_id(work.id)
    url = f"{OPENALEX_CONTENT_URL}/{short_id}.pdf"
    try:
        response = await http.get(url, params={"api_key": api_key})
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Content API request for %s failed: %s", short_id, exc)
        return StageResult.miss()
    if not response.is_success or not response.content:
        return StageResult.miss()
    return StageResult.found(response.content, OpenAlexContentSource(), short_id)


async def resolve_pdf(
    work: Work,
    *,
    http: httpx.AsyncClient,
    zotero: ZoteroClient | None = None,
    zotero_data_dir: Path | None = None,
    content_api_key: str | None = None,
) -> StageResult:
    """Run every stage in priority order and return the first hit.

    Raises:
        NoPdfFoundError: If no stage produced a document.
        LocalFileError: If local Zotero storage is inconsistent.
    """
    short_id = short_openalex_id(work.id)

    if zotero is not None and work.doi:
        candidates = await find_zotero_candidates(zotero, bare_doi(work.doi), work.label)
        if candidates:
            result = await try_zotero_local(candidates, zotero_data_dir)
            if result.is_found:
                logger.info("Using local Zotero PDF for %s", short_id)
                return result
            result = await try_zotero_remote(zotero, candidates)
            if result.is_found:
                logger.info("Using Zotero Web API PDF for %s", short_id)
                return result

    result = await try_direct_urls(http, collect_pdf_urls(work), short_id)
    if result.is_found:
        logger.info("Using direct PDF URL for %s", short_id)
        return result

    result = await try_openalex_content(http, work, content_api_key)
    if result.is_found:
        logger.info("Using OpenAlex content API PDF for %s", short_id)
        return result

    raise NoPdfFoundError(work.id, work.label, work.doi)
