"""Download and extract the full text of a scholarly work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from papers.config import TextConfig
from papers.datalab import DatalabClient
from papers.exceptions import NoPdfFoundError, PipelineTimeoutError
from papers.extraction import ExtractionCache, do_extract, extract_text_async
from papers.http_utils import new_async_client
from papers.openalex import OpenAlexClient, work_get
from papers.pdf_sources import (
    StageResult,
    bare_doi,
    find_zotero_candidates,
    resolve_pdf,
    try_zotero_local,
    try_zotero_remote,
)
from papers.schemas import Work, WorkTextResult, ZoteroItemInfo
from papers.zotero import ZoteroClient

logger = logging.getLogger(__name__)

ZOTERO_POLL_INITIAL_DELAY_S = 5.0
ZOTERO_POLL_INTERVAL_S = 2.0
ZOTERO_POLL_ATTEMPTS = 55


async def work_text(
    openalex: OpenAlexClient,
    work_id: str,
    zotero: ZoteroClient | None = None,
    datalab: DatalabClient | None = None,
    *,
    config: TextConfig | None = None,
    http: httpx.AsyncClient | None = None,
) -> WorkTextResult:
    """Find a PDF for a work and extract its text.

    Sources are tried in priority order: local Zotero storage, the Zotero Web
    API, whitelisted open-access PDF URLs, then the OpenAlex content API. When
    ``datalab`` is given, the PDF is converted to markdown by DataLab instead
    of being extracted locally.

    Args:
        openalex: Metadata client.
        work_id: OpenAlex ID, DOI, ``pmid:``/``pmcid:`` identifier or a search query.
        zotero: Optional Zotero client; without it the Zotero stages are skipped.
        datalab: Optional DataLab client for cloud extraction.
        config: Pipeline configuration. Defaults to ``TextConfig()``.
        http: Optional client used for direct and content API downloads.

    Returns:
        The extracted text with its source and the work's id, title and DOI.

    Raises:
        NoPdfFoundError: If no source produced a PDF.
        PipelineTimeoutError: If ``config.timeout`` elapsed first.
        NotFoundError: If OpenAlex does not know the work.
        LocalFileError: If a locally indexed Zotero file cannot be read.
        ExtractionError: If the PDF cannot be parsed.
    """
    cfg = config or TextConfig()
    pipeline = _work_text(openalex, work_id, zotero, datalab, cfg, http)
    if cfg.timeout is None:
        return await pipeline
    try:
        return await asyncio.wait_for(pipeline, cfg.timeout)
    except asyncio.TimeoutError as exc:
        raise PipelineTimeoutError(
            f"Text extraction for {work_id} did not finish within {cfg.timeout}s"
        ) from exc


async def _work_text(
    openalex: OpenAlexClient,
    work_id: str,
    zotero: ZoteroClient | None,
    datalab: DatalabClient | None,
    cfg: TextConfig,
    http: httpx.AsyncClient | None,
) -> WorkTextResult:
    work = await work_get(openalex, work_id)

    if http is None:
        async with new_async_client() as own_http:
            found = await _resolve(work, zotero, cfg, own_http)
    else:
        found = await _resolve(work, zotero, cfg, http)

    cache = None
    if cfg.use_extraction_cache:
        cache = ExtractionCache(cfg.extraction_cache_dir, cfg.extraction_cache_ttl_seconds)

    text, source = await do_extract(
        found.data,
        found.cache_id or work.id,
        datalab,
        found.source,
        mode=cfg.processing_mode,
        cache=cache,
    )
    return WorkTextResult(
        text=text,
        source=source,
        work_id=work.id,
        title=work.label,
        doi=work.doi,
    )


async def _resolve(
    work: Work,
    zotero: ZoteroClient | None,
    cfg: TextConfig,
    http: httpx.AsyncClient,
) -> StageResult:
    return await resolve_pdf(
        work,
        http=http,
        zotero=zotero,
        zotero_data_dir=cfg.zotero_data_dir,
        content_api_key=cfg.openalex_content_key,
    )


async def find_work_in_zotero(zotero: ZoteroClient, work: Work) -> ZoteroItemInfo | None:
    """Check whether a work is in the Zotero library, matched by DOI.

    Searches by title (fast title/creator/year mode) and validates the DOI
    on each returned item. Returns None if the work has no DOI or title, or
    is not in the library. Zotero errors propagate.
    """
    if not work.doi or not work.label:
        return None
    doi = bare_doi(work.doi)

    for item in await zotero.search_items(work.label):
        if not item.data.doi or item.data.doi.lower() != doi.lower():
            continue
        children = await zotero.list_item_children(item.key)
        return ZoteroItemInfo(
            key=item.key,
            item_type=item.data.item_type,
            tags=[tag.tag for tag in item.data.tags],
            has_pdf=any(child.is_local_pdf for child in children),
            date_added=item.data.date_added,
            uri=f"zotero://select/library/items/{item.key}",
        )
    return None


async def poll_zotero_for_work(
    zotero: ZoteroClient,
    work_id: str,
    title: str | None,
    doi: str,
    *,
    config: TextConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    initial_delay: float = ZOTERO_POLL_INITIAL_DELAY_S,
    interval: float = ZOTERO_POLL_INTERVAL_S,
    attempts: int = ZOTERO_POLL_ATTEMPTS,
) -> WorkTextResult:
    """Wait for a work to appear in Zotero and extract its text locally.

    Used after asking a user to save a paper: waits ``initial_delay`` seconds,
    then retries the Zotero stages every ``interval`` seconds.

    Raises:
        NoPdfFoundError: If the PDF did not appear within ``attempts`` tries.
    """
    cfg = config or TextConfig()
    doi = bare_doi(doi)
    await sleep(initial_delay)

    for attempt in range(attempts):
        candidates = await find_zotero_candidates(zotero, doi, title)
        if candidates:
            found = await try_zotero_local(candidates, cfg.zotero_data_dir)
            if not found.is_found:
                found = await try_zotero_remote(zotero, candidates)
            if found.is_found and found.source is not None:
                return WorkTextResult(
                    text=await extract_text_async(found.data),
                    source=found.source,
                    work_id=work_id,
                    title=title,
                    doi=doi,
                )
        logger.debug("Work %s not yet in Zotero (attempt %d)", work_id, attempt + 1)
        if attempt < attempts - 1:
            await sleep(interval)

    raise NoPdfFoundError(work_id, title, doi)
