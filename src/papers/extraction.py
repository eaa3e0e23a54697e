"""PDF to text: local pypdfium2 extraction or DataLab cloud conversion with a disk cache."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import threading
from pathlib import Path

import pypdfium2 as pdfium

from papers.cache_utils import atomic_write_bytes, is_cache_fresh, read_text_async
from papers.config import PAPERS_CACHE_PATH
from papers.datalab import DatalabClient
from papers.exceptions import ExtractionError
from papers.schemas import (
    DataLabSource,
    MarkerPollResponse,
    MarkerRequest,
    OutputFormat,
    PdfSource,
    ProcessingMode,
)

logger = logging.getLogger(__name__)

# PDFium is not thread-safe; every call into it holds this lock.
_PDFIUM_LOCK = threading.Lock()


def extract_text(pdf_bytes: bytes) -> str:
    """Return the plain text of every page, joined by newlines.

    Raises:
        ExtractionError: If the bytes are not a readable PDF.
    """
    with _PDFIUM_LOCK:
        return _extract_pages(pdf_bytes)


def _extract_pages(pdf_bytes: bytes) -> str:
    try:
        pdf = pdfium.PdfDocument(pdf_bytes)
    except pdfium.PdfiumError as exc:
        raise ExtractionError(f"Could not open PDF: {exc}") from exc

    try:
        texts: list[str] = []
        for page in pdf:
            textpage = page.get_textpage()
            texts.append(textpage.get_text_range())
            textpage.close()
            page.close()
        return "\n".join(texts)
    except pdfium.PdfiumError as exc:
        raise ExtractionError(f"Could not extract PDF text: {exc}") from exc
    finally:
        pdf.close()


async def extract_text_async(pdf_bytes: bytes) -> str:
    """Run extract_text in a worker thread."""
    return await asyncio.to_thread(extract_text, pdf_bytes)


def _safe_id(cache_id: str) -> str:
    return cache_id.replace("/", "_").replace("\\", "_")


def _decode_image(data: str) -> bytes | None:
    _, marker, payload = data.partition(";base64,")
    try:
        return base64.b64decode(payload if marker else data, validate=True)
    except (binascii.Error, ValueError):
        return None


class ExtractionCache:
    """On-disk store of DataLab output keyed by work identifier.

    Layout per id: ``<root>/<id>/<id>.md``, plus ``<id>.json`` when structured
    output was returned and ``images/`` for extracted images. The markdown file
    is written last, so its presence marks a complete entry.
    """

    def __init__(self, root: Path, ttl_seconds: int = 0) -> None:
        self.root = root
        self.ttl_seconds = ttl_seconds

    def dir_for(self, cache_id: str) -> Path:
        return self.root / _safe_id(cache_id)

    def markdown_path(self, cache_id: str) -> Path:
        safe = _safe_id(cache_id)
        return self.root / safe / f"{safe}.md"

    async def get(self, cache_id: str) -> str | None:
        """Return cached markdown, or None if absent, expired or unreadable."""
        path = self.markdown_path(cache_id)
        if not is_cache_fresh(path, self.ttl_seconds):
            return None
        try:
            return await read_text_async(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Unreadable extraction cache entry %s: %s", path, exc)
            return None

    async def put(self, cache_id: str, result: MarkerPollResponse) -> None:
        """Persist a completed conversion. Failures are logged, never raised."""
        try:
            await asyncio.to_thread(self._write, cache_id, result)
        except OSError as exc:
            logger.warning("Could not write extraction cache for %s: %s", cache_id, exc)

    def _write(self, cache_id: str, result: MarkerPollResponse) -> None:
        directory = self.dir_for(cache_id)
        directory.mkdir(parents=True, exist_ok=True)
        safe = _safe_id(cache_id)

        if result.json_data is not None:
            atomic_write_bytes(directory / f"{safe}.json", json.dumps(result.json_data).encode("utf-8"))

        if result.images:
            image_dir = directory / "images"
            image_dir.mkdir(exist_ok=True)
            for name, encoded in result.images.items():
                image = _decode_image(encoded)
                if image is None:
                    logger.debug("Skipping undecodable image %s", name)
                    continue
                atomic_write_bytes(image_dir / Path(name).name, image)

        atomic_write_bytes(directory / f"{safe}.md", (result.markdown or "").encode("utf-8"))


def datalab_cached_markdown(cache_id: str, root: Path | None = None) -> str | None:
    """Return cached DataLab markdown for ``cache_id`` if it exists."""
    if root is None:
        root = PAPERS_CACHE_PATH / "datalab"
    try:
        return ExtractionCache(root).markdown_path(cache_id).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


async def do_extract(
    pdf_bytes: bytes,
    cache_id: str,
    datalab: DatalabClient | None,
    source: PdfSource,
    *,
    mode: ProcessingMode = ProcessingMode.BALANCED,
    cache: ExtractionCache | None = None,
) -> tuple[str, PdfSource]:
    """Extract text from PDF bytes, through DataLab when a client is given.

    With DataLab, a cached conversion for ``cache_id`` is returned without any
    API call; otherwise the PDF is converted and written to the cache before
    returning. Either way the returned source is DataLabSource. Without
    DataLab the PDF is extracted locally and ``source`` is returned unchanged.

    Args:
        pdf_bytes: The PDF document.
        cache_id: Stable work identifier used as the cache key.
        datalab: Cloud client, or None for local extraction.
        source: Where ``pdf_bytes`` came from.
        mode: DataLab processing mode.
        cache: Extraction cache; None disables caching.

    Returns:
        Tuple of (text, source that produced the text).

    Raises:
        ExtractionError: If local extraction fails.
        ProcessingError: If the DataLab job fails.
        ApiError: If DataLab rejects a request.
        FetchError: On transport failure talking to DataLab.
    """
    if datalab is None:
        return await extract_text_async(pdf_bytes), source

    if cache is not None:
        cached = await cache.get(cache_id)
        if cached is not None:
            logger.info("Extraction cache hit for %s", cache_id)
            return cached, DataLabSource()

    result = await datalab.convert_document(
        MarkerRequest(
            file=pdf_bytes,
            filename=f"{_safe_id(cache_id)}.pdf",
            output_format=[OutputFormat.MARKDOWN, OutputFormat.JSON],
            mode=mode,
        )
    )
    if cache is not None:
        await cache.put(cache_id, result)
    return result.markdown or "", DataLabSource()
