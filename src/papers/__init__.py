"""papers: locate and extract the full text of scholarly works."""

from papers.config import TextConfig
from papers.datalab import DatalabClient
from papers.exceptions import (
    ApiError,
    ExtractionError,
    FetchError,
    InvalidRequestError,
    LocalFileError,
    MissingApiKeyError,
    NoPdfFoundError,
    NotFoundError,
    PapersError,
    PipelineTimeoutError,
    ProcessingError,
)
from papers.extraction import ExtractionCache, do_extract, extract_text
from papers.openalex import OpenAlexClient
from papers.schemas import PdfSource, WorkTextResult
from papers.text import find_work_in_zotero, poll_zotero_for_work, work_text
from papers.zotero import ZoteroClient

__all__ = [
    "ApiError",
    "DatalabClient",
    "ExtractionCache",
    "ExtractionError",
    "FetchError",
    "InvalidRequestError",
    "LocalFileError",
    "MissingApiKeyError",
    "NoPdfFoundError",
    "NotFoundError",
    "OpenAlexClient",
    "PapersError",
    "PdfSource",
    "PipelineTimeoutError",
    "ProcessingError",
    "TextConfig",
    "WorkTextResult",
    "ZoteroClient",
    "do_extract",
    "extract_text",
    "find_work_in_zotero",
    "poll_zotero_for_work",
    "work_text",
]
