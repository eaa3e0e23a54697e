"""Shared schemas for papers."""

from papers.schemas.datalab import (
    MarkerPollResponse,
    MarkerRequest,
    MarkerStatus,
    MarkerSubmitResponse,
    OutputFormat,
    ProcessingMode,
)
from papers.schemas.text import (
    DataLabSource,
    DirectUrlSource,
    OpenAlexContentSource,
    PdfSource,
    WorkTextResult,
    ZoteroItemInfo,
    ZoteroLocalSource,
    ZoteroRemoteSource,
)
from papers.schemas.work import HasContent, Location, Work, WorkList
from papers.schemas.zotero import ItemData, ZoteroItem

__all__ = [
    "DataLabSource",
    "DirectUrlSource",
    "HasContent",
    "ItemData",
    "Location",
    "MarkerPollResponse",
    "MarkerRequest",
    "MarkerStatus",
    "MarkerSubmitResponse",
    "OpenAlexContentSource",
    "OutputFormat",
    "PdfSource",
    "ProcessingMode",
    "Work",
    "WorkList",
    "WorkTextResult",
    "ZoteroItem",
    "ZoteroItemInfo",
    "ZoteroLocalSource",
    "ZoteroRemoteSource",
]
