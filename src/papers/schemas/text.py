"""Work-text pipeline result models."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ZoteroLocalSource(BaseModel):
    """PDF read from the local Zotero storage directory."""

    model_config = ConfigDict(frozen=True)

    type: Literal["zotero_local"] = "zotero_local"
    path: str


class ZoteroRemoteSource(BaseModel):
    """PDF downloaded through the Zotero Web API."""

    model_config = ConfigDict(frozen=True)

    type: Literal["zotero_remote"] = "zotero_remote"
    item_key: str


class DirectUrlSource(BaseModel):
    """PDF downloaded from a whitelisted open-access URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["direct_url"] = "direct_url"
    url: str


class OpenAlexContentSource(BaseModel):
    """PDF downloaded from the OpenAlex content API."""

    model_config = ConfigDict(frozen=True)

    type: Literal["open_alex_content"] = "open_alex_content"


class DataLabSource(BaseModel):
    """Text produced (or restored from cache) by DataLab cloud extraction."""

    model_config = ConfigDict(frozen=True)

    type: Literal["data_lab"] = "data_lab"


PdfSource = Annotated[
    Union[
        ZoteroLocalSource,
        ZoteroRemoteSource,
        DirectUrlSource,
        OpenAlexContentSource,
        DataLabSource,
    ],
    Field(discriminator="type"),
]


class WorkTextResult(BaseModel):
    """Extracted full text of a work and where it came from."""

    model_config = ConfigDict(frozen=True)

    text: str
    source: PdfSource
    work_id: str
    title: str | None = None
    doi: str | None = None


class ZoteroItemInfo(BaseModel):
    """Brief Zotero library info for a work matched by DOI."""

    key: str
    item_type: str
    tags: list[str] = Field(default_factory=list)
    has_pdf: bool = False
    date_added: str | None = None
    uri: str
