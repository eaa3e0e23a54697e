"""Zotero Web API item models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

LOCAL_FILE_LINK_MODES = frozenset({"imported_file", "imported_url"})


class ZoteroTag(BaseModel):
    tag: str
    type: int | None = None


class ItemData(BaseModel):
    """The ``data`` block of a Zotero item (parent or attachment)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    key: str | None = None
    item_type: str = Field(default="", alias="itemType")
    title: str | None = None
    doi: str | None = Field(default=None, alias="DOI")
    parent_item: str | None = Field(default=None, alias="parentItem")
    content_type: str | None = Field(default=None, alias="contentType")
    link_mode: str | None = Field(default=None, alias="linkMode")
    filename: str | None = None
    date_added: str | None = Field(default=None, alias="dateAdded")
    tags: list[ZoteroTag] = Field(default_factory=list)


class ZoteroItem(BaseModel):
    """A Zotero item as returned by ``/users/<id>/items`` endpoints."""

    key: str
    version: int = 0
    data: ItemData = Field(default_factory=ItemData)

    @property
    def is_local_pdf(self) -> bool:
        """True for PDF attachments whose file is stored by Zotero."""
        return (
            self.data.content_type == "application/pdf"
            and self.data.link_mode in LOCAL_FILE_LINK_MODES
        )
