"""OpenAlex work models (only the fields the text pipeline reads)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Location(BaseModel):
    """One place a work is hosted."""

    is_oa: bool | None = None
    landing_page_url: str | None = None
    pdf_url: str | None = None
    version: str | None = None
    license: str | None = None


class HasContent(BaseModel):
    """Which downloadable formats the OpenAlex content API holds for a work."""

    pdf: bool | None = None
    grobid_xml: bool | None = None


class Work(BaseModel):
    """An OpenAlex work record.

    Attributes:
        id: Full OpenAlex URL, e.g. ``https://openalex.org/W2741809807``.
        doi: DOI as a URL (``https://doi.org/...``), if known.
        title: Work title.
        display_name: Display title; usually equal to ``title``.
        best_oa_location: The best open-access copy, if any.
        primary_location: The publisher's version of record.
        locations: Every known location.
        has_content: Content API availability flags.
    """

    id: str
    doi: str | None = None
    title: str | None = None
    display_name: str | None = None
    publication_year: int | None = None
    cited_by_count: int | None = None
    best_oa_location: Location | None = None
    primary_location: Location | None = None
    locations: list[Location] = Field(default_factory=list)
    has_content: HasContent | None = None

    @property
    def label(self) -> str | None:
        """Title, falling back to the display name."""
        return self.title or self.display_name


class ListMeta(BaseModel):
    """Paging metadata of a list response."""

    count: int = 0
    page: int | None = None
    per_page: int | None = None


class WorkList(BaseModel):
    """Response of ``GET /works``."""

    meta: ListMeta = Field(default_factory=ListMeta)
    results: list[Work] = Field(default_factory=list)
