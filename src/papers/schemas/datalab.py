"""DataLab Marker API request and response models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OutputFormat(str, Enum):
    """Output formats DataLab can return."""

    MARKDOWN = "markdown"
    HTML = "html"
    JSON = "json"
    CHUNKS = "chunks"


class ProcessingMode(str, Enum):
    """Quality versus speed trade-off for a conversion."""

    FAST = "fast"
    BALANCED = "balanced"
    ACCURATE = "accurate"


class MarkerStatus(str, Enum):
    """State of a submitted conversion job."""

    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class MarkerRequest(BaseModel):
    """Parameters for ``POST /api/v1/marker``.

    Exactly one of ``file`` or ``file_url`` must be set.

    Attributes:
        file: Raw document bytes to upload.
        filename: Upload filename; defaults to ``document.pdf``.
        file_url: Public URL of the document, as an alternative to ``file``.
        output_format: Formats to return, joined with commas on the wire.
        mode: Processing mode.
        max_pages: Maximum number of pages to process.
        page_range: 0-indexed page range, e.g. ``"0-5"`` or ``"1,3,5"``.
        page_schema: JSON schema for structured extraction.
        segmentation_schema: Schema for document segmentation.
        additional_config: Extra Marker config such as ``force_ocr``.
        extras: Comma-separated extras, e.g. ``chart_understanding``.
        webhook_url: URL DataLab POSTs to on completion.
    """

    file: bytes | None = None
    filename: str | None = None
    file_url: str | None = None
    output_format: list[OutputFormat] = Field(
        default_factory=lambda: [OutputFormat.MARKDOWN]
    )
    mode: ProcessingMode = ProcessingMode.BALANCED
    max_pages: int | None = None
    page_range: str | None = None
    paginate: bool = False
    skip_cache: bool = False
    disable_image_extraction: bool = False
    disable_image_captions: bool = False
    save_checkpoint: bool = False
    add_block_ids: bool = False
    include_markdown_in_chunks: bool = False
    keep_spreadsheet_formatting: bool = False
    fence_synthetic_captions: bool = False
    page_schema: dict[str, Any] | None = None
    segmentation_schema: str | None = None
    additional_config: dict[str, Any] | None = None
    extras: str | None = None
    webhook_url: str | None = None


class MarkerSubmitResponse(BaseModel):
    """Response of a job submission."""

    success: bool = True
    request_id: str
    request_check_url: str | None = None


class MarkerPollResponse(BaseModel):
    """Response of ``GET /api/v1/marker/{request_id}``."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool | None = None
    status: MarkerStatus
    output_format: str | None = None
    markdown: str | None = None
    html: str | None = None
    json_data: Any = Field(default=None, alias="json")
    chunks: Any = None
    images: dict[str, str] | None = None
    metadata: Any = None
    error: str | None = None
    error_in: str | None = None
    page_count: int | None = None
    checkpoint_id: str | None = None
    parse_quality_score: float | None = None
    runtime: float | None = None
    cost_breakdown: Any = None
