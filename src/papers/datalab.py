"""Async client for the DataLab Marker document conversion API."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Final

import httpx

from papers.exceptions import (
    FetchError,
    InvalidRequestError,
    MissingApiKeyError,
    ProcessingError,
)
from papers.http_utils import new_async_client, raise_for_api_status
from papers.schemas import (
    MarkerPollResponse,
    MarkerRequest,
    MarkerStatus,
    MarkerSubmitResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL: Final[str] = "https://www.datalab.to"
DEFAULT_POLL_INTERVAL_S: Final[float] = 2.0

_FLAG_FIELDS: Final[tuple[str, ...]] = (
    "paginate",
    "skip_cache",
    "disable_image_extraction",
    "disable_image_captions",
    "save_checkpoint",
    "add_block_ids",
    "include_markdown_in_chunks",
    "keep_spreadsheet_formatting",
    "fence_synthetic_captions",
)
_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "page_range",
    "segmentation_schema",
    "extras",
    "webhook_url",
)
_JSON_FIELDS: Final[tuple[str, ...]] = ("page_schema", "additional_config")

Sleeper = Callable[[float], Awaitable[None]]


class DatalabClient:
    """Submit documents to DataLab Marker and poll until conversion finishes.

    Every request carries the API key in the ``X-API-Key`` header. Polling
    has no built-in deadline; wrap calls in ``asyncio.wait_for`` to bound them.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        http: httpx.AsyncClient | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize DatalabClient.

        Args:
            api_key: DataLab API key.
            base_url: API root, overridable for tests.
            poll_interval: Seconds between status polls.
            http: Optional shared httpx client.
            sleep: Coroutine used to wait between polls.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._http = http
        self._owns_http = http is None
        self._sleep = sleep

    @classmethod
    def from_env(cls, **kwargs) -> DatalabClient:
        """Create a client from ``DATALAB_API_KEY``.

        Raises:
            MissingApiKeyError: If the variable is unset or empty.
        """
        api_key = os.getenv("DATALAB_API_KEY")
        if not api_key:
            raise MissingApiKeyError("DATALAB_API_KEY environment variable not set")
        return cls(api_key, **kwargs)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = new_async_client()
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> DatalabClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client().request(
                method, url, headers={"X-API-Key": self.api_key}, **kwargs
            )
        except httpx.RequestError as exc:
            raise FetchError(f"{method} {url} failed: {exc}") from exc
        raise_for_api_status(response)
        return response

    async def submit_marker(self, request: MarkerRequest) -> MarkerSubmitResponse:
        """POST /api/v1/marker: submit a conversion job and return its request id.

        Raises:
            InvalidRequestError: Unless exactly one of ``file`` and ``file_url`` is set.
            ApiError: On a non-success HTTP status.
            FetchError: On transport failure.
        """
        if (request.file is None) == (request.file_url is None):
            raise InvalidRequestError(
                "MarkerRequest must specify exactly one of `file` or `file_url`"
            )

        fields = build_form_fields(request)
        if request.file is not None:
            filename = request.filename or "document.pdf"
            files = {"file": (filename, request.file, "application/pdf")}
        else:
            # (None, value) keeps the body multipart without a file part.
            files = {"file_url": (None, request.file_url)}

        response = await self._send("POST", "/api/v1/marker", data=fields, files=files)
        submitted = MarkerSubmitResponse.model_validate_json(response.content)
        logger.debug("Submitted DataLab job %s", submitted.request_id)
        return submitted

    async def get_marker_result(self, request_id: str) -> MarkerPollResponse:
        """GET /api/v1/marker/{request_id}: fetch the current state of a job."""
        response = await self._send("GET", f"/api/v1/marker/{request_id}")
        return MarkerPollResponse.model_validate_json(response.content)

    async def poll_until_complete(self, request_id: str) -> MarkerPollResponse:
        """
        Poll a job every ``poll_interval`` seconds until it leaves ``processing``.

        Raises:
            ProcessingError: If the job reaches ``failed``.
        """
        while True:
            await self._sleep(self.poll_interval)
            poll = await self.get_marker_result(request_id)
            if poll.status is MarkerStatus.COMPLETE:
                return poll
            if poll.status is MarkerStatus.FAILED:
                raise ProcessingError(poll.error or "unknown processing error")

    async def convert_document(self, request: MarkerRequest) -> MarkerPollResponse:
        """Submit a document and wait for the completed conversion."""
        submitted = await self.submit_marker(request)
        return await self.poll_until_complete(submitted.request_id)


def build_form_fields(request: MarkerRequest) -> dict[str, str]:
    """Encode the non-file options of a request as multipart text fields.

    False flags and unset values are omitted.
    """
    fields = {
        "output_format": ",".join(fmt.value for fmt in request.output_format),
        "mode": request.mode.value,
    }
    if request.max_pages is not None:
        fields["max_pages"] = str(request.max_pages)
    for name in _TEXT_FIELDS:
        value = getattr(request, name)
        if value is not None:
            fields[name] = value
    for name in _FLAG_FIELDS:
        if getattr(request, name):
            fields[name] = "true"
    for name in _JSON_FIELDS:
        value = getattr(request, name)
        if value is not None:
            fields[name] = json.dumps(value)
    return fields
