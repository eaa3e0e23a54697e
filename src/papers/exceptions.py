"""Custom exceptions for papers."""

from __future__ import annotations


class PapersError(Exception):
    """Base exception for papers operations."""


class FetchError(PapersError):
    """Network or connection failure while talking to a remote service."""


class ApiError(PapersError):
    """A remote service answered with a non-success HTTP status."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"API error ({status}): {message}")


class NotFoundError(ApiError):
    """The requested entity does not exist (HTTP 404)."""


class MissingApiKeyError(PapersError):
    """A required API key is not configured."""


class InvalidRequestError(PapersError):
    """The caller supplied an unusable request; nothing was sent."""


class LocalFileError(PapersError):
    """A file the local Zotero index reports could not be read."""


class ExtractionError(PapersError):
    """PDF content could not be converted to text."""


class ProcessingError(PapersError):
    """A cloud conversion job finished in the failed state."""


class PipelineTimeoutError(PapersError, TimeoutError):
    """The overall deadline for a work-text request elapsed."""


class NoPdfFoundError(PapersError):
    """Every PDF source was tried and none produced a document."""

    def __init__(
        self,
        work_id: str,
        title: str | None = None,
        doi: str | None = None,
    ) -> None:
        self.work_id = work_id
        self.title = title
        self.doi = doi
        suffix = f" ({title})" if title else ""
        super().__init__(f"No PDF found for work {work_id}{suffix}")
