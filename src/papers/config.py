"""Local configuration for papers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from papers.schemas.datalab import ProcessingMode


def _default_cache_root() -> str:
    xdg = os.getenv("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".cache"
    return str(base / "papers")


DEFAULT_CACHE_DIR = _default_cache_root()
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_FETCH_TIMEOUT_S = 30.0
DEFAULT_FETCH_MAX_RETRIES = 2
DEFAULT_FETCH_BACKOFF_S = 0.5
DEFAULT_USER_AGENT = "papers/0.1 (https://github.com/mmgeorge/papers; mailto:papers@example.com)"

# Response cache (requests/) and cloud extraction cache (datalab/) live under this root.
PAPERS_CACHE_PATH = Path(os.getenv("PAPERS_CACHE_PATH", DEFAULT_CACHE_DIR)).expanduser().resolve()
PAPERS_CACHE_TTL_SECONDS = int(os.getenv("PAPERS_CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS)))
PAPERS_FETCH_TIMEOUT_S = float(os.getenv("PAPERS_FETCH_TIMEOUT_S", str(DEFAULT_FETCH_TIMEOUT_S)))
PAPERS_FETCH_MAX_RETRIES = int(os.getenv("PAPERS_FETCH_MAX_RETRIES", str(DEFAULT_FETCH_MAX_RETRIES)))
PAPERS_FETCH_BACKOFF_S = float(os.getenv("PAPERS_FETCH_BACKOFF_S", str(DEFAULT_FETCH_BACKOFF_S)))
PAPERS_USER_AGENT = os.getenv("PAPERS_USER_AGENT", DEFAULT_USER_AGENT)


def zotero_data_dir() -> Path:
    """Return the local Zotero data directory (``ZOTERO_DATA_DIR`` or ``~/Zotero``)."""
    override = os.getenv("ZOTERO_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / "Zotero"


@dataclass
class TextConfig:
    """Configuration for the work-text pipeline.

    Attributes:
        openalex_content_key: API key for the paid OpenAlex content endpoint.
            When None the content stage is skipped.
        zotero_data_dir: Local Zotero data directory holding ``storage/``.
            When None local attachment lookup is skipped.
        extraction_cache_dir: Root for cached cloud extraction output.
        use_extraction_cache: If False, cloud extraction always calls the API
            and writes nothing to disk.
        extraction_cache_ttl_seconds: Age after which a cached extraction is
            ignored. Values <= 0 keep entries forever.
        processing_mode: DataLab processing mode used by cloud extraction.
        timeout: Overall deadline in seconds for one ``work_text`` call.
            None waits indefinitely.
    """

    openalex_content_key: str | None = None
    zotero_data_dir: Path | None = None
    extraction_cache_dir: Path = PAPERS_CACHE_PATH / "datalab"
    use_extraction_cache: bool = True
    extraction_cache_ttl_seconds: int = 0
    processing_mode: ProcessingMode = ProcessingMode.BALANCED
    timeout: float | None = None

    @classmethod
    def from_env(cls, **overrides: object) -> TextConfig:
        """Build a config from process environment, applying keyword overrides."""
        content_key = os.getenv("OPENALEX_API_KEY") or None
        values: dict[str, object] = {
            "openalex_content_key": content_key,
            "zotero_data_dir": zotero_data_dir(),
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
