"""Cache utilities for managing local file caching."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

_ENTRY_SUFFIX = ".json"
_TMP_SUFFIX = ".tmp"


class CacheEntry(BaseModel):
    """One cached payload and the unix time it was written."""

    ts: int
    body: str


def cache_key(
    url: str,
    query: Iterable[tuple[str, str]] = (),
    body: str | None = None,
) -> str:
    """Compute a deterministic cache key from a request.

    Query pairs are sorted before hashing, so parameter order never changes the
    key. The body is mixed in only when present.

    Args:
        url: Request URL without query string.
        query: Query parameter pairs.
        body: Optional request body for POST-style lookups.

    Returns:
        A 16-character hex digest.
    """
    digest = hashlib.sha256()
    digest.update(url.encode("utf-8"))
    for name, value in sorted(query):
        digest.update(b"\x00")
        digest.update(name.encode("utf-8"))
        digest.update(b"=")
        digest.update(value.encode("utf-8"))
    if body is not None:
        digest.update(b"\x01")
        digest.update(body.encode("utf-8"))
    return digest.hexdigest()[:16]


class DiskCache:
    """Disk-based response cache with a fixed TTL.

    Each entry is a JSON file named after its key. Writes go to a ``.tmp`` file
    that is then renamed into place, so readers never see a partial entry.
    Reads and writes never raise: any failure is treated as a miss.
    """

    def __init__(
        self,
        cache_dir: Path,
        ttl_seconds: int,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create the cache directory if needed and prune stale files.

        Raises:
            OSError: If the cache directory cannot be created.
        """
        self.cache_dir = cache_dir
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.prune()

    def _path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}{_ENTRY_SUFFIX}"

    def _now(self) -> int:
        return int(self._clock())

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._now() - entry.ts > self.ttl_seconds

    def get(self, key: str) -> str | None:
        """Return the cached payload, or None on miss, expiry or unreadable entry."""
        try:
            data = self._path_for(key).read_text(encoding="utf-8")
            entry = CacheEntry.model_validate_json(data)
        except (OSError, ValidationError, ValueError):
            return None
        if self._is_expired(entry):
            return None
        return entry.body

    def set(self, key: str, payload: str) -> None:
        """Store a payload. Failures are logged and otherwise ignored."""
        entry = CacheEntry(ts=self._now(), body=payload)
        try:
            atomic_write_bytes(self._path_for(key), entry.model_dump_json().encode("utf-8"))
        except OSError as exc:
            logger.debug("Cache write failed for %s: %s", key, exc)

    async def get_async(self, key: str) -> str | None:
        """Run get in a worker thread."""
        return await asyncio.to_thread(self.get, key)

    async def set_async(self, key: str, payload: str) -> None:
        """Run set in a worker thread."""
        await asyncio.to_thread(self.set, key, payload)

    def prune(self) -> None:
        """Remove leftover temp files and any expired or unreadable entries."""
        try:
            paths = list(self.cache_dir.iterdir())
        except OSError:
            return
        for path in paths:
            if path.name.endswith(_TMP_SUFFIX):
                _remove_quietly(path)
                continue
            if path.suffix != _ENTRY_SUFFIX:
                continue
            try:
                entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError, ValueError):
                _remove_quietly(path)
                continue
            if self._is_expired(entry):
                _remove_quietly(path)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to a unique temp file beside ``path``, then rename it into place.

    Every call gets its own temp file, so concurrent writers to the same path
    never share one; the last rename wins.

    Raises:
        OSError: If the write or rename fails. The temp file is removed.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.", suffix=_TMP_SUFFIX)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError as exc:
        logger.debug("Could not remove cache file %s: %s", path, exc)


def is_cache_fresh(path: Path, ttl_seconds: int) -> bool:
    """Check if a cached file is still fresh based on its modification time.

    Args:
        path: Path to the cached file.
        ttl_seconds: Time-to-live in seconds. If <= 0, cache is considered
            fresh indefinitely (cache forever mode).

    Returns:
        True if the cache is fresh and usable, False otherwise.
    """
    if not path.exists():
        return False
    if ttl_seconds <= 0:
        return True
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    age_seconds = (datetime.now(timezone.utc) - mtime).total_seconds()
    return age_seconds <= ttl_seconds


async def read_text_async(path: Path, encoding: str = "utf-8") -> str:
    """Read text from a file asynchronously using a thread pool."""
    return await asyncio.to_thread(path.read_text, encoding=encoding)


async def read_bytes_async(path: Path) -> bytes:
    """Read raw bytes from a file asynchronously using a thread pool."""
    return await asyncio.to_thread(path.read_bytes)
