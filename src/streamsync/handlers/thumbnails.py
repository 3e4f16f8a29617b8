"""Thumbnail download handler."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx

from streamsync.handlers.http import raise_for_sync_status, translate_request_error
from streamsync.scheduler.errors import PermanentSyncError
from streamsync.scheduler.payloads import ThumbnailsPayload

if TYPE_CHECKING:
    from streamsync.scheduler.types import SyncItem

logger = logging.getLogger(__name__)

# Longest URL extension kept on cache file names, dot included
MAX_SUFFIX_LENGTH = 6


def cache_filename(url: str) -> str:
    """Get the cache file name of a thumbnail URL.

    The name is the SHA-256 digest of the URL plus the extension of its path,
    so it stays within filename limits whatever the URL length.
    """
    digest = hashlib.sha256(url.encode()).hexdigest()
    suffix = PurePosixPath(urlsplit(url).path).suffix.lower()
    if 1 < len(suffix) <= MAX_SUFFIX_LENGTH and suffix[1:].isalnum():
        return digest + suffix
    return digest


class ThumbnailHandler:
    """Downloads the thumbnails listed in an item into a cache directory.

    Already cached URLs are skipped, so a retried item only fetches what is
    still missing.
    """

    def __init__(self, client: httpx.Client, cache_dir: Path) -> None:
        """Initialize the handler.

        Args:
            client: HTTP client used for downloads.
            cache_dir: Directory receiving the images.
        """
        self._client = client
        self._cache_dir = Path(cache_dir)

    def cache_path(self, url: str) -> Path:
        """Get where a thumbnail URL is cached."""
        return self._cache_dir / cache_filename(url)

    def execute(self, item: SyncItem) -> None:
        """Download every missing thumbnail of the item."""
        if not isinstance(item.payload, ThumbnailsPayload):
            raise PermanentSyncError(f"{item.id}: expected a thumbnails payload")

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        downloaded = 0
        for url in item.payload.urls:
            target = self.cache_path(url)
            if target.exists():
                continue

            try:
                response = self._client.get(url)
            except httpx.RequestError as e:
                raise translate_request_error(e) from e
            raise_for_sync_status(response)

            # Write then rename so a partial file is never taken as cached
            partial = target.with_name(target.name + ".part")
            partial.write_bytes(response.content)
            partial.replace(target)
            downloaded += 1

        logger.debug(
            "Thumbnails for %s: %d downloaded, %d cached",
            item.id,
            downloaded,
            len(item.payload.urls) - downloaded,
        )
