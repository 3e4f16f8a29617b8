"""Tests for the thumbnail handler."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from streamsync.core.types import SyncType
from streamsync.handlers.thumbnails import ThumbnailHandler, cache_filename
from streamsync.scheduler.errors import NetworkUnavailableError, PermanentSyncError, ServerError
from streamsync.scheduler.payloads import ThumbnailsPayload
from streamsync.scheduler.types import SyncItem

URL_A = "https://cdn.example.com/thumbs/a.jpg"
URL_B = "https://cdn.example.com/thumbs/b.jpg"


def make_item(*urls: str) -> SyncItem:
    return SyncItem(id="thumbnails", type=SyncType.THUMBNAILS, payload=ThumbnailsPayload(urls=urls))


class TestThumbnailHandler:
    """Tests for ThumbnailHandler."""

    def test_cache_filename_is_flat(self) -> None:
        assert "/" not in cache_filename(URL_A)

    def test_cache_filename_keeps_extension(self) -> None:
        name = cache_filename(URL_A)

        assert name.endswith(".jpg")
        assert name != cache_filename(URL_B)

    def test_cache_filename_drops_odd_extension(self) -> None:
        assert "." not in cache_filename("https://cdn.example.com/thumbs/a.j-pg")
        assert "." not in cache_filename("https://cdn.example.com/thumbs/a.averylongext")

    def test_long_url(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Signed URLs longer than a file name are still cached."""
        url = URL_A + "?signature=" + "x" * 400
        httpx_mock.add_response(url=url, content=b"jpeg-long")

        with httpx.Client() as client:
            handler = ThumbnailHandler(client, tmp_path)
            handler.execute(make_item(url))

            assert len(handler.cache_path(url).name) < 255
            assert handler.cache_path(url).read_bytes() == b"jpeg-long"

    def test_downloads_into_cache(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=URL_A, content=b"jpeg-a")
        httpx_mock.add_response(url=URL_B, content=b"jpeg-b")
        cache_dir = tmp_path / "thumbs"

        with httpx.Client() as client:
            handler = ThumbnailHandler(client, cache_dir)
            handler.execute(make_item(URL_A, URL_B))

            assert handler.cache_path(URL_A).read_bytes() == b"jpeg-a"
            assert handler.cache_path(URL_B).read_bytes() == b"jpeg-b"

    def test_skips_cached(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=URL_B, content=b"jpeg-b")

        with httpx.Client() as client:
            handler = ThumbnailHandler(client, tmp_path)
            handler.cache_path(URL_A).write_bytes(b"cached")
            handler.execute(make_item(URL_A, URL_B))

        assert len(httpx_mock.get_requests()) == 1
        assert handler.cache_path(URL_A).read_bytes() == b"cached"

    def test_failed_download_leaves_no_file(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_response(url=URL_A, status_code=503)

        with httpx.Client() as client:
            handler = ThumbnailHandler(client, tmp_path)
            with pytest.raises(ServerError):
                handler.execute(make_item(URL_A))

        assert list(tmp_path.iterdir()) == []

    def test_network_error(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        httpx_mock.add_exception(httpx.ConnectError("offline"))

        with httpx.Client() as client:
            with pytest.raises(NetworkUnavailableError):
                ThumbnailHandler(client, tmp_path).execute(make_item(URL_A))

    def test_wrong_payload(self, tmp_path: Path) -> None:
        with httpx.Client() as client:
            with pytest.raises(PermanentSyncError):
                ThumbnailHandler(client, tmp_path).execute(
                    SyncItem(id="x", type=SyncType.THUMBNAILS)
                )
