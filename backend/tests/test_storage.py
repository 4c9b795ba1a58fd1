from __future__ import annotations

import httpx
import pytest

from mangareader.core.storage import LocalStorageService, translated_page_key
from mangareader.pipeline.io import PageImageFetcher


def test_local_storage_round_trip(storage):
    key = storage.save_artifact(translated_page_key("abc", 2, "en"), b"png-bytes")

    assert key == "translated/abc_2_en.png"
    assert storage.get_public_url(key) == "/artifacts/translated/abc_2_en.png"
    with storage.get_artifact(key) as f:
        assert f.read() == b"png-bytes"


def test_local_storage_missing_key(storage):
    with pytest.raises(FileNotFoundError):
        storage.get_artifact("translated/missing.png")


def test_fetcher_downloads_absolute_urls(storage):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.path == "/missing.png":
            return httpx.Response(404)
        return httpx.Response(200, content=b"remote")

    fetch = PageImageFetcher(storage, transport=httpx.MockTransport(handler))

    assert fetch("https://cdn.example.com/ok.png") == b"remote"
    with pytest.raises(httpx.HTTPStatusError):
        fetch("https://cdn.example.com/missing.png")
    assert seen == ["https://cdn.example.com/ok.png", "https://cdn.example.com/missing.png"]


@pytest.mark.parametrize("ref", ["/artifacts/pages/1.png", "/pages/1.png", "pages/1.png"])
def test_fetcher_reads_relative_refs_from_storage(tmp_path, ref):
    storage = LocalStorageService(tmp_path)
    storage.save_artifact("pages/1.png", b"local")

    assert PageImageFetcher(storage)(ref) == b"local"


def test_fetcher_rejects_empty_ref(storage):
    with pytest.raises(ValueError):
        PageImageFetcher(storage)("/artifacts/")


@pytest.mark.parametrize("key", ["../escaped.png", "translated/../../escaped.png", "/etc/passwd", "", "."])
def test_local_storage_rejects_keys_outside_root(tmp_path, key):
    storage = LocalStorageService(tmp_path / "artifacts")

    with pytest.raises(ValueError):
        storage.save_artifact(key, b"png")
    with pytest.raises(ValueError):
        storage.get_artifact(key)
    assert not (tmp_path / "escaped.png").exists()


def test_local_storage_allows_dots_inside_names(storage):
    key = storage.save_artifact("translated/a..b_1_en.png", b"x")

    assert key == "translated/a..b_1_en.png"
