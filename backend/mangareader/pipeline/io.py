from __future__ import annotations

from typing import Optional

import httpx

from mangareader.core.storage import StorageService


class PageImageFetcher:
    """Loads page image bytes from an absolute URL or from our own storage.

    Relative references (``/artifacts/<key>``, ``/<key>`` or a bare key) are
    read through the storage service.
    """

    def __init__(
        self,
        storage: StorageService,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._storage = storage
        self._timeout = timeout
        self._transport = transport

    def __call__(self, image_url: str) -> bytes:
        if image_url.startswith(("http://", "https://")):
            with httpx.Client(timeout=self._timeout, transport=self._transport, follow_redirects=True) as client:
                resp = client.get(image_url)
                resp.raise_for_status()
                return resp.content

        key = image_url
        if key.startswith("/artifacts/"):
            key = key[len("/artifacts/"):]
        key = key.lstrip("/")
        if not key:
            raise ValueError("empty image reference")
        with self._storage.get_artifact(key) as f:
            return f.read()
