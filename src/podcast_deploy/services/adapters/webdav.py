# src/podcast_deploy/services/adapters/webdav.py
"""WebDAV adapter speaking plain HTTP through httpx."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from urllib.parse import quote

import httpx

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.adapters.base import DestinationAdapter, join_remote
from podcast_deploy.services.destination_config import WebdavConfig

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_MOVED_PERMANENTLY = 301
HTTP_METHOD_NOT_ALLOWED = 405
TEST_FILENAME = ".podcast-deploy-test"


class WebdavError(RuntimeError):
    """Raised when the WebDAV server answers with an unexpected status."""


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    reason = response.reason_phrase or "error"
    raise WebdavError(f"{action} failed: {response.status_code} {reason}")


class WebdavStore:
    """Remote store addressed by paths below the collection URL."""

    def __init__(self, client: httpx.Client, base_path: str) -> None:
        self.client = client
        self.base_path = base_path

    def url(self, path: str) -> str:
        return quote(join_remote(self.base_path, path))

    def get(self, path: str) -> bytes | None:
        response = self.client.get(self.url(path))
        if response.status_code == HTTP_NOT_FOUND:
            return None
        _raise_for_status(response, f"GET {path}")
        return response.content

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        headers = {"Content-Type": content_type} if content_type else None
        response = self.client.put(self.url(path), content=data, headers=headers)
        _raise_for_status(response, f"PUT {path}")

    def delete(self, path: str) -> None:
        response = self.client.delete(self.url(path))
        if response.status_code != HTTP_NOT_FOUND:
            _raise_for_status(response, f"DELETE {path}")

    def mkdir_recursive(self, path: str) -> None:
        current = ""
        for segment in join_remote(self.base_path, path).split("/"):
            if not segment:
                continue
            current = f"{current}/{segment}" if current else segment
            response = self.client.request("MKCOL", quote(current) + "/")
            # 405: collection already exists. 301: server redirects to the slash form.
            if response.is_success or response.status_code in (
                HTTP_METHOD_NOT_ALLOWED,
                HTTP_MOVED_PERMANENTLY,
            ):
                continue
            # Some servers refuse MKCOL but accept PUT; a real failure surfaces on upload.
            logger.debug("MKCOL %s answered %s", current, response.status_code)


class WebdavAdapter(DestinationAdapter):
    mode = DestinationMode.WEBDAV

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self.transport = transport

    def create_client(self, config: WebdavConfig) -> httpx.Client:
        base_url = config.url.strip()
        if not base_url.endswith("/"):
            base_url = f"{base_url}/"
        return httpx.Client(
            base_url=base_url,
            auth=httpx.BasicAuth(config.username, config.password),
            timeout=httpx.Timeout(
                settings.deploy_transfer_timeout_seconds,
                connect=settings.deploy_connect_timeout_seconds,
            ),
            transport=self.transport,
        )

    @contextmanager
    def open_store(self, config: WebdavConfig, *, podcast_id: str | None = None) -> Iterator[WebdavStore]:
        with self.create_client(config) as client:
            yield WebdavStore(client, config.path)

    def probe(self, store: WebdavStore, config: WebdavConfig) -> None:
        # PUT and DELETE a scratch file; some servers refuse MKCOL yet accept PUT.
        store.put(TEST_FILENAME, b"")
        store.delete(TEST_FILENAME)
