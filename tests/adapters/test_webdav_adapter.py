from __future__ import annotations

import base64

import httpx
import pytest

from podcast_deploy.services.adapters.webdav import TEST_FILENAME, WebdavAdapter

ROOT = "/remote.php/dav/files/me/"


class FakeDav:
    """Tiny WebDAV server keyed by request path."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.collections: set[str] = set()
        self.requests: list[tuple[str, str]] = []
        self.content_types: dict[str, str] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        expected = "Basic " + base64.b64encode(b"me:pw").decode()
        if request.headers.get("Authorization") != expected:
            return httpx.Response(401)
        if request.method == "MKCOL":
            if path in self.collections:
                return httpx.Response(405)
            self.collections.add(path)
            return httpx.Response(201)
        if request.method == "GET":
            if path not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[path])
        if request.method == "PUT":
            self.files[path] = request.content
            self.content_types[path] = request.headers.get("Content-Type", "")
            return httpx.Response(201)
        if request.method == "DELETE":
            self.files.pop(path, None)
            return httpx.Response(204)
        return httpx.Response(400)


CONFIG = {
    "url": "https://dav.example.com/remote.php/dav/files/me",
    "username": "me",
    "password": "pw",
    "path": "podcast shows",
}


@pytest.fixture()
def server() -> FakeDav:
    return FakeDav()


@pytest.fixture()
def adapter(server) -> WebdavAdapter:
    return WebdavAdapter(transport=httpx.MockTransport(server))


def test_deploy_creates_collections_and_uploads(adapter, server) -> None:
    result = adapter.deploy(CONFIG, None, "<rss/>", [], None)
    rerun = adapter.deploy(CONFIG, None, "<rss/>", [], None)

    assert (result.uploaded, result.errors) == (1, [])
    assert (rerun.uploaded, rerun.skipped) == (0, 1)
    assert f"{ROOT}podcast shows/" in server.collections
    assert server.files[f"{ROOT}podcast shows/feed.xml"] == b"<rss/>"
    assert server.content_types[f"{ROOT}podcast shows/feed.xml"] == "application/rss+xml"
    assert ("MKCOL", f"{ROOT}podcast shows/") in server.requests


def test_probe_puts_and_deletes_scratch_file(adapter, server) -> None:
    result = adapter.test(CONFIG)

    assert result.ok is True
    methods = [method for method, path in server.requests if path.endswith(TEST_FILENAME)]
    assert methods == ["PUT", "DELETE"]
    assert not any(path.endswith(TEST_FILENAME) for path in server.files)


def test_rejected_credentials_fail_the_upload(adapter) -> None:
    result = adapter.deploy({**CONFIG, "password": "nope"}, None, "<rss/>", [], None)

    assert result.uploaded == 0
    assert result.errors == ["Feed: GET feed.xml.md5 failed: 401 Unauthorized"]


def test_test_reports_http_failure(adapter) -> None:
    result = adapter.test({**CONFIG, "password": "nope"})

    assert result.ok is False
    assert result.error == f"PUT {TEST_FILENAME} failed: 401 Unauthorized"
