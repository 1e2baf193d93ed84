# src/podcast_deploy/services/adapters/peer_store.py
"""Content-addressed peer store adapter (IPFS via the Kubo RPC API).

Files are written into the node's mutable file system (MFS) under
``/<path or "podcasts">/<podcast_id>``. Because enclosure URLs must point at
the directory CID, media is written first, then the feed is re-rendered
against ``<gateway>/<cid>/`` and written last, and the final directory is
pinned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import httpx

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.schemas.deploy import DeployEpisode, DeployResult
from podcast_deploy.services.adapters.base import DestinationAdapter, FeedRenderer, join_remote
from podcast_deploy.services.artifacts import feed_artifact, media_artifacts
from podcast_deploy.services.content_sync import ContentDiffSync
from podcast_deploy.services.destination_config import PeerStoreConfig
from podcast_deploy.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "podcasts"
API_SUFFIX = "/api/v0"
_MISSING_MARKERS = ("does not exist", "no such file", "not found")


class PeerStoreError(RuntimeError):
    """Raised when the Kubo RPC API rejects a request."""


def normalize_api_url(url: str) -> str:
    trimmed = url.strip().rstrip("/")
    return trimmed if trimmed.endswith(API_SUFFIX) else f"{trimmed}{API_SUFFIX}"


def _auth_headers(config: PeerStoreConfig) -> dict[str, str]:
    if (config.api_key or "").strip():
        return {"Authorization": f"Bearer {config.api_key.strip()}"}
    return {}


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("Message"):
        return str(payload["Message"])
    return response.text[:500] or (response.reason_phrase or "error")


class PeerStoreStore:
    """Remote store over one MFS directory."""

    def __init__(self, client: httpx.Client, root: str | None) -> None:
        self.client = client
        self.root = root

    def _rpc(self, endpoint: str, params: dict[str, Any] | None = None, **kwargs: Any) -> httpx.Response:
        response = self.client.post(endpoint, params=params, **kwargs)
        if not response.is_success:
            raise PeerStoreError(
                f"{endpoint} failed: HTTP {response.status_code} {_error_message(response)}"
            )
        return response

    def mfs_path(self, path: str) -> str:
        if self.root is None:
            raise ConfigurationError("IPFS deploy requires a podcast id to address its files")
        return "/" + join_remote(self.root, path)

    def identify(self) -> dict[str, Any]:
        return self._rpc("id").json()

    def get(self, path: str) -> bytes | None:
        target = self.mfs_path(path)
        response = self.client.post("files/read", params={"arg": target})
        if response.is_success:
            return response.content
        message = _error_message(response)
        if any(marker in message.lower() for marker in _MISSING_MARKERS):
            return None
        raise PeerStoreError(f"files/read failed: HTTP {response.status_code} {message}")

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        self._rpc(
            "files/write",
            params={
                "arg": self.mfs_path(path),
                "create": "true",
                "truncate": "true",
                "parents": "true",
            },
            files={"file": ("file", data, content_type or "application/octet-stream")},
        )

    def mkdir_recursive(self, path: str) -> None:
        self._rpc("files/mkdir", params={"arg": self.mfs_path(path), "parents": "true"})

    def directory_cid(self) -> str:
        stat = self._rpc("files/stat", params={"arg": self.mfs_path("")}).json()
        cid = stat.get("Hash")
        if not cid:
            raise PeerStoreError("files/stat returned no CID")
        return str(cid)

    def pin(self, cid: str) -> None:
        self._rpc("pin/add", params={"arg": cid, "recursive": "true"})


class PeerStoreAdapter(DestinationAdapter):
    mode = DestinationMode.PEER_STORE

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self.transport = transport

    def create_client(self, config: PeerStoreConfig) -> httpx.Client:
        auth = None
        if not (config.api_key or "").strip() and config.username and config.password is not None:
            auth = httpx.BasicAuth(config.username, config.password)
        return httpx.Client(
            base_url=normalize_api_url(config.api_url) + "/",
            headers=_auth_headers(config),
            auth=auth,
            timeout=httpx.Timeout(
                settings.deploy_transfer_timeout_seconds,
                connect=settings.deploy_connect_timeout_seconds,
            ),
            transport=self.transport,
        )

    @staticmethod
    def namespace(config: PeerStoreConfig, podcast_id: str) -> str:
        return join_remote(config.path or DEFAULT_NAMESPACE, podcast_id)

    @contextmanager
    def open_store(
        self, config: PeerStoreConfig, *, podcast_id: str | None = None
    ) -> Iterator[PeerStoreStore]:
        root = self.namespace(config, podcast_id) if podcast_id else None
        with self.create_client(config) as client:
            yield PeerStoreStore(client, root)

    def probe(self, store: PeerStoreStore, config: PeerStoreConfig) -> None:
        store.identify()

    def gateway_base(self, config: PeerStoreConfig, cid: str) -> str:
        gateway = (config.gateway_url or settings.ipfs_default_gateway).strip().rstrip("/")
        return f"{gateway}/{cid}/"

    def sync_all(
        self,
        store: PeerStoreStore,
        config: PeerStoreConfig,
        result: DeployResult,
        *,
        feed_document: str,
        episodes: Sequence[DeployEpisode],
        artwork_path: str | None,
        public_base_url: str | None,
        render_feed: FeedRenderer | None,
    ) -> None:
        store.mkdir_recursive("")
        sync = ContentDiffSync(store, result)
        for artifact in media_artifacts(episodes, artwork_path):
            sync.sync_artifact(artifact)

        gateway_url = self.gateway_base(config, store.directory_cid())
        document = render_feed(gateway_url) if render_feed is not None else feed_document
        sync.sync_artifact(feed_artifact(document))

        final_cid = store.directory_cid()
        store.pin(final_cid)
        logger.info("Pinned %s for %s", final_cid, store.root)
