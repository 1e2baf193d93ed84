# src/podcast_deploy/services/adapters/smb.py
"""SMB share adapter built on smbprotocol's ``smbclient`` API."""

from __future__ import annotations

import errno
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import smbclient
from smbprotocol.exceptions import SMBOSError

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.adapters.base import DestinationAdapter, join_remote
from podcast_deploy.services.destination_config import SmbConfig

logger = logging.getLogger(__name__)

DEFAULT_SMB_PORT = 445


def _clean(part: str) -> str:
    return part.strip().strip("/\\")


def smb_username(config: SmbConfig) -> str:
    """Qualify the user with its domain, ``DOMAIN\\user``, when one is configured."""
    domain = config.domain.strip()
    return f"{domain}\\{config.username}" if domain else config.username


def _is_missing(exc: OSError) -> bool:
    return isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT


class SmbStore:
    """Remote store rooted at ``\\\\host\\share\\path``."""

    def __init__(
        self,
        config: SmbConfig,
        client: Any = smbclient,
        connection_cache: dict[str, Any] | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.connection_cache = connection_cache
        self.port = config.port or DEFAULT_SMB_PORT
        self.base_path = config.path.replace("\\", "/")

    def unc(self, path: str) -> str:
        relative = join_remote(self.base_path, path).replace("/", "\\")
        root = f"\\\\{_clean(self.config.host)}\\{_clean(self.config.share)}"
        return f"{root}\\{relative}" if relative else root

    def get(self, path: str) -> bytes | None:
        try:
            with self.client.open_file(
                self.unc(path), mode="rb", port=self.port, connection_cache=self.connection_cache
            ) as handle:
                return handle.read()
        except SMBOSError as exc:
            if _is_missing(exc):
                return None
            raise

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        with self.client.open_file(
            self.unc(path), mode="wb", port=self.port, connection_cache=self.connection_cache
        ) as handle:
            handle.write(data)

    def mkdir_recursive(self, path: str) -> None:
        if not join_remote(self.base_path, path):
            return
        self.client.makedirs(
            self.unc(path), exist_ok=True, port=self.port, connection_cache=self.connection_cache
        )

    def list(self, path: str = "") -> list[str]:
        return self.client.listdir(
            self.unc(path), port=self.port, connection_cache=self.connection_cache
        )


class SmbAdapter(DestinationAdapter):
    mode = DestinationMode.SMB

    def __init__(self, client: Any = smbclient) -> None:
        self.client = client

    @contextmanager
    def open_store(self, config: SmbConfig, *, podcast_id: str | None = None) -> Iterator[SmbStore]:
        server = _clean(config.host)
        port = config.port or DEFAULT_SMB_PORT
        # Sessions live in this store's cache rather than smbclient's process-wide one.
        cache: dict[str, Any] = {}
        self.client.register_session(
            server,
            username=smb_username(config),
            password=config.password,
            port=port,
            connection_timeout=int(settings.deploy_connect_timeout_seconds),
            connection_cache=cache,
        )
        logger.debug("Registered SMB session for %s:%s", server, port)
        try:
            yield SmbStore(config, self.client, connection_cache=cache)
        finally:
            self.client.reset_connection_cache(connection_cache=cache)

    def probe(self, store: SmbStore, config: SmbConfig) -> None:
        store.mkdir_recursive("")
        store.list()
