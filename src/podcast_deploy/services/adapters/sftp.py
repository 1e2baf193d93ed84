# src/podcast_deploy/services/adapters/sftp.py
"""SFTP adapter built on paramiko."""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import paramiko

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.adapters.base import DestinationAdapter, join_remote
from podcast_deploy.services.destination_config import SftpConfig
from podcast_deploy.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

_KEY_TYPES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


def load_private_key(text: str) -> paramiko.PKey:
    """Parse an OpenSSH/PEM private key given as text."""
    last_error: Exception | None = None
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(text.strip() + "\n"))
        except (paramiko.SSHException, ValueError) as exc:
            last_error = exc
    raise ConfigurationError(f"Unsupported or invalid private key: {last_error}")


class SftpStore:
    """Remote store over an open paramiko SFTP channel."""

    def __init__(self, sftp: paramiko.SFTPClient, base_path: str) -> None:
        self.sftp = sftp
        self.base_path = base_path

    def remote(self, path: str) -> str:
        full = join_remote(self.base_path, path)
        if self.base_path.startswith("/"):
            return f"/{full}"
        return full or "."

    def get(self, path: str) -> bytes | None:
        buffer = io.BytesIO()
        try:
            self.sftp.getfo(self.remote(path), buffer)
        except FileNotFoundError:
            return None
        return buffer.getvalue()

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        self.sftp.putfo(io.BytesIO(data), self.remote(path), file_size=len(data))

    def mkdir_recursive(self, path: str) -> None:
        full = join_remote(self.base_path, path)
        current = "/" if self.base_path.startswith("/") else ""
        for segment in full.split("/"):
            if not segment:
                continue
            current = f"{current}{segment}"
            try:
                self.sftp.stat(current)
            except FileNotFoundError:
                self.sftp.mkdir(current)
            current = f"{current}/"


class SftpAdapter(DestinationAdapter):
    mode = DestinationMode.SFTP

    def __init__(self, client_factory: Callable[[], paramiko.SSHClient] | None = None) -> None:
        self.client_factory = client_factory or paramiko.SSHClient

    def connect(self, config: SftpConfig) -> paramiko.SSHClient:
        kwargs: dict[str, object] = {
            "hostname": config.host,
            "port": config.port,
            "username": config.username,
            "timeout": settings.deploy_connect_timeout_seconds,
            "banner_timeout": settings.deploy_connect_timeout_seconds,
            "auth_timeout": settings.deploy_connect_timeout_seconds,
            "look_for_keys": False,
            "allow_agent": False,
        }
        if (config.private_key or "").strip():
            kwargs["pkey"] = load_private_key(config.private_key or "")
        elif config.password:
            kwargs["password"] = config.password
        else:
            raise ConfigurationError("Provide either password or private_key")

        client = self.client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(**kwargs)
        logger.debug("Connected to SFTP %s:%s", config.host, config.port)
        return client

    @contextmanager
    def open_store(self, config: SftpConfig, *, podcast_id: str | None = None) -> Iterator[SftpStore]:
        client = self.connect(config)
        try:
            sftp = client.open_sftp()
            channel = sftp.get_channel()
            if channel is not None:
                channel.settimeout(settings.deploy_transfer_timeout_seconds)
            try:
                yield SftpStore(sftp, config.path)
            finally:
                sftp.close()
        finally:
            client.close()

    def probe(self, store: SftpStore, config: SftpConfig) -> None:
        store.mkdir_recursive("")
