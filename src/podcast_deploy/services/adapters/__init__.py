# src/podcast_deploy/services/adapters/__init__.py
"""Protocol adapters and the registry resolving one per destination mode."""

from __future__ import annotations

from podcast_deploy.models.destination import DestinationMode

from .base import DestinationAdapter, RemoteStore
from .ftp import FtpAdapter
from .object_storage import ObjectStorageAdapter
from .peer_store import PeerStoreAdapter
from .sftp import SftpAdapter
from .smb import SmbAdapter
from .webdav import WebdavAdapter

ADAPTER_TYPES: dict[DestinationMode, type[DestinationAdapter]] = {
    DestinationMode.OBJECT_STORAGE: ObjectStorageAdapter,
    DestinationMode.FTP: FtpAdapter,
    DestinationMode.SFTP: SftpAdapter,
    DestinationMode.WEBDAV: WebdavAdapter,
    DestinationMode.PEER_STORE: PeerStoreAdapter,
    DestinationMode.SMB: SmbAdapter,
}


def get_adapter(mode: DestinationMode | str) -> DestinationAdapter:
    """Return a fresh adapter for ``mode``."""
    if not isinstance(mode, DestinationMode):
        mode = DestinationMode.parse(mode)
    return ADAPTER_TYPES[mode]()


def default_adapters() -> dict[DestinationMode, DestinationAdapter]:
    return {mode: adapter_type() for mode, adapter_type in ADAPTER_TYPES.items()}


__all__ = [
    "ADAPTER_TYPES",
    "DestinationAdapter",
    "FtpAdapter",
    "ObjectStorageAdapter",
    "PeerStoreAdapter",
    "RemoteStore",
    "SftpAdapter",
    "SmbAdapter",
    "WebdavAdapter",
    "default_adapters",
    "get_adapter",
]
