# src/podcast_deploy/services/adapters/ftp.py
"""FTP / explicit FTPS adapter built on :mod:`ftplib`."""

from __future__ import annotations

import ftplib
import io
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.adapters.base import DestinationAdapter, join_remote
from podcast_deploy.services.destination_config import FtpConfig

logger = logging.getLogger(__name__)

FTP_FILE_UNAVAILABLE = "550"

FtpFactory = Callable[[bool, float], ftplib.FTP]


def _default_factory(secure: bool, timeout: float) -> ftplib.FTP:
    if secure:
        return ftplib.FTP_TLS(timeout=timeout)
    return ftplib.FTP(timeout=timeout)


def _absolute(path: str) -> str:
    # Absolute paths keep the server's working directory out of the picture.
    return f"/{path}" if path else "/"


class FtpStore:
    """Remote store over an authenticated FTP control connection."""

    def __init__(self, ftp: ftplib.FTP, base_path: str) -> None:
        self.ftp = ftp
        self.base_path = base_path

    def remote(self, path: str) -> str:
        return _absolute(join_remote(self.base_path, path))

    def get(self, path: str) -> bytes | None:
        buffer = io.BytesIO()
        try:
            self.ftp.retrbinary(f"RETR {self.remote(path)}", buffer.write)
        except ftplib.error_perm as exc:
            if str(exc).startswith(FTP_FILE_UNAVAILABLE):
                return None
            raise
        return buffer.getvalue()

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        self.ftp.storbinary(f"STOR {self.remote(path)}", io.BytesIO(data))

    def mkdir_recursive(self, path: str) -> None:
        full = join_remote(self.base_path, path)
        current = ""
        for segment in full.split("/"):
            if not segment:
                continue
            current = f"{current}/{segment}"
            try:
                self.ftp.mkd(current)
            except ftplib.error_perm:
                # Most servers answer 550 for an existing directory; confirm it is there.
                self.ftp.cwd(current)
                self.ftp.cwd("/")

    def close(self) -> None:
        try:
            self.ftp.quit()
        except ftplib.all_errors:
            self.ftp.close()


class FtpAdapter(DestinationAdapter):
    mode = DestinationMode.FTP

    def __init__(self, ftp_factory: FtpFactory | None = None) -> None:
        self.ftp_factory = ftp_factory or _default_factory

    def connect(self, config: FtpConfig) -> ftplib.FTP:
        ftp = self.ftp_factory(config.secure, settings.deploy_connect_timeout_seconds)
        ftp.connect(config.host, config.port, timeout=settings.deploy_connect_timeout_seconds)
        ftp.login(config.username, config.password)
        if config.secure and isinstance(ftp, ftplib.FTP_TLS):
            ftp.prot_p()
        ftp.set_pasv(True)
        if ftp.sock is not None:
            ftp.sock.settimeout(settings.deploy_transfer_timeout_seconds)
        logger.debug("Connected to FTP %s:%s", config.host, config.port)
        return ftp

    @contextmanager
    def open_store(self, config: FtpConfig, *, podcast_id: str | None = None) -> Iterator[FtpStore]:
        store = FtpStore(self.connect(config), config.path)
        try:
            yield store
        finally:
            store.close()

    def probe(self, store: FtpStore, config: FtpConfig) -> None:
        store.mkdir_recursive("")
