# src/podcast_deploy/services/content_sync.py
"""Content-diff synchronization against a remote store.

Each remote file ``P`` is paired with a sidecar ``P.md5`` holding the hex MD5
of the last uploaded body. A file is uploaded only when the sidecar is
missing or disagrees; the body is always written before its sidecar so an
interrupted upload is retried on the next run.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
from enum import Enum
from typing import Protocol

from podcast_deploy.schemas.deploy import DeployResult
from podcast_deploy.services.artifacts import SIDECAR_SUFFIX, Artifact

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Minimal file operations a protocol adapter exposes for syncing.

    Paths are relative to the destination's base path and use ``/``.
    """

    def get(self, path: str) -> bytes | None:
        """Return the file body, or None when the file does not exist."""

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        ...

    def mkdir_recursive(self, path: str) -> None:
        ...


class SyncOutcome(str, Enum):
    UPLOADED = "uploaded"
    SKIPPED = "skipped"


def content_hash(content: bytes) -> str:
    """Hex MD5 of ``content``; an identity check, not a security boundary."""
    return hashlib.md5(content, usedforsecurity=False).hexdigest()


def sidecar_path(path: str) -> str:
    return f"{path}{SIDECAR_SUFFIX}"


class ContentDiffSync:
    """Upload artifacts whose content differs from the remote copy.

    One instance serves one deploy session; directory creation is memoized
    for its lifetime.
    """

    def __init__(self, store: RemoteStore, result: DeployResult | None = None) -> None:
        self.store = store
        self.result = result if result is not None else DeployResult()
        self._created_dirs: set[str] = set()

    def _ensure_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if not parent or parent in self._created_dirs:
            return
        self.store.mkdir_recursive(parent)
        self._created_dirs.add(parent)

    def sync(self, path: str, content: bytes, content_type: str | None = None) -> SyncOutcome:
        digest = content_hash(content)
        existing = self.store.get(sidecar_path(path))
        if existing is not None and existing.decode("utf-8", errors="replace").strip() == digest:
            self.result.skipped += 1
            logger.debug("Skipping unchanged %s", path)
            return SyncOutcome.SKIPPED

        self._ensure_parent(path)
        self.store.put(path, content, content_type)
        self.store.put(sidecar_path(path), digest.encode("ascii"), "text/plain")
        self.result.uploaded += 1
        logger.debug("Uploaded %s (%d bytes)", path, len(content))
        return SyncOutcome.UPLOADED

    def sync_artifact(self, artifact: Artifact) -> SyncOutcome | None:
        """Sync one artifact; a failure is recorded as ``"<label>: <message>"``."""
        try:
            return self.sync(artifact.remote_path, artifact.load(), artifact.content_type)
        except Exception as exc:  # noqa: BLE001
            message = f"{artifact.label}: {describe_error(exc)}"
            logger.warning("Artifact failed: %s", message)
            self.result.errors.append(message)
            return None


def describe_error(exc: BaseException) -> str:
    """Render an exception as the short message stored in run logs."""
    text = str(exc).strip()
    if isinstance(exc, FileNotFoundError) and exc.filename:
        return f"No such file: {exc.filename}"
    return text or exc.__class__.__name__
