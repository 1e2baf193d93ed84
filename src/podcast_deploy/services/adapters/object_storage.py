# src/podcast_deploy/services/adapters/object_storage.py
"""S3-compatible object storage adapter (AWS S3, R2, MinIO, ...)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from podcast_deploy.core.settings import settings
from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.adapters.base import DestinationAdapter, join_remote
from podcast_deploy.services.artifacts import SIDECAR_SUFFIX
from podcast_deploy.services.destination_config import ObjectStorageConfig

logger = logging.getLogger(__name__)

# Sidecars also carry their hash as object metadata so a HEAD request suffices.
SIDECAR_METADATA_KEY = "md5"
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}

ClientFactory = Callable[[ObjectStorageConfig], Any]


def _is_missing(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return error.get("Code") in _MISSING_CODES or status == 404


def s3_error_message(exc: ClientError) -> str:
    error = exc.response.get("Error", {})
    code = error.get("Code")
    message = error.get("Message") or str(exc)
    if code and code not in message:
        return f"{code}: {message}"
    return message


def create_client(config: ObjectStorageConfig) -> Any:
    """Build a boto3 S3 client for ``config`` with bounded timeouts."""
    session = boto3.session.Session(
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=config.region,
    )
    return session.client(
        "s3",
        endpoint_url=(config.endpoint_url or "").strip() or None,
        config=BotoConfig(
            connect_timeout=settings.deploy_connect_timeout_seconds,
            read_timeout=settings.deploy_transfer_timeout_seconds,
            retries={"max_attempts": 2},
        ),
    )


class ObjectStorageStore:
    """Remote store over one bucket and key prefix."""

    def __init__(self, client: Any, config: ObjectStorageConfig) -> None:
        self.client = client
        self.config = config

    def key(self, path: str) -> str:
        return join_remote(self.config.prefix, path)

    def get(self, path: str) -> bytes | None:
        key = self.key(path)
        if path.endswith(SIDECAR_SUFFIX):
            try:
                head = self.client.head_object(Bucket=self.config.bucket, Key=key)
            except ClientError as exc:
                if _is_missing(exc):
                    return None
                raise
            stored = (head.get("Metadata") or {}).get(SIDECAR_METADATA_KEY)
            if stored:
                return stored.encode("ascii")
        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                return None
            raise
        return response["Body"].read()

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        params: dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Key": self.key(path),
            "Body": data,
        }
        if content_type:
            params["ContentType"] = content_type
        if path.endswith(SIDECAR_SUFFIX):
            params["Metadata"] = {SIDECAR_METADATA_KEY: data.decode("ascii").strip()}
        self.client.put_object(**params)

    def mkdir_recursive(self, path: str) -> None:
        """Object storage has no directories."""


class ObjectStorageAdapter(DestinationAdapter):
    mode = DestinationMode.OBJECT_STORAGE

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or create_client

    @contextmanager
    def open_store(
        self, config: ObjectStorageConfig, *, podcast_id: str | None = None
    ) -> Iterator[ObjectStorageStore]:
        client = self.client_factory(config)
        try:
            yield ObjectStorageStore(client, config)
        except ClientError as exc:
            raise RuntimeError(s3_error_message(exc)) from exc
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                close()

    def probe(self, store: ObjectStorageStore, config: ObjectStorageConfig) -> None:
        store.client.head_bucket(Bucket=config.bucket)
