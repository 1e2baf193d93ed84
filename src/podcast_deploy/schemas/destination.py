# src/podcast_deploy/schemas/destination.py
"""Destination create/update/read schemas.

Creation payloads form a tagged union keyed by ``mode``; everything except
``name`` and ``public_base_url`` ends up in the encrypted config blob.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator, model_validator

from podcast_deploy.models.destination import DestinationMode


def _optional_url(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


class _DestinationCreateBase(BaseModel):
    name: str = Field(..., min_length=1, description="Display label")
    public_base_url: HttpUrl | None = Field(None, description="Public base URL for feed links")

    model_config = ConfigDict(extra="forbid")

    normalize_public_base_url = field_validator("public_base_url", mode="before")(_optional_url)

    def config_fields(self) -> dict[str, Any]:
        """Return the fields that belong in the encrypted config blob."""
        data = self.model_dump(mode="json", exclude={"mode", "name", "public_base_url"})
        return data


class ObjectStorageCreate(_DestinationCreateBase):
    mode: Literal["S3"] = "S3"
    bucket: str = Field(..., min_length=1, description="Bucket is required")
    prefix: str = ""
    region: str = Field(..., min_length=1, description="Region is required")
    endpoint_url: HttpUrl | None = None
    access_key_id: str = Field(..., min_length=1, description="Access key is required")
    secret_access_key: str = Field(..., min_length=1, description="Secret key is required")

    normalize_endpoint_url = field_validator("endpoint_url", mode="before")(_optional_url)


class FtpCreate(_DestinationCreateBase):
    mode: Literal["FTP"] = "FTP"
    host: str = Field(..., min_length=1)
    port: int = Field(21, ge=1, le=65535)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    path: str = ""
    secure: bool = False


class SftpCreate(_DestinationCreateBase):
    mode: Literal["SFTP"] = "SFTP"
    host: str = Field(..., min_length=1)
    port: int = Field(22, ge=1, le=65535)
    username: str = Field(..., min_length=1)
    password: str | None = None
    private_key: str | None = None
    path: str = ""

    @model_validator(mode="after")
    def _require_credential(self) -> SftpCreate:
        if not (self.password or (self.private_key or "").strip()):
            raise ValueError("Provide either password or private_key")
        return self


class WebdavCreate(_DestinationCreateBase):
    mode: Literal["WebDAV"] = "WebDAV"
    url: HttpUrl
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    path: str = ""


class PeerStoreCreate(_DestinationCreateBase):
    mode: Literal["IPFS"] = "IPFS"
    api_url: HttpUrl = Field(..., description="IPFS API URL, e.g. http://127.0.0.1:5001")
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    path: str = ""
    gateway_url: HttpUrl | None = None

    normalize_gateway_url = field_validator("gateway_url", mode="before")(_optional_url)


class SmbCreate(_DestinationCreateBase):
    mode: Literal["SMB"] = "SMB"
    host: str = Field(..., min_length=1)
    port: int | None = Field(None, ge=1, le=65535)
    share: str = Field(..., min_length=1, description="Share name is required")
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    domain: str = ""
    path: str = ""


DestinationCreate = Annotated[
    ObjectStorageCreate | FtpCreate | SftpCreate | WebdavCreate | PeerStoreCreate | SmbCreate,
    Field(discriminator="mode"),
]

_CREATE_ADAPTER: TypeAdapter[Any] = TypeAdapter(DestinationCreate)


def parse_destination_create(payload: dict[str, Any]) -> Any:
    """Validate a raw creation payload into the matching per-mode schema.

    A mode given in any case (``webdav``, ``s3``) is normalized first.
    """
    data = dict(payload)
    if isinstance(data.get("mode"), str):
        data["mode"] = DestinationMode.parse(data["mode"]).value
    return _CREATE_ADAPTER.validate_python(data)


class DestinationUpdate(BaseModel):
    """Partial update; unspecified fields are left untouched."""

    mode: DestinationMode | None = None
    name: str | None = Field(None, min_length=1)
    public_base_url: HttpUrl | None = None
    # S3
    bucket: str | None = None
    prefix: str | None = None
    region: str | None = None
    endpoint_url: HttpUrl | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    # FTP / SFTP / SMB
    host: str | None = None
    port: int | None = Field(None, ge=1, le=65535)
    username: str | None = None
    password: str | None = None
    path: str | None = None
    secure: bool | None = None
    private_key: str | None = None
    # WebDAV
    url: HttpUrl | None = None
    # IPFS
    api_url: HttpUrl | None = None
    api_key: str | None = None
    gateway_url: HttpUrl | None = None
    # SMB
    share: str | None = None
    domain: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("mode", mode="before")
    @classmethod
    def parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return DestinationMode.parse(value)
        return value

    @model_validator(mode="after")
    def _credentials_in_pairs(self) -> DestinationUpdate:
        fields = self.model_fields_set
        if ("access_key_id" in fields) != ("secret_access_key" in fields):
            raise ValueError(
                "Provide both access_key_id and secret_access_key when updating credentials"
            )
        return self

    def config_changes(self) -> dict[str, Any]:
        """Return explicitly set fields destined for the encrypted blob."""
        return self.model_dump(
            mode="json",
            include=self.model_fields_set,
            exclude={"mode", "name", "public_base_url"},
        )


class DestinationRead(BaseModel):
    """Destination as shown to operators; secrets are redacted."""

    id: str
    podcast_id: str
    mode: DestinationMode
    name: str
    public_base_url: str | None
    created_at: datetime
    updated_at: datetime
    has_credentials: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
