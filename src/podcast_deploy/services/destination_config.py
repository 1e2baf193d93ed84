# src/podcast_deploy/services/destination_config.py
"""Decrypted destination configuration.

The encrypted blob of a destination decrypts to a JSON object whose keys
depend on the destination mode. This module turns that object into typed,
immutable config values and owns the rules applied whenever the object is
built or merged.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.services.errors import ConfigurationError

SECRET_FIELDS = frozenset({"password", "secret_access_key", "private_key", "api_key"})
REDACTED = "****"


def normalize_path(path: str | None) -> str:
    """Trim ``path`` and give it exactly one trailing slash.

    An empty path stays empty so that it addresses the remote root.
    """
    trimmed = (path or "").strip()
    if not trimmed:
        return ""
    stripped = trimmed.rstrip("/")
    if not stripped:
        return "/"
    return f"{stripped}/"


@dataclass(frozen=True)
class ObjectStorageConfig:
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    prefix: str = ""
    endpoint_url: str | None = None


@dataclass(frozen=True)
class FtpConfig:
    host: str
    username: str
    password: str
    port: int = 21
    path: str = ""
    secure: bool = False


@dataclass(frozen=True)
class SftpConfig:
    host: str
    username: str
    port: int = 22
    password: str | None = None
    private_key: str | None = None
    path: str = ""


@dataclass(frozen=True)
class WebdavConfig:
    url: str
    username: str
    password: str
    path: str = ""


@dataclass(frozen=True)
class PeerStoreConfig:
    api_url: str
    path: str = ""
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    gateway_url: str | None = None


@dataclass(frozen=True)
class SmbConfig:
    host: str
    share: str
    username: str
    password: str
    port: int | None = None
    domain: str = ""
    path: str = ""


DestinationConfig = (
    ObjectStorageConfig | FtpConfig | SftpConfig | WebdavConfig | PeerStoreConfig | SmbConfig
)

CONFIG_TYPES: dict[DestinationMode, type] = {
    DestinationMode.OBJECT_STORAGE: ObjectStorageConfig,
    DestinationMode.FTP: FtpConfig,
    DestinationMode.SFTP: SftpConfig,
    DestinationMode.WEBDAV: WebdavConfig,
    DestinationMode.PEER_STORE: PeerStoreConfig,
    DestinationMode.SMB: SmbConfig,
}

# Fields that must be present and non-empty, per mode.
REQUIRED_FIELDS: dict[DestinationMode, tuple[str, ...]] = {
    DestinationMode.OBJECT_STORAGE: ("bucket", "region", "access_key_id", "secret_access_key"),
    DestinationMode.FTP: ("host", "username", "password"),
    DestinationMode.SFTP: ("host", "username"),
    DestinationMode.WEBDAV: ("url", "username", "password"),
    DestinationMode.PEER_STORE: ("api_url",),
    DestinationMode.SMB: ("host", "share", "username", "password"),
}


def _apply_rules(mode: DestinationMode, data: dict[str, Any]) -> dict[str, Any]:
    if "path" in data:
        data["path"] = normalize_path(data.get("path"))
    if "prefix" in data:
        data["prefix"] = normalize_path(data.get("prefix"))
    if mode is DestinationMode.SFTP and (data.get("private_key") or "").strip():
        data["password"] = None
    data.pop("public_base_url", None)
    data.pop("mode", None)
    data.pop("name", None)
    return data


def build_config(mode: DestinationMode, values: Mapping[str, Any]) -> dict[str, Any]:
    """Return the plaintext config object to encrypt for a new destination."""
    allowed = {field.name for field in fields(CONFIG_TYPES[mode])}
    data = {key: value for key, value in values.items() if key in allowed}
    return _apply_rules(mode, data)


def merge_config(
    mode: DestinationMode,
    existing: Mapping[str, Any],
    changes: Mapping[str, Any],
) -> dict[str, Any]:
    """Overlay ``changes`` onto ``existing`` and re-apply the config rules."""
    allowed = {field.name for field in fields(CONFIG_TYPES[mode])}
    merged = dict(existing)
    for key, value in changes.items():
        if key in allowed:
            merged[key] = value
    return _apply_rules(mode, merged)


def parse_config(mode: DestinationMode, data: Mapping[str, Any]) -> DestinationConfig:
    """Build the typed config for ``mode``.

    Raises:
        ConfigurationError: If a required field is missing or blank, or if an
            SFTP destination has neither a password nor a private key.
    """
    missing = [
        name
        for name in REQUIRED_FIELDS[mode]
        if data.get(name) is None or (isinstance(data.get(name), str) and not data[name].strip())
    ]
    if missing:
        raise ConfigurationError(
            f"{mode.value} destination is missing required field(s): {', '.join(missing)}"
        )
    if mode is DestinationMode.SFTP and not (
        data.get("password") or (data.get("private_key") or "").strip()
    ):
        raise ConfigurationError("Provide either password or private_key")

    config_type = CONFIG_TYPES[mode]
    kwargs = {
        field.name: data[field.name]
        for field in fields(config_type)
        if field.name in data and data[field.name] is not None
    }
    if "port" in kwargs:
        try:
            kwargs["port"] = int(kwargs["port"])
        except (TypeError, ValueError) as err:
            raise ConfigurationError(f"Invalid port: {kwargs['port']!r}") from err
    return config_type(**kwargs)


def dumps_config(data: Mapping[str, Any] | DestinationConfig) -> str:
    """Serialize a config object for encryption."""
    if not isinstance(data, Mapping):
        data = asdict(data)
    return json.dumps(dict(data), separators=(",", ":"), sort_keys=True)


def loads_config(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"Stored destination config is not valid JSON: {err.msg}") from err
    if not isinstance(data, dict):
        raise ConfigurationError("Stored destination config must be a JSON object")
    return data


def redact_secret(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    if len(value) <= 4:
        return REDACTED
    return f"{REDACTED}{value[-4:]}"


def redact_config(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` safe to show to operators."""
    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if key == "private_key" and value:
            redacted[key] = REDACTED
        elif key in SECRET_FIELDS:
            redacted[key] = redact_secret(value)
        else:
            redacted[key] = value
    return redacted


def path_prefix(mode: DestinationMode, data: Mapping[str, Any]) -> str:
    """Return the remote prefix artifacts are placed under, without slashes at the ends."""
    key = "prefix" if mode is DestinationMode.OBJECT_STORAGE else "path"
    return normalize_path(data.get(key)).strip("/")
