# src/podcast_deploy/services/vault.py
"""Credential vault encrypting destination configuration at rest.

Blobs are AES-256-GCM envelopes of the form::

    v1:<nonce_b64url>:<tag_b64url>:<ciphertext_b64url>

The associated data is a caller-supplied context string, so a blob produced
for one secret domain does not decrypt in another.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from podcast_deploy.core.settings import settings

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = "v1"
KEY_LENGTH_BYTES = 32
NONCE_LENGTH_BYTES = 12
TAG_LENGTH_BYTES = 16
SECRETS_KEY_ENV = "SECRETS_KEY"
SECRETS_KEY_FILENAME = "secrets-key.txt"


class VaultError(RuntimeError):
    """Base exception raised for credential vault failures."""


class DecryptionFailed(VaultError):
    """Raised when a blob is malformed, tampered with, or bound to another key or context."""


class VaultKeyError(VaultError):
    """Raised when the configured key material is unusable."""


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64_decode_any(data: str) -> bytes:
    """Decode standard or URL-safe base64, accepting omitted padding."""
    cleaned = data.strip().replace("-", "+").replace("_", "/")
    padding = "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned + padding, validate=True)


class CredentialVault:
    """Authenticated encryption with a process-wide 32-byte key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH_BYTES:
            raise VaultKeyError(f"Vault key must be exactly {KEY_LENGTH_BYTES} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def generate(cls) -> CredentialVault:
        """Return a vault with a fresh random key."""
        return cls(AESGCM.generate_key(bit_length=KEY_LENGTH_BYTES * 8))

    @staticmethod
    def is_encrypted(value: str | None) -> bool:
        """Return True if the value looks like a vault envelope."""
        return isinstance(value, str) and value.startswith(f"{ENVELOPE_VERSION}:")

    def encrypt(self, plaintext: bytes, context: str) -> str:
        """Encrypt bytes and bind them to ``context``."""
        nonce = secrets.token_bytes(NONCE_LENGTH_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext, context.encode("utf-8"))
        ciphertext, tag = sealed[:-TAG_LENGTH_BYTES], sealed[-TAG_LENGTH_BYTES:]
        return ":".join(
            (
                ENVELOPE_VERSION,
                _b64url_encode(nonce),
                _b64url_encode(tag),
                _b64url_encode(ciphertext),
            )
        )

    def decrypt(self, blob: str, context: str) -> bytes:
        """Decrypt a blob produced by :meth:`encrypt`.

        Raises:
            DecryptionFailed: If the envelope is malformed, the key is wrong,
                the ciphertext was altered or ``context`` does not match.
        """
        if not isinstance(blob, str):
            raise DecryptionFailed("Invalid encrypted secret format")
        parts = blob.split(":")
        if len(parts) != 4 or parts[0] != ENVELOPE_VERSION:
            raise DecryptionFailed("Invalid encrypted secret format")
        try:
            nonce = _b64_decode_any(parts[1])
            tag = _b64_decode_any(parts[2])
            ciphertext = _b64_decode_any(parts[3])
        except (binascii.Error, ValueError) as err:
            raise DecryptionFailed(f"Invalid encrypted secret encoding: {err}") from err
        if len(nonce) != NONCE_LENGTH_BYTES or len(tag) != TAG_LENGTH_BYTES:
            raise DecryptionFailed("Invalid encrypted secret format")
        try:
            return self._aead.decrypt(nonce, ciphertext + tag, context.encode("utf-8"))
        except InvalidTag as err:
            raise DecryptionFailed(
                "Encrypted secret could not be authenticated (wrong key, tampered data or context mismatch)"
            ) from err

    def encrypt_text(self, plaintext: str, context: str) -> str:
        return self.encrypt(plaintext.encode("utf-8"), context)

    def decrypt_text(self, blob: str, context: str) -> str:
        try:
            return self.decrypt(blob, context).decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecryptionFailed("Decrypted secret is not valid UTF-8") from err

    def reencrypt(self, blob: str, context: str, target: CredentialVault) -> str:
        """Decrypt with this vault's key and re-seal the plaintext with ``target``."""
        return target.encrypt(self.decrypt(blob, context), context)


def _decode_key(encoded: str, source: str) -> bytes:
    try:
        raw = _b64_decode_any(encoded)
    except (binascii.Error, ValueError) as err:
        raise VaultKeyError(f"{source} is not valid base64: {err}") from err
    if len(raw) != KEY_LENGTH_BYTES:
        raise VaultKeyError(f"{source} must decode to exactly {KEY_LENGTH_BYTES} bytes")
    return raw


def load_secrets_key(
    secrets_key: str | None = None,
    secrets_dir: Path | None = None,
) -> bytes:
    """Return the master key used to encrypt secrets at rest.

    Prefers an explicit ``SECRETS_KEY`` (base64 or base64url). Otherwise a key
    persisted under ``SECRETS_DIR`` is reused, or generated and persisted once.
    """
    from_env = (secrets_key if secrets_key is not None else settings.secrets_key) or ""
    if from_env.strip():
        return _decode_key(from_env, SECRETS_KEY_ENV)

    directory = Path(secrets_dir if secrets_dir is not None else settings.secrets_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / SECRETS_KEY_FILENAME
    if path.exists():
        existing = path.read_text(encoding="utf-8").strip()
        if existing:
            logger.warning(
                "%s is not set; using the persisted secrets key at %s",
                SECRETS_KEY_ENV,
                path,
            )
            return _decode_key(existing, str(path))

    raw = AESGCM.generate_key(bit_length=KEY_LENGTH_BYTES * 8)
    path.write_text(f"{_b64url_encode(raw)}\n", encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError as exc:  # pragma: no cover - platform dependent
        logger.warning("Could not restrict permissions on %s: %s", path, exc)
    logger.warning(
        "%s is not set; generated and persisted a secrets key at %s. "
        "Persist SECRETS_DIR to keep access to encrypted credentials.",
        SECRETS_KEY_ENV,
        path,
    )
    return raw


@lru_cache(maxsize=1)
def get_vault() -> CredentialVault:
    """Return the process-wide vault built from configured key material."""
    return CredentialVault(load_secrets_key())


__all__ = [
    "CredentialVault",
    "DecryptionFailed",
    "VaultError",
    "VaultKeyError",
    "get_vault",
    "load_secrets_key",
]
