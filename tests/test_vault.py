"""Tests for the AES-256-GCM credential vault."""

from __future__ import annotations

import base64

import pytest

from podcast_deploy.services.vault import (
    CredentialVault,
    DecryptionFailed,
    VaultKeyError,
    load_secrets_key,
)

CONTEXT = "podcast-deploy:destinations"


def test_encrypt_produces_versioned_envelope(vault: CredentialVault) -> None:
    blob = vault.encrypt_text('{"password":"hunter2"}', CONTEXT)

    parts = blob.split(":")
    assert parts[0] == "v1"
    assert len(parts) == 4
    assert "hunter2" not in blob
    assert CredentialVault.is_encrypted(blob)


def test_round_trip_returns_plaintext(vault: CredentialVault) -> None:
    blob = vault.encrypt_text("secret value", CONTEXT)
    assert vault.decrypt_text(blob, CONTEXT) == "secret value"


def test_same_plaintext_encrypts_differently(vault: CredentialVault) -> None:
    assert vault.encrypt_text("x", CONTEXT) != vault.encrypt_text("x", CONTEXT)


def test_wrong_key_fails(vault: CredentialVault) -> None:
    blob = vault.encrypt_text("secret", CONTEXT)
    with pytest.raises(DecryptionFailed):
        CredentialVault.generate().decrypt_text(blob, CONTEXT)


def test_context_mismatch_fails(vault: CredentialVault) -> None:
    blob = vault.encrypt_text("secret", CONTEXT)
    with pytest.raises(DecryptionFailed):
        vault.decrypt_text(blob, "another:domain")


def test_tampered_ciphertext_fails(vault: CredentialVault) -> None:
    blob = vault.encrypt_text("secret", CONTEXT)
    version, nonce, tag, ciphertext = blob.split(":")
    flipped = "A" if ciphertext[0] != "A" else "B"
    with pytest.raises(DecryptionFailed):
        vault.decrypt_text(":".join((version, nonce, tag, flipped + ciphertext[1:])), CONTEXT)


@pytest.mark.parametrize("blob", ["", "plaintext", "v2:a:b:c", "v1:only:three", "v1:!!:??:%%"])
def test_malformed_envelope_fails(vault: CredentialVault, blob: str) -> None:
    with pytest.raises(DecryptionFailed):
        vault.decrypt_text(blob, CONTEXT)


def test_reencrypt_moves_blob_to_new_key(vault: CredentialVault) -> None:
    target = CredentialVault.generate()
    blob = vault.encrypt_text("secret", CONTEXT)

    rotated = vault.reencrypt(blob, CONTEXT, target)

    assert target.decrypt_text(rotated, CONTEXT) == "secret"
    with pytest.raises(DecryptionFailed):
        vault.decrypt_text(rotated, CONTEXT)


def test_key_must_be_32_bytes() -> None:
    with pytest.raises(VaultKeyError):
        CredentialVault(b"short")


def test_load_secrets_key_accepts_standard_and_urlsafe_base64() -> None:
    raw = bytes(range(32))
    assert load_secrets_key(base64.b64encode(raw).decode()) == raw
    assert load_secrets_key(base64.urlsafe_b64encode(raw).decode().rstrip("=")) == raw


def test_load_secrets_key_rejects_wrong_length() -> None:
    with pytest.raises(VaultKeyError):
        load_secrets_key(base64.b64encode(b"too short").decode())


def test_load_secrets_key_persists_generated_key(tmp_path) -> None:
    first = load_secrets_key("", tmp_path)
    second = load_secrets_key("", tmp_path)

    assert len(first) == 32
    assert first == second
    key_file = tmp_path / "secrets-key.txt"
    assert key_file.exists()
    assert key_file.stat().st_mode & 0o777 == 0o600
