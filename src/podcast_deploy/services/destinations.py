# src/podcast_deploy/services/destinations.py
"""Destination management: CRUD with the config kept encrypted at rest."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from podcast_deploy.core.settings import settings
from podcast_deploy.models import Destination, DestinationMode
from podcast_deploy.schemas.destination import (
    DestinationRead,
    DestinationUpdate,
    parse_destination_create,
)
from podcast_deploy.services.destination_config import (
    SECRET_FIELDS,
    build_config,
    dumps_config,
    loads_config,
    merge_config,
    path_prefix,
    redact_config,
)
from podcast_deploy.services.errors import DestinationModeChangeError, DestinationNotFound
from podcast_deploy.services.vault import CredentialVault, DecryptionFailed, get_vault

logger = logging.getLogger(__name__)

# Associated data binding every destination blob to this secret domain.
VAULT_CONTEXT = "podcast-deploy:destinations"

# Blank values for these keep the stored secret; a blank private_key clears the key.
_KEEP_WHEN_BLANK = SECRET_FIELDS - {"private_key"}


def _url_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class DestinationService:
    """Create, update and read destinations; plaintext config never reaches the database."""

    def __init__(self, db: Session, vault: CredentialVault | None = None) -> None:
        self.db = db
        self.vault = vault or get_vault()

    def _seal(self, config: Mapping[str, Any]) -> str:
        return self.vault.encrypt_text(dumps_config(config), VAULT_CONTEXT)

    def create(self, podcast_id: str, payload: BaseModel | Mapping[str, Any]) -> Destination:
        if isinstance(payload, Mapping):
            payload = parse_destination_create(payload)
        mode = DestinationMode.parse(payload.mode)
        config = build_config(mode, payload.config_fields())
        destination = Destination(
            podcast_id=podcast_id,
            mode=mode,
            name=payload.name.strip(),
            public_base_url=_url_or_none(payload.public_base_url),
            config_enc=self._seal(config),
        )
        self.db.add(destination)
        self.db.commit()
        self.db.refresh(destination)
        logger.info(
            "Created %s destination %s for podcast %s", mode.value, destination.id, podcast_id
        )
        return destination

    def get(self, destination_id: str) -> Destination:
        destination = self.db.get(Destination, destination_id)
        if destination is None:
            raise DestinationNotFound(destination_id)
        return destination

    def list_for_podcast(self, podcast_id: str) -> list[Destination]:
        stmt = (
            select(Destination)
            .where(Destination.podcast_id == podcast_id)
            .order_by(Destination.created_at, Destination.id)
        )
        return list(self.db.scalars(stmt))

    def update(
        self, destination_id: str, changes: DestinationUpdate | Mapping[str, Any]
    ) -> Destination:
        """Apply a partial update.

        Config keys are merged into the decrypted blob; secrets given as empty
        strings keep their stored value, except an empty ``private_key`` which
        removes the key. The mode cannot change.
        """
        if isinstance(changes, Mapping):
            changes = DestinationUpdate.model_validate(dict(changes))
        destination = self.get(destination_id)

        if changes.mode is not None and changes.mode is not destination.mode:
            raise DestinationModeChangeError(
                f"Destination mode is immutable ({destination.mode.value}); "
                "delete it and create a new destination instead"
            )

        fields_set = changes.model_fields_set
        if "name" in fields_set and changes.name:
            destination.name = changes.name.strip()
        if "public_base_url" in fields_set:
            destination.public_base_url = _url_or_none(changes.public_base_url)

        config_changes = {
            key: value
            for key, value in changes.config_changes().items()
            if not (key in _KEEP_WHEN_BLANK and value in (None, ""))
        }
        if config_changes:
            merged = merge_config(destination.mode, self.decrypted_config(destination), config_changes)
            destination.config_enc = self._seal(merged)

        self.db.commit()
        self.db.refresh(destination)
        logger.info("Updated destination %s", destination.id)
        return destination

    def delete(self, destination_id: str) -> None:
        destination = self.get(destination_id)
        self.db.delete(destination)
        self.db.commit()
        logger.info("Deleted destination %s", destination_id)

    def decrypted_config(self, destination: Destination) -> dict[str, Any]:
        """Decrypt a destination's config; raises ``DecryptionFailed`` on a bad blob."""
        return loads_config(self.vault.decrypt_text(destination.config_enc, VAULT_CONTEXT))

    def path_prefix(self, destination: Destination) -> str:
        return path_prefix(destination.mode, self.decrypted_config(destination))

    def public_feed_url(self, destination: Destination) -> str | None:
        """Return ``<public_base_url>/<prefix>/feed.xml``, or None without a public base URL."""
        if not destination.public_base_url:
            return None
        parts = [destination.public_base_url.rstrip("/")]
        prefix = self.path_prefix(destination)
        if prefix:
            parts.append(prefix)
        parts.append(settings.feed_filename)
        return "/".join(parts)

    def to_read(self, destination: Destination) -> DestinationRead:
        """Operator view of a destination with secrets redacted."""
        try:
            config = redact_config(self.decrypted_config(destination))
            has_credentials = True
        except DecryptionFailed:
            config = {}
            has_credentials = False
        return DestinationRead(
            id=destination.id,
            podcast_id=destination.podcast_id,
            mode=destination.mode,
            name=destination.name,
            public_base_url=destination.public_base_url,
            created_at=destination.created_at,
            updated_at=destination.updated_at,
            has_credentials=has_credentials,
            config=config,
        )

    def rotate_key(self, target: CredentialVault) -> int:
        """Re-encrypt every destination blob with ``target``; returns the count.

        Nothing is written unless every blob decrypts with the current key.
        """
        destinations = list(self.db.scalars(select(Destination)))
        rotated = {
            destination.id: self.vault.reencrypt(destination.config_enc, VAULT_CONTEXT, target)
            for destination in destinations
        }
        for destination in destinations:
            destination.config_enc = rotated[destination.id]
        self.db.commit()
        self.vault = target
        logger.info("Re-encrypted %d destination config(s) with a new key", len(destinations))
        return len(destinations)
