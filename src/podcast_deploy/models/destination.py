# src/podcast_deploy/models/destination.py
"""SQLAlchemy model for configured delivery destinations."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from podcast_deploy.db.session import Base
from podcast_deploy.db.time import utcnow


class DestinationMode(str, Enum):
    """Transfer protocol a destination is reached over."""

    OBJECT_STORAGE = "S3"
    FTP = "FTP"
    SFTP = "SFTP"
    WEBDAV = "WebDAV"
    PEER_STORE = "IPFS"
    SMB = "SMB"

    @classmethod
    def parse(cls, value: str) -> DestinationMode:
        """Resolve a mode from its stored value, case-insensitively."""
        wanted = value.strip().lower()
        for mode in cls:
            if mode.value.lower() == wanted or mode.name.lower() == wanted:
                return mode
        raise ValueError(f"Unsupported destination mode: {value}")


def _new_id() -> str:
    return uuid.uuid4().hex


class Destination(Base):
    """Remote delivery target for one podcast's artifacts.

    The mode-specific configuration only ever exists encrypted in ``config_enc``.
    """

    __tablename__ = "destinations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    podcast_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    mode: Mapped[DestinationMode] = mapped_column(
        SAEnum(
            DestinationMode,
            native_enum=False,
            length=16,
            values_callable=lambda modes: [mode.value for mode in modes],
        ),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    public_base_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    config_enc: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    runs: Mapped[list["DeployRun"]] = relationship(  # noqa: F821
        "DeployRun",
        back_populates="destination",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Destination {self.id} mode={self.mode.value} podcast={self.podcast_id}>"
