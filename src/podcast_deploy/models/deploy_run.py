# src/podcast_deploy/models/deploy_run.py
"""SQLAlchemy model for the append-only deploy run history."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from podcast_deploy.db.session import Base
from podcast_deploy.db.time import utcnow


class RunStatus(str, Enum):
    """Lifecycle of a deploy run: running -> success | failed."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


class DeployRun(Base):
    """One attempt to deploy every artifact to one destination."""

    __tablename__ = "deploy_runs"

    id: Mapped[str] = mapped_column(
        String(32), primary_key=True, default=lambda: uuid.uuid4().hex
    )
    destination_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("destinations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    podcast_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[RunStatus] = mapped_column(
        SAEnum(
            RunStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=RunStatus.RUNNING,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Null while the run is still in progress.
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    log: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    destination: Mapped["Destination"] = relationship(  # noqa: F821
        "Destination", back_populates="runs"
    )
