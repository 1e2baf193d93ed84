# src/podcast_deploy/services/ledger.py
"""Append-only history of deploy runs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from podcast_deploy.core.settings import settings
from podcast_deploy.db.time import utcnow
from podcast_deploy.models import DeployRun, RunStatus
from podcast_deploy.schemas.deploy import RunRecord

logger = logging.getLogger(__name__)


class LedgerError(RuntimeError):
    """Base exception raised for run ledger failures."""


class RunNotFound(LedgerError):
    def __init__(self, run_id: str) -> None:
        super().__init__(f"Deploy run not found: {run_id}")
        self.run_id = run_id


class RunAlreadyFinished(LedgerError):
    """Raised when a terminal run would be modified."""


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=utcnow().tzinfo)
    return value


class RunLedger:
    """Records one row per deploy attempt; rows are never modified once terminal."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _load(self, run_id: str) -> DeployRun:
        run = self.db.get(DeployRun, run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    def record_start(self, destination_id: str, podcast_id: str) -> str:
        """Insert a ``running`` row and commit it so readers see the attempt."""
        now = utcnow()
        run = DeployRun(
            destination_id=destination_id,
            podcast_id=podcast_id,
            status=RunStatus.RUNNING,
            started_at=now,
            created_at=now,
        )
        self.db.add(run)
        self.db.commit()
        logger.info("Deploy run %s started for destination %s", run.id, destination_id)
        return run.id

    def record_finish(self, run_id: str, status: RunStatus, log: str) -> None:
        """Move a running run to its terminal ``status``."""
        if not RunStatus(status).is_terminal:
            raise ValueError("A run can only finish as success or failed")
        run = self._load(run_id)
        if run.status.is_terminal:
            raise RunAlreadyFinished(f"Deploy run {run_id} already finished as {run.status.value}")
        run.status = RunStatus(status)
        run.finished_at = utcnow()
        run.log = log
        self.db.commit()
        logger.info("Deploy run %s finished: %s", run_id, run.status.value)

    def record_failure(self, destination_id: str, podcast_id: str, log: str) -> str:
        """Insert a run that failed before any transfer could start."""
        now = utcnow()
        run = DeployRun(
            destination_id=destination_id,
            podcast_id=podcast_id,
            status=RunStatus.FAILED,
            started_at=now,
            finished_at=now,
            created_at=now,
            log=log,
        )
        self.db.add(run)
        self.db.commit()
        logger.warning("Deploy run %s for destination %s failed: %s", run.id, destination_id, log)
        return run.id

    def get(self, run_id: str) -> RunRecord:
        return RunRecord.model_validate(self._load(run_id))

    def list_for_destination(self, destination_id: str, limit: int | None = 50) -> list[RunRecord]:
        """Return runs newest first."""
        stmt = (
            select(DeployRun)
            .where(DeployRun.destination_id == destination_id)
            .order_by(DeployRun.created_at.desc(), DeployRun.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [RunRecord.model_validate(run) for run in self.db.scalars(stmt)]

    def latest_for_destination(self, destination_id: str) -> RunRecord | None:
        runs = self.list_for_destination(destination_id, limit=1)
        return runs[0] if runs else None

    def reconcile_stale(self, max_age: timedelta | None = None) -> int:
        """Fail ``running`` rows older than ``max_age``; returns how many were closed.

        A process crash between start and finish otherwise leaves a run
        ``running`` forever.
        """
        age = max_age if max_age is not None else timedelta(minutes=settings.stale_run_minutes)
        cutoff = utcnow() - age
        minutes = int(age.total_seconds() // 60)
        stale = [
            run
            for run in self.db.scalars(select(DeployRun).where(DeployRun.status == RunStatus.RUNNING))
            if (_aware(run.started_at) or _aware(run.created_at)) < cutoff
        ]
        for run in stale:
            run.status = RunStatus.FAILED
            run.finished_at = utcnow()
            run.log = f"Run abandoned: no result after {minutes} minutes (marked by reconciliation)"
        if stale:
            self.db.commit()
            logger.warning("Marked %d stale deploy run(s) as failed", len(stale))
        return len(stale)


__all__ = ["LedgerError", "RunAlreadyFinished", "RunLedger", "RunNotFound"]
