# src/podcast_deploy/services/orchestrator.py
"""Deploy orchestration across a podcast's destinations.

For each destination the orchestrator decrypts the config, records a run,
renders a fresh feed for that destination's public base URL, lets the
protocol adapter sync every artifact and closes the run with a summary.
A failure of one destination never stops the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from functools import partial
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from podcast_deploy.db.time import utcnow
from podcast_deploy.models import Destination, DestinationMode, RunStatus
from podcast_deploy.schemas.deploy import DeployEpisode, DeployResult, RunResult, TestResult
from podcast_deploy.services.adapters import DestinationAdapter, default_adapters
from podcast_deploy.services.content_sync import describe_error
from podcast_deploy.services.destinations import DestinationService
from podcast_deploy.services.errors import ConfigurationError
from podcast_deploy.services.feed_cache import FeedCache
from podcast_deploy.services.ledger import LedgerError, RunLedger
from podcast_deploy.services.vault import CredentialVault, DecryptionFailed

logger = logging.getLogger(__name__)


class FeedGenerator(Protocol):
    def __call__(self, podcast_id: str, public_base_url: str | None) -> str:
        """Render the podcast feed with enclosure URLs under ``public_base_url``."""


class EpisodeSource(Protocol):
    def list_published(self, podcast_id: str, now: datetime) -> Sequence[DeployEpisode]:
        """Return episodes whose publish time is at or before ``now``."""

    def podcast_artwork_path(self, podcast_id: str) -> str | None:
        ...


def _is_published(episode: DeployEpisode, now: datetime) -> bool:
    if episode.publish_at is None:
        return True
    publish_at = episode.publish_at
    if publish_at.tzinfo is None:
        publish_at = publish_at.replace(tzinfo=now.tzinfo)
    return publish_at <= now


class DeployOrchestrator:
    """Runs deploys and connectivity tests for stored destinations."""

    def __init__(
        self,
        db: Session,
        feed_generator: FeedGenerator,
        episode_source: EpisodeSource,
        *,
        vault: CredentialVault | None = None,
        adapters: Mapping[DestinationMode, DestinationAdapter] | None = None,
        ledger: RunLedger | None = None,
        feed_cache: FeedCache | None = None,
    ) -> None:
        self.db = db
        self.feed_generator = feed_generator
        self.episode_source = episode_source
        self.destinations = DestinationService(db, vault)
        self.adapters = dict(adapters) if adapters is not None else default_adapters()
        self.ledger = ledger or RunLedger(db)
        self.feed_cache = feed_cache or FeedCache()

    def adapter_for(self, mode: DestinationMode) -> DestinationAdapter:
        try:
            return self.adapters[mode]
        except KeyError as exc:
            raise ConfigurationError(f"No adapter registered for mode {mode.value}") from exc

    def deploy_one(self, destination_id: str) -> RunResult:
        """Deploy every artifact to one destination and record the run.

        Once the run row exists nothing else is raised: every outcome is
        reported through that single run.

        Raises:
            DestinationNotFound: If ``destination_id`` is unknown.
        """
        destination = self.destinations.get(destination_id)
        try:
            config = self.destinations.decrypted_config(destination)
        except DecryptionFailed as exc:
            return self._record_failure(destination, f"Decryption failed: {exc}")
        except ConfigurationError as exc:
            return self._record_failure(destination, str(exc))

        run_id = self.ledger.record_start(destination.id, destination.podcast_id)
        feed_document: str | None = None
        try:
            feed_document, result = self._deploy(destination, config)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Deploy to destination %s failed", destination.id)
            result = DeployResult(errors=[describe_error(exc)])

        status = RunStatus.SUCCESS if result.ok else RunStatus.FAILED
        log = result.summary()
        try:
            self.ledger.record_finish(run_id, status, log)
        except LedgerError as exc:
            # Reconciliation closed the run while it was in flight; its verdict stands.
            logger.warning("Could not finish run %s: %s", run_id, exc)
            self.db.rollback()
            record = self.ledger.get(run_id)
            status, log = record.status, record.log or ""
        except SQLAlchemyError:
            # The row stays running until reconcile_stale closes it.
            logger.exception("Could not record the result of run %s", run_id)
            self.db.rollback()

        if feed_document is not None:
            try:
                self.feed_cache.write(destination.podcast_id, destination.id, feed_document)
            except (OSError, ValueError) as exc:
                logger.warning("Could not cache feed for destination %s: %s", destination.id, exc)

        return RunResult(
            run_id=run_id,
            destination_id=destination.id,
            status=status,
            uploaded=result.uploaded,
            skipped=result.skipped,
            errors=list(result.errors),
            log=log,
        )

    def _record_failure(self, destination: Destination, log: str) -> RunResult:
        run_id = self.ledger.record_failure(destination.id, destination.podcast_id, log)
        return RunResult(
            run_id=run_id,
            destination_id=destination.id,
            status=RunStatus.FAILED,
            errors=[log],
            log=log,
        )

    def _deploy(self, destination: Destination, config: dict) -> tuple[str, DeployResult]:
        podcast_id = destination.podcast_id
        feed_document = self.feed_generator(podcast_id, destination.public_base_url)
        now = utcnow()
        episodes = [
            episode
            for episode in self.episode_source.list_published(podcast_id, now)
            if _is_published(episode, now)
        ]
        artwork_path = self.episode_source.podcast_artwork_path(podcast_id)
        adapter = self.adapter_for(destination.mode)
        logger.info(
            "Deploying podcast %s to %s destination %s (%d episode(s))",
            podcast_id,
            destination.mode.value,
            destination.id,
            len(episodes),
        )
        result = adapter.deploy(
            config,
            destination.public_base_url,
            feed_document,
            episodes,
            artwork_path,
            podcast_id=podcast_id,
            render_feed=partial(self.feed_generator, podcast_id),
        )
        return feed_document, result

    def deploy_all(self, podcast_id: str) -> list[RunResult]:
        """Deploy to each of the podcast's destinations in turn.

        ``deploy_one`` only raises before it has recorded a run, so the
        failure run written here is the only one for that attempt.
        """
        results: list[RunResult] = []
        for destination in self.destinations.list_for_podcast(podcast_id):
            try:
                results.append(self.deploy_one(destination.id))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Deploy to destination %s aborted", destination.id)
                self.db.rollback()
                results.append(
                    self._record_failure(destination, f"Deploy aborted: {describe_error(exc)}")
                )
        return results

    def test_destination(self, destination_id: str) -> TestResult:
        destination = self.destinations.get(destination_id)
        try:
            config = self.destinations.decrypted_config(destination)
        except DecryptionFailed as exc:
            return TestResult(ok=False, error=f"Decryption failed: {exc}")
        except ConfigurationError as exc:
            return TestResult(ok=False, error=str(exc))
        return self.adapter_for(destination.mode).test(config)
