# src/podcast_deploy/services/adapters/base.py
"""Common contract for protocol adapters.

An adapter knows how to open a session against one kind of remote store and
how to prove that a configuration works. Artifact ordering, idempotence and
per-artifact error collection are shared here so every protocol behaves the
same way.
"""

from __future__ import annotations

import logging
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from contextlib import AbstractContextManager
from typing import Any, ClassVar

from podcast_deploy.models.destination import DestinationMode
from podcast_deploy.schemas.deploy import DeployEpisode, DeployResult, TestResult
from podcast_deploy.services.artifacts import collect_artifacts
from podcast_deploy.services.content_sync import ContentDiffSync, RemoteStore, describe_error
from podcast_deploy.services.destination_config import CONFIG_TYPES, parse_config
from podcast_deploy.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

FeedRenderer = Callable[[str], str]


def join_remote(base: str, *parts: str) -> str:
    """Join ``/`` separated remote path segments, collapsing duplicate slashes."""
    segments = [base.strip("/")] + [part.strip("/") for part in parts]
    joined = "/".join(segment for segment in segments if segment)
    return posixpath.normpath(joined) if joined else ""


class DestinationAdapter(ABC):
    """Uniform test/deploy contract implemented once per protocol."""

    mode: ClassVar[DestinationMode]

    def coerce_config(self, config: Mapping[str, Any] | Any) -> Any:
        """Accept a decrypted config object or an already typed config."""
        config_type = CONFIG_TYPES[self.mode]
        if isinstance(config, config_type):
            return config
        if isinstance(config, Mapping):
            return parse_config(self.mode, config)
        raise ConfigurationError(
            f"Expected {config_type.__name__} for a {self.mode.value} destination"
        )

    @abstractmethod
    def open_store(
        self, config: Any, *, podcast_id: str | None = None
    ) -> AbstractContextManager[RemoteStore]:
        """Open one session for the whole call; released when the context exits."""

    @abstractmethod
    def probe(self, store: RemoteStore, config: Any) -> None:
        """Prove credentials and base path on an open session, raising on failure."""

    def test(self, config: Mapping[str, Any] | Any) -> TestResult:
        try:
            typed = self.coerce_config(config)
            with self.open_store(typed) as store:
                self.probe(store, typed)
        except Exception as exc:  # noqa: BLE001
            logger.info("%s destination test failed: %s", self.mode.value, describe_error(exc))
            return TestResult(ok=False, error=describe_error(exc))
        return TestResult(ok=True)

    def deploy(
        self,
        config: Mapping[str, Any] | Any,
        public_base_url: str | None,
        feed_document: str,
        episodes: Sequence[DeployEpisode],
        artwork_path: str | None,
        *,
        podcast_id: str | None = None,
        render_feed: FeedRenderer | None = None,
    ) -> DeployResult:
        """Synchronize the feed and every published artifact to the destination.

        Artifact failures are collected as ``"<label>: <message>"`` and do not
        stop the loop. A configuration or connection failure yields a single
        error entry.
        """
        result = DeployResult()
        try:
            typed = self.coerce_config(config)
            with self.open_store(typed, podcast_id=podcast_id) as store:
                self.sync_all(
                    store,
                    typed,
                    result,
                    feed_document=feed_document,
                    episodes=episodes,
                    artwork_path=artwork_path,
                    public_base_url=public_base_url,
                    render_feed=render_feed,
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s deploy aborted: %s", self.mode.value, describe_error(exc))
            result.errors.append(describe_error(exc))
        return result

    def sync_all(
        self,
        store: RemoteStore,
        config: Any,
        result: DeployResult,
        *,
        feed_document: str,
        episodes: Sequence[DeployEpisode],
        artwork_path: str | None,
        public_base_url: str | None,
        render_feed: FeedRenderer | None,
    ) -> None:
        """Ensure the base path, then sync feed, cover and episode artifacts in order."""
        store.mkdir_recursive("")
        sync = ContentDiffSync(store, result)
        for artifact in collect_artifacts(feed_document, episodes, artwork_path):
            sync.sync_artifact(artifact)


__all__ = ["DestinationAdapter", "FeedRenderer", "RemoteStore", "join_remote"]
