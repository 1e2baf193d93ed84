# src/podcast_deploy/services/feed_cache.py
"""Local copies of the feed variants last deployed to each destination."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from podcast_deploy.core.settings import settings

logger = logging.getLogger(__name__)


class FeedCache:
    """Stores ``<root>/<podcast_id>/destinations/<destination_id>/<feed file>``.

    Each destination renders its own feed (its public base URL differs), so
    variants are kept side by side instead of overwriting one another.
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else settings.rss_cache_dir

    def path_for(self, podcast_id: str, destination_id: str) -> Path:
        for part in (podcast_id, destination_id):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise ValueError(f"Invalid cache key component: {part!r}")
        return self.root / podcast_id / "destinations" / destination_id / settings.feed_filename

    def write(self, podcast_id: str, destination_id: str, document: str) -> Path:
        path = self.path_for(podcast_id, destination_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(document, encoding="utf-8")
        os.replace(tmp, path)
        logger.debug("Cached feed for destination %s at %s", destination_id, path)
        return path

    def read(self, podcast_id: str, destination_id: str) -> str | None:
        path = self.path_for(podcast_id, destination_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")
