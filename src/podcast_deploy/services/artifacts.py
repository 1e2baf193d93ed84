# src/podcast_deploy/services/artifacts.py
"""Deployable artifacts and their remote path conventions.

Every destination receives the same tree, relative to its base path::

    feed.xml
    cover.<png|webp|jpg>
    episodes/<id><audio ext>
    episodes/<id>.<png|webp|jpg>
    episodes/<id>.srt

Artifact bodies are read lazily so that an unreadable source only fails
its own artifact.
"""

from __future__ import annotations

import mimetypes
import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from podcast_deploy.core.settings import settings
from podcast_deploy.schemas.deploy import DeployEpisode
from podcast_deploy.services.errors import PathEscapeError

SIDECAR_SUFFIX = ".md5"
DEFAULT_AUDIO_EXT = ".mp3"
DEFAULT_IMAGE_EXT = "jpg"
IMAGE_EXTENSIONS = {".png": "png", ".webp": "webp", ".jpg": "jpg"}
CONTENT_TYPES = {
    "xml": "application/rss+xml",
    "png": "image/png",
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "srt": "application/x-subrip",
    "md5": "text/plain",
}


@dataclass(frozen=True)
class Artifact:
    """One remote file and the means to produce its bytes."""

    label: str
    remote_path: str
    load: Callable[[], bytes]
    content_type: str | None = None


def assert_path_under(path: str | os.PathLike[str], allowed_base: str | os.PathLike[str]) -> Path:
    """Resolve ``path`` and ensure it lies inside ``allowed_base``.

    Symlinks are resolved on both sides. Returns the resolved path.
    """
    base = Path(allowed_base).resolve(strict=True)
    resolved = Path(path).resolve(strict=True)
    if resolved != base and base not in resolved.parents:
        raise PathEscapeError("Path escapes allowed directory")
    return resolved


def image_extension(path: str | os.PathLike[str]) -> str:
    """Map an image file to one of ``png``, ``webp`` or ``jpg``."""
    return IMAGE_EXTENSIONS.get(Path(path).suffix.lower(), DEFAULT_IMAGE_EXT)


def audio_extension(path: str | os.PathLike[str]) -> str:
    return Path(path).suffix or DEFAULT_AUDIO_EXT


def content_type_for(remote_path: str, fallback: str | None = None) -> str:
    """Return the Content-Type to send for ``remote_path``."""
    ext = remote_path.rsplit(".", 1)[-1].lower() if "." in remote_path else ""
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    if fallback:
        return fallback
    guessed, _ = mimetypes.guess_type(remote_path)
    return guessed or "application/octet-stream"


def _read_guarded(path: str, base: Path) -> Callable[[], bytes]:
    def load() -> bytes:
        return assert_path_under(path, base).read_bytes()

    return load


def _read(path: str) -> Callable[[], bytes]:
    def load() -> bytes:
        return Path(path).read_bytes()

    return load


def feed_artifact(feed_document: str) -> Artifact:
    body = feed_document.encode("utf-8")
    return Artifact(
        label="Feed",
        remote_path=settings.feed_filename,
        load=lambda: body,
        content_type=CONTENT_TYPES["xml"],
    )


def cover_artifact(artwork_path: str) -> Artifact:
    ext = image_extension(artwork_path)
    return Artifact(
        label="Cover image",
        remote_path=f"cover.{ext}",
        load=_read_guarded(artwork_path, settings.artwork_dir),
        content_type=CONTENT_TYPES[ext],
    )


def episode_artifacts(episode: DeployEpisode) -> Iterator[Artifact]:
    """Yield audio, artwork override and transcript for one episode, when present."""
    if episode.audio_final_path:
        ext = audio_extension(episode.audio_final_path)
        remote = f"episodes/{episode.id}{ext}"
        yield Artifact(
            label=f"Episode {episode.id} audio",
            remote_path=remote,
            load=_read(episode.audio_final_path),
            content_type=episode.audio_mime or content_type_for(remote, "audio/mpeg"),
        )
    if episode.artwork_path:
        ext = image_extension(episode.artwork_path)
        yield Artifact(
            label=f"Episode {episode.id} artwork",
            remote_path=f"episodes/{episode.id}.{ext}",
            load=_read_guarded(episode.artwork_path, settings.artwork_dir),
            content_type=CONTENT_TYPES[ext],
        )
    if episode.transcript_srt_path:
        yield Artifact(
            label=f"Episode {episode.id} transcript",
            remote_path=f"episodes/{episode.id}.srt",
            load=_read_guarded(episode.transcript_srt_path, settings.processed_dir),
            content_type=CONTENT_TYPES["srt"],
        )


def media_artifacts(
    episodes: Sequence[DeployEpisode],
    artwork_path: str | None,
) -> list[Artifact]:
    """Return the podcast cover followed by every episode artifact, in deploy order."""
    artifacts: list[Artifact] = []
    if artwork_path:
        artifacts.append(cover_artifact(artwork_path))
    for episode in episodes:
        artifacts.extend(episode_artifacts(episode))
    return artifacts


def collect_artifacts(
    feed_document: str,
    episodes: Sequence[DeployEpisode],
    artwork_path: str | None,
) -> list[Artifact]:
    """Return every artifact for a deploy: feed first, then media."""
    return [feed_artifact(feed_document), *media_artifacts(episodes, artwork_path)]
