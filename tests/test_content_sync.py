"""Behavioural tests for the content-diff sync."""

from __future__ import annotations

import hashlib

from podcast_deploy.services.artifacts import Artifact
from podcast_deploy.services.content_sync import ContentDiffSync, SyncOutcome, content_hash


def test_uploads_file_then_sidecar(memory_store) -> None:
    sync = ContentDiffSync(memory_store)

    outcome = sync.sync("episodes/ep1.mp3", b"audio")

    assert outcome is SyncOutcome.UPLOADED
    assert memory_store.puts == ["episodes/ep1.mp3", "episodes/ep1.mp3.md5"]
    assert memory_store.files["episodes/ep1.mp3.md5"] == hashlib.md5(b"audio").hexdigest().encode()
    assert sync.result.uploaded == 1
    assert sync.result.skipped == 0


def test_second_sync_of_same_bytes_skips(memory_store) -> None:
    ContentDiffSync(memory_store).sync("feed.xml", b"<rss/>")
    memory_store.puts.clear()

    sync = ContentDiffSync(memory_store)
    outcome = sync.sync("feed.xml", b"<rss/>")

    assert outcome is SyncOutcome.SKIPPED
    assert memory_store.puts == []
    assert (sync.result.uploaded, sync.result.skipped) == (0, 1)


def test_changed_bytes_are_uploaded(memory_store) -> None:
    ContentDiffSync(memory_store).sync("feed.xml", b"v1")

    sync = ContentDiffSync(memory_store)
    outcome = sync.sync("feed.xml", b"v2")

    assert outcome is SyncOutcome.UPLOADED
    assert memory_store.files["feed.xml"] == b"v2"
    assert memory_store.files["feed.xml.md5"].decode() == content_hash(b"v2")


def test_sidecar_whitespace_is_ignored(store_factory) -> None:
    store = store_factory({"feed.xml.md5": f"  {content_hash(b'x')}\n".encode()})

    assert ContentDiffSync(store).sync("feed.xml", b"x") is SyncOutcome.SKIPPED


def test_missing_sidecar_forces_upload_even_if_file_exists(store_factory) -> None:
    # A body without its sidecar is what an interrupted upload leaves behind.
    store = store_factory({"feed.xml": b"x"})

    assert ContentDiffSync(store).sync("feed.xml", b"x") is SyncOutcome.UPLOADED
    assert "feed.xml.md5" in store.files


def test_parent_directories_are_created_once_per_session(memory_store) -> None:
    sync = ContentDiffSync(memory_store)
    sync.sync("episodes/a.mp3", b"a")
    sync.sync("episodes/b.mp3", b"b")
    sync.sync("feed.xml", b"f")

    assert memory_store.mkdirs == ["episodes"]


def test_failed_artifact_is_recorded_and_does_not_raise(memory_store) -> None:
    def missing() -> bytes:
        raise FileNotFoundError(2, "No such file or directory", "/media/ep1.mp3")

    sync = ContentDiffSync(memory_store)
    outcome = sync.sync_artifact(Artifact("Episode ep1 audio", "episodes/ep1.mp3", missing))
    sync.sync_artifact(Artifact("Feed", "feed.xml", lambda: b"<rss/>"))

    assert outcome is None
    assert sync.result.errors == ["Episode ep1 audio: No such file: /media/ep1.mp3"]
    assert sync.result.uploaded == 1


def test_failed_body_write_leaves_no_sidecar(memory_store) -> None:
    memory_store.fail_puts.add("feed.xml")
    sync = ContentDiffSync(memory_store)

    sync.sync_artifact(Artifact("Feed", "feed.xml", lambda: b"<rss/>"))

    assert "feed.xml.md5" not in memory_store.files
    assert sync.result.errors == ["Feed: write refused: feed.xml"]
