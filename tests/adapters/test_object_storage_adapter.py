from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError

from podcast_deploy.services.adapters.object_storage import ObjectStorageAdapter, s3_error_message


def client_error(code: str, status: int, operation: str = "HeadObject") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} message"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], dict] = {}
        self.head_calls: list[str] = []
        self.get_calls: list[str] = []
        self.closed = False

    def head_bucket(self, Bucket):
        if Bucket != "media":
            raise client_error("NoSuchBucket", 404, "HeadBucket")

    def head_object(self, Bucket, Key):
        self.head_calls.append(Key)
        if (Bucket, Key) not in self.objects:
            raise client_error("404", 404)
        return {"Metadata": self.objects[(Bucket, Key)]["Metadata"]}

    def get_object(self, Bucket, Key):
        self.get_calls.append(Key)
        if (Bucket, Key) not in self.objects:
            raise client_error("NoSuchKey", 404, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)]["Body"])}

    def put_object(self, Bucket, Key, Body, ContentType=None, Metadata=None):
        self.objects[(Bucket, Key)] = {"Body": Body, "ContentType": ContentType, "Metadata": Metadata or {}}

    def close(self):
        self.closed = True


CONFIG = {
    "bucket": "media",
    "region": "auto",
    "access_key_id": "AKIA",
    "secret_access_key": "secret",
    "prefix": "shows/weekly",
    "endpoint_url": "https://account.r2.cloudflarestorage.com",
}


@pytest.fixture()
def s3() -> FakeS3:
    return FakeS3()


@pytest.fixture()
def adapter(s3) -> ObjectStorageAdapter:
    return ObjectStorageAdapter(client_factory=lambda config: s3)


def test_deploy_uses_prefix_content_types_and_sidecar_metadata(adapter, s3) -> None:
    result = adapter.deploy(CONFIG, "https://cdn.example.com", "<rss/>", [], None)

    assert (result.uploaded, result.errors) == (1, [])
    feed = s3.objects[("media", "shows/weekly/feed.xml")]
    assert feed["ContentType"] == "application/rss+xml"
    sidecar = s3.objects[("media", "shows/weekly/feed.xml.md5")]
    assert sidecar["Metadata"]["md5"] == sidecar["Body"].decode()
    assert s3.closed is True


def test_rerun_reads_sidecar_hash_from_head(adapter, s3) -> None:
    adapter.deploy(CONFIG, None, "<rss/>", [], None)
    s3.get_calls.clear()

    result = adapter.deploy(CONFIG, None, "<rss/>", [], None)

    assert (result.uploaded, result.skipped) == (0, 1)
    assert s3.get_calls == []
    assert "shows/weekly/feed.xml.md5" in s3.head_calls


def test_sidecar_without_metadata_falls_back_to_body(adapter, s3) -> None:
    adapter.deploy(CONFIG, None, "<rss/>", [], None)
    s3.objects[("media", "shows/weekly/feed.xml.md5")]["Metadata"] = {}

    result = adapter.deploy(CONFIG, None, "<rss/>", [], None)

    assert result.skipped == 1
    assert s3.get_calls == ["shows/weekly/feed.xml.md5"]


def test_probe_reports_missing_bucket(adapter) -> None:
    result = adapter.test({**CONFIG, "bucket": "other"})

    assert result.ok is False
    assert "NoSuchBucket" in result.error


def test_missing_required_field_is_reported(adapter) -> None:
    result = adapter.test({**CONFIG, "secret_access_key": ""})

    assert result.ok is False
    assert "secret_access_key" in result.error


def test_s3_error_message_prefixes_code() -> None:
    exc = ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject")
    assert s3_error_message(exc) == "AccessDenied: Access Denied"
    assert s3_error_message(client_error("NoSuchKey", 404)) == "NoSuchKey message"
