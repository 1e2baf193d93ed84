from __future__ import annotations

from pathlib import Path

import paramiko
import pytest

from podcast_deploy.schemas.deploy import DeployEpisode
from podcast_deploy.services.adapters.sftp import SftpAdapter, SftpStore, load_private_key
from podcast_deploy.services.errors import ConfigurationError


class FakeSftp:
    """Just enough of paramiko.SFTPClient for the store."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()
        self.closed = False

    def getfo(self, path, fo):
        if path not in self.files:
            raise FileNotFoundError(2, "No such file", path)
        fo.write(self.files[path])

    def putfo(self, fo, path, file_size=0):
        self.files[path] = fo.read()

    def stat(self, path):
        if path not in self.dirs:
            raise FileNotFoundError(2, "No such file", path)

    def mkdir(self, path):
        self.dirs.add(path)

    def get_channel(self):
        return None

    def close(self):
        self.closed = True


CONFIG = {"host": "sftp.example.com", "username": "deploy", "password": "pw", "path": "/srv/podcast"}


@pytest.fixture()
def sftp() -> FakeSftp:
    return FakeSftp()


@pytest.fixture()
def ssh_client(mocker, sftp):
    client = mocker.MagicMock(spec=paramiko.SSHClient)
    client.open_sftp.return_value = sftp
    return client


@pytest.fixture()
def adapter(ssh_client) -> SftpAdapter:
    return SftpAdapter(client_factory=lambda: ssh_client)


def test_deploy_is_idempotent_and_detects_changes(adapter, sftp, ssh_client, tmp_path: Path) -> None:
    audio = tmp_path / "ep1.mp3"
    audio.write_bytes(b"first take")
    episodes = [DeployEpisode(id="ep1", audio_final_path=str(audio))]

    first = adapter.deploy(CONFIG, None, "<rss/>", episodes, None)
    second = adapter.deploy(CONFIG, None, "<rss/>", episodes, None)
    audio.write_bytes(b"second take")
    third = adapter.deploy(CONFIG, None, "<rss/>", episodes, None)

    assert (first.uploaded, first.skipped, first.errors) == (2, 0, [])
    assert (second.uploaded, second.skipped) == (0, 2)
    assert (third.uploaded, third.skipped) == (1, 1)
    assert sftp.files["/srv/podcast/episodes/ep1.mp3"] == b"second take"
    assert "/srv/podcast/feed.xml.md5" in sftp.files
    assert {"/srv", "/srv/podcast", "/srv/podcast/episodes"} <= sftp.dirs
    assert sftp.closed is True
    assert ssh_client.close.call_count == 3


def test_connect_disables_agent_and_key_lookup(adapter, ssh_client) -> None:
    assert adapter.test(CONFIG).ok is True

    kwargs = ssh_client.connect.call_args.kwargs
    assert kwargs["hostname"] == "sftp.example.com"
    assert kwargs["port"] == 22
    assert kwargs["password"] == "pw"
    assert kwargs["look_for_keys"] is False
    assert kwargs["allow_agent"] is False


def test_missing_credentials_yield_single_error(adapter, ssh_client) -> None:
    result = adapter.deploy({"host": "h", "username": "u"}, None, "<rss/>", [], None)

    assert result.errors == ["Provide either password or private_key"]
    ssh_client.connect.assert_not_called()


def test_connection_failure_is_reported(adapter, ssh_client) -> None:
    ssh_client.connect.side_effect = paramiko.AuthenticationException("Authentication failed.")

    result = adapter.test(CONFIG)

    assert result.ok is False
    assert result.error == "Authentication failed."


def test_relative_base_path_maps_root_to_cwd(sftp) -> None:
    store = SftpStore(sftp, "")

    assert store.remote("") == "."
    assert store.remote("feed.xml") == "feed.xml"
    store.mkdir_recursive("episodes")
    assert sftp.dirs == {"episodes"}


def test_invalid_private_key_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="invalid private key"):
        load_private_key("not a key")
