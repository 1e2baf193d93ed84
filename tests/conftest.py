# tests/conftest.py
from __future__ import annotations

import base64
import os
import posixpath
from collections.abc import Generator, Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault(
    "SECRETS_KEY", base64.urlsafe_b64encode(b"k" * 32).decode().rstrip("=")
)

from podcast_deploy.core.settings import settings
from podcast_deploy.db.session import Base
from podcast_deploy.services.vault import CredentialVault

TEST_DB_URL = "sqlite://"


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def vault() -> CredentialVault:
    return CredentialVault.generate()


@pytest.fixture()
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point DATA_DIR at a temporary tree with artwork/ and processed/."""
    root = tmp_path / "data"
    (root / "artwork").mkdir(parents=True)
    (root / "processed").mkdir(parents=True)
    monkeypatch.setattr(settings, "data_dir", root)
    return root


class MemoryStore:
    """In-memory remote store recording every call."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.dirs: set[str] = set()
        self.gets: list[str] = []
        self.puts: list[str] = []
        self.mkdirs: list[str] = []
        self.fail_puts: set[str] = set()

    def get(self, path: str) -> bytes | None:
        self.gets.append(path)
        return self.files.get(path)

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        if path in self.fail_puts:
            raise OSError(f"write refused: {path}")
        self.puts.append(path)
        self.files[path] = data

    def mkdir_recursive(self, path: str) -> None:
        self.mkdirs.append(path)
        current = ""
        for segment in path.split("/"):
            if segment:
                current = posixpath.join(current, segment)
                self.dirs.add(current)


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def store_factory() -> type[MemoryStore]:
    return MemoryStore
