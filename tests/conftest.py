# tests/conftest.py
from __future__ import annotations

import base64
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fakes import FakeGCSClient, FakeS3Client

from veilbin.api.v1.dependencies import get_model
from veilbin.core.settings import Settings
from veilbin.data import AbstractData, FilesystemData
from veilbin.data.database import DatabaseData
from veilbin.data.gcs import GoogleCloudStorageData
from veilbin.data.s3 import S3Data
from veilbin.db.session import drop_tables
from veilbin.db.time import epoch_now
from veilbin.main import app as fastapi_app
from veilbin.services import Model

TEST_DB_URL = "sqlite://"
BACKENDS = ("filesystem", "database", "s3", "gcs")


class FakeClock:
    """Callable clock frozen at a given Unix time."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def build_store(backend: str, tmp_path: Path) -> AbstractData:
    if backend == "filesystem":
        return FilesystemData(tmp_path / "data")
    if backend == "database":
        return DatabaseData(TEST_DB_URL)
    if backend == "s3":
        return S3Data("veilbin-test", prefix="pastes", client=FakeS3Client())
    if backend == "gcs":
        return GoogleCloudStorageData("veilbin-test", client=FakeGCSClient())
    raise ValueError(backend)


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Provide settings isolated from the environment of the test run."""
    return Settings(
        discussion=True,
        default_formatter="plaintext",
        size_limit=2_097_152,
        traffic_limit=10,
        traffic_exempted="",
        purge_limit=300,
        purge_batch_size=10,
        storage_backend="filesystem",
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(epoch_now())


@pytest.fixture(params=BACKENDS)
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[AbstractData]:
    """Every storage backend, each against a fresh, empty store."""
    backend = build_store(request.param, tmp_path)
    try:
        yield backend
    finally:
        if isinstance(backend, DatabaseData):
            drop_tables(backend.engine)
            backend.engine.dispose()


@pytest.fixture()
def filesystem_store(tmp_path: Path) -> FilesystemData:
    return FilesystemData(tmp_path / "data")


@pytest.fixture()
def model(test_settings: Settings, store: AbstractData, clock: FakeClock) -> Model:
    return Model(test_settings, store, clock=clock)


@pytest.fixture()
def filesystem_model(
    test_settings: Settings,
    filesystem_store: FilesystemData,
    clock: FakeClock,
) -> Model:
    return Model(test_settings, filesystem_store, clock=clock)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def _cipher_params(**overrides: Any) -> list[Any]:
    params = {
        "iv": _b64(os.urandom(16)),
        "salt": _b64(os.urandom(8)),
        "iterations": 100_000,
        "keysize": 256,
        "tagsize": 128,
        "algorithm": "aes",
        "mode": "gcm",
        "compression": "zlib",
    }
    params.update(overrides)
    return list(params.values())


@pytest.fixture()
def cipher_params() -> Callable[..., list[Any]]:
    """Factory for the eight element cipher parameter list."""
    return _cipher_params


@pytest.fixture()
def paste_envelope() -> Callable[..., dict[str, Any]]:
    """Factory for valid version 2 paste envelopes with random ciphertext."""

    def _make(
        expire: str = "1week",
        formatter: str = "plaintext",
        open_discussion: int = 0,
        burn_after_reading: int = 0,
        **cipher: Any,
    ) -> dict[str, Any]:
        return {
            "v": 2,
            "adata": [_cipher_params(**cipher), formatter, open_discussion, burn_after_reading],
            "ct": _b64(os.urandom(64)),
            "meta": {"expire": expire},
        }

    return _make


@pytest.fixture()
def comment_envelope() -> Callable[..., dict[str, Any]]:
    """Factory for valid version 2 comment envelopes."""

    def _make(paste_id: str, parent_id: str | None = None) -> dict[str, Any]:
        return {
            "v": 2,
            "adata": _cipher_params(),
            "ct": _b64(os.urandom(64)),
            "pasteid": paste_id,
            "parentid": parent_id or paste_id,
        }

    return _make


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def api_model(
    test_settings: Settings,
    filesystem_store: FilesystemData,
    clock: FakeClock,
) -> Model:
    """Model served by the API client, with the traffic limiter disabled."""
    return Model(test_settings.model_copy(update={"traffic_limit": 0}), filesystem_store, clock=clock)


@pytest.fixture()
def client(app: FastAPI, api_model: Model) -> Iterator[TestClient]:
    app.dependency_overrides[get_model] = lambda: api_model
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_model, None)
