"""Shared fixtures: isolated storage roots and fake transformers."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.errors import TransformError
from app.jobs.store import JobStore
from app.jobs.transform import Transformer
from app.main import create_app
from app.storage.temp_files import TempFileStore

PDF_BYTES = b"%PDF-1.4\n" + b"0" * 2048 + b"\n%%EOF\n"


class CopyTransformer(Transformer):
    """Writes a smaller "optimised" copy of the input."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def transform(self, input_path: str, output_path: str, tag: str = "") -> str:
        self.calls.append((input_path, output_path))
        if self.delay:
            await asyncio.sleep(self.delay)
        with open(input_path, "rb") as src, open(output_path, "wb") as dst:
            dst.write(src.read()[:1024])
        return output_path


class FailingTransformer(Transformer):
    def __init__(self):
        self.calls = 0

    async def transform(self, input_path: str, output_path: str, tag: str = "") -> str:
        self.calls += 1
        with open(output_path, "wb") as dst:
            dst.write(b"partial")
        raise TransformError(detail="gs: unrecoverable error, exit code 1")


class EmptyOutputTransformer(Transformer):
    async def transform(self, input_path: str, output_path: str, tag: str = "") -> str:
        open(output_path, "wb").close()
        return output_path


class FakeUpload:
    """Minimal stand-in for UploadFile: async ``read(n)`` over bytes."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos : self._pos + size]
        self._pos += len(chunk)
        return chunk


@pytest.fixture
def storage_dir(tmp_path) -> str:
    return str(tmp_path / "storage")


@pytest.fixture
def files(storage_dir: str) -> TempFileStore:
    store = TempFileStore(base_dir=storage_dir)
    store.prepare()
    return store


@pytest.fixture
def store(files: TempFileStore) -> JobStore:
    return JobStore(files)


def write_artifacts(job, data: bytes = PDF_BYTES) -> None:
    """Put an input and output file on disk for ``job``."""
    for path in (job.input_path, job.output_path):
        with open(path, "wb") as fh:
            fh.write(data)


def stored_files(storage_dir: str) -> list[str]:
    if not os.path.isdir(storage_dir):
        return []
    return sorted(os.listdir(storage_dir))


def make_settings(storage_dir: str, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "storage_dir": storage_dir,
        "idle_ttl_seconds": 60.0,
        "shutdown_grace_seconds": 2.0,
        "record_retention_seconds": 0.0,
        "static_dir": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def client_factory(storage_dir: str):
    """Build a TestClient around a fresh app; use as a context manager."""

    def _make(transformer: Transformer | None = None, **overrides: Any) -> TestClient:
        app = create_app(
            make_settings(storage_dir, **overrides),
            transformer=transformer or CopyTransformer(),
        )
        return TestClient(app)

    return _make


@pytest.fixture
def client(client_factory) -> Generator[TestClient, None, None]:
    with client_factory() as c:
        yield c


def wait_for_status(
    client: TestClient, job_id: str, wanted: str, timeout: float = 5.0
) -> dict[str, Any]:
    """Poll GET /status until the job reaches ``wanted`` or time runs out."""
    deadline = time.monotonic() + timeout
    data: dict[str, Any] = {}
    while time.monotonic() < deadline:
        data = client.get(f"/status/{job_id}").json()
        if data.get("status") == wanted:
            return data
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} never reached {wanted!r}; last seen {data}")
