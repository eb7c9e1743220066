"""Shared fakes for pipeline tests: scripted client, in-memory store, fake clock."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from hibeats.hash_utils import canonical_json, sha256_bytes
from hibeats.models import (
    GenerationRequest,
    RawArtifact,
    TaskHandle,
    TaskStatus,
)
from hibeats.providers.base import ServiceError, StorageError


class ScriptedClient:
    """Returns the scripted statuses in order; the last one repeats."""

    name = "scripted"

    def __init__(self, statuses: Sequence[Any]) -> None:
        self.statuses = list(statuses)
        self.submitted: List[GenerationRequest] = []
        self.queries: List[TaskHandle] = []
        self._lock = threading.Lock()

    def submit(self, request: GenerationRequest) -> TaskHandle:
        with self._lock:
            self.submitted.append(request)
            n = len(self.submitted)
        return TaskHandle(task_id=f"task-{n}", request_id=request.request_id)

    def query_status(self, handle: TaskHandle) -> TaskStatus:
        with self._lock:
            self.queries.append(handle)
            i = min(len(self.queries), len(self.statuses)) - 1
        item = self.statuses[i]
        if isinstance(item, Exception):
            raise item
        return item


class FailingSubmitClient(ScriptedClient):
    def submit(self, request: GenerationRequest) -> TaskHandle:
        raise ServiceError("HTTP error! status: 503")


class MemoryStore:
    """sha256-addressed dict; uploads of any filename containing a key in fail_on raise."""

    name = "memory"

    def __init__(self, fail_on: Optional[Set[str]] = None) -> None:
        self.fail_on = set(fail_on or ())
        self.objects: Dict[str, bytes] = {}
        self.names: List[str] = []
        self._lock = threading.Lock()

    def _check(self, name: str) -> None:
        for marker in self.fail_on:
            if marker in name:
                raise StorageError(f"quota exceeded for {name}")

    def upload_bytes(self, data: bytes, filename: str, *, kind: str = "audio") -> str:
        self._check(filename)
        address = sha256_bytes(data)
        with self._lock:
            self.objects[address] = data
            self.names.append(filename)
        return address

    def upload_json(self, obj: Dict[str, Any], name: str) -> str:
        self._check(name)
        return self.upload_bytes(canonical_json(obj).encode("utf-8"), name, kind="metadata")

    def gateway_url(self, address: str) -> str:
        return f"https://gateway.test/ipfs/{address}"


class FakeClock:
    """Injected sleep: records requested delays and advances simulated time."""

    def __init__(self) -> None:
        self.sleeps: List[float] = []
        self.now = 0.0

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def fake_fetch(url: str) -> bytes:
    return f"bytes-of:{url}".encode("utf-8")


def make_artifact(artifact_id: str, **kw: Any) -> RawArtifact:
    defaults: Dict[str, Any] = dict(
        title=f"Track {artifact_id}",
        duration=120.0,
        audio_url=f"https://cdn.test/{artifact_id}.mp3",
        stream_audio_url=f"https://cdn.test/{artifact_id}/stream",
        image_url=f"https://cdn.test/{artifact_id}.jpg",
        prompt="lofi beat",
        model_name="chirp-v3-5",
        tags="lofi, chill",
        create_time="2026-10-19T10:00:00Z",
    )
    defaults.update(kw)
    return RawArtifact(id=artifact_id, **defaults)


@pytest.fixture(autouse=True)
def _reset_hibeats_logger():
    yield
    logger = logging.getLogger("hibeats")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
