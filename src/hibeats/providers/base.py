from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hibeats.models import GenerationRequest, TaskHandle, TaskStatus


class PipelineError(RuntimeError):
    """Base class for everything the generation pipeline raises."""


class ConfigError(PipelineError):
    """Raised when a client or store cannot be constructed from configuration."""


class ServiceError(PipelineError):
    """Transport or protocol failure talking to the generation service."""


class StorageError(PipelineError):
    """Content upload (or media fetch) failure. Recovered per artifact."""


class GenerationFailed(PipelineError):
    """The service rejected the content or reported an unrecoverable failure."""

    def __init__(self, reason: str, handle: Optional["TaskHandle"] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.handle = handle


class GenerationTimedOut(GenerationFailed):
    """
    Polling bound exhausted while the task was still pending.

    The task may still finish server-side; pass `handle` to Pipeline.resume()
    to keep waiting.
    """

    def __init__(self, handle: "TaskHandle", attempts: int) -> None:
        super().__init__(
            f"Generation timeout after {attempts} attempts - please check status manually",
            handle=handle,
        )
        self.attempts = attempts


class NoArtifacts(PipelineError):
    """A SUCCESS status arrived without any artifacts."""


@runtime_checkable
class GenerationClient(Protocol):
    """Submits requests and answers single status queries. Never retries."""

    name: str

    def submit(self, request: "GenerationRequest") -> "TaskHandle":
        ...

    def query_status(self, handle: "TaskHandle") -> "TaskStatus":
        ...


@runtime_checkable
class ContentStore(Protocol):
    """upload(bytes) -> address, fails with StorageError."""

    name: str

    def upload_bytes(self, data: bytes, filename: str, *, kind: str = "audio") -> str:
        ...

    def upload_json(self, obj: Dict[str, Any], name: str) -> str:
        ...

    def gateway_url(self, address: str) -> str:
        ...
