"""
src/hibeats/providers/__init__.py

Registry for generation clients and content stores.

Clients and stores are selected by name (usually via HIBEATS_PROVIDER /
HIBEATS_STORE). Construction errors surface as ConfigError.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from .base import (
    ConfigError,
    ContentStore,
    GenerationClient,
    GenerationFailed,
    GenerationTimedOut,
    NoArtifacts,
    PipelineError,
    ServiceError,
    StorageError,
)


def list_providers() -> List[str]:
    return ["suno", "stub"]


def list_stores() -> List[str]:
    return ["pinata", "local"]


def get_generation_client(name: Optional[str] = None, *, work_dir: Optional[Path] = None) -> GenerationClient:
    n = (name or os.environ.get("HIBEATS_PROVIDER") or "suno").strip().lower()

    if n == "suno":
        from hibeats.config import load_suno_config
        from .suno import SunoClient

        return SunoClient(load_suno_config())

    if n == "stub":
        from .stub import StubGenerationClient

        return StubGenerationClient(out_dir=(work_dir / "stub") if work_dir is not None else None)

    raise ConfigError(f"Unknown provider: {n}. Available: {', '.join(list_providers())}")


def get_content_store(name: Optional[str] = None, *, data_dir: Optional[Path] = None) -> ContentStore:
    n = (name or os.environ.get("HIBEATS_STORE") or "pinata").strip().lower()

    if n == "pinata":
        from hibeats.config import load_pinata_config
        from hibeats.storage import PinataStore

        return PinataStore(load_pinata_config())

    if n == "local":
        from hibeats.storage import LocalStore

        d = data_dir or Path((os.environ.get("HIBEATS_DATA_DIR") or "data/ipfs").strip())
        return LocalStore(d.expanduser())

    raise ConfigError(f"Unknown store: {n}. Available: {', '.join(list_stores())}")


__all__ = [
    "ConfigError",
    "ContentStore",
    "GenerationClient",
    "GenerationFailed",
    "GenerationTimedOut",
    "NoArtifacts",
    "PipelineError",
    "ServiceError",
    "StorageError",
    "get_content_store",
    "get_generation_client",
    "list_providers",
    "list_stores",
]
