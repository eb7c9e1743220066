from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from hibeats.models import DEFAULT_CREATOR_LABEL
from hibeats.providers.base import ConfigError

DEFAULT_SUNO_API_BASE = "https://api.sunoapi.org"
DEFAULT_PINATA_API_BASE = "https://api.pinata.cloud"
DEFAULT_IPFS_GATEWAY = "https://gateway.pinata.cloud/ipfs"


def _env_str(name: str, default: str = "") -> str:
    v = os.environ.get(name)
    return (v if v is not None else default).strip()


def _env_int(name: str, default: int) -> int:
    v = _env_str(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = _env_str(name)
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def http_timeout() -> float:
    return max(1.0, _env_float("HIBEATS_HTTP_TIMEOUT", 30.0))


@dataclass(frozen=True)
class SunoConfig:
    api_key: str
    api_base: str
    callback_url: str
    timeout_s: float


def load_suno_config() -> SunoConfig:
    api_key = _env_str("HIBEATS_SUNO_API_KEY")
    if not api_key:
        raise ConfigError(
            "Suno client not configured. Missing: HIBEATS_SUNO_API_KEY. "
            "Set env vars and retry, or use HIBEATS_PROVIDER=stub."
        )
    return SunoConfig(
        api_key=api_key,
        api_base=(_env_str("HIBEATS_SUNO_API_BASE") or DEFAULT_SUNO_API_BASE).rstrip("/"),
        callback_url=_env_str("HIBEATS_SUNO_CALLBACK_URL"),
        timeout_s=http_timeout(),
    )


@dataclass(frozen=True)
class PinataConfig:
    api_key: str
    secret_key: str
    jwt: str
    api_base: str
    gateway: str
    timeout_s: float


def load_pinata_config() -> PinataConfig:
    api_key = _env_str("HIBEATS_PINATA_API_KEY")
    jwt = _env_str("HIBEATS_PINATA_JWT")
    if not api_key and not jwt:
        raise ConfigError(
            "Pinata store not configured. Missing: HIBEATS_PINATA_API_KEY or HIBEATS_PINATA_JWT. "
            "Set env vars and retry, or use HIBEATS_STORE=local."
        )
    return PinataConfig(
        api_key=api_key,
        secret_key=_env_str("HIBEATS_PINATA_SECRET_KEY"),
        jwt=jwt,
        api_base=(_env_str("HIBEATS_PINATA_API_BASE") or DEFAULT_PINATA_API_BASE).rstrip("/"),
        gateway=gateway_base(),
        timeout_s=http_timeout(),
    )


def gateway_base() -> str:
    return (_env_str("HIBEATS_IPFS_GATEWAY") or DEFAULT_IPFS_GATEWAY).rstrip("/")


@dataclass(frozen=True)
class PipelineConfig:
    provider: str
    store: str
    data_dir: Path
    creator_label: str
    poll_interval_s: float
    poll_max_attempts: int
    ingest_concurrency: int


def load_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        provider=(_env_str("HIBEATS_PROVIDER") or "suno").lower(),
        store=(_env_str("HIBEATS_STORE") or "pinata").lower(),
        data_dir=Path(_env_str("HIBEATS_DATA_DIR") or "data/ipfs").expanduser(),
        creator_label=_env_str("HIBEATS_CREATOR_LABEL") or DEFAULT_CREATOR_LABEL,
        poll_interval_s=max(0.0, _env_float("HIBEATS_POLL_INTERVAL", 10.0)),
        poll_max_attempts=max(1, _env_int("HIBEATS_POLL_MAX_ATTEMPTS", 30)),
        ingest_concurrency=max(1, _env_int("HIBEATS_INGEST_CONCURRENCY", 1)),
    )
