"""
src/hibeats/storage.py

Content-addressed stores and the media fetcher used by ingestion.

Stores:
  - PinataStore: pins files/JSON to IPFS through the Pinata HTTP API.
  - LocalStore: sha256-addressed files under a data dir (offline runs, tests).

Every failure surfaces as StorageError; callers never see requests exceptions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

import requests

from hibeats.config import PinataConfig
from hibeats.hash_utils import canonical_json, sha256_bytes
from hibeats.providers.base import StorageError

log = logging.getLogger(__name__)

PLATFORM_TAG = "HiBeats"

_MIME_BY_KIND = {
    "audio": "audio/mpeg",
    "image": "image/jpeg",
}


def _error_text(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("details"):
            return str(err["details"])
        if isinstance(err, str) and err.strip():
            return err.strip()
    return f"HTTP error! status: {r.status_code}"


# ---------------------------------------------------------------------------
# Pinata / IPFS
# ---------------------------------------------------------------------------


class PinataStore:
    name = "pinata"

    def __init__(self, cfg: PinataConfig, *, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.cfg.api_key:
            headers["pinata_api_key"] = self.cfg.api_key
        if self.cfg.secret_key:
            headers["pinata_secret_api_key"] = self.cfg.secret_key
        if self.cfg.jwt:
            headers["Authorization"] = f"Bearer {self.cfg.jwt}"
        return headers

    def _post(self, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.cfg.api_base}{endpoint}"
        headers = self._headers()
        headers.update(kwargs.pop("headers", {}) or {})
        try:
            r = self.session.post(url, headers=headers, timeout=self.cfg.timeout_s, **kwargs)
        except requests.exceptions.RequestException as e:
            raise StorageError(f"pinata request failed: {e}") from e

        if not (200 <= int(r.status_code) < 300):
            raise StorageError(_error_text(r))

        try:
            obj = r.json()
        except ValueError as e:
            raise StorageError("pinata returned non-JSON response") from e

        ipfs_hash = obj.get("IpfsHash") if isinstance(obj, dict) else None
        if not isinstance(ipfs_hash, str) or not ipfs_hash.strip():
            raise StorageError("pinata response missing IpfsHash")
        return obj

    def upload_bytes(self, data: bytes, filename: str, *, kind: str = "audio") -> str:
        pinata_metadata = json.dumps(
            {"name": filename, "keyvalues": {"type": kind, "platform": PLATFORM_TAG}}
        )
        files = {"file": (filename, data, _MIME_BY_KIND.get(kind, "application/octet-stream"))}
        obj = self._post(
            "/pinning/pinFileToIPFS",
            files=files,
            data={"pinataMetadata": pinata_metadata},
        )
        log.debug("pinned file %s -> %s (%s bytes)", filename, obj["IpfsHash"], obj.get("PinSize"))
        return str(obj["IpfsHash"])

    def upload_json(self, obj: Dict[str, Any], name: str) -> str:
        body = {
            "pinataContent": obj,
            "pinataMetadata": {
                "name": name,
                "keyvalues": {"type": "metadata", "platform": PLATFORM_TAG},
            },
        }
        resp = self._post(
            "/pinning/pinJSONToIPFS",
            json=body,
            headers={"Content-Type": "application/json"},
        )
        log.debug("pinned json %s -> %s", name, resp["IpfsHash"])
        return str(resp["IpfsHash"])

    def gateway_url(self, address: str) -> str:
        return f"{self.cfg.gateway}/{address}"


# ---------------------------------------------------------------------------
# Local sha256 store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoragePaths:
    data_dir: Path

    @property
    def objects_dir(self) -> Path:
        return self.data_dir / "objects"

    @property
    def names_dir(self) -> Path:
        return self.data_dir / "names"

    def ensure(self) -> None:
        self.objects_dir.mkdir(parents=True, exist_ok=True)
        self.names_dir.mkdir(parents=True, exist_ok=True)


class LocalStore:
    """
    Writes each object to objects/<sha256>. Identical content maps to the same
    address, so re-uploading is a no-op. names/<address>.json records the last
    filename and kind an address was uploaded under.
    """

    name = "local"

    def __init__(self, data_dir: Path) -> None:
        self.paths = StoragePaths(data_dir=Path(data_dir))

    def _put(self, data: bytes, filename: str, kind: str) -> str:
        address = sha256_bytes(data)
        try:
            self.paths.ensure()
            target = self.paths.objects_dir / address
            if not target.exists():
                target.write_bytes(data)
            (self.paths.names_dir / f"{address}.json").write_text(
                canonical_json({"name": filename, "type": kind, "platform": PLATFORM_TAG}) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise StorageError(f"local store write failed for {filename}: {e}") from e
        return address

    def upload_bytes(self, data: bytes, filename: str, *, kind: str = "audio") -> str:
        return self._put(data, filename, kind)

    def upload_json(self, obj: Dict[str, Any], name: str) -> str:
        return self._put(canonical_json(obj).encode("utf-8"), name, "metadata")

    def read(self, address: str) -> bytes:
        p = self.paths.objects_dir / address
        try:
            return p.read_bytes()
        except OSError as e:
            raise StorageError(f"unknown address: {address}") from e

    def gateway_url(self, address: str) -> str:
        return (self.paths.objects_dir / address).resolve().as_uri()


# ---------------------------------------------------------------------------
# Media fetch
# ---------------------------------------------------------------------------


def fetch_media(url: str, *, timeout_s: float = 30.0, session: Optional[requests.Session] = None) -> bytes:
    """Download a media locator. Supports http(s):// and file://."""
    u = (url or "").strip()
    if not u:
        raise StorageError("media url is empty")

    parsed = urlparse(u)
    if parsed.scheme == "file":
        try:
            return Path(unquote(parsed.path)).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to fetch file from URL: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise StorageError(f"unsupported media url scheme: {parsed.scheme or '<none>'}")

    getter = session.get if session is not None else requests.get
    try:
        r = getter(u, timeout=timeout_s)
    except requests.exceptions.RequestException as e:
        raise StorageError(f"Failed to fetch file from URL: {e}") from e
    if not (200 <= int(r.status_code) < 300):
        raise StorageError(f"Failed to fetch file from URL: {r.status_code} {r.reason or ''}".strip())
    return r.content


__all__ = [
    "LocalStore",
    "PinataStore",
    "StoragePaths",
    "fetch_media",
]
