"""
src/hibeats/models.py

Value types flowing through the generation pipeline.

Everything here is a frozen dataclass: a request is immutable once submitted,
statuses only move forward, and raw artifacts are read-only once parsed.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

DEFAULT_CREATOR_LABEL = "HiBeats AI"

# Known edge case: a tag that itself contains ", " gets split in two.
TAG_SEPARATOR = ", "


def new_request_id() -> str:
    return uuid.uuid4().hex


def round_half_up(x: float) -> int:
    # Math.round semantics (2.5 -> 3), unlike Python's banker's rounding.
    # Non-finite input rounds to 0.
    x = float(x)
    if not math.isfinite(x):
        return 0
    return int(math.floor(x + 0.5))


def split_tags(tags: Optional[str]) -> Tuple[str, ...]:
    if not tags:
        return ()
    return tuple(tags.split(TAG_SEPARATOR))


# ---------------------------------------------------------------------------
# Request / handle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    style: str = ""
    title: str = ""
    custom_mode: bool = False
    instrumental: bool = False
    model: str = "V3_5"  # V3_5 | V4 | V4_5
    negative_tags: str = ""
    vocal_gender: str = ""  # m | f
    style_weight: Optional[float] = None
    weirdness_constraint: Optional[float] = None
    audio_weight: Optional[float] = None
    callback_url: str = ""
    request_id: str = field(default_factory=new_request_id)

    def to_payload(self) -> Dict[str, Any]:
        """camelCase JSON body for POST /api/v1/generate. Unset optionals are omitted."""
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "customMode": bool(self.custom_mode),
            "instrumental": bool(self.instrumental),
            "model": self.model,
        }
        if self.style:
            payload["style"] = self.style
        if self.title:
            payload["title"] = self.title
        if self.negative_tags:
            payload["negativeTags"] = self.negative_tags
        if self.vocal_gender:
            payload["vocalGender"] = self.vocal_gender
        if self.style_weight is not None:
            payload["styleWeight"] = float(self.style_weight)
        if self.weirdness_constraint is not None:
            payload["weirdnessConstraint"] = float(self.weirdness_constraint)
        if self.audio_weight is not None:
            payload["audioWeight"] = float(self.audio_weight)
        if self.callback_url:
            payload["callBackUrl"] = self.callback_url
        return payload


@dataclass(frozen=True)
class TaskHandle:
    task_id: str
    request_id: str = ""

    def __str__(self) -> str:
        return self.task_id


# ---------------------------------------------------------------------------
# Raw service output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawArtifact:
    id: str
    title: str = ""
    duration: float = 0.0
    audio_url: str = ""
    stream_audio_url: str = ""
    image_url: str = ""
    prompt: str = ""
    model_name: str = ""
    tags: str = ""
    create_time: str = ""


# ---------------------------------------------------------------------------
# Task status (tagged variant)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pending:
    raw_status: str = "PENDING"
    is_terminal = False


@dataclass(frozen=True)
class Succeeded:
    artifacts: Tuple[RawArtifact, ...] = ()
    is_terminal = True


@dataclass(frozen=True)
class Failed:
    reason: str
    raw_status: str = ""
    is_terminal = True


@dataclass(frozen=True)
class TimedOut:
    attempts: int
    is_terminal = True


TaskStatus = Union[Pending, Succeeded, Failed, TimedOut]


# ---------------------------------------------------------------------------
# Metadata + ingestion output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attribute:
    trait_type: str
    value: Union[str, int]


@dataclass(frozen=True)
class MetadataRecord:
    name: str
    description: str
    image: str
    external_url: str
    attributes: Tuple[Attribute, ...]
    audio_url: str
    duration: float
    genre: Tuple[str, ...]
    created_by: str
    model_used: str
    generation_date: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["attributes"] = [asdict(a) for a in self.attributes]
        d["genre"] = list(self.genre)
        return d


@dataclass(frozen=True)
class StorageReceipt:
    audio_address: str
    image_address: str
    metadata_address: str


@dataclass(frozen=True)
class IngestedTrack:
    id: str
    title: str
    artist: str
    duration: int
    audio_url: str
    image_url: str
    genre: Tuple[str, ...]
    task_id: str
    created_at: str
    metadata: Optional[MetadataRecord] = None
    storage_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "duration": self.duration,
            "audioUrl": self.audio_url,
            "imageUrl": self.image_url,
            "genre": list(self.genre),
            "ipfsHash": self.storage_address,
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
            "taskId": self.task_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Stored:
    track: IngestedTrack
    receipt: StorageReceipt
    degraded = False


@dataclass(frozen=True)
class Degraded:
    track: IngestedTrack
    error: str
    degraded = True


IngestOutcome = Union[Stored, Degraded]


@dataclass(frozen=True)
class TrackLibrary:
    """Session track list, owned by the caller. Newest tracks first."""

    tracks: Tuple[IngestedTrack, ...] = ()

    def prepend(self, new_tracks: Sequence[IngestedTrack]) -> "TrackLibrary":
        return TrackLibrary(tracks=tuple(new_tracks) + self.tracks)

    def cleared(self) -> "TrackLibrary":
        return TrackLibrary()

    def by_task(self, task_id: str) -> List[IngestedTrack]:
        return [t for t in self.tracks if t.task_id == task_id]

    def __len__(self) -> int:
        return len(self.tracks)


__all__ = [
    "DEFAULT_CREATOR_LABEL",
    "TAG_SEPARATOR",
    "Attribute",
    "Degraded",
    "Failed",
    "GenerationRequest",
    "IngestOutcome",
    "IngestedTrack",
    "MetadataRecord",
    "Pending",
    "RawArtifact",
    "StorageReceipt",
    "Stored",
    "Succeeded",
    "TaskHandle",
    "TaskStatus",
    "TimedOut",
    "TrackLibrary",
    "new_request_id",
    "round_half_up",
    "split_tags",
]
