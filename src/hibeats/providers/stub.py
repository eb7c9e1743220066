#!/usr/bin/env python3
"""
src/hibeats/providers/stub.py

Deterministic offline generation client.

Contract (same as SunoClient):
- submit(request) -> TaskHandle, a fresh handle per call (no dedup by content)
- query_status(handle) -> PENDING for `pending_polls` queries, then SUCCESS
  with `artifact_count` artifacts (or the configured failure status)

Artifacts:
- audio is a short sine-wave WAV written to out_dir/<artifact_id>.wav and
  referenced by a file:// URL, so ingestion can fetch it without a network
- frequency/phase are derived from a stable hash of (prompt, style, index);
  no system time or random state goes into the waveform
"""

from __future__ import annotations

import hashlib
import math
import struct
import tempfile
import threading
import uuid
import wave
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple

from hibeats.models import GenerationRequest, RawArtifact, TaskHandle, TaskStatus
from hibeats.providers.base import ServiceError
from hibeats.providers.suno import classify_status

# One request yields two tracks on the real service.
EXPECTED_TRACKS_PER_TASK = 2


def _stable_hash_u64(s: str) -> int:
    d = hashlib.sha256(s.encode("utf-8")).digest()
    return int.from_bytes(d[:8], "big", signed=False)


def _deterministic_freq_hz(key: str, *, min_hz: float = 220.0, max_hz: float = 880.0) -> float:
    """
    Map a stable hash -> float in [min_hz, max_hz], rounded to 3 decimals.
    """
    if max_hz <= min_hz:
        raise ValueError("max_hz must be > min_hz")
    u = _stable_hash_u64(f"hibeats.stub.freq|{key}")
    frac = (u % (10**12)) / float(10**12)
    hz = min_hz + (max_hz - min_hz) * frac
    return float(f"{hz:.3f}")


def _deterministic_phase(key: str) -> float:
    u = _stable_hash_u64(f"hibeats.stub.phase|{key}")
    frac = (u % (10**12)) / float(10**12)
    return (2.0 * math.pi) * frac


def _render_wav_bytes(
    *,
    freq_hz: float,
    phase: float,
    seconds: float = 2.0,
    sample_rate: int = 22050,
    amplitude: float = 0.20,
) -> bytes:
    if seconds <= 0:
        raise ValueError("seconds must be > 0")
    if sample_rate <= 0:
        raise ValueError("sample_rate must be > 0")

    n_frames = max(1, int(round(seconds * sample_rate)))

    buf = BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)  # 16-bit PCM
        wf.setframerate(sample_rate)

        max_i16 = 32767
        for i in range(n_frames):
            t = i / sample_rate
            v = math.sin((2.0 * math.pi * freq_hz * t) + phase)
            s = int(round(max_i16 * amplitude * v))
            s = max(-32768, min(32767, s))
            wf.writeframesraw(struct.pack("<h", s))

        wf.writeframes(b"")

    return buf.getvalue()


class StubGenerationClient:
    """Client used for offline runs and the CLI smoke path."""

    name = "stub"

    def __init__(
        self,
        *,
        out_dir: Optional[Path] = None,
        pending_polls: int = 2,
        artifact_count: int = EXPECTED_TRACKS_PER_TASK,
        fail_status: str = "",
        error_message: str = "",
        seconds: float = 2.0,
    ) -> None:
        self.out_dir = Path(out_dir) if out_dir is not None else Path(tempfile.gettempdir()) / "hibeats_stub"
        self.pending_polls = max(0, int(pending_polls))
        self.artifact_count = max(0, int(artifact_count))
        self.fail_status = fail_status
        self.error_message = error_message
        self.seconds = float(seconds)
        self._lock = threading.Lock()
        self._tasks: Dict[str, Tuple[GenerationRequest, int]] = {}

    def submit(self, request: GenerationRequest) -> TaskHandle:
        task_id = f"stub-{uuid.uuid4().hex[:16]}"
        with self._lock:
            self._tasks[task_id] = (request, 0)
        return TaskHandle(task_id=task_id, request_id=request.request_id)

    def query_status(self, handle: TaskHandle) -> TaskStatus:
        with self._lock:
            entry = self._tasks.get(handle.task_id)
            if entry is None:
                raise ServiceError(f"unknown taskId: {handle.task_id}")
            request, seen = entry
            self._tasks[handle.task_id] = (request, seen + 1)

        if seen < self.pending_polls:
            return classify_status("TEXT_SUCCESS" if seen else "PENDING")
        if self.fail_status:
            return classify_status(self.fail_status, error_message=self.error_message or None)
        return classify_status("SUCCESS", artifacts=self._artifacts(handle, request))

    def _artifacts(self, handle: TaskHandle, request: GenerationRequest) -> Tuple[RawArtifact, ...]:
        created = datetime.now(timezone.utc).isoformat()
        out = []
        for i in range(self.artifact_count):
            artifact_id = f"{handle.task_id}-{i}"
            key = f"{request.prompt}|{request.style}|{i}"
            wav = _render_wav_bytes(
                freq_hz=_deterministic_freq_hz(key),
                phase=_deterministic_phase(key),
                seconds=self.seconds,
            )
            self.out_dir.mkdir(parents=True, exist_ok=True)
            wav_path = self.out_dir / f"{artifact_id}.wav"
            wav_path.write_bytes(wav)

            title = request.title or f"Stub Track {i + 1}"
            out.append(
                RawArtifact(
                    id=artifact_id,
                    title=title,
                    duration=self.seconds,
                    audio_url=wav_path.resolve().as_uri(),
                    stream_audio_url=wav_path.resolve().as_uri(),
                    image_url="",
                    prompt=request.prompt,
                    model_name=f"stub-{request.model.lower()}",
                    tags=request.style,
                    create_time=created,
                )
            )
        return tuple(out)
