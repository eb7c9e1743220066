#!/usr/bin/env python3
"""
src/hibeats/ingest.py

Artifact ingestion: one raw artifact in, one IngestOutcome out.

Steps per artifact:
  1) build the MetadataRecord from the artifact + request (pure, cannot fail)
  2) fetch audio (and cover image, if any), pin both, rewrite the record to
     content addresses, pin the record as JSON

Rules:
- ingest() never raises. Any exception in step 2 becomes Degraded(track, error)
  and the track keeps the artifact's direct media URLs plus the in-memory record.
- Stored(track, receipt) always has track.storage_address == receipt.metadata_address.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from functools import partial
from typing import Callable, Optional, Tuple

from hibeats.config import http_timeout
from hibeats.models import (
    DEFAULT_CREATOR_LABEL,
    Attribute,
    Degraded,
    GenerationRequest,
    IngestedTrack,
    IngestOutcome,
    MetadataRecord,
    RawArtifact,
    StorageReceipt,
    Stored,
    TaskHandle,
    round_half_up,
    split_tags,
)
from hibeats.providers.base import ContentStore
from hibeats.storage import fetch_media

log = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]


def _file_stem(artifact: RawArtifact) -> str:
    title = re.sub(r"\s+", "_", artifact.title)
    return f"{title}_{artifact.id}"


def build_metadata(
    artifact: RawArtifact,
    request: Optional[GenerationRequest] = None,
    *,
    creator_label: str = DEFAULT_CREATOR_LABEL,
) -> MetadataRecord:
    """Normalized record pointing at the artifact's direct media URLs."""
    description = artifact.prompt or (request.prompt if request is not None else "")
    return MetadataRecord(
        name=artifact.title,
        description=description,
        image=artifact.image_url,
        external_url=artifact.audio_url,
        attributes=(
            Attribute("Genre", artifact.tags),
            Attribute("Duration", round_half_up(artifact.duration)),
            Attribute("Model", artifact.model_name),
            Attribute("Generation Date", artifact.create_time),
        ),
        audio_url=artifact.audio_url,
        duration=artifact.duration if math.isfinite(artifact.duration) else 0.0,
        genre=split_tags(artifact.tags),
        created_by=creator_label,
        model_used=artifact.model_name,
        generation_date=artifact.create_time,
    )


def build_track(
    artifact: RawArtifact,
    handle: TaskHandle,
    metadata: MetadataRecord,
    *,
    storage_address: Optional[str] = None,
    creator_label: str = DEFAULT_CREATOR_LABEL,
) -> IngestedTrack:
    return IngestedTrack(
        id=artifact.id,
        title=artifact.title or "Untitled",
        artist=creator_label,
        duration=round_half_up(artifact.duration),
        audio_url=artifact.audio_url,
        image_url=artifact.image_url,
        genre=split_tags(artifact.tags),
        task_id=handle.task_id,
        created_at=artifact.create_time,
        metadata=metadata,
        storage_address=storage_address,
    )


class ArtifactIngestor:
    def __init__(
        self,
        store: ContentStore,
        *,
        fetcher: Optional[Fetcher] = None,
        creator_label: str = DEFAULT_CREATOR_LABEL,
    ) -> None:
        self.store = store
        self.fetcher: Fetcher = fetcher or partial(fetch_media, timeout_s=http_timeout())
        self.creator_label = creator_label

    def _pinned(self, record: MetadataRecord, audio_address: str, image_address: str) -> MetadataRecord:
        return replace(
            record,
            image=f"ipfs://{image_address}" if image_address else record.image,
            external_url=self.store.gateway_url(audio_address),
            audio_url=f"ipfs://{audio_address}",
        )

    def _store(self, artifact: RawArtifact, record: MetadataRecord) -> Tuple[StorageReceipt, MetadataRecord]:
        stem = _file_stem(artifact)

        audio_address = self.store.upload_bytes(
            self.fetcher(artifact.audio_url), f"{stem}.mp3", kind="audio"
        )
        image_address = ""
        if artifact.image_url:
            image_address = self.store.upload_bytes(
                self.fetcher(artifact.image_url), f"{stem}_cover.jpg", kind="image"
            )

        pinned = self._pinned(record, audio_address, image_address)
        metadata_address = self.store.upload_json(pinned.to_dict(), f"{artifact.title}_metadata.json")
        receipt = StorageReceipt(
            audio_address=audio_address,
            image_address=image_address,
            metadata_address=metadata_address,
        )
        return receipt, pinned

    def ingest(
        self,
        artifact: RawArtifact,
        request: Optional[GenerationRequest],
        handle: TaskHandle,
    ) -> IngestOutcome:
        record = build_metadata(artifact, request, creator_label=self.creator_label)
        try:
            receipt, pinned = self._store(artifact, record)
        except Exception as e:
            log.warning(
                "storage failed for track %s (%s); keeping direct media urls: %s",
                artifact.id,
                artifact.title,
                e,
            )
            track = build_track(artifact, handle, record, creator_label=self.creator_label)
            return Degraded(track=track, error=str(e) or type(e).__name__)

        track = build_track(
            artifact,
            handle,
            pinned,
            storage_address=receipt.metadata_address,
            creator_label=self.creator_label,
        )
        log.info("ingested track %s metadata=%s", artifact.id, receipt.metadata_address)
        return Stored(track=track, receipt=receipt)
