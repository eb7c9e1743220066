#!/usr/bin/env python3
"""
src/hibeats/pipeline.py

Generation -> polling -> ingestion, as one awaitable operation.

    tracks = await Pipeline(client, store).run(GenerationRequest(prompt="lofi beat"))

Contract:
- run() returns one IngestedTrack per raw artifact, in source order, only after
  every artifact has been processed.
- Failed status          -> GenerationFailed
- attempt bound exhausted -> GenerationTimedOut (carries the handle; see resume())
- SUCCESS without tracks -> NoArtifacts
- ServiceError from submit/poll propagates unchanged.
- Any other exception escaping a run emits exactly one "run_failed" before it
  is re-raised. Cancellation is not a failure and emits nothing.
- A storage failure on one artifact yields a Degraded outcome for that track and
  an "artifact_degraded" warning; the run still succeeds.

Each invocation gets its own PipelineRun (state + handle); the Pipeline object
itself holds only collaborators and policy, so concurrent runs share nothing
mutable.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from hibeats.events import EventContext, Observer, ProgressEmitter, new_run_id
from hibeats.ingest import ArtifactIngestor, Fetcher
from hibeats.models import (
    DEFAULT_CREATOR_LABEL,
    Failed,
    GenerationRequest,
    IngestedTrack,
    IngestOutcome,
    RawArtifact,
    Succeeded,
    TaskHandle,
    TaskStatus,
    TimedOut,
)
from hibeats.poller import DEFAULT_INTERVAL_S, DEFAULT_MAX_ATTEMPTS, CompletionPoller, Sleep
from hibeats.providers.base import (
    ContentStore,
    GenerationClient,
    GenerationFailed,
    GenerationTimedOut,
    NoArtifacts,
)

log = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    INGESTING = "ingesting"


@dataclass
class PipelineRun:
    """State owned by exactly one run()/resume() invocation."""

    run_id: str
    request: Optional[GenerationRequest]
    state: PipelineState = PipelineState.IDLE
    handle: Optional[TaskHandle] = None
    outcomes: List[IngestOutcome] = field(default_factory=list)
    error: Optional[BaseException] = None

    def advance(self, state: PipelineState) -> None:
        log.debug("run %s: %s -> %s", self.run_id, self.state.value, state.value)
        self.state = state


class Pipeline:
    def __init__(
        self,
        client: GenerationClient,
        store: ContentStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval_s: float = DEFAULT_INTERVAL_S,
        ingest_concurrency: int = 1,
        creator_label: str = DEFAULT_CREATOR_LABEL,
        sleep: Optional[Sleep] = None,
        fetcher: Optional[Fetcher] = None,
        observers: Optional[Sequence[Observer]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.client = client
        self.store = store
        self.max_attempts = max_attempts
        self.interval_s = interval_s
        self.ingest_concurrency = max(1, int(ingest_concurrency))
        self.sleep = sleep
        self.ingestor = ArtifactIngestor(store, fetcher=fetcher, creator_label=creator_label)
        self.observers: List[Observer] = list(observers or [])

    def _emitter(self, run_id: str) -> ProgressEmitter:
        return ProgressEmitter(EventContext(run_id=run_id, source="pipeline"), self.observers)

    async def run(self, request: GenerationRequest) -> List[IngestedTrack]:
        run = PipelineRun(run_id=new_run_id(), request=request)
        events = self._emitter(run.run_id)
        try:
            run.advance(PipelineState.SUBMITTING)
            events.info("submission_started", "Starting music generation...", request_id=request.request_id)
            handle = await asyncio.to_thread(self.client.submit, request)
            run.handle = handle
            events.info("submitted", f"Task submitted: {handle.task_id}", task_id=handle.task_id)
            return await self._complete(run, handle, events)
        except Exception as e:
            self._fail(run, events, e)
            raise
        finally:
            run.advance(PipelineState.IDLE)

    async def resume(
        self,
        handle: TaskHandle,
        request: Optional[GenerationRequest] = None,
    ) -> List[IngestedTrack]:
        """Keep waiting on an existing task (e.g. after GenerationTimedOut), then ingest."""
        run = PipelineRun(run_id=new_run_id(), request=request, handle=handle)
        events = self._emitter(run.run_id)
        try:
            return await self._complete(run, handle, events)
        except Exception as e:
            self._fail(run, events, e)
            raise
        finally:
            run.advance(PipelineState.IDLE)

    async def _complete(
        self,
        run: PipelineRun,
        handle: TaskHandle,
        events: ProgressEmitter,
    ) -> List[IngestedTrack]:
        run.advance(PipelineState.POLLING)
        events.info(
            "polling_started",
            "Generating music... This may take 30-60 seconds",
            task_id=handle.task_id,
            max_attempts=self.max_attempts,
            interval_s=self.interval_s,
        )
        poller = CompletionPoller(self.client, sleep=self.sleep)
        status = await poller.await_completion(handle, self.max_attempts, self.interval_s)
        artifacts = self._artifacts_or_raise(handle, status)

        run.advance(PipelineState.INGESTING)
        tracks = await self._ingest_all(run, handle, events, artifacts)

        degraded = sum(1 for o in run.outcomes if o.degraded)
        events.success(
            "run_succeeded",
            f"Successfully generated {len(tracks)} track(s)!",
            task_id=handle.task_id,
            tracks=len(tracks),
            degraded=degraded,
        )
        return tracks

    def _artifacts_or_raise(self, handle: TaskHandle, status: TaskStatus) -> Sequence[RawArtifact]:
        if isinstance(status, Failed):
            raise GenerationFailed(status.reason, handle=handle)
        if isinstance(status, TimedOut):
            raise GenerationTimedOut(handle, status.attempts)
        if not isinstance(status, Succeeded):
            raise GenerationFailed(f"unexpected status: {type(status).__name__}", handle=handle)
        if not status.artifacts:
            raise NoArtifacts("No music data received from generation")
        return status.artifacts

    async def _ingest_one(
        self,
        run: PipelineRun,
        handle: TaskHandle,
        events: ProgressEmitter,
        artifact: RawArtifact,
    ) -> IngestOutcome:
        outcome = await asyncio.to_thread(self.ingestor.ingest, artifact, run.request, handle)
        if outcome.degraded:
            events.warning(
                "artifact_degraded",
                f"Track generated but storage upload failed for: {outcome.track.title}",
                track_id=outcome.track.id,
                error=outcome.error,
            )
        else:
            events.info(
                "artifact_ingested",
                f"Stored track: {outcome.track.title}",
                track_id=outcome.track.id,
                address=outcome.track.storage_address,
            )
        return outcome

    async def _ingest_all(
        self,
        run: PipelineRun,
        handle: TaskHandle,
        events: ProgressEmitter,
        artifacts: Sequence[RawArtifact],
    ) -> List[IngestedTrack]:
        if self.ingest_concurrency == 1:
            for artifact in artifacts:
                run.outcomes.append(await self._ingest_one(run, handle, events, artifact))
        else:
            sem = asyncio.Semaphore(self.ingest_concurrency)

            async def bounded(artifact: RawArtifact) -> IngestOutcome:
                async with sem:
                    return await self._ingest_one(run, handle, events, artifact)

            # gather keeps argument order regardless of completion order
            run.outcomes.extend(await asyncio.gather(*(bounded(a) for a in artifacts)))

        return [o.track for o in run.outcomes]

    def _fail(self, run: PipelineRun, events: ProgressEmitter, e: BaseException) -> None:
        run.error = e
        events.error(
            "run_failed",
            f"Generation failed: {e}",
            error_type=type(e).__name__,
            task_id=run.handle.task_id if run.handle is not None else None,
            state=run.state.value,
        )
